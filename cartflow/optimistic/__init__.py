"""
Optimistic: local-first mutations with snapshot restore.

    from cartflow import optimistic as O

    cell = O.StateCell(initial)
    result = await O.mutate(cell, lambda s: next_state, commit=save)

    match result:
        case Ok(applied): ...       # applied.state is live
        case Error(rolled_back): ... # cell holds rolled_back.restored again
"""

from __future__ import annotations

from cartflow.optimistic._types import Applied, RolledBack
from cartflow.optimistic._mutate import StateCell, mutate

__all__ = (
    "Applied",
    "RolledBack",
    "StateCell",
    "mutate",
)
