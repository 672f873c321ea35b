"""
Optimistic mutation: apply locally, commit, restore on failure.

    from cartflow import optimistic as O

    cell = O.StateCell(initial)
    result = await O.mutate(cell, lambda s: next_state, commit=save)

The new state is visible in the cell before the commit is awaited. If
the commit fails the snapshot taken just before applying is restored.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from kungfu import Result, Ok, Error, LazyCoroResult

from cartflow.optimistic._types import Applied, RolledBack

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# StateCell: the mutable slot holding the current value
# ═══════════════════════════════════════════════════════════════════════════════


class StateCell[S]:
    """Holds one immutable state value. Reads and writes are synchronous."""

    __slots__ = ("_value",)

    def __init__(self, value: S) -> None:
        self._value = value

    def get(self) -> S:
        return self._value

    def set(self, value: S) -> None:
        self._value = value


# ═══════════════════════════════════════════════════════════════════════════════
# mutate()
# ═══════════════════════════════════════════════════════════════════════════════


async def mutate[S, E](
    cell: StateCell[S],
    apply: Callable[[S], S],
    commit: Callable[[S], LazyCoroResult[object, E]],
) -> Result[Applied[S], RolledBack[S, E]]:
    """
    Apply `apply` to the cell, then commit the new state.

    The cell holds the new state while `commit(new_state)` is awaited.
    On `Error` the snapshot goes back in, so the cell compares equal to
    what it held before the call.
    """
    snapshot = cell.get()
    new_state = apply(snapshot)
    cell.set(new_state)

    match await commit(new_state):
        case Ok(_):
            return Ok(Applied(state=new_state, previous=snapshot))
        case Error(e):
            cell.set(snapshot)
            logger.info("optimistic update rolled back: %s", e)
            return Error(RolledBack(error=e, restored=snapshot, attempted=new_state))


__all__ = ("StateCell", "mutate")
