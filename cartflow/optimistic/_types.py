"""
Optimistic mutation outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Applied[S]:
    """The commit landed. `state` is what the cell now holds."""

    state: S
    previous: S


@dataclass(frozen=True, slots=True)
class RolledBack[S, E]:
    """
    The commit failed and the cell was put back.

    `restored` is the snapshot taken before the mutation; `attempted` is
    the state that was shown while the write was outstanding.
    """

    error: E
    restored: S
    attempted: S


__all__ = ("Applied", "RolledBack")
