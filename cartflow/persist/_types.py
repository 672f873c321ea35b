"""
Persistence types — backend protocol and errors.

BasketBackend — where a basket snapshot lives.
All methods return Result for explicit error handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from kungfu import Result

from cartflow.basket._types import Basket

# ═══════════════════════════════════════════════════════════════════════════════
# Persist Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PersistError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Backend Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class BasketBackend(Protocol):
    """
    One place a basket snapshot can live.

    Every write is a full snapshot, so the last write wins. Implementations
    catch their own I/O failures and return them as PersistError.
    """

    @property
    def name(self) -> str:
        """Short label for logs: "local" or "server"."""
        ...

    async def load(self) -> Result[Basket, PersistError]:
        """Read the snapshot. Absent storage loads as an empty basket."""
        ...

    async def save(self, basket: Basket) -> Result[None, PersistError]:
        """Overwrite the snapshot."""
        ...

    async def clear(self) -> Result[None, PersistError]:
        """Drop the snapshot's contents."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("PersistError", "BasketBackend")
