"""
Local (device) persistence — the anonymous basket.

A LocalStorage is a string key/value store, the shape of a browser's
localStorage. The basket lives under one well-known key as JSON.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from kungfu import Result, Ok, Error

from cartflow._types import Clock, utcnow
from cartflow.basket._types import Basket
from cartflow.persist._types import PersistError

logger = logging.getLogger(__name__)

DEFAULT_BASKET_KEY = "cedar_quote_basket"

# ═══════════════════════════════════════════════════════════════════════════════
# LocalStorage: protocol + implementations
# ═══════════════════════════════════════════════════════════════════════════════


class LocalStorage(Protocol):
    """Synchronous string key/value storage. May raise on I/O failure."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryLocalStorage:
    """Dict-backed LocalStorage. Lives as long as the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class FileLocalStorage:
    """
    LocalStorage persisted as one JSON object in a file.

    The whole file is read on every get and rewritten on every set.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        return json.loads(self._path.read_text(encoding="utf-8") or "{}")

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data), encoding="utf-8")

    def get_item(self, key: str) -> str | None:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


# ═══════════════════════════════════════════════════════════════════════════════
# LocalBasketBackend
# ═══════════════════════════════════════════════════════════════════════════════


class LocalBasketBackend:
    """
    BasketBackend over a LocalStorage.

    Unreadable stored JSON is treated as an empty basket and logged,
    never surfaced as an error.
    """

    name = "local"

    def __init__(
        self,
        storage: LocalStorage,
        *,
        key: str = DEFAULT_BASKET_KEY,
        clock: Clock = utcnow,
    ) -> None:
        self._storage = storage
        self._key = key
        self._clock = clock

    async def load(self) -> Result[Basket, PersistError]:
        try:
            raw = self._storage.get_item(self._key)
        except Exception as e:
            return Error(PersistError(f"Failed to read local basket: {e}", e))

        if raw is None:
            return Ok(Basket.empty(self._clock()))

        try:
            return Ok(Basket.from_dict(json.loads(raw)))
        except (ValueError, TypeError, KeyError, AttributeError):
            logger.warning("discarding unreadable local basket under %r", self._key)
            return Ok(Basket.empty(self._clock()))

    async def save(self, basket: Basket) -> Result[None, PersistError]:
        try:
            self._storage.set_item(self._key, json.dumps(basket.to_dict()))
            return Ok(None)
        except Exception as e:
            return Error(PersistError(f"Failed to write local basket: {e}", e))

    async def clear(self) -> Result[None, PersistError]:
        try:
            self._storage.remove_item(self._key)
            return Ok(None)
        except Exception as e:
            return Error(PersistError(f"Failed to clear local basket: {e}", e))


__all__ = (
    "DEFAULT_BASKET_KEY",
    "LocalStorage",
    "MemoryLocalStorage",
    "FileLocalStorage",
    "LocalBasketBackend",
)
