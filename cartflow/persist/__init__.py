"""
Persist — where baskets live.

    from cartflow import persist as P

    local = P.LocalBasketBackend(P.MemoryLocalStorage())
    session_factory, _ = await P.create_database(url)
    adapter = P.PersistenceAdapter(local, P.ServerBasketStore(session_factory), identity)
"""

from __future__ import annotations

from cartflow.persist._types import PersistError, BasketBackend
from cartflow.persist._local import (
    DEFAULT_BASKET_KEY,
    LocalStorage,
    MemoryLocalStorage,
    FileLocalStorage,
    LocalBasketBackend,
)
from cartflow.persist._sqlalchemy import (
    Base,
    QuoteBasketTable,
    create_database,
    ServerBasketStore,
    ServerBasketBackend,
)
from cartflow.persist._adapter import PersistenceAdapter

__all__ = (
    "PersistError",
    "BasketBackend",
    "DEFAULT_BASKET_KEY",
    "LocalStorage",
    "MemoryLocalStorage",
    "FileLocalStorage",
    "LocalBasketBackend",
    "Base",
    "QuoteBasketTable",
    "create_database",
    "ServerBasketStore",
    "ServerBasketBackend",
    "PersistenceAdapter",
)
