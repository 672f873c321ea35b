"""
SQLAlchemy server persistence — one basket row per account.

Usage:
    session_factory, engine = await create_database("sqlite+aiosqlite:///:memory:")
    store = ServerBasketStore(session_factory)

    backend = store.for_account("user_123")
    await backend.save(basket)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, String, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from kungfu import Result, Ok, Error

from cartflow._types import Clock, utcnow
from cartflow.basket._types import Basket, BasketItem
from cartflow.persist._types import PersistError

# ═══════════════════════════════════════════════════════════════════════════════
# Model
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


class QuoteBasketTable(Base):
    """Authoritative basket of a signed-in account. Full snapshot per row."""

    __tablename__ = "quote_baskets"

    account_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create tables and return (session_factory, engine)."""
    if ":memory:" in url:
        # one shared connection, or every session sees a fresh empty database
        engine = create_async_engine(url, echo=False, poolclass=StaticPool)
    else:
        engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class ServerBasketStore:
    """
    Server basket store over `quote_baskets`.

    Bind it to an account with `for_account()` to get a BasketBackend.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def for_account(self, account_id: str) -> ServerBasketBackend:
        return ServerBasketBackend(self, account_id)

    async def load(self, account_id: str) -> Result[Basket, PersistError]:
        """Read an account's basket. A missing row loads as empty."""
        try:
            async with self._session_factory() as session:
                row = await session.scalar(
                    select(QuoteBasketTable).where(QuoteBasketTable.account_id == account_id)
                )
                if row is None:
                    return Ok(Basket.empty(self._clock()))
                return Ok(_to_basket(row))

        except Exception as e:
            return Error(PersistError(f"Failed to load basket: {e}", e))

    async def save(self, account_id: str, basket: Basket) -> Result[None, PersistError]:
        """Upsert the full snapshot."""
        try:
            async with self._session_factory() as session:
                await session.merge(
                    QuoteBasketTable(
                        account_id=account_id,
                        items=[item.to_dict() for item in basket.items],
                        updated_at=basket.updated_at,
                    )
                )
                await session.commit()
                return Ok(None)

        except Exception as e:
            return Error(PersistError(f"Failed to save basket: {e}", e))

    async def clear(self, account_id: str) -> Result[None, PersistError]:
        """Write an empty item list; the row itself is kept."""
        return await self.save(account_id, Basket.empty(self._clock()))


class ServerBasketBackend:
    """ServerBasketStore bound to one account."""

    name = "server"

    def __init__(self, store: ServerBasketStore, account_id: str) -> None:
        self._store = store
        self.account_id = account_id

    async def load(self) -> Result[Basket, PersistError]:
        return await self._store.load(self.account_id)

    async def save(self, basket: Basket) -> Result[None, PersistError]:
        return await self._store.save(self.account_id, basket)

    async def clear(self) -> Result[None, PersistError]:
        return await self._store.clear(self.account_id)


def _to_basket(row: QuoteBasketTable) -> Basket:
    updated_at = row.updated_at
    if updated_at.tzinfo is None:
        # SQLite drops the offset; everything is written in UTC
        updated_at = updated_at.replace(tzinfo=timezone.utc)
    return Basket(
        items=tuple(BasketItem.from_dict(i) for i in row.items or ()),
        updated_at=updated_at,
    )


__all__ = (
    "Base",
    "QuoteBasketTable",
    "create_database",
    "ServerBasketStore",
    "ServerBasketBackend",
)
