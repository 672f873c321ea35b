"""
BasketStore — live basket state for one session.

Every mutation is optimistic: the new basket is visible immediately,
then persisted through the adapter. A failed write restores the
snapshot taken before the mutation and reports a PERSISTENCE error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from kungfu import Result, Ok, Error
from combinators import lift as L

from cartflow import optimistic as O
from cartflow._types import Clock, utcnow
from cartflow.basket import _ops
from cartflow.basket._types import (
    AddKind,
    Basket,
    BasketError,
    BasketErrorKind,
    BasketItem,
    NewItem,
    new_item_id,
)
from cartflow.persist._adapter import PersistenceAdapter
from cartflow.services import CatalogLookup, IdentityProvider, Notifier
from cartflow.tier import TierPolicy, policy_for

logger = logging.getLogger(__name__)

GUEST_REPLACED = "Guests can only quote one item at a time. Previous item replaced."


class BasketStore:
    """
    Example:
        store = BasketStore(adapter, identity, notifier)
        await store.load()

        match await store.add_item(NewItem("p1", "Door operator")):
            case Ok(item): ...
            case Error(e) if e.kind is BasketErrorKind.CAPACITY: ...
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        identity: IdentityProvider,
        notifier: Notifier,
        *,
        catalog: CatalogLookup | None = None,
        clock: Clock = utcnow,
        new_id: Callable[[], str] = new_item_id,
    ) -> None:
        self._adapter = adapter
        self._identity = identity
        self._notifier = notifier
        self._catalog = catalog
        self._clock = clock
        self._new_id = new_id
        self._cell: O.StateCell[Basket] = O.StateCell(Basket.empty(clock()))

    # ─────────────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def basket(self) -> Basket:
        return self._cell.get()

    @property
    def items(self) -> tuple[BasketItem, ...]:
        return self.basket.items

    @property
    def item_count(self) -> int:
        return self.basket.item_count

    @property
    def policy(self) -> TierPolicy:
        """Re-resolved from the identity provider on every read."""
        return policy_for(self._identity.current())

    async def load(self) -> Result[Basket, BasketError]:
        """Replace in-memory state with whatever the current backend holds."""
        match await self._adapter.load():
            case Ok(basket):
                self._cell.set(basket)
                return Ok(basket)
            case Error(e):
                self._notifier.error("Failed to load quote basket")
                return Error(BasketError(BasketErrorKind.PERSISTENCE, e.message, e))

    # ─────────────────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────────────────

    async def add_item(self, item: NewItem) -> Result[BasketItem, BasketError]:
        policy = self.policy
        result = _ops.add_item(
            self.basket, item, policy, now=self._clock(), item_id=self._new_id()
        )
        match result:
            case Error(e):
                self._notifier.error(e.message)
                return Error(e)
            case Ok(outcome):
                pass

        committed = await self._commit(outcome.basket, "Failed to add item to quote basket")
        if isinstance(committed, Error):
            return committed

        match outcome.kind:
            case AddKind.REPLACED:
                self._notifier.info(GUEST_REPLACED)
            case AddKind.INCREMENTED:
                self._notifier.success("Item quantity updated in quote basket")
            case AddKind.APPENDED:
                self._notifier.success("Added to quote basket")
        return Ok(outcome.item)

    async def add_from_catalog(
        self,
        product_id: str,
        variant_id: str | None = None,
        quantity: int = 1,
    ) -> Result[BasketItem, BasketError]:
        """Add by product reference, snapshotting fields from the catalog."""
        if self._catalog is None:
            return self._catalog_error("No catalog configured")

        catalog = self._catalog
        lookup = await L.catching_async(
            lambda: catalog.lookup(product_id, variant_id),
            on_error=lambda e: BasketError(BasketErrorKind.CATALOG, str(e), e),
        )
        match lookup:
            case Error(e):
                logger.warning("catalog lookup failed for %s: %s", product_id, e.message)
                return self._catalog_error("Product lookup failed", e.cause)
            case Ok(None):
                return self._catalog_error("Product not found")
            case Ok(snapshot):
                return await self.add_item(NewItem.from_snapshot(snapshot, quantity))

    async def remove_item(self, item_id: str) -> Result[bool, BasketError]:
        """Ok(False) when no row has `item_id`; nothing is written then."""
        updated = _ops.remove_item(self.basket, item_id, now=self._clock())
        return await self._edit(
            updated, "Item removed from quote basket", "Failed to remove item"
        )

    async def update_quantity(self, item_id: str, quantity: int) -> Result[bool, BasketError]:
        if quantity <= 0:
            return await self.remove_item(item_id)
        updated = _ops.update_quantity(self.basket, item_id, quantity, now=self._clock())
        return await self._edit(updated, None, "Failed to update quantity")

    async def toggle_bulk_pricing(self, item_id: str) -> Result[bool, BasketError]:
        updated = _ops.toggle_bulk_pricing(self.basket, item_id, now=self._clock())
        return await self._edit(updated, None, "Failed to update bulk pricing request")

    async def clear(self) -> Result[None, BasketError]:
        result = await O.mutate(
            self._cell,
            lambda _: Basket.empty(self._clock()),
            lambda _: self._adapter.clear(),
        )
        match result:
            case Ok(_):
                self._notifier.success("Quote basket cleared")
                return Ok(None)
            case Error(rolled_back):
                return Error(self._persist_failed(rolled_back, "Failed to clear quote basket"))

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    async def _edit(
        self,
        updated: Basket | None,
        success: str | None,
        failure: str,
    ) -> Result[bool, BasketError]:
        if updated is None:
            return Ok(False)
        committed = await self._commit(updated, failure)
        if isinstance(committed, Error):
            return committed
        if success is not None:
            self._notifier.success(success)
        return Ok(True)

    async def _commit(self, updated: Basket, failure: str) -> Result[Basket, BasketError]:
        result = await O.mutate(self._cell, lambda _: updated, self._adapter.save)
        match result:
            case Ok(applied):
                return Ok(applied.state)
            case Error(rolled_back):
                return Error(self._persist_failed(rolled_back, failure))

    def _persist_failed(self, rolled_back: O.RolledBack, message: str) -> BasketError:
        logger.warning(
            "basket write failed, restored %d rows: %s",
            rolled_back.restored.rows,
            rolled_back.error.message,
        )
        self._notifier.error(message)
        return BasketError(BasketErrorKind.PERSISTENCE, message, rolled_back.error)

    def _catalog_error(
        self, message: str, cause: object | None = None
    ) -> Result[BasketItem, BasketError]:
        self._notifier.error(message)
        return Error(BasketError(BasketErrorKind.CATALOG, message, cause))


__all__ = ("BasketStore", "GUEST_REPLACED")
