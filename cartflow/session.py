"""
ShopSession — one browser session's basket, merge and checkout, wired.

    session = ShopSession(identity, local, server, services)
    await session.start()

    identity.sign_in(Identity("user_1", "business", verified=True))
    await session.sync_identity()   # merges the guest basket, reloads

    await session.basket.add_item(NewItem("p1", "Door operator"))
    await session.begin_checkout(CheckoutSource.CART)
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from kungfu import Result, Ok, Error

from cartflow._types import Clock, utcnow
from cartflow.basket._store import BasketStore
from cartflow.basket._types import Basket, BasketError, new_item_id
from cartflow.checkout import (
    DEFAULT_CURRENCY,
    DEFAULT_GST_PERCENTAGE,
    CheckoutServices,
    CheckoutSession,
    CheckoutSource,
    EntryRejection,
    EntrySpec,
    begin_checkout,
)
from cartflow.merge import IdentityMerger, MergeError, MergeReport
from cartflow.persist import BasketBackend, PersistenceAdapter, ServerBasketStore
from cartflow.services import CatalogLookup, IdentityProvider
from cartflow.tier import Identity

logger = logging.getLogger(__name__)


class ShopSession:
    """
    Owns the live basket for one session and watches identity.

    Identity is polled, not pushed: call `sync_identity()` whenever the
    provider may have changed (the HTTP layer does it per request).
    """

    def __init__(
        self,
        identity: IdentityProvider,
        local: BasketBackend,
        server: ServerBasketStore,
        services: CheckoutServices,
        *,
        catalog: CatalogLookup | None = None,
        gst_percentage: int = DEFAULT_GST_PERCENTAGE,
        currency: str = DEFAULT_CURRENCY,
        clock: Clock = utcnow,
        new_id: Callable[[], str] = new_item_id,
    ) -> None:
        self._identity = identity
        self._services = services
        self._gst_percentage = gst_percentage
        self._currency = currency

        self.adapter = PersistenceAdapter(local, server, identity)
        self.basket = BasketStore(
            self.adapter,
            identity,
            services.notifier,
            catalog=catalog,
            clock=clock,
            new_id=new_id,
        )
        self.merger = IdentityMerger(local, server, services.notifier, clock=clock)
        self.checkout: CheckoutSession | None = None
        self._seen: Identity | None = None
        self._started = False

    async def start(self) -> Result[Basket, BasketError]:
        """First load. A session that starts signed in still merges leftovers."""
        self._started = True
        self._seen = self._identity.current()
        if self._seen is not None:
            await self.merger.merge(self._seen)
        return await self.basket.load()

    async def sync_identity(self) -> Result[MergeReport, MergeError] | None:
        """
        React to an identity change since the last call.

        Guest → account (or account → other account): merge, then reload
        from the server. Account → guest: reload the device basket.
        None when nothing changed.
        """
        if not self._started:
            await self.start()
            return None

        current = self._identity.current()
        previous, self._seen = self._seen, current

        if _same_account(previous, current):
            return None

        self.checkout = None

        if current is None:
            logger.info("signed out, switching to device basket")
            await self.basket.load()
            return None

        logger.info("identity now %s, merging guest basket", current.account_id)
        merged = await self.merger.merge(current)
        await self.basket.load()
        return merged

    async def begin_checkout(
        self,
        source: CheckoutSource,
        quote_id: str | None = None,
    ) -> Result[CheckoutSession, EntryRejection]:
        await self.sync_identity()
        spec = EntrySpec(
            source=source,
            identity=self._identity.current(),
            basket=self.basket.basket,
            quotes=self._services.quotes,
            quote_id=quote_id,
            gst_percentage=self._gst_percentage,
            currency=self._currency,
        )
        result = await begin_checkout(spec, self._services, after_cart_order=self.basket.clear)
        match result:
            case Ok(session):
                self.checkout = session
            case Error(_):
                self.checkout = None
        return result


def _same_account(a: Identity | None, b: Identity | None) -> bool:
    if a is None or b is None:
        return a is b
    return a.account_id == b.account_id


__all__ = ("ShopSession",)
