"""
PersistenceAdapter — local or server backend, chosen per call.
"""

from __future__ import annotations

import logging

from kungfu import LazyCoroResult, Result, Error

from cartflow._types import Lazy
from cartflow.basket._types import Basket
from cartflow.persist._types import BasketBackend, PersistError
from cartflow.persist._sqlalchemy import ServerBasketStore
from cartflow.services import IdentityProvider

logger = logging.getLogger(__name__)


class PersistenceAdapter:
    """
    Routes basket persistence by identity.

    No identity: the local backend. Identity present: the server store
    bound to that account. The choice is re-made on every call, so a
    sign-in or sign-out takes effect on the very next operation.

    Example:
        adapter = PersistenceAdapter(local, server, identity)
        match await adapter.save(basket):
            case Ok(_): ...
            case Error(e): log(e.message)
    """

    def __init__(
        self,
        local: BasketBackend,
        server: ServerBasketStore,
        identity: IdentityProvider,
    ) -> None:
        self._local = local
        self._server = server
        self._identity = identity

    def backend(self) -> BasketBackend:
        current = self._identity.current()
        if current is None:
            return self._local
        return self._server.for_account(current.account_id)

    def load(self) -> Lazy[Basket, PersistError]:
        return LazyCoroResult(lambda: self._logged(self.backend(), "load"))

    def save(self, basket: Basket) -> Lazy[None, PersistError]:
        return LazyCoroResult(lambda: self._logged(self.backend(), "save", basket))

    def clear(self) -> Lazy[None, PersistError]:
        return LazyCoroResult(lambda: self._logged(self.backend(), "clear"))

    async def _logged(self, backend: BasketBackend, op: str, *args: Basket) -> Result:
        result = await getattr(backend, op)(*args)
        match result:
            case Error(e):
                logger.warning("%s %s failed: %s", backend.name, op, e.message)
        return result


__all__ = ("PersistenceAdapter",)
