"""
In-memory collaborators — for tests, demos and the default HTTP app.

Each one implements a protocol from `cartflow.services` and records what
it was asked to do.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal

from cartflow._types import Clock, utcnow
from cartflow.basket._types import ProductKey, ProductSnapshot
from cartflow.services import (
    Address,
    OrderDraft,
    OrderRef,
    OrderRejected,
    PaymentOutcome,
    Quote,
    QuoteStatus,
)
from cartflow.tier import Identity

# ═══════════════════════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class MemoryIdentityProvider:
    identity: Identity | None = None

    def current(self) -> Identity | None:
        return self.identity

    def sign_in(self, identity: Identity) -> None:
        self.identity = identity

    def sign_out(self) -> None:
        self.identity = None


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class MemoryCatalog:
    products: dict[ProductKey, ProductSnapshot] = field(
        default_factory=dict[ProductKey, ProductSnapshot]
    )

    def add(self, snapshot: ProductSnapshot) -> None:
        self.products[(snapshot.product_id, snapshot.variant_id)] = snapshot

    async def lookup(self, product_id: str, variant_id: str | None) -> ProductSnapshot | None:
        return self.products.get((product_id, variant_id))


# ═══════════════════════════════════════════════════════════════════════════════
# Addresses
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class MemoryAddressBook:
    business: dict[str, list[Address]] = field(default_factory=dict[str, list[Address]])
    individual: dict[str, Address] = field(default_factory=dict[str, Address])
    unavailable: bool = False

    def _check(self) -> None:
        if self.unavailable:
            raise ConnectionError("address service unavailable")

    async def business_addresses(self, account_id: str) -> Sequence[Address]:
        self._check()
        return tuple(self.business.get(account_id, ()))

    async def individual_address(self, account_id: str) -> Address | None:
        self._check()
        return self.individual.get(account_id)


# ═══════════════════════════════════════════════════════════════════════════════
# Quotes
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class MemoryQuoteService:
    quotes: dict[str, Quote] = field(default_factory=dict[str, Quote])

    def add(self, quote: Quote) -> None:
        self.quotes[quote.id] = quote

    def set_status(self, quote_id: str, status: QuoteStatus) -> None:
        self.quotes[quote_id] = replace(self.quotes[quote_id], status=status)

    async def get_quote(self, account_id: str, quote_id: str) -> Quote | None:
        quote = self.quotes.get(quote_id)
        if quote is None or quote.account_id != account_id:
            return None
        return quote


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class MemoryOrderService:
    """
    Numbers orders `CED-YYMMDD-NNNN`, counting per day.

    Set `reject_with` to make the next create call raise OrderRejected.
    """

    quotes: MemoryQuoteService | None = None
    clock: Clock = utcnow
    orders: list[tuple[OrderRef, OrderDraft]] = field(
        default_factory=list[tuple[OrderRef, OrderDraft]]
    )
    reject_with: str | None = None
    _daily: dict[str, int] = field(default_factory=dict[str, int])

    def _next_ref(self, now: datetime) -> OrderRef:
        day = now.strftime("%y%m%d")
        self._daily[day] = self._daily.get(day, 0) + 1
        seq = self._daily[day]
        return OrderRef(order_id=f"ord_{day}_{seq:04d}", order_number=f"CED-{day}-{seq:04d}")

    def _create(self, draft: OrderDraft) -> OrderRef:
        if self.reject_with is not None:
            reason, self.reject_with = self.reject_with, None
            raise OrderRejected(reason)
        ref = self._next_ref(self.clock())
        self.orders.append((ref, draft))
        return ref

    async def create_from_cart(self, draft: OrderDraft) -> OrderRef:
        return self._create(draft)

    async def create_from_quote(self, draft: OrderDraft) -> OrderRef:
        if self.quotes is not None and draft.quote_id is not None:
            quote = self.quotes.quotes.get(draft.quote_id)
            if quote is None or quote.status is not QuoteStatus.APPROVED:
                raise OrderRejected("Quote is no longer approved")
        ref = self._create(draft)
        if self.quotes is not None and draft.quote_id is not None:
            self.quotes.set_status(draft.quote_id, QuoteStatus.CONVERTED)
        return ref


# ═══════════════════════════════════════════════════════════════════════════════
# Payment
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class MemoryPaymentGateway:
    succeed: bool = True
    charges: list[tuple[OrderRef, int, str]] = field(
        default_factory=list[tuple[OrderRef, int, str]]
    )

    async def collect(self, order: OrderRef, amount: int, currency: str) -> PaymentOutcome:
        self.charges.append((order, amount, currency))
        if not self.succeed:
            return PaymentOutcome(False, order.order_id, reason="Payment declined")
        return PaymentOutcome(True, order.order_id, transaction_id=f"txn_{len(self.charges)}")


# ═══════════════════════════════════════════════════════════════════════════════
# Notifications & Navigation
# ═══════════════════════════════════════════════════════════════════════════════

type Level = Literal["success", "info", "error"]


@dataclass(frozen=True, slots=True)
class Notice:
    level: Level
    message: str


@dataclass
class RecordingNotifier:
    """Keeps notices until drained. With `limit`, only the newest `limit`."""

    notices: list[Notice] = field(default_factory=list[Notice])
    limit: int | None = None

    def success(self, message: str) -> None:
        self._record(Notice("success", message))

    def info(self, message: str) -> None:
        self._record(Notice("info", message))

    def error(self, message: str) -> None:
        self._record(Notice("error", message))

    def _record(self, notice: Notice) -> None:
        self.notices.append(notice)
        if self.limit is not None and len(self.notices) > self.limit:
            del self.notices[: len(self.notices) - self.limit]

    def drain(self) -> list[Notice]:
        """Return and forget everything recorded so far."""
        out, self.notices = self.notices, []
        return out

    def messages(self, level: Level | None = None) -> list[str]:
        return [n.message for n in self.notices if level is None or n.level == level]


@dataclass
class RecordingNavigator:
    routes: list[str] = field(default_factory=list[str])
    limit: int | None = None

    def go(self, route: str) -> None:
        self.routes.append(route)
        if self.limit is not None and len(self.routes) > self.limit:
            del self.routes[: len(self.routes) - self.limit]

    @property
    def last(self) -> str | None:
        return self.routes[-1] if self.routes else None


__all__ = (
    "MemoryIdentityProvider",
    "MemoryCatalog",
    "MemoryAddressBook",
    "MemoryQuoteService",
    "MemoryOrderService",
    "MemoryPaymentGateway",
    "Notice",
    "RecordingNotifier",
    "RecordingNavigator",
)
