"""
Collaborators — what cartflow talks to but does not own.

Protocols plus the data that crosses them. In-memory implementations
live in `cartflow.memory`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from cartflow.basket._types import ProductSnapshot
from cartflow.tier import Identity

# ═══════════════════════════════════════════════════════════════════════════════
# Addresses
# ═══════════════════════════════════════════════════════════════════════════════


class AddressType(Enum):
    SHIPPING = "shipping"
    BILLING = "billing"
    BOTH = "both"


@dataclass(frozen=True, slots=True)
class Address:
    id: str
    contact_name: str
    line1: str
    city: str
    state: str
    postal_code: str
    phone: str = ""
    line2: str | None = None
    address_type: AddressType = AddressType.BOTH
    is_default: bool = False

    @property
    def ships(self) -> bool:
        return self.address_type in (AddressType.SHIPPING, AddressType.BOTH)

    @property
    def bills(self) -> bool:
        return self.address_type in (AddressType.BILLING, AddressType.BOTH)


# ═══════════════════════════════════════════════════════════════════════════════
# Quotes
# ═══════════════════════════════════════════════════════════════════════════════


class QuoteStatus(Enum):
    PENDING = "pending"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONVERTED = "converted"


@dataclass(frozen=True, slots=True)
class QuoteLine:
    """A quoted line with the agreed price."""

    product_id: str
    name: str
    quantity: int
    unit_price: int
    total_price: int
    variant_id: str | None = None
    sku: str | None = None


@dataclass(frozen=True, slots=True)
class Quote:
    id: str
    account_id: str
    status: QuoteStatus
    items: tuple[QuoteLine, ...] = ()
    quote_number: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Orders & Payment
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutLine:
    """One purchased line, frozen at checkout entry."""

    product_id: str
    name: str
    quantity: int
    unit_price: int
    total_price: int
    variant_id: str | None = None
    sku: str | None = None
    thumbnail: str | None = None
    bulk_pricing_requested: bool = False


@dataclass(frozen=True, slots=True)
class CheckoutSummary:
    """Money for a checkout, in minor units."""

    subtotal: int
    tax: int
    tax_rate: int
    shipping: int
    discount: int
    total: int
    currency: str


@dataclass(frozen=True, slots=True)
class OrderDraft:
    """Everything the order service needs to create an order."""

    account_id: str
    lines: tuple[CheckoutLine, ...]
    summary: CheckoutSummary
    shipping_address_id: str
    billing_address_id: str
    quote_id: str | None = None


@dataclass(frozen=True, slots=True)
class OrderRef:
    order_id: str
    order_number: str


class OrderRejected(Exception):
    """Raised by an order service that refuses to create an order."""


@dataclass(frozen=True, slots=True)
class PaymentOutcome:
    success: bool
    order_id: str
    transaction_id: str | None = None
    reason: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Protocols
# ═══════════════════════════════════════════════════════════════════════════════


class IdentityProvider(Protocol):
    def current(self) -> Identity | None:
        """The signed-in identity, or None for a guest. Read on every call."""
        ...


class CatalogLookup(Protocol):
    async def lookup(self, product_id: str, variant_id: str | None) -> ProductSnapshot | None: ...


class AddressService(Protocol):
    async def business_addresses(self, account_id: str) -> Sequence[Address]: ...

    async def individual_address(self, account_id: str) -> Address | None: ...


class QuoteService(Protocol):
    async def get_quote(self, account_id: str, quote_id: str) -> Quote | None: ...


class OrderService(Protocol):
    """May raise OrderRejected (or anything else) to refuse an order."""

    async def create_from_cart(self, draft: OrderDraft) -> OrderRef: ...

    async def create_from_quote(self, draft: OrderDraft) -> OrderRef: ...


class PaymentGateway(Protocol):
    async def collect(self, order: OrderRef, amount: int, currency: str) -> PaymentOutcome: ...


class Notifier(Protocol):
    """User-facing notices. Delivery is someone else's problem."""

    def success(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class Navigator(Protocol):
    def go(self, route: str) -> None: ...


__all__ = (
    "AddressType",
    "Address",
    "QuoteStatus",
    "QuoteLine",
    "Quote",
    "CheckoutLine",
    "CheckoutSummary",
    "OrderDraft",
    "OrderRef",
    "OrderRejected",
    "PaymentOutcome",
    "IdentityProvider",
    "CatalogLookup",
    "AddressService",
    "QuoteService",
    "OrderService",
    "PaymentGateway",
    "Notifier",
    "Navigator",
)
