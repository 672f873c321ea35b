"""
Basket types — core data structures.
"""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any

from cartflow._types import utcnow

# ═══════════════════════════════════════════════════════════════════════════════
# Item Ids
# ═══════════════════════════════════════════════════════════════════════════════

_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_item_id() -> str:
    """Client-side row id: `basket_<epoch ms>_<9 base36 chars>`."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"basket_{int(time.time() * 1000)}_{suffix}"


type ProductKey = tuple[str, str | None]
"""(product_id, variant_id) — the dedup key of a basket row."""


# ═══════════════════════════════════════════════════════════════════════════════
# Snapshot: catalog fields captured at add time
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ProductSnapshot:
    """What the catalog reports about a product when it is added."""

    product_id: str
    name: str
    variant_id: str | None = None
    sku: str | None = None
    thumbnail: str | None = None
    unit_price: int | None = None  # minor units (paise)


# ═══════════════════════════════════════════════════════════════════════════════
# Items
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class NewItem:
    """An add request. Becomes a BasketItem once it gets an id."""

    product_id: str
    name: str
    quantity: int = 1
    variant_id: str | None = None
    sku: str | None = None
    thumbnail: str | None = None
    unit_price: int | None = None
    bulk_pricing_requested: bool = False
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive, got {self.quantity}")

    @property
    def key(self) -> ProductKey:
        return (self.product_id, self.variant_id)

    @classmethod
    def from_snapshot(cls, snapshot: ProductSnapshot, quantity: int = 1) -> NewItem:
        return cls(
            product_id=snapshot.product_id,
            name=snapshot.name,
            quantity=quantity,
            variant_id=snapshot.variant_id,
            sku=snapshot.sku,
            thumbnail=snapshot.thumbnail,
            unit_price=snapshot.unit_price,
        )

    @classmethod
    def from_item(cls, item: BasketItem) -> NewItem:
        return cls(
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            variant_id=item.variant_id,
            sku=item.sku,
            thumbnail=item.thumbnail,
            unit_price=item.unit_price,
            bulk_pricing_requested=item.bulk_pricing_requested,
            notes=item.notes,
        )

    def with_id(self, item_id: str) -> BasketItem:
        return BasketItem(
            id=item_id,
            product_id=self.product_id,
            name=self.name,
            quantity=self.quantity,
            variant_id=self.variant_id,
            sku=self.sku,
            thumbnail=self.thumbnail,
            unit_price=self.unit_price,
            bulk_pricing_requested=self.bulk_pricing_requested,
            notes=self.notes,
        )


@dataclass(frozen=True, slots=True)
class BasketItem:
    """
    One basket row.

    Snapshot fields (name, sku, thumbnail, unit_price) are copied at add
    time and never re-derived from the catalog.
    """

    id: str
    product_id: str
    name: str
    quantity: int
    variant_id: str | None = None
    sku: str | None = None
    thumbnail: str | None = None
    unit_price: int | None = None
    bulk_pricing_requested: bool = False
    notes: str | None = None

    @property
    def key(self) -> ProductKey:
        return (self.product_id, self.variant_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "product_name": self.name,
            "product_sku": self.sku,
            "product_thumbnail": self.thumbnail,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "bulk_pricing_requested": self.bulk_pricing_requested,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BasketItem:
        return cls(
            id=str(data["id"]),
            product_id=str(data["product_id"]),
            name=str(data.get("product_name") or ""),
            quantity=int(data.get("quantity") or 1),
            variant_id=data.get("variant_id"),
            sku=data.get("product_sku"),
            thumbnail=data.get("product_thumbnail"),
            unit_price=data.get("unit_price"),
            bulk_pricing_requested=bool(data.get("bulk_pricing_requested", False)),
            notes=data.get("notes"),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Basket
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Basket:
    """
    Ordered, immutable basket value.

    Every mutation produces a new Basket, so a held reference is an exact
    snapshot of the state it was taken from.
    """

    items: tuple[BasketItem, ...] = ()
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def empty(cls, now: datetime | None = None) -> Basket:
        return cls(items=(), updated_at=now or utcnow())

    @property
    def rows(self) -> int:
        return len(self.items)

    @property
    def item_count(self) -> int:
        """Sum of quantities — the number shown to the user."""
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, item_id: str) -> BasketItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def find_product(self, key: ProductKey) -> BasketItem | None:
        return next((i for i in self.items if i.key == key), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Basket:
        raw_updated = data.get("updated_at")
        updated_at = datetime.fromisoformat(raw_updated) if raw_updated else utcnow()
        return cls(
            items=tuple(BasketItem.from_dict(i) for i in data.get("items") or ()),
            updated_at=updated_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Outcomes & Errors
# ═══════════════════════════════════════════════════════════════════════════════


class AddKind(Enum):
    """How an add landed in the basket."""

    APPENDED = auto()
    INCREMENTED = auto()
    REPLACED = auto()  # guest basket holds one row


@dataclass(frozen=True, slots=True)
class AddOutcome:
    """Result of the add rule: the next basket and the row that changed."""

    basket: Basket
    item: BasketItem
    kind: AddKind


class BasketErrorKind(Enum):
    """Kinds of basket errors."""

    CAPACITY = auto()  # Tier row limit reached
    PERSISTENCE = auto()  # Authoritative write failed, state rolled back
    CATALOG = auto()  # Catalog lookup failed


@dataclass(frozen=True, slots=True)
class BasketError:
    """
    Basket operation error.

    Note: cause carries the underlying persistence/catalog error, if any.
    """

    kind: BasketErrorKind
    message: str
    cause: object | None = None


def capacity_error(max_items: int) -> BasketError:
    return BasketError(
        kind=BasketErrorKind.CAPACITY,
        message=f"Maximum {max_items} items allowed. Upgrade your account for more.",
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "new_item_id",
    "ProductKey",
    "ProductSnapshot",
    "NewItem",
    "BasketItem",
    "Basket",
    "AddKind",
    "AddOutcome",
    "BasketErrorKind",
    "BasketError",
    "capacity_error",
)
