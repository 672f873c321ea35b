"""
Basket — quote basket values, rules and live state.

    from cartflow import basket as B

    outcome = B.add_item(basket, B.NewItem("p1", "Door operator"), policy,
                         now=now, item_id=B.new_item_id())
"""

from __future__ import annotations

from cartflow.basket._types import (
    new_item_id,
    ProductKey,
    ProductSnapshot,
    NewItem,
    BasketItem,
    Basket,
    AddKind,
    AddOutcome,
    BasketErrorKind,
    BasketError,
    capacity_error,
)
from cartflow.basket._ops import (
    add_item,
    remove_item,
    update_quantity,
    toggle_bulk_pricing,
    Folded,
    merge_items,
)

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
    "add_item",
    "remove_item",
    "update_quantity",
    "toggle_bulk_pricing",
    "Folded",
    "merge_items",
)
