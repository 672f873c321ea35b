"""
Basket rules — pure functions from one Basket value to the next.

No I/O, no clock reads: the caller passes `now` and the new row id.
The stateful store and the identity merger both go through these.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime

from kungfu import Result, Ok, Error

from cartflow.tier import TierPolicy
from cartflow.basket._types import (
    AddKind,
    AddOutcome,
    Basket,
    BasketError,
    BasketItem,
    NewItem,
    capacity_error,
)

# ═══════════════════════════════════════════════════════════════════════════════
# add_item(): the add rule
# ═══════════════════════════════════════════════════════════════════════════════


def add_item(
    basket: Basket,
    item: NewItem,
    policy: TierPolicy,
    *,
    now: datetime,
    item_id: str,
    guest_replaces: bool = True,
) -> Result[AddOutcome, BasketError]:
    """
    Apply the add rule.

    1. Guest with a full basket: the new item replaces the whole basket.
    2. Rows at the tier limit: CAPACITY error, basket unchanged.
    3. Same (product, variant) already present: increment its quantity.
    4. Otherwise append a new row with `item_id`.

    The capacity check counts rows and runs before deduplication, so a
    full basket refuses even an increment of an existing row.

    `guest_replaces=False` turns rule 1 off (the merger drops instead).
    """
    if guest_replaces and policy.is_guest and basket.rows >= policy.max_items:
        row = item.with_id(item_id)
        return Ok(AddOutcome(Basket((row,), now), row, AddKind.REPLACED))

    if basket.rows >= policy.max_items:
        return Error(capacity_error(policy.max_items))

    existing = basket.find_product(item.key)
    if existing is not None:
        bumped = replace(existing, quantity=existing.quantity + item.quantity)
        items = tuple(bumped if i.id == existing.id else i for i in basket.items)
        return Ok(AddOutcome(Basket(items, now), bumped, AddKind.INCREMENTED))

    row = item.with_id(item_id)
    return Ok(AddOutcome(Basket((*basket.items, row), now), row, AddKind.APPENDED))


# ═══════════════════════════════════════════════════════════════════════════════
# Row edits: None means "no such row, nothing to do"
# ═══════════════════════════════════════════════════════════════════════════════


def remove_item(basket: Basket, item_id: str, *, now: datetime) -> Basket | None:
    if basket.find(item_id) is None:
        return None
    return Basket(tuple(i for i in basket.items if i.id != item_id), now)


def update_quantity(
    basket: Basket,
    item_id: str,
    quantity: int,
    *,
    now: datetime,
) -> Basket | None:
    """Set a row's quantity. Zero or negative removes the row."""
    if quantity <= 0:
        return remove_item(basket, item_id, now=now)
    return _edit(basket, item_id, now, lambda i: replace(i, quantity=quantity))


def toggle_bulk_pricing(basket: Basket, item_id: str, *, now: datetime) -> Basket | None:
    return _edit(
        basket,
        item_id,
        now,
        lambda i: replace(i, bulk_pricing_requested=not i.bulk_pricing_requested),
    )


def _edit(basket: Basket, item_id: str, now: datetime, f) -> Basket | None:
    if basket.find(item_id) is None:
        return None
    return Basket(tuple(f(i) if i.id == item_id else i for i in basket.items), now)


# ═══════════════════════════════════════════════════════════════════════════════
# merge_items(): fold anonymous rows into an account basket
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Folded:
    """Outcome of folding rows into a basket."""

    basket: Basket
    added: int
    incremented: int
    dropped: int
    already_present: int = 0


def merge_items(
    target: Basket,
    incoming: Iterable[BasketItem],
    policy: TierPolicy,
    *,
    now: datetime,
) -> Folded:
    """
    Fold `incoming` into `target` with the add rule.

    Incoming rows keep their ids. A row whose id `target` already holds
    was carried over before and is skipped, so folding the same rows
    twice changes nothing. Rows that hit the tier limit are dropped and
    counted, never replacing what the account already has.
    """
    basket = target
    added = incremented = dropped = present = 0

    for row in incoming:
        if basket.find(row.id) is not None:
            present += 1
            continue
        result = add_item(
            basket,
            NewItem.from_item(row),
            policy,
            now=now,
            item_id=row.id,
            guest_replaces=False,
        )
        match result:
            case Ok(outcome):
                basket = outcome.basket
                if outcome.kind is AddKind.INCREMENTED:
                    incremented += 1
                else:
                    added += 1
            case Error(_):
                dropped += 1

    return Folded(
        basket=basket,
        added=added,
        incremented=incremented,
        dropped=dropped,
        already_present=present,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "add_item",
    "remove_item",
    "update_quantity",
    "toggle_bulk_pricing",
    "Folded",
    "merge_items",
)
