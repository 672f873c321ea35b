"""
Checkout money — lines and summary from a basket or a quote.

All amounts are integer minor units.
"""

from __future__ import annotations

from collections.abc import Iterable

from cartflow.basket._types import Basket
from cartflow.services import CheckoutLine, CheckoutSummary, Quote

DEFAULT_GST_PERCENTAGE = 18
DEFAULT_CURRENCY = "INR"


def lines_from_basket(basket: Basket) -> tuple[CheckoutLine, ...]:
    """Basket rows as checkout lines. A row without a price counts as 0."""
    return tuple(
        CheckoutLine(
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            unit_price=item.unit_price or 0,
            total_price=(item.unit_price or 0) * item.quantity,
            variant_id=item.variant_id,
            sku=item.sku,
            thumbnail=item.thumbnail,
            bulk_pricing_requested=item.bulk_pricing_requested,
        )
        for item in basket.items
    )


def lines_from_quote(quote: Quote) -> tuple[CheckoutLine, ...]:
    """Quote lines at the agreed price."""
    return tuple(
        CheckoutLine(
            product_id=line.product_id,
            name=line.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line.total_price,
            variant_id=line.variant_id,
            sku=line.sku,
        )
        for line in quote.items
    )


def build_summary(
    lines: Iterable[CheckoutLine],
    *,
    gst_percentage: int = DEFAULT_GST_PERCENTAGE,
    currency: str = DEFAULT_CURRENCY,
    shipping: int = 0,
    discount: int = 0,
) -> CheckoutSummary:
    """
    subtotal + shipping + tax - discount, with tax on (subtotal + shipping)
    rounded half up.
    """
    subtotal = sum(line.total_price for line in lines)
    tax = ((subtotal + shipping) * gst_percentage + 50) // 100
    return CheckoutSummary(
        subtotal=subtotal,
        tax=tax,
        tax_rate=gst_percentage,
        shipping=shipping,
        discount=discount,
        total=subtotal + shipping + tax - discount,
        currency=currency,
    )


__all__ = (
    "DEFAULT_GST_PERCENTAGE",
    "DEFAULT_CURRENCY",
    "lines_from_basket",
    "lines_from_quote",
    "build_summary",
)
