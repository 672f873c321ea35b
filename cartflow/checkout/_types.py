"""
Checkout types — sources, steps, working set, rejections, errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from cartflow.services import CheckoutLine, CheckoutSummary

# ═══════════════════════════════════════════════════════════════════════════════
# Source & Step
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutSource(Enum):
    """Where the purchased lines come from. Fixed for a session's lifetime."""

    CART = "cart"
    QUOTE = "quote"


class CheckoutStep(Enum):
    ADDRESS = "address"
    REVIEW = "review"
    PAYMENT = "payment"


# ═══════════════════════════════════════════════════════════════════════════════
# Working Set: what is being bought
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class WorkingSet:
    """
    Lines and money captured once at entry.

    Later basket edits do not reach a session that already holds one.
    """

    source: CheckoutSource
    lines: tuple[CheckoutLine, ...]
    summary: CheckoutSummary
    quote_id: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Routes
# ═══════════════════════════════════════════════════════════════════════════════

SIGN_IN_ROUTE = "/sign-in?redirect=/checkout"
BUSINESS_SIGNUP_ROUTE = "/business-signup"
VERIFICATION_ROUTE = "/dashboard/verification"
CART_ROUTE = "/cart"
QUOTES_ROUTE = "/quotes"
FAILURE_ROUTE = "/checkout/failure"


def quote_route(quote_id: str) -> str:
    return f"{QUOTES_ROUTE}/{quote_id}"


def confirmation_route(order_id: str) -> str:
    return f"/order-confirmation?orderId={order_id}"


# ═══════════════════════════════════════════════════════════════════════════════
# Rejections: entry preconditions that failed
# ═══════════════════════════════════════════════════════════════════════════════


class RejectionReason(Enum):
    SIGN_IN_REQUIRED = auto()
    BUSINESS_REQUIRED = auto()  # cart checkout from a non-business account
    VERIFICATION_REQUIRED = auto()  # unverified business, any source
    EMPTY_CART = auto()
    QUOTE_NOT_FOUND = auto()
    QUOTE_NOT_APPROVED = auto()
    LOAD_FAILED = auto()
    ADDRESSES_UNAVAILABLE = auto()


@dataclass(frozen=True, slots=True)
class EntryRejection:
    """Terminal: no checkout session exists after one of these."""

    reason: RejectionReason
    message: str
    redirect_to: str


# ═══════════════════════════════════════════════════════════════════════════════
# Errors: refused transitions inside a live session
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutErrorKind(Enum):
    PRECONDITION = auto()  # wrong step, or another order already in flight
    VALIDATION = auto()  # guard not satisfied (address, terms)
    ORDER_FAILED = auto()  # order collaborator refused
    PAYMENT_FAILED = auto()  # payment collaborator raised


@dataclass(frozen=True, slots=True)
class CheckoutError:
    kind: CheckoutErrorKind
    message: str


__all__ = (
    "CheckoutSource",
    "CheckoutStep",
    "WorkingSet",
    "SIGN_IN_ROUTE",
    "BUSINESS_SIGNUP_ROUTE",
    "VERIFICATION_ROUTE",
    "CART_ROUTE",
    "QUOTES_ROUTE",
    "FAILURE_ROUTE",
    "quote_route",
    "confirmation_route",
    "RejectionReason",
    "EntryRejection",
    "CheckoutErrorKind",
    "CheckoutError",
)
