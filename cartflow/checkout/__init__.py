"""
Checkout — entry preconditions and the step state machine.

    from cartflow import checkout as C

    spec = C.EntrySpec(C.CheckoutSource.QUOTE, identity, basket, quotes, quote_id="q_1")
    match await C.begin_checkout(spec, services):
        case Ok(session): ...
        case Error(rejection): ...
"""

from __future__ import annotations

from cartflow.checkout._types import (
    CheckoutSource,
    CheckoutStep,
    WorkingSet,
    SIGN_IN_ROUTE,
    BUSINESS_SIGNUP_ROUTE,
    VERIFICATION_ROUTE,
    CART_ROUTE,
    QUOTES_ROUTE,
    FAILURE_ROUTE,
    quote_route,
    confirmation_route,
    RejectionReason,
    EntryRejection,
    CheckoutErrorKind,
    CheckoutError,
)
from cartflow.checkout._summary import (
    DEFAULT_GST_PERCENTAGE,
    DEFAULT_CURRENCY,
    lines_from_basket,
    lines_from_quote,
    build_summary,
)
from cartflow.checkout._entry import (
    EntrySpec,
    EntryReady,
    account_rejection,
    resolve_entry,
)
from cartflow.checkout._machine import (
    AfterCartOrder,
    CheckoutServices,
    CheckoutSession,
    begin_checkout,
)

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
    "DEFAULT_GST_PERCENTAGE",
    "DEFAULT_CURRENCY",
    "lines_from_basket",
    "lines_from_quote",
    "build_summary",
    "EntrySpec",
    "EntryReady",
    "account_rejection",
    "resolve_entry",
    "AfterCartOrder",
    "CheckoutServices",
    "CheckoutSession",
    "begin_checkout",
)
