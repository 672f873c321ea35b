"""
Checkout entry graph — preconditions and source loading as nodnod nodes.

Architecture:
    EntrySpec (injected)
         │
         ▼
    EntrySpecNode
         │
         ├──────────────────────────────┐
         ▼                              ▼
    AccountGateNode               BlockedAccountNode
         │                              │
         ▼                              │
    FetchSourceNode                     │
         │                              │
         ├── CartReadyNode ─────────┐   │
         ├── EmptyCartNode ─────────┤   │
         ├── QuoteReadyNode ────────┼───┴── EntryOutcome (@polymorphic)
         ├── QuoteMissingNode ──────┤             │
         ├── QuoteIneligibleNode ───┤             ▼
         └── LoadFailedNode ────────┘       EntryResultNode

Each state node validates one situation and raises NodeError otherwise,
so exactly one outcome case resolves.

Note: no 'from __future__ import annotations' here. nodnod reads the
__compose__ type hints at runtime to wire dependencies.
"""

import logging
from dataclasses import dataclass

from nodnod import NodeError, polymorphic, case
from combinators import lift as L
from kungfu import Result, Ok, Error

from cartflow import _graph as G
from cartflow.basket._types import Basket
from cartflow.checkout._summary import (
    DEFAULT_CURRENCY,
    DEFAULT_GST_PERCENTAGE,
    build_summary,
    lines_from_basket,
    lines_from_quote,
)
from cartflow.checkout._types import (
    BUSINESS_SIGNUP_ROUTE,
    CART_ROUTE,
    QUOTES_ROUTE,
    SIGN_IN_ROUTE,
    VERIFICATION_ROUTE,
    CheckoutSource,
    EntryRejection,
    RejectionReason,
    WorkingSet,
    quote_route,
)
from cartflow.services import Quote, QuoteService, QuoteStatus
from cartflow.tier import AccountTier, Identity, TierPolicy, policy_for

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Input: EntrySpec (injected)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class EntrySpec:
    """
    Everything entry needs, captured at the moment checkout is requested.

    Note: basket is the live basket's value at that moment. Basket is
    immutable, so it doubles as the frozen cart snapshot.
    """

    source: CheckoutSource
    identity: Identity | None
    basket: Basket
    quotes: QuoteService
    quote_id: str | None = None
    gst_percentage: int = DEFAULT_GST_PERCENTAGE
    currency: str = DEFAULT_CURRENCY


@dataclass(frozen=True)
class EntryReady:
    """Entry passed: who is buying, under which tier, and what."""

    identity: Identity
    policy: TierPolicy
    working_set: WorkingSet


def account_rejection(spec: EntrySpec) -> EntryRejection | None:
    """Who may check out from where. None means allowed."""
    policy = policy_for(spec.identity)

    if spec.identity is None or policy.is_guest:
        return EntryRejection(
            RejectionReason.SIGN_IN_REQUIRED,
            "Please login or create an account to proceed with your purchase.",
            SIGN_IN_ROUTE,
        )
    if policy.tier is AccountTier.BUSINESS:
        return EntryRejection(
            RejectionReason.VERIFICATION_REQUIRED,
            "Your business account is pending verification. "
            "Complete verification to unlock purchasing.",
            VERIFICATION_ROUTE,
        )
    if spec.source is CheckoutSource.CART and policy.tier is not AccountTier.VERIFIED_BUSINESS:
        return EntryRejection(
            RejectionReason.BUSINESS_REQUIRED,
            "Individual accounts cannot purchase directly. "
            "Upgrade to a business account or request a quote.",
            BUSINESS_SIGNUP_ROUTE,
        )
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# Entry & Account Gate
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class EntrySpecNode:
    """Wraps EntrySpec for graph."""

    def __init__(self, spec: EntrySpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, spec: EntrySpec) -> "EntrySpecNode":
        return cls(spec)


@G.node
class AccountGateNode:
    """Validates: signed in, and the account may use this source."""

    def __init__(self, spec: EntrySpec, identity: Identity) -> None:
        self.spec = spec
        self.identity = identity

    @classmethod
    def __compose__(cls, spec_node: EntrySpecNode) -> "AccountGateNode":
        spec = spec_node.spec
        if spec.identity is None or account_rejection(spec) is not None:
            raise NodeError("Account not allowed")
        return cls(spec, spec.identity)


@G.node
class BlockedAccountNode:
    """Validates: the account gate refused."""

    def __init__(self, rejection: EntryRejection) -> None:
        self.rejection = rejection

    @classmethod
    def __compose__(cls, spec_node: EntrySpecNode) -> "BlockedAccountNode":
        rejection = account_rejection(spec_node.spec)
        if rejection is None:
            raise NodeError("Account allowed")
        return cls(rejection)


# ═══════════════════════════════════════════════════════════════════════════════
# Fetch Source
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FetchSourceNode:
    """
    Loads the quote for quote checkout. Cart checkout needs no I/O.

    A raising quote service is recorded in load_error, not propagated.
    """

    def __init__(
        self,
        gate: AccountGateNode,
        quote: Quote | None = None,
        load_error: str | None = None,
    ) -> None:
        self.gate = gate
        self.spec = gate.spec
        self.quote = quote
        self.load_error = load_error

    @classmethod
    async def __compose__(cls, gate: AccountGateNode) -> "FetchSourceNode":
        spec = gate.spec
        if spec.source is CheckoutSource.CART or spec.quote_id is None:
            return cls(gate)

        quote_id = spec.quote_id
        result = await L.catching_async(
            lambda: spec.quotes.get_quote(gate.identity.account_id, quote_id),
            on_error=str,
        )
        match result:
            case Ok(quote):
                return cls(gate, quote=quote)
            case Error(err):
                logger.warning("quote %s failed to load: %s", quote_id, err)
                return cls(gate, load_error=err)


# ═══════════════════════════════════════════════════════════════════════════════
# State Nodes: each validates one source situation
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class CartReadyNode:
    """Validates: cart source, basket has rows."""

    def __init__(self, fetch: FetchSourceNode) -> None:
        self.fetch = fetch

    @classmethod
    def __compose__(cls, fetch: FetchSourceNode) -> "CartReadyNode":
        if fetch.spec.source is not CheckoutSource.CART:
            raise NodeError("Not cart")
        if fetch.spec.basket.is_empty:
            raise NodeError("Empty cart")
        return cls(fetch)


@G.node
class EmptyCartNode:
    """Validates: cart source, basket empty."""

    @classmethod
    def __compose__(cls, fetch: FetchSourceNode) -> "EmptyCartNode":
        if fetch.spec.source is not CheckoutSource.CART:
            raise NodeError("Not cart")
        if not fetch.spec.basket.is_empty:
            raise NodeError("Cart has items")
        return cls()


@G.node
class QuoteReadyNode:
    """Validates: quote loaded and approved."""

    def __init__(self, fetch: FetchSourceNode, quote: Quote) -> None:
        self.fetch = fetch
        self.quote = quote

    @classmethod
    def __compose__(cls, fetch: FetchSourceNode) -> "QuoteReadyNode":
        quote = fetch.quote
        if quote is None:
            raise NodeError("No quote")
        if quote.status is not QuoteStatus.APPROVED:
            raise NodeError("Not approved")
        return cls(fetch, quote)


@G.node
class QuoteMissingNode:
    """Validates: quote source, nothing found and nothing failed."""

    def __init__(self, quote_id: str | None) -> None:
        self.quote_id = quote_id

    @classmethod
    def __compose__(cls, fetch: FetchSourceNode) -> "QuoteMissingNode":
        if fetch.spec.source is not CheckoutSource.QUOTE:
            raise NodeError("Not quote")
        if fetch.quote is not None or fetch.load_error is not None:
            raise NodeError("Quote loaded or failed")
        return cls(fetch.spec.quote_id)


@G.node
class QuoteIneligibleNode:
    """Validates: quote loaded but not approved."""

    def __init__(self, quote: Quote) -> None:
        self.quote = quote

    @classmethod
    def __compose__(cls, fetch: FetchSourceNode) -> "QuoteIneligibleNode":
        quote = fetch.quote
        if quote is None:
            raise NodeError("No quote")
        if quote.status is QuoteStatus.APPROVED:
            raise NodeError("Approved")
        return cls(quote)


@G.node
class LoadFailedNode:
    """Validates: the quote service raised."""

    def __init__(self, message: str) -> None:
        self.message = message

    @classmethod
    def __compose__(cls, fetch: FetchSourceNode) -> "LoadFailedNode":
        if fetch.load_error is None:
            raise NodeError("No load error")
        return cls(fetch.load_error)


# ═══════════════════════════════════════════════════════════════════════════════
# Outcome Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class OutcomeReady:
    ready: EntryReady


@dataclass(frozen=True)
class OutcomeRejected:
    rejection: EntryRejection


type Outcome = OutcomeReady | OutcomeRejected


def _ready(fetch: FetchSourceNode, working_set: WorkingSet) -> Outcome:
    identity = fetch.gate.identity
    return OutcomeReady(EntryReady(identity, policy_for(identity), working_set))


# ═══════════════════════════════════════════════════════════════════════════════
# Polymorphic Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@polymorphic[Outcome]
class EntryOutcome:
    """Polymorphic router — each @case depends on one validated state node."""

    @case
    def blocked(cls, node: BlockedAccountNode) -> Outcome:
        return OutcomeRejected(node.rejection)

    @case
    def cart_ready(cls, node: CartReadyNode) -> Outcome:
        spec = node.fetch.spec
        lines = lines_from_basket(spec.basket)
        summary = build_summary(
            lines, gst_percentage=spec.gst_percentage, currency=spec.currency
        )
        return _ready(node.fetch, WorkingSet(CheckoutSource.CART, lines, summary))

    @case
    def empty_cart(cls, node: EmptyCartNode) -> Outcome:
        return OutcomeRejected(
            EntryRejection(RejectionReason.EMPTY_CART, "Your cart is empty", CART_ROUTE)
        )

    @case
    def quote_ready(cls, node: QuoteReadyNode) -> Outcome:
        spec = node.fetch.spec
        lines = lines_from_quote(node.quote)
        summary = build_summary(
            lines, gst_percentage=spec.gst_percentage, currency=spec.currency
        )
        return _ready(
            node.fetch,
            WorkingSet(CheckoutSource.QUOTE, lines, summary, quote_id=node.quote.id),
        )

    @case
    def quote_missing(cls, node: QuoteMissingNode) -> Outcome:
        return OutcomeRejected(
            EntryRejection(RejectionReason.QUOTE_NOT_FOUND, "Quote not found", QUOTES_ROUTE)
        )

    @case
    def quote_ineligible(cls, node: QuoteIneligibleNode) -> Outcome:
        quote = node.quote
        return OutcomeRejected(
            EntryRejection(
                RejectionReason.QUOTE_NOT_APPROVED,
                f"Quote is {quote.status.value}. Only approved quotes can be checked out.",
                quote_route(quote.id),
            )
        )

    @case
    def load_failed(cls, node: LoadFailedNode) -> Outcome:
        return OutcomeRejected(
            EntryRejection(
                RejectionReason.LOAD_FAILED,
                "Failed to load quote. Please try again.",
                QUOTES_ROUTE,
            )
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Final Node
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class EntryResultNode:
    """Converts Outcome to typed Result."""

    def __init__(self, outcome: Outcome) -> None:
        self.outcome = outcome

    @classmethod
    def __compose__(cls, outcome: EntryOutcome) -> "EntryResultNode":
        return cls(outcome.value)

    def to_result(self) -> Result[EntryReady, EntryRejection]:
        match self.outcome:
            case OutcomeReady(ready=ready):
                return Ok(ready)
            case OutcomeRejected(rejection=rejection):
                return Error(rejection)


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


async def resolve_entry(spec: EntrySpec) -> Result[EntryReady, EntryRejection]:
    """Run the entry graph for one checkout request."""
    node = await G.resolve(EntryResultNode, spec)
    return node.to_result()


__all__ = (
    "EntrySpec",
    "EntryReady",
    "account_rejection",
    "Outcome",
    "OutcomeReady",
    "OutcomeRejected",
    "EntrySpecNode",
    "AccountGateNode",
    "BlockedAccountNode",
    "FetchSourceNode",
    "CartReadyNode",
    "EmptyCartNode",
    "QuoteReadyNode",
    "QuoteMissingNode",
    "QuoteIneligibleNode",
    "LoadFailedNode",
    "EntryOutcome",
    "EntryResultNode",
    "resolve_entry",
)
