"""
Checkout state machine — address → review → payment.

    match await begin_checkout(spec, services):
        case Ok(session):
            session.select_shipping("addr_1")
            session.advance()
            session.accept_terms(True)
            await session.place_order()
            await session.pay()
        case Error(rejection):
            ...  # already notified and redirected

The only backward edge is review → address. Guards are computed from
current state on every read, never cached.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from kungfu import Result, Ok, Error
from combinators import lift as L

from cartflow.checkout._entry import EntryReady, EntrySpec, resolve_entry
from cartflow.checkout._types import (
    CART_ROUTE,
    FAILURE_ROUTE,
    CheckoutError,
    CheckoutErrorKind,
    CheckoutSource,
    CheckoutStep,
    QUOTES_ROUTE,
    EntryRejection,
    RejectionReason,
    WorkingSet,
    confirmation_route,
)
from cartflow.services import (
    Address,
    AddressService,
    Navigator,
    Notifier,
    OrderDraft,
    OrderRef,
    OrderService,
    PaymentGateway,
    PaymentOutcome,
    QuoteService,
)

logger = logging.getLogger(__name__)

ADDRESS_STEP_ONLY = "Addresses can only be changed on the address step"

type AfterCartOrder = Callable[[], Awaitable[object]]
"""Hook run once a cart-backed order exists (clears the basket)."""


@dataclass(frozen=True, slots=True)
class CheckoutServices:
    """Collaborators a checkout talks to."""

    quotes: QuoteService
    addresses: AddressService
    orders: OrderService
    payments: PaymentGateway
    notifier: Notifier
    navigator: Navigator


# ═══════════════════════════════════════════════════════════════════════════════
# CheckoutSession
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutSession:
    """One live checkout. Created only by a successful entry."""

    def __init__(
        self,
        ready: EntryReady,
        addresses: Sequence[Address],
        services: CheckoutServices,
        *,
        after_cart_order: AfterCartOrder | None = None,
    ) -> None:
        self.identity = ready.identity
        self.policy = ready.policy
        self.working_set: WorkingSet = ready.working_set
        self.addresses: tuple[Address, ...] = tuple(addresses)
        self._services = services
        self._after_cart_order = after_cart_order

        self.step = CheckoutStep.ADDRESS
        self.shipping_address_id = _default_id(self.addresses, shipping=True)
        self.billing_address_id = _default_id(self.addresses, shipping=False)
        self.use_same_address = True
        self.terms_accepted = False
        self.order: OrderRef | None = None
        self._placing = False

    @property
    def source(self) -> CheckoutSource:
        return self.working_set.source

    @property
    def placing(self) -> bool:
        return self._placing

    @property
    def billing_for_order(self) -> str | None:
        """Billing resolves to shipping when `use_same_address` is on."""
        if self.use_same_address:
            return self.shipping_address_id
        return self.billing_address_id

    @property
    def can_advance(self) -> bool:
        if self.step is not CheckoutStep.ADDRESS:
            return False
        return self.shipping_address_id is not None and self.billing_for_order is not None

    # ─────────────────────────────────────────────────────────────────────────
    # Address step
    # ─────────────────────────────────────────────────────────────────────────

    def select_shipping(self, address_id: str) -> Result[None, CheckoutError]:
        match self._check_address(address_id):
            case Error(e):
                return Error(e)
        self.shipping_address_id = address_id
        return Ok(None)

    def select_billing(self, address_id: str) -> Result[None, CheckoutError]:
        match self._check_address(address_id):
            case Error(e):
                return Error(e)
        self.billing_address_id = address_id
        return Ok(None)

    def set_use_same_address(self, same: bool) -> Result[None, CheckoutError]:
        if self.step is not CheckoutStep.ADDRESS:
            return self._refuse(CheckoutErrorKind.PRECONDITION, ADDRESS_STEP_ONLY)
        self.use_same_address = same
        return Ok(None)

    def advance(self) -> Result[CheckoutStep, CheckoutError]:
        """address → review. Review moves on only through place_order()."""
        if self.step is not CheckoutStep.ADDRESS:
            return self._refuse(
                CheckoutErrorKind.PRECONDITION, f"Cannot advance from {self.step.value}"
            )
        if self.shipping_address_id is None:
            return self._refuse(CheckoutErrorKind.VALIDATION, "Please select a shipping address")
        if self.billing_for_order is None:
            return self._refuse(CheckoutErrorKind.VALIDATION, "Please select a billing address")
        self.step = CheckoutStep.REVIEW
        return Ok(self.step)

    def back(self) -> Result[CheckoutStep, CheckoutError]:
        if self.step is not CheckoutStep.REVIEW or self._placing:
            return self._refuse(
                CheckoutErrorKind.PRECONDITION, f"Cannot go back from {self.step.value}"
            )
        self.step = CheckoutStep.ADDRESS
        return Ok(self.step)

    # ─────────────────────────────────────────────────────────────────────────
    # Review step
    # ─────────────────────────────────────────────────────────────────────────

    def accept_terms(self, accepted: bool) -> Result[None, CheckoutError]:
        if self.step is not CheckoutStep.REVIEW:
            return self._refuse(
                CheckoutErrorKind.PRECONDITION, "Terms are accepted on the review step"
            )
        self.terms_accepted = accepted
        return Ok(None)

    async def place_order(self) -> Result[OrderRef, CheckoutError]:
        """
        Create the order from the working set.

        Success moves to payment. Failure keeps the session on review with
        every selection intact. A second call while one is in flight is
        refused without reaching the order service.
        """
        if self._placing:
            return self._refuse(
                CheckoutErrorKind.PRECONDITION, "Your order is already being placed"
            )
        if self.step is not CheckoutStep.REVIEW:
            return self._refuse(
                CheckoutErrorKind.PRECONDITION, "Review your order before placing it"
            )
        if not self.terms_accepted:
            return self._refuse(
                CheckoutErrorKind.VALIDATION, "Please accept the terms and conditions"
            )

        shipping_id, billing_id = self.shipping_address_id, self.billing_for_order
        if shipping_id is None or billing_id is None:
            return self._refuse(CheckoutErrorKind.VALIDATION, "Please select your addresses")

        draft = OrderDraft(
            account_id=self.identity.account_id,
            lines=self.working_set.lines,
            summary=self.working_set.summary,
            shipping_address_id=shipping_id,
            billing_address_id=billing_id,
            quote_id=self.working_set.quote_id,
        )
        orders = self._services.orders
        if self.source is CheckoutSource.CART:
            create = orders.create_from_cart
        else:
            create = orders.create_from_quote

        self._placing = True
        try:
            result = await L.catching_async(
                lambda: create(draft),
                on_error=lambda e: str(e) or "Failed to place order",
            )
        finally:
            self._placing = False

        match result:
            case Error(message):
                logger.warning(
                    "order placement failed for %s: %s", self.identity.account_id, message
                )
                return self._refuse(CheckoutErrorKind.ORDER_FAILED, message)
            case Ok(order):
                pass

        self.order = order
        self.step = CheckoutStep.PAYMENT
        logger.info("order %s placed from %s", order.order_number, self.source.value)
        if self.source is CheckoutSource.CART and self._after_cart_order is not None:
            await self._after_cart_order()
        return Ok(order)

    # ─────────────────────────────────────────────────────────────────────────
    # Payment step
    # ─────────────────────────────────────────────────────────────────────────

    async def pay(self) -> Result[PaymentOutcome, CheckoutError]:
        """Collect payment for the placed order, then route by outcome."""
        order = self.order
        if self.step is not CheckoutStep.PAYMENT or order is None:
            return self._refuse(CheckoutErrorKind.PRECONDITION, "No order to pay for")

        summary = self.working_set.summary
        result = await L.catching_async(
            lambda: self._services.payments.collect(order, summary.total, summary.currency),
            on_error=lambda e: str(e) or "Payment failed",
        )
        match result:
            case Ok(outcome):
                match self.on_payment_result(outcome):
                    case Error(e):
                        return Error(e)
                    case Ok(_):
                        return Ok(outcome)
            case Error(message):
                self.on_payment_result(PaymentOutcome(False, order.order_id, reason=message))
                return Error(CheckoutError(CheckoutErrorKind.PAYMENT_FAILED, message))

    def on_payment_result(self, outcome: PaymentOutcome) -> Result[str, CheckoutError]:
        """
        Navigate to confirmation or failure. Returns the route taken.

        Only an outcome for the placed order, on the payment step, counts.
        """
        order = self.order
        if self.step is not CheckoutStep.PAYMENT or order is None:
            return self._refuse(CheckoutErrorKind.PRECONDITION, "No order to pay for")
        if outcome.order_id != order.order_id:
            logger.warning(
                "payment outcome for %s ignored, placed order is %s",
                outcome.order_id,
                order.order_id,
            )
            return self._refuse(CheckoutErrorKind.PRECONDITION, "Payment is for a different order")

        if outcome.success:
            route = confirmation_route(outcome.order_id)
        else:
            self._services.notifier.error(outcome.reason or "Payment failed")
            route = FAILURE_ROUTE
        self._services.navigator.go(route)
        return Ok(route)

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    def _check_address(self, address_id: str) -> Result[None, CheckoutError]:
        if self.step is not CheckoutStep.ADDRESS:
            return self._refuse(CheckoutErrorKind.PRECONDITION, ADDRESS_STEP_ONLY)
        if all(a.id != address_id for a in self.addresses):
            return self._refuse(CheckoutErrorKind.VALIDATION, "Unknown address")
        return Ok(None)

    def _refuse[T](self, kind: CheckoutErrorKind, message: str) -> Result[T, CheckoutError]:
        self._services.notifier.error(message)
        return Error(CheckoutError(kind, message))


def _default_id(addresses: Sequence[Address], *, shipping: bool) -> str | None:
    for address in addresses:
        if address.is_default and (address.ships if shipping else address.bills):
            return address.id
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# begin_checkout()
# ═══════════════════════════════════════════════════════════════════════════════


async def begin_checkout(
    spec: EntrySpec,
    services: CheckoutServices,
    *,
    after_cart_order: AfterCartOrder | None = None,
) -> Result[CheckoutSession, EntryRejection]:
    """
    Run entry, load addresses, create the session.

    Every rejection is notified and navigated here; callers only branch.
    """
    match await resolve_entry(spec):
        case Error(rejection):
            return _reject(services, rejection)
        case Ok(ready):
            pass

    match await _load_addresses(services.addresses, ready):
        case Error(message):
            logger.warning(
                "addresses failed to load for %s: %s", ready.identity.account_id, message
            )
            ws = ready.working_set
            upstream = QUOTES_ROUTE if ws.quote_id else CART_ROUTE
            return _reject(
                services,
                EntryRejection(
                    RejectionReason.ADDRESSES_UNAVAILABLE, "Failed to load addresses", upstream
                ),
            )
        case Ok(addresses):
            pass

    logger.info("checkout started for %s from %s", ready.identity.account_id, spec.source.value)
    return Ok(CheckoutSession(ready, addresses, services, after_cart_order=after_cart_order))


async def _load_addresses(
    service: AddressService,
    ready: EntryReady,
) -> Result[tuple[Address, ...], str]:
    """Business tiers keep an address book; individuals have one profile address."""
    account_id = ready.identity.account_id

    if ready.policy.is_business:
        return await L.catching_async(
            lambda: _as_tuple(service.business_addresses(account_id)),
            on_error=str,
        )
    return await L.catching_async(
        lambda: _as_tuple_single(service.individual_address(account_id)),
        on_error=str,
    )


async def _as_tuple(pending: Awaitable[Sequence[Address]]) -> tuple[Address, ...]:
    return tuple(await pending)


async def _as_tuple_single(pending: Awaitable[Address | None]) -> tuple[Address, ...]:
    address = await pending
    return () if address is None else (address,)


def _reject(
    services: CheckoutServices,
    rejection: EntryRejection,
) -> Result[CheckoutSession, EntryRejection]:
    logger.info("checkout entry rejected: %s", rejection.reason.name)
    services.notifier.error(rejection.message)
    services.navigator.go(rejection.redirect_to)
    return Error(rejection)


__all__ = (
    "AfterCartOrder",
    "CheckoutServices",
    "CheckoutSession",
    "begin_checkout",
)
