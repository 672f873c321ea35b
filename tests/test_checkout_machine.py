"""Tests for the checkout step machine."""

import asyncio
from datetime import datetime, timezone

import pytest
from kungfu import Error, Ok

from cartflow.basket import Basket, BasketItem
from cartflow.checkout import (
    FAILURE_ROUTE,
    CheckoutErrorKind,
    CheckoutSource,
    CheckoutStep,
    EntrySpec,
    RejectionReason,
    begin_checkout,
)
from cartflow.memory import MemoryOrderService, MemoryPaymentGateway
from cartflow.services import PaymentOutcome, QuoteStatus

NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)

CART = Basket(
    (
        BasketItem("r1", "door-op", "Door Operator", 2, variant_id="v1", unit_price=125000),
        BasketItem("r2", "button", "Landing Button", 4, unit_price=2500),
    ),
    NOW,
)


def ok(result):
    match result:
        case Ok(value):
            return value
        case Error(e):
            pytest.fail(f"unexpected error: {e.message}")


def refused(result, kind):
    match result:
        case Error(e):
            assert e.kind is kind
            return e
        case Ok(_):
            pytest.fail("transition should be refused")


@pytest.fixture
async def cart_session(verified, quotes, services):
    """Cart checkout for the verified business, on the address step."""
    spec = EntrySpec(CheckoutSource.CART, verified, CART, quotes)
    return ok(await begin_checkout(spec, services))


@pytest.fixture
async def quote_session(individual, quotes, services):
    """Quote checkout for the individual, on the address step."""
    spec = EntrySpec(CheckoutSource.QUOTE, individual, Basket.empty(NOW), quotes, "q_approved")
    return ok(await begin_checkout(spec, services))


async def to_review(session):
    ok(session.advance())
    ok(session.accept_terms(True))
    return session


class TestEntry:
    """begin_checkout wires entry, addresses and defaults."""

    async def test_business_defaults(self, cart_session):
        assert cart_session.step is CheckoutStep.ADDRESS
        assert cart_session.shipping_address_id == "addr_ship"
        assert cart_session.billing_address_id == "addr_bill"
        assert cart_session.use_same_address is True
        assert cart_session.billing_for_order == "addr_ship"

    async def test_individual_gets_profile_address(self, quote_session):
        assert [a.id for a in quote_session.addresses] == ["addr_home"]
        assert quote_session.shipping_address_id == "addr_home"

    async def test_rejection_notifies_and_redirects(self, individual, quotes, services, notifier, navigator):
        spec = EntrySpec(CheckoutSource.CART, individual, CART, quotes)

        match await begin_checkout(spec, services):
            case Error(rejection):
                assert rejection.reason is RejectionReason.BUSINESS_REQUIRED
            case Ok(_):
                pytest.fail("individual cart checkout should be refused")
        assert navigator.last == "/business-signup"
        assert notifier.messages("error") == [rejection.message]

    async def test_quote_address_failure_returns_to_quotes_list(
        self, individual, quotes, services, addresses, navigator
    ):
        addresses.unavailable = True
        spec = EntrySpec(CheckoutSource.QUOTE, individual, Basket.empty(NOW), quotes, "q_approved")

        match await begin_checkout(spec, services):
            case Error(rejection):
                assert rejection.reason is RejectionReason.ADDRESSES_UNAVAILABLE
            case Ok(_):
                pytest.fail("address failure should reject")
        assert navigator.last == "/quotes"

    async def test_cart_address_failure_returns_to_cart(
        self, verified, quotes, services, addresses, navigator
    ):
        addresses.unavailable = True

        result = await begin_checkout(EntrySpec(CheckoutSource.CART, verified, CART, quotes), services)

        assert isinstance(result, Error)
        assert navigator.last == "/cart"


class TestAddressStep:
    """Selections and the advance guard."""

    async def test_cannot_advance_without_shipping(self, verified, quotes, services, addresses):
        addresses.business[verified.account_id] = []
        session = ok(await begin_checkout(EntrySpec(CheckoutSource.CART, verified, CART, quotes), services))

        assert not session.can_advance
        e = refused(session.advance(), CheckoutErrorKind.VALIDATION)
        assert e.message == "Please select a shipping address"
        assert session.step is CheckoutStep.ADDRESS

    async def test_separate_billing_required_when_not_same(self, cart_session):
        cart_session.billing_address_id = None
        ok(cart_session.set_use_same_address(False))

        e = refused(cart_session.advance(), CheckoutErrorKind.VALIDATION)

        assert e.message == "Please select a billing address"

    async def test_separate_billing_used(self, cart_session):
        ok(cart_session.set_use_same_address(False))

        ok(cart_session.advance())

        assert cart_session.billing_for_order == "addr_bill"

    async def test_unknown_address_refused(self, cart_session):
        refused(cart_session.select_shipping("addr_nowhere"), CheckoutErrorKind.VALIDATION)

        assert cart_session.shipping_address_id == "addr_ship"

    async def test_select_shipping(self, cart_session):
        ok(cart_session.select_shipping("addr_bill"))

        assert cart_session.shipping_address_id == "addr_bill"

    async def test_addresses_frozen_after_address_step(self, cart_session):
        ok(cart_session.advance())

        refused(cart_session.select_shipping("addr_bill"), CheckoutErrorKind.PRECONDITION)


class TestReviewStep:
    """Terms, back edge, order placement."""

    async def test_back_keeps_selections(self, cart_session):
        ok(cart_session.select_shipping("addr_bill"))
        ok(cart_session.advance())

        assert ok(cart_session.back()) is CheckoutStep.ADDRESS
        assert cart_session.shipping_address_id == "addr_bill"

    async def test_back_from_address_refused(self, cart_session):
        refused(cart_session.back(), CheckoutErrorKind.PRECONDITION)

    async def test_terms_only_on_review(self, cart_session):
        refused(cart_session.accept_terms(True), CheckoutErrorKind.PRECONDITION)

    async def test_place_order_requires_terms(self, cart_session, orders):
        ok(cart_session.advance())

        e = refused(await cart_session.place_order(), CheckoutErrorKind.VALIDATION)

        assert e.message == "Please accept the terms and conditions"
        assert orders.orders == []

    async def test_place_order_from_address_refused(self, cart_session, orders):
        refused(await cart_session.place_order(), CheckoutErrorKind.PRECONDITION)
        assert orders.orders == []

    async def test_cart_order_uses_frozen_working_set(self, cart_session, orders, verified):
        await to_review(cart_session)

        order = ok(await cart_session.place_order())

        ref, draft = orders.orders[0]
        assert order == ref
        assert order.order_number == "CED-260314-0001"
        assert draft.account_id == verified.account_id
        assert draft.lines == cart_session.working_set.lines
        assert draft.shipping_address_id == draft.billing_address_id == "addr_ship"
        assert draft.quote_id is None
        assert cart_session.step is CheckoutStep.PAYMENT

    async def test_cart_order_runs_after_hook(self, verified, quotes, services):
        cleared = []

        async def clear():
            cleared.append(True)

        spec = EntrySpec(CheckoutSource.CART, verified, CART, quotes)
        session = ok(await begin_checkout(spec, services, after_cart_order=clear))
        await to_review(session)

        ok(await session.place_order())

        assert cleared == [True]

    async def test_quote_order_converts_quote(self, quote_session, quotes):
        await to_review(quote_session)

        ok(await quote_session.place_order())

        assert quotes.quotes["q_approved"].status is QuoteStatus.CONVERTED

    async def test_rejected_order_stays_on_review(self, cart_session, orders, notifier):
        orders.reject_with = "Credit limit exceeded"
        await to_review(cart_session)

        e = refused(await cart_session.place_order(), CheckoutErrorKind.ORDER_FAILED)

        assert e.message == "Credit limit exceeded"
        assert cart_session.step is CheckoutStep.REVIEW
        assert cart_session.terms_accepted
        assert cart_session.shipping_address_id == "addr_ship"
        assert "Credit limit exceeded" in notifier.messages("error")

    async def test_retry_after_rejection(self, cart_session, orders):
        orders.reject_with = "Service unavailable"
        await to_review(cart_session)
        refused(await cart_session.place_order(), CheckoutErrorKind.ORDER_FAILED)

        ok(await cart_session.place_order())

        assert len(orders.orders) == 1

    async def test_double_submit_reaches_service_once(self, verified, quotes, notifier, navigator, addresses, payments):
        from cartflow.checkout import CheckoutServices

        release = asyncio.Event()

        class SlowOrders(MemoryOrderService):
            async def create_from_cart(self, draft):
                await release.wait()
                return await super().create_from_cart(draft)

        orders = SlowOrders()
        services = CheckoutServices(quotes, addresses, orders, payments, notifier, navigator)
        session = ok(await begin_checkout(EntrySpec(CheckoutSource.CART, verified, CART, quotes), services))
        await to_review(session)

        first = asyncio.create_task(session.place_order())
        await asyncio.sleep(0)
        assert session.placing

        e = refused(await session.place_order(), CheckoutErrorKind.PRECONDITION)
        release.set()
        ok(await first)

        assert e.message == "Your order is already being placed"
        assert len(orders.orders) == 1


class TestPaymentStep:
    """Collect, then route by outcome."""

    async def test_success_goes_to_confirmation(self, cart_session, payments, navigator):
        await to_review(cart_session)
        order = ok(await cart_session.place_order())

        outcome = ok(await cart_session.pay())

        assert outcome.success
        assert payments.charges == [(order, cart_session.working_set.summary.total, "INR")]
        assert navigator.last == f"/order-confirmation?orderId={order.order_id}"

    async def test_decline_goes_to_failure(self, cart_session, payments, navigator, notifier):
        payments.succeed = False
        await to_review(cart_session)
        ok(await cart_session.place_order())

        outcome = ok(await cart_session.pay())

        assert not outcome.success
        assert navigator.last == FAILURE_ROUTE
        assert notifier.messages("error")[-1] == "Payment declined"

    async def test_gateway_exception_is_a_failure(self, verified, quotes, addresses, orders, notifier, navigator):
        from cartflow.checkout import CheckoutServices

        class BrokenGateway(MemoryPaymentGateway):
            async def collect(self, order, amount, currency):
                raise ConnectionError("gateway timeout")

        services = CheckoutServices(quotes, addresses, orders, BrokenGateway(), notifier, navigator)
        session = ok(await begin_checkout(EntrySpec(CheckoutSource.CART, verified, CART, quotes), services))
        await to_review(session)
        ok(await session.place_order())

        refused(await session.pay(), CheckoutErrorKind.PAYMENT_FAILED)

        assert navigator.last == FAILURE_ROUTE

    async def test_pay_before_order_refused(self, cart_session, payments):
        refused(await cart_session.pay(), CheckoutErrorKind.PRECONDITION)
        assert payments.charges == []

    async def test_outcome_on_address_step_is_ignored(self, cart_session, navigator):
        routes = list(navigator.routes)

        refused(
            cart_session.on_payment_result(PaymentOutcome(True, "ord_elsewhere")),
            CheckoutErrorKind.PRECONDITION,
        )

        assert navigator.routes == routes
        assert cart_session.step is CheckoutStep.ADDRESS

    async def test_outcome_for_another_order_is_ignored(self, cart_session, navigator):
        await to_review(cart_session)
        ok(await cart_session.place_order())
        routes = list(navigator.routes)

        refused(
            cart_session.on_payment_result(PaymentOutcome(True, "ord_elsewhere")),
            CheckoutErrorKind.PRECONDITION,
        )

        assert navigator.routes == routes

    async def test_outcome_for_placed_order_routes(self, cart_session, navigator):
        await to_review(cart_session)
        order = ok(await cart_session.place_order())

        route = ok(cart_session.on_payment_result(PaymentOutcome(True, order.order_id)))

        assert route == f"/order-confirmation?orderId={order.order_id}"
        assert navigator.last == route

    async def test_gateway_answer_for_another_order_fails_pay(
        self, verified, quotes, addresses, orders, notifier, navigator
    ):
        from cartflow.checkout import CheckoutServices

        class MixedUpGateway(MemoryPaymentGateway):
            async def collect(self, order, amount, currency):
                return PaymentOutcome(True, "ord_elsewhere")

        services = CheckoutServices(quotes, addresses, orders, MixedUpGateway(), notifier, navigator)
        session = ok(await begin_checkout(EntrySpec(CheckoutSource.CART, verified, CART, quotes), services))
        await to_review(session)
        ok(await session.place_order())

        refused(await session.pay(), CheckoutErrorKind.PRECONDITION)
        assert not any(r.startswith("/order-confirmation") for r in navigator.routes)
