"""Tests for the wired session: identity changes, merge, checkout."""

import pytest
from kungfu import Error, Ok

from cartflow.basket import NewItem
from cartflow.checkout import CheckoutSource, CheckoutStep, RejectionReason
from cartflow.session import ShopSession


def ok(result):
    match result:
        case Ok(value):
            return value
        case Error(e):
            pytest.fail(f"unexpected error: {e.message}")


def part(product_id: str, quantity: int = 1, unit_price: int | None = 1000):
    return NewItem(product_id, f"Part {product_id}", quantity, unit_price=unit_price)


class TestIdentityTransitions:
    """Sign-in merges, sign-out switches back to the device."""

    async def test_unchanged_identity_is_a_noop(self, shop):
        assert await shop.sync_identity() is None

    async def test_sign_in_merges_guest_basket(self, shop, identity, verified, server, local):
        ok(await shop.basket.add_item(part("a", 3)))

        identity.sign_in(verified)
        merged = ok(await shop.sync_identity())

        assert merged.added == 1
        assert [i.product_id for i in shop.basket.items] == ["a"]
        assert ok(await server.load(verified.account_id)).item_count == 3
        assert ok(await local.load()).is_empty

    async def test_repeated_sync_merges_once(self, shop, identity, individual, server):
        ok(await shop.basket.add_item(part("a", 2)))
        identity.sign_in(individual)
        ok(await shop.sync_identity())

        assert await shop.sync_identity() is None
        assert ok(await server.load(individual.account_id)).item_count == 2

    async def test_sign_out_shows_device_basket(self, shop, identity, individual):
        identity.sign_in(individual)
        await shop.sync_identity()
        ok(await shop.basket.add_item(part("a")))
        ok(await shop.basket.add_item(part("b")))

        identity.sign_out()
        await shop.sync_identity()

        assert shop.basket.basket.is_empty
        assert shop.basket.policy.max_items == 1

    async def test_session_starting_signed_in_merges_leftovers(
        self, identity, individual, local, server, services, clock, ids
    ):
        from cartflow.basket import Basket, BasketItem

        ok(await local.save(Basket((BasketItem("g1", "a", "Part a", 2),), clock())))
        identity.sign_in(individual)

        session = ShopSession(identity, local, server, services, clock=clock, new_id=ids)
        ok(await session.start())

        assert [i.id for i in session.basket.items] == ["g1"]
        assert ok(await local.load()).is_empty

    async def test_identity_change_drops_checkout(self, shop, identity, verified, individual):
        identity.sign_in(verified)
        await shop.sync_identity()
        ok(await shop.basket.add_item(part("a")))
        ok(await shop.begin_checkout(CheckoutSource.CART))
        assert shop.checkout is not None

        identity.sign_in(individual)
        await shop.sync_identity()

        assert shop.checkout is None


class TestCheckoutThroughSession:
    """begin_checkout reads the live basket and clears it after a cart order."""

    async def test_cart_order_clears_basket(self, shop, identity, verified, server):
        identity.sign_in(verified)
        ok(await shop.basket.add_item(part("a", 2)))
        ok(await shop.basket.add_item(part("b", 1)))

        checkout = ok(await shop.begin_checkout(CheckoutSource.CART))
        ok(checkout.advance())
        ok(checkout.accept_terms(True))
        ok(await checkout.place_order())

        assert checkout.step is CheckoutStep.PAYMENT
        assert shop.basket.basket.is_empty
        assert ok(await server.load(verified.account_id)).is_empty

    async def test_working_set_frozen_against_later_edits(self, shop, identity, verified):
        identity.sign_in(verified)
        ok(await shop.basket.add_item(part("a", 2)))
        checkout = ok(await shop.begin_checkout(CheckoutSource.CART))

        ok(await shop.basket.add_item(part("b", 5)))

        assert [line.product_id for line in checkout.working_set.lines] == ["a"]
        assert checkout.working_set.summary.subtotal == 2000

    async def test_guest_redirected_to_sign_in(self, shop, navigator):
        ok(await shop.basket.add_item(part("a")))

        match await shop.begin_checkout(CheckoutSource.CART):
            case Error(rejection):
                assert rejection.reason is RejectionReason.SIGN_IN_REQUIRED
            case Ok(_):
                pytest.fail("guest checkout should be refused")
        assert navigator.last == "/sign-in?redirect=/checkout"
        assert shop.checkout is None

    async def test_quote_checkout_leaves_basket_alone(self, shop, identity, individual):
        identity.sign_in(individual)
        ok(await shop.basket.add_item(part("a")))

        checkout = ok(await shop.begin_checkout(CheckoutSource.QUOTE, "q_approved"))
        ok(checkout.advance())
        ok(checkout.accept_terms(True))
        ok(await checkout.place_order())

        assert shop.basket.item_count == 1
