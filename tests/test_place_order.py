"""Tests for the checkout coordinator."""

import threading
from dataclasses import replace
from decimal import Decimal

from returns.result import Failure, Success

from storefront_checkout.core.domain.model.catalog import (
    CheckoutSession,
    CheckoutSource,
    Product,
)
from storefront_checkout.core.domain.model.errors import (
    AuthenticationRequired,
    EmptySelection,
    InsufficientStock,
    NotFound,
    StorageFailure,
    ValidationError,
)
from storefront_checkout.core.domain.model.inventory import (
    Direction,
    EntryStatus,
    StockVerdict,
)
from storefront_checkout.core.domain.model.order import Money, OrderStatus, PaymentMode
from storefront_checkout.core.ports.inbound.checkout_session import BuildCheckoutSessionQuery
from storefront_checkout.core.ports.inbound.place_order import PlaceOrderCommand
from storefront_checkout.core.ports.outbound.change_feed import Change, cart_topic, order_topic


def session_for(usecases, buyer, source=CheckoutSource.CART, product_id=None):
    return usecases.checkout_session.build(
        BuildCheckoutSessionQuery(source=source, buyer=buyer, product_id=product_id)
    ).unwrap()


def all_orders(adapters):
    return adapters.orders.list(0, 100).unwrap()


class TestSuccessfulCheckout:
    def test_two_units_at_one_hundred(self, usecases, adapters, products, buyer, checkout, fill_cart):
        fill_cart(buyer, P1=2)

        receipt = checkout(buyer).unwrap()

        assert receipt.order.total_amount == Money.of("200.00")
        assert receipt.order.status is OrderStatus.PENDING
        assert receipt.order.payment_mode is PaymentMode.CASH_ON_DELIVERY
        (line,) = receipt.lines
        assert (line.product_id, line.quantity, line.price) == ("P1", 2, Money.of("100.00"))
        assert receipt.reconciliation_failures == ()

        p1 = products.get_product("P1").unwrap()
        assert (p1.stock, p1.orders_count) == (8, 2)
        assert adapters.carts.list(buyer.user_id).unwrap() == ()
        assert len(all_orders(adapters)) == 1

    def test_one_order_with_every_line(self, usecases, adapters, buyer, checkout, fill_cart):
        fill_cart(buyer, P1=1, P2=2)

        receipt = checkout(buyer).unwrap()

        stored = adapters.orders.get_lines(receipt.order.order_id).unwrap()
        assert {(ln.product_id, ln.quantity) for ln in stored} == {("P1", 1), ("P2", 2)}
        assert receipt.order.total_amount == Money.of("500.00")

    def test_sale_price_is_snapshotted(self, adapters, products, buyer, checkout):
        receipt = checkout(buyer, CheckoutSource.BUY_NOW, "P2").unwrap()

        products.put(Product("P2", "Silk Dupatta", Decimal("999.00"), stock=4))

        (line,) = adapters.orders.get_lines(receipt.order.order_id).unwrap()
        assert line.price == Money.of("200.00")
        assert receipt.order.total_amount == Money.of("200.00")

    def test_buy_now_leaves_cart_alone(self, adapters, buyer, checkout, fill_cart):
        fill_cart(buyer, P1=1)

        checkout(buyer, CheckoutSource.BUY_NOW, "P2").unwrap()

        assert [ln.product_id for ln in adapters.carts.list(buyer.user_id).unwrap()] == ["P1"]

    def test_shipping_email_overrides_account_email(self, usecases, buyer, shipping):
        session = session_for(usecases, buyer, CheckoutSource.BUY_NOW, "P1")
        other = replace(shipping, email="deliveries@example.com")

        receipt = usecases.place_order.place_order(
            PlaceOrderCommand(buyer=buyer, shipping=other, payment_mode="prepaid", session=session)
        ).unwrap()

        assert receipt.order.email == "deliveries@example.com"
        assert receipt.order.payment_mode is PaymentMode.PREPAID
        assert receipt.order.shipping_address == other

    def test_publishes_cart_and_order_changes(self, adapters, buyer, checkout, fill_cart):
        fill_cart(buyer, P1=1)

        receipt = checkout(buyer).unwrap()

        order_id = str(receipt.order.order_id.value)
        assert Change(cart_topic(buyer.user_id), "DELETE") in adapters.feed.published
        assert Change(order_topic(order_id), "INSERT", key=order_id) in adapters.feed.published


class TestRejectedCheckout:
    def test_insufficient_stock_writes_nothing(self, adapters, products, buyer, checkout, fill_cart):
        fill_cart(buyer, P1=1, P2=6)

        result = checkout(buyer)

        assert isinstance(result, Failure)
        err = result.failure()
        assert isinstance(err, InsufficientStock)
        (short,) = err.shortages()
        assert (short.product_id, short.requested, short.available) == ("P2", 6, 5)
        assert all_orders(adapters) == ()
        assert products.get_product("P1").unwrap().stock == 10
        assert len(adapters.carts.list(buyer.user_id).unwrap()) == 2

    def test_requires_buyer(self, usecases, buyer, shipping):
        session = session_for(usecases, buyer, CheckoutSource.BUY_NOW, "P1")

        result = usecases.place_order.place_order(
            PlaceOrderCommand(buyer=None, shipping=shipping, payment_mode="cod", session=session)
        )

        assert isinstance(result.failure(), AuthenticationRequired)

    def test_empty_selection(self, usecases, adapters, buyer, shipping):
        result = usecases.place_order.place_order(
            PlaceOrderCommand(
                buyer=buyer,
                shipping=shipping,
                payment_mode="cod",
                session=CheckoutSession(source=CheckoutSource.CART, lines=()),
            )
        )

        assert isinstance(result.failure(), EmptySelection)
        assert all_orders(adapters) == ()

    def test_invalid_shipping(self, usecases, adapters, buyer, shipping):
        session = session_for(usecases, buyer, CheckoutSource.BUY_NOW, "P1")

        result = usecases.place_order.place_order(
            PlaceOrderCommand(
                buyer=buyer,
                shipping=replace(shipping, pincode="5600"),
                payment_mode="cod",
                session=session,
            )
        )

        assert isinstance(result.failure(), ValidationError)
        assert "pincode" in result.failure().message
        assert all_orders(adapters) == ()

    def test_unknown_payment_mode(self, usecases, buyer, shipping):
        session = session_for(usecases, buyer, CheckoutSource.BUY_NOW, "P1")

        result = usecases.place_order.place_order(
            PlaceOrderCommand(buyer=buyer, shipping=shipping, payment_mode="card", session=session)
        )

        assert isinstance(result.failure(), ValidationError)

    def test_product_removed_after_session_was_built(self, usecases, products, buyer, shipping):
        session = session_for(usecases, buyer, CheckoutSource.BUY_NOW, "P1")
        del products._products["P1"]

        result = usecases.place_order.place_order(
            PlaceOrderCommand(buyer=buyer, shipping=shipping, payment_mode="cod", session=session)
        )

        err = result.failure()
        assert isinstance(err, NotFound)
        assert err.key == "P1"


class TestCompensation:
    def test_line_failure_deletes_order(self, adapters, products, buyer, checkout, fill_cart):
        fill_cart(buyer, P1=2)
        adapters.orders.fail_lines = True

        result = checkout(buyer)

        assert isinstance(result.failure(), StorageFailure)
        assert all_orders(adapters) == ()
        assert products.get_product("P1").unwrap().stock == 10
        assert len(adapters.carts.list(buyer.user_id).unwrap()) == 1

    def test_duplicate_lines_are_rolled_back(self, usecases, adapters, buyer, shipping):
        session = session_for(usecases, buyer, CheckoutSource.BUY_NOW, "P1")
        doubled = replace(session, lines=session.lines * 2)

        result = usecases.place_order.place_order(
            PlaceOrderCommand(buyer=buyer, shipping=shipping, payment_mode="cod", session=doubled)
        )

        assert isinstance(result.failure(), StorageFailure)
        assert all_orders(adapters) == ()

    def test_order_insert_failure(self, adapters, buyer, checkout, fill_cart):
        fill_cart(buyer, P1=1)
        adapters.orders.fail_create = True

        assert isinstance(checkout(buyer).failure(), StorageFailure)


class TestBestEffortSteps:
    def test_stock_failure_is_recorded_not_raised(self, adapters, products, buyer, checkout, fill_cart):
        fill_cart(buyer, P1=1, P2=1)
        products.failing_writes = {"P2"}

        receipt = checkout(buyer).unwrap()

        (failure,) = receipt.reconciliation_failures
        assert (failure.product_id, failure.quantity) == ("P2", 1)
        assert products.get_product("P1").unwrap().stock == 9
        assert products.get_product("P2").unwrap().stock == 5

        (entry,) = adapters.outbox.list().unwrap()
        assert entry.order_id == str(receipt.order.order_id.value)
        assert entry.direction is Direction.DECREMENT
        assert entry.status is EntryStatus.PENDING

    def test_notification_failure_does_not_fail_order(self, adapters, buyer, checkout, fill_cart):
        fill_cart(buyer, P1=1)
        adapters.notifier.fail = True

        assert isinstance(checkout(buyer), Success)

    def test_cart_clear_failure_does_not_fail_order(self, adapters, buyer, checkout, fill_cart):
        fill_cart(buyer, P1=1)
        adapters.carts.fail_writes = True

        assert isinstance(checkout(buyer), Success)
        assert len(adapters.carts.list(buyer.user_id).unwrap()) == 1


class StaleVerdict:
    """A validator that always answers yes, as two racing buyers would both see."""

    def validate(self, lines):
        return Success(StockVerdict(valid=True, per_item=()))


class TestLastUnitRace:
    def test_sequential_second_buyer_is_rejected(self, usecases, products, buyer, other_buyer, shipping, checkout):
        late = session_for(usecases, other_buyer, CheckoutSource.BUY_NOW, "LAST")

        assert isinstance(checkout(buyer, CheckoutSource.BUY_NOW, "LAST"), Success)
        result = usecases.place_order.place_order(
            PlaceOrderCommand(buyer=other_buyer, shipping=shipping, payment_mode="cod", session=late)
        )

        assert isinstance(result.failure(), InsufficientStock)
        assert products.get_product("LAST").unwrap().stock == 0

    def test_stale_verdicts_never_oversell(self, usecases, adapters, products, buyer, other_buyer, shipping):
        service = replace(
            usecases.place_order, deps=replace(usecases.place_order.deps, stock=StaleVerdict())
        )
        sessions = {
            b.user_id: session_for(usecases, b, CheckoutSource.BUY_NOW, "LAST")
            for b in (buyer, other_buyer)
        }
        barrier = threading.Barrier(2)
        receipts = []

        def buy(b):
            barrier.wait()
            receipts.append(
                service.place_order(
                    PlaceOrderCommand(
                        buyer=b, shipping=shipping, payment_mode="cod", session=sessions[b.user_id]
                    )
                ).unwrap()
            )

        threads = [threading.Thread(target=buy, args=(b,)) for b in (buyer, other_buyer)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        last = products.get_product("LAST").unwrap()
        assert (last.stock, last.orders_count) == (0, 1)
        assert len(receipts) == 2
        assert sum(len(r.reconciliation_failures) for r in receipts) == 1
        assert len(adapters.outbox.list(EntryStatus.PENDING).unwrap()) == 1
