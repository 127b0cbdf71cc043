"""Tests for the SQLAlchemy-backed stores (sqlite file per test)."""

import threading
from dataclasses import replace
from datetime import timedelta

import pytest
from returns.result import Failure, Success

from storefront_checkout.adapters.outbound.in_memory_change_feed import InMemoryChangeFeed
from storefront_checkout.adapters.outbound.logging_notifier import LoggingNotifier
from storefront_checkout.adapters.outbound.sql.carts import SqlCartRepository
from storefront_checkout.adapters.outbound.sql.orders import SqlOrderRepository
from storefront_checkout.adapters.outbound.sql.outbox import SqlReconciliationOutbox
from storefront_checkout.adapters.outbound.sql.products import SqlProductStore
from storefront_checkout.adapters.outbound.sql.session import create_database
from storefront_checkout.bootstrap import Adapters, wire
from storefront_checkout.core.domain.model.catalog import CheckoutSource
from storefront_checkout.core.domain.model.errors import (
    InsufficientStock,
    InvalidTransition,
    NotFound,
    StorageFailure,
)
from storefront_checkout.core.domain.model.inventory import Direction, EntryStatus
from storefront_checkout.core.domain.model.order import Money, OrderStatus, now_utc
from storefront_checkout.core.ports.inbound.cancel_order import CancelOrderCommand
from storefront_checkout.core.ports.inbound.checkout_session import BuildCheckoutSessionQuery
from storefront_checkout.core.ports.inbound.get_order import GetOrderQuery
from storefront_checkout.core.ports.inbound.list_orders import ListOrdersQuery, OrderStatsQuery
from storefront_checkout.core.ports.inbound.place_order import PlaceOrderCommand


@pytest.fixture
def sessions(tmp_path):
    factory, engine = create_database(f"sqlite:///{tmp_path / 'shop.db'}")
    yield factory
    engine.dispose()


@pytest.fixture
def store(sessions, seed):
    s = SqlProductStore(sessions)
    assert s.upsert(seed).unwrap() == 4
    return s


@pytest.fixture
def sql_usecases(sessions, store, settings):
    adapters = Adapters(
        catalog=store,
        ledger=store,
        orders=SqlOrderRepository(sessions),
        carts=SqlCartRepository(sessions),
        outbox=SqlReconciliationOutbox(sessions),
        notifier=LoggingNotifier(),
        feed=InMemoryChangeFeed(),
    )
    return wire(adapters, settings)


def level(store, product_id):
    lv = store.levels([product_id]).unwrap()[product_id]
    return lv.stock, lv.orders_count


class TestProductStore:
    def test_catalog_reads(self, store):
        assert store.get_product("P2").unwrap().sale_price == 200
        assert store.get_product("NOPE").unwrap() is None
        assert {p.product_id for p in store.get_products_by_ids(["P1", "NOPE"]).unwrap()} == {"P1"}

    def test_conditional_decrement(self, store):
        assert store.decrement("P1", 3).unwrap().stock == 7
        assert level(store, "P1") == (7, 3)

    def test_decrement_beyond_stock_changes_nothing(self, store):
        err = store.decrement("LAST", 2).failure()

        assert isinstance(err, InsufficientStock)
        assert err.items[0].available == 1
        assert level(store, "LAST") == (1, 0)

    def test_decrement_unknown_product(self, store):
        assert isinstance(store.decrement("NOPE", 1).failure(), NotFound)

    def test_increment_floors_orders(self, store):
        store.decrement("P1", 1).unwrap()

        assert store.increment("P1", 3).unwrap().orders_count == 0
        assert level(store, "P1") == (12, 0)

    def test_concurrent_decrements_of_last_unit(self, store):
        barrier = threading.Barrier(6)
        results = []

        def buy():
            barrier.wait()
            results.append(store.decrement("LAST", 1))

        threads = [threading.Thread(target=buy) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(isinstance(r, Success) for r in results) == 1
        assert level(store, "LAST") == (0, 1)

    def test_broken_database_is_a_storage_failure(self, tmp_path):
        factory, engine = create_database(f"sqlite:///{tmp_path / 'other.db'}")
        engine.dispose()
        (tmp_path / "other.db").unlink()
        (tmp_path / "other.db").mkdir()

        result = SqlProductStore(factory).get_product("P1")

        assert isinstance(result, Failure)
        assert isinstance(result.failure(), StorageFailure)


class TestCartRepository:
    def test_upsert_and_quantities(self, sessions):
        carts = SqlCartRepository(sessions)

        assert carts.add("u-1", "P1").unwrap().quantity == 1
        assert carts.add("u-1", "P1").unwrap().quantity == 2
        assert carts.set_quantity("u-1", "P1", 5).unwrap().quantity == 5
        assert carts.get("u-1", "P1").unwrap().quantity == 5
        assert carts.get("u-2", "P1").unwrap() is None

    def test_missing_lines(self, sessions):
        carts = SqlCartRepository(sessions)

        assert isinstance(carts.remove("u-1", "P1").failure(), NotFound)
        assert isinstance(carts.set_quantity("u-1", "P1", 2).failure(), NotFound)

    def test_clear_is_per_user(self, sessions):
        carts = SqlCartRepository(sessions)
        carts.add("u-1", "P1").unwrap()
        carts.add("u-1", "P2").unwrap()
        carts.add("u-2", "P1").unwrap()

        assert carts.clear("u-1").unwrap() == 2
        assert carts.list("u-1").unwrap() == ()
        assert len(carts.list("u-2").unwrap()) == 1


class TestOutbox:
    def test_record_mark_and_list(self, sessions):
        outbox = SqlReconciliationOutbox(sessions)
        entry = outbox.record("o-1", "P1", 2, Direction.INCREMENT, "timeout").unwrap()

        assert [e.entry_id for e in outbox.pending(10).unwrap()] == [entry.entry_id]

        marked = outbox.mark(entry.entry_id, EntryStatus.NEEDS_REVIEW, 5, "still down").unwrap()

        assert marked.status is EntryStatus.NEEDS_REVIEW
        assert outbox.pending(10).unwrap() == ()
        (parked,) = outbox.list(EntryStatus.NEEDS_REVIEW).unwrap()
        assert (parked.direction, parked.attempts, parked.last_error) == (
            Direction.INCREMENT,
            5,
            "still down",
        )

    def test_claim_wins_once(self, sessions):
        outbox = SqlReconciliationOutbox(sessions)
        entry = outbox.record("o-1", "P1", 2, Direction.DECREMENT, "timeout").unwrap()

        assert outbox.claim(entry.entry_id).unwrap() is True
        assert outbox.claim(entry.entry_id).unwrap() is False
        assert outbox.claim("nope").unwrap() is False
        assert outbox.pending(10).unwrap() == ()
        (claimed,) = outbox.list(EntryStatus.IN_PROGRESS).unwrap()
        assert claimed.entry_id == entry.entry_id

    def test_mark_unknown_entry(self, sessions):
        outbox = SqlReconciliationOutbox(sessions)

        assert isinstance(outbox.mark("nope", EntryStatus.DONE, 1, None).failure(), NotFound)


class TestCheckoutOnSql:
    def test_place_and_cancel(self, sql_usecases, store, buyer, shipping):
        sql_usecases.carts.add(buyer, "P1").unwrap()
        sql_usecases.carts.add(buyer, "P1").unwrap()

        receipt = place(sql_usecases, buyer, shipping).unwrap()

        assert level(store, "P1") == (8, 2)
        assert sql_usecases.carts.list(buyer).unwrap() == ()
        details = sql_usecases.get_order.get_order(
            GetOrderQuery(order_id=str(receipt.order.order_id.value), buyer=buyer)
        ).unwrap()
        assert details.order.total_amount == Money.of("200.00")
        assert details.order.shipping_address == shipping
        assert details.order.created_at.tzinfo is not None
        assert [(ln.product_id, ln.quantity, ln.price) for ln in details.lines] == [
            ("P1", 2, Money.of("100.00"))
        ]

        command = CancelOrderCommand(order_id=str(receipt.order.order_id.value), buyer=buyer)
        assert sql_usecases.cancel_order.cancel_order(command).unwrap().status is OrderStatus.CANCELLED
        assert level(store, "P1") == (10, 0)
        assert isinstance(sql_usecases.cancel_order.cancel_order(command).failure(), InvalidTransition)

    def test_duplicate_lines_roll_back(self, sql_usecases, buyer, shipping):
        session = build_session(sql_usecases, buyer, "P1")
        doubled = replace(session, lines=session.lines * 2)

        result = sql_usecases.place_order.place_order(
            PlaceOrderCommand(buyer=buyer, shipping=shipping, payment_mode="cod", session=doubled)
        )

        assert isinstance(result.failure(), StorageFailure)
        assert sql_usecases.list_orders.list_orders(ListOrdersQuery()).unwrap() == ()

    def test_list_sort_and_stats(self, sql_usecases, buyer, other_buyer, shipping):
        place(sql_usecases, buyer, shipping, "P1").unwrap()
        place(sql_usecases, other_buyer, shipping, "P2").unwrap()

        by_total = sql_usecases.list_orders.list_orders(
            ListOrdersQuery(sort_by="total", sort_dir="asc")
        ).unwrap()
        assert [o.total_amount for o in by_total] == [Money.of("100.00"), Money.of("200.00")]

        mine = sql_usecases.list_orders.list_orders(ListOrdersQuery(user_id=buyer.user_id)).unwrap()
        assert [o.user_id for o in mine] == [buyer.user_id]

        stats = sql_usecases.list_orders.stats(OrderStatsQuery()).unwrap()
        assert (stats.total_orders, stats.total_revenue) == (2, Money.of("300.00"))
        today = sql_usecases.list_orders.stats(OrderStatsQuery(day=now_utc().date())).unwrap()
        assert today.total_orders == 2
        yesterday = now_utc().date() - timedelta(days=1)
        assert sql_usecases.list_orders.stats(OrderStatsQuery(day=yesterday)).unwrap().total_orders == 0

    def test_status_transition_is_conditional(self, sql_usecases, sessions, buyer, shipping):
        order = place(sql_usecases, buyer, shipping, "P1").unwrap().order
        orders = SqlOrderRepository(sessions)

        moved = orders.transition(order.order_id, {OrderStatus.PENDING}, OrderStatus.PACKED).unwrap()
        assert moved.status is OrderStatus.PACKED

        err = orders.transition(order.order_id, {OrderStatus.PENDING}, OrderStatus.CANCELLED).failure()
        assert isinstance(err, InvalidTransition)
        assert err.current == "packed"

    def test_reconciliation_drain(self, sql_usecases, sessions, store):
        SqlReconciliationOutbox(sessions).record("o-1", "P1", 2, Direction.DECREMENT, "timeout").unwrap()

        report = sql_usecases.reconciliation.run_once().unwrap()

        assert report.succeeded == 1
        assert level(store, "P1") == (8, 2)


def build_session(usecases, buyer, product_id):
    return usecases.checkout_session.build(
        BuildCheckoutSessionQuery(
            source=CheckoutSource.BUY_NOW, buyer=buyer, product_id=product_id
        )
    ).unwrap()


def place(usecases, buyer, shipping, product_id=None):
    if product_id is None:
        session = usecases.checkout_session.build(
            BuildCheckoutSessionQuery(source=CheckoutSource.CART, buyer=buyer)
        ).unwrap()
    else:
        session = build_session(usecases, buyer, product_id)
    return usecases.place_order.place_order(
        PlaceOrderCommand(buyer=buyer, shipping=shipping, payment_mode="cod", session=session)
    )
