"""Pytest fixtures for storefront_checkout tests."""

from decimal import Decimal

import pytest
from returns.result import Success

from storefront_checkout.adapters.outbound.in_memory_carts import InMemoryCartRepository
from storefront_checkout.adapters.outbound.in_memory_change_feed import InMemoryChangeFeed
from storefront_checkout.adapters.outbound.in_memory_orders import InMemoryOrderRepository
from storefront_checkout.adapters.outbound.in_memory_outbox import InMemoryReconciliationOutbox
from storefront_checkout.adapters.outbound.in_memory_products import InMemoryProductStore
from storefront_checkout.adapters.outbound.logging_notifier import LoggingNotifier
from storefront_checkout.bootstrap import Adapters, wire
from storefront_checkout.config import Settings
from storefront_checkout.core.domain.model.catalog import Buyer, CheckoutSource, Product
from storefront_checkout.core.domain.model.order import ShippingAddress
from storefront_checkout.core.ports.inbound.checkout_session import BuildCheckoutSessionQuery
from storefront_checkout.core.ports.inbound.place_order import PlaceOrderCommand


def demo_catalog():
    return (
        Product("P1", "Cotton Kurta", Decimal("100.00"), stock=10),
        Product("P2", "Silk Dupatta", Decimal("250.00"), stock=5, sale_price=Decimal("200.00")),
        Product("LAST", "Cushion", Decimal("100.00"), stock=1),
        Product("GONE", "Sold Out Lamp", Decimal("40.00"), stock=0),
    )


@pytest.fixture
def seed():
    return demo_catalog()


@pytest.fixture
def settings():
    return Settings(seed_demo=False, reconcile_max_attempts=3)


@pytest.fixture
def products():
    return InMemoryProductStore.with_products(demo_catalog())


@pytest.fixture
def adapters(products):
    return Adapters(
        catalog=products,
        ledger=products,
        orders=InMemoryOrderRepository(),
        carts=InMemoryCartRepository(),
        outbox=InMemoryReconciliationOutbox(),
        notifier=LoggingNotifier(),
        feed=InMemoryChangeFeed(),
    )


@pytest.fixture
def usecases(adapters, settings):
    return wire(adapters, settings)


@pytest.fixture
def buyer():
    return Buyer(user_id="u-1", email="asha@example.com")


@pytest.fixture
def other_buyer():
    return Buyer(user_id="u-2", email="ravi@example.com")


@pytest.fixture
def shipping():
    return ShippingAddress(
        name="Asha Rao",
        email="asha@example.com",
        phone="98765 43210",
        address="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pincode="560001",
    )


@pytest.fixture
def checkout(usecases, shipping):
    """Build a session and place an order in one call, as the HTTP route does."""

    def run(buyer, source=CheckoutSource.CART, product_id=None, payment_mode="cod"):
        session = usecases.checkout_session.build(
            BuildCheckoutSessionQuery(source=source, buyer=buyer, product_id=product_id)
        )
        assert isinstance(session, Success), session
        return usecases.place_order.place_order(
            PlaceOrderCommand(
                buyer=buyer,
                shipping=shipping,
                payment_mode=payment_mode,
                session=session.unwrap(),
            )
        )

    return run


@pytest.fixture
def fill_cart(usecases):
    def run(buyer, **quantities):
        for product_id, quantity in quantities.items():
            assert isinstance(usecases.carts.add(buyer, product_id), Success)
            if quantity != 1:
                assert isinstance(
                    usecases.carts.set_quantity(buyer, product_id, quantity), Success
                )

    return run
