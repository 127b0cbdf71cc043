from __future__ import annotations

import logging.config
from dataclasses import dataclass
from decimal import Decimal

from storefront_checkout.adapters.outbound.in_memory_carts import InMemoryCartRepository
from storefront_checkout.adapters.outbound.in_memory_change_feed import InMemoryChangeFeed
from storefront_checkout.adapters.outbound.in_memory_orders import InMemoryOrderRepository
from storefront_checkout.adapters.outbound.in_memory_outbox import InMemoryReconciliationOutbox
from storefront_checkout.adapters.outbound.in_memory_products import InMemoryProductStore
from storefront_checkout.adapters.outbound.logging_notifier import LoggingNotifier
from storefront_checkout.adapters.outbound.sql.carts import SqlCartRepository
from storefront_checkout.adapters.outbound.sql.orders import SqlOrderRepository
from storefront_checkout.adapters.outbound.sql.outbox import SqlReconciliationOutbox
from storefront_checkout.adapters.outbound.sql.products import SqlProductStore
from storefront_checkout.adapters.outbound.sql.session import create_database
from storefront_checkout.config import Settings
from storefront_checkout.core.domain.model.catalog import Buyer, Product
from storefront_checkout.core.domain.service.cancel_order_service import (
    CancelOrderDeps,
    CancelOrderService,
)
from storefront_checkout.core.domain.service.cart_service import CartService, CartServiceDeps
from storefront_checkout.core.domain.service.cart_synchronizer import CartSynchronizer
from storefront_checkout.core.domain.service.checkout_session_service import (
    CheckoutSessionDeps,
    CheckoutSessionService,
)
from storefront_checkout.core.domain.service.get_order_service import (
    GetOrderDeps,
    GetOrderService,
)
from storefront_checkout.core.domain.service.inventory_reconciler import (
    InventoryReconciler,
    InventoryReconcilerDeps,
)
from storefront_checkout.core.domain.service.list_orders_service import (
    ListOrdersDeps,
    ListOrdersService,
)
from storefront_checkout.core.domain.service.order_status_service import (
    SetOrderStatusDeps,
    SetOrderStatusService,
)
from storefront_checkout.core.domain.service.place_order_service import (
    PlaceOrderDeps,
    PlaceOrderService,
)
from storefront_checkout.core.domain.service.reconciliation_worker import (
    ReconciliationWorker,
    ReconciliationWorkerDeps,
)
from storefront_checkout.core.domain.service.stock_validator import (
    StockValidator,
    StockValidatorDeps,
)
from storefront_checkout.core.ports.outbound.carts import CartRepository
from storefront_checkout.core.ports.outbound.catalog import CatalogGateway
from storefront_checkout.core.ports.outbound.change_feed import ChangeFeed
from storefront_checkout.core.ports.outbound.notifications import Notifier
from storefront_checkout.core.ports.outbound.orders import OrderRepository
from storefront_checkout.core.ports.outbound.outbox import ReconciliationOutbox
from storefront_checkout.core.ports.outbound.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

DEMO_PRODUCTS = (
    Product("SKU-1", "Cotton Kurta", Decimal("1200.00"), stock=10),
    Product("SKU-2", "Silk Dupatta", Decimal("850.00"), stock=5, sale_price=Decimal("699.00")),
    Product("SKU-3", "Block Print Cushion", Decimal("100.00"), stock=1),
)


@dataclass(frozen=True)
class Adapters:
    catalog: CatalogGateway
    ledger: StockLedger
    orders: OrderRepository
    carts: CartRepository
    outbox: ReconciliationOutbox
    notifier: Notifier
    feed: ChangeFeed


@dataclass(frozen=True)
class UseCases:
    validate_stock: StockValidator
    checkout_session: CheckoutSessionService
    place_order: PlaceOrderService
    cancel_order: CancelOrderService
    set_status: SetOrderStatusService
    get_order: GetOrderService
    list_orders: ListOrdersService
    carts: CartService
    reconciliation: ReconciliationWorker
    feed: ChangeFeed

    def cart_view(self, buyer: Buyer) -> CartSynchronizer:
        return CartSynchronizer(buyer, self.carts, self.feed)


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "verbose": {
                    "format": "{levelname} {asctime} {name} {message}",
                    "style": "{",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "verbose",
                },
            },
            "root": {"handlers": ["console"], "level": "WARNING"},
            "loggers": {
                "storefront_checkout": {
                    "handlers": ["console"],
                    "level": level,
                    "propagate": False,
                },
            },
        }
    )


def build_adapters(settings: Settings) -> Adapters:
    feed = InMemoryChangeFeed()
    notifier = LoggingNotifier()

    if settings.storage == "sql":
        sessions, _ = create_database(settings.database_url)
        products = SqlProductStore(sessions)
        if settings.seed_demo:
            products.upsert(DEMO_PRODUCTS)
        logger.info("using sql storage at %s", settings.database_url)
        return Adapters(
            catalog=products,
            ledger=products,
            orders=SqlOrderRepository(sessions, currency=settings.currency),
            carts=SqlCartRepository(sessions),
            outbox=SqlReconciliationOutbox(sessions),
            notifier=notifier,
            feed=feed,
        )

    store = InMemoryProductStore.with_products(DEMO_PRODUCTS if settings.seed_demo else ())
    return Adapters(
        catalog=store,
        ledger=store,
        orders=InMemoryOrderRepository(currency=settings.currency),
        carts=InMemoryCartRepository(),
        outbox=InMemoryReconciliationOutbox(),
        notifier=notifier,
        feed=feed,
    )


def wire(adapters: Adapters, settings: Settings) -> UseCases:
    stock = StockValidator(StockValidatorDeps(catalog=adapters.catalog, ledger=adapters.ledger))
    reconciler = InventoryReconciler(InventoryReconcilerDeps(ledger=adapters.ledger))
    cancel_order = CancelOrderService(
        CancelOrderDeps(
            orders=adapters.orders,
            reconciler=reconciler,
            outbox=adapters.outbox,
            notifier=adapters.notifier,
            feed=adapters.feed,
        )
    )

    return UseCases(
        validate_stock=stock,
        checkout_session=CheckoutSessionService(
            CheckoutSessionDeps(
                catalog=adapters.catalog, carts=adapters.carts, currency=settings.currency
            )
        ),
        place_order=PlaceOrderService(
            PlaceOrderDeps(
                catalog=adapters.catalog,
                stock=stock,
                reconciler=reconciler,
                orders=adapters.orders,
                carts=adapters.carts,
                outbox=adapters.outbox,
                notifier=adapters.notifier,
                feed=adapters.feed,
            )
        ),
        cancel_order=cancel_order,
        set_status=SetOrderStatusService(
            SetOrderStatusDeps(
                orders=adapters.orders,
                cancellations=cancel_order,
                notifier=adapters.notifier,
                feed=adapters.feed,
            )
        ),
        get_order=GetOrderService(GetOrderDeps(orders=adapters.orders)),
        list_orders=ListOrdersService(ListOrdersDeps(orders=adapters.orders)),
        carts=CartService(
            CartServiceDeps(carts=adapters.carts, catalog=adapters.catalog, feed=adapters.feed)
        ),
        reconciliation=ReconciliationWorker(
            ReconciliationWorkerDeps(
                outbox=adapters.outbox,
                reconciler=reconciler,
                max_attempts=settings.reconcile_max_attempts,
            )
        ),
        feed=adapters.feed,
    )


def build_usecases(settings: Settings | None = None) -> UseCases:
    settings = settings or Settings.from_env()
    return wire(build_adapters(settings), settings)
