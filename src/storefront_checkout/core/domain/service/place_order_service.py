from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Sequence, Tuple

from returns.pipeline import flow
from returns.pointfree import bind
from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.catalog import Buyer, CheckoutSource, Product
from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    InsufficientStock,
    NotFound,
    PartialReconciliationFailure,
)
from storefront_checkout.core.domain.model.inventory import (
    Direction,
    StockRequest,
    StockVerdict,
)
from storefront_checkout.core.domain.model.order import (
    Order,
    OrderId,
    OrderLine,
    OrderStatus,
    PaymentMode,
    fold_money,
    now_utc,
)
from storefront_checkout.core.domain.service.inventory_reconciler import InventoryReconciler
from storefront_checkout.core.domain.service.validation import (
    parse_payment_mode,
    require_buyer,
    validate_requests,
    validate_shipping,
)
from storefront_checkout.core.ports.inbound.place_order import (
    CheckoutReceipt,
    PlaceOrderCommand,
    PlaceOrderUseCase,
)
from storefront_checkout.core.ports.inbound.validate_stock import ValidateStockUseCase
from storefront_checkout.core.ports.outbound.carts import CartRepository
from storefront_checkout.core.ports.outbound.catalog import CatalogGateway
from storefront_checkout.core.ports.outbound.change_feed import (
    Change,
    ChangeFeed,
    cart_topic,
    order_topic,
)
from storefront_checkout.core.ports.outbound.notifications import Notifier
from storefront_checkout.core.ports.outbound.orders import OrderRepository
from storefront_checkout.core.ports.outbound.outbox import ReconciliationOutbox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaceOrderDeps:
    catalog: CatalogGateway
    stock: ValidateStockUseCase
    reconciler: InventoryReconciler
    orders: OrderRepository
    carts: CartRepository
    outbox: ReconciliationOutbox
    notifier: Notifier
    feed: ChangeFeed


@dataclass(frozen=True)
class PlaceOrderContext:
    buyer: Buyer
    command: PlaceOrderCommand
    payment_mode: PaymentMode
    order: Order | None = None
    lines: Tuple[OrderLine, ...] = ()

    @property
    def requests(self) -> Tuple[StockRequest, ...]:
        return tuple(
            StockRequest(ln.product_id, ln.quantity) for ln in self.command.session.lines
        )


@dataclass(frozen=True)
class PlaceOrderService(PlaceOrderUseCase):
    """
    Checkout coordinator.

    Steps run strictly in order. Validation and the stock pre-check write
    nothing; order and line creation are all-or-nothing (a failed line insert
    deletes the order again); stock reconciliation, cart clearing and
    notifications are best-effort and never undo a committed order.
    """

    deps: PlaceOrderDeps

    def place_order(
        self, command: PlaceOrderCommand
    ) -> Result[CheckoutReceipt, CheckoutError]:
        committed = flow(
            command,
            _validate_command,
            bind(self._require_products),
            bind(self._check_stock),
            bind(_build_order),
            bind(self._persist_order),
            bind(self._persist_lines),
        )
        if isinstance(committed, Failure):
            return committed

        ctx = committed.unwrap()
        logger.info(
            "order %s placed by user=%s total=%s lines=%d",
            ctx.order.order_id.value,
            ctx.buyer.user_id,
            ctx.order.total_amount.amount,
            len(ctx.lines),
        )

        failures = self._reconcile(ctx)
        if ctx.command.session.source is CheckoutSource.CART:
            self._clear_cart(ctx)
        self._notify(ctx)

        return Success(
            CheckoutReceipt(
                order=ctx.order, lines=ctx.lines, reconciliation_failures=failures
            )
        )

    # ---- transactional steps -------------------------------------------------

    def _require_products(
        self, ctx: PlaceOrderContext
    ) -> Result[PlaceOrderContext, CheckoutError]:
        ids = tuple(dict.fromkeys(r.product_id for r in ctx.requests))

        def check(products: Sequence[Product]) -> Result[PlaceOrderContext, CheckoutError]:
            known = {p.product_id for p in products}
            missing = [pid for pid in ids if pid not in known]
            if missing:
                return Failure(
                    NotFound("product not found", entity="product", key=missing[0])
                )
            return Success(ctx)

        return self.deps.catalog.get_products_by_ids(ids).bind(check)

    def _check_stock(
        self, ctx: PlaceOrderContext
    ) -> Result[PlaceOrderContext, CheckoutError]:
        def judge(verdict: StockVerdict) -> Result[PlaceOrderContext, CheckoutError]:
            if not verdict.valid:
                return Failure(
                    InsufficientStock("insufficient stock", items=verdict.per_item)
                )
            return Success(ctx)

        return self.deps.stock.validate(ctx.requests).bind(judge)

    def _persist_order(
        self, ctx: PlaceOrderContext
    ) -> Result[PlaceOrderContext, CheckoutError]:
        return self.deps.orders.create(ctx.order).map(lambda o: replace(ctx, order=o))

    def _persist_lines(
        self, ctx: PlaceOrderContext
    ) -> Result[PlaceOrderContext, CheckoutError]:
        saved = self.deps.orders.add_lines(ctx.order.order_id, ctx.lines)
        if isinstance(saved, Success):
            return Success(replace(ctx, lines=tuple(saved.unwrap())))

        # compensate: an order must never exist without its lines
        undo = self.deps.orders.delete(ctx.order.order_id)
        if isinstance(undo, Failure):
            logger.error(
                "rollback of order %s failed after line insert error: %s",
                ctx.order.order_id.value,
                undo.failure(),
            )
        else:
            logger.warning(
                "order %s rolled back: %s", ctx.order.order_id.value, saved.failure()
            )
        return saved.map(lambda _: ctx)

    # ---- best-effort steps ---------------------------------------------------

    def _reconcile(
        self, ctx: PlaceOrderContext
    ) -> Tuple[PartialReconciliationFailure, ...]:
        order_id = str(ctx.order.order_id.value)
        report = self.deps.reconciler.apply(ctx.requests, Direction.DECREMENT)
        failures = tuple(
            PartialReconciliationFailure(
                "stock not adjusted for committed order",
                product_id=f.product_id,
                quantity=f.quantity,
                reason=f.reason,
            )
            for f in report.failed
        )
        for f in failures:
            logger.warning("order %s: %s", order_id, f)
            recorded = self.deps.outbox.record(
                order_id, f.product_id, f.quantity, Direction.DECREMENT, f.reason
            )
            if isinstance(recorded, Failure):
                logger.error(
                    "order %s: could not queue reconciliation for product=%s: %s",
                    order_id,
                    f.product_id,
                    recorded.failure(),
                )
        return failures

    def _clear_cart(self, ctx: PlaceOrderContext) -> None:
        cleared = self.deps.carts.clear(ctx.buyer.user_id)
        if isinstance(cleared, Failure):
            logger.warning(
                "failed to clear cart for user=%s: %s", ctx.buyer.user_id, cleared.failure()
            )
        # a refresh is signalled either way so open cart views resync
        self.deps.feed.publish(Change(cart_topic(ctx.buyer.user_id), "DELETE"))

    def _notify(self, ctx: PlaceOrderContext) -> None:
        order_id = str(ctx.order.order_id.value)
        self.deps.feed.publish(Change(order_topic(order_id), "INSERT", key=order_id))
        sent = self.deps.notifier.notify_order_confirmed(ctx.order, ctx.lines)
        if isinstance(sent, Failure):
            logger.warning(
                "order confirmation for %s not sent: %s", order_id, sent.failure()
            )


# ---- pure helpers ------------------------------------------------------------


def _validate_command(
    cmd: PlaceOrderCommand,
) -> Result[PlaceOrderContext, CheckoutError]:
    requests = tuple(StockRequest(ln.product_id, ln.quantity) for ln in cmd.session.lines)
    return flow(
        require_buyer(cmd.buyer),
        bind(lambda buyer: validate_requests(requests).map(lambda _: buyer)),
        bind(lambda buyer: validate_shipping(cmd.shipping).map(lambda _: buyer)),
        bind(
            lambda buyer: parse_payment_mode(cmd.payment_mode).map(
                lambda mode: PlaceOrderContext(buyer=buyer, command=cmd, payment_mode=mode)
            )
        ),
    )


def _build_order(ctx: PlaceOrderContext) -> Result[PlaceOrderContext, CheckoutError]:
    session = ctx.command.session
    order_id = OrderId.new()
    lines = tuple(
        OrderLine(
            order_id=order_id,
            product_id=ln.product_id,
            quantity=ln.quantity,
            price=ln.unit_price,
        )
        for ln in session.lines
    )
    now = now_utc()
    order = Order(
        order_id=order_id,
        user_id=ctx.buyer.user_id,
        email=ctx.command.shipping.email or ctx.buyer.email,
        total_amount=fold_money((ln.subtotal() for ln in lines), currency=session.currency),
        status=OrderStatus.PENDING,
        payment_mode=ctx.payment_mode,
        shipping_address=ctx.command.shipping,
        created_at=now,
        updated_at=now,
    )
    return Success(replace(ctx, order=order, lines=lines))
