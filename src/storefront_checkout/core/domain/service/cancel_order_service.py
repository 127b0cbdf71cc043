from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from returns.pipeline import flow
from returns.pointfree import bind
from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.catalog import Buyer
from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    Forbidden,
    InvalidTransition,
)
from storefront_checkout.core.domain.model.inventory import Direction, StockRequest
from storefront_checkout.core.domain.model.order import (
    CANCELLABLE_STATUSES,
    Order,
    OrderLine,
    OrderStatus,
    TERMINAL_STATUSES,
)
from storefront_checkout.core.domain.service.inventory_reconciler import InventoryReconciler
from storefront_checkout.core.domain.service.validation import parse_order_id, require_buyer
from storefront_checkout.core.ports.inbound.cancel_order import (
    CancelOrderCommand,
    CancelOrderUseCase,
)
from storefront_checkout.core.ports.outbound.change_feed import Change, ChangeFeed, order_topic
from storefront_checkout.core.ports.outbound.notifications import Notifier
from storefront_checkout.core.ports.outbound.orders import OrderRepository
from storefront_checkout.core.ports.outbound.outbox import ReconciliationOutbox

logger = logging.getLogger(__name__)

NON_TERMINAL_STATUSES = frozenset(OrderStatus) - TERMINAL_STATUSES


@dataclass(frozen=True)
class CancelOrderDeps:
    orders: OrderRepository
    reconciler: InventoryReconciler
    outbox: ReconciliationOutbox
    notifier: Notifier
    feed: ChangeFeed


@dataclass(frozen=True)
class CancelOrderService(CancelOrderUseCase):
    deps: CancelOrderDeps

    def cancel_order(self, command: CancelOrderCommand) -> Result[Order, CheckoutError]:
        return flow(
            require_buyer(command.buyer),
            bind(lambda buyer: self._load_owned(command.order_id, buyer)),
            bind(_require_cancellable),
            bind(lambda order: self.cancel(order, CANCELLABLE_STATUSES)),
        )

    def cancel(
        self, order: Order, allowed_from: frozenset[OrderStatus]
    ) -> Result[Order, CheckoutError]:
        """
        Flip the order to cancelled, then put its units back on the shelf.

        The flip is conditional on the current status, so of two racing
        cancellations exactly one wins and restocking happens once.
        """
        lines = self.deps.orders.get_lines(order.order_id)
        if isinstance(lines, Failure):
            return lines

        cancelled = self.deps.orders.transition(
            order.order_id, allowed_from, OrderStatus.CANCELLED
        )
        if isinstance(cancelled, Failure):
            return cancelled

        result = cancelled.unwrap()
        logger.info("order %s cancelled (was %s)", order.order_id.value, order.status.value)
        self._restock(result, lines.unwrap())
        announce_status(self.deps.notifier, self.deps.feed, result)
        return Success(result)

    def _load_owned(self, raw_id: str, buyer: Buyer) -> Result[Order, CheckoutError]:
        def owned(order: Order) -> Result[Order, CheckoutError]:
            if order.user_id != buyer.user_id:
                return Failure(Forbidden("order belongs to another buyer"))
            return Success(order)

        return parse_order_id(raw_id).bind(self.deps.orders.get).bind(owned)

    def _restock(self, order: Order, lines: Sequence[OrderLine]) -> None:
        order_id = str(order.order_id.value)
        report = self.deps.reconciler.apply(
            tuple(StockRequest(ln.product_id, ln.quantity) for ln in lines),
            Direction.INCREMENT,
        )
        for f in report.failed:
            logger.warning(
                "order %s: restock of product=%s qty=%d failed: %s",
                order_id,
                f.product_id,
                f.quantity,
                f.reason,
            )
            recorded = self.deps.outbox.record(
                order_id, f.product_id, f.quantity, Direction.INCREMENT, f.reason
            )
            if isinstance(recorded, Failure):
                logger.error(
                    "order %s: could not queue restock for product=%s: %s",
                    order_id,
                    f.product_id,
                    recorded.failure(),
                )


def _require_cancellable(order: Order) -> Result[Order, CheckoutError]:
    if not order.status.cancellable:
        return Failure(
            InvalidTransition(
                f"cannot cancel {order.status.value} orders",
                current=order.status.value,
                requested=OrderStatus.CANCELLED.value,
            )
        )
    return Success(order)


def announce_status(notifier: Notifier, feed: ChangeFeed, order: Order) -> None:
    order_id = str(order.order_id.value)
    feed.publish(Change(order_topic(order_id), "UPDATE", key=order_id))
    sent = notifier.notify_order_status_changed(order, order.status)
    if isinstance(sent, Failure):
        logger.warning("status notification for %s not sent: %s", order_id, sent.failure())
