from __future__ import annotations

import logging
from dataclasses import dataclass

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    InvalidTransition,
    ValidationError,
)
from storefront_checkout.core.domain.model.order import Order, OrderStatus
from storefront_checkout.core.domain.service.cancel_order_service import (
    NON_TERMINAL_STATUSES,
    CancelOrderService,
    announce_status,
)
from storefront_checkout.core.domain.service.validation import parse_order_id
from storefront_checkout.core.ports.inbound.order_status import (
    SetOrderStatusCommand,
    SetOrderStatusUseCase,
)
from storefront_checkout.core.ports.outbound.change_feed import ChangeFeed
from storefront_checkout.core.ports.outbound.notifications import Notifier
from storefront_checkout.core.ports.outbound.orders import OrderRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetOrderStatusDeps:
    orders: OrderRepository
    cancellations: CancelOrderService
    notifier: Notifier
    feed: ChangeFeed


@dataclass(frozen=True)
class SetOrderStatusService(SetOrderStatusUseCase):
    """Admin status changes. Only terminal states are guarded; order is not enforced."""

    deps: SetOrderStatusDeps

    def set_status(self, command: SetOrderStatusCommand) -> Result[Order, CheckoutError]:
        try:
            target = OrderStatus.parse(command.status)
        except ValueError:
            allowed = ", ".join(s.value for s in OrderStatus)
            return Failure(ValidationError(f"status must be one of: {allowed}"))

        return (
            parse_order_id(command.order_id)
            .bind(self.deps.orders.get)
            .bind(lambda order: self._move(order, target))
        )

    def _move(self, order: Order, target: OrderStatus) -> Result[Order, CheckoutError]:
        if order.status.terminal:
            return Failure(
                InvalidTransition(
                    f"{order.status.value} orders are final",
                    current=order.status.value,
                    requested=target.value,
                )
            )
        if target is OrderStatus.CANCELLED:
            # same stock bookkeeping as a buyer cancellation
            return self.deps.cancellations.cancel(order, NON_TERMINAL_STATUSES)

        moved = self.deps.orders.transition(order.order_id, NON_TERMINAL_STATUSES, target)
        if isinstance(moved, Failure):
            return moved

        updated = moved.unwrap()
        logger.info(
            "order %s status %s -> %s",
            order.order_id.value,
            order.status.value,
            updated.status.value,
        )
        announce_status(self.deps.notifier, self.deps.feed, updated)
        return Success(updated)
