from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import CheckoutError, NotificationFailure
from storefront_checkout.core.domain.model.order import Order, OrderLine, OrderStatus
from storefront_checkout.core.ports.outbound.notifications import Notifier

logger = logging.getLogger(__name__)


@dataclass
class LoggingNotifier(Notifier):
    """Stands in for the email collaborator."""

    fail: bool = False

    def notify_order_confirmed(
        self, order: Order, lines: Sequence[OrderLine]
    ) -> Result[None, CheckoutError]:
        if self.fail:
            return Failure(NotificationFailure(message="mailer is down"))
        logger.info(
            "[event] order_confirmed: %s to=%s items=%d total=%s",
            order.order_id.value,
            order.email,
            len(lines),
            order.total_amount.amount,
        )
        return Success(None)

    def notify_order_status_changed(
        self, order: Order, new_status: OrderStatus
    ) -> Result[None, CheckoutError]:
        if self.fail:
            return Failure(NotificationFailure(message="mailer is down"))
        logger.info(
            "[event] order_status_changed: %s to=%s status=%s",
            order.order_id.value,
            order.email,
            new_status.value,
        )
        return Success(None)
