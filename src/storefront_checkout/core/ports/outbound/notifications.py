from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import Order, OrderLine, OrderStatus


class Notifier(Protocol):
    """Fire-and-forget buyer notifications (email in production)."""

    def notify_order_confirmed(
        self, order: Order, lines: Sequence[OrderLine]
    ) -> Result[None, CheckoutError]: ...

    def notify_order_status_changed(
        self, order: Order, new_status: OrderStatus
    ) -> Result[None, CheckoutError]: ...
