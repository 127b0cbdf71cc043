from __future__ import annotations

from datetime import date
from typing import Collection, Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import (
    Order,
    OrderId,
    OrderLine,
    OrderStats,
    OrderStatus,
)


class OrderRepository(Protocol):
    def create(self, order: Order) -> Result[Order, CheckoutError]: ...

    def add_lines(
        self, order_id: OrderId, lines: Sequence[OrderLine]
    ) -> Result[Sequence[OrderLine], CheckoutError]:
        """Insert the whole line set or nothing."""
        ...

    def delete(self, order_id: OrderId) -> Result[None, CheckoutError]: ...

    def get(self, order_id: OrderId) -> Result[Order, CheckoutError]: ...

    def get_lines(self, order_id: OrderId) -> Result[Sequence[OrderLine], CheckoutError]: ...

    def transition(
        self,
        order_id: OrderId,
        allowed_from: Collection[OrderStatus],
        to: OrderStatus,
    ) -> Result[Order, CheckoutError]:
        """
        Conditional status update (UPDATE ... WHERE status IN allowed_from).
        Fails with InvalidTransition when the current status is not allowed.
        """
        ...

    def list(
        self,
        offset: int,
        limit: int,
        user_id: str | None = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
    ) -> Result[Sequence[Order], CheckoutError]: ...

    def stats(self, day: date | None = None) -> Result[OrderStats, CheckoutError]: ...
