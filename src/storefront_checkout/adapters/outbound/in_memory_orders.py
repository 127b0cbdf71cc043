from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Collection, Dict, List, Sequence

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    InvalidTransition,
    NotFound,
    StorageFailure,
)
from storefront_checkout.core.domain.model.order import (
    DEFAULT_CURRENCY,
    Order,
    OrderId,
    OrderLine,
    OrderStats,
    OrderStatus,
    fold_money,
)
from storefront_checkout.core.ports.outbound.orders import OrderRepository


@dataclass
class InMemoryOrderRepository(OrderRepository):
    _orders: Dict[str, Order] = field(default_factory=dict)
    _lines: Dict[str, List[OrderLine]] = field(default_factory=dict)
    currency: str = DEFAULT_CURRENCY
    fail_create: bool = False
    fail_lines: bool = False
    fail_delete: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def create(self, order: Order) -> Result[Order, CheckoutError]:
        if self.fail_create:
            return Failure(StorageFailure("orders table unavailable"))
        key = str(order.order_id.value)
        with self._lock:
            if key in self._orders:
                return Failure(StorageFailure("order_id already exists"))
            self._orders[key] = order
        return Success(order)

    def add_lines(
        self, order_id: OrderId, lines: Sequence[OrderLine]
    ) -> Result[Sequence[OrderLine], CheckoutError]:
        if self.fail_lines:
            return Failure(StorageFailure("order_items insert failed"))
        key = str(order_id.value)
        with self._lock:
            if key not in self._orders:
                return Failure(NotFound("order not found", entity="order", key=key))
            product_ids = [ln.product_id for ln in lines]
            if len(set(product_ids)) != len(product_ids):
                return Failure(StorageFailure("duplicate product in order_items"))
            self._lines[key] = list(lines)
        return Success(tuple(lines))

    def delete(self, order_id: OrderId) -> Result[None, CheckoutError]:
        if self.fail_delete:
            return Failure(StorageFailure("orders delete failed"))
        key = str(order_id.value)
        with self._lock:
            self._orders.pop(key, None)
            self._lines.pop(key, None)
        return Success(None)

    def get(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        key = str(order_id.value)
        with self._lock:
            order = self._orders.get(key)
        if order is None:
            return Failure(NotFound("order not found", entity="order", key=key))
        return Success(order)

    def get_lines(self, order_id: OrderId) -> Result[Sequence[OrderLine], CheckoutError]:
        with self._lock:
            return Success(tuple(self._lines.get(str(order_id.value), ())))

    def transition(
        self,
        order_id: OrderId,
        allowed_from: Collection[OrderStatus],
        to: OrderStatus,
    ) -> Result[Order, CheckoutError]:
        key = str(order_id.value)
        with self._lock:
            order = self._orders.get(key)
            if order is None:
                return Failure(NotFound("order not found", entity="order", key=key))
            if order.status not in allowed_from:
                return Failure(
                    InvalidTransition(
                        f"order is {order.status.value}",
                        current=order.status.value,
                        requested=to.value,
                    )
                )
            updated = order.with_status(to)
            self._orders[key] = updated
        return Success(updated)

    def list(
        self,
        offset: int,
        limit: int,
        user_id: str | None = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
    ) -> Result[Sequence[Order], CheckoutError]:
        with self._lock:
            orders = list(self._orders.values())  # insertion order

        if user_id is not None:
            orders = [o for o in orders if o.user_id == user_id]

        reverse = sort_dir == "desc"

        if sort_by == "created_at":
            orders = sorted(orders, key=lambda o: o.created_at, reverse=reverse)
        elif sort_by == "total":
            orders = sorted(orders, key=lambda o: o.total_amount.amount, reverse=reverse)

        sliced = orders[offset : offset + limit]
        return Success(tuple(sliced))

    def stats(self, day: date | None = None) -> Result[OrderStats, CheckoutError]:
        with self._lock:
            orders = list(self._orders.values())
        if day is not None:
            orders = [o for o in orders if o.created_at.date() == day]
        return Success(
            OrderStats(
                total_orders=len(orders),
                total_revenue=fold_money(
                    (o.total_amount for o in orders), currency=self.currency
                ),
            )
        )
