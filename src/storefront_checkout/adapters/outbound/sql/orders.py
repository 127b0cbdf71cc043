from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Collection, Sequence

from returns.result import Failure, Result, Success
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from storefront_checkout.adapters.outbound.sql.schema import OrderItemRow, OrderRow, as_utc
from storefront_checkout.adapters.outbound.sql.session import storage_call
from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    InvalidTransition,
    NotFound,
)
from storefront_checkout.core.domain.model.order import (
    DEFAULT_CURRENCY,
    Money,
    Order,
    OrderId,
    OrderLine,
    OrderStats,
    OrderStatus,
    PaymentMode,
    ShippingAddress,
    now_utc,
)
from storefront_checkout.core.ports.outbound.orders import OrderRepository

_SORT_COLUMNS = {
    "created_at": OrderRow.created_at,
    "total": OrderRow.total_amount,
}


@dataclass(frozen=True)
class SqlOrderRepository(OrderRepository):
    sessions: sessionmaker[Session]
    currency: str = DEFAULT_CURRENCY

    @storage_call("insert order")
    def create(self, order: Order) -> Result[Order, CheckoutError]:
        with self.sessions.begin() as session:
            session.add(
                OrderRow(
                    order_id=str(order.order_id.value),
                    user_id=order.user_id,
                    email=order.email,
                    total_amount=order.total_amount.amount,
                    currency=order.total_amount.currency,
                    status=order.status.value,
                    payment_mode=order.payment_mode.value,
                    shipping_address=order.shipping_address.as_dict(),
                    created_at=order.created_at,
                    updated_at=order.updated_at,
                )
            )
        return Success(order)

    @storage_call("insert order items")
    def add_lines(
        self, order_id: OrderId, lines: Sequence[OrderLine]
    ) -> Result[Sequence[OrderLine], CheckoutError]:
        # one transaction: every row lands or none does
        with self.sessions.begin() as session:
            session.add_all(
                OrderItemRow(
                    order_id=str(order_id.value),
                    product_id=ln.product_id,
                    quantity=ln.quantity,
                    price=ln.price.amount,
                )
                for ln in lines
            )
        return Success(tuple(lines))

    @storage_call("delete order")
    def delete(self, order_id: OrderId) -> Result[None, CheckoutError]:
        key = str(order_id.value)
        with self.sessions.begin() as session:
            session.execute(delete(OrderItemRow).where(OrderItemRow.order_id == key))
            session.execute(delete(OrderRow).where(OrderRow.order_id == key))
        return Success(None)

    @storage_call("load order")
    def get(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        key = str(order_id.value)
        with self.sessions() as session:
            row = session.get(OrderRow, key)
            if row is None:
                return Failure(NotFound("order not found", entity="order", key=key))
            return Success(_to_order(row))

    @storage_call("load order items")
    def get_lines(self, order_id: OrderId) -> Result[Sequence[OrderLine], CheckoutError]:
        key = str(order_id.value)
        with self.sessions() as session:
            currency = session.scalar(select(OrderRow.currency).where(OrderRow.order_id == key))
            rows = session.scalars(
                select(OrderItemRow).where(OrderItemRow.order_id == key).order_by(OrderItemRow.id)
            ).all()
            return Success(
                tuple(
                    OrderLine(
                        order_id=order_id,
                        product_id=r.product_id,
                        quantity=r.quantity,
                        price=Money.of(r.price, currency or self.currency),
                    )
                    for r in rows
                )
            )

    @storage_call("update order status")
    def transition(
        self,
        order_id: OrderId,
        allowed_from: Collection[OrderStatus],
        to: OrderStatus,
    ) -> Result[Order, CheckoutError]:
        key = str(order_id.value)
        stmt = (
            update(OrderRow)
            .where(
                OrderRow.order_id == key,
                OrderRow.status.in_([s.value for s in allowed_from]),
            )
            .values(status=to.value, updated_at=now_utc())
            .execution_options(synchronize_session=False)
        )
        with self.sessions.begin() as session:
            matched = session.execute(stmt).rowcount
            row = session.get(OrderRow, key)
            if row is None:
                return Failure(NotFound("order not found", entity="order", key=key))
            if matched == 0:
                return Failure(
                    InvalidTransition(
                        f"order is {row.status}", current=row.status, requested=to.value
                    )
                )
            return Success(_to_order(row))

    @storage_call("list orders")
    def list(
        self,
        offset: int,
        limit: int,
        user_id: str | None = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
    ) -> Result[Sequence[Order], CheckoutError]:
        column = _SORT_COLUMNS.get(sort_by, OrderRow.created_at)
        stmt = select(OrderRow)
        if user_id is not None:
            stmt = stmt.where(OrderRow.user_id == user_id)
        stmt = stmt.order_by(column.desc() if sort_dir == "desc" else column.asc())
        stmt = stmt.offset(offset).limit(limit)
        with self.sessions() as session:
            return Success(tuple(_to_order(r) for r in session.scalars(stmt).all()))

    @storage_call("order stats")
    def stats(self, day: date | None = None) -> Result[OrderStats, CheckoutError]:
        stmt = select(func.count(OrderRow.order_id), func.coalesce(func.sum(OrderRow.total_amount), 0))
        if day is not None:
            start = datetime.combine(day, time.min, tzinfo=timezone.utc)
            stmt = stmt.where(
                OrderRow.created_at >= start, OrderRow.created_at < start + timedelta(days=1)
            )
        with self.sessions() as session:
            count, revenue = session.execute(stmt).one()
        return Success(
            OrderStats(total_orders=count, total_revenue=Money.of(revenue, self.currency))
        )


def _to_order(row: OrderRow) -> Order:
    return Order(
        order_id=OrderId.parse(row.order_id),
        user_id=row.user_id,
        email=row.email,
        total_amount=Money.of(row.total_amount, row.currency),
        status=OrderStatus(row.status),
        payment_mode=PaymentMode(row.payment_mode),
        shipping_address=ShippingAddress.from_dict(row.shipping_address),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
