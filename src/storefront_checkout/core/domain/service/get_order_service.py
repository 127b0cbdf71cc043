from __future__ import annotations

from dataclasses import dataclass

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import CheckoutError, Forbidden
from storefront_checkout.core.domain.model.order import Order, OrderDetails
from storefront_checkout.core.domain.service.validation import parse_order_id
from storefront_checkout.core.ports.inbound.get_order import GetOrderQuery, GetOrderUseCase
from storefront_checkout.core.ports.outbound.orders import OrderRepository


@dataclass(frozen=True)
class GetOrderDeps:
    orders: OrderRepository


@dataclass(frozen=True)
class GetOrderService(GetOrderUseCase):
    deps: GetOrderDeps

    def get_order(self, query: GetOrderQuery) -> Result[OrderDetails, CheckoutError]:
        def visible(order: Order) -> Result[Order, CheckoutError]:
            if query.buyer is not None and order.user_id != query.buyer.user_id:
                return Failure(Forbidden("order belongs to another buyer"))
            return Success(order)

        return (
            parse_order_id(query.order_id)
            .bind(self.deps.orders.get)
            .bind(visible)
            .bind(self._with_lines)
        )

    def _with_lines(self, order: Order) -> Result[OrderDetails, CheckoutError]:
        return self.deps.orders.get_lines(order.order_id).map(
            lambda lines: OrderDetails(order=order, lines=tuple(lines))
        )
