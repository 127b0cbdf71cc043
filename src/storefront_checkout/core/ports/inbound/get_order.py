from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.catalog import Buyer
from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import OrderDetails


@dataclass(frozen=True)
class GetOrderQuery:
    order_id: str  # UUID string
    buyer: Buyer | None = None  # None: admin view, no ownership scoping


class GetOrderUseCase(Protocol):
    def get_order(self, query: GetOrderQuery) -> Result[OrderDetails, CheckoutError]: ...
