from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.catalog import Buyer
from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import Order


@dataclass(frozen=True)
class CancelOrderCommand:
    order_id: str  # UUID string
    buyer: Buyer | None


class CancelOrderUseCase(Protocol):
    def cancel_order(self, command: CancelOrderCommand) -> Result[Order, CheckoutError]: ...
