from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import Order


@dataclass(frozen=True)
class SetOrderStatusCommand:
    order_id: str  # UUID string
    status: str


class SetOrderStatusUseCase(Protocol):
    def set_status(self, command: SetOrderStatusCommand) -> Result[Order, CheckoutError]: ...
