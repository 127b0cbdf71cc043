from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Tuple

from returns.result import Result

from storefront_checkout.core.domain.model.catalog import Buyer, CheckoutSession
from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    PartialReconciliationFailure,
)
from storefront_checkout.core.domain.model.order import Order, OrderLine, ShippingAddress


@dataclass(frozen=True)
class PlaceOrderCommand:
    buyer: Buyer | None
    shipping: ShippingAddress
    payment_mode: str
    session: CheckoutSession


@dataclass(frozen=True)
class CheckoutReceipt:
    order: Order
    lines: Tuple[OrderLine, ...]
    # operator information only; the order itself succeeded
    reconciliation_failures: Tuple[PartialReconciliationFailure, ...] = ()


class PlaceOrderUseCase(Protocol):
    def place_order(
        self, command: PlaceOrderCommand
    ) -> Result[CheckoutReceipt, CheckoutError]: ...
