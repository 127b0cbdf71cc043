from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.inventory import StockLevel


class StockLedger(Protocol):
    """
    Access to products.stock / products.orders.

    decrement and increment must each be a single atomic storage statement:
    concurrent callers serialize in the store, never on a client-side snapshot.
    """

    def levels(
        self, product_ids: Sequence[str]
    ) -> Result[Mapping[str, StockLevel], CheckoutError]: ...

    def decrement(self, product_id: str, quantity: int) -> Result[StockLevel, CheckoutError]:
        """stock -= quantity, orders += quantity, only if stock >= quantity."""
        ...

    def increment(self, product_id: str, quantity: int) -> Result[StockLevel, CheckoutError]:
        """stock += quantity, orders = max(orders - quantity, 0)."""
        ...
