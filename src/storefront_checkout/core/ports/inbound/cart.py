from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.catalog import Buyer, CartLine
from storefront_checkout.core.domain.model.errors import CheckoutError


class CartCommands(Protocol):
    """Durable cart operations for one authenticated buyer."""

    def list(self, buyer: Buyer | None) -> Result[Sequence[CartLine], CheckoutError]: ...

    def add(self, buyer: Buyer | None, product_id: str) -> Result[CartLine, CheckoutError]: ...

    def set_quantity(
        self, buyer: Buyer | None, product_id: str, quantity: int
    ) -> Result[CartLine, CheckoutError]: ...

    def remove(self, buyer: Buyer | None, product_id: str) -> Result[None, CheckoutError]: ...

    def clear(self, buyer: Buyer | None) -> Result[int, CheckoutError]: ...
