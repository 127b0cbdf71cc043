from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.catalog import CartLine
from storefront_checkout.core.domain.model.errors import CheckoutError


class CartRepository(Protocol):
    """Rows of the cart table. Every call is scoped to one user id."""

    def list(self, user_id: str) -> Result[Sequence[CartLine], CheckoutError]: ...

    def get(self, user_id: str, product_id: str) -> Result[CartLine | None, CheckoutError]: ...

    def add(self, user_id: str, product_id: str) -> Result[CartLine, CheckoutError]:
        """Insert with quantity 1, or bump the existing row by one."""
        ...

    def set_quantity(
        self, user_id: str, product_id: str, quantity: int
    ) -> Result[CartLine, CheckoutError]: ...

    def remove(self, user_id: str, product_id: str) -> Result[None, CheckoutError]: ...

    def clear(self, user_id: str) -> Result[int, CheckoutError]: ...
