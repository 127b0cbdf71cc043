from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.catalog import Product
from storefront_checkout.core.domain.model.errors import CheckoutError


class CatalogGateway(Protocol):
    """Read side of the product catalog. Unknown ids are simply absent."""

    def get_product(self, product_id: str) -> Result[Product | None, CheckoutError]: ...

    def get_products_by_ids(
        self, product_ids: Sequence[str]
    ) -> Result[Sequence[Product], CheckoutError]: ...
