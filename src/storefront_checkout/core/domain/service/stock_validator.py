from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.catalog import Product
from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.inventory import (
    StockLevel,
    StockRequest,
    StockVerdict,
    StockVerdictItem,
)
from storefront_checkout.core.ports.inbound.validate_stock import ValidateStockUseCase
from storefront_checkout.core.ports.outbound.catalog import CatalogGateway
from storefront_checkout.core.ports.outbound.stock_ledger import StockLedger


@dataclass(frozen=True)
class StockValidatorDeps:
    catalog: CatalogGateway
    ledger: StockLedger


@dataclass(frozen=True)
class StockValidator(ValidateStockUseCase):
    """
    Read-only availability check.

    The verdict is stale the moment another buyer passes the same check; it
    only keeps the common case from creating orders that cannot be filled.
    """

    deps: StockValidatorDeps

    def validate(
        self, lines: Sequence[StockRequest]
    ) -> Result[StockVerdict, CheckoutError]:
        ids = tuple(dict.fromkeys(ln.product_id for ln in lines))
        return self.deps.catalog.get_products_by_ids(ids).bind(
            lambda products: self.deps.ledger.levels(ids).map(
                lambda levels: _verdict(
                    lines, {p.product_id: p for p in products}, levels
                )
            )
        )


def _verdict(
    lines: Sequence[StockRequest],
    products: Mapping[str, Product],
    levels: Mapping[str, StockLevel],
) -> StockVerdict:
    # one item per product: repeated ids compete for the same stock
    requested: dict[str, int] = {}
    for ln in lines:
        requested[ln.product_id] = requested.get(ln.product_id, 0) + ln.quantity

    items = []
    for product_id, quantity in requested.items():
        product = products.get(product_id)
        level = levels.get(product_id)
        known = product is not None and level is not None
        available = level.stock if known else 0
        items.append(
            StockVerdictItem(
                product_id=product_id,
                product_name=product.name if product else None,
                requested=quantity,
                available=available,
                sufficient=known and available >= quantity,
            )
        )

    return StockVerdict(valid=all(it.sufficient for it in items), per_item=tuple(items))
