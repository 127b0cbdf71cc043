from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Mapping, Sequence

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.catalog import Product
from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    InsufficientStock,
    NotFound,
    StorageFailure,
)
from storefront_checkout.core.domain.model.inventory import StockLevel, StockVerdictItem
from storefront_checkout.core.ports.outbound.catalog import CatalogGateway
from storefront_checkout.core.ports.outbound.stock_ledger import StockLedger


@dataclass
class InMemoryProductStore(CatalogGateway, StockLedger):
    """Catalog reads plus the stock ledger; one lock stands in for row-level atomicity."""

    _products: Dict[str, Product] = field(default_factory=dict)
    # product ids whose stock writes fail as if the backend were down
    failing_writes: set[str] = field(default_factory=set)
    fail_reads: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def with_products(cls, products: Iterable[Product]) -> "InMemoryProductStore":
        return cls(_products={p.product_id: p for p in products})

    def put(self, product: Product) -> None:
        with self._lock:
            self._products[product.product_id] = product

    # ---- catalog -------------------------------------------------------------

    def get_product(self, product_id: str) -> Result[Product | None, CheckoutError]:
        if self.fail_reads:
            return Failure(StorageFailure("product store unavailable"))
        with self._lock:
            return Success(self._products.get(product_id))

    def get_products_by_ids(
        self, product_ids: Sequence[str]
    ) -> Result[Sequence[Product], CheckoutError]:
        if self.fail_reads:
            return Failure(StorageFailure("product store unavailable"))
        with self._lock:
            return Success(
                tuple(self._products[pid] for pid in product_ids if pid in self._products)
            )

    # ---- ledger --------------------------------------------------------------

    def levels(
        self, product_ids: Sequence[str]
    ) -> Result[Mapping[str, StockLevel], CheckoutError]:
        if self.fail_reads:
            return Failure(StorageFailure("product store unavailable"))
        with self._lock:
            return Success(
                {
                    pid: _level(self._products[pid])
                    for pid in product_ids
                    if pid in self._products
                }
            )

    def decrement(self, product_id: str, quantity: int) -> Result[StockLevel, CheckoutError]:
        with self._lock:
            found = self._writable(product_id)
            if isinstance(found, Failure):
                return found
            product = found.unwrap()
            if product.stock < quantity:
                return Failure(
                    InsufficientStock(
                        "stock changed since validation",
                        items=(
                            StockVerdictItem(
                                product_id=product_id,
                                product_name=product.name,
                                requested=quantity,
                                available=product.stock,
                                sufficient=False,
                            ),
                        ),
                    )
                )
            updated = replace(
                product,
                stock=product.stock - quantity,
                orders_count=product.orders_count + quantity,
            )
            self._products[product_id] = updated
            return Success(_level(updated))

    def increment(self, product_id: str, quantity: int) -> Result[StockLevel, CheckoutError]:
        with self._lock:
            found = self._writable(product_id)
            if isinstance(found, Failure):
                return found
            product = found.unwrap()
            updated = replace(
                product,
                stock=product.stock + quantity,
                orders_count=max(product.orders_count - quantity, 0),
            )
            self._products[product_id] = updated
            return Success(_level(updated))

    def _writable(self, product_id: str) -> Result[Product, CheckoutError]:
        if product_id in self.failing_writes:
            return Failure(StorageFailure(f"write to product {product_id} failed"))
        product = self._products.get(product_id)
        if product is None:
            return Failure(NotFound("product not found", entity="product", key=product_id))
        return Success(product)


def _level(product: Product) -> StockLevel:
    return StockLevel(product.product_id, product.stock, product.orders_count)
