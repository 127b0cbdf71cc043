from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Tuple

from storefront_checkout.core.domain.model.order import DEFAULT_CURRENCY, Money, fold_money


@dataclass(frozen=True)
class Product:
    product_id: str
    name: str
    price: Decimal
    stock: int
    orders_count: int = 0
    sale_price: Decimal | None = None

    def unit_price(self, currency: str = DEFAULT_CURRENCY) -> Money:
        return Money.of(self.sale_price if self.sale_price is not None else self.price, currency)


@dataclass(frozen=True)
class Buyer:
    user_id: str
    email: str


@dataclass(frozen=True)
class CartLine:
    user_id: str
    product_id: str
    quantity: int


class CheckoutSource(str, Enum):
    CART = "cart"
    BUY_NOW = "buynow"


@dataclass(frozen=True)
class ProductSnapshot:
    product_id: str
    name: str
    price: Money
    sale_price: Money | None


@dataclass(frozen=True)
class CheckoutLine:
    product_id: str
    quantity: int
    unit_price: Money
    product: ProductSnapshot

    def subtotal(self) -> Money:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class CheckoutSession:
    source: CheckoutSource
    lines: Tuple[CheckoutLine, ...]
    currency: str = DEFAULT_CURRENCY

    @property
    def total(self) -> Money:
        return fold_money((ln.subtotal() for ln in self.lines), currency=self.currency)


def snapshot(product: Product, currency: str = DEFAULT_CURRENCY) -> ProductSnapshot:
    return ProductSnapshot(
        product_id=product.product_id,
        name=product.name,
        price=Money.of(product.price, currency),
        sale_price=Money.of(product.sale_price, currency) if product.sale_price is not None else None,
    )
