from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.catalog import (
    Buyer,
    CartLine,
    CheckoutLine,
    CheckoutSession,
    CheckoutSource,
    Product,
    snapshot,
)
from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    EmptySelection,
    NotFound,
    OutOfStock,
    ValidationError,
)
from storefront_checkout.core.domain.model.order import DEFAULT_CURRENCY
from storefront_checkout.core.domain.service.validation import require_buyer
from storefront_checkout.core.ports.inbound.checkout_session import (
    BuildCheckoutSessionQuery,
    CheckoutSessionUseCase,
)
from storefront_checkout.core.ports.outbound.carts import CartRepository
from storefront_checkout.core.ports.outbound.catalog import CatalogGateway


@dataclass(frozen=True)
class CheckoutSessionDeps:
    catalog: CatalogGateway
    carts: CartRepository
    currency: str = DEFAULT_CURRENCY


@dataclass(frozen=True)
class CheckoutSessionService(CheckoutSessionUseCase):
    deps: CheckoutSessionDeps

    def build(
        self, query: BuildCheckoutSessionQuery
    ) -> Result[CheckoutSession, CheckoutError]:
        if query.source is CheckoutSource.BUY_NOW:
            return require_buyer(query.buyer).bind(
                lambda _: self._from_product(query.product_id)
            )
        return require_buyer(query.buyer).bind(self._from_cart)

    def _from_product(self, product_id: str | None) -> Result[CheckoutSession, CheckoutError]:
        if not product_id or not product_id.strip():
            return Failure(ValidationError("product_id is required for buy now"))

        def to_session(product: Product | None) -> Result[CheckoutSession, CheckoutError]:
            if product is None:
                return Failure(
                    NotFound("product not found", entity="product", key=product_id)
                )
            if product.stock < 1:
                return Failure(
                    OutOfStock("this product is out of stock", product_id=product_id)
                )
            return self._session(CheckoutSource.BUY_NOW, ((product, 1),))

        return self.deps.catalog.get_product(product_id).bind(to_session)

    def _from_cart(self, buyer: Buyer) -> Result[CheckoutSession, CheckoutError]:
        def join(cart: Sequence[CartLine]) -> Result[CheckoutSession, CheckoutError]:
            if not cart:
                return Failure(EmptySelection("your cart is empty"))
            ids = tuple(ln.product_id for ln in cart)
            return self.deps.catalog.get_products_by_ids(ids).bind(
                lambda products: self._join(cart, products)
            )

        return self.deps.carts.list(buyer.user_id).bind(join)

    def _join(
        self, cart: Sequence[CartLine], products: Sequence[Product]
    ) -> Result[CheckoutSession, CheckoutError]:
        by_id = {p.product_id: p for p in products}
        pairs = []
        for ln in cart:
            product = by_id.get(ln.product_id)
            if product is None:
                return Failure(
                    NotFound(
                        "a product in your cart is no longer available",
                        entity="product",
                        key=ln.product_id,
                    )
                )
            pairs.append((product, ln.quantity))
        return self._session(CheckoutSource.CART, pairs)

    def _session(
        self, source: CheckoutSource, pairs: Sequence[tuple[Product, int]]
    ) -> Result[CheckoutSession, CheckoutError]:
        currency = self.deps.currency
        lines = tuple(
            CheckoutLine(
                product_id=product.product_id,
                quantity=quantity,
                unit_price=product.unit_price(currency),
                product=snapshot(product, currency),
            )
            for product, quantity in pairs
        )
        if not lines:
            return Failure(EmptySelection("nothing to check out"))
        return Success(CheckoutSession(source=source, lines=lines, currency=currency))
