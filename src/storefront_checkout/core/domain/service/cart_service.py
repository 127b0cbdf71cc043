from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, TypeVar

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.catalog import Buyer, CartLine, Product
from storefront_checkout.core.domain.model.errors import CheckoutError, NotFound
from storefront_checkout.core.domain.service.validation import require_buyer, validate_quantity
from storefront_checkout.core.ports.inbound.cart import CartCommands
from storefront_checkout.core.ports.outbound.carts import CartRepository
from storefront_checkout.core.ports.outbound.catalog import CatalogGateway
from storefront_checkout.core.ports.outbound.change_feed import Change, ChangeFeed, cart_topic

T = TypeVar("T")


@dataclass(frozen=True)
class CartServiceDeps:
    carts: CartRepository
    catalog: CatalogGateway
    feed: ChangeFeed


@dataclass(frozen=True)
class CartService(CartCommands):
    """Durable cart writes; every successful write is announced on the buyer's cart topic."""

    deps: CartServiceDeps

    def list(self, buyer: Buyer | None) -> Result[Sequence[CartLine], CheckoutError]:
        return require_buyer(buyer).bind(lambda b: self.deps.carts.list(b.user_id))

    def add(self, buyer: Buyer | None, product_id: str) -> Result[CartLine, CheckoutError]:
        def known(product: Product | None) -> Result[str, CheckoutError]:
            if product is None:
                return Failure(NotFound("product not found", entity="product", key=product_id))
            return Success(product.product_id)

        return require_buyer(buyer).bind(
            lambda b: self.deps.catalog.get_product(product_id)
            .bind(known)
            .bind(lambda pid: self.deps.carts.add(b.user_id, pid))
            .map(lambda line: self._announce(b, line, "INSERT"))
        )

    def set_quantity(
        self, buyer: Buyer | None, product_id: str, quantity: int
    ) -> Result[CartLine, CheckoutError]:
        return (
            require_buyer(buyer)
            .bind(lambda b: validate_quantity(quantity).map(lambda _: b))
            .bind(
                lambda b: self.deps.carts.set_quantity(b.user_id, product_id, quantity).map(
                    lambda line: self._announce(b, line, "UPDATE")
                )
            )
        )

    def remove(self, buyer: Buyer | None, product_id: str) -> Result[None, CheckoutError]:
        return require_buyer(buyer).bind(
            lambda b: self.deps.carts.remove(b.user_id, product_id).map(
                lambda _: self._announce(b, None, "DELETE", key=product_id)
            )
        )

    def clear(self, buyer: Buyer | None) -> Result[int, CheckoutError]:
        return require_buyer(buyer).bind(
            lambda b: self.deps.carts.clear(b.user_id).map(
                lambda n: self._announce(b, n, "DELETE")
            )
        )

    def _announce(self, buyer: Buyer, value: T, event: str, key: str = "") -> T:
        if isinstance(value, CartLine):
            key = value.product_id
        self.deps.feed.publish(Change(cart_topic(buyer.user_id), event, key=key))
        return value
