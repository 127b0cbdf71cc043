from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from returns.result import Failure, Result, Success
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from storefront_checkout.adapters.outbound.sql.schema import CartRow
from storefront_checkout.adapters.outbound.sql.session import storage_call
from storefront_checkout.core.domain.model.catalog import CartLine
from storefront_checkout.core.domain.model.errors import CheckoutError, NotFound
from storefront_checkout.core.domain.model.order import now_utc
from storefront_checkout.core.ports.outbound.carts import CartRepository


@dataclass(frozen=True)
class SqlCartRepository(CartRepository):
    sessions: sessionmaker[Session]

    @storage_call("list cart")
    def list(self, user_id: str) -> Result[Sequence[CartLine], CheckoutError]:
        with self.sessions() as session:
            rows = session.scalars(
                select(CartRow)
                .where(CartRow.user_id == user_id)
                .order_by(CartRow.created_at, CartRow.id)
            ).all()
            return Success(tuple(_to_line(r) for r in rows))

    @storage_call("load cart line")
    def get(self, user_id: str, product_id: str) -> Result[CartLine | None, CheckoutError]:
        with self.sessions() as session:
            row = session.scalar(_line(user_id, product_id))
            return Success(_to_line(row) if row is not None else None)

    @storage_call("add to cart")
    def add(self, user_id: str, product_id: str) -> Result[CartLine, CheckoutError]:
        bumped = self._bump(user_id, product_id)
        if bumped is not None:
            return Success(bumped)
        try:
            with self.sessions.begin() as session:
                session.add(
                    CartRow(
                        user_id=user_id,
                        product_id=product_id,
                        quantity=1,
                        created_at=now_utc(),
                    )
                )
            return Success(CartLine(user_id, product_id, 1))
        except IntegrityError:
            # another request inserted the row first
            bumped = self._bump(user_id, product_id)
            if bumped is None:
                raise
            return Success(bumped)

    @storage_call("update cart quantity")
    def set_quantity(
        self, user_id: str, product_id: str, quantity: int
    ) -> Result[CartLine, CheckoutError]:
        with self.sessions.begin() as session:
            matched = session.execute(
                update(CartRow)
                .where(CartRow.user_id == user_id, CartRow.product_id == product_id)
                .values(quantity=quantity)
                .execution_options(synchronize_session=False)
            ).rowcount
        if matched == 0:
            return Failure(NotFound("cart line not found", entity="cart_line", key=product_id))
        return Success(CartLine(user_id, product_id, quantity))

    @storage_call("remove from cart")
    def remove(self, user_id: str, product_id: str) -> Result[None, CheckoutError]:
        with self.sessions.begin() as session:
            matched = session.execute(
                delete(CartRow).where(CartRow.user_id == user_id, CartRow.product_id == product_id)
            ).rowcount
        if matched == 0:
            return Failure(NotFound("cart line not found", entity="cart_line", key=product_id))
        return Success(None)

    @storage_call("clear cart")
    def clear(self, user_id: str) -> Result[int, CheckoutError]:
        with self.sessions.begin() as session:
            return Success(
                session.execute(delete(CartRow).where(CartRow.user_id == user_id)).rowcount
            )

    def _bump(self, user_id: str, product_id: str) -> CartLine | None:
        with self.sessions.begin() as session:
            matched = session.execute(
                update(CartRow)
                .where(CartRow.user_id == user_id, CartRow.product_id == product_id)
                .values(quantity=CartRow.quantity + 1)
                .execution_options(synchronize_session=False)
            ).rowcount
            if matched == 0:
                return None
            row = session.scalar(_line(user_id, product_id))
            return _to_line(row)


def _line(user_id: str, product_id: str):
    return select(CartRow).where(CartRow.user_id == user_id, CartRow.product_id == product_id)


def _to_line(row: CartRow) -> CartLine:
    return CartLine(user_id=row.user_id, product_id=row.product_id, quantity=row.quantity)
