from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from returns.result import Failure, Result, Success
from sqlalchemy import case, select, update
from sqlalchemy.orm import Session, sessionmaker

from storefront_checkout.adapters.outbound.sql.schema import ProductRow
from storefront_checkout.adapters.outbound.sql.session import storage_call
from storefront_checkout.core.domain.model.catalog import Product
from storefront_checkout.core.domain.model.errors import (
    CheckoutError,
    InsufficientStock,
    NotFound,
)
from storefront_checkout.core.domain.model.inventory import StockLevel, StockVerdictItem
from storefront_checkout.core.ports.outbound.catalog import CatalogGateway
from storefront_checkout.core.ports.outbound.stock_ledger import StockLedger


@dataclass(frozen=True)
class SqlProductStore(CatalogGateway, StockLedger):
    """
    Products table as both catalog and stock ledger.

    Stock moves are single conditional UPDATE statements, so two checkouts
    racing for the last unit serialize in the database: one row update wins,
    the other matches zero rows.
    """

    sessions: sessionmaker[Session]

    @storage_call("seed products")
    def upsert(self, products: Iterable[Product]) -> Result[int, CheckoutError]:
        n = 0
        with self.sessions.begin() as session:
            for p in products:
                session.merge(
                    ProductRow(
                        product_id=p.product_id,
                        name=p.name,
                        price=p.price,
                        sale_price=p.sale_price,
                        stock=p.stock,
                        orders_count=p.orders_count,
                    )
                )
                n += 1
        return Success(n)

    @storage_call("load product")
    def get_product(self, product_id: str) -> Result[Product | None, CheckoutError]:
        with self.sessions() as session:
            row = session.get(ProductRow, product_id)
            return Success(_to_product(row) if row is not None else None)

    @storage_call("load products")
    def get_products_by_ids(
        self, product_ids: Sequence[str]
    ) -> Result[Sequence[Product], CheckoutError]:
        if not product_ids:
            return Success(())
        with self.sessions() as session:
            rows = session.scalars(
                select(ProductRow).where(ProductRow.product_id.in_(set(product_ids)))
            ).all()
            return Success(tuple(_to_product(r) for r in rows))

    @storage_call("read stock levels")
    def levels(
        self, product_ids: Sequence[str]
    ) -> Result[Mapping[str, StockLevel], CheckoutError]:
        if not product_ids:
            return Success({})
        with self.sessions() as session:
            rows = session.execute(
                select(ProductRow.product_id, ProductRow.stock, ProductRow.orders_count).where(
                    ProductRow.product_id.in_(set(product_ids))
                )
            ).all()
            return Success({pid: StockLevel(pid, stock, orders) for pid, stock, orders in rows})

    @storage_call("decrement stock")
    def decrement(self, product_id: str, quantity: int) -> Result[StockLevel, CheckoutError]:
        stmt = (
            update(ProductRow)
            .where(ProductRow.product_id == product_id, ProductRow.stock >= quantity)
            .values(
                stock=ProductRow.stock - quantity,
                orders_count=ProductRow.orders_count + quantity,
            )
            .execution_options(synchronize_session=False)
        )
        with self.sessions.begin() as session:
            if session.execute(stmt).rowcount == 1:
                return Success(_level(session, product_id))

            row = session.get(ProductRow, product_id)
            if row is None:
                return Failure(NotFound("product not found", entity="product", key=product_id))
            return Failure(
                InsufficientStock(
                    "stock changed since validation",
                    items=(
                        StockVerdictItem(
                            product_id=product_id,
                            product_name=row.name,
                            requested=quantity,
                            available=row.stock,
                            sufficient=False,
                        ),
                    ),
                )
            )

    @storage_call("increment stock")
    def increment(self, product_id: str, quantity: int) -> Result[StockLevel, CheckoutError]:
        stmt = (
            update(ProductRow)
            .where(ProductRow.product_id == product_id)
            .values(
                stock=ProductRow.stock + quantity,
                orders_count=case(
                    (ProductRow.orders_count > quantity, ProductRow.orders_count - quantity),
                    else_=0,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        with self.sessions.begin() as session:
            if session.execute(stmt).rowcount == 0:
                return Failure(NotFound("product not found", entity="product", key=product_id))
            return Success(_level(session, product_id))


def _level(session: Session, product_id: str) -> StockLevel:
    stock, orders = session.execute(
        select(ProductRow.stock, ProductRow.orders_count).where(
            ProductRow.product_id == product_id
        )
    ).one()
    return StockLevel(product_id, stock, orders)


def _to_product(row: ProductRow) -> Product:
    return Product(
        product_id=row.product_id,
        name=row.name,
        price=row.price,
        stock=row.stock,
        orders_count=row.orders_count,
        sale_price=row.sale_price,
    )
