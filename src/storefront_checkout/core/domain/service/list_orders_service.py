from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from returns.pipeline import flow
from returns.pointfree import bind
from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import CheckoutError, ValidationError
from storefront_checkout.core.domain.model.order import Order, OrderStats
from storefront_checkout.core.ports.inbound.list_orders import (
    ListOrdersQuery,
    ListOrdersUseCase,
    OrderStatsQuery,
)
from storefront_checkout.core.ports.outbound.orders import OrderRepository

MAX_PAGE_SIZE = 100
SORT_KEYS = ("created_at", "total")
SORT_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class ListOrdersDeps:
    orders: OrderRepository


@dataclass(frozen=True)
class ListOrdersService(ListOrdersUseCase):
    """Order history for buyers and the admin console, newest first by default."""

    deps: ListOrdersDeps

    def list_orders(self, query: ListOrdersQuery) -> Result[Sequence[Order], CheckoutError]:
        return flow(
            _check_page(query),
            bind(_check_sort),
            bind(_normalise_buyer_filter),
            bind(
                lambda q: self.deps.orders.list(
                    q.offset,
                    q.limit,
                    user_id=q.user_id,
                    sort_by=q.sort_by,
                    sort_dir=q.sort_dir,
                )
            ),
        )

    def stats(self, query: OrderStatsQuery) -> Result[OrderStats, CheckoutError]:
        return self.deps.orders.stats(query.day)


def _check_page(query: ListOrdersQuery) -> Result[ListOrdersQuery, CheckoutError]:
    if query.offset < 0:
        return Failure(ValidationError("cannot page orders from a negative offset"))
    if not 1 <= query.limit <= MAX_PAGE_SIZE:
        return Failure(
            ValidationError(f"a page holds between 1 and {MAX_PAGE_SIZE} orders")
        )
    return Success(query)


def _check_sort(query: ListOrdersQuery) -> Result[ListOrdersQuery, CheckoutError]:
    if query.sort_by not in SORT_KEYS:
        return Failure(
            ValidationError(f"orders sort by {' or '.join(SORT_KEYS)}, not {query.sort_by!r}")
        )
    if query.sort_dir not in SORT_DIRECTIONS:
        return Failure(ValidationError("sort direction is asc or desc"))
    return Success(query)


def _normalise_buyer_filter(query: ListOrdersQuery) -> Result[ListOrdersQuery, CheckoutError]:
    if query.user_id is None:
        return Success(query)
    user_id = query.user_id.strip()
    if not user_id:
        return Failure(ValidationError("buyer filter is blank"))
    return Success(replace(query, user_id=user_id))
