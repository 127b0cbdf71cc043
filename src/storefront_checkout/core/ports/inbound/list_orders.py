from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.order import Order, OrderStats


@dataclass(frozen=True)
class ListOrdersQuery:
    offset: int = 0
    limit: int = 10
    user_id: str | None = None
    sort_by: str = "created_at"  # created_at | total
    sort_dir: str = "desc"  # asc | desc


@dataclass(frozen=True)
class OrderStatsQuery:
    day: date | None = None  # None: all time


class ListOrdersUseCase(Protocol):
    def list_orders(self, query: ListOrdersQuery) -> Result[Sequence[Order], CheckoutError]: ...

    def stats(self, query: OrderStatsQuery) -> Result[OrderStats, CheckoutError]: ...
