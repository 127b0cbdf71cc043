from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Tuple


class Direction(str, Enum):
    DECREMENT = "decrement"  # order placed: stock down, orders up
    INCREMENT = "increment"  # order cancelled: stock up, orders down (floored)


@dataclass(frozen=True)
class StockRequest:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class StockDelta:
    product_id: str
    quantity_delta: int


@dataclass(frozen=True)
class StockLevel:
    product_id: str
    stock: int
    orders_count: int


@dataclass(frozen=True)
class StockVerdictItem:
    product_id: str
    product_name: str | None
    requested: int
    available: int
    sufficient: bool


@dataclass(frozen=True)
class StockVerdict:
    valid: bool
    per_item: Tuple[StockVerdictItem, ...]


@dataclass(frozen=True)
class ReconciliationFailureItem:
    product_id: str
    quantity: int
    reason: str


@dataclass(frozen=True)
class ReconciliationReport:
    direction: Direction
    success: Tuple[str, ...]
    failed: Tuple[ReconciliationFailureItem, ...]

    @property
    def complete(self) -> bool:
        return not self.failed


class EntryStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"  # claimed by one drain
    DONE = "done"
    NEEDS_REVIEW = "needs_review"


@dataclass(frozen=True)
class ReconciliationEntry:
    """A stock adjustment that could not be applied when its order committed."""

    entry_id: str
    order_id: str
    product_id: str
    quantity: int
    direction: Direction
    status: EntryStatus
    attempts: int
    last_error: str | None
    created_at: datetime
    updated_at: datetime


def merge_deltas(requests: Iterable[StockRequest], direction: Direction) -> Tuple[StockDelta, ...]:
    """Collapse repeated product ids into one signed delta per product, keeping first-seen order."""
    totals: dict[str, int] = {}
    for r in requests:
        totals[r.product_id] = totals.get(r.product_id, 0) + r.quantity
    sign = -1 if direction is Direction.DECREMENT else 1
    return tuple(StockDelta(pid, sign * qty) for pid, qty in totals.items())
