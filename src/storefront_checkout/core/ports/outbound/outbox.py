from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.inventory import (
    Direction,
    EntryStatus,
    ReconciliationEntry,
)


class ReconciliationOutbox(Protocol):
    def record(
        self,
        order_id: str,
        product_id: str,
        quantity: int,
        direction: Direction,
        reason: str,
    ) -> Result[ReconciliationEntry, CheckoutError]: ...

    def pending(self, limit: int) -> Result[Sequence[ReconciliationEntry], CheckoutError]: ...

    def claim(self, entry_id: str) -> Result[bool, CheckoutError]:
        """Move a pending entry to in_progress; False when another drain got there first."""

    def mark(
        self,
        entry_id: str,
        status: EntryStatus,
        attempts: int,
        last_error: str | None,
    ) -> Result[ReconciliationEntry, CheckoutError]: ...

    def list(
        self, status: EntryStatus | None = None
    ) -> Result[Sequence[ReconciliationEntry], CheckoutError]: ...
