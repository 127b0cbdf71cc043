from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Sequence
from uuid import uuid4

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import CheckoutError, NotFound, StorageFailure
from storefront_checkout.core.domain.model.inventory import (
    Direction,
    EntryStatus,
    ReconciliationEntry,
)
from storefront_checkout.core.domain.model.order import now_utc
from storefront_checkout.core.ports.outbound.outbox import ReconciliationOutbox


@dataclass
class InMemoryReconciliationOutbox(ReconciliationOutbox):
    _entries: Dict[str, ReconciliationEntry] = field(default_factory=dict)
    fail: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(
        self,
        order_id: str,
        product_id: str,
        quantity: int,
        direction: Direction,
        reason: str,
    ) -> Result[ReconciliationEntry, CheckoutError]:
        if self.fail:
            return Failure(StorageFailure("outbox unavailable"))
        now = now_utc()
        entry = ReconciliationEntry(
            entry_id=str(uuid4()),
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            direction=direction,
            status=EntryStatus.PENDING,
            attempts=0,
            last_error=reason,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._entries[entry.entry_id] = entry
        return Success(entry)

    def pending(self, limit: int) -> Result[Sequence[ReconciliationEntry], CheckoutError]:
        if self.fail:
            return Failure(StorageFailure("outbox unavailable"))
        with self._lock:
            rows = [e for e in self._entries.values() if e.status is EntryStatus.PENDING]
        return Success(tuple(rows[:limit]))

    def claim(self, entry_id: str) -> Result[bool, CheckoutError]:
        if self.fail:
            return Failure(StorageFailure("outbox unavailable"))
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None or entry.status is not EntryStatus.PENDING:
                return Success(False)
            self._entries[entry_id] = replace(
                entry, status=EntryStatus.IN_PROGRESS, updated_at=now_utc()
            )
        return Success(True)

    def mark(
        self,
        entry_id: str,
        status: EntryStatus,
        attempts: int,
        last_error: str | None,
    ) -> Result[ReconciliationEntry, CheckoutError]:
        if self.fail:
            return Failure(StorageFailure("outbox unavailable"))
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                return Failure(NotFound("entry not found", entity="outbox_entry", key=entry_id))
            updated = replace(
                entry,
                status=status,
                attempts=attempts,
                last_error=last_error,
                updated_at=now_utc(),
            )
            self._entries[entry_id] = updated
        return Success(updated)

    def list(
        self, status: EntryStatus | None = None
    ) -> Result[Sequence[ReconciliationEntry], CheckoutError]:
        with self._lock:
            rows = list(self._entries.values())
        if status is not None:
            rows = [e for e in rows if e.status is status]
        return Success(tuple(rows))
