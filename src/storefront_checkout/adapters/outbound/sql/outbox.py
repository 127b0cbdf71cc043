from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence
from uuid import uuid4

from returns.result import Failure, Result, Success
from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from storefront_checkout.adapters.outbound.sql.schema import ReconciliationRow, as_utc
from storefront_checkout.adapters.outbound.sql.session import storage_call
from storefront_checkout.core.domain.model.errors import CheckoutError, NotFound
from storefront_checkout.core.domain.model.inventory import (
    Direction,
    EntryStatus,
    ReconciliationEntry,
)
from storefront_checkout.core.domain.model.order import now_utc
from storefront_checkout.core.ports.outbound.outbox import ReconciliationOutbox


@dataclass(frozen=True)
class SqlReconciliationOutbox(ReconciliationOutbox):
    sessions: sessionmaker[Session]

    @storage_call("record reconciliation entry")
    def record(
        self,
        order_id: str,
        product_id: str,
        quantity: int,
        direction: Direction,
        reason: str,
    ) -> Result[ReconciliationEntry, CheckoutError]:
        now = now_utc()
        row = ReconciliationRow(
            entry_id=str(uuid4()),
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            direction=direction.value,
            status=EntryStatus.PENDING.value,
            attempts=0,
            last_error=reason,
            created_at=now,
            updated_at=now,
        )
        with self.sessions.begin() as session:
            session.add(row)
        return Success(_to_entry(row))

    @storage_call("read pending reconciliation entries")
    def pending(self, limit: int) -> Result[Sequence[ReconciliationEntry], CheckoutError]:
        with self.sessions() as session:
            rows = session.scalars(
                select(ReconciliationRow)
                .where(ReconciliationRow.status == EntryStatus.PENDING.value)
                .order_by(ReconciliationRow.created_at)
                .limit(limit)
            ).all()
            return Success(tuple(_to_entry(r) for r in rows))

    @storage_call("claim reconciliation entry")
    def claim(self, entry_id: str) -> Result[bool, CheckoutError]:
        stmt = (
            update(ReconciliationRow)
            .where(
                ReconciliationRow.entry_id == entry_id,
                ReconciliationRow.status == EntryStatus.PENDING.value,
            )
            .values(status=EntryStatus.IN_PROGRESS.value, updated_at=now_utc())
            .execution_options(synchronize_session=False)
        )
        with self.sessions.begin() as session:
            return Success(session.execute(stmt).rowcount == 1)

    @storage_call("update reconciliation entry")
    def mark(
        self,
        entry_id: str,
        status: EntryStatus,
        attempts: int,
        last_error: str | None,
    ) -> Result[ReconciliationEntry, CheckoutError]:
        with self.sessions.begin() as session:
            row = session.get(ReconciliationRow, entry_id)
            if row is None:
                return Failure(NotFound("entry not found", entity="outbox_entry", key=entry_id))
            row.status = status.value
            row.attempts = attempts
            row.last_error = last_error
            row.updated_at = now_utc()
            return Success(_to_entry(row))

    @storage_call("list reconciliation entries")
    def list(
        self, status: EntryStatus | None = None
    ) -> Result[Sequence[ReconciliationEntry], CheckoutError]:
        stmt = select(ReconciliationRow).order_by(ReconciliationRow.created_at)
        if status is not None:
            stmt = stmt.where(ReconciliationRow.status == status.value)
        with self.sessions() as session:
            return Success(tuple(_to_entry(r) for r in session.scalars(stmt).all()))


def _to_entry(row: ReconciliationRow) -> ReconciliationEntry:
    return ReconciliationEntry(
        entry_id=row.entry_id,
        order_id=row.order_id,
        product_id=row.product_id,
        quantity=row.quantity,
        direction=Direction(row.direction),
        status=EntryStatus(row.status),
        attempts=row.attempts,
        last_error=row.last_error,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )
