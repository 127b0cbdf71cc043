from __future__ import annotations

import logging
from dataclasses import dataclass

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.inventory import EntryStatus, ReconciliationEntry
from storefront_checkout.core.domain.service.inventory_reconciler import InventoryReconciler
from storefront_checkout.core.ports.outbound.outbox import ReconciliationOutbox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DrainReport:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    escalated: int = 0


@dataclass(frozen=True)
class ReconciliationWorkerDeps:
    outbox: ReconciliationOutbox
    reconciler: InventoryReconciler
    max_attempts: int = 5


@dataclass(frozen=True)
class ReconciliationWorker:
    """
    Retries stock adjustments that could not be applied when an order was
    placed or cancelled. Entries that keep failing are parked as
    needs_review for an operator.
    """

    deps: ReconciliationWorkerDeps

    def run_once(self, limit: int = 100) -> Result[DrainReport, CheckoutError]:
        return self.deps.outbox.pending(limit).map(self._drain)

    def _drain(self, entries) -> DrainReport:
        processed = succeeded = failed = escalated = 0
        for entry in entries:
            if not self._claim(entry):
                continue
            processed += 1
            outcome = self._retry(entry)
            if outcome is EntryStatus.DONE:
                succeeded += 1
            elif outcome is EntryStatus.NEEDS_REVIEW:
                escalated += 1
            else:
                failed += 1
        report = DrainReport(
            processed=processed, succeeded=succeeded, failed=failed, escalated=escalated
        )
        if report.processed:
            logger.info(
                "reconciliation drain: processed=%d ok=%d retry=%d escalated=%d",
                report.processed,
                report.succeeded,
                report.failed,
                report.escalated,
            )
        return report

    def _claim(self, entry: ReconciliationEntry) -> bool:
        # a concurrent drain may have read the same pending entry
        claimed = self.deps.outbox.claim(entry.entry_id)
        if isinstance(claimed, Failure):
            logger.warning(
                "could not claim reconciliation entry %s: %s", entry.entry_id, claimed.failure()
            )
            return False
        return claimed.unwrap()

    def _retry(self, entry: ReconciliationEntry) -> EntryStatus:
        applied = self.deps.reconciler.apply_one(
            entry.product_id, entry.quantity, entry.direction
        )
        attempts = entry.attempts + 1

        if isinstance(applied, Success):
            status, error = EntryStatus.DONE, None
        else:
            error = str(applied.failure())
            status = (
                EntryStatus.NEEDS_REVIEW
                if attempts >= self.deps.max_attempts
                else EntryStatus.PENDING
            )
            if status is EntryStatus.NEEDS_REVIEW:
                logger.error(
                    "order %s: stock %s of product=%s qty=%d needs manual review after %d attempts: %s",
                    entry.order_id,
                    entry.direction.value,
                    entry.product_id,
                    entry.quantity,
                    attempts,
                    error,
                )

        marked = self.deps.outbox.mark(entry.entry_id, status, attempts, error)
        if isinstance(marked, Failure):
            logger.error(
                "could not update reconciliation entry %s: %s", entry.entry_id, marked.failure()
            )
        return status
