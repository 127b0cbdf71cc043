from __future__ import annotations

from returns.result import Success

from storefront_checkout.core.domain.model.inventory import EntryStatus
from storefront_checkout.core.domain.service.reconciliation_worker import ReconciliationWorker
from storefront_checkout.core.ports.outbound.outbox import ReconciliationOutbox


def run_reconcile(worker: ReconciliationWorker, limit: int) -> int:
    """
    One drain of the reconciliation outbox.
    Exit code 0 when nothing is left pending, 1 when entries still wait
    for a retry or a storage error stopped the drain.
    """
    result = worker.run_once(limit)

    if isinstance(result, Success):
        report = result.unwrap()
        print(
            "[ok]",
            {
                "processed": report.processed,
                "succeeded": report.succeeded,
                "failed": report.failed,
                "escalated": report.escalated,
            },
        )
        return 0 if report.failed == 0 else 1

    print("[ng]", str(result.failure()))
    return 1


def run_review(outbox: ReconciliationOutbox) -> int:
    """List entries parked as needs_review."""
    result = outbox.list(EntryStatus.NEEDS_REVIEW)

    if isinstance(result, Success):
        entries = result.unwrap()
        for e in entries:
            print(
                "[review]",
                {
                    "entry_id": e.entry_id,
                    "order_id": e.order_id,
                    "product_id": e.product_id,
                    "quantity": e.quantity,
                    "direction": e.direction.value,
                    "attempts": e.attempts,
                    "last_error": e.last_error,
                },
            )
        print(f"[ok] {len(entries)} entries need review")
        return 0

    print("[ng]", str(result.failure()))
    return 1
