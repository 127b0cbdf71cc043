from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.errors import CheckoutError, ValidationError
from storefront_checkout.core.domain.model.inventory import (
    Direction,
    ReconciliationFailureItem,
    ReconciliationReport,
    StockLevel,
    StockRequest,
    merge_deltas,
)
from storefront_checkout.core.ports.outbound.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InventoryReconcilerDeps:
    ledger: StockLedger


@dataclass(frozen=True)
class InventoryReconciler:
    """
    The only code path that moves products.stock and products.orders.

    Each product is adjusted by its own conditional statement, so one
    product's failure never blocks the others and the report can be partial.
    """

    deps: InventoryReconcilerDeps

    def apply(
        self, lines: Sequence[StockRequest], direction: Direction
    ) -> ReconciliationReport:
        success: list[str] = []
        failed: list[ReconciliationFailureItem] = []

        for delta in merge_deltas(lines, direction):
            quantity = abs(delta.quantity_delta)
            result = self.apply_one(delta.product_id, quantity, direction)
            if isinstance(result, Success):
                success.append(delta.product_id)
                continue
            err = result.failure()
            logger.warning(
                "stock %s failed for product=%s qty=%d: %s",
                direction.value,
                delta.product_id,
                quantity,
                err,
            )
            failed.append(
                ReconciliationFailureItem(
                    product_id=delta.product_id, quantity=quantity, reason=str(err)
                )
            )

        return ReconciliationReport(
            direction=direction, success=tuple(success), failed=tuple(failed)
        )

    def apply_one(
        self, product_id: str, quantity: int, direction: Direction
    ) -> Result[StockLevel, CheckoutError]:
        if quantity <= 0:
            return Failure(ValidationError(f"quantity for {product_id} must be > 0"))
        if direction is Direction.DECREMENT:
            return self.deps.ledger.decrement(product_id, quantity)
        return self.deps.ledger.increment(product_id, quantity)
