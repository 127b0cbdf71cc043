from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from storefront_checkout.core.domain.model.inventory import StockVerdictItem


@dataclass(frozen=True)
class CheckoutError(Exception):
    message: str

    def __str__(self) -> str:  # pragma: no cover
        return self.message


@dataclass(frozen=True)
class ValidationError(CheckoutError):
    pass


@dataclass(frozen=True)
class EmptySelection(ValidationError):
    pass


@dataclass(frozen=True)
class AuthenticationRequired(CheckoutError):
    pass


@dataclass(frozen=True)
class InsufficientStock(CheckoutError):
    items: Sequence[StockVerdictItem] = field(default_factory=tuple)

    def shortages(self) -> tuple[StockVerdictItem, ...]:
        return tuple(it for it in self.items if not it.sufficient)

    def __str__(self) -> str:  # pragma: no cover
        detail = ", ".join(
            f"{it.product_name or it.product_id}: need {it.requested}, available {it.available}"
            for it in self.shortages()
        )
        return f"insufficient_stock: {detail} ({self.message})"


@dataclass(frozen=True)
class OutOfStock(CheckoutError):
    product_id: str = ""

    def __str__(self) -> str:  # pragma: no cover
        return f"out_of_stock: product={self.product_id} ({self.message})"


@dataclass(frozen=True)
class NotFound(CheckoutError):
    entity: str = ""
    key: str = ""

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity}_not_found: {self.key} ({self.message})"


@dataclass(frozen=True)
class Forbidden(CheckoutError):
    pass


@dataclass(frozen=True)
class InvalidTransition(CheckoutError):
    current: str = ""
    requested: str = ""

    def __str__(self) -> str:  # pragma: no cover
        return f"invalid_transition: {self.current} -> {self.requested} ({self.message})"


@dataclass(frozen=True)
class StorageFailure(CheckoutError):
    pass


@dataclass(frozen=True)
class PartialReconciliationFailure(CheckoutError):
    product_id: str = ""
    quantity: int = 0
    reason: str = ""

    def __str__(self) -> str:  # pragma: no cover
        return (
            f"partial_reconciliation_failure: product={self.product_id} "
            f"qty={self.quantity} reason={self.reason} ({self.message})"
        )


@dataclass(frozen=True)
class NotificationFailure(CheckoutError):
    pass
