from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from storefront_checkout.core.domain.model.catalog import (
    Buyer,
    CheckoutSession,
    CheckoutSource,
)
from storefront_checkout.core.domain.model.errors import CheckoutError


@dataclass(frozen=True)
class BuildCheckoutSessionQuery:
    source: CheckoutSource
    buyer: Buyer | None
    product_id: str | None = None  # BUY_NOW only


class CheckoutSessionUseCase(Protocol):
    def build(
        self, query: BuildCheckoutSessionQuery
    ) -> Result[CheckoutSession, CheckoutError]: ...
