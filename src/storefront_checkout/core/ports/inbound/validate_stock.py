from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.model.inventory import StockRequest, StockVerdict


class ValidateStockUseCase(Protocol):
    def validate(
        self, lines: Sequence[StockRequest]
    ) -> Result[StockVerdict, CheckoutError]: ...
