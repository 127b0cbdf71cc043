from __future__ import annotations

from typing import Sequence
from uuid import UUID

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.catalog import Buyer
from storefront_checkout.core.domain.model.errors import (
    AuthenticationRequired,
    CheckoutError,
    EmptySelection,
    ValidationError,
)
from storefront_checkout.core.domain.model.inventory import StockRequest
from storefront_checkout.core.domain.model.order import OrderId, PaymentMode, ShippingAddress


def require_buyer(buyer: Buyer | None) -> Result[Buyer, CheckoutError]:
    if buyer is None or not buyer.user_id.strip():
        return Failure(AuthenticationRequired("sign in required"))
    return Success(buyer)


def parse_order_id(raw: str) -> Result[OrderId, CheckoutError]:
    try:
        return Success(OrderId(UUID(raw)))
    except (TypeError, ValueError):
        return Failure(ValidationError("order_id must be a valid UUID"))


def parse_payment_mode(raw: str) -> Result[PaymentMode, CheckoutError]:
    try:
        return Success(PaymentMode(raw.strip().lower()))
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMode)
        return Failure(ValidationError(f"payment_mode must be one of: {allowed}"))


def validate_quantity(quantity: int, where: str = "quantity") -> Result[int, CheckoutError]:
    if quantity <= 0:
        return Failure(ValidationError(f"{where} must be > 0"))
    return Success(quantity)


def validate_requests(
    lines: Sequence[StockRequest],
) -> Result[Sequence[StockRequest], CheckoutError]:
    if not lines:
        return Failure(EmptySelection("at least one line item is required"))
    for i, ln in enumerate(lines):
        if not ln.product_id.strip():
            return Failure(ValidationError(f"lines[{i}].product_id is required"))
        if ln.quantity <= 0:
            return Failure(ValidationError(f"lines[{i}].quantity must be > 0"))
    return Success(lines)


def validate_shipping(address: ShippingAddress) -> Result[ShippingAddress, CheckoutError]:
    if not address.name.strip():
        return Failure(ValidationError("shipping.name is required"))
    if not address.email.strip() or "@" not in address.email:
        return Failure(ValidationError("shipping.email must be a valid email address"))
    if sum(ch.isdigit() for ch in address.phone) < 10:
        return Failure(ValidationError("shipping.phone must have at least 10 digits"))
    if not address.address.strip():
        return Failure(ValidationError("shipping.address is required"))
    if not address.city.strip():
        return Failure(ValidationError("shipping.city is required"))
    if not address.state.strip():
        return Failure(ValidationError("shipping.state is required"))
    pincode = address.pincode.strip()
    if len(pincode) != 6 or not pincode.isdigit():
        return Failure(ValidationError("shipping.pincode must be 6 digits"))
    return Success(address)
