from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Tuple
from uuid import UUID, uuid4

DEFAULT_CURRENCY = "INR"


@dataclass(frozen=True)
class OrderId:
    value: UUID

    @staticmethod
    def new() -> "OrderId":
        return OrderId(uuid4())

    @staticmethod
    def parse(raw: str) -> "OrderId":
        return OrderId(UUID(raw))


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    @staticmethod
    def of(amount: Decimal | int | str, currency: str = DEFAULT_CURRENCY) -> "Money":
        dec = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return Money(dec, currency)

    def __add__(self, other: "Money") -> "Money":
        self._assert_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, n: int) -> "Money":
        return Money(
            (self.amount * Decimal(n)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
            self.currency,
        )

    def _assert_same_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValueError(f"currency_mismatch: {self.currency} vs {other.currency}")


class OrderStatus(str, Enum):
    PENDING = "pending"
    PACKED = "packed"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def cancellable(self) -> bool:
        return self in CANCELLABLE_STATUSES

    @staticmethod
    def parse(raw: str) -> "OrderStatus":
        # admin console sends "picked up", "In Transit", ...
        key = raw.strip().lower().replace(" ", "_").replace("-", "_")
        if key == "processing":
            return OrderStatus.PACKED
        return OrderStatus(key)


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PACKED})


class PaymentMode(str, Enum):
    CASH_ON_DELIVERY = "cod"
    PREPAID = "prepaid"


@dataclass(frozen=True)
class ShippingAddress:
    name: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    pincode: str
    address_line2: str = ""
    notes: str = ""

    def as_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "address_line2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "notes": self.notes,
        }

    @staticmethod
    def from_dict(raw: dict[str, str]) -> "ShippingAddress":
        return ShippingAddress(
            name=raw.get("name", ""),
            email=raw.get("email", ""),
            phone=raw.get("phone", ""),
            address=raw.get("address", ""),
            address_line2=raw.get("address_line2", ""),
            city=raw.get("city", ""),
            state=raw.get("state", ""),
            pincode=raw.get("pincode", ""),
            notes=raw.get("notes", ""),
        )


@dataclass(frozen=True)
class OrderLine:
    order_id: OrderId
    product_id: str
    quantity: int
    price: Money

    def subtotal(self) -> Money:
        return self.price * self.quantity


@dataclass(frozen=True)
class Order:
    order_id: OrderId
    user_id: str
    email: str
    total_amount: Money
    status: OrderStatus
    payment_mode: PaymentMode
    shipping_address: ShippingAddress
    created_at: datetime
    updated_at: datetime

    def with_status(self, status: OrderStatus) -> "Order":
        return replace(self, status=status, updated_at=now_utc())


@dataclass(frozen=True)
class OrderDetails:
    order: Order
    lines: Tuple[OrderLine, ...]


@dataclass(frozen=True)
class OrderStats:
    total_orders: int
    total_revenue: Money


def fold_money(values: Iterable[Money], currency: str = DEFAULT_CURRENCY) -> Money:
    total = Money.of(0, currency=currency)
    for v in values:
        total = total + v
    return total


def now_utc() -> datetime:
    return datetime.now(timezone.utc)
