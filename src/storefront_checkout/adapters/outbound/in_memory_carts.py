from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.catalog import CartLine
from storefront_checkout.core.domain.model.errors import CheckoutError, NotFound, StorageFailure
from storefront_checkout.core.ports.outbound.carts import CartRepository


@dataclass
class InMemoryCartRepository(CartRepository):
    # (user_id, product_id) -> line; dict order doubles as created_at order
    _rows: Dict[Tuple[str, str], CartLine] = field(default_factory=dict)
    fail_writes: bool = False
    fail_reads: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def list(self, user_id: str) -> Result[Sequence[CartLine], CheckoutError]:
        if self.fail_reads:
            return Failure(StorageFailure("cart table unavailable"))
        with self._lock:
            return Success(tuple(ln for (uid, _), ln in self._rows.items() if uid == user_id))

    def get(self, user_id: str, product_id: str) -> Result[CartLine | None, CheckoutError]:
        if self.fail_reads:
            return Failure(StorageFailure("cart table unavailable"))
        with self._lock:
            return Success(self._rows.get((user_id, product_id)))

    def add(self, user_id: str, product_id: str) -> Result[CartLine, CheckoutError]:
        if self.fail_writes:
            return Failure(StorageFailure("cart insert failed"))
        key = (user_id, product_id)
        with self._lock:
            current = self._rows.get(key)
            quantity = current.quantity + 1 if current else 1
            line = CartLine(user_id, product_id, quantity)
            self._rows[key] = line
        return Success(line)

    def set_quantity(
        self, user_id: str, product_id: str, quantity: int
    ) -> Result[CartLine, CheckoutError]:
        if self.fail_writes:
            return Failure(StorageFailure("cart update failed"))
        key = (user_id, product_id)
        with self._lock:
            if key not in self._rows:
                return Failure(NotFound("cart line not found", entity="cart_line", key=product_id))
            line = CartLine(user_id, product_id, quantity)
            self._rows[key] = line
        return Success(line)

    def remove(self, user_id: str, product_id: str) -> Result[None, CheckoutError]:
        if self.fail_writes:
            return Failure(StorageFailure("cart delete failed"))
        with self._lock:
            if self._rows.pop((user_id, product_id), None) is None:
                return Failure(NotFound("cart line not found", entity="cart_line", key=product_id))
        return Success(None)

    def clear(self, user_id: str) -> Result[int, CheckoutError]:
        if self.fail_writes:
            return Failure(StorageFailure("cart delete failed"))
        with self._lock:
            keys = [k for k in self._rows if k[0] == user_id]
            for k in keys:
                del self._rows[k]
        return Success(len(keys))
