"""Optimistic, change-feed driven view of one buyer's cart.

Local mutations are applied and announced to listeners before the durable
write is confirmed, so a cart badge can update without waiting on storage.
When a write fails the local change is reverted and, where the exact row
state is unknown, reloaded from storage.

Remote changes (another tab or device, or checkout clearing the cart) are
never merged: the synchronizer drops whatever it holds and reloads the full
set. Last authoritative read wins.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Tuple

from returns.result import Failure, Result, Success

from storefront_checkout.core.domain.model.catalog import Buyer, CartLine
from storefront_checkout.core.domain.model.errors import CheckoutError
from storefront_checkout.core.domain.service.validation import validate_quantity
from storefront_checkout.core.ports.inbound.cart import CartCommands
from storefront_checkout.core.ports.outbound.change_feed import (
    Change,
    ChangeFeed,
    Unsubscribe,
    cart_topic,
)

logger = logging.getLogger(__name__)


class CartAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    SET_QUANTITY = "set_quantity"
    CLEAR = "clear"
    REFRESH = "refresh"
    REVERT = "revert"


@dataclass(frozen=True)
class CartChange:
    action: CartAction
    lines: Tuple[CartLine, ...]
    confirmed: bool  # False while the durable write is still outstanding

    @property
    def item_count(self) -> int:
        return len(self.lines)


Listener = Callable[[CartChange], None]


class CartSynchronizer:
    def __init__(self, buyer: Buyer, commands: CartCommands, feed: ChangeFeed) -> None:
        self._buyer = buyer
        self._commands = commands
        self._feed = feed
        self._lines: dict[str, CartLine] = {}
        self._listeners: list[Listener] = []
        self._unsubscribe: Unsubscribe | None = None
        # feed callbacks may arrive on another thread, or re-enter during a write
        self._lock = threading.RLock()

    # ---- lifecycle -------------------------------------------------------------

    def start(self) -> Result[Tuple[CartLine, ...], CheckoutError]:
        with self._lock:
            if self._unsubscribe is None:
                self._unsubscribe = self._feed.subscribe(
                    cart_topic(self._buyer.user_id), self._on_remote_change
                )
            return self.refresh()

    def stop(self) -> None:
        with self._lock:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    # ---- view ------------------------------------------------------------------

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        with self._lock:
            return tuple(self._lines.values())

    @property
    def item_count(self) -> int:
        with self._lock:
            return len(self._lines)

    @property
    def total_quantity(self) -> int:
        with self._lock:
            return sum(ln.quantity for ln in self._lines.values())

    def quantity_of(self, product_id: str) -> int:
        with self._lock:
            line = self._lines.get(product_id)
            return line.quantity if line else 0

    # ---- mutations ---------------------------------------------------------------

    def refresh(self) -> Result[Tuple[CartLine, ...], CheckoutError]:
        with self._lock:
            loaded = self._commands.list(self._buyer)
            if isinstance(loaded, Failure):
                logger.warning(
                    "cart reload for user=%s failed: %s", self._buyer.user_id, loaded.failure()
                )
                return loaded
            self._lines = {ln.product_id: ln for ln in loaded.unwrap()}
            self._emit(CartAction.REFRESH, confirmed=True)
            return Success(self.lines)

    def add(self, product_id: str) -> Result[CartLine, CheckoutError]:
        with self._lock:
            existing = self._lines.get(product_id)
            if existing is not None:
                return self.set_quantity(product_id, existing.quantity + 1)

            self._lines[product_id] = CartLine(self._buyer.user_id, product_id, 1)
            self._emit(CartAction.ADD, confirmed=False)

            result = self._commands.add(self._buyer, product_id)
            if isinstance(result, Failure):
                self._lines.pop(product_id, None)
                logger.warning(
                    "add %s to cart of user=%s failed: %s",
                    product_id,
                    self._buyer.user_id,
                    result.failure(),
                )
                self._emit(CartAction.REVERT, confirmed=True)
                return result

            self._lines[product_id] = result.unwrap()
            self._emit(CartAction.ADD, confirmed=True)
            return result

    def remove(self, product_id: str) -> Result[None, CheckoutError]:
        with self._lock:
            previous = self._lines.pop(product_id, None)
            self._emit(CartAction.REMOVE, confirmed=False)

            result = self._commands.remove(self._buyer, product_id)
            if isinstance(result, Failure):
                logger.warning(
                    "remove %s from cart of user=%s failed: %s",
                    product_id,
                    self._buyer.user_id,
                    result.failure(),
                )
                if previous is not None:
                    self._lines[product_id] = previous
                    self._emit(CartAction.REVERT, confirmed=True)
                self.refresh()
                return result

            self._emit(CartAction.REMOVE, confirmed=True)
            return result

    def set_quantity(self, product_id: str, quantity: int) -> Result[CartLine, CheckoutError]:
        with self._lock:
            valid = validate_quantity(quantity)
            if isinstance(valid, Failure):
                return valid

            previous = self._lines.get(product_id)
            self._lines[product_id] = CartLine(self._buyer.user_id, product_id, quantity)
            self._emit(CartAction.SET_QUANTITY, confirmed=False)

            result = self._commands.set_quantity(self._buyer, product_id, quantity)
            if isinstance(result, Failure):
                logger.warning(
                    "set quantity of %s for user=%s failed: %s",
                    product_id,
                    self._buyer.user_id,
                    result.failure(),
                )
                if previous is None:
                    self._lines.pop(product_id, None)
                else:
                    self._lines[product_id] = previous
                self._emit(CartAction.REVERT, confirmed=True)
                self.refresh()
                return result

            self._lines[product_id] = result.unwrap()
            self._emit(CartAction.SET_QUANTITY, confirmed=True)
            return result

    def clear(self) -> Result[int, CheckoutError]:
        with self._lock:
            previous = dict(self._lines)
            self._lines = {}
            self._emit(CartAction.CLEAR, confirmed=False)

            result = self._commands.clear(self._buyer)
            if isinstance(result, Failure):
                logger.warning(
                    "clear cart of user=%s failed: %s", self._buyer.user_id, result.failure()
                )
                if isinstance(self.refresh(), Failure):
                    self._lines = previous
                    self._emit(CartAction.REVERT, confirmed=True)
                return result

            self._emit(CartAction.CLEAR, confirmed=True)
            return result

    # ---- internals -------------------------------------------------------------

    def _on_remote_change(self, change: Change) -> None:
        logger.debug("cart change on %s (%s), reloading", change.topic, change.event)
        self.refresh()

    def _emit(self, action: CartAction, confirmed: bool) -> None:
        change = CartChange(action=action, lines=tuple(self._lines.values()), confirmed=confirmed)
        for listener in tuple(self._listeners):
            try:
                listener(change)
            except Exception:  # noqa: BLE001
                logger.exception("cart listener failed on %s", action.value)
