from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import DefaultDict, Deque, List

from storefront_checkout.core.ports.outbound.change_feed import (
    Change,
    ChangeFeed,
    Handler,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

RECENT_CHANGES = 256


@dataclass
class InMemoryChangeFeed(ChangeFeed):
    """Synchronous fan-out; a failing subscriber never affects the publisher."""

    _handlers: DefaultDict[str, List[Handler]] = field(
        default_factory=lambda: defaultdict(list)
    )
    # most recent changes only, for inspection
    published: Deque[Change] = field(default_factory=lambda: deque(maxlen=RECENT_CHANGES))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def publish(self, change: Change) -> None:
        with self._lock:
            self.published.append(change)
            handlers = tuple(self._handlers.get(change.topic, ()))
        for handler in handlers:
            try:
                handler(change)
            except Exception:  # noqa: BLE001
                logger.exception("subscriber on %s failed", change.topic)

    def subscribe(self, topic: str, handler: Handler) -> Unsubscribe:
        with self._lock:
            self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers.get(topic, []):
                    self._handlers[topic].remove(handler)

        return unsubscribe
