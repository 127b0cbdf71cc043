from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol


@dataclass(frozen=True)
class Change:
    topic: str
    event: str  # INSERT | UPDATE | DELETE
    key: str = ""


Handler = Callable[[Change], None]
Unsubscribe = Callable[[], None]


def cart_topic(user_id: str) -> str:
    return f"cart:user_id={user_id}"


def order_topic(order_id: str) -> str:
    return f"order:id={order_id}"


class ChangeFeed(Protocol):
    def publish(self, change: Change) -> None: ...

    def subscribe(self, topic: str, handler: Handler) -> Unsubscribe: ...
