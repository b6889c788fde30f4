"""Push notifications for meal changes."""

import logging
from dataclasses import dataclass, field
from typing import Protocol

MEAL_UPDATED = "meal_updated"

_logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """A connected client that accepts JSON frames."""

    async def send_json(self, data: object) -> None:
        """Send a JSON frame to the client."""


@dataclass
class NotificationChannel:
    """Best-effort fan-out of meal change events to connected clients."""

    _subscribers: list[Subscriber] = field(default_factory=list)

    def subscribe(self, subscriber: Subscriber) -> None:
        """Register a connected client."""
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        """Forget a client; unknown clients are ignored."""
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def broadcast(self, event: dict[str, object]) -> int:
        """Send an event to every subscriber and return how many received it.

        Subscribers that fail to receive are dropped; they reconcile by
        re-fetching once they reconnect.
        """
        delivered = 0
        for subscriber in list(self._subscribers):
            try:
                await subscriber.send_json(event)
            except Exception:
                _logger.warning("Dropping push subscriber after failed send")
                self.unsubscribe(subscriber)
                continue
            delivered += 1
        return delivered

    async def meal_updated(self, meal_id: int) -> int:
        """Tell clients that a meal changed and should be re-fetched."""
        return await self.broadcast({"type": MEAL_UPDATED, "mealId": meal_id})
