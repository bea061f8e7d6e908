"""Event bus for decoupled component communication.

Usage:
    bus = EventBus()

    # Subscribe to events
    async def on_message(event):
        print(f"New message in {event.data['conversation_id']}")

    bus.subscribe("message.appended", on_message)

    # Publish events
    await bus.publish("message.appended", {"conversation_id": "abc"})
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import inspect
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


@dataclass
class Event:
    """Event data container."""

    name: str
    data: dict[str, Any]
    source: str | None = None


class EventBus:
    """Simple event bus for publish/subscribe pattern.

    The orchestrator publishes state changes here; a presentation layer
    subscribes instead of being called inline.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callable]] = {}

    def subscribe(self, event_name: str, handler: Callable) -> None:
        """Subscribe to an event.

        Args:
            event_name: Event to listen for (e.g., "message.appended")
            handler: Sync or async function called when event is published
        """
        if event_name not in self._subscribers:
            self._subscribers[event_name] = []
        self._subscribers[event_name].append(handler)
        LOGGER.debug("Subscribed to event: %s", event_name)

    def unsubscribe(self, event_name: str, handler: Callable) -> None:
        """Unsubscribe from an event."""
        if event_name in self._subscribers:
            try:
                self._subscribers[event_name].remove(handler)
                LOGGER.debug("Unsubscribed from event: %s", event_name)
            except ValueError:
                pass

    async def publish(
        self, event_name: str, data: dict[str, Any], source: str | None = None
    ) -> None:
        """Publish an event to all subscribers.

        Handler failures are logged and never propagate to the publisher.
        """
        event = Event(name=event_name, data=data, source=source)
        handlers = list(self._subscribers.get(event_name, []))

        if not handlers:
            LOGGER.debug("No subscribers for event: %s", event_name)
            return

        for handler in handlers:
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler(event)
                else:
                    handler(event)
            except Exception as exc:
                LOGGER.error(
                    "events.handler.failed",
                    extra={
                        "event": "events.handler.failed",
                        "event_name": event_name,
                        "reason": str(exc),
                    },
                )

    def clear(self, event_name: str | None = None) -> None:
        """Clear subscribers for one event, or all of them."""
        if event_name:
            self._subscribers.pop(event_name, None)
        else:
            self._subscribers.clear()
