"""Event bus and domain events for presentation-layer subscriptions."""

from .bus import Event, EventBus
from .domain import EventName

__all__ = ["EventBus", "Event", "EventName"]
