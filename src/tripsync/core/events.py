"""
Event bus for TripSync components.

Connectivity transitions, sync progress and lookup results are published
here so the UI layer (notifications, offline banner, map markers) can react
without the sync and cache components depending on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger


class EventType(Enum):
    """Types of internal events."""
    # Connectivity
    WENT_ONLINE = "went_online"
    WENT_OFFLINE = "went_offline"

    # Change queue
    CHANGE_QUEUED = "change_queued"
    SYNC_STARTED = "sync_started"
    SYNC_COMPLETED = "sync_completed"
    SYNC_FAILED = "sync_failed"

    # Lookups
    GEOCODING_COMPLETE = "geocoding_complete"
    WEATHER_UPDATED = "weather_updated"


@dataclass
class Event:
    """An internal event."""
    event_type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    source: str = "unknown"
    message: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"Event({self.event_type.value}, source={self.source})"


EventHandler = Callable[[Event], Awaitable[None]]


class EventBus:
    """
    Central event bus for internal communication.

    Handlers are awaited in subscription order. A failing handler is logged
    and does not stop delivery to the others.
    """

    def __init__(self, max_history: int = 100):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []
        self._event_history: List[Event] = []
        self._max_history = max_history

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to a specific event type.

        Args:
            event_type: Type of event to subscribe to.
            handler: Async function to call when event occurs.
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type.value}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> bool:
        """
        Unsubscribe from an event type.

        Returns:
            True if handler was found and removed.
        """
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        logger.debug(f"Publishing event: {event}")

        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history.pop(0)

        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                await handler(event)
            except Exception as e:
                logger.error(f"Event handler error for {event.event_type}: {e}")

        for handler in list(self._global_handlers):
            try:
                await handler(event)
            except Exception as e:
                logger.error(f"Global event handler error: {e}")

    async def emit(
        self,
        event_type: EventType,
        source: str,
        message: str = "",
        **data: Any,
    ) -> None:
        """Build and publish an event in one call."""
        await self.publish(Event(event_type=event_type, data=data, source=source, message=message))

    def get_history(
        self,
        event_type: Optional[EventType] = None,
        limit: int = 10,
    ) -> List[Event]:
        """Get recent events from history."""
        events = self._event_history
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events[-limit:]
