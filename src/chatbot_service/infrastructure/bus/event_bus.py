"""In-process publish/subscribe with outward broadcast to observers."""
from __future__ import annotations

import inspect
import logging
from typing import Any, Callable

from chatbot_service.application.dto.events import AppEvent
from chatbot_service.application.ports.bus import Broadcaster
from chatbot_service.application.ports.clock import Clock, SystemClock
from chatbot_service.domain.value_objects.enums import EventType
from chatbot_service.infrastructure.bus.serializer import serialize_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[AppEvent], Any]


class EventBus:
    """Fans each published event out to local subscribers, then to observers.

    Subscribers run in registration order, each in its own fault boundary;
    handlers may be plain functions or coroutine functions.
    """

    def __init__(self, broadcaster: Broadcaster, clock: Clock | None = None) -> None:
        self._broadcaster = broadcaster
        self._clock = clock or SystemClock()
        self._handlers: dict[EventType, list[EventHandler]] = {}

    @property
    def broadcaster(self) -> Broadcaster:
        return self._broadcaster

    @property
    def observer_count(self) -> int:
        return self._broadcaster.connection_count

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    async def publish(self, event_type: EventType, data: Any = None) -> AppEvent:
        event = AppEvent(type=event_type, data=data, timestamp=self._clock.now_ms())

        for handler in list(self._handlers.get(event_type, [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Error in %s event handler", event_type)

        try:
            raw = serialize_event(event)
            await self._broadcaster.broadcast(raw)
        except Exception:
            logger.exception("Error broadcasting %s event", event_type)
        return event

    async def close(self) -> None:
        await self._broadcaster.close()
