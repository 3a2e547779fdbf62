from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from marketgap.models.events import EventType, SSEEvent
from marketgap.services.logger import get_logger

logger = get_logger("events")

EventHandler = Callable[[dict[str, Any]], None]


class EventChannel:
    """Run-scoped broadcast of progress events.

    Handlers are called synchronously in subscription order, so every
    subscriber sees events in emission order. There is no replay: a handler
    only receives events published after it subscribed.
    """

    def __init__(self, run_id: str):
        self.run_id = run_id
        self._handlers: list[EventHandler] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: EventHandler) -> EventHandler:
        self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: EventHandler) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    def publish(self, event: SSEEvent) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": event.event.value,
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **event.data,
        }
        for handler in list(self._handlers):
            try:
                handler(payload)
            except Exception:
                logger.exception("Event handler failed for %s on run %s", payload["type"], self.run_id)
        if event.event is EventType.DONE:
            self._closed = True
        return payload
