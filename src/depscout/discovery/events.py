"""Publish/subscribe channel for discovery progress events."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

STARTED = "discovery:started"
MANIFESTS = "discovery:manifests"
DEPENDENCIES = "discovery:dependencies"
RULES = "discovery:rules"
CONVERTED = "discovery:converted"
PROGRESS = "discovery:progress"
COMPLETED = "discovery:completed"
ERROR = "discovery:error"

EVENT_TYPES = (STARTED, MANIFESTS, DEPENDENCIES, RULES, CONVERTED, PROGRESS, COMPLETED, ERROR)

Listener = Callable[[dict[str, Any]], None]


class EventBus:
    """Synchronous event registry keyed by event type.

    Listeners run in subscription order. A listener that raises is logged
    and skipped; the error never reaches the emitter.

    Example:
        >>> bus = EventBus()
        >>> unsubscribe = bus.subscribe(COMPLETED, lambda event: print(event["session_id"]))
        >>> bus.emit(COMPLETED, {"session_id": "abc"})
        abc
        >>> unsubscribe()
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def subscribe(self, event_type: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``event_type``.

        Returns:
            A disposer that removes the listener; calling it twice is a no-op.
        """
        self._listeners[event_type].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event_type, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def emit(self, event_type: str, data: dict[str, Any]) -> None:
        for listener in list(self._listeners.get(event_type, [])):
            try:
                listener(data)
            except Exception:
                logger.exception("Event listener error for %s", event_type)

    def listener_count(self, event_type: str | None = None) -> int:
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return sum(len(listeners) for listeners in self._listeners.values())

    def clear(self, event_type: str | None = None) -> None:
        if event_type is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event_type, None)
