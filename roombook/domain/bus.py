"""Synchronous in-process bus for booking lifecycle events."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable

from roombook.utils.logger import get_logger

logger = get_logger(__name__)

Handler = Callable[[Any], None]


class EventBus:
    """Dispatches each published event to the handlers registered for its type.

    Handlers run in registration order on the publisher's thread, so an
    exception raised by a handler reaches the caller of :meth:`publish`.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> Handler:
        self._handlers[event_type].append(handler)
        return handler

    def publish(self, event: Any) -> int:
        """Deliver *event* and return how many handlers received it."""
        handlers = list(self._handlers.get(type(event), ()))
        if not handlers:
            logger.debug("No handlers for %s", type(event).__name__)
        for handler in handlers:
            handler(event)
        return len(handlers)
