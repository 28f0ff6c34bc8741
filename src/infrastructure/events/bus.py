# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory event bus for the student tracker.

This module provides the async event channel that carries change
notifications between the tracker services. Events are published and
subscribed to by event type strings.

The EventBus supports:
- Exact event type matching (e.g., "quiz.graded")
- Wildcard pattern matching (e.g., "target.*", "*.detected")
- Sequential, awaited dispatch in subscription order
- Error propagation from handlers to the publisher
- Observers: handlers that only see events of committed work

Dispatch is synchronous from the publisher's point of view: ``publish``
returns only after every matching handler has finished. A handler that
raises aborts the remaining handlers and the exception reaches the
publisher, which lets an enclosing unit of work roll back.

Observers (notification sinks, audit trails) are subscribed separately.
Inside a ``deferred_observers()`` block their deliveries are queued and
handed over when the block exits cleanly, or dropped when it raises, so an
observer never hears about work that was rolled back.

Example:
    from src.infrastructure.events import EventBus, EventTypes

    event_bus = EventBus()

    async def on_quiz_graded(event):
        print(f"Quiz graded: {event.payload}")

    event_bus.subscribe(EventTypes.Quiz.GRADED, on_quiz_graded)

    await event_bus.publish(
        EventTypes.Quiz.GRADED,
        {"quiz_id": 3, "student_id": 12},
    )
"""

import fnmatch
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable
from uuid import uuid4

from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["EventData"], Awaitable[None]]


def _is_pattern(event_type: str) -> bool:
    return "*" in event_type or "?" in event_type


@dataclass
class EventData:
    """Container for event data with metadata.

    Attributes:
        event_type: The event type string.
        payload: The event payload data.
        event_id: Unique event identifier.
        timestamp: When the event was published.
    """

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


class EventBus:
    """In-memory async event bus with pattern matching support.

    The bus is constructed explicitly and handed to every service that
    publishes; there is no process-wide instance.

    Thread-safety: This implementation is designed for single-threaded
    async use within one unit of work.

    Attributes:
        _handlers: Dictionary mapping event types to handler lists.
        _pattern_handlers: Dictionary mapping patterns to handler lists.
        _observers: (pattern, handler) pairs notified outside the cascade.
        _deferred: Events queued for observers while a deferral is active.

    Example:
        bus = EventBus()

        # Exact subscription
        bus.subscribe("target.achieved", handler)

        # Pattern subscription
        bus.subscribe("target.*", pattern_handler)

        # Publish
        await bus.publish("target.achieved", {"target_id": 7})
    """

    def __init__(self) -> None:
        """Initialize the event bus."""
        self._handlers: dict[str, list[EventHandler]] = {}
        self._pattern_handlers: dict[str, list[EventHandler]] = {}
        self._observers: list[tuple[str, EventHandler]] = []
        self._deferred: list[EventData] | None = None
        self._event_count = 0
        logger.debug("EventBus initialized")

    def subscribe(
        self,
        event_type: str,
        handler: EventHandler,
    ) -> None:
        """Subscribe a handler to an event type or pattern.

        Handlers for the same key run in the order they were subscribed.

        Args:
            event_type: Event type string or pattern with wildcards.
            handler: Async function receiving the EventData.
        """
        if _is_pattern(event_type):
            self._pattern_handlers.setdefault(event_type, []).append(handler)
            logger.debug("Subscribed pattern handler to: %s", event_type)
        else:
            self._handlers.setdefault(event_type, []).append(handler)
            logger.debug("Subscribed handler to: %s", event_type)

    def unsubscribe(
        self,
        event_type: str,
        handler: EventHandler,
    ) -> bool:
        """Unsubscribe a handler from an event type or pattern.

        Args:
            event_type: Event type string or pattern.
            handler: The handler function to remove.

        Returns:
            True if handler was found and removed, False otherwise.
        """
        registry = self._pattern_handlers if _is_pattern(event_type) else self._handlers
        handlers = registry.get(event_type)
        if not handlers or handler not in handlers:
            return False

        handlers.remove(handler)
        if not handlers:
            del registry[event_type]
        return True

    def observe(self, pattern: str, handler: EventHandler) -> None:
        """Subscribe an observer to an event type or pattern.

        Observers run after the cascade handlers of an event and never take
        part in the cascade itself.
        """
        self._observers.append((pattern, handler))
        logger.debug("Subscribed observer to: %s", pattern)

    def unobserve(self, pattern: str, handler: EventHandler) -> bool:
        try:
            self._observers.remove((pattern, handler))
        except ValueError:
            return False
        return True

    @asynccontextmanager
    async def deferred_observers(self) -> AsyncIterator[None]:
        """Queue observer deliveries until the block exits.

        A clean exit delivers the queued events in the order their handlers
        finished. An exception drops them and propagates. Nested blocks join
        the outermost one.
        """
        if self._deferred is not None:
            yield
            return

        self._deferred = []
        try:
            yield
        except BaseException:
            dropped = len(self._deferred)
            self._deferred = None
            logger.debug("Dropped %d observer deliveries", dropped)
            raise

        queued, self._deferred = self._deferred, None
        for event in queued:
            await self._notify_observers(event)

    async def _notify_observers(self, event: EventData) -> None:
        for pattern, handler in list(self._observers):
            if fnmatch.fnmatch(event.event_type, pattern):
                await handler(event)

    def handlers_for(self, event_type: str) -> list[EventHandler]:
        """Return the handlers a publish of event_type would call, in order.

        Exact subscribers come first, followed by pattern subscribers in the
        order their patterns were first registered.

        Args:
            event_type: Concrete event type string.

        Returns:
            Ordered list of handlers.
        """
        handlers: list[EventHandler] = list(self._handlers.get(event_type, ()))
        for pattern, pattern_handlers in self._pattern_handlers.items():
            if fnmatch.fnmatch(event_type, pattern):
                handlers.extend(pattern_handlers)
        return handlers

    async def publish(
        self,
        event_type: str,
        payload: dict[str, Any],
    ) -> EventData:
        """Publish an event to all matching subscribers.

        Handlers are awaited one after another. An exception raised by a
        handler is logged and re-raised; handlers after it are not called.
        Observers are notified afterwards, or queued while observer
        delivery is deferred.

        Args:
            event_type: The event type string.
            payload: Event data dictionary.

        Returns:
            EventData object with event metadata.
        """
        event = EventData(event_type=event_type, payload=payload)
        self._event_count += 1

        handlers_to_call = self.handlers_for(event_type)
        logger.debug(
            "Publishing event %s to %d handlers",
            event_type,
            len(handlers_to_call),
        )

        for handler in handlers_to_call:
            try:
                await handler(event)
            except Exception:
                logger.error(
                    "Handler %s failed for event %s",
                    getattr(handler, "__qualname__", repr(handler)),
                    event_type,
                    exc_info=True,
                )
                raise

        if self._deferred is not None:
            self._deferred.append(event)
        else:
            await self._notify_observers(event)
        return event

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()
        self._pattern_handlers.clear()
        self._observers.clear()
        logger.debug("EventBus cleared all subscriptions")

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics.

        Returns:
            Dictionary with subscription and event counts.
        """
        exact_count = sum(len(h) for h in self._handlers.values())
        pattern_count = sum(len(h) for h in self._pattern_handlers.values())

        return {
            "exact_subscriptions": len(self._handlers),
            "pattern_subscriptions": len(self._pattern_handlers),
            "total_handlers": exact_count + pattern_count,
            "observers": len(self._observers),
            "events_published": self._event_count,
            "event_types": list(self._handlers.keys()),
            "patterns": list(self._pattern_handlers.keys()),
        }
