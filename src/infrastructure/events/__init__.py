# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure module for the student tracker.

Components:
- EventBus: In-memory pub/sub with pattern matching and awaited dispatch
- EventTypes: Centralized event type constants
- EventRegistry: Event categorization for observers

Quick Start:
    from src.infrastructure.events import EventBus, EventTypes

    event_bus = EventBus()
    event_bus.subscribe(EventTypes.Target.ACHIEVED, my_handler)

    await event_bus.publish(
        EventTypes.Target.ACHIEVED,
        {"student_id": 12, "target_id": 7},
    )
"""

from src.infrastructure.events.bus import (
    EventBus,
    EventData,
    EventHandler,
)
from src.infrastructure.events.types import (
    EventCategory,
    EventPatterns,
    EventRegistry,
    EventTypes,
)

__all__ = [
    # Event Bus
    "EventBus",
    "EventData",
    "EventHandler",
    # Event Types
    "EventTypes",
    "EventPatterns",
    "EventCategory",
    "EventRegistry",
]
