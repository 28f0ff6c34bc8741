# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Centralized event type definitions for the student tracker.

Every event published on the bus is named here. Payloads are plain
dictionaries whose keys are documented next to each constant.

Adding a new event:
1. Add constant to appropriate class here
2. Register its category in EventRegistry
3. If a service reacts to it, add a row to the subscription table in
   src.core.composition
"""


class EventTypes:
    """All event types in the tracker organized by domain."""

    class Student:
        """Student lifecycle events. Payload: student_id (+ actor_id)."""

        REGISTERED = "student.registered"
        ARCHIVED = "student.archived"
        RESTORED = "student.restored"

    class Quiz:
        """Quiz events. Payload: quiz_id, student_id."""

        GRADED = "quiz.graded"

    class Attendance:
        """Attendance events. Payload: attendance_id, lesson_id, student_id, status."""

        MARKED = "attendance.marked"

    class Homework:
        """Homework events. Payload: homework_id, lesson_id, student_id, status."""

        RECORDED = "homework.recorded"

    class Behavior:
        """Behavioral incident events. Payload: incident_id, student_id."""

        INCIDENT_ADDED = "behavior.incident.added"
        INCIDENT_REMOVED = "behavior.incident.removed"

    class Performance:
        """Indicator events. Payload: student_id, category, quiz_id and values."""

        INDICATOR_COMPUTED = "performance.indicator.computed"
        IMPROVEMENT_DETECTED = "performance.improvement.detected"
        DEGRADATION_DETECTED = "performance.degradation.detected"

    class Points:
        """Points ledger events."""

        UPDATED = "points.updated"
        SNAPSHOT_CREATED = "points.snapshot.created"

    class Target:
        """Target and streak events."""

        CREATED = "target.created"
        ACHIEVED = "target.achieved"
        STREAK_UPDATED = "target.streak.updated"

    class Warning:
        """Warning events. Payload: warning_id, student_id, warning_type."""

        GENERATED = "warning.generated"
        RESOLVED = "warning.resolved"

    class UpdateRequest:
        """Update request review events. Payload: request_id, request_type."""

        SUBMITTED = "update_request.submitted"
        APPROVED = "update_request.approved"
        REJECTED = "update_request.rejected"


class EventPatterns:
    """Wildcard patterns for subscribing to multiple events."""

    ALL_STUDENT = "student.*"
    ALL_PERFORMANCE = "performance.*"
    ALL_POINTS = "points.*"
    ALL_TARGET = "target.*"
    ALL_WARNING = "warning.*"
    ALL_UPDATE_REQUEST = "update_request.*"

    # Indicator transitions only
    ALL_TRANSITIONS = "performance.*.detected"

    # Global wildcard
    ALL = "*"


class EventCategory:
    """Event categories used by observers such as notification sinks."""

    RAW_FACT = "raw_fact"
    DERIVED = "derived"
    TRANSITION = "transition"
    REVIEW = "review"


class EventRegistry:
    """Registry for event metadata and categorization."""

    _category_map: dict[str, str] = {
        # Raw facts entered by staff
        EventTypes.Student.REGISTERED: EventCategory.RAW_FACT,
        EventTypes.Student.ARCHIVED: EventCategory.RAW_FACT,
        EventTypes.Student.RESTORED: EventCategory.RAW_FACT,
        EventTypes.Quiz.GRADED: EventCategory.RAW_FACT,
        EventTypes.Attendance.MARKED: EventCategory.RAW_FACT,
        EventTypes.Homework.RECORDED: EventCategory.RAW_FACT,
        EventTypes.Behavior.INCIDENT_ADDED: EventCategory.RAW_FACT,
        EventTypes.Behavior.INCIDENT_REMOVED: EventCategory.RAW_FACT,
        # Recomputed facts
        EventTypes.Performance.INDICATOR_COMPUTED: EventCategory.DERIVED,
        EventTypes.Points.UPDATED: EventCategory.DERIVED,
        EventTypes.Points.SNAPSHOT_CREATED: EventCategory.DERIVED,
        EventTypes.Target.CREATED: EventCategory.DERIVED,
        EventTypes.Target.STREAK_UPDATED: EventCategory.DERIVED,
        EventTypes.Warning.RESOLVED: EventCategory.DERIVED,
        # Significant transitions worth telling someone about
        EventTypes.Performance.IMPROVEMENT_DETECTED: EventCategory.TRANSITION,
        EventTypes.Performance.DEGRADATION_DETECTED: EventCategory.TRANSITION,
        EventTypes.Target.ACHIEVED: EventCategory.TRANSITION,
        EventTypes.Warning.GENERATED: EventCategory.TRANSITION,
        # Review workflow
        EventTypes.UpdateRequest.SUBMITTED: EventCategory.REVIEW,
        EventTypes.UpdateRequest.APPROVED: EventCategory.REVIEW,
        EventTypes.UpdateRequest.REJECTED: EventCategory.REVIEW,
    }

    @classmethod
    def get_category(cls, event_type: str) -> str | None:
        """Get the category for an event type.

        Args:
            event_type: Event type string.

        Returns:
            Category string or None if not categorized.
        """
        return cls._category_map.get(event_type)

    @classmethod
    def is_notification_event(cls, event_type: str) -> bool:
        """Check if an event should be forwarded to a notification sink.

        Args:
            event_type: Event type string.

        Returns:
            True for transition and review events.
        """
        return cls._category_map.get(event_type) in (
            EventCategory.TRANSITION,
            EventCategory.REVIEW,
        )

    @classmethod
    def all_event_types(cls) -> list[str]:
        """List every registered event type."""
        return list(cls._category_map)
