# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the composition root and the cascade wiring."""

import pytest

from src.core.composition import SUBSCRIPTIONS, TrackerServices, compose, wire_subscriptions
from src.infrastructure.events import EventBus, EventRegistry, EventTypes


class TestSubscriptionTable:
    """Tests for the static subscription table."""

    def test_every_entry_names_a_handler(self, services) -> None:
        for subscription in SUBSCRIPTIONS:
            service = getattr(services, subscription.service)
            assert callable(getattr(service, subscription.handler))
            assert subscription.event_type in EventRegistry.all_event_types()

    def test_quiz_graded_runs_indicators_before_points(self, services) -> None:
        handlers = services.event_bus.handlers_for(EventTypes.Quiz.GRADED)

        assert handlers == [
            services.performance.handle_quiz_graded,
            services.points.handle_quiz_graded,
        ]

    def test_attendance_marked_updates_points_then_warnings(self, services) -> None:
        handlers = services.event_bus.handlers_for(EventTypes.Attendance.MARKED)

        assert handlers == [
            services.points.handle_attendance_marked,
            services.warnings.handle_attendance_marked,
        ]

    def test_removed_incident_has_no_subscriber(self, services) -> None:
        assert services.event_bus.handlers_for(EventTypes.Behavior.INCIDENT_REMOVED) == []


class TestCompose:
    """Tests for compose()."""

    def test_unwired_composition(self, db, test_settings) -> None:
        bus = EventBus()

        services = compose(db, bus, settings=test_settings, wire=False)

        assert isinstance(services, TrackerServices)
        assert services.event_bus is bus
        assert bus.get_stats()["total_handlers"] == 0

        wire_subscriptions(services)
        assert bus.get_stats()["total_handlers"] == len(SUBSCRIPTIONS)

    def test_services_share_session_and_bus(self, db, services) -> None:
        assert services.points.db is db
        assert services.update_requests.event_bus is services.event_bus
        assert services.points.targets is services.targets
        assert services.warnings.attendance is services.attendance

    def test_creates_bus_when_missing(self, db, test_settings) -> None:
        services = compose(db, settings=test_settings)

        assert isinstance(services.event_bus, EventBus)

    @pytest.mark.asyncio
    async def test_quiz_cascade_end_to_end(
        self, services, student, nahw_adab_quiz, grade
    ) -> None:
        await grade(nahw_adab_quiz, student, {1: 3, 2: 0, 3: 4, 4: 4, 5: 4})

        assert await services.performance.overall_indicator(student.id) == 3
        assert (await services.points.get_points(student.id)).quiz_points == 15
        assert await services.points.rank(student.id) == 1
