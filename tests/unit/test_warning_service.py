# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the warning generator."""

import pytest

from src.core.exceptions import NotFoundError, ValidationError
from src.domains.behavior.service import longest_same_type_run
from src.domains.warnings.rules import (
    AUTO_RESOLVED_REASON,
    ESCALATED_REASON,
    RESTORED_REASON,
    absence_warning_type,
    behavioral_reason,
)
from src.infrastructure.database.models import (
    AttendanceStatus,
    IncidentType,
    WarningType,
)
from src.infrastructure.events import EventTypes


async def mark_absences(services, student, lessons) -> None:
    for lesson in lessons:
        await services.attendance.mark(lesson.id, student.id, AttendanceStatus.ABSENT)


async def active_types(services, student) -> list[WarningType]:
    return [w.warning_type for w in await services.warnings.active_warnings_by_student(student.id)]


class TestRules:
    """Tests for the pure warning rules."""

    @pytest.mark.parametrize(
        ("absences", "expected"),
        [
            (0, None),
            (1, None),
            (2, WarningType.CONSECUTIVE_ABSENCE),
            (3, WarningType.ARCHIVED),
            (7, WarningType.ARCHIVED),
        ],
    )
    def test_absence_warning_type(self, absences, expected) -> None:
        assert absence_warning_type(absences) == expected

    def test_behavioral_reason(self) -> None:
        assert behavioral_reason(IncidentType.LATE, [4], "2025-01", [3, 4]) is None

        reason = behavioral_reason(IncidentType.LATE, [5, 6], "2025-01", [2, 5, 6])
        assert reason.startswith("Behavioral concern: ")
        assert "2 consecutive 'late' incidents (#5, #6)" in reason
        assert "3 incidents in 2025-01 (#2, #5, #6)" in reason

        only_monthly = behavioral_reason(IncidentType.OTHER, [9], "2025-02", [7, 8, 9])
        assert only_monthly == "Behavioral concern: 3 incidents in 2025-02 (#7, #8, #9)"

    def test_longest_same_type_run(self) -> None:
        run = longest_same_type_run(
            [IncidentType.LATE, IncidentType.OTHER, IncidentType.OTHER, IncidentType.LATE]
        )
        assert run == (IncidentType.OTHER, 2)
        assert longest_same_type_run([]) == (None, 0)
        assert longest_same_type_run([IncidentType.LATE, IncidentType.OTHER]) == (
            IncidentType.LATE,
            1,
        )


class TestAttendanceWarnings:
    """Tests for consecutive-absence warnings."""

    @pytest.mark.asyncio
    async def test_two_absences(self, services, student, make_lessons, recorded_events) -> None:
        lessons = await make_lessons(2)

        await mark_absences(services, student, lessons)

        assert await active_types(services, student) == [WarningType.CONSECUTIVE_ABSENCE]
        generated = [e for e in recorded_events if e.event_type == EventTypes.Warning.GENERATED]
        assert len(generated) == 1

    @pytest.mark.asyncio
    async def test_three_absences_escalate(self, services, student, make_lessons) -> None:
        lessons = await make_lessons(3)

        await mark_absences(services, student, lessons)

        assert await active_types(services, student) == [WarningType.ARCHIVED]
        resolved = [
            w for w in await services.warnings.warnings_by_student(student.id) if not w.is_active
        ]
        assert [w.warning_type for w in resolved] == [WarningType.CONSECUTIVE_ABSENCE]
        assert resolved[0].resolution_reason == ESCALATED_REASON

    @pytest.mark.asyncio
    async def test_presence_resolves_consecutive_absence(
        self, services, student, make_lessons
    ) -> None:
        lessons = await make_lessons(3)
        await mark_absences(services, student, lessons[:2])

        await services.attendance.mark(lessons[2].id, student.id, AttendanceStatus.PRESENT)

        assert await active_types(services, student) == []
        warning = (await services.warnings.warnings_by_student(student.id))[0]
        assert warning.resolution_reason == AUTO_RESOLVED_REASON
        assert warning.resolved_at is not None

    @pytest.mark.asyncio
    async def test_check_is_idempotent(self, services, student, make_lessons) -> None:
        await mark_absences(services, student, await make_lessons(2))

        assert await services.warnings.check_and_generate_warnings(student.id) == []
        assert await services.warnings.active_warning_count(student.id) == 1

    @pytest.mark.asyncio
    async def test_archived_warning_does_not_step_down(
        self, services, student, make_lessons
    ) -> None:
        lessons = await make_lessons(6)
        await mark_absences(services, student, lessons[:3])
        await services.attendance.mark(lessons[3].id, student.id, AttendanceStatus.PRESENT)
        await mark_absences(services, student, lessons[4:])

        assert await active_types(services, student) == [WarningType.ARCHIVED]

    @pytest.mark.asyncio
    async def test_restore_resets_absence_history(
        self, services, admin, student, make_lessons
    ) -> None:
        lessons = await make_lessons(4)
        await mark_absences(services, student, lessons[:3])
        await services.students.archive(student.id, admin.id)

        await services.students.restore(student.id, admin.id)

        assert await active_types(services, student) == []
        archived = (await services.warnings.warnings_by_student(student.id))[-1]
        assert archived.warning_type == WarningType.ARCHIVED
        assert archived.resolution_reason == RESTORED_REASON

        await mark_absences(services, student, lessons[3:])

        assert await services.attendance.consecutive_absence_count(student.id) == 1
        assert await active_types(services, student) == []


class TestBehavioralWarnings:
    """Tests for behavioral warnings."""

    @pytest.mark.asyncio
    async def test_same_type_run(self, services, student, make_lessons) -> None:
        lessons = await make_lessons(2)
        incidents = [
            await services.behavior.add_incident(student.id, lesson.id, IncidentType.LATE)
            for lesson in lessons
        ]

        warnings = await services.warnings.active_warnings_by_student(student.id)
        assert [w.warning_type for w in warnings] == [WarningType.BEHAVIORAL]
        first, second = (incident.id for incident in incidents)
        assert f"2 consecutive 'late' incidents (#{first}, #{second})" in warnings[0].reason

    @pytest.mark.asyncio
    async def test_run_is_the_longest_one(self, services, student, make_lessons) -> None:
        lessons = await make_lessons(4, month_group="2025-03")
        kinds = [IncidentType.LATE, IncidentType.OTHER, IncidentType.OTHER, IncidentType.LATE]
        incidents = [
            await services.behavior.add_incident(student.id, lesson.id, kind)
            for lesson, kind in zip(lessons, kinds)
        ]

        run = await services.behavior.consecutive_same_type(student.id)

        assert [incident.id for incident in run] == [incidents[1].id, incidents[2].id]

    @pytest.mark.asyncio
    async def test_mixed_incidents_in_one_month(self, services, student, make_lessons) -> None:
        lessons = await make_lessons(3, month_group="2025-02")
        kinds = [IncidentType.LATE, IncidentType.DISRESPECTFUL, IncidentType.LEFT_EARLY]

        await services.behavior.add_incident(student.id, lessons[0].id, kinds[0])
        await services.behavior.add_incident(student.id, lessons[1].id, kinds[1])
        assert await active_types(services, student) == []

        await services.behavior.add_incident(student.id, lessons[2].id, kinds[2])

        warnings = await services.warnings.active_warnings_by_student(student.id)
        assert [w.warning_type for w in warnings] == [WarningType.BEHAVIORAL]
        assert "3 incidents in 2025-02" in warnings[0].reason

    @pytest.mark.asyncio
    async def test_incidents_across_months_do_not_add_up(
        self, services, student, make_lessons
    ) -> None:
        january = await make_lessons(2, month_group="2025-01")
        february = await make_lessons(1, month_group="2025-02")

        await services.behavior.add_incident(student.id, january[0].id, IncidentType.LATE)
        await services.behavior.add_incident(student.id, january[1].id, IncidentType.OTHER)
        await services.behavior.add_incident(student.id, february[0].id, IncidentType.LATE)

        assert await active_types(services, student) == []

    @pytest.mark.asyncio
    async def test_removed_incident_resolves_warning(
        self, services, student, make_lessons
    ) -> None:
        lessons = await make_lessons(2)
        first = await services.behavior.add_incident(student.id, lessons[0].id, IncidentType.LATE)
        await services.behavior.add_incident(student.id, lessons[1].id, IncidentType.LATE)

        await services.behavior.delete_incident(first.id)
        await services.warnings.check_and_generate_warnings(student.id)

        assert await active_types(services, student) == []


class TestWarningResolution:
    """Tests for explicit resolution and queries."""

    @pytest.mark.asyncio
    async def test_resolve_warning(self, services, student, make_lessons, recorded_events) -> None:
        await mark_absences(services, student, await make_lessons(2))
        warning = (await services.warnings.active_warnings())[0]

        await services.warnings.resolve_warning(warning.id, "Spoke with parents")

        assert warning.is_active is False
        assert warning.resolution_reason == "Spoke with parents"
        assert recorded_events[-1].event_type == EventTypes.Warning.RESOLVED

        with pytest.raises(ValidationError):
            await services.warnings.resolve_warning(warning.id, "again")
        with pytest.raises(NotFoundError):
            await services.warnings.resolve_warning(999, "missing")

    @pytest.mark.asyncio
    async def test_resolve_by_student_and_breakdown(
        self, services, student, make_lessons
    ) -> None:
        lessons = await make_lessons(2)
        await mark_absences(services, student, lessons)
        for lesson in lessons:
            await services.behavior.add_incident(student.id, lesson.id, IncidentType.OTHER)

        breakdown = await services.warnings.warning_type_breakdown()
        assert breakdown == {
            WarningType.CONSECUTIVE_ABSENCE: 1,
            WarningType.ARCHIVED: 0,
            WarningType.BEHAVIORAL: 1,
        }

        resolved = await services.warnings.resolve_warnings_by_student(
            student.id, WarningType.BEHAVIORAL
        )

        assert len(resolved) == 1
        assert await services.warnings.active_warning_count() == 1
