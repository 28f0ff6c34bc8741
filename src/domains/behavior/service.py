# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Behavioral incident service.

Incidents are kept in chronological order (creation time, then id). The
warning generator reads two views of them: the longest run of same-type
incidents and the incidents within one month group.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError
from src.domains.lesson.service import LessonService
from src.domains.student.service import StudentService
from src.infrastructure.database.models.academic import (
    BehavioralIncident,
    IncidentType,
    Lesson,
)
from src.infrastructure.events import EventBus, EventTypes

logger = logging.getLogger(__name__)


def longest_same_type_run(
    incident_types: Sequence[IncidentType],
) -> tuple[IncidentType | None, int]:
    """Find the longest run of consecutive equal incident types.

    The earliest run wins a tie.

    Args:
        incident_types: Incident types in chronological order.

    Returns:
        Tuple of (incident type of the run, run length). (None, 0) if empty.
    """
    start, length = _longest_run_span(incident_types)
    if not length:
        return None, 0
    return incident_types[start], length


def _longest_run_span(incident_types: Sequence[IncidentType]) -> tuple[int, int]:
    """(start index, length) of the earliest longest same-type run."""
    best_start = best_length = 0
    start = 0
    for index, incident_type in enumerate(incident_types):
        if index and incident_type != incident_types[index - 1]:
            start = index
        if index - start + 1 > best_length:
            best_start, best_length = start, index - start + 1
    return best_start, best_length


class BehaviorService:
    """Service for behavioral incidents.

    Attributes:
        db: Async database session.
        event_bus: Bus used to announce incident changes.
        students: Student lookups.
        lessons: Lesson lookups.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus,
        students: StudentService,
        lessons: LessonService,
    ) -> None:
        self.db = db
        self.event_bus = event_bus
        self.students = students
        self.lessons = lessons

    async def add_incident(
        self,
        student_id: int,
        lesson_id: int,
        incident_type: IncidentType,
        notes: str | None = None,
        created_by: int | None = None,
    ) -> BehavioralIncident:
        """Record an incident.

        Raises:
            NotFoundError: If the student or lesson does not exist.
        """
        await self.students.get_student(student_id)
        await self.lessons.get_lesson(lesson_id)

        incident = BehavioralIncident(
            student_id=student_id,
            lesson_id=lesson_id,
            incident_type=incident_type,
            notes=notes,
            created_by=created_by,
        )
        self.db.add(incident)
        await self.db.flush()

        logger.info(
            "Recorded %s incident %s for student %s",
            incident_type.value,
            incident.id,
            student_id,
        )

        await self.event_bus.publish(
            EventTypes.Behavior.INCIDENT_ADDED,
            {
                "incident_id": incident.id,
                "student_id": student_id,
                "incident_type": incident_type.value,
            },
        )
        return incident

    async def delete_incident(self, incident_id: int) -> int:
        """Delete an incident.

        Returns:
            The id of the student the incident belonged to.

        Raises:
            NotFoundError: If the incident does not exist.
        """
        incident = await self.get_incident(incident_id)
        student_id = incident.student_id
        await self.db.delete(incident)
        await self.db.flush()

        logger.info("Deleted incident %s of student %s", incident_id, student_id)

        await self.event_bus.publish(
            EventTypes.Behavior.INCIDENT_REMOVED,
            {"incident_id": incident_id, "student_id": student_id},
        )
        return student_id

    async def get_incident(self, incident_id: int) -> BehavioralIncident:
        incident = await self.db.get(BehavioralIncident, incident_id)
        if incident is None:
            raise NotFoundError("BehavioralIncident", incident_id)
        return incident

    async def incidents_for_student(self, student_id: int) -> list[BehavioralIncident]:
        """All incidents of a student, oldest first."""
        result = await self.db.execute(
            select(BehavioralIncident)
            .where(BehavioralIncident.student_id == student_id)
            .order_by(BehavioralIncident.created_at, BehavioralIncident.id)
        )
        return list(result.scalars().all())

    async def consecutive_same_type(self, student_id: int) -> list[BehavioralIncident]:
        """Incidents forming the longest same-type run, chronological."""
        incidents = await self.incidents_for_student(student_id)
        start, length = _longest_run_span([i.incident_type for i in incidents])
        return incidents[start : start + length]

    async def incidents_in_month_group(
        self,
        student_id: int,
        month_group: str,
    ) -> list[BehavioralIncident]:
        result = await self.db.execute(
            select(BehavioralIncident)
            .join(Lesson, Lesson.id == BehavioralIncident.lesson_id)
            .where(
                BehavioralIncident.student_id == student_id,
                Lesson.month_group == month_group,
            )
            .order_by(BehavioralIncident.created_at, BehavioralIncident.id)
        )
        return list(result.scalars().all())

    async def latest_month_group(self, student_id: int) -> str | None:
        """Month group of the lesson of the student's most recent incident."""
        result = await self.db.execute(
            select(Lesson.month_group)
            .join(BehavioralIncident, BehavioralIncident.lesson_id == Lesson.id)
            .where(BehavioralIncident.student_id == student_id)
            .order_by(BehavioralIncident.created_at.desc(), BehavioralIncident.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
