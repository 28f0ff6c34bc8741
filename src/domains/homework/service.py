# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Homework service.

Homework is recorded per lesson as done, partially done or not done, worth
3, 1 and 0 points respectively.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError
from src.domains.lesson.service import LessonService
from src.domains.student.service import StudentService
from src.infrastructure.database.models.academic import Homework, HomeworkStatus, Lesson
from src.infrastructure.events import EventBus, EventTypes
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class HomeworkService:
    """Service for homework records.

    Attributes:
        db: Async database session.
        event_bus: Bus used to announce recorded homework.
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

    async def record(
        self,
        lesson_id: int,
        student_id: int,
        status: HomeworkStatus,
        marked_by: int | None = None,
    ) -> Homework:
        """Record homework completion, overwriting an earlier record.

        Raises:
            NotFoundError: If the lesson or student does not exist.
            StudentNotActiveError: If the student is archived.
        """
        await self.lessons.get_lesson(lesson_id)
        await self.students.require_active(student_id)

        result = await self.db.execute(
            select(Homework).where(
                Homework.lesson_id == lesson_id,
                Homework.student_id == student_id,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = Homework(lesson_id=lesson_id, student_id=student_id, status=status)
            self.db.add(record)
        else:
            record.status = status
        record.marked_by = marked_by
        record.marked_at = utc_now()
        await self.db.flush()

        logger.info(
            "Recorded homework %s for student %s, lesson %s",
            status.value,
            student_id,
            lesson_id,
        )

        await self.event_bus.publish(
            EventTypes.Homework.RECORDED,
            {
                "homework_id": record.id,
                "lesson_id": lesson_id,
                "student_id": student_id,
                "status": status.value,
            },
        )
        return record

    async def update_status(self, homework_id: int, new_status: HomeworkStatus) -> Homework:
        """Correct an existing homework record without publishing an event.

        Raises:
            NotFoundError: If the record does not exist.
        """
        record = await self.get_homework(homework_id)
        previous = record.status
        record.status = new_status
        record.marked_at = utc_now()
        await self.db.flush()

        logger.info(
            "Corrected homework %s from %s to %s",
            homework_id,
            previous.value,
            new_status.value,
        )
        return record

    async def get_homework(self, homework_id: int) -> Homework:
        record = await self.db.get(Homework, homework_id)
        if record is None:
            raise NotFoundError("Homework", homework_id)
        return record

    async def records_for_student(self, student_id: int) -> list[Homework]:
        result = await self.db.execute(
            select(Homework)
            .join(Lesson, Lesson.id == Homework.lesson_id)
            .where(Homework.student_id == student_id)
            .order_by(Lesson.lesson_date, Lesson.id)
        )
        return list(result.scalars().all())

    async def total_points(self, student_id: int) -> int:
        records = await self.records_for_student(student_id)
        return sum(record.status.points for record in records)
