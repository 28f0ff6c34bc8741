# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance service.

Marks presence per lesson and answers the two questions the derived
services ask of attendance: how many lessons a student attended (points)
and how many lessons in a row they most recently missed (warnings).
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError
from src.domains.lesson.service import LessonService
from src.domains.student.service import StudentService
from src.infrastructure.database.models.academic import (
    Attendance,
    AttendanceStatus,
    Lesson,
)
from src.infrastructure.events import EventBus, EventTypes
from src.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)


def count_consecutive_absences(statuses_newest_first: list[AttendanceStatus]) -> int:
    """Count absences from the most recent lesson back to the first presence."""
    count = 0
    for status in statuses_newest_first:
        if status != AttendanceStatus.ABSENT:
            break
        count += 1
    return count


class AttendanceService:
    """Service for attendance records.

    Attributes:
        db: Async database session.
        event_bus: Bus used to announce marks.
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

    async def mark(
        self,
        lesson_id: int,
        student_id: int,
        status: AttendanceStatus,
        marked_by: int | None = None,
    ) -> Attendance:
        """Mark attendance for a student at a lesson.

        An existing mark for the same lesson is overwritten.

        Args:
            lesson_id: Lesson attended or missed.
            student_id: Student being marked.
            status: Present or absent.
            marked_by: Staff user entering the mark.

        Returns:
            The attendance record.

        Raises:
            NotFoundError: If the lesson or student does not exist.
            StudentNotActiveError: If the student is archived.
        """
        await self.lessons.get_lesson(lesson_id)
        await self.students.require_active(student_id)

        record = await self.get_for_lesson(lesson_id, student_id)
        if record is None:
            record = Attendance(lesson_id=lesson_id, student_id=student_id, status=status)
            self.db.add(record)
        else:
            record.status = status
        record.marked_by = marked_by
        record.marked_at = utc_now()
        await self.db.flush()

        logger.info(
            "Marked student %s %s for lesson %s",
            student_id,
            status.value,
            lesson_id,
        )

        await self.event_bus.publish(
            EventTypes.Attendance.MARKED,
            {
                "attendance_id": record.id,
                "lesson_id": lesson_id,
                "student_id": student_id,
                "status": status.value,
            },
        )
        return record

    async def update_status(self, attendance_id: int, new_status: AttendanceStatus) -> Attendance:
        """Correct an existing attendance record.

        Used by reviewed corrections. No event is published; the caller runs
        the dependent recalculations explicitly.

        Raises:
            NotFoundError: If the record does not exist.
            StudentNotActiveError: If the student is archived.
        """
        record = await self.get_attendance(attendance_id)
        await self.students.require_active(record.student_id)

        # marked_at keeps the original entry time; it anchors restore cut-offs
        previous = record.status
        record.status = new_status
        await self.db.flush()

        logger.info(
            "Corrected attendance %s from %s to %s",
            attendance_id,
            previous.value,
            new_status.value,
        )
        return record

    async def get_attendance(self, attendance_id: int) -> Attendance:
        record = await self.db.get(Attendance, attendance_id)
        if record is None:
            raise NotFoundError("Attendance", attendance_id)
        return record

    async def get_for_lesson(self, lesson_id: int, student_id: int) -> Attendance | None:
        result = await self.db.execute(
            select(Attendance).where(
                Attendance.lesson_id == lesson_id,
                Attendance.student_id == student_id,
            )
        )
        return result.scalar_one_or_none()

    async def history(self, student_id: int) -> list[Attendance]:
        """Attendance records of a student, most recent lesson first."""
        result = await self.db.execute(
            select(Attendance)
            .join(Lesson, Lesson.id == Attendance.lesson_id)
            .where(Attendance.student_id == student_id)
            .order_by(Lesson.lesson_date.desc(), Lesson.id.desc())
        )
        return list(result.scalars().all())

    async def present_count(self, student_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Attendance.id)).where(
                Attendance.student_id == student_id,
                Attendance.status == AttendanceStatus.PRESENT,
            )
        )
        return int(result.scalar_one())

    async def consecutive_absence_count(self, student_id: int) -> int:
        """Number of most recent lessons in a row the student was absent from.

        After a restore, only marks entered since the restore are counted.
        """
        student = await self.students.get_student(student_id)
        records = await self.history(student_id)

        cutoff = ensure_utc(student.restored_at)
        if cutoff is not None:
            records = [r for r in records if ensure_utc(r.marked_at) >= cutoff]

        return count_consecutive_absences([record.status for record in records])
