# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Lesson service.

Lessons anchor attendance, homework, quizzes and incidents in time. The
month group ("Month 1", "Month 2", ...) is what the monthly behavioral rule
counts within.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError, ValidationError
from src.infrastructure.database.models.academic import Lesson

logger = logging.getLogger(__name__)


class LessonService:
    """Service for lessons.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_lesson(
        self,
        lesson_date: date,
        month_group: str,
        created_by: int | None = None,
    ) -> Lesson:
        """Create a lesson.

        Raises:
            ValidationError: If month_group is empty.
        """
        month_group = month_group.strip()
        if not month_group:
            raise ValidationError("Lesson month group must not be empty")

        lesson = Lesson(lesson_date=lesson_date, month_group=month_group, created_by=created_by)
        self.db.add(lesson)
        await self.db.flush()

        logger.info("Created lesson %s on %s (%s)", lesson.id, lesson_date, month_group)
        return lesson

    async def get_lesson(self, lesson_id: int) -> Lesson:
        lesson = await self.db.get(Lesson, lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson", lesson_id)
        return lesson

    async def list_lessons(self, month_group: str | None = None) -> list[Lesson]:
        query = select(Lesson).order_by(Lesson.lesson_date, Lesson.id)
        if month_group is not None:
            query = query.where(Lesson.month_group == month_group)
        result = await self.db.execute(query)
        return list(result.scalars().all())
