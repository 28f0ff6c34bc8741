# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student service for registration and the archive lifecycle.

This module provides the StudentService class for:
- Student registration
- Archiving and restoring students (administrator only)
- Lookups used by every other service to validate student references
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError, ValidationError
from src.domains.auth.service import UserService
from src.infrastructure.database.models.student import Student, StudentStatus
from src.infrastructure.events import EventBus, EventTypes
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class StudentNotActiveError(ValidationError):
    """Raised when an operation requires an active student."""

    pass


class StudentNotArchivedError(ValidationError):
    """Raised when restoring a student that is not archived."""

    pass


class StudentService:
    """Service for managing students.

    Changes are flushed, never committed; the caller owns the transaction.

    Attributes:
        db: Async database session.
        event_bus: Bus used to announce lifecycle changes.
        users: Identity service for privilege checks.
    """

    def __init__(self, db: AsyncSession, event_bus: EventBus, users: UserService) -> None:
        self.db = db
        self.event_bus = event_bus
        self.users = users

    async def register(
        self,
        full_name: str,
        phone_number: str | None = None,
        parent_phone_number: str | None = None,
        registration_date: datetime | None = None,
    ) -> Student:
        """Register a new active student.

        Args:
            full_name: Student name.
            phone_number: Optional contact number.
            parent_phone_number: Optional parent contact number.
            registration_date: Registration instant. Defaults to now.

        Returns:
            The created student.

        Raises:
            ValidationError: If the name is empty.
        """
        full_name = full_name.strip()
        if not full_name:
            raise ValidationError("Student name must not be empty")

        student = Student(
            full_name=full_name,
            phone_number=phone_number,
            parent_phone_number=parent_phone_number,
            registration_date=registration_date or utc_now(),
            status=StudentStatus.ACTIVE,
        )
        self.db.add(student)
        await self.db.flush()

        logger.info("Registered student: %s (%s)", student.full_name, student.id)

        await self.event_bus.publish(
            EventTypes.Student.REGISTERED,
            {"student_id": student.id},
        )
        return student

    async def get_student(self, student_id: int) -> Student:
        """Get a student by id.

        Raises:
            NotFoundError: If the student does not exist.
        """
        student = await self.db.get(Student, student_id)
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    async def require_active(self, student_id: int) -> Student:
        """Get a student and ensure it is active.

        Raises:
            NotFoundError: If the student does not exist.
            StudentNotActiveError: If the student is archived.
        """
        student = await self.get_student(student_id)
        if not student.is_active:
            raise StudentNotActiveError(
                f"Student {student_id} is archived",
                {"student_id": student_id},
            )
        return student

    async def list_students(self, status: StudentStatus | None = None) -> list[Student]:
        query = select(Student).order_by(Student.id)
        if status is not None:
            query = query.where(Student.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def archive(self, student_id: int, actor_id: int) -> Student:
        """Archive an active student.

        Args:
            student_id: Student to archive.
            actor_id: Administrator performing the change.

        Returns:
            The archived student.

        Raises:
            AuthorizationError: If actor_id is not an administrator.
            NotFoundError: If the student does not exist.
            StudentNotActiveError: If the student is already archived.
        """
        await self.users.require_admin(actor_id)
        student = await self.require_active(student_id)

        student.status = StudentStatus.ARCHIVED
        student.archived_at = utc_now()
        student.archived_by = actor_id
        await self.db.flush()

        logger.info("Archived student %s by %s", student_id, actor_id)

        await self.event_bus.publish(
            EventTypes.Student.ARCHIVED,
            {"student_id": student_id, "actor_id": actor_id},
        )
        return student

    async def restore(self, student_id: int, actor_id: int) -> Student:
        """Restore an archived student to active.

        Args:
            student_id: Student to restore.
            actor_id: Administrator performing the change.

        Returns:
            The restored student.

        Raises:
            AuthorizationError: If actor_id is not an administrator.
            NotFoundError: If the student does not exist.
            StudentNotArchivedError: If the student is not archived.
        """
        await self.users.require_admin(actor_id)
        student = await self.get_student(student_id)
        if student.status != StudentStatus.ARCHIVED:
            raise StudentNotArchivedError(
                f"Student {student_id} is not archived",
                {"student_id": student_id},
            )

        student.status = StudentStatus.ACTIVE
        student.archived_at = None
        student.archived_by = None
        student.restored_at = utc_now()
        await self.db.flush()

        logger.info("Restored student %s by %s", student_id, actor_id)

        await self.event_bus.publish(
            EventTypes.Student.RESTORED,
            {"student_id": student_id, "actor_id": actor_id},
        )
        return student
