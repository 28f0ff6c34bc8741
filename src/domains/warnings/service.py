# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Warning generator.

Checks attendance and behavior of a student and keeps their warnings in
line with the rules in src.domains.warnings.rules. A check is idempotent:
there is never more than one active warning per (student, warning type),
and warnings whose condition no longer holds are resolved.

Events published:
- warning.generated: one per new warning
- warning.resolved: one per resolved warning
"""

from __future__ import annotations

import logging
from collections import Counter

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError, ValidationError
from src.domains.attendance.service import AttendanceService
from src.domains.behavior.service import BehaviorService
from src.domains.warnings.rules import (
    AUTO_RESOLVED_REASON,
    ESCALATED_REASON,
    RESTORED_REASON,
    absence_reason,
    absence_warning_type,
    behavioral_reason,
)
from src.infrastructure.database.models.academic import BehavioralIncident
from src.infrastructure.database.models.performance import StudentWarning, WarningType
from src.infrastructure.events import EventBus, EventData, EventTypes
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class WarningService:
    """Generates, resolves and queries student warnings.

    Attributes:
        db: Async database session.
        event_bus: Bus used to announce warning changes.
        attendance: Source of consecutive absences.
        behavior: Source of behavioral incidents.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus,
        attendance: AttendanceService,
        behavior: BehaviorService,
    ) -> None:
        self.db = db
        self.event_bus = event_bus
        self.attendance = attendance
        self.behavior = behavior

    async def check_and_generate_warnings(self, student_id: int) -> list[StudentWarning]:
        """Evaluate every warning rule for a student.

        Returns:
            Warnings newly generated by this check.
        """
        generated: list[StudentWarning] = []
        generated.extend(await self._check_attendance(student_id))
        generated.extend(await self._check_behavior(student_id))
        return generated

    async def _check_attendance(self, student_id: int) -> list[StudentWarning]:
        absences = await self.attendance.consecutive_absence_count(student_id)
        wanted = absence_warning_type(absences)

        if wanted is None:
            await self.resolve_warnings_by_student(
                student_id, WarningType.CONSECUTIVE_ABSENCE, AUTO_RESOLVED_REASON
            )
            return []

        if wanted == WarningType.ARCHIVED:
            await self.resolve_warnings_by_student(
                student_id, WarningType.CONSECUTIVE_ABSENCE, ESCALATED_REASON
            )
        elif await self._active_of_type(student_id, WarningType.ARCHIVED):
            # Already escalated; a shorter run does not step back down
            return []

        warning = await self._raise_warning(student_id, wanted, absence_reason(absences))
        return [warning] if warning else []

    async def _check_behavior(self, student_id: int) -> list[StudentWarning]:
        run = await self.behavior.consecutive_same_type(student_id)
        run_type = run[0].incident_type if run else None
        month_group = await self.behavior.latest_month_group(student_id)
        in_month: list[BehavioralIncident] = []
        if month_group is not None:
            in_month = await self.behavior.incidents_in_month_group(student_id, month_group)

        reason = behavioral_reason(
            run_type,
            [incident.id for incident in run],
            month_group,
            [incident.id for incident in in_month],
        )
        if reason is None:
            await self.resolve_warnings_by_student(
                student_id, WarningType.BEHAVIORAL, AUTO_RESOLVED_REASON
            )
            return []

        warning = await self._raise_warning(student_id, WarningType.BEHAVIORAL, reason)
        return [warning] if warning else []

    async def _raise_warning(
        self,
        student_id: int,
        warning_type: WarningType,
        reason: str,
    ) -> StudentWarning | None:
        if await self._active_of_type(student_id, warning_type):
            return None

        warning = StudentWarning(
            student_id=student_id,
            warning_type=warning_type,
            reason=reason,
            is_active=True,
        )
        self.db.add(warning)
        await self.db.flush()

        logger.info(
            "Generated %s warning %s for student %s: %s",
            warning_type.value,
            warning.id,
            student_id,
            reason,
        )

        await self.event_bus.publish(
            EventTypes.Warning.GENERATED,
            {
                "warning_id": warning.id,
                "student_id": student_id,
                "warning_type": warning_type.value,
                "reason": reason,
            },
        )
        return warning

    async def resolve_warning(self, warning_id: int, reason: str) -> StudentWarning:
        """Resolve one active warning.

        Raises:
            NotFoundError: If the warning does not exist.
            ValidationError: If the warning is already resolved.
        """
        warning = await self.db.get(StudentWarning, warning_id)
        if warning is None:
            raise NotFoundError("Warning", warning_id)
        if not warning.is_active:
            raise ValidationError(
                f"Warning {warning_id} is already resolved",
                {"warning_id": warning_id},
            )
        await self._deactivate(warning, reason)
        return warning

    async def resolve_warnings_by_student(
        self,
        student_id: int,
        warning_type: WarningType,
        reason: str = AUTO_RESOLVED_REASON,
    ) -> list[StudentWarning]:
        """Resolve every active warning of a type for a student.

        Returns:
            The warnings that were resolved.
        """
        warnings = await self._active_of_type(student_id, warning_type)
        for warning in warnings:
            await self._deactivate(warning, reason)
        return warnings

    async def _deactivate(self, warning: StudentWarning, reason: str) -> None:
        warning.is_active = False
        warning.resolved_at = utc_now()
        warning.resolution_reason = reason
        await self.db.flush()

        logger.info(
            "Resolved %s warning %s for student %s: %s",
            warning.warning_type.value,
            warning.id,
            warning.student_id,
            reason,
        )

        await self.event_bus.publish(
            EventTypes.Warning.RESOLVED,
            {
                "warning_id": warning.id,
                "student_id": warning.student_id,
                "warning_type": warning.warning_type.value,
                "reason": reason,
            },
        )

    async def _active_of_type(
        self,
        student_id: int,
        warning_type: WarningType,
    ) -> list[StudentWarning]:
        result = await self.db.execute(
            select(StudentWarning)
            .where(
                StudentWarning.student_id == student_id,
                StudentWarning.warning_type == warning_type,
                StudentWarning.is_active == True,  # noqa: E712
            )
            .order_by(StudentWarning.id)
        )
        return list(result.scalars().all())

    # Queries

    async def active_warnings(self) -> list[StudentWarning]:
        result = await self.db.execute(
            select(StudentWarning)
            .where(StudentWarning.is_active == True)  # noqa: E712
            .order_by(StudentWarning.created_at.desc(), StudentWarning.id.desc())
        )
        return list(result.scalars().all())

    async def warnings_by_student(self, student_id: int) -> list[StudentWarning]:
        result = await self.db.execute(
            select(StudentWarning)
            .where(StudentWarning.student_id == student_id)
            .order_by(StudentWarning.id)
        )
        return list(result.scalars().all())

    async def active_warnings_by_student(self, student_id: int) -> list[StudentWarning]:
        return [w for w in await self.warnings_by_student(student_id) if w.is_active]

    async def active_warning_count(self, student_id: int | None = None) -> int:
        query = select(func.count(StudentWarning.id)).where(
            StudentWarning.is_active == True  # noqa: E712
        )
        if student_id is not None:
            query = query.where(StudentWarning.student_id == student_id)
        result = await self.db.execute(query)
        return int(result.scalar_one())

    async def warning_type_breakdown(self) -> dict[WarningType, int]:
        """Number of active warnings per type, zero for absent types."""
        counts = Counter(w.warning_type for w in await self.active_warnings())
        return {warning_type: counts.get(warning_type, 0) for warning_type in WarningType}

    # Event handlers

    async def handle_attendance_marked(self, event: EventData) -> None:
        await self.check_and_generate_warnings(event.payload["student_id"])

    async def handle_incident_added(self, event: EventData) -> None:
        await self.check_and_generate_warnings(event.payload["student_id"])

    async def handle_student_restored(self, event: EventData) -> None:
        """A restored student starts over on attendance warnings."""
        student_id = event.payload["student_id"]
        await self.resolve_warnings_by_student(student_id, WarningType.ARCHIVED, RESTORED_REASON)
        await self.resolve_warnings_by_student(
            student_id, WarningType.CONSECUTIVE_ABSENCE, RESTORED_REASON
        )
