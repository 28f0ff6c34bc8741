# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Update request orchestrator.

Assistants cannot change recorded facts directly. They submit an update
request, and an administrator approves or rejects it. Approval applies the
domain mutation and runs every dependent recalculation inside a single
transaction: either the correction and all of its consequences are
committed together, or nothing is.

This module provides the UpdateRequestOrchestrator class for:
- Submitting requests (one pending request per entity)
- Approving requests with the full recalculation cascade
- Rejecting requests
- Request queries for review screens and audit
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.domains.attendance.service import AttendanceService
from src.domains.auth.service import UserService
from src.domains.behavior.service import BehaviorService
from src.domains.homework.service import HomeworkService
from src.domains.performance.service import PerformanceIndicatorService
from src.domains.points.service import PointsLedgerService
from src.domains.quiz.service import QuizService
from src.domains.student.service import StudentService
from src.domains.update_requests.schemas import (
    AddBehavioralIncidentPayload,
    RemoveBehavioralIncidentPayload,
    RestoreArchivedStudentPayload,
    UpdateAttendancePayload,
    UpdateHomeworkPayload,
    UpdateQuizScorePayload,
    UpdateRequestPayload,
    parse_payload,
)
from src.domains.warnings.service import WarningService
from src.infrastructure.database.models.requests import (
    RequestStatus,
    RequestType,
    UpdateRequest,
)
from src.infrastructure.events import EventBus, EventTypes
from src.utils.datetime import utc_now
from src.utils.logging import bind_context, unbind_context

logger = logging.getLogger(__name__)


class UpdateRequestOrchestrator:
    """Review workflow for corrections to recorded facts.

    Unlike the other services, the orchestrator owns the transaction: it
    commits after submit, approve and reject, and rolls back when an
    approval fails at any point of its cascade.

    Attributes:
        db: Async database session.
        event_bus: Bus used to announce review outcomes.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus,
        users: UserService,
        students: StudentService,
        attendance: AttendanceService,
        homework: HomeworkService,
        quizzes: QuizService,
        behavior: BehaviorService,
        performance: PerformanceIndicatorService,
        points: PointsLedgerService,
        warnings: WarningService,
    ) -> None:
        self.db = db
        self.event_bus = event_bus
        self.users = users
        self.students = students
        self.attendance = attendance
        self.homework = homework
        self.quizzes = quizzes
        self.behavior = behavior
        self.performance = performance
        self.points = points
        self.warnings = warnings

    # Submission

    async def submit(
        self,
        payload: UpdateRequestPayload | dict[str, Any],
        requested_by: int,
        reason: str | None = None,
    ) -> UpdateRequest:
        """Submit a correction for review.

        Args:
            payload: Typed payload or its JSON document.
            requested_by: Staff user submitting the request.
            reason: Free-text justification.

        Returns:
            The pending request.

        Raises:
            ValidationError: If the payload is malformed.
            NotFoundError: If the requester or the target entity does not exist.
            ConflictError: If the entity already has a pending request.
        """
        decoded = parse_payload(payload)
        await self.users.get_user(requested_by)
        await self._check_entity(decoded)

        entity_type, entity_id = decoded.entity
        if await self.has_conflicting_request(entity_type, entity_id):
            raise ConflictError(
                f"A pending request already exists for {entity_type} {entity_id}",
                {"entity_type": entity_type, "entity_id": entity_id},
            )

        request = UpdateRequest(
            request_type=RequestType(decoded.request_type),
            entity_type=entity_type,
            entity_id=entity_id,
            payload=decoded.model_dump(mode="json"),
            reason=reason,
            requested_by=requested_by,
            status=RequestStatus.PENDING,
        )
        self.db.add(request)
        await self.db.flush()
        await self.db.commit()

        logger.info(
            "Update request %s submitted by %s: %s on %s %s",
            request.id,
            requested_by,
            decoded.request_type,
            entity_type,
            entity_id,
        )

        await self.event_bus.publish(
            EventTypes.UpdateRequest.SUBMITTED,
            self._event_payload(request),
        )
        return request

    async def _check_entity(self, payload: UpdateRequestPayload) -> None:
        if isinstance(payload, UpdateAttendancePayload):
            await self.attendance.get_attendance(payload.attendance_id)
        elif isinstance(payload, UpdateHomeworkPayload):
            await self.homework.get_homework(payload.homework_id)
        elif isinstance(payload, UpdateQuizScorePayload):
            await self.quizzes.get_score(payload.score_id)
        elif isinstance(payload, RemoveBehavioralIncidentPayload):
            await self.behavior.get_incident(payload.incident_id)
        elif isinstance(payload, (AddBehavioralIncidentPayload, RestoreArchivedStudentPayload)):
            await self.students.get_student(payload.student_id)

    # Review

    async def approve(
        self,
        request_id: int,
        reviewer_id: int,
        notes: str | None = None,
    ) -> UpdateRequest:
        """Approve a pending request and apply it with its full cascade.

        Args:
            request_id: Request to approve.
            reviewer_id: Administrator approving it.
            notes: Optional review notes.

        Returns:
            The approved request.

        Raises:
            AuthorizationError: If reviewer_id is not an administrator.
            NotFoundError: If the request or its entity does not exist.
            ValidationError: If the request is not pending or a precondition
                of the correction fails.
        """
        await self.users.require_admin(reviewer_id)
        request = await self._get_pending(request_id)

        bind_context(update_request_id=request_id, reviewer_id=reviewer_id)
        try:
            # Observers hear about the cascade only once it is committed.
            async with self.event_bus.deferred_observers():
                try:
                    payload = parse_payload(request.payload)
                    await self._apply(payload, reviewer_id)

                    request.status = RequestStatus.APPROVED
                    request.reviewed_by = reviewer_id
                    request.reviewed_at = utc_now()
                    request.review_notes = notes
                    await self.db.flush()
                    await self.db.commit()
                except Exception as e:
                    await self.db.rollback()
                    logger.error(
                        "Approval of update request %s failed: %s", request_id, str(e)
                    )
                    raise

                logger.info("Update request %s approved by %s", request_id, reviewer_id)

                await self.event_bus.publish(
                    EventTypes.UpdateRequest.APPROVED,
                    self._event_payload(request),
                )
        finally:
            unbind_context("update_request_id", "reviewer_id")
        return request

    async def _apply(self, payload: UpdateRequestPayload, reviewer_id: int) -> None:
        if isinstance(payload, UpdateAttendancePayload):
            record = await self.attendance.update_status(
                payload.attendance_id, payload.new_status
            )
            await self.points.update_attendance_points(record.student_id)
            await self.warnings.check_and_generate_warnings(record.student_id)

        elif isinstance(payload, UpdateHomeworkPayload):
            record = await self.homework.update_status(payload.homework_id, payload.new_status)
            await self.points.update_homework_points(record.student_id)

        elif isinstance(payload, UpdateQuizScorePayload):
            score = await self.quizzes.update_score(payload.score_id, payload.new_points)
            await self.performance.recalculate_all(score.student_id)
            await self.points.update_quiz_points(score.student_id)

        elif isinstance(payload, AddBehavioralIncidentPayload):
            await self.behavior.add_incident(
                payload.student_id,
                payload.lesson_id,
                payload.incident_type,
                notes=payload.notes,
                created_by=reviewer_id,
            )
            await self.warnings.check_and_generate_warnings(payload.student_id)

        elif isinstance(payload, RemoveBehavioralIncidentPayload):
            student_id = await self.behavior.delete_incident(payload.incident_id)
            await self.warnings.check_and_generate_warnings(student_id)

        elif isinstance(payload, RestoreArchivedStudentPayload):
            await self.students.restore(payload.student_id, reviewer_id)
            await self.points.recalculate(payload.student_id)

        else:
            raise ValidationError(f"Unsupported request payload: {type(payload).__name__}")

        logger.debug("Applied %s cascade", payload.request_type)

    async def reject(self, request_id: int, reviewer_id: int, reason: str) -> UpdateRequest:
        """Reject a pending request without touching any recorded fact.

        Raises:
            AuthorizationError: If reviewer_id is not an administrator.
            NotFoundError: If the request does not exist.
            ValidationError: If the request is not pending.
        """
        await self.users.require_admin(reviewer_id)
        request = await self._get_pending(request_id)

        request.status = RequestStatus.REJECTED
        request.reviewed_by = reviewer_id
        request.reviewed_at = utc_now()
        request.review_notes = reason
        await self.db.flush()
        await self.db.commit()

        logger.info("Update request %s rejected by %s", request_id, reviewer_id)

        await self.event_bus.publish(
            EventTypes.UpdateRequest.REJECTED,
            self._event_payload(request),
        )
        return request

    async def _get_pending(self, request_id: int) -> UpdateRequest:
        request = await self.get_request(request_id)
        if not request.is_pending:
            raise ValidationError(
                f"Update request {request_id} is already {request.status.value}",
                {"request_id": request_id, "status": request.status.value},
            )
        return request

    @staticmethod
    def _event_payload(request: UpdateRequest) -> dict[str, Any]:
        return {
            "request_id": request.id,
            "request_type": request.request_type.value,
            "entity_type": request.entity_type,
            "entity_id": request.entity_id,
            "requested_by": request.requested_by,
            "reviewed_by": request.reviewed_by,
            "status": request.status.value,
        }

    # Queries

    async def get_request(self, request_id: int) -> UpdateRequest:
        request = await self.db.get(UpdateRequest, request_id)
        if request is None:
            raise NotFoundError("UpdateRequest", request_id)
        return request

    async def pending_requests(self) -> list[UpdateRequest]:
        """Pending requests, oldest first."""
        return await self.requests_by_status(RequestStatus.PENDING)

    async def requests_by_status(self, status: RequestStatus) -> list[UpdateRequest]:
        result = await self.db.execute(
            select(UpdateRequest)
            .where(UpdateRequest.status == status)
            .order_by(UpdateRequest.requested_at, UpdateRequest.id)
        )
        return list(result.scalars().all())

    async def requests_by_requester(self, user_id: int) -> list[UpdateRequest]:
        result = await self.db.execute(
            select(UpdateRequest)
            .where(UpdateRequest.requested_by == user_id)
            .order_by(UpdateRequest.requested_at.desc(), UpdateRequest.id.desc())
        )
        return list(result.scalars().all())

    async def request_history(self, entity_type: str, entity_id: int) -> list[UpdateRequest]:
        """Every request ever made against one entity, oldest first."""
        result = await self.db.execute(
            select(UpdateRequest)
            .where(
                UpdateRequest.entity_type == entity_type,
                UpdateRequest.entity_id == entity_id,
            )
            .order_by(UpdateRequest.requested_at, UpdateRequest.id)
        )
        return list(result.scalars().all())

    async def has_conflicting_request(self, entity_type: str, entity_id: int) -> bool:
        result = await self.db.execute(
            select(func.count(UpdateRequest.id)).where(
                UpdateRequest.entity_type == entity_type,
                UpdateRequest.entity_id == entity_id,
                UpdateRequest.status == RequestStatus.PENDING,
            )
        )
        return int(result.scalar_one()) > 0

    async def pending_request_count(self) -> int:
        result = await self.db.execute(
            select(func.count(UpdateRequest.id)).where(
                UpdateRequest.status == RequestStatus.PENDING
            )
        )
        return int(result.scalar_one())
