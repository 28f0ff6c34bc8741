# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Composition root.

Builds every service around one session and one event bus, and wires the
recalculation cascade from a static subscription table. The table is the
single place where the cascade graph is defined, so it can be read and
tested on its own.

Example:
    >>> await startup()
    >>> async with get_session() as db:
    ...     services = compose(db)
    ...     await services.attendance.mark(lesson_id, student_id, AttendanceStatus.PRESENT)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import Settings, get_settings
from src.domains.attendance.service import AttendanceService
from src.domains.auth.service import UserService
from src.domains.behavior.service import BehaviorService
from src.domains.homework.service import HomeworkService
from src.domains.lesson.service import LessonService
from src.domains.performance.service import PerformanceIndicatorService
from src.domains.points.ranking import configure_collation
from src.domains.points.service import PointsLedgerService
from src.domains.quiz.service import QuizService
from src.domains.student.service import StudentService
from src.domains.targets.service import TargetService
from src.domains.update_requests.service import UpdateRequestOrchestrator
from src.domains.warnings.service import WarningService
from src.infrastructure.database import close_database, create_schema, init_database
from src.infrastructure.events import EventBus, EventTypes
from src.utils.logging import remove_handler, setup_logging

logger = logging.getLogger(__name__)


@dataclass
class TrackerServices:
    """Every service of one unit of work, sharing a session and a bus."""

    db: AsyncSession
    event_bus: EventBus
    users: UserService
    students: StudentService
    lessons: LessonService
    attendance: AttendanceService
    homework: HomeworkService
    quizzes: QuizService
    behavior: BehaviorService
    performance: PerformanceIndicatorService
    targets: TargetService
    points: PointsLedgerService
    warnings: WarningService
    update_requests: UpdateRequestOrchestrator


class Subscription(NamedTuple):
    """One edge of the cascade: event type -> service handler."""

    event_type: str
    service: str
    handler: str


# Order matters: handlers of one event run in the order listed.
SUBSCRIPTIONS: tuple[Subscription, ...] = (
    Subscription(EventTypes.Student.REGISTERED, "points", "handle_student_registered"),
    Subscription(EventTypes.Quiz.GRADED, "performance", "handle_quiz_graded"),
    Subscription(EventTypes.Quiz.GRADED, "points", "handle_quiz_graded"),
    Subscription(EventTypes.Performance.DEGRADATION_DETECTED, "targets", "handle_degradation"),
    Subscription(EventTypes.Performance.IMPROVEMENT_DETECTED, "targets", "handle_improvement"),
    Subscription(EventTypes.Target.ACHIEVED, "points", "handle_target_achieved"),
    Subscription(EventTypes.Attendance.MARKED, "points", "handle_attendance_marked"),
    Subscription(EventTypes.Attendance.MARKED, "warnings", "handle_attendance_marked"),
    Subscription(EventTypes.Homework.RECORDED, "points", "handle_homework_recorded"),
    Subscription(EventTypes.Behavior.INCIDENT_ADDED, "warnings", "handle_incident_added"),
    Subscription(EventTypes.Student.RESTORED, "warnings", "handle_student_restored"),
)


def compose(
    db: AsyncSession,
    event_bus: EventBus | None = None,
    settings: Settings | None = None,
    wire: bool = True,
) -> TrackerServices:
    """Construct every service with its dependencies.

    Args:
        db: Session shared by all services.
        event_bus: Bus to publish on. A fresh bus is created when omitted.
        settings: Application settings. Defaults to get_settings().
        wire: Register SUBSCRIPTIONS on the bus.

    Returns:
        The composed services.
    """
    settings = settings or get_settings()
    if settings.locale:
        configure_collation(settings.locale)

    bus = event_bus if event_bus is not None else EventBus()

    users = UserService(db)
    students = StudentService(db, bus, users)
    lessons = LessonService(db)
    attendance = AttendanceService(db, bus, students, lessons)
    homework = HomeworkService(db, bus, students, lessons)
    quizzes = QuizService(db, bus, students, lessons, attendance)
    behavior = BehaviorService(db, bus, students, lessons)
    performance = PerformanceIndicatorService(db, bus, quizzes)
    targets = TargetService(db, bus)
    points = PointsLedgerService(
        db, bus, students, users, quizzes, attendance, homework, targets
    )
    warnings = WarningService(db, bus, attendance, behavior)
    update_requests = UpdateRequestOrchestrator(
        db,
        bus,
        users,
        students,
        attendance,
        homework,
        quizzes,
        behavior,
        performance,
        points,
        warnings,
    )

    services = TrackerServices(
        db=db,
        event_bus=bus,
        users=users,
        students=students,
        lessons=lessons,
        attendance=attendance,
        homework=homework,
        quizzes=quizzes,
        behavior=behavior,
        performance=performance,
        targets=targets,
        points=points,
        warnings=warnings,
        update_requests=update_requests,
    )

    if wire:
        wire_subscriptions(services)
    return services


def wire_subscriptions(services: TrackerServices) -> None:
    """Register every entry of SUBSCRIPTIONS on the services' bus."""
    for subscription in SUBSCRIPTIONS:
        service = getattr(services, subscription.service)
        services.event_bus.subscribe(
            subscription.event_type,
            getattr(service, subscription.handler),
        )
    logger.debug("Wired %d event subscriptions", len(SUBSCRIPTIONS))


async def startup(settings: Settings | None = None, create_tables: bool = True) -> Settings:
    """Prepare the process: logging, the database engine and the schema.

    Args:
        settings: Application settings. Defaults to get_settings().
        create_tables: Create missing tables after connecting.

    Returns:
        The settings in effect.

    Raises:
        DatabaseError: If the engine cannot be created or the schema fails.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    await init_database(settings)
    if create_tables:
        await create_schema()

    logger.info(
        "Student tracker started (environment=%s, database=%s)",
        settings.environment,
        settings.database.url.split("://", 1)[0],
    )
    return settings


async def shutdown() -> None:
    """Release the database engine and the log handler."""
    await close_database()
    logger.info("Student tracker stopped")
    remove_handler()
