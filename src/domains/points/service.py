# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Points ledger and ranking engine.

Every student has one ledger row holding four components:
- quiz points: sum of all points earned on quizzes
- attendance points: one per lesson attended
- homework points: 3 per done, 1 per partially done, 0 per not done
- target points: streak bonus points earned so far
The total is their sum rounded to 2 decimals.

Narrow updates refresh one component from the raw facts and recompute the
total, so they always agree with a full recalculate. Rankings, statistics
and dated snapshots are derived from the ledger rows of active students.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.domains.attendance.service import AttendanceService
from src.domains.auth.service import UserService
from src.domains.homework.service import HomeworkService
from src.domains.points.ranking import rank_entries
from src.domains.points.schemas import RankingEntry
from src.domains.quiz.service import QuizService
from src.domains.student.service import StudentService
from src.domains.targets.service import TargetService
from src.infrastructure.database.models.performance import PointsLedgerEntry, RankingSnapshot
from src.infrastructure.database.models.student import Student, StudentStatus
from src.infrastructure.events import EventBus, EventData, EventTypes
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class PointsLedgerService:
    """Maintains the points ledger and derives rankings from it.

    Attributes:
        db: Async database session.
        event_bus: Bus used to announce ledger changes.
        students: Student lookups.
        users: Identity service for privilege checks.
        quizzes: Source of quiz points.
        attendance: Source of attendance points.
        homework: Source of homework points.
        targets: Source of target points.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus,
        students: StudentService,
        users: UserService,
        quizzes: QuizService,
        attendance: AttendanceService,
        homework: HomeworkService,
        targets: TargetService,
    ) -> None:
        self.db = db
        self.event_bus = event_bus
        self.students = students
        self.users = users
        self.quizzes = quizzes
        self.attendance = attendance
        self.homework = homework
        self.targets = targets

    # Ledger maintenance

    async def initialize(self, student_id: int) -> PointsLedgerEntry:
        """Create a zeroed ledger row if the student has none."""
        entry = await self.get_points(student_id)
        if entry is None:
            entry = PointsLedgerEntry(
                student_id=student_id,
                quiz_points=0.0,
                attendance_points=0,
                homework_points=0,
                target_points=0,
                total_points=0.0,
                last_updated=utc_now(),
            )
            self.db.add(entry)
            await self.db.flush()
            logger.debug("Initialized ledger for student %s", student_id)
        return entry

    async def recalculate(self, student_id: int) -> PointsLedgerEntry:
        """Recompute every component of a student's ledger row from raw facts.

        Raises:
            NotFoundError: If the student does not exist.
        """
        await self.students.get_student(student_id)
        entry = await self.initialize(student_id)
        entry.quiz_points = await self.quizzes.total_points_for_student(student_id)
        entry.attendance_points = await self.attendance.present_count(student_id)
        entry.homework_points = await self.homework.total_points(student_id)
        entry.target_points = await self.targets.total_target_points(student_id)
        return await self._store_total(entry, component="all")

    async def update_quiz_points(self, student_id: int) -> PointsLedgerEntry:
        entry = await self.initialize(student_id)
        entry.quiz_points = await self.quizzes.total_points_for_student(student_id)
        return await self._store_total(entry, component="quiz_points")

    async def update_attendance_points(self, student_id: int) -> PointsLedgerEntry:
        entry = await self.initialize(student_id)
        entry.attendance_points = await self.attendance.present_count(student_id)
        return await self._store_total(entry, component="attendance_points")

    async def update_homework_points(self, student_id: int) -> PointsLedgerEntry:
        entry = await self.initialize(student_id)
        entry.homework_points = await self.homework.total_points(student_id)
        return await self._store_total(entry, component="homework_points")

    async def update_target_points(self, student_id: int) -> PointsLedgerEntry:
        entry = await self.initialize(student_id)
        entry.target_points = await self.targets.total_target_points(student_id)
        return await self._store_total(entry, component="target_points")

    async def _store_total(self, entry: PointsLedgerEntry, component: str) -> PointsLedgerEntry:
        entry.total_points = round(
            entry.quiz_points
            + entry.attendance_points
            + entry.homework_points
            + entry.target_points,
            2,
        )
        entry.last_updated = utc_now()
        await self.db.flush()

        logger.debug(
            "Ledger of student %s updated (%s): total %.2f",
            entry.student_id,
            component,
            entry.total_points,
        )

        await self.event_bus.publish(
            EventTypes.Points.UPDATED,
            {
                "student_id": entry.student_id,
                "component": component,
                "components": entry.components(),
                "total": entry.total_points,
            },
        )
        return entry

    async def get_points(self, student_id: int) -> PointsLedgerEntry | None:
        result = await self.db.execute(
            select(PointsLedgerEntry).where(PointsLedgerEntry.student_id == student_id)
        )
        return result.scalar_one_or_none()

    # Rankings

    async def rankings(self, collate: Callable[[str], object] | None = None) -> list[RankingEntry]:
        """Rank every active student with a ledger row.

        Args:
            collate: Optional name collation function (defaults to
                locale.strxfrm).

        Returns:
            Entries in ranking order with 1-based ranks.
        """
        result = await self.db.execute(
            select(PointsLedgerEntry, Student)
            .join(Student, Student.id == PointsLedgerEntry.student_id)
            .where(Student.status == StudentStatus.ACTIVE)
        )
        entries = [
            RankingEntry(
                student_id=student.id,
                full_name=student.full_name,
                registration_date=student.registration_date,
                total_points=ledger.total_points,
                quiz_points=ledger.quiz_points,
                attendance_points=ledger.attendance_points,
                homework_points=ledger.homework_points,
                target_points=ledger.target_points,
            )
            for ledger, student in result.all()
        ]
        if collate is None:
            return rank_entries(entries)
        return rank_entries(entries, collate)

    async def rank(self, student_id: int) -> int:
        """1-based rank of a student.

        Raises:
            NotFoundError: If the student is not ranked (archived or no ledger row).
        """
        for entry in await self.rankings():
            if entry.student_id == student_id:
                return entry.rank
        raise NotFoundError("RankingEntry", student_id)

    async def top_n(self, n: int) -> list[RankingEntry]:
        if n < 0:
            raise ValidationError("n must not be negative", {"n": n})
        return (await self.rankings())[:n]

    async def average(self) -> float:
        """Average total of ranked students, 0.0 if nobody is ranked."""
        entries = await self.rankings()
        if not entries:
            return 0.0
        return round(sum(entry.total_points for entry in entries) / len(entries), 2)

    async def highest(self) -> RankingEntry | None:
        entries = await self.rankings()
        return entries[0] if entries else None

    # Snapshots

    async def create_snapshot(self, snapshot_date: date, created_by: int) -> RankingSnapshot:
        """Freeze the current ranking under a date.

        Raises:
            AuthorizationError: If created_by is not an administrator.
            ConflictError: If a snapshot already exists for the date.
        """
        await self.users.require_admin(created_by)

        if await self._find_snapshot(snapshot_date) is not None:
            raise ConflictError(
                f"A ranking snapshot for {snapshot_date.isoformat()} already exists",
                {"snapshot_date": snapshot_date.isoformat()},
            )

        entries = await self.rankings()
        snapshot = RankingSnapshot(
            snapshot_date=snapshot_date,
            entries=[entry.model_dump(mode="json") for entry in entries],
            created_by=created_by,
        )
        self.db.add(snapshot)
        await self.db.flush()

        logger.info(
            "Created ranking snapshot %s for %s with %d entries",
            snapshot.id,
            snapshot_date,
            len(entries),
        )

        await self.event_bus.publish(
            EventTypes.Points.SNAPSHOT_CREATED,
            {
                "snapshot_id": snapshot.id,
                "snapshot_date": snapshot_date.isoformat(),
                "entry_count": len(entries),
            },
        )
        return snapshot

    async def _find_snapshot(self, snapshot_date: date) -> RankingSnapshot | None:
        result = await self.db.execute(
            select(RankingSnapshot).where(RankingSnapshot.snapshot_date == snapshot_date)
        )
        return result.scalar_one_or_none()

    async def get_snapshot(self, snapshot_date: date) -> RankingSnapshot:
        snapshot = await self._find_snapshot(snapshot_date)
        if snapshot is None:
            raise NotFoundError("RankingSnapshot", snapshot_date.isoformat())
        return snapshot

    async def latest_snapshot(self) -> RankingSnapshot | None:
        result = await self.db.execute(
            select(RankingSnapshot).order_by(RankingSnapshot.snapshot_date.desc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def list_snapshots(self) -> list[RankingSnapshot]:
        result = await self.db.execute(
            select(RankingSnapshot).order_by(RankingSnapshot.snapshot_date)
        )
        return list(result.scalars().all())

    async def compare_snapshots(self, first_date: date, second_date: date) -> dict[int, int]:
        """Rank movement between two snapshots.

        Only students present in both snapshots are compared.

        Returns:
            Mapping of student id to (rank in first - rank in second). A
            positive value means the student moved up.

        Raises:
            NotFoundError: If either snapshot does not exist.
        """
        first = await self.get_snapshot(first_date)
        second = await self.get_snapshot(second_date)

        first_ranks = {entry["student_id"]: entry["rank"] for entry in first.entries}
        second_ranks = {entry["student_id"]: entry["rank"] for entry in second.entries}
        return {
            student_id: first_ranks[student_id] - second_ranks[student_id]
            for student_id in sorted(first_ranks.keys() & second_ranks.keys())
        }

    # Event handlers

    async def handle_student_registered(self, event: EventData) -> None:
        await self.initialize(event.payload["student_id"])

    async def handle_quiz_graded(self, event: EventData) -> None:
        await self.update_quiz_points(event.payload["student_id"])

    async def handle_attendance_marked(self, event: EventData) -> None:
        await self.update_attendance_points(event.payload["student_id"])

    async def handle_homework_recorded(self, event: EventData) -> None:
        await self.update_homework_points(event.payload["student_id"])

    async def handle_target_achieved(self, event: EventData) -> None:
        await self.update_target_points(event.payload["student_id"])
