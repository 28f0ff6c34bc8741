# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Performance indicator engine.

This module provides the PerformanceIndicatorService which turns graded
quizzes into per-category indicator records and announces significant
changes of the cumulative indicator.

Records are append-only. A correction to historical scores deletes every
record of the student and replays the quizzes in order, so the cumulative
chain is always rebuilt from scratch and never patched in place.

Events published:
- performance.indicator.computed: one per category per computed quiz
- performance.improvement.detected / performance.degradation.detected:
  when the cumulative of a (student, category) pair moves
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ValidationError
from src.domains.performance.scoring import (
    Trend,
    categories_above_mean,
    categories_below_mean,
    classify_trend,
    tally_scores,
)
from src.domains.quiz.service import QuizService
from src.infrastructure.database.models.academic import Category
from src.infrastructure.database.models.performance import PerformanceIndicator
from src.infrastructure.events import EventBus, EventData, EventTypes

logger = logging.getLogger(__name__)


class PerformanceIndicatorService:
    """Computes and queries performance indicators.

    Attributes:
        db: Async database session.
        event_bus: Bus used to announce indicator changes.
        quizzes: Source of questions and scores.
    """

    def __init__(self, db: AsyncSession, event_bus: EventBus, quizzes: QuizService) -> None:
        self.db = db
        self.event_bus = event_bus
        self.quizzes = quizzes

    async def compute_for_quiz(
        self,
        quiz_id: int,
        student_id: int,
        announce_transitions: bool = True,
    ) -> list[PerformanceIndicator]:
        """Compute and persist indicator records for one graded quiz.

        Args:
            quiz_id: Quiz whose scores are evaluated.
            student_id: Student whose scores are evaluated.
            announce_transitions: Publish improvement/degradation events.
                Replays turn this off and announce the net change instead.

        Returns:
            Created records, one per category the student was scored in.

        Raises:
            NotFoundError: If the quiz does not exist.
            ValidationError: If the quiz has no questions.
        """
        questions = await self.quizzes.get_questions(quiz_id)
        if not questions:
            raise ValidationError(f"Quiz {quiz_id} has no questions", {"quiz_id": quiz_id})

        scores = await self.quizzes.scores_for_student(student_id, quiz_id=quiz_id)
        if not scores:
            logger.debug("Student %s has no scores on quiz %s", student_id, quiz_id)
            return []

        tallies = tally_scores(
            questions,
            {score.question_id: score.points_earned for score in scores},
        )

        records: list[PerformanceIndicator] = []
        for category, tally in tallies.items():
            previous = await self.latest(student_id, category)
            previous_cumulative = previous.cumulative_indicator if previous else 0
            record = PerformanceIndicator(
                student_id=student_id,
                category=category,
                quiz_id=quiz_id,
                correct_count=tally.correct_count,
                wrong_count=tally.wrong_count,
                indicator_value=tally.indicator,
                cumulative_indicator=previous_cumulative + tally.indicator,
            )
            self.db.add(record)
            await self.db.flush()
            records.append(record)

            logger.debug(
                "Indicator for student %s, %s, quiz %s: %d - %d = %d (cumulative %d)",
                student_id,
                category.value,
                quiz_id,
                record.correct_count,
                record.wrong_count,
                record.indicator_value,
                record.cumulative_indicator,
            )

            await self.event_bus.publish(
                EventTypes.Performance.INDICATOR_COMPUTED,
                {
                    "student_id": student_id,
                    "category": category.value,
                    "quiz_id": quiz_id,
                    "indicator_value": record.indicator_value,
                    "cumulative_indicator": record.cumulative_indicator,
                },
            )

            if previous is not None and announce_transitions:
                await self._announce_transition(
                    student_id,
                    category,
                    previous.cumulative_indicator,
                    record.cumulative_indicator,
                    quiz_id=quiz_id,
                )

        return records

    async def recalculate_all(self, student_id: int) -> list[PerformanceIndicator]:
        """Rebuild every indicator record of a student from the scores.

        The quizzes the student has scores on are replayed in quiz order.
        Per-quiz transitions are not re-announced; instead each category
        whose final cumulative differs from the one before the rebuild gets
        a single improvement or degradation event.

        Returns:
            All records created by the replay.
        """
        before = await self.category_indicators(student_id)

        await self.db.execute(
            delete(PerformanceIndicator).where(PerformanceIndicator.student_id == student_id)
        )
        await self.db.flush()

        quiz_ids = await self.quizzes.quiz_ids_for_student(student_id)
        records: list[PerformanceIndicator] = []
        for quiz_id in quiz_ids:
            records.extend(
                await self.compute_for_quiz(quiz_id, student_id, announce_transitions=False)
            )

        after = await self.category_indicators(student_id)
        for category, current in after.items():
            if category in before:
                await self._announce_transition(student_id, category, before[category], current)

        logger.info(
            "Recalculated %d indicator records for student %s over %d quizzes",
            len(records),
            student_id,
            len(quiz_ids),
        )
        return records

    async def _announce_transition(
        self,
        student_id: int,
        category: Category,
        previous: int,
        current: int,
        quiz_id: int | None = None,
    ) -> None:
        if current == previous:
            return

        payload: dict[str, Any] = {
            "student_id": student_id,
            "category": category.value,
            "quiz_id": quiz_id,
            "previous": previous,
            "current": current,
            "amount": abs(current - previous),
        }
        if current > previous:
            logger.info(
                "Improvement for student %s in %s: %d -> %d",
                student_id,
                category.value,
                previous,
                current,
            )
            await self.event_bus.publish(EventTypes.Performance.IMPROVEMENT_DETECTED, payload)
        else:
            logger.info(
                "Degradation for student %s in %s: %d -> %d",
                student_id,
                category.value,
                previous,
                current,
            )
            await self.event_bus.publish(EventTypes.Performance.DEGRADATION_DETECTED, payload)

    # Queries

    async def history(
        self,
        student_id: int,
        category: Category | None = None,
    ) -> list[PerformanceIndicator]:
        """Indicator records of a student in computation order."""
        query = select(PerformanceIndicator).where(PerformanceIndicator.student_id == student_id)
        if category is not None:
            query = query.where(PerformanceIndicator.category == category)
        result = await self.db.execute(query.order_by(PerformanceIndicator.id))
        return list(result.scalars().all())

    async def latest(self, student_id: int, category: Category) -> PerformanceIndicator | None:
        result = await self.db.execute(
            select(PerformanceIndicator)
            .where(
                PerformanceIndicator.student_id == student_id,
                PerformanceIndicator.category == category,
            )
            .order_by(PerformanceIndicator.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def current_cumulative(self, student_id: int, category: Category) -> int:
        record = await self.latest(student_id, category)
        return record.cumulative_indicator if record else 0

    async def category_indicators(self, student_id: int) -> dict[Category, int]:
        """Current cumulative indicator per category the student has records in."""
        current: dict[Category, int] = {}
        for record in await self.history(student_id):
            current[record.category] = record.cumulative_indicator
        order = list(Category)
        return dict(sorted(current.items(), key=lambda item: order.index(item[0])))

    async def overall_indicator(self, student_id: int) -> int:
        return sum((await self.category_indicators(student_id)).values())

    async def progression(self, student_id: int, category: Category) -> dict[int, int]:
        """Cumulative indicator after each quiz, keyed by quiz id."""
        return {
            record.quiz_id: record.cumulative_indicator
            for record in await self.history(student_id, category)
        }

    async def trend(self, student_id: int, category: Category) -> Trend:
        values = [record.indicator_value for record in await self.history(student_id, category)]
        return classify_trend(values)

    async def weak_categories(self, student_id: int) -> list[Category]:
        """Categories whose cumulative is strictly below the student's mean."""
        return categories_below_mean(await self.category_indicators(student_id))

    async def strong_categories(self, student_id: int) -> list[Category]:
        return categories_above_mean(await self.category_indicators(student_id))

    # Event handlers

    async def handle_quiz_graded(self, event: EventData) -> None:
        """Compute indicators for a freshly graded quiz.

        If the quiz was already computed for the student (scores re-entered),
        the student's chain is rebuilt instead of appending a second record.
        """
        quiz_id = event.payload["quiz_id"]
        student_id = event.payload["student_id"]

        result = await self.db.execute(
            select(PerformanceIndicator.id)
            .where(
                PerformanceIndicator.student_id == student_id,
                PerformanceIndicator.quiz_id == quiz_id,
            )
            .limit(1)
        )
        if result.scalar_one_or_none() is not None:
            await self.recalculate_all(student_id)
        else:
            await self.compute_for_quiz(quiz_id, student_id)
