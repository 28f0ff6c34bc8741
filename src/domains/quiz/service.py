# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Quiz service for quiz definitions and score entry.

This module provides the QuizService class for:
- Creating quizzes with categorized questions
- Entering a student's scores (announced as quiz.graded)
- Correcting a single score through the review workflow
- Score queries used by the indicator engine and the points ledger
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import NotFoundError, ValidationError
from src.domains.attendance.service import AttendanceService
from src.domains.lesson.service import LessonService
from src.domains.quiz.schemas import QuestionSpec
from src.domains.student.service import StudentService
from src.infrastructure.database.models.academic import (
    AttendanceStatus,
    Quiz,
    QuizQuestion,
    QuizScore,
)
from src.infrastructure.events import EventBus, EventTypes
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class QuizService:
    """Service for quizzes and quiz scores.

    Attributes:
        db: Async database session.
        event_bus: Bus used to announce graded quizzes.
        students: Student lookups.
        lessons: Lesson lookups.
        attendance: Attendance lookups (absent students cannot be graded).
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus,
        students: StudentService,
        lessons: LessonService,
        attendance: AttendanceService,
    ) -> None:
        self.db = db
        self.event_bus = event_bus
        self.students = students
        self.lessons = lessons
        self.attendance = attendance

    async def create_quiz(
        self,
        lesson_id: int,
        questions: Sequence[QuestionSpec],
        created_by: int | None = None,
    ) -> Quiz:
        """Create a quiz and its questions.

        Args:
            lesson_id: Lesson the quiz was given in.
            questions: Question definitions.
            created_by: Staff user creating the quiz.

        Returns:
            The created quiz. total_marks is the sum of question points.

        Raises:
            NotFoundError: If the lesson does not exist.
            ValidationError: If there are no questions or numbers repeat.
        """
        await self.lessons.get_lesson(lesson_id)
        if not questions:
            raise ValidationError("A quiz needs at least one question")

        numbers = [q.question_number for q in questions]
        if len(set(numbers)) != len(numbers):
            raise ValidationError(
                "Question numbers must be unique within a quiz",
                {"question_numbers": numbers},
            )

        quiz = Quiz(
            lesson_id=lesson_id,
            total_marks=sum(q.points for q in questions),
            created_by=created_by,
        )
        self.db.add(quiz)
        await self.db.flush()

        for spec in questions:
            self.db.add(
                QuizQuestion(
                    quiz_id=quiz.id,
                    question_number=spec.question_number,
                    question_type=spec.question_type,
                    category=spec.category,
                    points=spec.points,
                )
            )
        await self.db.flush()

        logger.info(
            "Created quiz %s for lesson %s with %d questions",
            quiz.id,
            lesson_id,
            len(questions),
        )
        return quiz

    async def get_quiz(self, quiz_id: int) -> Quiz:
        quiz = await self.db.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz", quiz_id)
        return quiz

    async def get_questions(self, quiz_id: int) -> list[QuizQuestion]:
        """Questions of a quiz ordered by question number.

        Raises:
            NotFoundError: If the quiz does not exist.
        """
        await self.get_quiz(quiz_id)
        result = await self.db.execute(
            select(QuizQuestion)
            .where(QuizQuestion.quiz_id == quiz_id)
            .order_by(QuizQuestion.question_number)
        )
        return list(result.scalars().all())

    async def enter_scores(
        self,
        quiz_id: int,
        student_id: int,
        scores: Mapping[int, float],
        entered_by: int | None = None,
    ) -> list[QuizScore]:
        """Enter a student's scores for a quiz and announce the grading.

        Scores already entered for a question are overwritten.

        Args:
            quiz_id: Quiz being graded.
            student_id: Student being graded.
            scores: Mapping of question id to points earned.
            entered_by: Staff user entering the scores.

        Returns:
            The stored score rows.

        Raises:
            NotFoundError: If the quiz or student does not exist.
            StudentNotActiveError: If the student is archived.
            ValidationError: If the student was absent for the quiz's lesson,
                a question does not belong to the quiz, or points are out of range.
        """
        quiz = await self.get_quiz(quiz_id)
        await self.students.require_active(student_id)
        if not scores:
            raise ValidationError("No scores given", {"quiz_id": quiz_id})

        attendance = await self.attendance.get_for_lesson(quiz.lesson_id, student_id)
        if attendance is not None and attendance.status == AttendanceStatus.ABSENT:
            raise ValidationError(
                f"Student {student_id} was absent for lesson {quiz.lesson_id}",
                {"student_id": student_id, "lesson_id": quiz.lesson_id},
            )

        questions = {q.id: q for q in await self.get_questions(quiz_id)}
        for question_id, earned in scores.items():
            question = questions.get(question_id)
            if question is None:
                raise ValidationError(
                    f"Question {question_id} does not belong to quiz {quiz_id}",
                    {"question_id": question_id, "quiz_id": quiz_id},
                )
            self._check_points(earned, question)

        existing = {
            score.question_id: score
            for score in await self.scores_for_student(student_id, quiz_id=quiz_id)
        }
        stored: list[QuizScore] = []
        for question_id, earned in scores.items():
            score = existing.get(question_id)
            if score is None:
                score = QuizScore(
                    quiz_id=quiz_id,
                    student_id=student_id,
                    question_id=question_id,
                    points_earned=float(earned),
                )
                self.db.add(score)
            else:
                score.points_earned = float(earned)
            score.entered_by = entered_by
            score.entered_at = utc_now()
            stored.append(score)
        await self.db.flush()

        logger.info(
            "Entered %d scores for student %s on quiz %s",
            len(stored),
            student_id,
            quiz_id,
        )

        await self.event_bus.publish(
            EventTypes.Quiz.GRADED,
            {"quiz_id": quiz_id, "student_id": student_id},
        )
        return stored

    async def update_score(self, score_id: int, new_points: float) -> QuizScore:
        """Correct one stored score without publishing an event.

        Raises:
            NotFoundError: If the score does not exist.
            ValidationError: If new_points is outside [0, question maximum].
        """
        score = await self.get_score(score_id)
        question = await self.db.get(QuizQuestion, score.question_id)
        if question is None:
            raise NotFoundError("QuizQuestion", score.question_id)
        self._check_points(new_points, question)

        previous = score.points_earned
        score.points_earned = float(new_points)
        score.entered_at = utc_now()
        await self.db.flush()

        logger.info("Corrected score %s from %s to %s", score_id, previous, new_points)
        return score

    async def get_score(self, score_id: int) -> QuizScore:
        score = await self.db.get(QuizScore, score_id)
        if score is None:
            raise NotFoundError("QuizScore", score_id)
        return score

    async def scores_for_student(
        self,
        student_id: int,
        quiz_id: int | None = None,
    ) -> list[QuizScore]:
        query = (
            select(QuizScore)
            .where(QuizScore.student_id == student_id)
            .order_by(QuizScore.quiz_id, QuizScore.question_id)
        )
        if quiz_id is not None:
            query = query.where(QuizScore.quiz_id == quiz_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def scores_for_quiz(self, quiz_id: int) -> list[QuizScore]:
        result = await self.db.execute(
            select(QuizScore)
            .where(QuizScore.quiz_id == quiz_id)
            .order_by(QuizScore.student_id, QuizScore.question_id)
        )
        return list(result.scalars().all())

    async def quiz_ids_for_student(self, student_id: int) -> list[int]:
        """Distinct ids of quizzes the student has scores on, in quiz order."""
        result = await self.db.execute(
            select(QuizScore.quiz_id)
            .where(QuizScore.student_id == student_id)
            .distinct()
            .order_by(QuizScore.quiz_id)
        )
        return list(result.scalars().all())

    async def total_points_for_student(self, student_id: int) -> float:
        result = await self.db.execute(
            select(func.coalesce(func.sum(QuizScore.points_earned), 0.0)).where(
                QuizScore.student_id == student_id
            )
        )
        return float(result.scalar_one())

    @staticmethod
    def _check_points(earned: float, question: QuizQuestion) -> None:
        if earned < 0 or earned > question.points:
            raise ValidationError(
                f"Points {earned} out of range for question {question.id} "
                f"(max {question.points})",
                {"question_id": question.id, "points": earned, "max": question.points},
            )
