# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Raw academic facts: lessons, quizzes, attendance, homework and behavior.

These rows are entered by staff. Everything in the performance module is
derived from them.
"""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, enum_type, utc_now


class QuestionType(str, Enum):
    """How a quiz question is marked."""

    MCQ = "mcq"
    ESSAY = "essay"


class Category(str, Enum):
    """Subject category a question contributes to."""

    NAHW = "nahw"
    ADAB = "adab"
    QISSA = "qissa"
    TABEER = "tabeer"
    NUSUS = "nusus"
    QIRAA = "qiraa"


class AttendanceStatus(str, Enum):
    """Presence at a lesson."""

    PRESENT = "present"
    ABSENT = "absent"


class HomeworkStatus(str, Enum):
    """Homework completion level."""

    DONE = "done"
    PARTIALLY_DONE = "partially_done"
    NOT_DONE = "not_done"

    @property
    def points(self) -> int:
        return HOMEWORK_POINTS[self]


HOMEWORK_POINTS: dict[HomeworkStatus, int] = {
    HomeworkStatus.DONE: 3,
    HomeworkStatus.PARTIALLY_DONE: 1,
    HomeworkStatus.NOT_DONE: 0,
}


class IncidentType(str, Enum):
    """Kind of behavioral incident."""

    LATE = "late"
    DISRESPECTFUL = "disrespectful"
    LEFT_EARLY = "left_early"
    OTHER = "other"


class Lesson(Base):
    """A class meeting. month_group groups lessons into teaching months."""

    __tablename__ = "lessons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lesson_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    month_group: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Lesson(id={self.id}, date={self.lesson_date}, month={self.month_group})>"


class Quiz(Base):
    """Quiz given in a lesson. Quizzes are ordered by id."""

    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lesson_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    total_marks: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )


class QuizQuestion(Base):
    """One question of a quiz. points is the maximum attainable."""

    __tablename__ = "quiz_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_number: Mapped[int] = mapped_column(Integer, nullable=False)
    question_type: Mapped[QuestionType] = mapped_column(
        enum_type(QuestionType), nullable=False
    )
    category: Mapped[Category] = mapped_column(enum_type(Category), nullable=False)
    points: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint("quiz_id", "question_number", name="uq_quiz_question_number"),
    )


class QuizScore(Base):
    """Points a student earned on one question."""

    __tablename__ = "quiz_scores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quiz_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False
    )
    points_earned: Mapped[float] = mapped_column(Float, nullable=False)
    entered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    entered_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("student_id", "question_id", name="uq_score_student_question"),
    )


class Attendance(Base):
    """Attendance of one student at one lesson."""

    __tablename__ = "attendance"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lesson_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[AttendanceStatus] = mapped_column(
        enum_type(AttendanceStatus), nullable=False
    )
    marked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    marked_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("lesson_id", "student_id", name="uq_attendance_lesson_student"),
    )


class Homework(Base):
    """Homework completion of one student for one lesson."""

    __tablename__ = "homework"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lesson_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[HomeworkStatus] = mapped_column(
        enum_type(HomeworkStatus), nullable=False
    )
    marked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    marked_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("lesson_id", "student_id", name="uq_homework_lesson_student"),
    )


class BehavioralIncident(Base):
    """Behavioral incident recorded against a student in a lesson."""

    __tablename__ = "behavioral_incidents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lesson_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False
    )
    incident_type: Mapped[IncidentType] = mapped_column(
        enum_type(IncidentType), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
