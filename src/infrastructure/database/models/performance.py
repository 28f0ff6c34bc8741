# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Derived performance facts.

Rows here are owned by the derived-fact services:
- performance_indicators: PerformanceIndicatorService (append-only, replayed on correction)
- points_ledger / ranking_snapshots: PointsLedgerService
- targets / achievement_streaks: TargetService
- warnings: WarningService
"""

from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.academic import Category
from src.infrastructure.database.models.base import Base, enum_type, utc_now


class WarningType(str, Enum):
    """Kinds of risk warnings."""

    CONSECUTIVE_ABSENCE = "consecutive_absence"
    ARCHIVED = "archived"
    BEHAVIORAL = "behavioral"


class PerformanceIndicator(Base):
    """Indicator computed for one (student, category, quiz).

    cumulative_indicator is the running sum of indicator_value over the
    student's records for the category in quiz order.
    """

    __tablename__ = "performance_indicators"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[Category] = mapped_column(enum_type(Category), nullable=False)
    quiz_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False
    )
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False)
    wrong_count: Mapped[int] = mapped_column(Integer, nullable=False)
    indicator_value: Mapped[int] = mapped_column(Integer, nullable=False)
    cumulative_indicator: Mapped[int] = mapped_column(Integer, nullable=False)
    computed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("ix_indicator_student_category", "student_id", "category", "id"),
    )

    def __repr__(self) -> str:
        return (
            f"<PerformanceIndicator(student={self.student_id}, category={self.category}, "
            f"quiz={self.quiz_id}, value={self.indicator_value}, "
            f"cumulative={self.cumulative_indicator})>"
        )


class PointsLedgerEntry(Base):
    """Point components and total for one student. Mutated in place."""

    __tablename__ = "points_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    quiz_points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    attendance_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    homework_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    target_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_points: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def components(self) -> dict[str, float]:
        return {
            "quiz_points": self.quiz_points,
            "attendance_points": self.attendance_points,
            "homework_points": self.homework_points,
            "target_points": self.target_points,
        }


class RankingSnapshot(Base):
    """Frozen copy of the class ranking on a date."""

    __tablename__ = "ranking_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    entries: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )


class Target(Base):
    """Indicator value a student is expected to regain in a category."""

    __tablename__ = "targets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[Category] = mapped_column(enum_type(Category), nullable=False)
    target_value: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    is_achieved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    achieved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_target_student_category", "student_id", "category", "is_achieved"),
    )


class AchievementStreak(Base):
    """Consecutive target achievements of one student."""

    __tablename__ = "achievement_streaks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_achievement_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Never decreases, not even when the streak resets
    total_points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class StudentWarning(Base):
    """Risk warning raised for a student."""

    __tablename__ = "warnings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    warning_type: Mapped[WarningType] = mapped_column(
        enum_type(WarningType), nullable=False
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    resolution_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_warning_student_type_active", "student_id", "warning_type", "is_active"),
    )
