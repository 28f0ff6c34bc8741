# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Ranking models for the points ledger."""

from datetime import datetime

from pydantic import BaseModel, Field


class RankingEntry(BaseModel):
    """One student's position in the class ranking.

    Attributes:
        rank: 1-based position. Never shared between students.
        student_id: Ranked student.
        full_name: Student name.
        registration_date: When the student registered.
        total_points: Sum of the four components.
        quiz_points: Points earned on quizzes.
        attendance_points: One per lesson attended.
        homework_points: 3 / 1 / 0 per homework record.
        target_points: Streak bonus points.
    """

    rank: int = Field(default=0, ge=0, description="1-based position, 0 before ranking")
    student_id: int = Field(description="Ranked student")
    full_name: str = Field(description="Student name")
    registration_date: datetime = Field(description="Registration instant")
    total_points: float = Field(default=0.0)
    quiz_points: float = Field(default=0.0)
    attendance_points: int = Field(default=0)
    homework_points: int = Field(default=0)
    target_points: int = Field(default=0)
