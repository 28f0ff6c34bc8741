# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy models for the tracker store.

Importing this package registers every table on Base.metadata.
"""

from src.infrastructure.database.models.academic import (
    HOMEWORK_POINTS,
    Attendance,
    AttendanceStatus,
    BehavioralIncident,
    Category,
    Homework,
    HomeworkStatus,
    IncidentType,
    Lesson,
    QuestionType,
    Quiz,
    QuizQuestion,
    QuizScore,
)
from src.infrastructure.database.models.base import Base
from src.infrastructure.database.models.performance import (
    AchievementStreak,
    PerformanceIndicator,
    PointsLedgerEntry,
    RankingSnapshot,
    StudentWarning,
    Target,
    WarningType,
)
from src.infrastructure.database.models.requests import (
    RequestStatus,
    RequestType,
    UpdateRequest,
)
from src.infrastructure.database.models.student import (
    Student,
    StudentStatus,
    User,
    UserRole,
)

__all__ = [
    "Base",
    # Identity and students
    "User",
    "UserRole",
    "Student",
    "StudentStatus",
    # Raw facts
    "Lesson",
    "Quiz",
    "QuizQuestion",
    "QuizScore",
    "QuestionType",
    "Category",
    "Attendance",
    "AttendanceStatus",
    "Homework",
    "HomeworkStatus",
    "HOMEWORK_POINTS",
    "BehavioralIncident",
    "IncidentType",
    # Derived facts
    "PerformanceIndicator",
    "PointsLedgerEntry",
    "RankingSnapshot",
    "Target",
    "AchievementStreak",
    "StudentWarning",
    "WarningType",
    # Review workflow
    "UpdateRequest",
    "RequestType",
    "RequestStatus",
]
