# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Input models for quiz creation."""

from pydantic import BaseModel, Field

from src.infrastructure.database.models.academic import Category, QuestionType


class QuestionSpec(BaseModel):
    """Definition of one quiz question.

    Attributes:
        question_number: Position of the question in the quiz (1-based).
        question_type: MCQ or essay.
        category: Category the question contributes to.
        points: Maximum attainable points.
    """

    question_number: int = Field(ge=1, description="Position in the quiz")
    question_type: QuestionType = Field(description="How the question is marked")
    category: Category = Field(description="Category the question contributes to")
    points: float = Field(ge=0, description="Maximum attainable points")
