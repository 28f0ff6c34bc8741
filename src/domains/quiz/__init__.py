# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Quiz domain package.

This package provides:
- Quiz and question creation
- Score entry and correction
"""

from src.domains.quiz.schemas import QuestionSpec
from src.domains.quiz.service import QuizService

__all__ = [
    "QuizService",
    "QuestionSpec",
]
