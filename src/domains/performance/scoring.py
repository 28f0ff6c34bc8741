# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pure scoring rules for performance indicators.

Per category, every scored question adds to a real-valued correct/wrong
tally:
- MCQ: full marks count as one correct answer, anything less as one wrong.
- Essay: the earned proportion p (4 decimal places) adds p to correct and
  1 - p to wrong.
Questions with a zero maximum contribute nothing. The two tallies are
rounded half-up independently and the indicator is their difference.

Example:
    Two MCQs (one right, one wrong) and an essay scored 4/5 in the same
    category tally to correct 1.8 and wrong 1.2, giving 2 - 1 = 1.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Protocol

from src.infrastructure.database.models.academic import Category, QuestionType

TREND_WINDOW = 3
PROPORTION_PLACES = Decimal("0.0001")


class Trend(str, Enum):
    """Direction of recent indicator values."""

    IMPROVING = "improving"
    DEGRADING = "degrading"
    STABLE = "stable"


class ScoredQuestion(Protocol):
    id: int
    question_type: QuestionType
    category: Category
    points: float


@dataclass
class CategoryTally:
    """Real-valued correct/wrong contributions for one category."""

    correct: Decimal = field(default_factory=Decimal)
    wrong: Decimal = field(default_factory=Decimal)

    @property
    def correct_count(self) -> int:
        return round_half_up(self.correct)

    @property
    def wrong_count(self) -> int:
        return round_half_up(self.wrong)

    @property
    def indicator(self) -> int:
        return self.correct_count - self.wrong_count


def to_decimal(value: float | int | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero (0.5 -> 1)."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def essay_proportion(earned: float, max_points: float) -> Decimal:
    """Earned share of an essay's maximum, rounded half-up to 4 places."""
    ratio = to_decimal(earned) / to_decimal(max_points)
    return ratio.quantize(PROPORTION_PLACES, rounding=ROUND_HALF_UP)


def tally_scores(
    questions: Iterable[ScoredQuestion],
    earned_by_question: Mapping[int, float],
) -> dict[Category, CategoryTally]:
    """Build per-category tallies from questions and a student's scores.

    Only questions the student has a score for are counted.

    Args:
        questions: Questions of the quiz.
        earned_by_question: Points earned keyed by question id.

    Returns:
        Tallies keyed by category, in category declaration order.
    """
    tallies: dict[Category, CategoryTally] = {}
    for question in questions:
        if question.id not in earned_by_question:
            continue
        max_points = to_decimal(question.points)
        if max_points <= 0:
            continue

        earned = to_decimal(earned_by_question[question.id])
        tally = tallies.setdefault(question.category, CategoryTally())

        if question.question_type == QuestionType.MCQ:
            if earned >= max_points:
                tally.correct += 1
            else:
                tally.wrong += 1
        else:
            proportion = essay_proportion(earned, max_points)
            tally.correct += proportion
            tally.wrong += Decimal(1) - proportion

    order = list(Category)
    return dict(sorted(tallies.items(), key=lambda item: order.index(item[0])))


def classify_trend(values: Sequence[int]) -> Trend:
    """Classify the last TREND_WINDOW indicator values.

    Fewer values than the window are Stable. Otherwise the sign of
    (last - first) inside the window decides.
    """
    if len(values) < TREND_WINDOW:
        return Trend.STABLE
    window = values[-TREND_WINDOW:]
    difference = window[-1] - window[0]
    if difference > 0:
        return Trend.IMPROVING
    if difference < 0:
        return Trend.DEGRADING
    return Trend.STABLE


def categories_below_mean(cumulatives: Mapping[Category, int]) -> list[Category]:
    if not cumulatives:
        return []
    mean = Decimal(sum(cumulatives.values())) / len(cumulatives)
    return [category for category, value in cumulatives.items() if value < mean]


def categories_above_mean(cumulatives: Mapping[Category, int]) -> list[Category]:
    if not cumulatives:
        return []
    mean = Decimal(sum(cumulatives.values())) / len(cumulatives)
    return [category for category, value in cumulatives.items() if value > mean]
