# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Performance indicator domain.

Exports:
    PerformanceIndicatorService: Indicator computation, replay and queries.
    Trend: Direction of recent indicator values.
    CategoryTally: Real-valued per-category contributions of one quiz.
"""

from src.domains.performance.scoring import CategoryTally, Trend, tally_scores
from src.domains.performance.service import PerformanceIndicatorService

__all__ = [
    "PerformanceIndicatorService",
    "Trend",
    "CategoryTally",
    "tally_scores",
]
