# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Points ledger and ranking domain.

Exports:
    PointsLedgerService: Ledger maintenance, rankings and snapshots.
    RankingEntry: One student's ranked position.
    ranking_sort_key: The ranking tie-break chain as a sort key.
"""

from src.domains.points.ranking import configure_collation, rank_entries, ranking_sort_key
from src.domains.points.schemas import RankingEntry
from src.domains.points.service import PointsLedgerService

__all__ = [
    "PointsLedgerService",
    "RankingEntry",
    "ranking_sort_key",
    "rank_entries",
    "configure_collation",
]
