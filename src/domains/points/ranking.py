# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class ranking order.

The whole tie-break chain lives in ranking_sort_key so it can be tested and
reused on its own:

1. total points, descending
2. quiz points, descending
3. attendance points, descending
4. homework points, descending
5. target points, descending
6. registration date, ascending (earlier registration ranks higher)
7. full name, ascending, using the process collation locale
8. student id, ascending

The last key makes the order strict even for students registered at the
same instant under the same name.
"""

import locale
import logging
from collections.abc import Callable, Iterable
from typing import Any

from src.domains.points.schemas import RankingEntry
from src.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)

Collate = Callable[[str], Any]


def configure_collation(locale_name: str) -> None:
    """Set the process collation locale used to order student names.

    Args:
        locale_name: Locale such as "en_US.UTF-8". Empty keeps the current one.

    Raises:
        locale.Error: If the locale is not available on this system.
    """
    if not locale_name:
        return
    locale.setlocale(locale.LC_COLLATE, locale_name)
    logger.info("Name collation locale set to %s", locale_name)


def ranking_sort_key(entry: RankingEntry, collate: Collate = locale.strxfrm) -> tuple:
    """Sort key implementing the ranking chain for one entry."""
    return (
        -entry.total_points,
        -entry.quiz_points,
        -entry.attendance_points,
        -entry.homework_points,
        -entry.target_points,
        ensure_utc(entry.registration_date),
        collate(entry.full_name),
        entry.student_id,
    )


def rank_entries(
    entries: Iterable[RankingEntry],
    collate: Collate = locale.strxfrm,
) -> list[RankingEntry]:
    """Order entries and assign 1-based ranks.

    Returns:
        New entries in ranking order with rank set.
    """
    ordered = sorted(entries, key=lambda entry: ranking_sort_key(entry, collate))
    return [
        entry.model_copy(update={"rank": position})
        for position, entry in enumerate(ordered, start=1)
    ]
