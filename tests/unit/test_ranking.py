# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the ranking sort key."""

import random
from datetime import datetime, timedelta, timezone

from src.domains.points import RankingEntry, rank_entries, ranking_sort_key

BASE_DATE = datetime(2025, 1, 1, tzinfo=timezone.utc)


def entry(student_id: int, total: float, quiz: float = 0, **overrides) -> RankingEntry:
    values = {
        "student_id": student_id,
        "full_name": f"Student {student_id}",
        "registration_date": BASE_DATE,
        "total_points": total,
        "quiz_points": quiz,
        "attendance_points": 0,
        "homework_points": 0,
        "target_points": 0,
    }
    values.update(overrides)
    return RankingEntry(**values)


class TestRankingSortKey:
    """Tests for the tie-break chain."""

    def test_totals_with_quiz_tie_break(self) -> None:
        entries = [
            entry(1, 248),
            entry(2, 250, quiz=118),
            entry(3, 230),
            entry(4, 260),
            entry(5, 250, quiz=120),
        ]

        ranked = rank_entries(entries)

        assert [(e.total_points, e.quiz_points) for e in ranked] == [
            (260, 0),
            (250, 120),
            (250, 118),
            (248, 0),
            (230, 0),
        ]
        assert [e.rank for e in ranked] == [1, 2, 3, 4, 5]

    def test_component_order(self) -> None:
        by_attendance = entry(1, 100, quiz=50, attendance_points=10)
        by_homework = entry(2, 100, quiz=50, attendance_points=9, homework_points=30)
        by_target = entry(3, 100, quiz=50, attendance_points=9, homework_points=29, target_points=12)

        ranked = rank_entries([by_target, by_homework, by_attendance])

        assert [e.student_id for e in ranked] == [1, 2, 3]

    def test_earlier_registration_ranks_higher(self) -> None:
        early = entry(7, 50, registration_date=BASE_DATE)
        late = entry(3, 50, registration_date=BASE_DATE + timedelta(days=1))

        assert [e.student_id for e in rank_entries([late, early])] == [7, 3]

    def test_naive_registration_dates_compare_as_utc(self) -> None:
        aware = entry(1, 50, registration_date=BASE_DATE + timedelta(hours=1))
        naive = entry(2, 50, registration_date=datetime(2025, 1, 1))

        assert [e.student_id for e in rank_entries([aware, naive])] == [2, 1]

    def test_name_then_id(self) -> None:
        zaid = entry(1, 50, full_name="Zaid")
        amal_high_id = entry(9, 50, full_name="Amal")
        amal_low_id = entry(4, 50, full_name="Amal")

        ranked = rank_entries([zaid, amal_high_id, amal_low_id], collate=str.casefold)

        assert [e.student_id for e in ranked] == [4, 9, 1]

    def test_order_is_independent_of_input_order(self) -> None:
        entries = [
            entry(i, total=float(i % 4), quiz=float(i % 3), full_name=f"Name {i % 2}")
            for i in range(1, 30)
        ]
        expected = [e.student_id for e in rank_entries(entries, collate=str)]

        shuffled = entries[:]
        random.Random(42).shuffle(shuffled)

        assert [e.student_id for e in rank_entries(shuffled, collate=str)] == expected

    def test_key_is_strict(self) -> None:
        entries = [entry(i, 10, full_name="Same") for i in range(1, 6)]

        keys = [ranking_sort_key(e, collate=str) for e in entries]

        assert len(set(keys)) == len(keys)
