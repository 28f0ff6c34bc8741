# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the target and streak engine."""

import pytest

from src.core.exceptions import ValidationError
from src.domains.targets.service import DEFAULT_TARGET_MESSAGE
from src.infrastructure.database.models import Category
from src.infrastructure.events import EventTypes


class TestDegradation:
    """Tests for target creation on degradation."""

    @pytest.mark.asyncio
    async def test_ten_to_seven(self, services, student, recorded_events) -> None:
        await services.targets.create_target(student.id, Category.ADAB, 1)
        await services.targets.on_indicator_change(student.id, Category.ADAB, 1)
        assert await services.targets.current_streak(student.id) == 1
        recorded_events.clear()

        created = await services.targets.on_degradation(student.id, Category.NAHW, 10, 7)

        assert [t.target_value for t in created] == [8, 9, 10]
        assert all(t.category == Category.NAHW for t in created)

        streak = await services.targets.get_streak(student.id)
        assert streak.current_streak == 0
        assert streak.total_points_earned == 1

        types = [e.event_type for e in recorded_events]
        assert types.count(EventTypes.Target.CREATED) == 3
        assert types.count(EventTypes.Target.STREAK_UPDATED) == 1
        reset = next(e for e in recorded_events if e.event_type == EventTypes.Target.STREAK_UPDATED)
        assert reset.payload["reason"] == "reset"

    @pytest.mark.asyncio
    async def test_existing_active_values_are_skipped(self, services, student) -> None:
        await services.targets.create_target(student.id, Category.NAHW, 9)

        created = await services.targets.on_degradation(student.id, Category.NAHW, 10, 7)

        assert [t.target_value for t in created] == [8, 10]
        values = [t.target_value for t in await services.targets.active_targets(student.id)]
        assert values == [8, 9, 10]

    @pytest.mark.asyncio
    async def test_no_drop_is_noop(self, services, student, recorded_events) -> None:
        recorded_events.clear()

        assert await services.targets.on_degradation(student.id, Category.NAHW, 4, 4) == []
        assert await services.targets.on_degradation(student.id, Category.NAHW, 4, 6) == []
        assert recorded_events == []


class TestAchievement:
    """Tests for target achievement and streak points."""

    @pytest.mark.asyncio
    async def test_three_achievements_award_one_two_three(
        self, services, student, recorded_events
    ) -> None:
        await services.targets.on_degradation(student.id, Category.NAHW, 10, 7)
        recorded_events.clear()

        achieved = await services.targets.on_indicator_change(student.id, Category.NAHW, 10)

        assert [t.target_value for t in achieved] == [8, 9, 10]
        assert all(t.is_achieved and t.achieved_at is not None for t in achieved)

        streak = await services.targets.get_streak(student.id)
        assert streak.current_streak == 3
        assert streak.total_points_earned == 6

        awards = [
            e.payload["points_awarded"]
            for e in recorded_events
            if e.event_type == EventTypes.Target.ACHIEVED
        ]
        assert awards == [1, 2, 3]

        ledger = await services.points.get_points(student.id)
        assert ledger.target_points == 6

    @pytest.mark.asyncio
    async def test_partial_achievement(self, services, student) -> None:
        await services.targets.on_degradation(student.id, Category.NAHW, 10, 7)

        achieved = await services.targets.on_indicator_change(student.id, Category.NAHW, 8)

        assert [t.target_value for t in achieved] == [8]
        assert await services.targets.active_target_count(student.id) == 2
        assert await services.targets.achieved_target_count(student.id) == 1

    @pytest.mark.asyncio
    async def test_other_categories_untouched(self, services, student) -> None:
        await services.targets.on_degradation(student.id, Category.NAHW, 3, 2)

        achieved = await services.targets.on_indicator_change(student.id, Category.ADAB, 50)

        assert achieved == []
        assert await services.targets.has_active_targets(student.id) is True

    @pytest.mark.asyncio
    async def test_points_survive_later_reset(self, services, student) -> None:
        await services.targets.on_degradation(student.id, Category.NAHW, 2, 0)
        await services.targets.on_indicator_change(student.id, Category.NAHW, 2)
        await services.targets.on_degradation(student.id, Category.NAHW, 2, 1)

        assert await services.targets.current_streak(student.id) == 0
        assert await services.targets.total_target_points(student.id) == 3


class TestTargetQueries:
    """Tests for target queries and helpers."""

    @pytest.mark.asyncio
    async def test_duplicate_active_target(self, services, student) -> None:
        await services.targets.create_target(student.id, Category.QISSA, 4)

        with pytest.raises(ValidationError):
            await services.targets.create_target(student.id, Category.QISSA, 4)

    @pytest.mark.asyncio
    async def test_streak_defaults_to_zero(self, services, student) -> None:
        streak = await services.targets.get_streak(student.id)

        assert streak.current_streak == 0
        assert streak.total_points_earned == 0

    @pytest.mark.asyncio
    async def test_default_target_message(self, services, student) -> None:
        assert await services.targets.default_target_message(student.id) == DEFAULT_TARGET_MESSAGE

        await services.targets.create_target(student.id, Category.NAHW, 1)

        assert await services.targets.default_target_message(student.id) == ""

    @pytest.mark.asyncio
    async def test_targets_by_category(self, services, student) -> None:
        await services.targets.create_target(student.id, Category.NAHW, 1)
        await services.targets.create_target(student.id, Category.ADAB, 2)

        grouped = await services.targets.targets_by_category(student.id)

        assert set(grouped) == {Category.NAHW, Category.ADAB}
        assert [t.target_value for t in grouped[Category.ADAB]] == [2]

    @pytest.mark.asyncio
    async def test_top_streaks(self, services, student) -> None:
        other = await services.students.register("Yusuf")
        await services.targets.on_degradation(other.id, Category.NAHW, 2, 0)
        await services.targets.on_indicator_change(other.id, Category.NAHW, 2)
        await services.targets.on_degradation(student.id, Category.NAHW, 1, 0)
        await services.targets.on_indicator_change(student.id, Category.NAHW, 1)

        top = await services.targets.top_streaks(limit=1)

        assert [s.student_id for s in top] == [other.id]
        with pytest.raises(ValidationError):
            await services.targets.top_streaks(limit=-1)
