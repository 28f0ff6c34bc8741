# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Target and streak engine.

When a student's cumulative indicator in a category drops, one recovery
target is created for every integer value lost, and the achievement streak
is reset. When the cumulative later reaches a target's value the target is
achieved, the streak grows by one and the student earns the new streak
length as bonus points (1, 2, 3, ...). Bonus points already earned are
never taken away.

Events published:
- target.created: one per created target
- target.achieved: one per achieved target
- target.streak.updated: on every streak change, including resets
"""

from __future__ import annotations

import logging
from collections import defaultdict

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ValidationError
from src.infrastructure.database.models.academic import Category
from src.infrastructure.database.models.performance import AchievementStreak, Target
from src.infrastructure.events import EventBus, EventData, EventTypes
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

DEFAULT_TARGET_MESSAGE = "Improve your performance indicator in any category"


class TargetService:
    """Service for recovery targets and achievement streaks.

    Attributes:
        db: Async database session.
        event_bus: Bus used to announce target and streak changes.
    """

    def __init__(self, db: AsyncSession, event_bus: EventBus) -> None:
        self.db = db
        self.event_bus = event_bus

    async def on_degradation(
        self,
        student_id: int,
        category: Category,
        previous: int,
        current: int,
    ) -> list[Target]:
        """React to a drop of the cumulative indicator.

        Creates a target for every integer in (current, previous] that has no
        active target yet, and resets the streak while keeping earned points.

        Args:
            student_id: Student whose indicator dropped.
            category: Category of the drop.
            previous: Cumulative before the drop.
            current: Cumulative after the drop.

        Returns:
            Targets created by this call.
        """
        if previous <= current:
            return []

        active = await self.active_targets(student_id, category)
        existing = {target.target_value for target in active}
        created: list[Target] = []
        for value in range(current + 1, previous + 1):
            if value in existing:
                continue
            created.append(await self._add_target(student_id, category, value))

        streak = await self._get_or_create_streak(student_id)
        streak.current_streak = 0
        await self.db.flush()

        logger.info(
            "Degradation for student %s in %s (%d -> %d): %d targets created, streak reset",
            student_id,
            category.value,
            previous,
            current,
            len(created),
        )

        await self._publish_streak(streak, reason="reset")
        return created

    async def on_indicator_change(
        self,
        student_id: int,
        category: Category,
        new_indicator: int,
    ) -> list[Target]:
        """Achieve every active target the new cumulative has reached.

        Targets are processed in ascending value order. Each achievement
        raises the streak by one and awards the new streak length.

        Args:
            student_id: Student whose indicator changed.
            category: Category of the change.
            new_indicator: New cumulative indicator.

        Returns:
            Targets achieved by this call.
        """
        reached = [
            target
            for target in await self.active_targets(student_id, category)
            if target.target_value <= new_indicator
        ]
        if not reached:
            return []

        streak = await self._get_or_create_streak(student_id)
        for target in sorted(reached, key=lambda t: (t.target_value, t.id)):
            now = utc_now()
            target.is_achieved = True
            target.achieved_at = now
            streak.current_streak += 1
            streak.total_points_earned += streak.current_streak
            streak.last_achievement_at = now
            # The ledger reads the streak total when it handles target.achieved
            await self.db.flush()

            logger.info(
                "Student %s achieved target %s (%s >= %d), streak %d, +%d points",
                student_id,
                target.id,
                category.value,
                target.target_value,
                streak.current_streak,
                streak.current_streak,
            )

            await self.event_bus.publish(
                EventTypes.Target.ACHIEVED,
                {
                    "student_id": student_id,
                    "target_id": target.id,
                    "category": category.value,
                    "target_value": target.target_value,
                    "points_awarded": streak.current_streak,
                    "current_streak": streak.current_streak,
                },
            )
            await self._publish_streak(streak, reason="achievement")

        return reached

    async def create_target(
        self,
        student_id: int,
        category: Category,
        target_value: int,
    ) -> Target:
        """Create a single target.

        Raises:
            ValidationError: If an active target with this value already exists.
        """
        for target in await self.active_targets(student_id, category):
            if target.target_value == target_value:
                raise ValidationError(
                    f"Student {student_id} already has an active {category.value} "
                    f"target at {target_value}",
                    {"student_id": student_id, "category": category.value, "value": target_value},
                )
        return await self._add_target(student_id, category, target_value)

    async def _add_target(self, student_id: int, category: Category, value: int) -> Target:
        target = Target(
            student_id=student_id,
            category=category,
            target_value=value,
            is_achieved=False,
        )
        self.db.add(target)
        await self.db.flush()

        await self.event_bus.publish(
            EventTypes.Target.CREATED,
            {
                "student_id": student_id,
                "target_id": target.id,
                "category": category.value,
                "target_value": value,
            },
        )
        return target

    async def _get_or_create_streak(self, student_id: int) -> AchievementStreak:
        result = await self.db.execute(
            select(AchievementStreak).where(AchievementStreak.student_id == student_id)
        )
        streak = result.scalar_one_or_none()
        if streak is None:
            streak = AchievementStreak(
                student_id=student_id,
                current_streak=0,
                total_points_earned=0,
            )
            self.db.add(streak)
            await self.db.flush()
        return streak

    async def _publish_streak(self, streak: AchievementStreak, reason: str) -> None:
        await self.event_bus.publish(
            EventTypes.Target.STREAK_UPDATED,
            {
                "student_id": streak.student_id,
                "current_streak": streak.current_streak,
                "total_points_earned": streak.total_points_earned,
                "reason": reason,
            },
        )

    # Queries

    async def get_streak(self, student_id: int) -> AchievementStreak:
        """Streak of a student; a transient zero streak if none was stored."""
        result = await self.db.execute(
            select(AchievementStreak).where(AchievementStreak.student_id == student_id)
        )
        streak = result.scalar_one_or_none()
        if streak is None:
            return AchievementStreak(student_id=student_id, current_streak=0, total_points_earned=0)
        return streak

    async def current_streak(self, student_id: int) -> int:
        return (await self.get_streak(student_id)).current_streak

    async def total_target_points(self, student_id: int) -> int:
        return (await self.get_streak(student_id)).total_points_earned

    async def active_targets(
        self,
        student_id: int,
        category: Category | None = None,
    ) -> list[Target]:
        return await self._targets(student_id, achieved=False, category=category)

    async def achieved_targets(
        self,
        student_id: int,
        category: Category | None = None,
    ) -> list[Target]:
        return await self._targets(student_id, achieved=True, category=category)

    async def _targets(
        self,
        student_id: int,
        achieved: bool,
        category: Category | None,
    ) -> list[Target]:
        query = select(Target).where(
            Target.student_id == student_id,
            Target.is_achieved == achieved,
        )
        if category is not None:
            query = query.where(Target.category == category)
        result = await self.db.execute(query.order_by(Target.target_value, Target.id))
        return list(result.scalars().all())

    async def targets_by_category(self, student_id: int) -> dict[Category, list[Target]]:
        """Every target of the student grouped by category."""
        result = await self.db.execute(
            select(Target)
            .where(Target.student_id == student_id)
            .order_by(Target.category, Target.target_value, Target.id)
        )
        grouped: dict[Category, list[Target]] = defaultdict(list)
        for target in result.scalars().all():
            grouped[target.category].append(target)
        return dict(grouped)

    async def active_target_count(self, student_id: int) -> int:
        return await self._count(student_id, achieved=False)

    async def achieved_target_count(self, student_id: int) -> int:
        return await self._count(student_id, achieved=True)

    async def _count(self, student_id: int, achieved: bool) -> int:
        result = await self.db.execute(
            select(func.count(Target.id)).where(
                Target.student_id == student_id,
                Target.is_achieved == achieved,
            )
        )
        return int(result.scalar_one())

    async def has_active_targets(self, student_id: int) -> bool:
        return await self.active_target_count(student_id) > 0

    async def default_target_message(self, student_id: int) -> str:
        """Guidance shown when a student has no active targets, else ""."""
        if await self.has_active_targets(student_id):
            return ""
        return DEFAULT_TARGET_MESSAGE

    async def top_streaks(self, limit: int = 10) -> list[AchievementStreak]:
        """Streaks ordered by current streak, then total points earned."""
        if limit < 0:
            raise ValidationError("limit must not be negative", {"limit": limit})
        result = await self.db.execute(
            select(AchievementStreak)
            .order_by(
                AchievementStreak.current_streak.desc(),
                AchievementStreak.total_points_earned.desc(),
                AchievementStreak.student_id,
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    # Event handlers

    async def handle_degradation(self, event: EventData) -> None:
        payload = event.payload
        await self.on_degradation(
            payload["student_id"],
            Category(payload["category"]),
            payload["previous"],
            payload["current"],
        )

    async def handle_improvement(self, event: EventData) -> None:
        payload = event.payload
        await self.on_indicator_change(
            payload["student_id"],
            Category(payload["category"]),
            payload["current"],
        )
