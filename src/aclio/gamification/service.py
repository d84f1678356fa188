# src/aclio/gamification/service.py

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..goals.models import Goal
from ..storage.local_storage import LocalStorageService
from ..telemetry.analytics import AnalyticsService, EventName, ParamKey
from .models import (
    Achievement,
    Level,
    PointsConfig,
    StreakData,
    check_achievements,
    get_level,
    get_level_progress,
    get_next_level,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PointsAward:
    amount: int
    reason: str
    total: int
    level_up: Level | None = None


class GamificationService:
    """Points, levels, streaks and achievements, persisted through local storage."""

    def __init__(self, storage: LocalStorageService, analytics: AnalyticsService | None = None) -> None:
        self.storage = storage
        self.analytics = analytics
        self.points: int = storage.load_points()
        self.streak: StreakData = storage.load_streak()
        self.unlocked_achievements: list[str] = storage.load_achievements()

    # ---- derived ----

    @property
    def current_level(self) -> Level:
        return get_level(self.points)

    @property
    def next_level(self) -> Level | None:
        return get_next_level(self.points)

    @property
    def level_progress(self) -> float:
        return get_level_progress(self.points)

    @property
    def daily_bonus_claimed(self) -> bool:
        return self.storage.daily_bonus_claimed

    # ---- points ----

    def add_points(self, amount: int, reason: str) -> PointsAward:
        previous = self.current_level
        self.points += amount
        self.storage.save_points(self.points)

        level_up: Level | None = None
        current = self.current_level
        if current.level > previous.level:
            level_up = current
            logger.info("Level up: %s (%d points)", current.name, self.points)
            if self.analytics is not None:
                self.analytics.track_level_up(current.level, self.points)

        logger.debug("+%d points (%s) -> %d", amount, reason, self.points)
        return PointsAward(amount=amount, reason=reason, total=self.points, level_up=level_up)

    # ---- streak / daily bonus ----

    def update_streak(self) -> PointsAward | None:
        bonus = self.streak.update(self.storage.today())
        self.storage.save_streak(self.streak)
        if bonus > 0:
            return self.add_points(bonus, f"{self.streak.current}-day streak!")
        return None

    def claim_daily_bonus(self) -> bool:
        if self.storage.daily_bonus_claimed:
            return False

        self.storage.claim_daily_bonus()
        self.add_points(PointsConfig.DAILY_BONUS, "Daily login bonus!")
        self.update_streak()
        if self.analytics is not None:
            self.analytics.track(EventName.DAILY_BONUS_CLAIMED, {ParamKey.POINTS: PointsConfig.DAILY_BONUS})
        return True

    # ---- awards ----

    def award_step_points(self) -> PointsAward:
        award = self.add_points(PointsConfig.STEP_COMPLETE, "Step completed!")
        self.update_streak()
        return award

    def award_goal_points(self, is_first_goal: bool = False) -> PointsAward:
        award = self.add_points(PointsConfig.GOAL_COMPLETE, "Goal achieved!")
        if is_first_goal:
            award = self.add_points(PointsConfig.FIRST_GOAL, "First goal bonus!")
        return award

    # ---- achievements ----

    def check_achievements(self, goals: list[Goal]) -> list[Achievement]:
        newly = check_achievements(self.unlocked_achievements, goals, self.streak.current, self.points)
        for achievement in newly:
            self.unlocked_achievements.append(achievement.id)
            logger.info("Achievement unlocked: %s", achievement.id)
            if self.analytics is not None:
                self.analytics.track(EventName.ACHIEVEMENT_UNLOCKED, {"achievement_id": achievement.id})
        if newly:
            self.storage.save_achievements(self.unlocked_achievements)
        return newly

    def reset_all_progress(self) -> None:
        self.points = 0
        self.streak = StreakData()
        self.unlocked_achievements = []
        self.storage.save_points(0)
        self.storage.save_streak(self.streak)
        self.storage.save_achievements([])
        logger.info("Gamification progress reset.")
