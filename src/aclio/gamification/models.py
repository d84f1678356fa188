# src/aclio/gamification/models.py

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from ..goals.models import Goal


class PointsConfig:
    STEP_COMPLETE = 10
    GOAL_COMPLETE = 50
    DAILY_BONUS = 25
    STREAK_BONUS = 5  # per day of streak
    FIRST_GOAL = 30


@dataclass(frozen=True, slots=True)
class Level:
    level: int
    name: str
    min_points: int
    icon_name: str


LEVELS: tuple[Level, ...] = (
    Level(1, "Beginner", 0, "star"),
    Level(2, "Explorer", 100, "bolt"),
    Level(3, "Achiever", 300, "flame"),
    Level(4, "Champion", 600, "trophy"),
    Level(5, "Master", 1000, "medal"),
    Level(6, "Expert", 1500, "crown"),
    Level(7, "Legend", 2500, "diamond"),
    Level(8, "Elite", 4000, "sparkles"),
    Level(9, "Grandmaster", 6000, "rocket"),
    Level(10, "Ultimate", 10000, "scope"),
)


def get_level(points: int) -> Level:
    for lvl in reversed(LEVELS):
        if points >= lvl.min_points:
            return lvl
    return LEVELS[0]


def get_next_level(points: int) -> Level | None:
    current = get_level(points)
    idx = LEVELS.index(current)
    if idx + 1 >= len(LEVELS):
        return None
    return LEVELS[idx + 1]


def get_level_progress(points: int) -> float:
    """Fraction of the way from the current level to the next one (1.0 at max level)."""
    current = get_level(points)
    nxt = get_next_level(points)
    if nxt is None:
        return 1.0
    return (points - current.min_points) / (nxt.min_points - current.min_points)


@dataclass(slots=True)
class StreakData:
    current: int = 0
    best: int = 0
    last_active: str | None = None  # ISO date

    def is_active_on(self, today: date) -> bool:
        return self.last_active == today.isoformat()

    def update(self, today: date) -> int:
        """
        Record activity on `today` and return the streak bonus earned.

        Same day again -> 0. Consecutive day -> streak grows, bonus = STREAK_BONUS * current.
        Gap (or first activity) -> streak restarts at 1, no bonus.
        """
        today_s = today.isoformat()
        yesterday_s = (today - timedelta(days=1)).isoformat()

        if self.last_active == today_s:
            return 0

        if self.last_active == yesterday_s:
            self.current += 1
            self.best = max(self.best, self.current)
            self.last_active = today_s
            return PointsConfig.STREAK_BONUS * self.current

        self.current = 1
        self.best = max(self.best, self.current)
        self.last_active = today_s
        return 0

    def to_dict(self) -> dict[str, Any]:
        return {"current": self.current, "best": self.best, "lastActive": self.last_active}

    @classmethod
    def from_dict(cls, raw: Any) -> StreakData:
        if not isinstance(raw, dict):
            return cls()
        return cls(
            current=int(raw.get("current") or 0),
            best=int(raw.get("best") or 0),
            last_active=raw.get("lastActive"),
        )


@dataclass(frozen=True, slots=True)
class Achievement:
    id: str
    name: str
    desc: str
    icon_name: str
    gradient_id: str


def _completed_steps_total(goals: list[Goal]) -> int:
    return sum(len(g.completed_steps) for g in goals)


AchievementRule = Callable[[list[Goal], int, int], bool]

# (achievement, rule(goals, streak, points))
_CATALOG: tuple[tuple[Achievement, AchievementRule], ...] = (
    (Achievement("first_goal", "Goal Setter", "Created your first goal", "star", "purple"),
     lambda goals, streak, points: len(goals) >= 1),
    (Achievement("first_step", "First Step", "Completed your first step", "rocket", "green"),
     lambda goals, streak, points: any(g.completed_steps for g in goals)),
    (Achievement("first_complete", "Achiever", "Completed your first goal", "trophy", "gold"),
     lambda goals, streak, points: any(g.is_completed for g in goals)),
    (Achievement("streak_3", "On Fire", "3 day streak", "flame", "red"),
     lambda goals, streak, points: streak >= 3),
    (Achievement("streak_7", "Unstoppable", "7 day streak", "bolt", "blue"),
     lambda goals, streak, points: streak >= 7),
    (Achievement("five_goals", "Ambitious", "Created 5 goals", "target", "pink"),
     lambda goals, streak, points: len(goals) >= 5),
    (Achievement("three_complete", "Hat Trick", "Completed 3 goals", "medal", "teal"),
     lambda goals, streak, points: sum(1 for g in goals if g.is_completed) >= 3),
    (Achievement("ten_steps", "Step Master", "Completed 10 steps", "activity", "indigo"),
     lambda goals, streak, points: _completed_steps_total(goals) >= 10),
    (Achievement("fifty_steps", "Dedicated", "Completed 50 steps", "diamond", "cyan"),
     lambda goals, streak, points: _completed_steps_total(goals) >= 50),
    (Achievement("hundred_points", "Century", "Earned 100 points", "coins", "violet"),
     lambda goals, streak, points: points >= 100),
    (Achievement("five_hundred_points", "Elite", "Earned 500 points", "crown", "yellow"),
     lambda goals, streak, points: points >= 500),
    (Achievement("level_5", "Master", "Reached Level 5", "sparkles", "orange"),
     lambda goals, streak, points: get_level(points).level >= 5),
)

ACHIEVEMENTS: tuple[Achievement, ...] = tuple(a for a, _ in _CATALOG)


def find_achievement(achievement_id: str) -> Achievement | None:
    for a in ACHIEVEMENTS:
        if a.id == achievement_id:
            return a
    return None


def check_achievements(
    unlocked_ids: Iterable[str],
    goals: list[Goal],
    streak: int,
    points: int,
) -> list[Achievement]:
    """Return achievements whose condition holds and that are not unlocked yet (catalog order)."""
    unlocked = set(unlocked_ids)
    return [
        achievement
        for achievement, rule in _CATALOG
        if achievement.id not in unlocked and rule(goals, streak, points)
    ]
