# tests/test_gamification.py

from __future__ import annotations

from datetime import date

import pytest

from aclio.gamification.models import (
    ACHIEVEMENTS,
    LEVELS,
    PointsConfig,
    StreakData,
    check_achievements,
    find_achievement,
    get_level,
    get_level_progress,
    get_next_level,
)
from aclio.goals.models import Goal, Step
from aclio.telemetry.analytics import EventName


@pytest.mark.parametrize(
    ("points", "name"),
    [(0, "Beginner"), (99, "Beginner"), (100, "Explorer"), (999, "Champion"), (1000, "Master"), (10000, "Ultimate")],
)
def test_get_level(points: int, name: str) -> None:
    assert get_level(points).name == name


def test_next_level_and_progress() -> None:
    assert get_next_level(0).name == "Explorer"
    assert get_next_level(50000) is None
    assert get_level_progress(200) == pytest.approx(0.5)
    assert get_level_progress(LEVELS[-1].min_points) == 1.0


def test_streak_update_rules() -> None:
    s = StreakData()
    assert s.update(date(2025, 3, 1)) == 0
    assert (s.current, s.best) == (1, 1)

    assert s.update(date(2025, 3, 1)) == 0  # same day
    assert s.update(date(2025, 3, 2)) == PointsConfig.STREAK_BONUS * 2
    assert s.update(date(2025, 3, 3)) == PointsConfig.STREAK_BONUS * 3
    assert s.best == 3

    assert s.update(date(2025, 3, 10)) == 0  # gap resets
    assert (s.current, s.best) == (1, 3)
    assert s.is_active_on(date(2025, 3, 10))


def test_achievement_catalog_and_rules() -> None:
    assert len(ACHIEVEMENTS) == 12
    assert find_achievement("streak_7").name == "Unstoppable"

    done = Goal(name="Done", id=1, steps=[Step(1, "a")], completed_steps=[1])
    got = {a.id for a in check_achievements([], [done], streak=3, points=120)}
    assert got == {"first_goal", "first_step", "first_complete", "streak_3", "hundred_points"}

    again = check_achievements(got, [done], streak=3, points=120)
    assert again == []


def test_add_points_levels_up_and_tracks(gamification, analytics, storage) -> None:
    award = gamification.add_points(90, "test")
    assert award.level_up is None

    award = gamification.add_points(10, "test")
    assert award.level_up is not None and award.level_up.name == "Explorer"
    assert storage.load_points() == 100
    assert any(e.name == EventName.LEVEL_UP for e in analytics.all_events)


def test_step_points_update_streak(gamification, clock) -> None:
    gamification.award_step_points()
    assert gamification.points == PointsConfig.STEP_COMPLETE
    assert gamification.streak.current == 1

    clock.advance()
    gamification.award_step_points()
    assert gamification.streak.current == 2
    assert gamification.points == 2 * PointsConfig.STEP_COMPLETE + 2 * PointsConfig.STREAK_BONUS


def test_goal_points_with_first_goal_bonus(gamification) -> None:
    gamification.award_goal_points(is_first_goal=True)
    assert gamification.points == PointsConfig.GOAL_COMPLETE + PointsConfig.FIRST_GOAL


def test_daily_bonus_once_per_day(gamification, clock) -> None:
    assert gamification.claim_daily_bonus()
    assert gamification.daily_bonus_claimed
    assert not gamification.claim_daily_bonus()
    assert gamification.points == PointsConfig.DAILY_BONUS

    clock.advance()
    assert gamification.claim_daily_bonus()
    assert gamification.streak.current == 2


def test_check_achievements_persists(gamification, storage) -> None:
    goals = [Goal(name="G", id=1, steps=[Step(1, "a")])]
    newly = gamification.check_achievements(goals)
    assert [a.id for a in newly] == ["first_goal"]
    assert storage.load_achievements() == ["first_goal"]
    assert gamification.check_achievements(goals) == []


def test_reset_all_progress(gamification, storage) -> None:
    gamification.add_points(300, "x")
    gamification.check_achievements([Goal(name="G", id=1)])
    gamification.reset_all_progress()
    assert gamification.points == 0
    assert storage.load_points() == 0
    assert gamification.unlocked_achievements == []
