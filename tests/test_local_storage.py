# tests/test_local_storage.py

from __future__ import annotations

from aclio.gamification.models import StreakData
from aclio.goals.models import Goal, LocationData, Step, UserProfile
from aclio.premium.models import UNLIMITED, PremiumFeatureType
from aclio.storage.local_storage import StorageKey


def test_goals_roundtrip_and_corrupt_entries_are_skipped(storage, store) -> None:
    goals = [Goal(name="Run a 5k", id=1, steps=[Step(1, "Shoes")]), Goal(name="Read", id=2)]
    storage.save_goals(goals)
    assert [g.name for g in storage.load_goals()] == ["Run a 5k", "Read"]

    raw = store.get(StorageKey.GOALS)
    raw.append({"name": "no id"})
    raw.append("garbage")
    store.set(StorageKey.GOALS, raw)
    assert [g.id for g in storage.load_goals()] == [1, 2]

    store.set(StorageKey.GOALS, {"not": "a list"})
    assert storage.load_goals() == []


def test_profile_onboarding_theme_and_flags(storage) -> None:
    assert storage.load_profile() is None
    storage.save_profile(UserProfile(name="Alex", age="28"))
    assert storage.load_profile().name == "Alex"

    assert not storage.has_onboarded
    storage.complete_onboarding()
    assert storage.has_onboarded
    storage.reset_onboarding()
    assert not storage.has_onboarded

    assert storage.load_theme() is False
    storage.save_theme(True)
    assert storage.load_theme() is True

    storage.is_premium = True
    storage.notifications_enabled = True
    assert storage.is_premium and storage.notifications_enabled


def test_gamification_state_defaults_and_roundtrip(storage, store) -> None:
    assert storage.load_points() == 0
    assert storage.load_streak() == StreakData()
    assert storage.load_achievements() == []

    storage.save_points(120)
    storage.save_streak(StreakData(current=2, best=4, last_active="2025-03-09"))
    storage.save_achievements(["first_goal"])
    assert storage.load_points() == 120
    assert store.get(StorageKey.STREAK) == {"current": 2, "best": 4, "lastActive": "2025-03-09"}
    assert storage.load_achievements() == ["first_goal"]


def test_location_save_and_clear(storage) -> None:
    loc = LocationData(latitude=52.5, longitude=13.4, city="Berlin", country="Germany")
    storage.save_location(loc)
    assert storage.load_location().city == "Berlin"
    storage.save_location(None)
    assert storage.load_location() is None


def test_daily_bonus_resets_on_a_new_day(storage, clock) -> None:
    assert not storage.daily_bonus_claimed
    storage.claim_daily_bonus()
    assert storage.daily_bonus_claimed

    clock.advance()
    assert not storage.daily_bonus_claimed


def test_daily_usage_counts_reset_per_day(storage, clock) -> None:
    feature = PremiumFeatureType.EXPAND_STEP
    assert storage.get_remaining_uses(feature) == 3

    assert storage.increment_daily_uses(feature) == 1
    assert storage.increment_daily_uses(feature) == 2
    assert storage.get_remaining_uses(feature) == 1

    clock.advance()
    assert storage.get_daily_uses(feature) == 0
    assert storage.get_remaining_uses(feature) == 3

    storage.is_premium = True
    assert storage.get_remaining_uses(feature) == UNLIMITED


def test_expanded_step_cache(storage) -> None:
    storage.save_expanded_step(1, 1, "guide 1")
    storage.save_expanded_step(1, 2, "guide 2")
    storage.save_expanded_step(11, 1, "other goal")

    assert storage.load_expanded_step(1, 2) == "guide 2"
    assert storage.load_expanded_step(2, 2) is None

    storage.drop_expanded_steps(1)
    assert storage.load_expanded_step(1, 1) is None
    assert storage.load_expanded_step(11, 1) == "other goal"


def test_clear_all_data(storage, store) -> None:
    storage.save_points(10)
    storage.complete_onboarding()
    store.set("unrelated", 1)

    storage.clear_all_data()
    assert storage.load_points() == 0
    assert not storage.has_onboarded
    assert store.get("unrelated") == 1
