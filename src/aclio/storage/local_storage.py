# src/aclio/storage/local_storage.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from enum import StrEnum
from typing import Any

from ..core.ports import KVStore
from ..gamification.models import StreakData
from ..goals.models import Goal, LocationData, UserProfile
from ..premium.models import UNLIMITED, DailyUsage, PremiumFeatureType

logger = logging.getLogger(__name__)


class StorageKey(StrEnum):
    GOALS = "aclio_goals"
    PROFILE = "aclio_profile"
    ONBOARDED = "aclio_onboarded"
    THEME = "aclio_theme"
    POINTS = "aclio_points"
    STREAK = "aclio_streak"
    ACHIEVEMENTS = "aclio_achievements"
    PREMIUM = "aclio_premium"
    NOTIFICATIONS = "aclio_notifications"
    LOCATION = "aclio_location"
    DAILY_BONUS = "aclio_daily_bonus"
    DO_IT_FOR_ME_USES = "aclio_doitforme_uses"
    EXPAND_USES = "aclio_expand_uses"
    EXPANDED_STEPS = "aclio_expanded_steps"


def usage_key(feature: PremiumFeatureType) -> str:
    return f"aclio_{feature.storage_key}"


def expanded_step_key(goal_id: int, step_id: int) -> str:
    return f"{goal_id}-{step_id}"


class LocalStorageService:
    """
    Typed accessors over the key-value store.

    Undecodable payloads fall back to the same defaults a fresh install would see,
    so a single corrupted key never takes the whole app down.
    """

    def __init__(self, store: KVStore, *, today: Callable[[], date] = date.today) -> None:
        self.store = store
        self._today = today

    def today(self) -> date:
        return self._today()

    # ---- goals ----

    def save_goals(self, goals: list[Goal]) -> None:
        self.store.set(StorageKey.GOALS, [g.to_dict() for g in goals])

    def load_goals(self) -> list[Goal]:
        raw = self.store.get(StorageKey.GOALS, [])
        if not isinstance(raw, list):
            return []
        out: list[Goal] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                out.append(Goal.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping undecodable goal entry: %r", item.get("id"))
        return out

    # ---- profile ----

    def save_profile(self, profile: UserProfile) -> None:
        self.store.set(StorageKey.PROFILE, profile.to_dict())

    def load_profile(self) -> UserProfile | None:
        raw = self.store.get(StorageKey.PROFILE)
        if not isinstance(raw, dict):
            return None
        return UserProfile.from_dict(raw)

    # ---- onboarding / theme / flags ----

    @property
    def has_onboarded(self) -> bool:
        return bool(self.store.get(StorageKey.ONBOARDED, False))

    def complete_onboarding(self) -> None:
        self.store.set(StorageKey.ONBOARDED, True)

    def reset_onboarding(self) -> None:
        self.store.set(StorageKey.ONBOARDED, False)

    def save_theme(self, is_dark: bool) -> None:
        self.store.set(StorageKey.THEME, "dark" if is_dark else "light")

    def load_theme(self) -> bool:
        return self.store.get(StorageKey.THEME) == "dark"

    @property
    def is_premium(self) -> bool:
        return bool(self.store.get(StorageKey.PREMIUM, False))

    @is_premium.setter
    def is_premium(self, value: bool) -> None:
        self.store.set(StorageKey.PREMIUM, bool(value))

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.store.get(StorageKey.NOTIFICATIONS, False))

    @notifications_enabled.setter
    def notifications_enabled(self, value: bool) -> None:
        self.store.set(StorageKey.NOTIFICATIONS, bool(value))

    # ---- gamification state ----

    def save_points(self, points: int) -> None:
        self.store.set(StorageKey.POINTS, int(points))

    def load_points(self) -> int:
        raw = self.store.get(StorageKey.POINTS, 0)
        return raw if isinstance(raw, int) else 0

    def save_streak(self, streak: StreakData) -> None:
        self.store.set(StorageKey.STREAK, streak.to_dict())

    def load_streak(self) -> StreakData:
        return StreakData.from_dict(self.store.get(StorageKey.STREAK))

    def save_achievements(self, ids: list[str]) -> None:
        self.store.set(StorageKey.ACHIEVEMENTS, list(ids))

    def load_achievements(self) -> list[str]:
        raw = self.store.get(StorageKey.ACHIEVEMENTS, [])
        if not isinstance(raw, list):
            return []
        return [str(x) for x in raw]

    # ---- location ----

    def save_location(self, location: LocationData | None) -> None:
        if location is None:
            self.store.delete(StorageKey.LOCATION)
            return
        self.store.set(StorageKey.LOCATION, location.to_dict())

    def load_location(self) -> LocationData | None:
        raw = self.store.get(StorageKey.LOCATION)
        if not isinstance(raw, dict):
            return None
        return LocationData.from_dict(raw)

    # ---- daily bonus ----

    @property
    def daily_bonus_claimed(self) -> bool:
        return self.store.get(StorageKey.DAILY_BONUS) == self.today().isoformat()

    def claim_daily_bonus(self) -> None:
        self.store.set(StorageKey.DAILY_BONUS, self.today().isoformat())

    # ---- daily usage limits ----

    def get_daily_uses(self, feature: PremiumFeatureType) -> int:
        usage = DailyUsage.from_dict(self.store.get(usage_key(feature)))
        if not usage.is_on(self.today()):
            return 0
        return usage.count

    def increment_daily_uses(self, feature: PremiumFeatureType) -> int:
        count = self.get_daily_uses(feature) + 1
        usage = DailyUsage(date=self.today().isoformat(), count=count)
        self.store.set(usage_key(feature), usage.to_dict())
        return count

    def get_remaining_uses(self, feature: PremiumFeatureType) -> int:
        if self.is_premium:
            return UNLIMITED
        return max(0, feature.daily_limit - self.get_daily_uses(feature))

    # ---- expanded steps cache ----

    def _load_expanded_cache(self) -> dict[str, str]:
        raw = self.store.get(StorageKey.EXPANDED_STEPS, {})
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def save_expanded_step(self, goal_id: int, step_id: int, content: str) -> None:
        cache = self._load_expanded_cache()
        cache[expanded_step_key(goal_id, step_id)] = content
        self.store.set(StorageKey.EXPANDED_STEPS, cache)

    def load_expanded_step(self, goal_id: int, step_id: int) -> str | None:
        return self._load_expanded_cache().get(expanded_step_key(goal_id, step_id))

    def drop_expanded_steps(self, goal_id: int) -> None:
        prefix = f"{goal_id}-"
        cache = self._load_expanded_cache()
        kept = {k: v for k, v in cache.items() if not k.startswith(prefix)}
        if len(kept) != len(cache):
            self.store.set(StorageKey.EXPANDED_STEPS, kept)

    # ---- misc ----

    def get_raw(self, key: str, default: Any = None) -> Any:
        return self.store.get(key, default)

    def clear_all_data(self) -> None:
        for key in StorageKey:
            self.store.delete(key)
        logger.info("Local storage cleared.")
