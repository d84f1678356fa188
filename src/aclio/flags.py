# src/aclio/flags.py

"""
Feature flags with local overrides, remote configuration and percentage rollouts.

Resolution order for a known flag: local override > remote value > default.
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

import httpx

from .core.ports import KVStore

logger = logging.getLogger(__name__)

OVERRIDES_KEY = "aclio_feature_overrides"
REMOTE_FLAGS_KEY = "aclio_remote_flags"
LAST_FETCH_KEY = "aclio_flags_last_fetch"
DEVICE_ID_KEY = "aclio_device_id"


class FlagCategory(StrEnum):
    GOALS = "Goals"
    CHAT = "Chat"
    GAMIFICATION = "Gamification"
    PREMIUM = "Premium"
    UI = "UI"
    MONITORING = "Monitoring"
    EXPERIMENTAL = "Experimental"


class FeatureFlag(StrEnum):
    # goals
    AI_GOAL_EXPANSION = "ai_goal_expansion"
    AI_DO_IT_FOR_ME = "ai_do_it_for_me"
    GOAL_EXTENSION = "goal_extension"
    GOAL_DUE_DATES = "goal_due_dates"
    GOAL_SHARING = "goal_sharing"
    # chat
    AI_CHAT = "ai_chat"
    CHAT_STREAMING = "chat_streaming"
    # gamification
    GAMIFICATION = "gamification"
    DAILY_BONUS = "daily_bonus"
    STREAKS = "streaks"
    ACHIEVEMENTS = "achievements"
    LEVELS = "levels"
    # premium
    PREMIUM_SUBSCRIPTION = "premium_subscription"
    FREE_TRIAL = "free_trial"
    # ui
    DARK_MODE = "dark_mode"
    ANIMATIONS = "animations"
    HAPTICS = "haptics"
    # monitoring
    ANALYTICS = "analytics"
    CRASH_REPORTING = "crash_reporting"
    # experimental
    NEW_ONBOARDING = "new_onboarding"
    BETA_FEATURES = "beta_features"
    DEV_TOOLS = "dev_tools"

    @property
    def default_enabled(self) -> bool:
        return self not in _DEFAULT_OFF

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES.get(self, self.value.replace("_", " ").title())

    @property
    def category(self) -> FlagCategory:
        return _CATEGORIES[self]


_DEFAULT_OFF = frozenset({
    FeatureFlag.GOAL_SHARING,
    FeatureFlag.NEW_ONBOARDING,
    FeatureFlag.BETA_FEATURES,
    FeatureFlag.DEV_TOOLS,
})

# Everything else reads fine as the title-cased value.
_DISPLAY_NAMES: dict[FeatureFlag, str] = {
    FeatureFlag.AI_GOAL_EXPANSION: "AI Goal Expansion",
    FeatureFlag.AI_DO_IT_FOR_ME: "AI Do It For Me",
    FeatureFlag.AI_CHAT: "AI Chat",
    FeatureFlag.NEW_ONBOARDING: "New Onboarding (Beta)",
    FeatureFlag.DEV_TOOLS: "Developer Tools",
}

_CATEGORIES: dict[FeatureFlag, FlagCategory] = {
    FeatureFlag.AI_GOAL_EXPANSION: FlagCategory.GOALS,
    FeatureFlag.AI_DO_IT_FOR_ME: FlagCategory.GOALS,
    FeatureFlag.GOAL_EXTENSION: FlagCategory.GOALS,
    FeatureFlag.GOAL_DUE_DATES: FlagCategory.GOALS,
    FeatureFlag.GOAL_SHARING: FlagCategory.GOALS,
    FeatureFlag.AI_CHAT: FlagCategory.CHAT,
    FeatureFlag.CHAT_STREAMING: FlagCategory.CHAT,
    FeatureFlag.GAMIFICATION: FlagCategory.GAMIFICATION,
    FeatureFlag.DAILY_BONUS: FlagCategory.GAMIFICATION,
    FeatureFlag.STREAKS: FlagCategory.GAMIFICATION,
    FeatureFlag.ACHIEVEMENTS: FlagCategory.GAMIFICATION,
    FeatureFlag.LEVELS: FlagCategory.GAMIFICATION,
    FeatureFlag.PREMIUM_SUBSCRIPTION: FlagCategory.PREMIUM,
    FeatureFlag.FREE_TRIAL: FlagCategory.PREMIUM,
    FeatureFlag.DARK_MODE: FlagCategory.UI,
    FeatureFlag.ANIMATIONS: FlagCategory.UI,
    FeatureFlag.HAPTICS: FlagCategory.UI,
    FeatureFlag.ANALYTICS: FlagCategory.MONITORING,
    FeatureFlag.CRASH_REPORTING: FlagCategory.MONITORING,
    FeatureFlag.NEW_ONBOARDING: FlagCategory.EXPERIMENTAL,
    FeatureFlag.BETA_FEATURES: FlagCategory.EXPERIMENTAL,
    FeatureFlag.DEV_TOOLS: FlagCategory.EXPERIMENTAL,
}


def _bool_map(raw: Any) -> dict[str, bool]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): v for k, v in raw.items() if isinstance(v, bool)}


def rollout_bucket(identity: str, flag: str) -> int:
    """Stable bucket in [0, 100) for (identity, flag)."""
    digest = hashlib.sha256(f"{identity}:{flag}".encode("utf-8")).hexdigest()
    return int(digest, 16) % 100


class FeatureFlagService:
    def __init__(
            self,
            store: KVStore,
            *,
            user_id: str | None = None,
            remote_url: str = "",
            http_client: httpx.Client | None = None,
    ) -> None:
        self.store = store
        self.user_id = user_id or None
        self.remote_url = remote_url.strip()
        self._http = http_client
        self.overrides: dict[str, bool] = _bool_map(store.get(OVERRIDES_KEY))
        self.remote_flags: dict[str, bool] = _bool_map(store.get(REMOTE_FLAGS_KEY))

    def set_user_id(self, user_id: str | None) -> None:
        self.user_id = user_id or None

    # ---- checks ----

    def is_enabled(self, flag: FeatureFlag | str) -> bool:
        key = str(flag)
        if key in self.overrides:
            return self.overrides[key]
        if key in self.remote_flags:
            return self.remote_flags[key]
        try:
            return FeatureFlag(key).default_enabled
        except ValueError:
            return False

    # ---- overrides ----

    def set_override(self, flag: FeatureFlag | str, enabled: bool) -> None:
        self.overrides[str(flag)] = bool(enabled)
        self.store.set(OVERRIDES_KEY, self.overrides)

    def remove_override(self, flag: FeatureFlag | str) -> None:
        if self.overrides.pop(str(flag), None) is not None:
            self.store.set(OVERRIDES_KEY, self.overrides)

    def clear_all_overrides(self) -> None:
        self.overrides.clear()
        self.store.set(OVERRIDES_KEY, self.overrides)

    def has_override(self, flag: FeatureFlag | str) -> bool:
        return str(flag) in self.overrides

    # ---- remote configuration ----

    def update_remote_flags(self, flags: Mapping[str, Any]) -> None:
        self.remote_flags = _bool_map(dict(flags))
        self.store.set(REMOTE_FLAGS_KEY, self.remote_flags)

    @property
    def last_fetch(self) -> float | None:
        raw = self.store.get(LAST_FETCH_KEY)
        return float(raw) if isinstance(raw, int | float) else None

    def fetch_remote_flags(self, *, timeout: float = 10.0) -> bool:
        """
        GET the remote flag document (a JSON object of booleans).

        Returns True when new remote flags were applied. On any failure the
        previously stored remote flags stay in effect.
        """
        if not self.remote_url:
            logger.debug("Remote flags URL not configured; skipping fetch.")
            return False

        try:
            if self._http is not None:
                resp = self._http.get(self.remote_url, timeout=timeout)
            else:
                resp = httpx.get(self.remote_url, timeout=timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch remote flags from %s: %s", self.remote_url, e)
            return False
        finally:
            self.store.set(LAST_FETCH_KEY, time.time())

        if not isinstance(payload, dict):
            logger.warning("Remote flags payload is not a JSON object; ignoring.")
            return False

        self.update_remote_flags(payload)
        logger.info("Remote flags updated (%d entries).", len(self.remote_flags))
        return True

    # ---- rollouts ----

    def device_id(self) -> str:
        raw = self.store.get(DEVICE_ID_KEY)
        if isinstance(raw, str) and raw:
            return raw
        new_id = str(uuid.uuid4())
        self.store.set(DEVICE_ID_KEY, new_id)
        return new_id

    def is_in_rollout(self, flag: FeatureFlag | str, percentage: int) -> bool:
        if percentage <= 0:
            return False
        if percentage >= 100:
            return True
        identity = self.user_id or self.device_id()
        return rollout_bucket(identity, str(flag)) < percentage

    # ---- debug views ----

    def all_flags(self) -> list[tuple[FeatureFlag, bool, bool]]:
        return [(f, self.is_enabled(f), self.has_override(f)) for f in FeatureFlag]

    def flags_by_category(self) -> dict[FlagCategory, list[tuple[FeatureFlag, bool, bool]]]:
        out: dict[FlagCategory, list[tuple[FeatureFlag, bool, bool]]] = {}
        for entry in self.all_flags():
            out.setdefault(entry[0].category, []).append(entry)
        return out

    def export_flags(self) -> dict[str, dict[str, Any]]:
        return {
            f.value: {
                "enabled": self.is_enabled(f),
                "default": f.default_enabled,
                "hasOverride": self.has_override(f),
                "category": f.category.value,
            }
            for f in FeatureFlag
        }
