# src/aclio/telemetry/analytics.py

"""
Privacy-first local analytics.

Events never leave the device on their own: they are kept in the key-value
store (newest `max_events` only) and can be exported as JSON for debugging or
for a future upload step.
"""

from __future__ import annotations

import json
import locale
import logging
import platform
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .. import __version__
from ..core.ports import KVStore
from ..errors import AppError

logger = logging.getLogger(__name__)

EVENTS_KEY = "aclio_analytics_events"
SESSION_KEY = "aclio_analytics_session"
ENABLED_KEY = "aclio_analytics_enabled"


class EventName:
    # onboarding
    ONBOARDING_STARTED = "onboarding_started"
    ONBOARDING_COMPLETED = "onboarding_completed"
    ONBOARDING_SKIPPED = "onboarding_skipped"

    # goals
    GOAL_CREATED = "goal_created"
    GOAL_DELETED = "goal_deleted"
    GOAL_COMPLETED = "goal_completed"
    GOAL_VIEWED = "goal_viewed"

    # steps
    STEP_COMPLETED = "step_completed"
    STEP_UNCOMPLETED = "step_uncompleted"
    STEP_EXPANDED = "step_expanded"
    STEP_DO_IT_FOR_ME = "step_do_it_for_me"

    # chat
    CHAT_STARTED = "chat_started"
    CHAT_MESSAGE_SENT = "chat_message_sent"

    # premium
    PAYWALL_VIEWED = "paywall_viewed"
    PURCHASE_STARTED = "purchase_started"
    PURCHASE_COMPLETED = "purchase_completed"
    PURCHASE_FAILED = "purchase_failed"
    PURCHASE_RESTORED = "purchase_restored"

    # gamification
    DAILY_BONUS_CLAIMED = "daily_bonus_claimed"
    LEVEL_UP = "level_up"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"

    # lifecycle
    APP_LAUNCHED = "app_launched"
    APP_BACKGROUNDED = "app_backgrounded"
    APP_FOREGROUNDED = "app_foregrounded"

    # errors
    ERROR_OCCURRED = "error_occurred"
    API_ERROR = "api_error"

    # settings
    THEME_CHANGED = "theme_changed"
    NOTIFICATIONS_TOGGLED = "notifications_toggled"


class ParamKey:
    GOAL_ID = "goal_id"
    GOAL_NAME = "goal_name"
    GOAL_CATEGORY = "goal_category"
    STEP_ID = "step_id"
    STEP_TITLE = "step_title"
    PROGRESS = "progress"
    PRODUCT_ID = "product_id"
    PRICE = "price"
    LEVEL = "level"
    POINTS = "points"
    ERROR_TYPE = "error_type"
    ERROR_MESSAGE = "error_message"
    THEME = "theme"
    SOURCE = "source"
    DURATION = "duration"


@dataclass(slots=True)
class AnalyticsEvent:
    name: str
    parameters: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "parameters": dict(self.parameters),
            "timestamp": self.timestamp.isoformat(),
            "sessionId": self.session_id,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> AnalyticsEvent:
        ts_raw = raw.get("timestamp")
        try:
            ts = datetime.fromisoformat(str(ts_raw)) if ts_raw else datetime.now(timezone.utc)
        except ValueError:
            ts = datetime.now(timezone.utc)
        params = raw.get("parameters") or {}
        return cls(
            name=str(raw.get("name") or ""),
            parameters={str(k): str(v) for k, v in params.items()} if isinstance(params, dict) else {},
            timestamp=ts,
            session_id=str(raw.get("sessionId") or ""),
        )


def _default_user_properties() -> dict[str, str]:
    loc = locale.getlocale()[0] or "unknown"
    return {
        "app_version": __version__,
        "platform": platform.system() or "unknown",
        "python_version": platform.python_version(),
        "locale": loc,
    }


class AnalyticsService:
    def __init__(self, store: KVStore, *, max_events: int = 1000) -> None:
        self.store = store
        self.max_events = max(1, int(max_events))

        session = store.get(SESSION_KEY)
        if not isinstance(session, str) or not session:
            session = str(uuid.uuid4())
            store.set(SESSION_KEY, session)
        self.session_id: str = session

        enabled = store.get(ENABLED_KEY, True)
        self.is_enabled: bool = enabled if isinstance(enabled, bool) else True

        self._events: list[AnalyticsEvent] = self._load_events()
        self.user_properties: dict[str, str] = _default_user_properties()

    # ---- user properties ----

    def set_user_property(self, key: str, value: str) -> None:
        self.user_properties[key] = value

    def set_premium_status(self, is_premium: bool) -> None:
        self.user_properties["is_premium"] = "true" if is_premium else "false"

    # ---- tracking ----

    def track(self, name: str, parameters: Mapping[str, Any] | None = None) -> None:
        if not self.is_enabled:
            return

        params = dict(self.user_properties)
        for k, v in (parameters or {}).items():
            params[str(k)] = str(v)

        self._events.append(AnalyticsEvent(name=name, parameters=params, session_id=self.session_id))
        logger.debug("Analytics event=%s params=%s", name, dict(parameters or {}))

        if len(self._events) > self.max_events:
            del self._events[: len(self._events) - self.max_events]
        self._save_events()

    def track_goal_created(self, goal_id: int, goal_name: str, category: str | None) -> None:
        self.track(EventName.GOAL_CREATED, {
            ParamKey.GOAL_ID: goal_id,
            ParamKey.GOAL_NAME: goal_name,
            ParamKey.GOAL_CATEGORY: category or "uncategorized",
        })

    def track_goal_completed(self, goal_id: int, goal_name: str) -> None:
        self.track(EventName.GOAL_COMPLETED, {ParamKey.GOAL_ID: goal_id, ParamKey.GOAL_NAME: goal_name})

    def track_goal_deleted(self, goal_id: int) -> None:
        self.track(EventName.GOAL_DELETED, {ParamKey.GOAL_ID: goal_id})

    def track_step_completed(self, goal_id: int, step_id: int, progress: int) -> None:
        self.track(EventName.STEP_COMPLETED, {
            ParamKey.GOAL_ID: goal_id,
            ParamKey.STEP_ID: step_id,
            ParamKey.PROGRESS: progress,
        })

    def track_step_uncompleted(self, goal_id: int, step_id: int) -> None:
        self.track(EventName.STEP_UNCOMPLETED, {ParamKey.GOAL_ID: goal_id, ParamKey.STEP_ID: step_id})

    def track_step_expanded(self, goal_id: int, step_id: int) -> None:
        self.track(EventName.STEP_EXPANDED, {ParamKey.GOAL_ID: goal_id, ParamKey.STEP_ID: step_id})

    def track_step_do_it_for_me(self, goal_id: int, step_id: int) -> None:
        self.track(EventName.STEP_DO_IT_FOR_ME, {ParamKey.GOAL_ID: goal_id, ParamKey.STEP_ID: step_id})

    def track_paywall_viewed(self, source: str) -> None:
        self.track(EventName.PAYWALL_VIEWED, {ParamKey.SOURCE: source})

    def track_purchase_started(self, product_id: str) -> None:
        self.track(EventName.PURCHASE_STARTED, {ParamKey.PRODUCT_ID: product_id})

    def track_purchase_completed(self, product_id: str, price: str) -> None:
        self.track(EventName.PURCHASE_COMPLETED, {ParamKey.PRODUCT_ID: product_id, ParamKey.PRICE: price})

    def track_purchase_failed(self, product_id: str, error_message: str) -> None:
        self.track(EventName.PURCHASE_FAILED, {
            ParamKey.PRODUCT_ID: product_id,
            ParamKey.ERROR_MESSAGE: error_message,
        })

    def track_error(self, error: AppError, context: str | None = None) -> None:
        self.track(EventName.ERROR_OCCURRED, {
            ParamKey.ERROR_TYPE: error.kind.value,
            ParamKey.ERROR_MESSAGE: error.message or "unknown",
            ParamKey.SOURCE: context or "unknown",
        })

    def track_level_up(self, new_level: int, points: int) -> None:
        self.track(EventName.LEVEL_UP, {ParamKey.LEVEL: new_level, ParamKey.POINTS: points})

    # ---- session / privacy ----

    def start_new_session(self) -> None:
        self.session_id = str(uuid.uuid4())
        self.store.set(SESSION_KEY, self.session_id)
        self.track(EventName.APP_LAUNCHED)

    def set_enabled(self, enabled: bool) -> None:
        self.is_enabled = bool(enabled)
        self.store.set(ENABLED_KEY, self.is_enabled)
        if not enabled:
            self.clear_events()

    def clear_events(self) -> None:
        self._events.clear()
        self.store.delete(EVENTS_KEY)

    # ---- export / inspection ----

    def export_events(self) -> str:
        return json.dumps([e.to_dict() for e in self._events], ensure_ascii=False, indent=2)

    def event_count(self, name: str) -> int:
        return sum(1 for e in self._events if e.name == name)

    @property
    def all_events(self) -> list[AnalyticsEvent]:
        return list(self._events)

    # ---- persistence ----

    def _save_events(self) -> None:
        self.store.set(EVENTS_KEY, [e.to_dict() for e in self._events])

    def _load_events(self) -> list[AnalyticsEvent]:
        raw = self.store.get(EVENTS_KEY, [])
        if not isinstance(raw, list):
            return []
        return [AnalyticsEvent.from_dict(item) for item in raw if isinstance(item, dict)]
