# src/aclio/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .ports import ChatMessage, KVStore, LLMClient

if TYPE_CHECKING:
    from ..coach.service import CoachService
    from ..config import Settings
    from ..deeplinks import DeepLinkService
    from ..flags import FeatureFlagService
    from ..gamification.service import GamificationService
    from ..goals.service import GoalService
    from ..migrations import DataMigrationService
    from ..offline_queue import OfflineQueueService
    from ..premium.service import PremiumService
    from ..storage.local_storage import LocalStorageService
    from ..telemetry.analytics import AnalyticsService
    from ..telemetry.crash_reporting import CrashReportingService

GENERAL_DIALOG = "general"


def dialog_key(goal_id: int | None) -> str:
    return GENERAL_DIALOG if goal_id is None else f"goal:{goal_id}"


@dataclass
class AppState:
    """Everything a front-end (console, tests) needs, wired once by the bootstrap."""

    settings: Settings
    store: KVStore
    llm: LLMClient

    storage: LocalStorageService
    premium: PremiumService
    gamification: GamificationService
    analytics: AnalyticsService
    crash: CrashReportingService
    flags: FeatureFlagService
    migrations: DataMigrationService
    offline_queue: OfflineQueueService
    coach: CoachService
    goals: GoalService
    deeplinks: DeepLinkService

    save_history: bool = True
    current_goal_id: int | None = None

    # Per-dialog chat history: "general" or "goal:<id>" -> messages.
    dialog_histories: dict[str, list[ChatMessage]] = field(default_factory=dict)

    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def history_for(self, goal_id: int | None) -> list[ChatMessage]:
        return self.dialog_histories.setdefault(dialog_key(goal_id), [])
