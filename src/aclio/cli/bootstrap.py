# src/aclio/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/LLM/services),
- persists per-dialog chat histories as JSON (optional).
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Literal, cast

from ..coach.service import CoachService
from ..config import Settings, get_settings
from ..core.ports import ChatMessage, KVStore, LLMClient
from ..core.state import AppState
from ..deeplinks import DeepLinkService
from ..flags import FeatureFlagService
from ..gamification.service import GamificationService
from ..goals.service import GoalService
from ..llm.client import OpenAICompatibleLLMClient
from ..llm.offline import OfflineLLMClient
from ..migrations import DataMigrationService
from ..offline_queue import OfflineQueueService
from ..premium.service import PremiumService
from ..storage.kv_store import SQLiteKVStore
from ..storage.local_storage import LocalStorageService
from ..telemetry.analytics import AnalyticsService
from ..telemetry.crash_reporting import CrashReportingService

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.dialog_history_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
        *,
        settings: Settings | None = None,
        store: KVStore | None = None,
        llm: LLMClient | None = None,
        today: Callable[[], date] = date.today,
) -> AppState:
    """
    Create AppState from the provided settings.

    store, llm and the "today" clock are injectable for tests; by default the SQLite store at
    settings.store_db_path is used, and the offline client when no API key is set.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if store is None:
        store = SQLiteKVStore(settings.store_db_path)

    if llm is None:
        if settings.llm_configured:
            llm = OpenAICompatibleLLMClient(settings)
        else:
            logger.info("No LLM API key configured; using the offline demo client.")
            llm = OfflineLLMClient()

    storage = LocalStorageService(store, today=today)
    analytics = AnalyticsService(store, max_events=settings.analytics_max_events)
    crash = CrashReportingService(store)
    premium = PremiumService(storage)
    gamification = GamificationService(storage, analytics)
    offline_queue = OfflineQueueService(store, max_retries=settings.offline_max_retries)
    coach = CoachService(llm)

    flags = FeatureFlagService(store, user_id=settings.user_id, remote_url=settings.remote_flags_url)
    if settings.user_id:
        crash.set_user_id(settings.user_id)

    goals = GoalService(
        storage,
        premium,
        gamification,
        coach,
        analytics=analytics,
        offline_queue=offline_queue,
    )

    return AppState(
        settings=settings,
        store=store,
        llm=llm,
        storage=storage,
        premium=premium,
        gamification=gamification,
        analytics=analytics,
        crash=crash,
        flags=flags,
        migrations=DataMigrationService(store),
        offline_queue=offline_queue,
        coach=coach,
        goals=goals,
        deeplinks=DeepLinkService(analytics),
        save_history=settings.save_history,
    )


def load_dialog_histories(state: AppState) -> dict[str, list[ChatMessage]]:
    if not state.save_history:
        return {}
    path = Path(state.settings.dialog_history_path)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text("utf-8"))
        if not isinstance(data, dict):
            return {}
        out: dict[str, list[ChatMessage]] = {}
        for key, msgs in data.items():
            if not isinstance(key, str) or not isinstance(msgs, list):
                continue
            clean: list[ChatMessage] = []
            for m in msgs:
                if isinstance(m, dict):
                    role_any = m.get("role", "user")
                    role_s = role_any if isinstance(role_any, str) else "user"
                    if role_s not in ("user", "assistant"):
                        role_s = "user"
                    role = cast(Literal["system", "user", "assistant"], role_s)

                    clean.append({"role": role, "content": str(m.get("content", ""))})
            if clean:
                out[key] = clean
        logger.info("Loaded dialog histories: %d dialogs from %s", len(out), path)
        return out
    except (OSError, ValueError):
        logger.exception("Failed to load dialog histories from %s", path)
        return {}


def save_dialog_histories(state: AppState) -> None:
    if not state.save_history:
        return
    path = Path(state.settings.dialog_history_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(state.dialog_histories, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, path)
        with contextlib.suppress(OSError):
            # History may contain personal content; keep the file private on disk.
            os.chmod(path, 0o600)
        logger.info("Saved dialog histories: %d dialogs to %s", len(state.dialog_histories), path)
    except OSError:
        logger.exception("Failed to save dialog histories to %s", path)
