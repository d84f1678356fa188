# tests/conftest.py

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from aclio.cli.bootstrap import create_initial_state
from aclio.config import Settings
from aclio.core.state import AppState
from aclio.gamification.service import GamificationService
from aclio.premium.service import PremiumService
from aclio.storage.kv_store import InMemoryKVStore
from aclio.storage.local_storage import LocalStorageService
from aclio.telemetry.analytics import AnalyticsService

from .fakes import FakeClock, FakeLLMClient


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings rooted in tmp_path, with no API key.

    Built from the real loader and then overridden, so tests never depend on
    the developer's .env contents for anything that matters.
    """
    return dataclasses.replace(
        Settings.from_env(),
        data_dir=tmp_path,
        store_db_path=tmp_path / "store.sqlite3",
        dialog_history_path=tmp_path / "dialog_histories.json",
        save_history=True,
        llm_api_key=None,
        llm_models=["model-a", "model-b"],
        remote_flags_url="",
        user_id="",
        cors_origins=["http://localhost:8080"],
    )


@pytest.fixture()
def store() -> InMemoryKVStore:
    return InMemoryKVStore()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def storage(store: InMemoryKVStore, clock: FakeClock) -> LocalStorageService:
    return LocalStorageService(store, today=clock)


@pytest.fixture()
def analytics(store: InMemoryKVStore) -> AnalyticsService:
    return AnalyticsService(store)


@pytest.fixture()
def premium(storage: LocalStorageService) -> PremiumService:
    return PremiumService(storage)


@pytest.fixture()
def gamification(storage: LocalStorageService, analytics: AnalyticsService) -> GamificationService:
    return GamificationService(storage, analytics)


@pytest.fixture()
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def state(settings: Settings, store: InMemoryKVStore, llm: FakeLLMClient, clock: FakeClock) -> AppState:
    """AppState wired with an in-memory store, the fake LLM and the fixed clock."""
    return create_initial_state(settings=settings, store=store, llm=llm, today=clock)
