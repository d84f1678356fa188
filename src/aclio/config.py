# src/aclio/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (backend server and console).
- No secrets required at import time.
- GROQ_API_KEY / PORT are accepted as-is so existing deployments keep working.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "ACLIO"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    store_db_path: Path
    dialog_history_path: Path
    save_history: bool

    # ---- LLM (OpenAI-compatible, Groq by default) ----
    llm_api_key: str | None
    llm_base_url: str
    llm_models: list[str]
    llm_temperature: float

    # ---- HTTP backend ----
    server_host: str
    server_port: int
    cors_origins: list[str]

    # ---- Feature flags / analytics / offline queue ----
    remote_flags_url: str
    user_id: str
    analytics_max_events: int
    offline_max_retries: int

    @property
    def llm_configured(self) -> bool:
        return bool(self.llm_api_key and self.llm_api_key.strip())

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "aclio") or "aclio"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/aclio"))
        store_db_path = _env_path(_k("STORE_DB_PATH"), data_dir / "store.sqlite3")
        dialog_history_path = _env_path(_k("DIALOG_HISTORY_PATH"), data_dir / "dialog_histories.json")
        save_history = _env_bool(_k("SAVE_HISTORY"), True)

        llm_api_key = _first_env(_k("LLM_API_KEY"), "GROQ_API_KEY", default=None)
        llm_base_url = _env(_k("LLM_BASE_URL"), "https://api.groq.com/openai/v1")
        llm_models = _env_list(_k("LLM_MODELS"), ["llama-3.3-70b-versatile"])
        llm_temperature = _env_float(_k("LLM_TEMPERATURE"), 0.7)

        server_host = _env(_k("SERVER_HOST"), "0.0.0.0")
        server_port = _env_int(_k("SERVER_PORT"), _env_int("PORT", 3001))
        cors_origins = _env_list(
            _k("CORS_ORIGINS"),
            ["http://localhost:8080", "http://localhost:3000", "http://127.0.0.1:8080"],
        )

        remote_flags_url = _env(_k("REMOTE_FLAGS_URL"), "").strip()
        user_id = _env(_k("USER_ID"), "").strip()
        analytics_max_events = _env_int(_k("ANALYTICS_MAX_EVENTS"), 1000)
        offline_max_retries = _env_int(_k("OFFLINE_MAX_RETRIES"), 3)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            store_db_path=store_db_path,
            dialog_history_path=dialog_history_path,
            save_history=save_history,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            llm_models=llm_models,
            llm_temperature=llm_temperature,
            server_host=server_host,
            server_port=server_port,
            cors_origins=cors_origins,
            remote_flags_url=remote_flags_url,
            user_id=user_id,
            analytics_max_events=analytics_max_events,
            offline_max_retries=offline_max_retries,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
