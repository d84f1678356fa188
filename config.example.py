# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets; keep the LLM key in .env (local, gitignored).
"""

ENV_VARS = {
    # App / logging
    "ACLIO_APP_NAME": "Name shown in the console (default: aclio).",
    "ACLIO_LOG_LEVEL": "Console logging level (default: INFO).",
    # LLM / Groq (OpenAI-compatible)
    "ACLIO_LLM_API_KEY": "LLM API key. GROQ_API_KEY is accepted too. Without it the console runs in offline demo mode.",
    "ACLIO_LLM_BASE_URL": "OpenAI-compatible base URL (default: https://api.groq.com/openai/v1).",
    "ACLIO_LLM_MODELS": "Comma/space separated list of models to try in order (default: llama-3.3-70b-versatile).",
    "ACLIO_LLM_TEMPERATURE": "Sampling temperature (default: 0.7).",
    "ACLIO_LLM_CONNECT_TIMEOUT_SECONDS": "Connect timeout (default: 5).",
    "ACLIO_LLM_READ_TIMEOUT_SECONDS": "Read timeout (default: 60).",
    "ACLIO_LLM_FIRST_TOKEN_TIMEOUT_SECONDS": "Streams only: give up on a model after this long without content (default: 20).",
    # HTTP backend
    "ACLIO_SERVER_HOST": "Bind address for aclio-server (default: 0.0.0.0).",
    "ACLIO_SERVER_PORT": "Port for aclio-server. PORT is accepted too (default: 3001).",
    "ACLIO_CORS_ORIGINS": "Allowed browser origins, comma separated.",
    # Flags / telemetry
    "ACLIO_REMOTE_FLAGS_URL": "Optional JSON endpoint with remote feature flags.",
    "ACLIO_USER_ID": "Optional user id for flag rollouts and crash reports.",
    "ACLIO_ANALYTICS_MAX_EVENTS": "Analytics events kept locally (default: 1000).",
    "ACLIO_OFFLINE_MAX_RETRIES": "Attempts per queued offline operation (default: 3).",
    # Paths (gitignored)
    "ACLIO_DATA_DIR": "Local data directory (default: .local/aclio).",
    "ACLIO_STORE_DB_PATH": "Key-value SQLite path (default: <data_dir>/store.sqlite3).",
    "ACLIO_SAVE_HISTORY": "Persist console chat history (true/false, default: true).",
    "ACLIO_DIALOG_HISTORY_PATH": (
        "Dialog history JSON path (default: <data_dir>/dialog_histories.json)."
    ),
}
