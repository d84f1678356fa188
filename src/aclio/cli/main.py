# src/aclio/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, migrates stored data, then runs the
console REPL in the main thread.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state, load_dialog_histories, save_dialog_histories
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..telemetry.crash_reporting import CrashReportingHandler

logger = logging.getLogger(__name__)


def _shutdown(state: AppState) -> None:
    """Save what we can; errors are logged, never raised."""
    try:
        save_dialog_histories(state)
    except OSError:
        logger.exception("Failed to save dialog histories.")

    state.crash.uninstall_excepthook()

    close = getattr(state.store, "close", None)
    if callable(close):
        close()


def main() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    state = create_initial_state(settings=settings)

    # Warnings and errors also land in the persisted error log (/errors).
    logging.getLogger().addHandler(CrashReportingHandler(state.crash))
    state.crash.install_excepthook()

    logger.info("Starting %s...", settings.app_name)

    if not state.migrations.run_on_launch():
        logger.warning("Stored data could not be migrated; continuing with the previous data.")

    state.analytics.start_new_session()
    state.crash.add_breadcrumb("app_launch")

    if settings.remote_flags_url:
        state.flags.fetch_remote_flags()

    if state.save_history:
        state.dialog_histories = load_dialog_histories(state)

    try:
        run_console_loop(state)
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
