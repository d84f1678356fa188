# tests/test_telemetry.py

from __future__ import annotations

import json
import logging
import sys

from aclio.errors import AppError, ErrorKind
from aclio.storage.kv_store import InMemoryKVStore
from aclio.telemetry.analytics import EVENTS_KEY, AnalyticsService, EventName
from aclio.telemetry.crash_reporting import (
    MAX_BREADCRUMBS,
    CrashReportingHandler,
    CrashReportingService,
    CrashType,
    LogLevel,
)

# ---- analytics ----


def test_track_merges_user_properties_and_persists() -> None:
    store = InMemoryKVStore()
    analytics = AnalyticsService(store)
    analytics.track_goal_created(7, "Run", None)

    event = analytics.all_events[-1]
    assert event.name == EventName.GOAL_CREATED
    assert event.parameters["goal_id"] == "7"
    assert event.parameters["goal_category"] == "uncategorized"
    assert "app_version" in event.parameters
    assert event.session_id == analytics.session_id

    assert AnalyticsService(store).event_count(EventName.GOAL_CREATED) == 1


def test_events_are_capped_to_newest() -> None:
    analytics = AnalyticsService(InMemoryKVStore(), max_events=3)
    for i in range(5):
        analytics.track("e", {"i": i})
    assert [e.parameters["i"] for e in analytics.all_events] == ["2", "3", "4"]


def test_disabling_clears_and_stops_tracking() -> None:
    store = InMemoryKVStore()
    analytics = AnalyticsService(store)
    analytics.track("e")
    analytics.set_enabled(False)
    analytics.track("e")

    assert analytics.all_events == []
    assert not store.has(EVENTS_KEY)
    assert AnalyticsService(store).is_enabled is False


def test_new_session_and_export() -> None:
    analytics = AnalyticsService(InMemoryKVStore())
    old = analytics.session_id
    analytics.start_new_session()
    assert analytics.session_id != old
    assert analytics.event_count(EventName.APP_LAUNCHED) == 1

    analytics.track_error(AppError.of(ErrorKind.TIMEOUT), "expand_step")
    exported = json.loads(analytics.export_events())
    assert exported[-1]["parameters"]["error_type"] == "timeout"
    assert exported[-1]["sessionId"] == analytics.session_id


# ---- crash reporting ----


def test_record_error_creates_report_log_and_breadcrumb() -> None:
    store = InMemoryKVStore()
    crash = CrashReportingService(store)
    crash.set_user_id("user-42")

    try:
        raise ValueError("bad input")
    except ValueError as e:
        report = crash.record_error(e, {"screen": "dashboard"})

    assert report.type is CrashType.ERROR
    assert report.message == "ValueError: bad input"
    assert "Traceback" in report.stack_trace
    assert report.user_context == {"userId": "user-42"}
    assert crash.error_logs[-1].context["screen"] == "dashboard"
    assert crash.breadcrumbs[-1].endswith("Error: bad input")

    reloaded = CrashReportingService(store)
    assert [r.id for r in reloaded.pending_reports()] == [report.id]
    assert reloaded.user_context["userId"] == "user-42"


def test_log_helpers_capture_the_caller() -> None:
    crash = CrashReportingService(InMemoryKVStore())
    entry = crash.warning("low disk")
    assert entry.level is LogLevel.WARNING
    assert entry.file == "test_telemetry.py"
    assert entry.function == "test_log_helpers_capture_the_caller"


def test_mark_reported_and_clear() -> None:
    crash = CrashReportingService(InMemoryKVStore())
    a = crash.record_crash(CrashType.EXCEPTION, "a")
    crash.record_crash(CrashType.EXCEPTION, "b")

    assert crash.mark_reported([a.id, "unknown"]) == 1
    assert crash.mark_reported([a.id]) == 0
    assert [r.message for r in crash.pending_reports()] == ["b"]

    crash.clear_all()
    assert crash.crash_reports == [] and crash.error_logs == [] and crash.breadcrumbs == []


def test_breadcrumbs_are_capped() -> None:
    crash = CrashReportingService(InMemoryKVStore())
    for i in range(MAX_BREADCRUMBS + 5):
        crash.add_breadcrumb(f"b{i}")
    assert len(crash.breadcrumbs) == MAX_BREADCRUMBS
    assert crash.breadcrumbs[-1].endswith(f"b{MAX_BREADCRUMBS + 4}")


def test_record_app_error() -> None:
    crash = CrashReportingService(InMemoryKVStore())
    entry = crash.record_app_error(AppError.of(ErrorKind.NETWORK))
    assert entry.context["error_type"] == "network"
    assert "internet connection" in entry.message


def test_excepthook_records_uncaught_exceptions() -> None:
    crash = CrashReportingService(InMemoryKVStore())
    seen = []
    previous = sys.excepthook
    sys.excepthook = lambda *args: seen.append(args[0])
    try:
        crash.install_excepthook()
        sys.excepthook(RuntimeError, RuntimeError("fatal"), None)
    finally:
        crash.uninstall_excepthook()
        sys.excepthook = previous

    assert crash.crash_reports[-1].type is CrashType.EXCEPTION
    assert crash.crash_reports[-1].message == "RuntimeError: fatal"
    assert seen == [RuntimeError]


def test_logging_handler_copies_warnings() -> None:
    crash = CrashReportingService(InMemoryKVStore())
    log = logging.getLogger("aclio.tests.handler")
    handler = CrashReportingHandler(crash)
    log.addHandler(handler)
    try:
        log.info("not copied")
        log.error("disk full: %s", "/tmp")
    finally:
        log.removeHandler(handler)

    assert [e.message for e in crash.error_logs] == ["disk full: /tmp"]
    assert crash.error_logs[0].level is LogLevel.ERROR
    assert crash.error_logs[0].context["logger"] == "aclio.tests.handler"
