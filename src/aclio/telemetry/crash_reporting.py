# src/aclio/telemetry/crash_reporting.py

"""
Local crash capture and error log.

Crash reports, error log entries and breadcrumbs are persisted in the key-value
store with bounded sizes; nothing is uploaded. Two hooks feed it automatically:
- install_excepthook(): uncaught exceptions become crash reports
- CrashReportingHandler: a logging.Handler copying WARNING+ records into the error log
"""

from __future__ import annotations

import json
import locale
import logging
import os
import platform
import sys
import traceback
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from types import TracebackType
from typing import Any

from .. import __version__
from ..core.ports import KVStore
from ..errors import AppError

logger = logging.getLogger(__name__)

REPORTS_KEY = "aclio_crash_reports"
ERROR_LOGS_KEY = "aclio_error_logs"
BREADCRUMBS_KEY = "aclio_breadcrumbs"
USER_ID_KEY = "aclio_crash_user_id"

MAX_REPORTS = 50
MAX_LOG_ENTRIES = 500
MAX_BREADCRUMBS = 100


class CrashType(StrEnum):
    CRASH = "crash"
    EXCEPTION = "exception"
    ERROR = "error"
    ASSERTION = "assertion"
    SIGNAL = "signal"


class LogLevel(StrEnum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @classmethod
    def from_logging(cls, levelno: int) -> LogLevel:
        if levelno >= logging.CRITICAL:
            return cls.CRITICAL
        if levelno >= logging.ERROR:
            return cls.ERROR
        if levelno >= logging.WARNING:
            return cls.WARNING
        if levelno >= logging.INFO:
            return cls.INFO
        return cls.DEBUG


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(raw: Any) -> datetime:
    try:
        return datetime.fromisoformat(str(raw))
    except (TypeError, ValueError):
        return _now()


def device_info() -> dict[str, str]:
    return {
        "machine": platform.machine() or "unknown",
        "os": f"{platform.system()} {platform.release()}".strip() or "unknown",
        "python": platform.python_version(),
        "locale": locale.getlocale()[0] or "unknown",
        "timezone": datetime.now().astimezone().tzname() or "unknown",
        "pid": str(os.getpid()),
    }


def app_info() -> dict[str, str]:
    return {"version": __version__, "name": "aclio"}


@dataclass(slots=True)
class CrashReport:
    type: CrashType
    message: str
    stack_trace: str | None = None
    user_context: dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_now)
    device_info: dict[str, str] = field(default_factory=device_info)
    app_info: dict[str, str] = field(default_factory=app_info)
    is_reported: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "type": self.type.value,
            "message": self.message,
            "stackTrace": self.stack_trace,
            "deviceInfo": dict(self.device_info),
            "appInfo": dict(self.app_info),
            "userContext": dict(self.user_context),
            "isReported": self.is_reported,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> CrashReport:
        try:
            kind = CrashType(raw.get("type"))
        except ValueError:
            kind = CrashType.ERROR
        return cls(
            id=str(raw.get("id") or uuid.uuid4()),
            timestamp=_parse_ts(raw.get("timestamp")),
            type=kind,
            message=str(raw.get("message") or ""),
            stack_trace=raw.get("stackTrace"),
            device_info=dict(raw.get("deviceInfo") or {}),
            app_info=dict(raw.get("appInfo") or {}),
            user_context=dict(raw.get("userContext") or {}),
            is_reported=bool(raw.get("isReported", False)),
        )


@dataclass(slots=True)
class ErrorLogEntry:
    level: LogLevel
    message: str
    file: str = ""
    function: str = ""
    line: int = 0
    context: dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "message": self.message,
            "file": self.file,
            "function": self.function,
            "line": self.line,
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ErrorLogEntry:
        try:
            level = LogLevel(raw.get("level"))
        except ValueError:
            level = LogLevel.ERROR
        return cls(
            id=str(raw.get("id") or uuid.uuid4()),
            timestamp=_parse_ts(raw.get("timestamp")),
            level=level,
            message=str(raw.get("message") or ""),
            file=str(raw.get("file") or ""),
            function=str(raw.get("function") or ""),
            line=int(raw.get("line") or 0),
            context={str(k): str(v) for k, v in (raw.get("context") or {}).items()},
        )


def _caller(depth: int = 3) -> tuple[str, str, int]:
    """(file basename, function, line) of the frame `depth` levels up."""
    try:
        frame = sys._getframe(depth)
    except ValueError:
        return "", "", 0
    code = frame.f_code
    return os.path.basename(code.co_filename), code.co_name, frame.f_lineno


class CrashReportingService:
    def __init__(self, store: KVStore) -> None:
        self.store = store
        self.user_context: dict[str, str] = {}

        self.crash_reports: list[CrashReport] = [
            CrashReport.from_dict(r) for r in self._load_list(REPORTS_KEY) if isinstance(r, dict)
        ]
        self.error_logs: list[ErrorLogEntry] = [
            ErrorLogEntry.from_dict(e) for e in self._load_list(ERROR_LOGS_KEY) if isinstance(e, dict)
        ]
        self.breadcrumbs: list[str] = [str(b) for b in self._load_list(BREADCRUMBS_KEY)]

        user_id = store.get(USER_ID_KEY)
        if isinstance(user_id, str) and user_id:
            self.user_context["userId"] = user_id

        self._previous_excepthook: Any = None

    def _load_list(self, key: str) -> list[Any]:
        raw = self.store.get(key, [])
        return raw if isinstance(raw, list) else []

    # ---- user context ----

    def set_user_id(self, user_id: str | None) -> None:
        if user_id:
            self.user_context["userId"] = user_id
            self.store.set(USER_ID_KEY, user_id)
        else:
            self.user_context.pop("userId", None)
            self.store.delete(USER_ID_KEY)

    def set_custom_key(self, key: str, value: str | None) -> None:
        if value is None:
            self.user_context.pop(key, None)
        else:
            self.user_context[key] = value

    # ---- breadcrumbs ----

    def add_breadcrumb(self, message: str) -> None:
        self.breadcrumbs.append(f"[{_now().isoformat(timespec='seconds')}] {message}")
        if len(self.breadcrumbs) > MAX_BREADCRUMBS:
            del self.breadcrumbs[: len(self.breadcrumbs) - MAX_BREADCRUMBS]
        self.store.set(BREADCRUMBS_KEY, self.breadcrumbs)

    # ---- error log ----

    def append_log(
            self,
            level: LogLevel,
            message: str,
            *,
            context: Mapping[str, str] | None = None,
            file: str = "",
            function: str = "",
            line: int = 0,
    ) -> ErrorLogEntry:
        entry = ErrorLogEntry(
            level=level,
            message=message,
            file=file,
            function=function,
            line=line,
            context=dict(context or {}),
        )
        self.error_logs.append(entry)
        if len(self.error_logs) > MAX_LOG_ENTRIES:
            del self.error_logs[: len(self.error_logs) - MAX_LOG_ENTRIES]
        self.store.set(ERROR_LOGS_KEY, [e.to_dict() for e in self.error_logs])
        return entry

    def _log(self, level: LogLevel, message: str, context: Mapping[str, str] | None) -> ErrorLogEntry:
        file, function, line = _caller()
        return self.append_log(level, message, context=context, file=file, function=function, line=line)

    def debug(self, message: str, context: Mapping[str, str] | None = None) -> ErrorLogEntry:
        return self._log(LogLevel.DEBUG, message, context)

    def info(self, message: str, context: Mapping[str, str] | None = None) -> ErrorLogEntry:
        return self._log(LogLevel.INFO, message, context)

    def warning(self, message: str, context: Mapping[str, str] | None = None) -> ErrorLogEntry:
        return self._log(LogLevel.WARNING, message, context)

    def log_error(self, message: str, context: Mapping[str, str] | None = None) -> ErrorLogEntry:
        return self._log(LogLevel.ERROR, message, context)

    def critical(self, message: str, context: Mapping[str, str] | None = None) -> ErrorLogEntry:
        return self._log(LogLevel.CRITICAL, message, context)

    # ---- recording ----

    def record_error(self, exc: BaseException, context: Mapping[str, str] | None = None) -> CrashReport:
        """Record a non-fatal exception: error log entry, breadcrumb and an ERROR report with traceback."""
        full = dict(self.user_context)
        full.update(context or {})
        message = str(exc) or exc.__class__.__name__

        self.append_log(LogLevel.ERROR, message, context=full, function=exc.__class__.__name__)
        self.add_breadcrumb(f"Error: {message}")

        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return self.record_crash(CrashType.ERROR, f"{exc.__class__.__name__}: {message}", stack)

    def record_app_error(self, error: AppError, context: Mapping[str, str] | None = None) -> ErrorLogEntry:
        full = dict(self.user_context)
        full["error_type"] = error.kind.value
        full.update(context or {})
        return self.append_log(LogLevel.ERROR, error.message or error.title, context=full)

    def record_crash(self, kind: CrashType, message: str, stack_trace: str | None = None) -> CrashReport:
        report = CrashReport(type=kind, message=message, stack_trace=stack_trace, user_context=dict(self.user_context))
        self.crash_reports.append(report)
        if len(self.crash_reports) > MAX_REPORTS:
            del self.crash_reports[: len(self.crash_reports) - MAX_REPORTS]
        self._save_reports()
        return report

    def _save_reports(self) -> None:
        self.store.set(REPORTS_KEY, [r.to_dict() for r in self.crash_reports])

    # ---- uncaught exceptions ----

    def _excepthook(
            self,
            exc_type: type[BaseException],
            exc: BaseException,
            tb: TracebackType | None,
    ) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            stack = "".join(traceback.format_exception(exc_type, exc, tb))
            self.record_crash(CrashType.EXCEPTION, f"{exc_type.__name__}: {exc}", stack)
        if self._previous_excepthook is not None:
            self._previous_excepthook(exc_type, exc, tb)

    def install_excepthook(self) -> None:
        if self._previous_excepthook is not None:
            return
        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook

    def uninstall_excepthook(self) -> None:
        if self._previous_excepthook is None:
            return
        sys.excepthook = self._previous_excepthook
        self._previous_excepthook = None

    # ---- inspection / cleanup ----

    def pending_reports(self) -> list[CrashReport]:
        return [r for r in self.crash_reports if not r.is_reported]

    def mark_reported(self, report_ids: Iterable[str]) -> int:
        ids = set(report_ids)
        changed = 0
        for report in self.crash_reports:
            if report.id in ids and not report.is_reported:
                report.is_reported = True
                changed += 1
        if changed:
            self._save_reports()
        return changed

    def clear_all(self) -> None:
        self.crash_reports.clear()
        self.error_logs.clear()
        self.breadcrumbs.clear()
        for key in (REPORTS_KEY, ERROR_LOGS_KEY, BREADCRUMBS_KEY):
            self.store.delete(key)

    def export_report(self) -> str:
        payload = {
            "crashReports": [r.to_dict() for r in self.crash_reports],
            "errorLogs": [e.to_dict() for e in self.error_logs],
            "breadcrumbs": list(self.breadcrumbs),
            "exportDate": _now().isoformat(),
        }
        return json.dumps(payload, ensure_ascii=False, indent=2)


class CrashReportingHandler(logging.Handler):
    """Copies log records (WARNING+ by default) into the crash reporting error log."""

    def __init__(self, service: CrashReportingService, level: int = logging.WARNING) -> None:
        super().__init__(level)
        self.service = service

    def emit(self, record: logging.LogRecord) -> None:
        # The service's own records would re-enter the store while it is writing.
        if record.name == __name__:
            return
        try:
            context = {"logger": record.name}
            if record.exc_info and record.exc_info[1] is not None:
                context["exception"] = record.exc_info[1].__class__.__name__
            self.service.append_log(
                LogLevel.from_logging(record.levelno),
                record.getMessage(),
                context=context,
                file=os.path.basename(record.pathname),
                function=record.funcName or "",
                line=record.lineno or 0,
            )
        except Exception:
            self.handleError(record)
