"""Structured JSONL diagnostics for quote calculations and export checks.

Every record carries ``timestamp_utc``, ``level``, ``event``, ``message`` and a
``context`` dict. Quote events add the column and rate table they concern via
:func:`quote_context` so the diagnostics tab can group them.
"""

from __future__ import annotations

import json
import os
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd
from streamlit.runtime.scriptrunner import get_script_run_ctx


LOG_FILE_NAME = "quote_events.jsonl"
LOG_DIR = Path(".local_store")
RUNTIME_EVENTS_LOG_FILE = LOG_DIR / LOG_FILE_NAME

_DEFAULT_LOG_DIR = Path(".local_store")
_STORAGE_ENV_VAR = "QUOTE_STORAGE_ROOT"

LEVEL_ORDER = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}

_EXCEPTION_HOOK_INSTALLED = False


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_default(value: Any):
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, tuple):
        return list(value)
    return str(value)


def _expand_log_root(path_value: str | Path | None) -> Path:
    text = "" if path_value is None else str(path_value).strip()
    if not text:
        return _DEFAULT_LOG_DIR
    return Path(os.path.expandvars(os.path.expanduser(text)))


def configure_log_root(path_value: str | Path | None) -> Path:
    global LOG_DIR, RUNTIME_EVENTS_LOG_FILE
    LOG_DIR = _expand_log_root(path_value)
    RUNTIME_EVENTS_LOG_FILE = LOG_DIR / LOG_FILE_NAME
    return LOG_DIR


def runtime_log_path() -> str:
    return str(RUNTIME_EVENTS_LOG_FILE.resolve())


def quote_context(column=None, rates=None, **extra: Any) -> dict[str, Any]:
    """Standard context for a quote event: column identity and rate table version, plus ``extra``."""
    context: dict[str, Any] = {}
    if column is not None:
        context["column_id"] = column.column_id
        context["column_name"] = column.name
        context["column_kind"] = column.kind
    if rates is not None:
        context["rate_table_version"] = rates.version
    context.update(extra)
    return context


def _event_record(level: str, event: str, message: str, context: dict[str, Any] | None, exc: BaseException | None) -> dict:
    record: dict[str, Any] = {
        "timestamp_utc": _now_iso(),
        "level": str(level).upper(),
        "event": str(event),
        "message": str(message),
        "context": context or {},
    }
    if exc is not None:
        record["exception_type"] = type(exc).__name__
        record["exception_message"] = str(exc)
        if exc.__traceback__ is not None:
            record["traceback"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return record


def append_runtime_event(
    level: str,
    event: str,
    message: str,
    context: dict[str, Any] | None = None,
    exc: BaseException | None = None,
) -> None:
    """Append one event record; failures to write are ignored."""
    try:
        record = _event_record(level, event, message, context, exc)
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        with RUNTIME_EVENTS_LOG_FILE.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=_json_default, ensure_ascii=False) + "\n")
    except Exception:
        # Diagnostics never block a quote.
        pass


def _parse_line(line: str) -> dict[str, Any]:
    try:
        return json.loads(line)
    except json.JSONDecodeError:
        return {
            "timestamp_utc": _now_iso(),
            "level": "ERROR",
            "event": "log_parse_error",
            "message": "Malformed log line encountered.",
            "context": {"line": line},
        }


def read_runtime_events(
    limit: int = 200,
    event: str | None = None,
    min_level: str | None = None,
) -> list[dict[str, Any]]:
    """Most recent ``limit`` events, oldest first, optionally filtered by event name and minimum level."""
    if limit <= 0 or not RUNTIME_EVENTS_LOG_FILE.exists():
        return []
    try:
        lines = RUNTIME_EVENTS_LOG_FILE.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []
    floor = LEVEL_ORDER.get(str(min_level).upper(), 0) if min_level else 0
    records = []
    for line in lines:
        record = _parse_line(line)
        if event is not None and record.get("event") != event:
            continue
        if LEVEL_ORDER.get(str(record.get("level", "")).upper(), 0) < floor:
            continue
        records.append(record)
    return records[-int(limit) :]


def summarize_runtime_events(events: list[dict[str, Any]]) -> pd.DataFrame:
    """Event counts by level and name, with the latest timestamp of each."""
    if not events:
        return pd.DataFrame(columns=["level", "event", "count", "last_seen_utc"])
    df = pd.DataFrame(events)
    summary = (
        df.groupby(["level", "event"], as_index=False)
        .agg(count=("event", "size"), last_seen_utc=("timestamp_utc", "max"))
        .sort_values(["count", "event"], ascending=[False, True])
    )
    return summary.reset_index(drop=True)


def install_global_exception_logging() -> None:
    """Capture uncaught exceptions raised inside Streamlit script runs."""
    global _EXCEPTION_HOOK_INSTALLED
    if _EXCEPTION_HOOK_INSTALLED:
        return
    previous_hook = sys.excepthook

    def _log_uncaught(exc_type, exc, exc_tb):
        try:
            if get_script_run_ctx() is not None:
                append_runtime_event(level="ERROR", event="uncaught_exception", message=str(exc), exc=exc)
        except Exception:
            pass
        previous_hook(exc_type, exc, exc_tb)

    sys.excepthook = _log_uncaught
    _EXCEPTION_HOOK_INSTALLED = True


configure_log_root(os.getenv(_STORAGE_ENV_VAR, ""))
