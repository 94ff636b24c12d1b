from __future__ import annotations

from pathlib import Path

import quote_engine.runtime_logging as runtime_logging
from quote_engine.calculator import compute_column


def test_runtime_logging_append_and_read(runtime_log):
    runtime_logging.append_runtime_event(
        level="warning",
        event="test_event",
        message="Test warning.",
        context={"case": "append_and_read", "addons": frozenset({"pay"})},
    )
    events = runtime_logging.read_runtime_events(limit=10)
    assert len(events) == 1
    assert events[0]["event"] == "test_event"
    assert events[0]["level"] == "WARNING"
    assert events[0]["context"]["case"] == "append_and_read"
    assert events[0]["context"]["addons"] == ["pay"]


def test_runtime_logging_records_exception_details(runtime_log):
    try:
        raise ValueError("bad override")
    except ValueError as exc:
        runtime_logging.append_runtime_event("ERROR", "boom", "Failed.", exc=exc)
    event = runtime_logging.read_runtime_events()[0]
    assert event["exception_type"] == "ValueError"
    assert event["exception_message"] == "bad override"
    assert "Traceback" in event["traceback"]


def test_runtime_logging_handles_malformed_lines(runtime_log):
    runtime_log.parent.mkdir(parents=True, exist_ok=True)
    runtime_log.write_text(
        '{"event":"ok","level":"INFO","timestamp_utc":"2026-01-01T00:00:00+00:00","message":"ok","context":{}}\nnot-json\n',
        encoding="utf-8",
    )
    events = runtime_logging.read_runtime_events(limit=10)
    assert len(events) == 2
    assert events[0]["event"] == "ok"
    assert events[1]["event"] == "log_parse_error"


def test_read_runtime_events_filters_and_limits(runtime_log):
    for idx in range(5):
        runtime_logging.append_runtime_event("INFO", "tick" if idx % 2 == 0 else "tock", f"event {idx}")
    assert [e["message"] for e in runtime_logging.read_runtime_events(event="tick")] == ["event 0", "event 2", "event 4"]
    assert [e["message"] for e in runtime_logging.read_runtime_events(limit=2)] == ["event 3", "event 4"]
    assert runtime_logging.read_runtime_events(limit=0) == []


def test_configure_log_root_expands_user_and_vars(tmp_path, monkeypatch):
    original_dir = runtime_logging.LOG_DIR
    original_file = runtime_logging.RUNTIME_EVENTS_LOG_FILE
    try:
        monkeypatch.setenv("QUOTE_TEST_ROOT", str(tmp_path))
        root = runtime_logging.configure_log_root("$QUOTE_TEST_ROOT/logs")
        assert root == Path(tmp_path) / "logs"
        assert runtime_logging.RUNTIME_EVENTS_LOG_FILE == Path(tmp_path) / "logs" / "quote_events.jsonl"
        assert runtime_logging.configure_log_root("  ") == Path(".local_store")
    finally:
        runtime_logging.LOG_DIR = original_dir
        runtime_logging.RUNTIME_EVENTS_LOG_FILE = original_file


def test_min_level_filter_and_summary(runtime_log):
    runtime_logging.append_runtime_event("INFO", "quote_frozen", "Froze 3 column(s).")
    runtime_logging.append_runtime_event("WARNING", "quote_integrity_divergence", "Monthly total divergence")
    runtime_logging.append_runtime_event("WARNING", "quote_integrity_divergence", "Seat count inconsistency")

    warnings = runtime_logging.read_runtime_events(min_level="warning")
    assert [e["event"] for e in warnings] == ["quote_integrity_divergence"] * 2

    summary = runtime_logging.summarize_runtime_events(runtime_logging.read_runtime_events())
    assert list(summary["event"]) == ["quote_integrity_divergence", "quote_frozen"]
    assert list(summary["count"]) == [2, 1]
    assert runtime_logging.summarize_runtime_events([]).empty


def test_quote_context_names_column_and_rate_table(base_scenario, rates):
    column = compute_column("elite", base_scenario, rates=rates)
    context = runtime_logging.quote_context(column, rates, warning_count=2)
    assert context == {
        "column_id": "elite",
        "column_name": "Kombo Elite",
        "column_kind": "bundle",
        "rate_table_version": rates.version,
        "warning_count": 2,
    }
    assert runtime_logging.quote_context() == {}
