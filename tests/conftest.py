from __future__ import annotations

from copy import deepcopy
from pathlib import Path

import pytest

import quote_engine.runtime_logging as runtime_logging
from quote_engine.defaults import DEFAULTS
from quote_engine.rate_table import default_rate_table
from quote_engine.schema import migrate_scenario


@pytest.fixture
def base_scenario() -> dict:
    scenario, _, _ = migrate_scenario(deepcopy(DEFAULTS))
    return scenario


@pytest.fixture
def rates():
    return default_rate_table()


@pytest.fixture
def runtime_log(tmp_path, monkeypatch) -> Path:
    log_file = Path(tmp_path) / "quote_events.jsonl"
    monkeypatch.setattr(runtime_logging, "LOG_DIR", Path(tmp_path))
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", log_file)
    return log_file
