from __future__ import annotations

from copy import deepcopy
from dataclasses import replace

import pytest

from quote_engine.calculator import compute_column, compute_custom_column
from quote_engine.columns import ColumnOverrides
from quote_engine.comparison import build_comparison
from quote_engine.prepaid import apply_prepaid
from quote_engine.rate_table import ConfigurationReferenceError
from quote_engine.recalculation import prepare_export, recalculate
from quote_engine.runtime_logging import read_runtime_events


def _cached_columns(scenario, rates):
    columns = build_comparison(scenario, rates=rates)
    columns.append(
        compute_custom_column(
            "custom_1", "Custom 1", scenario, ColumnOverrides(frequency="biennial"), source_bundle="elite", rates=rates
        )
    )
    columns[0] = apply_prepaid(columns[0], prepay_seats=True, rates=rates)
    return columns


def test_recalculate_on_unchanged_scenario_matches_cached(base_scenario, rates, runtime_log):
    cached = _cached_columns(base_scenario, rates)
    assert recalculate(cached, base_scenario, rates) == cached


def test_recalculate_is_idempotent(base_scenario, rates, runtime_log):
    cached = _cached_columns(base_scenario, rates)
    scenario = deepcopy(base_scenario)
    scenario.update({"imob_users": 12, "frequency": "biennial"})
    once = recalculate(cached, scenario, rates)
    assert recalculate(once, scenario, rates) == once


def test_recalculate_picks_up_scenario_edits_and_keeps_prepaid_flags(base_scenario, rates, runtime_log):
    cached = _cached_columns(base_scenario, rates)
    scenario = deepcopy(base_scenario)
    scenario["imob_users"] = 10
    fresh = recalculate(cached, scenario, rates)
    baseline = fresh[0]
    assert baseline.prepaid_seats
    assert baseline.post_paid["users"].cost == 111
    assert baseline.prepaid_monthly == pytest.approx(99.9)
    assert baseline.total_monthly == pytest.approx(cached[0].total_monthly + 99.9)
    assert [c.column_id for c in fresh] == [c.column_id for c in cached]


def test_custom_column_is_recomputed_as_custom(base_scenario, rates, runtime_log):
    cached = _cached_columns(base_scenario, rates)
    scenario = deepcopy(base_scenario)
    scenario["addons"]["inteligencia"] = True
    fresh = recalculate(cached, scenario, rates)
    custom = fresh[-1]
    assert custom.is_custom
    assert custom.frequency == "biennial"
    assert custom.source_bundle == "elite"
    assert custom.addon_lines["inteligencia"] != cached[-1].addon_lines["inteligencia"]


def test_failing_column_falls_back_to_cached_and_logs(base_scenario, rates, runtime_log):
    cached = _cached_columns(base_scenario, rates)
    broken = replace(cached[1], overrides=ColumnOverrides(frequency="weekly"))
    scenario = deepcopy(base_scenario)
    scenario["imob_users"] = 20
    fresh = recalculate([cached[0], broken, cached[2]], scenario, rates)
    assert fresh[1] is broken
    assert fresh[0].post_paid["users"].cost > 0
    events = read_runtime_events(event="column_recalculation_failed")
    assert len(events) == 1
    assert events[0]["level"] == "WARNING"
    assert events[0]["context"]["column_id"] == broken.column_id
    assert events[0]["exception_type"] == "ValueError"


def test_missing_bundle_stops_the_batch(base_scenario, rates, runtime_log):
    cached = _cached_columns(base_scenario, rates)
    orphan = replace(cached[1], bundle_id="retired_kombo")
    with pytest.raises(ConfigurationReferenceError, match="retired_kombo"):
        recalculate([cached[0], orphan], base_scenario, rates)


def test_prepare_export_reports_drift_without_blocking(base_scenario, rates, runtime_log):
    cached = [compute_column(None, base_scenario, rates=rates)]
    document_totals = {"total_monthly": cached[0].total_monthly, "implementation_fee": cached[0].implementation, "seat_count": 7}
    scenario = deepcopy(base_scenario)
    scenario["addons"]["inteligencia"] = True
    fresh, warnings = prepare_export(cached, scenario, document_totals, rates)
    assert fresh[0].total_monthly == cached[0].total_monthly + 297
    checks = {w["Check"] for w in warnings}
    assert checks == {"Monthly total divergence", "Implementation fee divergence"}
    assert len(read_runtime_events(event="quote_integrity_divergence")) == 2
    assert len(read_runtime_events(event="quote_export_prepared")) == 1


def test_prepare_export_is_clean_when_nothing_changed(base_scenario, rates, runtime_log):
    cached = _cached_columns(base_scenario, rates)
    primary = cached[0]
    document_totals = {"total_monthly": primary.total_monthly, "implementation_fee": primary.implementation, "seat_count": 7}
    fresh, warnings = prepare_export(cached, base_scenario, document_totals, rates)
    assert fresh == cached
    assert warnings == []
