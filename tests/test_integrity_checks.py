from __future__ import annotations

from copy import deepcopy
from dataclasses import replace

from quote_engine.calculator import compute_column
from quote_engine.comparison import build_comparison
from quote_engine.integrity_checks import run_integrity_checks, validate_integrity
from quote_engine.runtime_logging import read_runtime_events


def test_integrity_checks_pass_for_representative_scenarios(base_scenario, rates):
    scenarios = [
        {},
        {"product": "imob", "imob_plan": "prime", "imob_users": 9, "vip_support": True, "frequency": "monthly"},
        {"product": "loc", "loc_plan": "k2", "contracts_under_management": 1200, "addons": {"pay": True, "assinatura": True}},
        {"imob_plan": "k2", "loc_plan": "prime", "frequency": "semiannual", "wants_whatsapp": True, "leads_per_month": 2400},
    ]
    for updates in scenarios:
        scenario = deepcopy(base_scenario)
        addons = updates.pop("addons", None)
        scenario.update(updates)
        if addons:
            scenario["addons"].update(addons)
        findings = run_integrity_checks(build_comparison(scenario, rates=rates))
        assert findings == [], f"Unexpected integrity findings for updates={updates}: {findings}"


def test_integrity_checks_detect_identity_break(base_scenario, rates):
    col = compute_column(None, base_scenario, rates=rates)
    broken = replace(col, total_monthly=col.total_monthly + 1.0)
    findings = run_integrity_checks([col, broken])
    checks = {f["Check"] for f in findings}
    assert "Monthly total identity" in checks
    assert all(f["Column of Max Delta"] == "baseline" for f in findings)


def test_empty_column_list_is_reported():
    findings = run_integrity_checks([])
    assert findings[0]["Check"] == "Columns not available"


def test_validate_integrity_passes_within_tolerance(base_scenario, rates, runtime_log):
    col = compute_column(None, base_scenario, rates=rates)
    totals = {"total_monthly": col.total_monthly + 0.5, "implementation_fee": col.implementation - 1.0, "seat_count": 7}
    assert validate_integrity(totals, [col]) == []
    assert read_runtime_events() == []


def test_validate_integrity_flags_seat_count_mismatch(base_scenario, rates, runtime_log):
    scenario = deepcopy(base_scenario)
    scenario["imob_users"] = 10
    col = compute_column(None, scenario, rates=rates)
    assert validate_integrity({"seat_count": 10}, [col]) == []
    assert validate_integrity({"seat_count": 7}, [col]) == []
    findings = validate_integrity({"seat_count": 9}, [col])
    assert [f["Check"] for f in findings] == ["Seat count inconsistency"]
    events = read_runtime_events(event="quote_integrity_divergence")
    assert len(events) == 1
    assert events[0]["level"] == "WARNING"


def test_validate_integrity_ignores_seats_when_imob_is_inactive(base_scenario, rates, runtime_log):
    scenario = deepcopy(base_scenario)
    scenario["product"] = "loc"
    col = compute_column(None, scenario, rates=rates)
    assert validate_integrity({"seat_count": 3}, [col]) == []


def test_validate_integrity_uses_primary_column_only(base_scenario, rates, runtime_log):
    baseline = compute_column(None, base_scenario, rates=rates)
    elite = compute_column("elite", base_scenario, rates=rates)
    totals = {"total_monthly": baseline.total_monthly, "implementation_fee": baseline.implementation}
    assert validate_integrity(totals, [baseline, elite]) == []
    assert len(validate_integrity(totals, [elite, baseline])) == 2
