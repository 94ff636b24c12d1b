from __future__ import annotations

from copy import deepcopy

import pytest

from quote_engine.calculator import compute_column
from quote_engine.revenue import estimate_extra_revenue, net_effect


def _with_pay(scenario: dict) -> dict:
    scenario = deepcopy(scenario)
    scenario["addons"].update({"pay": True, "seguros": True})
    scenario.update(
        {
            "charges_boleto_to_tenant": True,
            "boleto_charge_amount": 2.5,
            "charges_split_to_owner": True,
            "split_charge_amount": 1.0,
        }
    )
    return scenario


def test_default_scenario_earns_nothing(base_scenario, rates):
    assert estimate_extra_revenue(base_scenario, rates) == {"boletos": 0.0, "splits": 0.0, "seguros": 0.0, "total": 0.0}


def test_revenue_from_pass_through_fees_and_seguros(base_scenario, rates):
    revenue = estimate_extra_revenue(_with_pay(base_scenario), rates)
    assert revenue["boletos"] == pytest.approx(375.0)
    assert revenue["splits"] == pytest.approx(150.0)
    assert revenue["seguros"] == pytest.approx(1500.0)
    assert revenue["total"] == pytest.approx(2025.0)


def test_pass_through_needs_the_charge_toggle(base_scenario, rates):
    scenario = _with_pay(base_scenario)
    scenario["charges_split_to_owner"] = False
    revenue = estimate_extra_revenue(scenario, rates)
    assert revenue["splits"] == 0.0
    assert revenue["boletos"] == pytest.approx(375.0)


def test_revenue_requires_locacao(base_scenario, rates):
    scenario = _with_pay(base_scenario)
    scenario["product"] = "imob"
    assert estimate_extra_revenue(scenario, rates)["total"] == 0.0


def test_addon_set_can_come_from_a_column(base_scenario, rates):
    scenario = _with_pay(base_scenario)
    scenario["addons"] = {key: False for key in scenario["addons"]}
    assert estimate_extra_revenue(scenario, rates)["total"] == 0.0
    elite = compute_column("elite", scenario, rates=rates)
    revenue = estimate_extra_revenue(scenario, rates, addons=elite.effective_addons)
    assert revenue["total"] == pytest.approx(2025.0)


def test_net_effect_subtracts_column_costs(base_scenario, rates):
    scenario = _with_pay(base_scenario)
    column = compute_column(None, scenario, rates=rates)
    revenue = estimate_extra_revenue(scenario, rates)
    expected = round(revenue["total"] - column.total_monthly - column.post_paid_total, 2)
    assert net_effect(revenue, column) == pytest.approx(expected)
