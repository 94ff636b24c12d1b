"""Estimated monthly revenue the client earns back through Locação add-ons."""

from __future__ import annotations

from quote_engine.columns import Column
from quote_engine.rate_table import RateTable, resolve_rates
from quote_engine.schema import active_products


def estimate_extra_revenue(scenario: dict, rates: RateTable | None = None, addons: dict[str, bool] | None = None) -> dict:
    """Boleto and split pass-through plus the Seguros commission estimate.

    All three need Locação; boletos and splits also need Pay, Seguros needs Seguros.
    ``addons`` defaults to the scenario's own add-on set.
    """
    rates = resolve_rates(rates)
    addons = scenario.get("addons", {}) if addons is None else addons
    out = {"boletos": 0.0, "splits": 0.0, "seguros": 0.0, "total": 0.0}
    if "loc" not in active_products(scenario["product"]):
        return out

    contracts = max(0.0, float(scenario.get("contracts_under_management", 0)))
    if addons.get("pay"):
        if scenario.get("charges_boleto_to_tenant"):
            out["boletos"] = round(contracts * max(0.0, float(scenario.get("boleto_charge_amount", 0.0))), 2)
        if scenario.get("charges_split_to_owner"):
            out["splits"] = round(contracts * max(0.0, float(scenario.get("split_charge_amount", 0.0))), 2)
    if addons.get("seguros"):
        out["seguros"] = round(contracts * rates.seguros_revenue_per_contract, 2)
    out["total"] = round(out["boletos"] + out["splits"] + out["seguros"], 2)
    return out


def net_effect(revenue: dict, column: Column) -> float:
    """Monthly revenue minus what the column costs each month, post-paid included."""
    return round(float(revenue.get("total", 0.0)) - column.total_monthly - column.post_paid_total, 2)
