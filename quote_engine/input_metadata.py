"""Input guidance metadata and advisory range checks."""

from __future__ import annotations

from typing import Any

from quote_engine.schema import active_products


INPUT_GUIDANCE: dict[str, dict[str, Any]] = {
    "imob_users": {"min": 1, "max": 500, "note": "Brokers and staff who log into Imob."},
    "closings_per_month": {"min": 0, "max": 300, "note": "Sales closed per month; drives signature usage."},
    "leads_per_month": {"min": 0, "max": 5000, "note": "Inbound leads per month; drives WhatsApp lead usage."},
    "contracts_under_management": {"min": 1, "max": 20000, "note": "Active rental contracts billed through Locação."},
    "new_contracts_per_month": {"min": 0, "max": 500, "note": "New rental contracts signed each month."},
    "boleto_charge_amount": {"min": 0.0, "max": 15.0, "note": "Fee passed on to the tenant per boleto."},
    "split_charge_amount": {"min": 0.0, "max": 15.0, "note": "Fee passed on to the owner per split."},
}

# Upper bound of the usage band each plan tier is sized for; the last tier is open-ended.
PLAN_SIZE_BANDS: dict[str, tuple[tuple[str, float], ...]] = {
    "imob": (("prime", 4), ("k", 14), ("k2", float("inf"))),
    "loc": (("prime", 100), ("k", 499), ("k2", float("inf"))),
}

_SIZE_METRIC = {"imob": "imob_users", "loc": "contracts_under_management"}


def _fmt(v: float) -> str:
    if abs(v - round(v)) < 1e-9:
        return f"{int(round(v))}"
    return f"{v:.3f}".rstrip("0").rstrip(".")


def help_with_guidance(key: str, base_help: str) -> str:
    g = INPUT_GUIDANCE.get(key)
    if not g:
        return base_help
    return f"{base_help} Reasonable range: {_fmt(g['min'])} to {_fmt(g['max'])}. {g['note']}"


def suggest_plan_tier(product: str, quantity: float) -> str:
    bands = PLAN_SIZE_BANDS.get(product)
    if bands is None:
        raise ValueError(f"Unrecognized product: {product}")
    quantity = max(0.0, float(quantity))
    for tier, upper in bands:
        if quantity <= upper:
            return tier
    return bands[-1][0]


def advisory_warnings(scenario: dict) -> list[str]:
    warnings: list[str] = []
    for key, g in INPUT_GUIDANCE.items():
        if key not in scenario:
            continue
        try:
            v = float(scenario[key])
        except (TypeError, ValueError):
            continue
        if v < g["min"] or v > g["max"]:
            warnings.append(f"{key}={_fmt(v)} is outside the recommended range [{_fmt(g['min'])}, {_fmt(g['max'])}].")

    try:
        products = active_products(scenario.get("product", ""))
    except ValueError:
        return warnings
    for product in products:
        metric = _SIZE_METRIC[product]
        if metric not in scenario:
            continue
        suggested = suggest_plan_tier(product, scenario[metric])
        chosen = scenario.get(f"{product}_plan")
        if chosen and chosen != suggested:
            warnings.append(f"{product}_plan={chosen} but {metric}={_fmt(float(scenario[metric]))} suggests {suggested}.")
    return warnings
