"""Scenario schema helpers, constants, and migration utilities."""

from __future__ import annotations

import math
from copy import deepcopy
from typing import Any

from quote_engine.defaults import DEFAULTS


SCHEMA_VERSION = 2
SCENARIO_TYPE = "scenario"

PRODUCT_SELECTIONS = {"imob", "loc", "both"}
PLAN_TIERS = ("prime", "k", "k2")
FREQUENCIES = ("monthly", "semiannual", "annual", "biennial")
ADDON_KEYS = ("leads", "inteligencia", "assinatura", "pay", "seguros", "cash")

PRODUCT_LABELS = {"imob": "Imob only", "loc": "Locação only", "both": "Imob + Locação"}
FREQUENCY_LABELS = {
    "monthly": "Monthly",
    "semiannual": "Semiannual",
    "annual": "Annual",
    "biennial": "Biennial",
}

LEGACY_FREQUENCIES = {
    "mensal": "monthly",
    "semestral": "semiannual",
    "semiannually": "semiannual",
    "anual": "annual",
    "annually": "annual",
    "bienal": "biennial",
    "biannual": "biennial",
}
LEGACY_ADDON_KEYS = {"assinaturas": "assinatura", "intelligence": "inteligencia"}
LEGACY_SCENARIO_KEYS = {
    "imobPlan": "imob_plan",
    "locPlan": "loc_plan",
    "imobUsers": "imob_users",
    "closingsPerMonth": "closings_per_month",
    "leadsPerMonth": "leads_per_month",
    "contractsUnderManagement": "contracts_under_management",
    "newContractsPerMonth": "new_contracts_per_month",
    "wantsWhatsApp": "wants_whatsapp",
    "vipSupport": "vip_support",
    "dedicatedCS": "dedicated_cs",
    "chargesBoletoToTenant": "charges_boleto_to_tenant",
    "boletoChargeAmount": "boleto_charge_amount",
    "chargesSplitToOwner": "charges_split_to_owner",
    "splitChargeAmount": "split_charge_amount",
}

_TRUE_STRINGS = {"1", "true", "yes", "y", "on", "sim"}
_FALSE_STRINGS = {"0", "false", "no", "n", "off", "nao", "não"}


def active_products(selection: str) -> tuple[str, ...]:
    if selection == "both":
        return ("imob", "loc")
    if selection in ("imob", "loc"):
        return (selection,)
    raise ValueError(f"Unrecognized product selection: {selection}")


def coerce_bool(value: Any) -> bool | None:
    """Return a bool for common spellings, or None when the value is not recognisable."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        txt = value.strip().lower()
        if txt in _TRUE_STRINGS:
            return True
        if txt in _FALSE_STRINGS:
            return False
    return None


def normalize_frequency(value: Any) -> str | None:
    txt = str(value).strip().lower()
    if txt in FREQUENCIES:
        return txt
    return LEGACY_FREQUENCIES.get(txt)


def _sanitize_addons(raw_addons: Any, warnings: list[str]) -> dict[str, bool]:
    addons = deepcopy(DEFAULTS["addons"])
    if raw_addons is None:
        return addons
    if not isinstance(raw_addons, dict):
        warnings.append("addons ignored because it is not an object.")
        return addons
    for key, value in raw_addons.items():
        name = LEGACY_ADDON_KEYS.get(key, key)
        if name not in addons:
            warnings.append(f"addons.{key} is not a known add-on and was ignored.")
            continue
        flag = coerce_bool(value)
        if flag is None:
            warnings.append(f"addons.{key} invalid and reset to default.")
            continue
        addons[name] = flag
    return addons


def migrate_scenario(raw_scenario: dict) -> tuple[dict, list[str], list[str]]:
    """Migrate incoming scenario inputs into the current schema, clamping out-of-range values."""
    warnings: list[str] = []
    unknown_keys: list[str] = []
    scenario = deepcopy(DEFAULTS)
    payload = raw_scenario if isinstance(raw_scenario, dict) else {}

    for k, v in payload.items():
        if k in scenario:
            scenario[k] = v
        elif k in LEGACY_SCENARIO_KEYS:
            target = LEGACY_SCENARIO_KEYS[k]
            if target not in payload:
                scenario[target] = v
        else:
            unknown_keys.append(k)

    # Enumerations.
    scenario["product"] = str(scenario.get("product", DEFAULTS["product"])).strip().lower()
    if scenario["product"] not in PRODUCT_SELECTIONS:
        warnings.append(f"product invalid; reset to {DEFAULTS['product']}.")
        scenario["product"] = DEFAULTS["product"]

    for plan_key in ("imob_plan", "loc_plan"):
        scenario[plan_key] = str(scenario.get(plan_key, DEFAULTS[plan_key])).strip().lower()
        if scenario[plan_key] not in PLAN_TIERS:
            warnings.append(f"{plan_key} invalid; reset to {DEFAULTS[plan_key]}.")
            scenario[plan_key] = DEFAULTS[plan_key]

    frequency = normalize_frequency(scenario.get("frequency", DEFAULTS["frequency"]))
    if frequency is None:
        warnings.append(f"frequency invalid; reset to {DEFAULTS['frequency']}.")
        frequency = DEFAULTS["frequency"]
    elif frequency != scenario.get("frequency"):
        warnings.append(f"frequency '{scenario.get('frequency')}' migrated to '{frequency}'.")
    scenario["frequency"] = frequency

    scenario["addons"] = _sanitize_addons(payload.get("addons"), warnings)

    bool_keys = [k for k, v in DEFAULTS.items() if isinstance(v, bool)]
    for key in bool_keys:
        flag = coerce_bool(scenario.get(key, DEFAULTS[key]))
        if flag is None:
            scenario[key] = DEFAULTS[key]
            warnings.append(f"{key} invalid and reset to default.")
        else:
            scenario[key] = flag

    # Usage metrics never go negative; a quote must not hard-fail mid-edit.
    non_negative = [k for k, v in DEFAULTS.items() if isinstance(v, (int, float)) and not isinstance(v, bool)]
    for key in non_negative:
        try:
            raw = float(scenario[key])
            if not math.isfinite(raw):
                raise ValueError(f"{key} is not finite")
            value = int(raw) if isinstance(DEFAULTS[key], int) else raw
        except (TypeError, ValueError):
            scenario[key] = deepcopy(DEFAULTS[key])
            warnings.append(f"{key} invalid and reset to default.")
            continue
        if value < 0:
            warnings.append(f"{key} was negative and clamped to 0.")
            value = 0 if isinstance(DEFAULTS[key], int) else 0.0
        scenario[key] = value

    return scenario, warnings, sorted(unknown_keys)


def migrate_import_payload(payload: dict) -> tuple[dict, list[str], list[str]]:
    """Parse an imported scenario bundle or bare legacy dict and return the migrated scenario."""
    if not isinstance(payload, dict):
        return deepcopy(DEFAULTS), ["Import payload is not a JSON object."], []

    if payload.get("type") == SCENARIO_TYPE:
        scenario, warnings, unknown = migrate_scenario(payload.get("scenario", {}))
        version = payload.get("schema_version")
        if version != SCHEMA_VERSION:
            warnings.append(f"Imported schema_version={version}; migrated to schema_version={SCHEMA_VERSION}.")
        return scenario, warnings, unknown

    scenario, warnings, unknown = migrate_scenario(payload)
    warnings.append("Imported legacy scenario JSON without bundle metadata.")
    return scenario, warnings, unknown


def build_scenario_payload(scenario: dict) -> dict:
    return {"type": SCENARIO_TYPE, "schema_version": SCHEMA_VERSION, "scenario": deepcopy(scenario)}
