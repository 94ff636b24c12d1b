from __future__ import annotations

from copy import deepcopy

import pytest

from quote_engine.defaults import DEFAULTS
from quote_engine.schema import (
    SCHEMA_VERSION,
    active_products,
    build_scenario_payload,
    migrate_import_payload,
    migrate_scenario,
)


def test_defaults_migrate_cleanly():
    scenario, warnings, unknown = migrate_scenario(deepcopy(DEFAULTS))
    assert scenario == DEFAULTS
    assert warnings == []
    assert unknown == []


def test_negative_usage_metrics_are_clamped_to_zero():
    scenario, warnings, _ = migrate_scenario({"imob_users": -3, "leads_per_month": -50, "boleto_charge_amount": -2.5})
    assert scenario["imob_users"] == 0
    assert scenario["leads_per_month"] == 0
    assert scenario["boleto_charge_amount"] == 0.0
    assert sum("clamped" in w for w in warnings) == 3


def test_invalid_enumerations_reset_to_defaults():
    scenario, warnings, _ = migrate_scenario({"product": "crm", "imob_plan": "gold", "frequency": "weekly"})
    assert scenario["product"] == DEFAULTS["product"]
    assert scenario["imob_plan"] == DEFAULTS["imob_plan"]
    assert scenario["frequency"] == DEFAULTS["frequency"]
    assert any("product invalid" in w for w in warnings)
    assert any("frequency invalid" in w for w in warnings)


def test_legacy_spellings_are_bridged():
    legacy = {
        "frequency": "semestral",
        "imobUsers": "12",
        "vipSupport": "yes",
        "addons": {"assinaturas": False, "pay": "true"},
    }
    scenario, warnings, unknown = migrate_scenario(legacy)
    assert unknown == []
    assert scenario["frequency"] == "semiannual"
    assert scenario["imob_users"] == 12
    assert scenario["vip_support"] is True
    assert scenario["addons"]["assinatura"] is False
    assert scenario["addons"]["pay"] is True
    assert any("migrated" in w for w in warnings)


def test_unknown_keys_are_collected():
    _, _, unknown = migrate_scenario({"zeta": 1, "alpha": 2, "imob_users": 4})
    assert unknown == ["alpha", "zeta"]


def test_unparseable_numbers_and_bools_reset_with_warning():
    scenario, warnings, _ = migrate_scenario({"imob_users": "many", "wants_whatsapp": "perhaps"})
    assert scenario["imob_users"] == DEFAULTS["imob_users"]
    assert scenario["wants_whatsapp"] == DEFAULTS["wants_whatsapp"]
    assert "imob_users invalid and reset to default." in warnings
    assert "wants_whatsapp invalid and reset to default." in warnings


def test_import_payload_bundle_and_legacy():
    payload = build_scenario_payload({"product": "loc"})
    scenario, warnings, _ = migrate_import_payload(payload)
    assert scenario["product"] == "loc"
    assert warnings == []

    old = {"type": "scenario", "schema_version": 1, "scenario": {"product": "imob"}}
    scenario, warnings, _ = migrate_import_payload(old)
    assert scenario["product"] == "imob"
    assert any(f"schema_version={SCHEMA_VERSION}" in w for w in warnings)

    scenario, warnings, _ = migrate_import_payload({"product": "both"})
    assert any("legacy" in w for w in warnings)

    scenario, warnings, _ = migrate_import_payload(["not", "a", "dict"])
    assert scenario == DEFAULTS
    assert warnings == ["Import payload is not a JSON object."]


def test_active_products():
    assert active_products("both") == ("imob", "loc")
    assert active_products("loc") == ("loc",)
    with pytest.raises(ValueError):
        active_products("crm")


@pytest.mark.parametrize("bad", [float("inf"), float("-inf"), float("nan"), "inf", "nan"])
def test_non_finite_metrics_reset_to_default(bad):
    scenario, warnings, _ = migrate_scenario({"imob_users": bad, "boleto_charge_amount": bad})
    assert scenario["imob_users"] == DEFAULTS["imob_users"]
    assert scenario["boleto_charge_amount"] == DEFAULTS["boleto_charge_amount"]
    assert "imob_users invalid and reset to default." in warnings
    assert "boleto_charge_amount invalid and reset to default." in warnings
