"""Kombo eligibility and the recommendation rule table."""

from __future__ import annotations

from itertools import combinations

from quote_engine.rate_table import RateTable, resolve_rates
from quote_engine.schema import active_products


NO_BUNDLE = "none"

_LOC_ZERO_FEE_ADDONS = ("pay", "seguros", "cash")


def _with_optional(base: set[str], optional: tuple[str, ...]) -> list[frozenset[str]]:
    out = []
    for size in range(len(optional) + 1):
        for extra in combinations(optional, size):
            out.append(frozenset(base | set(extra)))
    return out


# (product selection, exact add-on signature) -> bundle id; first match wins.
RECOMMENDATION_RULES: tuple[tuple[str, frozenset[str], str], ...] = (
    ("both", frozenset({"leads", "inteligencia", "assinatura", "pay", "seguros", "cash"}), "elite"),
    ("both", frozenset(), "core_gestao"),
    ("imob", frozenset({"leads", "inteligencia", "assinatura"}), "imob_pro"),
    ("imob", frozenset({"leads", "assinatura"}), "imob_start"),
    *(
        ("loc", signature, "locacao_pro")
        for signature in _with_optional({"inteligencia", "assinatura"}, _LOC_ZERO_FEE_ADDONS)
    ),
)


def is_eligible(bundle_id: str, selection: str, rates: RateTable | None = None) -> bool:
    bundle = resolve_rates(rates).bundle(bundle_id)
    active = set(active_products(selection))
    covered = set(bundle.products)
    if len(covered) > 1:
        return covered <= active
    return bool(covered & active)


def compatible_bundle_ids(selection: str, rates: RateTable | None = None) -> list[str]:
    rates = resolve_rates(rates)
    return [bundle_id for bundle_id in rates.bundles if is_eligible(bundle_id, selection, rates)]


def applicable_addons(selection: str, rates: RateTable | None = None) -> list[str]:
    rates = resolve_rates(rates)
    active = set(active_products(selection))
    return [key for key, addon in rates.addons.items() if active & set(addon.available_for)]


def addon_signature(selection: str, addons: dict[str, bool], rates: RateTable | None = None) -> frozenset[str]:
    """Active add-ons that the product selection can actually use."""
    applicable = applicable_addons(selection, rates)
    return frozenset(key for key in applicable if addons.get(key))


def recommend(selection: str, addons: dict[str, bool], rates: RateTable | None = None) -> str:
    rates = resolve_rates(rates)
    signature = addon_signature(selection, addons, rates)
    for rule_selection, rule_signature, bundle_id in RECOMMENDATION_RULES:
        if rule_selection == selection and rule_signature == signature:
            return rates.bundle(bundle_id).bundle_id
    return NO_BUNDLE
