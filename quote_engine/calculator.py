"""Column calculator: one fully itemised pricing result per bundle choice."""

from __future__ import annotations

from copy import deepcopy

from quote_engine.bundles import NO_BUNDLE, is_eligible
from quote_engine.columns import (
    NOT_APPLICABLE,
    Column,
    ColumnOverrides,
    ImplementationItem,
    Included,
    NotApplicable,
    Numeric,
    PostPaidLine,
    PriceLine,
    line_amount,
)
from quote_engine.cycle_pricing import apply_discount, cycle_months, cycle_price, service_price
from quote_engine.rate_table import BundleRate, RateTable, resolve_rates
from quote_engine.schema import ADDON_KEYS, FREQUENCIES, PLAN_TIERS, active_products
from quote_engine.tiered_usage import additional_quantity, blended_unit_cost, tiered_cost


BASELINE_COLUMN_ID = "baseline"
BASELINE_NAME = "Sem Kombo"

POST_PAID_DIMENSIONS = ("users", "contracts", "whatsapp_leads", "signatures", "boletos", "splits")


def _plan_key(product: str) -> str:
    return f"{product}_plan"


def resolve_effective_inputs(scenario: dict, overrides: ColumnOverrides | None = None) -> dict:
    """Layer overrides on the scenario field by field; invalid override values raise ValueError."""
    effective = deepcopy(scenario)
    effective["addons"] = dict(scenario.get("addons", {}))
    if overrides is None:
        return effective

    if overrides.frequency is not None:
        if overrides.frequency not in FREQUENCIES:
            raise ValueError(f"Override frequency '{overrides.frequency}' is not one of {list(FREQUENCIES)}.")
        effective["frequency"] = overrides.frequency

    for key in ("imob_plan", "loc_plan"):
        value = getattr(overrides, key)
        if value is None:
            continue
        if value not in PLAN_TIERS:
            raise ValueError(f"Override {key} '{value}' is not one of {list(PLAN_TIERS)}.")
        effective[key] = value

    if overrides.addons is not None:
        for key, value in overrides.addons.items():
            if key not in ADDON_KEYS:
                raise ValueError(f"Override add-on '{key}' is not a known add-on.")
            if not isinstance(value, bool):
                raise ValueError(f"Override add-on '{key}' must be a boolean.")
            effective["addons"][key] = value

    for key in ("vip_support", "dedicated_cs", "training"):
        value = getattr(overrides, key)
        if value is None:
            continue
        if not isinstance(value, bool):
            raise ValueError(f"Override {key} must be a boolean.")
        effective[key] = value

    return effective


def _product_lines(
    effective: dict, active: tuple[str, ...], bundle: BundleRate | None, rates: RateTable
) -> tuple[dict[str, PriceLine], float]:
    lines: dict[str, PriceLine] = {}
    before = 0.0
    frequency = effective["frequency"]
    for product in rates.products:
        if product not in active:
            lines[product] = NOT_APPLICABLE
            continue
        plan = rates.plan(product, effective[_plan_key(product)])
        base = cycle_price(plan.annual_price, frequency, rates)
        discount = bundle.discount if bundle is not None and product in bundle.products else 0.0
        lines[product] = Numeric(apply_discount(base, discount))
        before += base
    return lines, before


def _addon_lines(
    addon_set: dict[str, bool],
    effective: dict,
    active: tuple[str, ...],
    bundle: BundleRate | None,
    rates: RateTable,
) -> tuple[dict[str, PriceLine], float]:
    lines: dict[str, PriceLine] = {}
    before = 0.0
    for key, addon in rates.addons.items():
        applicable = [p for p in active if p in addon.available_for]
        if not applicable or not addon_set.get(key):
            lines[key] = NOT_APPLICABLE
            continue
        if addon.annual_price == 0:
            # Zero-fee add-ons still drive post-paid usage; they render as a label.
            lines[key] = Included(addon.recurring_label or "free")
            continue
        units = 1 if addon.shared else len(applicable)
        base = cycle_price(addon.annual_price, effective["frequency"], rates) * units
        discount = bundle.discount if bundle is not None and key in bundle.included_addons else 0.0
        lines[key] = Numeric(apply_discount(base, discount))
        before += base
    return lines, before


def _premium_lines(
    effective: dict, active: tuple[str, ...], bundle: BundleRate | None, rates: RateTable
) -> tuple[dict[str, PriceLine], float]:
    # Plan-tier or bundle inclusion wins over manual opt-in and is decided before any charge.
    included = bool(bundle is not None and bundle.includes_premium_services) or any(
        rates.plan(product, effective[_plan_key(product)]).includes_premium_services for product in active
    )
    lines: dict[str, PriceLine] = {}
    charged = 0.0
    for key, service in rates.premium_services.items():
        if included:
            lines[key] = Included("included")
        elif effective.get(key):
            price = service_price(service.monthly_price, effective["frequency"], rates)
            lines[key] = Numeric(price)
            charged += price
        else:
            lines[key] = NOT_APPLICABLE
    return lines, charged


def training_descriptor(effective: dict, active: tuple[str, ...], rates: RateTable | None = None) -> str | None:
    """Training credits granted by the active plan tiers, e.g. ``"2x online ou 1 presencial"``."""
    rates = resolve_rates(rates)
    online = 0
    in_person = 0
    for product in active:
        plan = rates.plan(product, effective[_plan_key(product)])
        online += plan.training_online
        in_person += plan.training_in_person
    if online == 0 and in_person == 0:
        return None
    return f"{online}x online ou {in_person} presencial"


def _training_line(
    effective: dict, active: tuple[str, ...], bundle: BundleRate | None, rates: RateTable, priced_opt_in: bool
) -> PriceLine:
    if bundle is not None and bundle.includes_training:
        return Included("included")
    descriptor = training_descriptor(effective, active, rates)
    if descriptor is not None:
        return Included(descriptor)
    if priced_opt_in and effective.get("training"):
        return Numeric(service_price(rates.training_annual_price, effective["frequency"], rates) * 2 * len(active))
    return NOT_APPLICABLE


def _metric(effective: dict, key: str) -> float:
    # Negative usage is clamped rather than rejected.
    return max(0.0, float(effective.get(key, 0) or 0))


def _dimension_usage(key: str, effective: dict, active: tuple[str, ...]) -> float:
    if key == "users":
        return _metric(effective, "imob_users")
    if key in ("contracts", "boletos", "splits"):
        return _metric(effective, "contracts_under_management")
    if key == "whatsapp_leads":
        return _metric(effective, "leads_per_month")
    if key == "signatures":
        volume = 0.0
        if "imob" in active:
            volume += _metric(effective, "closings_per_month")
        if "loc" in active:
            volume += _metric(effective, "new_contracts_per_month")
        return volume
    raise ValueError(f"No usage metric is mapped to dimension '{key}'.")


def _dimension_allowance(
    key: str, effective: dict, addon_active: dict[str, bool], active: tuple[str, ...], rates: RateTable
) -> float | None:
    """Included allowance for an applicable dimension, or None when the dimension does not apply."""
    if key == "users":
        return rates.plan("imob", effective["imob_plan"]).included_units if "imob" in active else None
    if key == "contracts":
        return rates.plan("loc", effective["loc_plan"]).included_units if "loc" in active else None
    if key == "whatsapp_leads":
        if "imob" not in active or not addon_active.get("leads") or not effective.get("wants_whatsapp"):
            return None
        return rates.addon("leads").included_units
    if key == "signatures":
        return rates.addon("assinatura").included_units if addon_active.get("assinatura") else None
    if key in ("boletos", "splits"):
        if "loc" not in active or not addon_active.get("pay"):
            return None
        return rates.plan("loc", effective["loc_plan"]).extra_allowances.get(key, 0.0)
    raise ValueError(f"No allowance rule for dimension '{key}'.")


def _tier_for_dimension(key: str, effective: dict, active: tuple[str, ...], rates: RateTable) -> str:
    source = rates.dimension(key).tier_source
    if source == "any":
        source = "imob" if "imob" in active else "loc"
    return effective[_plan_key(source)]


def _post_paid(
    effective: dict, addon_active: dict[str, bool], active: tuple[str, ...], rates: RateTable
) -> dict[str, PostPaidLine | None]:
    out: dict[str, PostPaidLine | None] = {}
    for key in POST_PAID_DIMENSIONS:
        included = _dimension_allowance(key, effective, addon_active, active, rates)
        if included is None:
            out[key] = None
            continue
        usage = _dimension_usage(key, effective, active)
        extra = additional_quantity(usage, included)
        tiers = rates.tiers_for(key, _tier_for_dimension(key, effective, active, rates))
        out[key] = PostPaidLine(
            included_quantity=float(included),
            additional_quantity=extra,
            cost=tiered_cost(extra, tiers, offset=included),
            per_unit_cost=round(blended_unit_cost(extra, tiers, offset=included), 4),
            total_quantity=usage,
        )
    return out


def _implementation(
    addon_lines: dict[str, PriceLine], active: tuple[str, ...], bundle: BundleRate | None, rates: RateTable
) -> tuple[float, float, tuple[ImplementationItem, ...]]:
    free = set(bundle.free_implementations) if bundle is not None else set()
    items: list[ImplementationItem] = []
    for product in active:
        fee = rates.product(product).implementation_fee
        if fee > 0:
            items.append(ImplementationItem(label=rates.product(product).name, cost=fee, free=product in free))
    for key, line in addon_lines.items():
        if isinstance(line, NotApplicable):
            continue
        fee = rates.addon(key).implementation_fee
        if fee > 0:
            items.append(ImplementationItem(label=rates.addon(key).name, cost=fee, free=key in free))
    theoretical = sum(item.cost for item in items)
    waived = sum(item.cost for item in items if item.free)
    return float(theoretical), float(theoretical - waived), tuple(items)


def _build_column(
    effective: dict,
    addon_set: dict[str, bool],
    bundle: BundleRate | None,
    rates: RateTable,
    *,
    column_id: str,
    name: str,
    kind: str,
    source_bundle: str | None,
    eligible: bool,
    recommended: bool,
    priced_training: bool,
    overrides: ColumnOverrides | None,
) -> Column:
    active = active_products(effective["product"])
    frequency = effective["frequency"]
    months = cycle_months(frequency, rates)

    product_lines, products_before = _product_lines(effective, active, bundle, rates)
    addon_lines, addons_before = _addon_lines(addon_set, effective, active, bundle, rates)
    premium_lines, premium_total = _premium_lines(effective, active, bundle, rates)
    training = _training_line(effective, active, bundle, rates, priced_training)

    leads_on = not isinstance(addon_lines.get("leads", NOT_APPLICABLE), NotApplicable)
    whatsapp: PriceLine = Included("post_paid") if leads_on and effective.get("wants_whatsapp") else NOT_APPLICABLE

    priced_addons = {k: not isinstance(v, NotApplicable) for k, v in addon_lines.items()}
    post_paid = _post_paid(effective, priced_addons, active, rates)
    post_paid_total = round(sum(line.cost for line in post_paid.values() if line is not None), 2)

    theoretical, implementation, breakdown = _implementation(addon_lines, active, bundle, rates)

    lines = [*product_lines.values(), *addon_lines.values(), whatsapp, *premium_lines.values(), training]
    total_monthly = round(sum(line_amount(line) for line in lines), 2)
    monthly_before = round(products_before + addons_before + premium_total + line_amount(training), 2)
    subscription_count = sum(
        1 for line in [*product_lines.values(), *addon_lines.values()] if not isinstance(line, NotApplicable)
    )

    return Column(
        column_id=column_id,
        name=name,
        kind=kind,
        bundle_id=bundle.bundle_id if bundle is not None else None,
        source_bundle=source_bundle,
        frequency=frequency,
        discount=bundle.discount if bundle is not None else 0.0,
        is_eligible=eligible,
        is_recommended=recommended,
        product_lines=product_lines,
        addon_lines=addon_lines,
        whatsapp=whatsapp,
        premium_lines=premium_lines,
        training=training,
        post_paid=post_paid,
        post_paid_total=post_paid_total,
        implementation=implementation,
        theoretical_implementation=theoretical,
        implementation_breakdown=breakdown,
        monthly_before_discounts=monthly_before,
        bundle_discount_amount=round(monthly_before - total_monthly, 2),
        total_monthly=total_monthly,
        cycle_months=months,
        cycle_total_value=round(total_monthly * months + implementation, 2),
        annual_equivalent=round(total_monthly * 12 + implementation, 2),
        subscription_count=subscription_count,
        overrides=overrides,
        effective_addons=dict(addon_set),
    )


def _is_no_bundle(bundle_choice: str | None) -> bool:
    return bundle_choice is None or bundle_choice == NO_BUNDLE


def compute_column(
    bundle_choice: str | None,
    scenario: dict,
    recommended_bundle: str | None = None,
    overrides: ColumnOverrides | None = None,
    rates: RateTable | None = None,
) -> Column:
    """Price one column for ``bundle_choice`` (a bundle id, or ``"none"``/``None`` for the baseline).

    Ineligible bundles still compute and come back with ``is_eligible=False``.
    """
    rates = resolve_rates(rates)
    effective = resolve_effective_inputs(scenario, overrides)
    recommended = recommended_bundle if recommended_bundle is not None else NO_BUNDLE

    if _is_no_bundle(bundle_choice):
        return _build_column(
            effective,
            effective["addons"],
            None,
            rates,
            column_id=BASELINE_COLUMN_ID,
            name=BASELINE_NAME,
            kind="baseline",
            source_bundle=None,
            eligible=True,
            recommended=recommended == NO_BUNDLE,
            priced_training=False,
            overrides=overrides,
        )

    bundle = rates.bundle(bundle_choice)
    addon_set = {key: key in bundle.included_addons for key in rates.addons}
    return _build_column(
        effective,
        addon_set,
        bundle,
        rates,
        column_id=bundle.bundle_id,
        name=bundle.name,
        kind="bundle",
        source_bundle=None,
        eligible=is_eligible(bundle.bundle_id, effective["product"], rates),
        recommended=recommended == bundle.bundle_id,
        priced_training=False,
        overrides=overrides,
    )


def compute_custom_column(
    column_id: str,
    name: str,
    scenario: dict,
    overrides: ColumnOverrides | None = None,
    source_bundle: str | None = None,
    rates: RateTable | None = None,
) -> Column:
    """Free-form column where every line follows the override set instead of the bundle's fixed content.

    Custom columns are never recommended, whatever bundle they start from.
    """
    rates = resolve_rates(rates)
    overrides = overrides if overrides is not None else ColumnOverrides()
    effective = resolve_effective_inputs(scenario, overrides)
    bundle = rates.bundle(source_bundle) if source_bundle is not None else None
    return _build_column(
        effective,
        effective["addons"],
        bundle,
        rates,
        column_id=column_id,
        name=name,
        kind="custom",
        source_bundle=source_bundle,
        eligible=is_eligible(source_bundle, effective["product"], rates) if bundle is not None else True,
        recommended=False,
        priced_training=True,
        overrides=overrides,
    )
