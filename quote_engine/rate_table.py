"""Versioned rate table snapshot: typed records, load-time shape checks, lookups."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any

from quote_engine.defaults import DEFAULT_RATE_TABLE


_RATE_TABLE_ENV_VAR = "QUOTE_RATE_TABLE_PATH"

RECURRING_LABELS = {"post_paid", "free"}


class RateTableShapeError(ValueError):
    """Raised when a raw rate payload does not have the expected shape."""


class ConfigurationReferenceError(KeyError):
    """A bundle, plan, add-on or usage key referenced by a calculation is absent from the rate table."""

    def __init__(self, kind: str, key: Any, version: str = ""):
        self.kind = kind
        self.key = key
        self.version = version
        suffix = f" (rate table {version})" if version else ""
        super().__init__(f"Unknown {kind} '{key}'{suffix}.")

    def __str__(self) -> str:
        return str(self.args[0])


@dataclass(frozen=True)
class Tier:
    start: float
    end: float | None
    price: float

    @property
    def capacity(self) -> float:
        if self.end is None:
            return float("inf")
        return float(self.end) - float(self.start) + 1.0


@dataclass(frozen=True)
class PlanRate:
    tier: str
    name: str
    annual_price: float
    included_units: float
    includes_premium_services: bool = False
    training_online: int = 0
    training_in_person: int = 0
    extra_allowances: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class ProductRate:
    key: str
    name: str
    implementation_fee: float
    plans: Mapping[str, PlanRate]


@dataclass(frozen=True)
class AddonRate:
    key: str
    name: str
    annual_price: float
    implementation_fee: float = 0.0
    included_units: float = 0.0
    available_for: tuple[str, ...] = ()
    shared: bool = True
    recurring_label: str | None = None


@dataclass(frozen=True)
class BundleRate:
    bundle_id: str
    name: str
    discount: float
    products: tuple[str, ...]
    included_addons: tuple[str, ...] = ()
    includes_premium_services: bool = False
    includes_training: bool = False
    free_implementations: tuple[str, ...] = ()


@dataclass(frozen=True)
class UsageDimension:
    key: str
    tier_source: str
    tiers: Mapping[str, tuple[Tier, ...]]


@dataclass(frozen=True)
class PremiumServiceRate:
    key: str
    name: str
    monthly_price: float


@dataclass(frozen=True)
class RateTable:
    version: str
    frequency_multipliers: Mapping[str, float]
    cycle_months: Mapping[str, int]
    rounding_digit: int
    prepaid_discount_multiplier: float
    prepaid_frequencies: tuple[str, ...]
    training_annual_price: float
    seguros_revenue_per_contract: float
    products: Mapping[str, ProductRate]
    addons: Mapping[str, AddonRate]
    bundles: Mapping[str, BundleRate]
    usage: Mapping[str, UsageDimension]
    premium_services: Mapping[str, PremiumServiceRate]

    def _missing(self, kind: str, key: Any) -> ConfigurationReferenceError:
        return ConfigurationReferenceError(kind, key, self.version)

    def product(self, product: str) -> ProductRate:
        if product not in self.products:
            raise self._missing("product", product)
        return self.products[product]

    def plan(self, product: str, tier: str) -> PlanRate:
        plans = self.product(product).plans
        if tier not in plans:
            raise self._missing("plan", f"{product}/{tier}")
        return plans[tier]

    def addon(self, key: str) -> AddonRate:
        if key not in self.addons:
            raise self._missing("addon", key)
        return self.addons[key]

    def bundle(self, bundle_id: str) -> BundleRate:
        if bundle_id not in self.bundles:
            raise self._missing("bundle", bundle_id)
        return self.bundles[bundle_id]

    def dimension(self, key: str) -> UsageDimension:
        if key not in self.usage:
            raise self._missing("usage dimension", key)
        return self.usage[key]

    def tiers_for(self, key: str, tier: str) -> tuple[Tier, ...]:
        dim = self.dimension(key)
        if tier not in dim.tiers:
            raise self._missing("usage dimension", f"{key}/{tier}")
        return dim.tiers[tier]

    def premium_service(self, key: str) -> PremiumServiceRate:
        if key not in self.premium_services:
            raise self._missing("premium service", key)
        return self.premium_services[key]

    def multiplier(self, frequency: str) -> float:
        if frequency not in self.frequency_multipliers:
            raise self._missing("frequency", frequency)
        return float(self.frequency_multipliers[frequency])

    def months(self, frequency: str) -> int:
        if frequency not in self.cycle_months:
            raise self._missing("frequency", frequency)
        return int(self.cycle_months[frequency])


def _require(mapping: Any, key: str, path: str) -> Any:
    if not isinstance(mapping, dict):
        raise RateTableShapeError(f"{path} must be an object.")
    if key not in mapping:
        raise RateTableShapeError(f"{path}.{key} is required.")
    return mapping[key]


def _number(value: Any, path: str) -> float:
    if isinstance(value, bool):
        raise RateTableShapeError(f"{path} must be a number.")
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise RateTableShapeError(f"{path} must be a number.") from None
    if out < 0:
        raise RateTableShapeError(f"{path} must be non-negative.")
    return out


def _mapping(value: Any, path: str) -> dict:
    if not isinstance(value, dict) or not value:
        raise RateTableShapeError(f"{path} must be a non-empty object.")
    return value


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


def _str_tuple(value: Any, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise RateTableShapeError(f"{path} must be a list.")
    return tuple(str(v) for v in value)


def _parse_tiers(raw: Any, path: str) -> tuple[Tier, ...]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise RateTableShapeError(f"{path} must be a non-empty list of tiers.")
    tiers: list[Tier] = []
    expected_start = None
    for idx, item in enumerate(raw):
        item_path = f"{path}[{idx}]"
        start = _number(_require(item, "start", item_path), f"{item_path}.start")
        end_raw = item.get("end")
        end = None if end_raw is None else _number(end_raw, f"{item_path}.end")
        price = _number(_require(item, "price", item_path), f"{item_path}.price")
        if end is not None and end < start:
            raise RateTableShapeError(f"{item_path} ends before it starts.")
        if expected_start is not None and start != expected_start:
            raise RateTableShapeError(f"{item_path} is not contiguous with the previous tier.")
        if tiers and tiers[-1].end is None:
            raise RateTableShapeError(f"{item_path} follows an unbounded tier.")
        tiers.append(Tier(start=start, end=end, price=price))
        expected_start = None if end is None else end + 1
    if tiers[-1].end is not None:
        raise RateTableShapeError(f"{path} last tier must be unbounded.")
    return tuple(tiers)


def _parse_plan(tier: str, raw: Any, path: str) -> PlanRate:
    allowances_raw = raw.get("extra_allowances", {}) if isinstance(raw, dict) else {}
    if not isinstance(allowances_raw, dict):
        raise RateTableShapeError(f"{path}.extra_allowances must be an object.")
    return PlanRate(
        tier=tier,
        name=str(raw.get("name", tier)),
        annual_price=_number(_require(raw, "annual_price", path), f"{path}.annual_price"),
        included_units=_number(_require(raw, "included_units", path), f"{path}.included_units"),
        includes_premium_services=bool(raw.get("includes_premium_services", False)),
        training_online=int(_number(raw.get("training_online", 0), f"{path}.training_online")),
        training_in_person=int(_number(raw.get("training_in_person", 0), f"{path}.training_in_person")),
        extra_allowances=_frozen({str(k): _number(v, f"{path}.extra_allowances.{k}") for k, v in allowances_raw.items()}),
    )


def _parse_addon(key: str, raw: Any, path: str, product_keys: set[str]) -> AddonRate:
    annual_price = _number(_require(raw, "annual_price", path), f"{path}.annual_price")
    available_for = _str_tuple(_require(raw, "available_for", path), f"{path}.available_for")
    unknown = [p for p in available_for if p not in product_keys]
    if unknown:
        raise RateTableShapeError(f"{path}.available_for references unknown products {unknown}.")
    label = raw.get("recurring_label")
    if annual_price == 0 and label is None:
        label = "free"
    if label is not None and label not in RECURRING_LABELS:
        raise RateTableShapeError(f"{path}.recurring_label must be one of {sorted(RECURRING_LABELS)}.")
    return AddonRate(
        key=key,
        name=str(raw.get("name", key)),
        annual_price=annual_price,
        implementation_fee=_number(raw.get("implementation_fee", 0), f"{path}.implementation_fee"),
        included_units=_number(raw.get("included_units", 0), f"{path}.included_units"),
        available_for=available_for,
        shared=bool(raw.get("shared", True)),
        recurring_label=label,
    )


def _parse_bundle(bundle_id: str, raw: Any, path: str, product_keys: set[str], addon_keys: set[str]) -> BundleRate:
    discount = _number(_require(raw, "discount", path), f"{path}.discount")
    if discount >= 1:
        raise RateTableShapeError(f"{path}.discount must be a fraction below 1.")
    products = _str_tuple(_require(raw, "products", path), f"{path}.products")
    included_addons = _str_tuple(raw.get("included_addons"), f"{path}.included_addons")
    free_impl = _str_tuple(raw.get("free_implementations"), f"{path}.free_implementations")
    if not products or any(p not in product_keys for p in products):
        raise RateTableShapeError(f"{path}.products must list known products.")
    if any(a not in addon_keys for a in included_addons):
        raise RateTableShapeError(f"{path}.included_addons references unknown add-ons.")
    if any(k not in product_keys and k not in addon_keys for k in free_impl):
        raise RateTableShapeError(f"{path}.free_implementations references unknown items.")
    return BundleRate(
        bundle_id=bundle_id,
        name=str(raw.get("name", bundle_id)),
        discount=discount,
        products=products,
        included_addons=included_addons,
        includes_premium_services=bool(raw.get("includes_premium_services", False)),
        includes_training=bool(raw.get("includes_training", False)),
        free_implementations=free_impl,
    )


def build_rate_table(payload: dict) -> RateTable:
    """Validate a raw rate payload once and return an immutable snapshot."""
    if not isinstance(payload, dict):
        raise RateTableShapeError("Rate table payload must be an object.")

    multipliers = {
        str(k): _number(v, f"frequency_multipliers.{k}")
        for k, v in _mapping(_require(payload, "frequency_multipliers", "rate_table"), "frequency_multipliers").items()
    }
    cycle_months = {
        str(k): int(_number(v, f"cycle_months.{k}"))
        for k, v in _mapping(_require(payload, "cycle_months", "rate_table"), "cycle_months").items()
    }
    if set(multipliers) != set(cycle_months):
        raise RateTableShapeError("frequency_multipliers and cycle_months must cover the same frequencies.")

    rounding_digit = int(_number(payload.get("rounding_digit", 7), "rounding_digit"))
    if not 0 <= rounding_digit <= 9:
        raise RateTableShapeError("rounding_digit must be a single digit.")

    products: dict[str, ProductRate] = {}
    for product_key, raw_product in _mapping(_require(payload, "products", "rate_table"), "products").items():
        path = f"products.{product_key}"
        plans_raw = _mapping(_require(raw_product, "plans", path), f"{path}.plans")
        products[product_key] = ProductRate(
            key=product_key,
            name=str(raw_product.get("name", product_key)),
            implementation_fee=_number(raw_product.get("implementation_fee", 0), f"{path}.implementation_fee"),
            plans=_frozen({tier: _parse_plan(tier, raw, f"{path}.plans.{tier}") for tier, raw in plans_raw.items()}),
        )
    product_keys = set(products)

    addons = {
        key: _parse_addon(key, raw, f"addons.{key}", product_keys)
        for key, raw in _mapping(_require(payload, "addons", "rate_table"), "addons").items()
    }
    bundles = {
        bundle_id: _parse_bundle(bundle_id, raw, f"bundles.{bundle_id}", product_keys, set(addons))
        for bundle_id, raw in _mapping(_require(payload, "bundles", "rate_table"), "bundles").items()
    }

    usage: dict[str, UsageDimension] = {}
    for key, raw in _mapping(_require(payload, "usage", "rate_table"), "usage").items():
        path = f"usage.{key}"
        tier_source = str(raw.get("tier_source", "any"))
        if tier_source != "any" and tier_source not in product_keys:
            raise RateTableShapeError(f"{path}.tier_source must be a product key or 'any'.")
        tiers_raw = _mapping(_require(raw, "tiers", path), f"{path}.tiers")
        usage[key] = UsageDimension(
            key=key,
            tier_source=tier_source,
            tiers=_frozen({tier: _parse_tiers(t, f"{path}.tiers.{tier}") for tier, t in tiers_raw.items()}),
        )

    premium = {
        key: PremiumServiceRate(
            key=key,
            name=str(raw.get("name", key)),
            monthly_price=_number(_require(raw, "monthly_price", f"premium_services.{key}"), f"premium_services.{key}.monthly_price"),
        )
        for key, raw in _mapping(_require(payload, "premium_services", "rate_table"), "premium_services").items()
    }

    prepaid_multiplier = _number(payload.get("prepaid_discount_multiplier", 1.0), "prepaid_discount_multiplier")
    if prepaid_multiplier > 1:
        raise RateTableShapeError("prepaid_discount_multiplier must not exceed 1.")

    return RateTable(
        version=str(payload.get("version", "unversioned")),
        frequency_multipliers=_frozen(multipliers),
        cycle_months=_frozen(cycle_months),
        rounding_digit=rounding_digit,
        prepaid_discount_multiplier=prepaid_multiplier,
        prepaid_frequencies=_str_tuple(payload.get("prepaid_frequencies"), "prepaid_frequencies"),
        training_annual_price=_number(payload.get("training_annual_price", 0), "training_annual_price"),
        seguros_revenue_per_contract=_number(payload.get("seguros_revenue_per_contract", 0), "seguros_revenue_per_contract"),
        products=_frozen(products),
        addons=_frozen(addons),
        bundles=_frozen(bundles),
        usage=_frozen(usage),
        premium_services=_frozen(premium),
    )


def _expand_path(path_value: str | Path | None) -> Path | None:
    if path_value is None:
        return None
    text = str(path_value).strip()
    if not text:
        return None
    return Path(os.path.expandvars(os.path.expanduser(text)))


@lru_cache(maxsize=1)
def default_rate_table() -> RateTable:
    return build_rate_table(DEFAULT_RATE_TABLE)


def load_rate_table(path_value: str | Path | None = None) -> RateTable:
    """Load a rate table snapshot from JSON, the env-configured path, or the built-in price book."""
    path = _expand_path(path_value) or _expand_path(os.getenv(_RATE_TABLE_ENV_VAR, ""))
    if path is None:
        return default_rate_table()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise RateTableShapeError(f"Rate table file {path} is not valid JSON: {exc}") from exc
    return build_rate_table(payload)


def resolve_rates(rates: RateTable | None) -> RateTable:
    return rates if rates is not None else default_rate_table()
