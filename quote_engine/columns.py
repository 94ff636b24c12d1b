"""Column result records: tagged price lines, post-paid breakdown, overrides."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Union


@dataclass(frozen=True)
class Numeric:
    amount: float


@dataclass(frozen=True)
class Included:
    label: str = "included"


@dataclass(frozen=True)
class NotApplicable:
    pass


PriceLine = Union[Numeric, Included, NotApplicable]

NOT_APPLICABLE = NotApplicable()


def line_amount(line: PriceLine) -> float:
    """Billable amount of a line; labels and inapplicable lines bill nothing."""
    if isinstance(line, Numeric):
        return float(line.amount)
    if isinstance(line, (Included, NotApplicable)):
        return 0.0
    raise TypeError(f"Unsupported price line: {line!r}")


def line_display(line: PriceLine):
    if isinstance(line, Numeric):
        return float(line.amount)
    if isinstance(line, Included):
        return line.label
    if isinstance(line, NotApplicable):
        return None
    raise TypeError(f"Unsupported price line: {line!r}")


@dataclass(frozen=True)
class PostPaidLine:
    included_quantity: float
    additional_quantity: float
    cost: float
    per_unit_cost: float
    total_quantity: float = 0.0


@dataclass(frozen=True)
class ImplementationItem:
    label: str
    cost: float
    free: bool = False


@dataclass(frozen=True)
class ColumnOverrides:
    """Per-column edits layered over the shared scenario; ``None`` keeps the scenario value."""

    frequency: str | None = None
    imob_plan: str | None = None
    loc_plan: str | None = None
    addons: dict[str, bool] | None = None
    vip_support: bool | None = None
    dedicated_cs: bool | None = None
    training: bool | None = None

    def with_changes(self, **changes) -> ColumnOverrides:
        return replace(self, **changes)


@dataclass(frozen=True)
class Column:
    column_id: str
    name: str
    kind: str
    bundle_id: str | None
    source_bundle: str | None
    frequency: str
    discount: float
    is_eligible: bool
    is_recommended: bool
    product_lines: dict[str, PriceLine]
    addon_lines: dict[str, PriceLine]
    whatsapp: PriceLine
    premium_lines: dict[str, PriceLine]
    training: PriceLine
    post_paid: dict[str, PostPaidLine | None]
    post_paid_total: float
    implementation: float
    theoretical_implementation: float
    implementation_breakdown: tuple[ImplementationItem, ...]
    monthly_before_discounts: float
    bundle_discount_amount: float
    total_monthly: float
    cycle_months: int
    cycle_total_value: float
    annual_equivalent: float
    subscription_count: int
    prepaid_monthly: float = 0.0
    prepaid_seats: bool = False
    prepaid_contracts: bool = False
    overrides: ColumnOverrides | None = None
    effective_addons: dict[str, bool] = field(default_factory=dict)

    @property
    def is_custom(self) -> bool:
        return self.kind == "custom"

    @property
    def is_baseline(self) -> bool:
        return self.kind == "baseline"

    def priced_lines(self) -> list[tuple[str, PriceLine]]:
        lines: list[tuple[str, PriceLine]] = []
        lines.extend((f"product:{k}", v) for k, v in self.product_lines.items())
        lines.extend((f"addon:{k}", v) for k, v in self.addon_lines.items())
        lines.append(("addon:whatsapp", self.whatsapp))
        lines.extend((f"premium:{k}", v) for k, v in self.premium_lines.items())
        lines.append(("training", self.training))
        return lines
