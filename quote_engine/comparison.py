"""Side-by-side comparison of the baseline and every compatible Kombo."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import pandas as pd

from quote_engine.bundles import compatible_bundle_ids, recommend
from quote_engine.calculator import BASELINE_COLUMN_ID, compute_column
from quote_engine.columns import Column, ColumnOverrides, line_display
from quote_engine.rate_table import RateTable, resolve_rates


VIEW_MODE_MONTHS = {"monthly": 1, "semiannual": 6, "annual": 12, "biennial": 24}

POST_PAID_LABELS = {
    "users": "Additional users",
    "contracts": "Additional contracts",
    "whatsapp_leads": "WhatsApp leads",
    "signatures": "Digital signatures",
    "boletos": "Boletos",
    "splits": "Splits",
}


def view_mode_label(view_mode: str) -> str:
    if view_mode == "semiannual":
        return "Semiannual view (6 months)"
    if view_mode == "annual":
        return "Annual view (12 months)"
    if view_mode == "biennial":
        return "Biennial view (24 months)"
    return "Monthly view"


def build_comparison(
    scenario: dict,
    overrides_by_column: dict[str, ColumnOverrides] | None = None,
    rates: RateTable | None = None,
) -> list[Column]:
    """Baseline column followed by every bundle eligible for the scenario's product selection."""
    rates = resolve_rates(rates)
    overrides_by_column = overrides_by_column or {}
    recommended = recommend(scenario["product"], scenario.get("addons", {}), rates)
    columns = [compute_column(None, scenario, recommended, overrides_by_column.get(BASELINE_COLUMN_ID), rates)]
    for bundle_id in compatible_bundle_ids(scenario["product"], rates):
        columns.append(compute_column(bundle_id, scenario, recommended, overrides_by_column.get(bundle_id), rates))
    return columns


def _row_labels(rates: RateTable) -> list[tuple[str, str]]:
    rows = [(f"product:{key}", product.name) for key, product in rates.products.items()]
    rows += [(f"addon:{key}", addon.name) for key, addon in rates.addons.items()]
    rows.append(("addon:whatsapp", "WhatsApp"))
    rows += [(f"premium:{key}", service.name) for key, service in rates.premium_services.items()]
    rows.append(("training", "Training"))
    return rows


def comparison_frame(
    columns: Sequence[Column],
    view_mode: str = "monthly",
    rates: RateTable | None = None,
) -> pd.DataFrame:
    """One row per line item and one column per pricing column.

    Inapplicable lines are NaN and included lines carry their label.
    """
    if view_mode not in VIEW_MODE_MONTHS:
        raise ValueError(f"Unknown view mode '{view_mode}'.")
    rates = resolve_rates(rates)
    months = VIEW_MODE_MONTHS[view_mode]
    labels = _row_labels(rates)

    data: dict[str, list] = {}
    for column in columns:
        lines = dict(column.priced_lines())
        values = []
        for key, _ in labels:
            shown = line_display(lines[key]) if key in lines else None
            values.append(np.nan if shown is None else shown)
        for key in POST_PAID_LABELS:
            line = column.post_paid.get(key)
            values.append(np.nan if line is None else line.cost)
        values.extend(
            [
                column.prepaid_monthly,
                column.total_monthly,
                column.post_paid_total,
                column.implementation,
                round(column.total_monthly * months, 2),
                column.cycle_total_value,
            ]
        )
        header = f"{column.name} *" if column.is_recommended and not column.is_baseline else column.name
        data[header] = values

    index = [name for _, name in labels]
    index += [f"Post-paid: {label}" for label in POST_PAID_LABELS.values()]
    index += ["Pre-paid conversion", "Total Monthly", "Post-paid Total", "Implementation", view_mode_label(view_mode), "Cycle Total"]
    return pd.DataFrame(data, index=index, dtype=object)


def _safe_pct(savings: np.ndarray, base: float) -> np.ndarray:
    if base == 0:
        return np.zeros_like(savings)
    return savings / base


def savings_table(columns: Sequence[Column]) -> pd.DataFrame:
    """Monthly, annual and implementation savings of each column against the baseline."""
    if not columns:
        return pd.DataFrame(
            columns=["Column", "Total Monthly", "Monthly Savings", "Monthly Savings %", "Implementation", "Implementation Savings", "Annual Savings"]
        )
    baseline = next((c for c in columns if c.is_baseline), columns[0])
    monthly = np.array([c.total_monthly for c in columns], dtype=float)
    implementation = np.array([c.implementation for c in columns], dtype=float)
    annual = np.array([c.annual_equivalent for c in columns], dtype=float)
    monthly_savings = baseline.total_monthly - monthly
    return pd.DataFrame(
        {
            "Column": [c.name for c in columns],
            "Total Monthly": monthly,
            "Monthly Savings": monthly_savings,
            "Monthly Savings %": _safe_pct(monthly_savings, baseline.total_monthly),
            "Implementation": implementation,
            "Implementation Savings": baseline.implementation - implementation,
            "Annual Savings": baseline.annual_equivalent - annual,
        }
    )
