"""Pre-paid conversion of seat and contract overage into the recurring monthly total."""

from __future__ import annotations

from dataclasses import replace

from quote_engine.columns import Column
from quote_engine.cycle_pricing import is_prepaid_available
from quote_engine.rate_table import RateTable, resolve_rates


PREPAID_DIMENSIONS = (("users", "prepaid_seats"), ("contracts", "prepaid_contracts"))


def apply_prepaid(
    column: Column,
    prepay_seats: bool = False,
    prepay_contracts: bool = False,
    rates: RateTable | None = None,
) -> Column:
    """Move flagged post-paid overage into ``total_monthly`` at the pre-paid multiplier.

    Dimensions already converted on ``column`` are skipped, so re-applying the same flags to
    the output is a no-op. Turning a flag off requires recomputing the column from the scenario.
    """
    rates = resolve_rates(rates)
    if not is_prepaid_available(column.frequency, rates):
        return column

    requested = {"prepaid_seats": prepay_seats, "prepaid_contracts": prepay_contracts}
    flags = {"prepaid_seats": column.prepaid_seats, "prepaid_contracts": column.prepaid_contracts}
    moved = 0.0
    added = 0.0
    for dimension, flag_name in PREPAID_DIMENSIONS:
        if not requested[flag_name] or flags[flag_name]:
            continue
        line = column.post_paid.get(dimension)
        if line is None:
            continue
        flags[flag_name] = True
        if line.cost == 0:
            continue
        moved += line.cost
        added += round(line.cost * rates.prepaid_discount_multiplier, 2)

    if flags["prepaid_seats"] == column.prepaid_seats and flags["prepaid_contracts"] == column.prepaid_contracts:
        return column

    total_monthly = round(column.total_monthly + added, 2)
    return replace(
        column,
        total_monthly=total_monthly,
        prepaid_monthly=round(column.prepaid_monthly + added, 2),
        post_paid_total=max(0.0, round(column.post_paid_total - moved, 2)),
        cycle_total_value=round(total_monthly * column.cycle_months + column.implementation, 2),
        annual_equivalent=round(total_monthly * 12 + column.implementation, 2),
        prepaid_seats=flags["prepaid_seats"],
        prepaid_contracts=flags["prepaid_contracts"],
    )
