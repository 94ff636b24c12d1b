"""Marginal-rate tier walks for post-paid usage dimensions."""

from __future__ import annotations

from collections.abc import Sequence

from quote_engine.rate_table import Tier


def tiered_cost(quantity: float, tiers: Sequence[Tier], offset: float = 0.0) -> float:
    """Cost of ``quantity`` units billed tier by tier at each tier's marginal price.

    ``offset`` units are already covered (the included allowance), so the first billed unit
    sits at position ``offset + 1`` of the tier table. A single unbounded tier is a flat
    rate and goes through the same walk. Negative quantities bill nothing.
    """
    remaining = max(0.0, float(quantity))
    skip = max(0.0, float(offset))
    cost = 0.0
    for tier in tiers:
        if remaining <= 0:
            break
        capacity = tier.capacity
        if skip >= capacity:
            skip -= capacity
            continue
        consumed = min(remaining, capacity - skip)
        skip = 0.0
        cost += consumed * float(tier.price)
        remaining -= consumed
    return round(cost, 2)


def additional_quantity(usage: float, included: float) -> float:
    return max(0.0, float(usage) - float(included))


def blended_unit_cost(quantity: float, tiers: Sequence[Tier], offset: float = 0.0) -> float:
    quantity = max(0.0, float(quantity))
    if quantity == 0:
        return 0.0
    return tiered_cost(quantity, tiers, offset) / quantity

