"""Payment-cycle price adjustment and the round-up-to-digit merchandising rule."""

from __future__ import annotations

import math

from quote_engine.rate_table import RateTable, resolve_rates


def round_half_up(value: float) -> int:
    return int(math.floor(float(value) + 0.5))


def round_up_to_digit(value: float, digit: int = 7) -> int:
    """Round up to the next integer whose last digit is ``digit``; never rounds down."""
    if value <= 0:
        return 0
    # Trim float noise such as 497.00000000000006 before taking the ceiling.
    base = int(math.ceil(round(float(value), 6)))
    return base + (int(digit) - base % 10) % 10


def cycle_months(frequency: str, rates: RateTable | None = None) -> int:
    return resolve_rates(rates).months(frequency)


def cycle_price(annual_base: float, frequency: str, rates: RateTable | None = None) -> int:
    rates = resolve_rates(rates)
    return round_up_to_digit(float(annual_base) * rates.multiplier(frequency), rates.rounding_digit)


def apply_discount(price: float, discount: float) -> float:
    if not discount:
        return price
    return round_half_up(float(price) * (1.0 - float(discount)))


def service_price(monthly_price: float, frequency: str, rates: RateTable | None = None) -> int:
    """Cycle-adjusted price of a premium service or training, without the merchandising digit."""
    return round_half_up(float(monthly_price) * resolve_rates(rates).multiplier(frequency))


def is_prepaid_available(frequency: str, rates: RateTable | None = None) -> bool:
    rates = resolve_rates(rates)
    rates.months(frequency)
    return frequency in rates.prepaid_frequencies
