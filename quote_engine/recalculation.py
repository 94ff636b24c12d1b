"""Export-time recomputation of cached columns from the current scenario."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from quote_engine.bundles import recommend
from quote_engine.calculator import compute_column, compute_custom_column
from quote_engine.columns import Column
from quote_engine.integrity_checks import run_integrity_checks, validate_integrity
from quote_engine.prepaid import apply_prepaid
from quote_engine.rate_table import ConfigurationReferenceError, RateTable, resolve_rates
from quote_engine.runtime_logging import append_runtime_event, quote_context


def recompute_column(cached: Column, scenario: dict, recommended_bundle: str, rates: RateTable) -> Column:
    if cached.kind == "custom":
        fresh = compute_custom_column(
            cached.column_id,
            cached.name,
            scenario,
            cached.overrides,
            source_bundle=cached.source_bundle,
            rates=rates,
        )
    elif cached.kind == "bundle":
        fresh = compute_column(cached.bundle_id, scenario, recommended_bundle, cached.overrides, rates)
    elif cached.kind == "baseline":
        fresh = compute_column(None, scenario, recommended_bundle, cached.overrides, rates)
    else:
        raise ValueError(f"Unknown column kind '{cached.kind}'.")
    return apply_prepaid(fresh, cached.prepaid_seats, cached.prepaid_contracts, rates)


def recalculate(cached_columns: Sequence[Column], scenario: dict, rates: RateTable | None = None) -> list[Column]:
    """Re-derive every cached column from ``scenario``.

    A missing rate table key stops the batch. Any other failure keeps that column's cached
    value and is logged, so one malformed override never blocks the rest of the comparison.
    """
    rates = resolve_rates(rates)
    recommended = recommend(scenario["product"], scenario.get("addons", {}), rates)
    fresh: list[Column] = []
    for cached in cached_columns:
        try:
            fresh.append(recompute_column(cached, scenario, recommended, rates))
        except ConfigurationReferenceError:
            raise
        except Exception as exc:
            append_runtime_event(
                level="WARNING",
                event="column_recalculation_failed",
                message=f"Kept cached values for column '{cached.name}'.",
                context=quote_context(cached, rates),
                exc=exc,
            )
            fresh.append(cached)
    return fresh


def prepare_export(
    cached_columns: Sequence[Column],
    scenario: dict,
    document_totals: dict,
    rates: RateTable | None = None,
) -> tuple[list[Column], list[dict[str, Any]]]:
    """Recompute columns and collect divergence and roll-up findings before a document is generated."""
    rates = resolve_rates(rates)
    fresh = recalculate(cached_columns, scenario, rates)
    warnings = validate_integrity(document_totals, fresh)
    if fresh:
        warnings.extend(run_integrity_checks(fresh))
    append_runtime_event(
        level="INFO",
        event="quote_export_prepared",
        message=f"Recalculated {len(fresh)} column(s) before export.",
        context=quote_context(rates=rates, column_ids=[c.column_id for c in fresh], warning_count=len(warnings)),
    )
    return fresh, warnings
