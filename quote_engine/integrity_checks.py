"""Column roll-up identities and export-time divergence checks."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np

from quote_engine.columns import Column, line_amount
from quote_engine.prepaid import PREPAID_DIMENSIONS
from quote_engine.runtime_logging import append_runtime_event, quote_context


DEFAULT_DOCUMENT_TOLERANCE = 1.0


def _finding(
    check: str,
    max_abs_delta: float,
    column: str,
    lhs_name: str,
    rhs_name: str,
) -> dict[str, Any]:
    return {
        "Check": check,
        "Max Abs Delta": float(max_abs_delta),
        "Column of Max Delta": column,
        "LHS": lhs_name,
        "RHS": rhs_name,
    }


def _check_identity(
    findings: list[dict[str, Any]],
    columns: Sequence[Column],
    check_name: str,
    lhs_name: str,
    rhs_name: str,
    lhs: np.ndarray,
    rhs: np.ndarray,
    tol: float,
) -> None:
    delta = np.nan_to_num(np.asarray(lhs, dtype=float) - np.asarray(rhs, dtype=float), nan=0.0)
    if len(delta) == 0:
        return
    max_abs = float(np.max(np.abs(delta)))
    if max_abs > float(tol):
        idx = int(np.argmax(np.abs(delta)))
        findings.append(_finding(check_name, max_abs, columns[idx].column_id, lhs_name, rhs_name))


def _unconverted_post_paid(column: Column) -> float:
    converted = {dim for dim, flag in PREPAID_DIMENSIONS if getattr(column, flag)}
    total = sum(line.cost for key, line in column.post_paid.items() if line is not None and key not in converted)
    return max(0.0, total)


def run_integrity_checks(columns: Sequence[Column], tol: float = 1e-6) -> list[dict[str, Any]]:
    """Return roll-up findings for each column (empty list means all checks passed)."""
    columns = list(columns)
    if not columns:
        return [{"Check": "Columns not available", "Max Abs Delta": np.nan, "Column of Max Delta": "", "LHS": "", "RHS": ""}]

    findings: list[dict[str, Any]] = []
    total_monthly = np.array([c.total_monthly for c in columns], dtype=float)
    implementation = np.array([c.implementation for c in columns], dtype=float)

    _check_identity(
        findings,
        columns,
        "Monthly total identity",
        "Total Monthly",
        "Priced lines + pre-paid conversion",
        total_monthly,
        np.array([sum(line_amount(line) for _, line in c.priced_lines()) + c.prepaid_monthly for c in columns]),
        tol,
    )
    _check_identity(
        findings,
        columns,
        "Post-paid total identity",
        "Post-paid Total",
        "Unconverted post-paid line costs",
        np.array([c.post_paid_total for c in columns], dtype=float),
        np.array([_unconverted_post_paid(c) for c in columns]),
        tol,
    )
    _check_identity(
        findings,
        columns,
        "Cycle total identity",
        "Cycle Total Value",
        "Total Monthly * Cycle Months + Implementation",
        np.array([c.cycle_total_value for c in columns], dtype=float),
        total_monthly * np.array([c.cycle_months for c in columns], dtype=float) + implementation,
        tol,
    )
    _check_identity(
        findings,
        columns,
        "Annual equivalent identity",
        "Annual Equivalent",
        "Total Monthly * 12 + Implementation",
        np.array([c.annual_equivalent for c in columns], dtype=float),
        total_monthly * 12.0 + implementation,
        tol,
    )
    _check_identity(
        findings,
        columns,
        "Implementation identity",
        "Implementation",
        "Theoretical implementation - free implementations",
        implementation,
        np.array(
            [c.theoretical_implementation - sum(i.cost for i in c.implementation_breakdown if i.free) for c in columns]
        ),
        tol,
    )
    _check_identity(
        findings,
        columns,
        "Bundle discount identity",
        "Monthly before discounts",
        "Total Monthly - pre-paid conversion + bundle discount",
        np.array([c.monthly_before_discounts for c in columns], dtype=float),
        np.array([c.total_monthly - c.prepaid_monthly + c.bundle_discount_amount for c in columns]),
        tol,
    )
    return findings


def _document_value(document_totals: dict, key: str) -> float | None:
    value = document_totals.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_integrity(
    document_totals: dict,
    fresh_columns: Sequence[Column],
    tol: float = DEFAULT_DOCUMENT_TOLERANCE,
) -> list[dict[str, Any]]:
    """Compare totals about to be printed against the primary fresh column.

    Divergence is reported, never raised; each finding is also written to the runtime log.
    """
    if not fresh_columns:
        return []
    primary = fresh_columns[0]
    findings: list[dict[str, Any]] = []

    monthly = _document_value(document_totals, "total_monthly")
    if monthly is not None and abs(monthly - primary.total_monthly) > tol:
        findings.append(
            _finding("Monthly total divergence", abs(monthly - primary.total_monthly), primary.column_id, "Document", "Recalculated")
        )

    implementation = _document_value(document_totals, "implementation_fee")
    if implementation is not None and abs(implementation - primary.implementation) > tol:
        findings.append(
            _finding(
                "Implementation fee divergence",
                abs(implementation - primary.implementation),
                primary.column_id,
                "Document",
                "Recalculated",
            )
        )

    seats = _document_value(document_totals, "seat_count")
    users = primary.post_paid.get("users")
    if seats is not None and seats > 0 and users is not None:
        included = users.included_quantity
        billed = included + users.additional_quantity
        if seats != included and seats != billed:
            findings.append(
                _finding("Seat count inconsistency", abs(seats - billed), primary.column_id, "Document seats", "Included + additional")
            )

    for finding in findings:
        append_runtime_event(
            level="WARNING",
            event="quote_integrity_divergence",
            message=finding["Check"],
            context=quote_context(primary, **finding),
        )
    return findings
