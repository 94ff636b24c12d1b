from __future__ import annotations

from copy import deepcopy

import numpy as np
import pytest

from quote_engine.columns import ColumnOverrides
from quote_engine.comparison import build_comparison, comparison_frame, savings_table
from quote_engine.schema import ADDON_KEYS


def test_build_comparison_lists_baseline_then_compatible_bundles(base_scenario, rates):
    scenario = deepcopy(base_scenario)
    scenario["product"] = "imob"
    columns = build_comparison(scenario, rates=rates)
    assert [c.column_id for c in columns] == ["baseline", "imob_start", "imob_pro"]
    assert [c.is_recommended for c in columns] == [False, True, False]


def test_build_comparison_applies_per_column_overrides(base_scenario, rates):
    columns = build_comparison(
        base_scenario, {"elite": ColumnOverrides(frequency="monthly"), "baseline": ColumnOverrides(imob_plan="k2")}, rates
    )
    by_id = {c.column_id: c for c in columns}
    assert by_id["elite"].frequency == "monthly"
    assert by_id["core_gestao"].frequency == "annual"
    assert by_id["baseline"].product_lines["imob"].amount == 1197


def test_comparison_frame_shapes_line_items(base_scenario, rates):
    scenario = deepcopy(base_scenario)
    scenario["addons"] = {key: True for key in ADDON_KEYS}
    columns = build_comparison(scenario, rates=rates)
    frame = comparison_frame(columns, "annual", rates)
    assert list(frame.columns)[0] == "Sem Kombo"
    assert "Kombo Elite *" in frame.columns
    assert frame.loc["Cash", "Kombo Elite *"] == "free"
    assert frame.loc["Imob", "Kombo Elite *"] == 398
    assert frame.loc["Annual view (12 months)", "Sem Kombo"] == pytest.approx(columns[0].total_monthly * 12)


def test_comparison_frame_marks_inapplicable_lines_as_nan(base_scenario, rates):
    scenario = deepcopy(base_scenario)
    scenario["product"] = "imob"
    frame = comparison_frame(build_comparison(scenario, rates=rates), rates=rates)
    assert np.isnan(frame.loc["Locação", "Sem Kombo"])
    assert np.isnan(frame.loc["Post-paid: Additional contracts", "Sem Kombo"])
    assert frame.loc["Post-paid: Additional users", "Sem Kombo"] == 0


def test_comparison_frame_rejects_unknown_view_mode(base_scenario, rates):
    with pytest.raises(ValueError):
        comparison_frame(build_comparison(base_scenario, rates=rates), "weekly", rates)


def test_savings_table_compares_against_baseline(base_scenario, rates):
    scenario = deepcopy(base_scenario)
    scenario["addons"] = {key: True for key in ADDON_KEYS}
    columns = build_comparison(scenario, rates=rates)
    table = savings_table(columns).set_index("Column")
    assert table.loc["Sem Kombo", "Monthly Savings"] == 0
    elite = next(c for c in columns if c.bundle_id == "elite")
    assert table.loc["Kombo Elite", "Monthly Savings"] == pytest.approx(columns[0].total_monthly - elite.total_monthly)
    assert table.loc["Kombo Elite", "Implementation Savings"] == pytest.approx(columns[0].implementation - 1497)
    assert table.loc["Kombo Elite", "Monthly Savings %"] > 0


def test_savings_table_empty():
    assert savings_table([]).empty
