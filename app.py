from copy import deepcopy
from pathlib import Path

import pandas as pd
import plotly.express as px
import streamlit as st

from quote_engine.bundles import NO_BUNDLE, compatible_bundle_ids, recommend
from quote_engine.calculator import compute_custom_column
from quote_engine.columns import ColumnOverrides
from quote_engine.comparison import VIEW_MODE_MONTHS, build_comparison, comparison_frame, savings_table, view_mode_label
from quote_engine.cycle_pricing import is_prepaid_available
from quote_engine.defaults import DEFAULTS
from quote_engine.input_metadata import advisory_warnings, help_with_guidance
from quote_engine.integrity_checks import run_integrity_checks
from quote_engine.prepaid import apply_prepaid
from quote_engine.rate_table import load_rate_table
from quote_engine.recalculation import prepare_export
from quote_engine.revenue import estimate_extra_revenue, net_effect
from quote_engine.runtime_logging import (
    LEVEL_ORDER,
    append_runtime_event,
    install_global_exception_logging,
    quote_context,
    read_runtime_events,
    runtime_log_path,
    summarize_runtime_events,
)
from quote_engine.schema import (
    ADDON_KEYS,
    FREQUENCIES,
    FREQUENCY_LABELS,
    PLAN_TIERS,
    PRODUCT_LABELS,
    active_products,
    migrate_scenario,
)


install_global_exception_logging()


UI_DEFAULTS = {
    "prepay_seats": False,
    "prepay_contracts": False,
    "view_mode": "monthly",
    "custom_source_bundle": NO_BUNDLE,
    "custom_frequency": "annual",
    "custom_columns": [],
    "frozen_columns": None,
    "export_warnings": None,
    "runtime_log_limit": 200,
    "runtime_log_min_level": "INFO",
}

SCENARIO_WIDGET_KEYS = [k for k in DEFAULTS if k != "addons"]


def _init_state() -> None:
    for key in SCENARIO_WIDGET_KEYS:
        st.session_state.setdefault(key, deepcopy(DEFAULTS[key]))
    for key in ADDON_KEYS:
        st.session_state.setdefault(f"addon_{key}", bool(DEFAULTS["addons"][key]))
    for key, value in UI_DEFAULTS.items():
        st.session_state.setdefault(key, deepcopy(value))


def _scenario_from_state() -> tuple[dict, list[str]]:
    raw = {key: st.session_state[key] for key in SCENARIO_WIDGET_KEYS}
    raw["addons"] = {key: bool(st.session_state[f"addon_{key}"]) for key in ADDON_KEYS}
    scenario, warnings, _ = migrate_scenario(raw)
    return scenario, warnings


def _display_value(value):
    if isinstance(value, float):
        if pd.isna(value):
            return "-"
        return f"{value:,.2f}"
    return value


def _sidebar_inputs(rates) -> None:
    st.sidebar.header("Scenario")
    st.sidebar.selectbox(
        "Products",
        options=sorted(PRODUCT_LABELS),
        format_func=lambda k: PRODUCT_LABELS[k],
        key="product",
        help="Which products the client is buying.",
    )
    products = active_products(st.session_state["product"])
    if "imob" in products:
        st.sidebar.selectbox("Imob plan", options=list(PLAN_TIERS), key="imob_plan", help="Imob plan tier.")
    if "loc" in products:
        st.sidebar.selectbox("Locação plan", options=list(PLAN_TIERS), key="loc_plan", help="Locação plan tier.")
    st.sidebar.selectbox(
        "Payment frequency",
        options=list(FREQUENCIES),
        format_func=lambda k: FREQUENCY_LABELS[k],
        key="frequency",
        help="Shorter cycles cost more per month; longer cycles are discounted.",
    )

    st.sidebar.subheader("Add-ons")
    for key in ADDON_KEYS:
        addon = rates.addon(key)
        st.sidebar.toggle(addon.name, key=f"addon_{key}", help=f"Available for: {', '.join(addon.available_for)}.")

    st.sidebar.subheader("Usage")
    st.sidebar.number_input(
        "Imob users", min_value=0, step=1, key="imob_users", help=help_with_guidance("imob_users", "Seats in use.")
    )
    st.sidebar.number_input(
        "Closings per month",
        min_value=0,
        step=1,
        key="closings_per_month",
        help=help_with_guidance("closings_per_month", "Sales closed each month."),
    )
    st.sidebar.number_input(
        "Leads per month",
        min_value=0,
        step=10,
        key="leads_per_month",
        help=help_with_guidance("leads_per_month", "Inbound leads each month."),
    )
    st.sidebar.toggle("WhatsApp leads", key="wants_whatsapp", help="Route leads through WhatsApp (needs Leads).")
    st.sidebar.number_input(
        "Contracts under management",
        min_value=0,
        step=10,
        key="contracts_under_management",
        help=help_with_guidance("contracts_under_management", "Active rental contracts."),
    )
    st.sidebar.number_input(
        "New contracts per month",
        min_value=0,
        step=1,
        key="new_contracts_per_month",
        help=help_with_guidance("new_contracts_per_month", "New rental contracts each month."),
    )

    st.sidebar.subheader("Services")
    st.sidebar.toggle("Suporte VIP", key="vip_support", help="Charged unless the plan or Kombo includes it.")
    st.sidebar.toggle("CS Dedicado", key="dedicated_cs", help="Charged unless the plan or Kombo includes it.")
    st.sidebar.toggle("Training", key="training", help="Priced in custom columns when no plan grants training.")

    st.sidebar.subheader("Client revenue")
    st.sidebar.toggle("Charge boleto to tenant", key="charges_boleto_to_tenant", help="Pass the boleto fee on.")
    st.sidebar.number_input(
        "Boleto charge",
        min_value=0.0,
        step=0.5,
        key="boleto_charge_amount",
        help=help_with_guidance("boleto_charge_amount", "Amount charged per boleto."),
    )
    st.sidebar.toggle("Charge split to owner", key="charges_split_to_owner", help="Pass the split fee on.")
    st.sidebar.number_input(
        "Split charge",
        min_value=0.0,
        step=0.5,
        key="split_charge_amount",
        help=help_with_guidance("split_charge_amount", "Amount charged per split."),
    )


def _custom_columns(scenario: dict, rates) -> list:
    out = []
    for entry in st.session_state["custom_columns"]:
        out.append(
            compute_custom_column(
                entry["column_id"],
                entry["name"],
                scenario,
                entry["overrides"],
                source_bundle=entry["source_bundle"],
                rates=rates,
            )
        )
    return out


st.set_page_config(page_title="Kombo Quote Workbench", layout="wide")
st.title("Kombo Quote Workbench")

_init_state()
rates = load_rate_table()
_sidebar_inputs(rates)

scenario, schema_warnings = _scenario_from_state()
for warning in schema_warnings + advisory_warnings(scenario):
    st.caption(f"[!] {warning}")

recommended = recommend(scenario["product"], scenario["addons"], rates)
st.caption(f"Rate table {rates.version}. Recommended Kombo: **{recommended}**.")

prepaid_ok = is_prepaid_available(scenario["frequency"], rates)
prepay_cols = st.columns(3)
prepay_cols[0].toggle(
    "Pre-pay additional users", key="prepay_seats", disabled=not prepaid_ok, help="Annual and biennial cycles only."
)
prepay_cols[1].toggle(
    "Pre-pay additional contracts", key="prepay_contracts", disabled=not prepaid_ok, help="Annual and biennial cycles only."
)
prepay_cols[2].selectbox(
    "View mode",
    options=list(VIEW_MODE_MONTHS),
    format_func=view_mode_label,
    key="view_mode",
    help="Scales the monthly total for display.",
)

columns = build_comparison(scenario, rates=rates) + _custom_columns(scenario, rates)
columns = [
    apply_prepaid(c, st.session_state["prepay_seats"], st.session_state["prepay_contracts"], rates) for c in columns
]

compare_tab, custom_tab, export_tab, diagnostics_tab = st.tabs(["Comparison", "Custom Columns", "Export Check", "Diagnostics"])

with compare_tab:
    frame = comparison_frame(columns, st.session_state["view_mode"], rates)
    st.dataframe(frame.map(_display_value), width="stretch")
    chart_df = pd.DataFrame(
        {
            "Column": [c.name for c in columns],
            "Total Monthly": [c.total_monthly for c in columns],
            "Post-paid Total": [c.post_paid_total for c in columns],
        }
    ).melt(id_vars="Column", var_name="Component", value_name="Amount")
    st.plotly_chart(
        px.bar(chart_df, x="Column", y="Amount", color="Component", barmode="stack", title="Monthly cost per column"),
        width="stretch",
    )
    st.dataframe(savings_table(columns), width="stretch", hide_index=True)

    revenue = estimate_extra_revenue(scenario, rates)
    if revenue["total"] > 0:
        primary = next((c for c in columns if c.is_recommended), columns[0])
        st.metric("Estimated client revenue / month", f"{revenue['total']:,.2f}")
        st.metric(f"Net effect vs {primary.name}", f"{net_effect(revenue, primary):,.2f}")

    findings = run_integrity_checks(columns)
    if findings:
        with st.expander(f"[!] Column Integrity Findings ({len(findings)})", expanded=False):
            st.dataframe(pd.DataFrame(findings), width="stretch", hide_index=True)
    else:
        st.caption("Column integrity checks: passed.")

with custom_tab:
    source_options = [NO_BUNDLE] + compatible_bundle_ids(scenario["product"], rates)
    if st.session_state["custom_source_bundle"] not in source_options:
        st.session_state["custom_source_bundle"] = NO_BUNDLE
    st.selectbox(
        "Start from Kombo",
        options=source_options,
        key="custom_source_bundle",
        help="Custom columns may start from a Kombo's discounts and inclusions.",
    )
    st.selectbox(
        "Custom frequency",
        options=list(FREQUENCIES),
        format_func=lambda k: FREQUENCY_LABELS[k],
        key="custom_frequency",
        help="Payment frequency for the new custom column.",
    )
    if st.button("Add Custom Column", help="Adds a column that follows the current add-on selection."):
        source = st.session_state["custom_source_bundle"]
        idx = len(st.session_state["custom_columns"]) + 1
        st.session_state["custom_columns"].append(
            {
                "column_id": f"custom_{idx}",
                "name": f"Custom {idx}",
                "source_bundle": None if source == NO_BUNDLE else source,
                "overrides": ColumnOverrides().with_changes(
                    frequency=st.session_state["custom_frequency"], addons=dict(scenario["addons"])
                ),
            }
        )
        st.rerun()
    if st.session_state["custom_columns"]:
        custom_df = pd.DataFrame(
            [
                {
                    "Column": entry["name"],
                    "Source Kombo": entry["source_bundle"] or NO_BUNDLE,
                    "Frequency": entry["overrides"].frequency or scenario["frequency"],
                }
                for entry in st.session_state["custom_columns"]
            ]
        )
        st.dataframe(custom_df, width="stretch", hide_index=True)
        custom_ids = [entry["column_id"] for entry in st.session_state["custom_columns"]]
        if st.session_state.get("custom_edit_target") not in custom_ids:
            st.session_state["custom_edit_target"] = custom_ids[-1]
        st.selectbox(
            "Edit custom column",
            options=custom_ids,
            format_func=lambda cid: next(e["name"] for e in st.session_state["custom_columns"] if e["column_id"] == cid),
            key="custom_edit_target",
            help="Custom column that Apply Custom Frequency changes.",
        )
        if st.button("Apply Custom Frequency", help="Sets the chosen column to the custom frequency above."):
            for entry in st.session_state["custom_columns"]:
                if entry["column_id"] == st.session_state["custom_edit_target"]:
                    entry["overrides"] = entry["overrides"].with_changes(frequency=st.session_state["custom_frequency"])
            st.rerun()
        if st.button("Clear Custom Columns", help="Discards every custom column."):
            st.session_state["custom_columns"] = []
            st.rerun()

with export_tab:
    st.caption("Freeze the current columns, edit the scenario, then run the check to see what would drift.")
    if st.button("Freeze Quote", help="Caches the columns as they are shown now."):
        st.session_state["frozen_columns"] = columns
        st.session_state["export_warnings"] = None
        append_runtime_event(
            level="INFO",
            event="quote_frozen",
            message=f"Froze {len(columns)} column(s).",
            context=quote_context(rates=rates, column_ids=[c.column_id for c in columns]),
        )
    frozen = st.session_state["frozen_columns"]
    if frozen:
        primary = frozen[0]
        document_totals = {
            "total_monthly": primary.total_monthly,
            "implementation_fee": primary.implementation,
            "seat_count": scenario["imob_users"],
        }
        if st.button("Run Export Check", help="Recomputes every frozen column from the current scenario."):
            fresh, warnings = prepare_export(frozen, scenario, document_totals, rates)
            st.session_state["frozen_columns"] = fresh
            st.session_state["export_warnings"] = warnings
        if st.session_state["export_warnings"] is not None:
            if st.session_state["export_warnings"]:
                st.warning(f"{len(st.session_state['export_warnings'])} divergence warning(s) logged.")
                st.dataframe(pd.DataFrame(st.session_state["export_warnings"]), width="stretch", hide_index=True)
            else:
                st.success("Document totals match the recalculated columns.")

with diagnostics_tab:
    log_path = Path(runtime_log_path())
    st.caption(f"Runtime log file: `{log_path}`")
    diag_cols = st.columns(2)
    diag_cols[0].number_input(
        "Recent runtime log rows",
        min_value=20,
        max_value=2000,
        step=20,
        key="runtime_log_limit",
        help="Recent quote engine events, newest last.",
    )
    diag_cols[1].selectbox(
        "Minimum level",
        options=list(LEVEL_ORDER),
        key="runtime_log_min_level",
        help="Hide events below this severity.",
    )
    runtime_events = read_runtime_events(
        limit=int(st.session_state["runtime_log_limit"]), min_level=st.session_state["runtime_log_min_level"]
    )
    if runtime_events:
        st.dataframe(summarize_runtime_events(runtime_events), width="stretch", hide_index=True)
        runtime_df = pd.DataFrame(runtime_events)
        preferred_cols = ["timestamp_utc", "level", "event", "message", "exception_type", "exception_message", "context"]
        runtime_cols = [c for c in preferred_cols if c in runtime_df.columns]
        st.dataframe(runtime_df[runtime_cols].astype(str), width="stretch", hide_index=True)
    else:
        st.caption("No runtime events logged yet.")
