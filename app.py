import datetime
import os
from typing import Any, cast

import streamlit as st
from streamlit.errors import StreamlitAPIException

from src.bom_core import (
    BomCostAggregator,
    CatalogError,
    ComponentMatcher,
    DuplicateDesignatorError,
    EngineConfig,
    InMemoryCatalog,
    compare_snapshots,
    make_ai_provider,
    parse_catalog_text,
    process_input_data,
    suggest_categories,
)
from src.bom_core.catalog import parse_alternatives_text
from src.bom_core.loader import INPUT_METHODS
from src.exporters import (
    comparison_rows,
    generate_comparison_csv,
    generate_resolution_csv,
    generate_suggestions_csv,
)
from src.pdf_generator import generate_cost_report, generate_report_bundle

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")


def load_config() -> EngineConfig:
    """Environment settings, overridden by a `[bom]` table in Streamlit secrets."""
    config = EngineConfig.from_env()
    try:
        overrides = dict(st.secrets.get("bom", {}))
    except (FileNotFoundError, StreamlitAPIException):
        overrides = {}
    return config.with_overrides(overrides) if overrides else config


def read_sample(name: str) -> str:
    with open(os.path.join(DATA_DIR, name), encoding="utf-8-sig") as f:
        return f.read()


def build_catalog(parts_text: str, alternatives_text: str) -> InMemoryCatalog:
    parts = parse_catalog_text(parts_text)
    alternatives = parse_alternatives_text(alternatives_text) if alternatives_text else []
    return InMemoryCatalog(parts, alternatives)


def as_display(rows: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Stringifies cells so mixed Decimal/int/empty columns render cleanly."""
    return [{k: "" if v is None else str(v) for k, v in row.items()} for row in rows]


st.set_page_config(page_title="BOM Cost Analyzer", page_icon="🧾")

st.title("🧾 BOM Comparison & Cost Analyzer")
st.markdown("""
**Compare BOM revisions and find savings.**

Load a parts catalog, then paste or upload two BOM CSVs.
Designator ranges like `R1-R5` are expanded, every line is matched to a catalog part,
and you get a designator-level diff, a cost rollup and optimisation suggestions.
""")

config = load_config()

if "results" not in st.session_state:
    st.session_state.results = None

# --- Sidebar: thresholds ---
with st.sidebar:
    st.header("⚙️ Settings")
    threshold = st.number_input(
        "Expensive part threshold",
        min_value=0.0,
        value=float(config.expensive_threshold),
        step=1.0,
        help="Parts above this unit price are checked for cheaper alternatives.",
    )
    min_compat = st.slider(
        "Minimum compatibility", 0.0, 1.0, float(config.min_compatibility), 0.05
    )
    config = config.with_overrides(
        {"expensive_threshold": threshold, "min_compatibility": min_compat}
    )

st.divider()
st.subheader("1. Parts Catalog")

catalog_source = st.radio(
    "Catalog Source", ["Sample Catalog", "Upload File"], horizontal=True
)
parts_text = ""
alternatives_text = ""
if catalog_source == "Sample Catalog":
    parts_text = read_sample("sample_catalog.csv")
    alternatives_text = read_sample("sample_alternatives.csv")
else:
    c1, c2 = st.columns(2)
    parts_file = c1.file_uploader("Parts CSV", type=["csv"], key="catalog_parts")
    alt_file = c2.file_uploader("Alternatives CSV", type=["csv"], key="catalog_alts")
    if parts_file:
        parts_text = parts_file.getvalue().decode("utf-8-sig")
    if alt_file:
        alternatives_text = alt_file.getvalue().decode("utf-8-sig")

st.divider()
st.subheader("2. BOM Revisions")

slots = []
for idx, (col, label) in enumerate(zip(st.columns(2), ["Baseline", "Candidate"]), start=1):
    with col:
        name = st.text_input(f"{label} name", value=f"v{idx}", key=f"bom_name_{idx}")
        method = st.radio(
            "Input Method",
            INPUT_METHODS,
            key=f"bom_method_{idx}",
            horizontal=True,
            label_visibility="collapsed",
        )
        if method == "Paste Text":
            data = st.text_area(
                "BOM CSV",
                height=160,
                key=f"bom_text_{idx}",
                placeholder="Reference,Value,Footprint,MPN\nR1-R4,10k,0603,",
            )
        elif method == "Upload File":
            data = st.file_uploader("Upload BOM", type=["csv"], key=f"bom_file_{idx}")
        else:
            data = st.text_input("BOM URL", key=f"bom_url_{idx}")
        slots.append({"name": name.strip() or label, "method": method, "data": data})

st.divider()

if st.button("Analyze BOMs", type="primary", use_container_width=True, key="analyze"):
    try:
        catalog = build_catalog(parts_text, alternatives_text)
    except CatalogError as e:
        st.error(f"Catalog error: {e}")
        st.stop()

    matcher = ComponentMatcher(catalog)
    aggregator = BomCostAggregator(catalog, config, today=datetime.date.today())
    provider = make_ai_provider(config)
    results: dict[str, Any] = {"boms": [], "errors": []}

    for slot in slots:
        items, stats = process_input_data(slot["method"], slot["data"], slot["name"])
        if not items:
            results["errors"].extend(stats["errors"] or [f"{slot['name']}: no BOM lines"])
            continue
        try:
            snapshot, report = matcher.resolve_items(items, version=slot["name"])
        except DuplicateDesignatorError as e:
            results["errors"].append(f"{slot['name']}: {e}")
            continue
        results["boms"].append(
            {
                "name": slot["name"],
                "snapshot": snapshot,
                "stats": stats,
                "report": report,
                "analysis": aggregator.analyze(snapshot),
                "hints": suggest_categories(
                    [r.item for r in snapshot if not r.is_resolved], provider
                ),
            }
        )

    if len(results["boms"]) == 2:
        results["comparison"] = compare_snapshots(
            results["boms"][0]["snapshot"], results["boms"][1]["snapshot"]
        )

    st.session_state.results = results
    st.toast("Analysis complete!", icon="🧾")

# Main Process
if st.session_state.results:
    results = cast(dict[str, Any], st.session_state.results)

    for err in results["errors"]:
        st.error(err)

    # 1. Resolution diagnostics
    for bom in results["boms"]:
        stats, report = bom["stats"], bom["report"]
        st.subheader(f"🔎 {bom['name']}")
        c1, c2, c3 = st.columns(3)
        c1.metric("Rows Read", stats["rows_read"])
        c2.metric("Line Items", report["total_items"])
        c3.metric("Resolved", report["resolved"])

        for err in stats["errors"]:
            st.warning(err)
        if report["unresolved"]:
            st.warning(
                f"⚠️ {len(report['unresolved'])} unresolved: {', '.join(report['unresolved'])}"
            )
            with st.expander("Category hints for unresolved items"):
                st.dataframe(
                    [
                        {"Designator": ref, "Category": h["category"], "Source": h["source"]}
                        for ref, h in bom["hints"].items()
                    ],
                    use_container_width=True,
                )
        else:
            st.success("✅ Every line matched a catalog part.")

    # 2. Comparison
    comparison = results.get("comparison")
    if comparison:
        st.divider()
        st.subheader("🔀 Comparison")
        impact = comparison["cost_impact"]
        c1, c2, c3 = st.columns(3)
        c1.metric(results["boms"][0]["name"], f"{config.currency}{impact['bom1_total']}")
        c2.metric(results["boms"][1]["name"], f"{config.currency}{impact['bom2_total']}")
        c3.metric(
            "Difference",
            f"{config.currency}{impact['difference']}",
            delta=f"{impact['percentage_change']}%",
            delta_color="inverse",
        )
        st.dataframe(as_display(comparison_rows(comparison)), use_container_width=True)

    # 3. Cost analysis
    st.divider()
    st.subheader("💰 Cost Analysis")
    for bom in results["boms"]:
        summary = bom["analysis"]["summary"]
        st.markdown(f"**{bom['name']}**: {config.currency}{summary['total_cost']}")
        st.dataframe(
            as_display(
                [
                    {"Category": name, "Qty": g["count"], "Cost": g["cost"]}
                    for name, g in summary["by_category"].items()
                ]
            ),
            use_container_width=True,
        )
        suggestions = bom["analysis"]["suggestions"]
        if suggestions:
            with st.expander(f"💡 {len(suggestions)} suggestions"):
                for s in suggestions:
                    st.markdown(f"- `{s['type']}` **{s['designator']}**: {s['notes']}")

    # 4. Downloads
    st.subheader("💾 Export")
    files: dict[str, bytes] = {}
    if comparison:
        files["Comparison.csv"] = generate_comparison_csv(comparison)
    for bom in results["boms"]:
        files[f"{bom['name']} Resolution.csv"] = generate_resolution_csv(bom["report"])
        files[f"{bom['name']} Suggestions.csv"] = generate_suggestions_csv(
            bom["analysis"]["suggestions"]
        )

    report_pdf = None
    if results["boms"]:
        names = [b["name"] for b in results["boms"]]
        report_pdf = generate_cost_report(
            comparison,
            {b["name"]: b["analysis"] for b in results["boms"]},
            old_label=names[0],
            new_label=names[-1],
            company_name=config.company_name,
            currency=config.currency,
        )

    c1, c2 = st.columns(2)
    if comparison:
        c1.download_button(
            "Download Comparison CSV",
            data=files["Comparison.csv"],
            file_name="bom_comparison.csv",
            mime="text/csv",
            type="primary",
        )
    if report_pdf:
        c2.download_button(
            "Download Report Bundle",
            data=generate_report_bundle(
                files, [b["snapshot"] for b in results["boms"]], report_pdf
            ),
            file_name="bom_report.zip",
            mime="application/zip",
        )
