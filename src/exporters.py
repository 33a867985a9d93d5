import csv
import io
from typing import Any

from src.bom_core.types import (
    ComparisonResult,
    PartCatalogEntry,
    ResolutionReport,
    Suggestion,
)


def _part_label(part: PartCatalogEntry | None) -> str:
    if part is None:
        return "(unresolved)"
    return f"{part.name} [{part.id}]"


def comparison_rows(comparison: ComparisonResult) -> list[dict[str, Any]]:
    """
    Flattens a comparison into one row per designator.

    Rows are ordered Added, Removed, Modified, Unchanged, each keeping the
    order of the comparison itself.
    """
    rows: list[dict[str, Any]] = []

    for entry in comparison["added"]:
        rows.append(
            {
                "Change": "Added",
                "Designator": entry["designator"],
                "Old Part": "",
                "New Part": _part_label(entry["part"]),
                "Old Qty": "",
                "New Qty": entry["quantity"],
                "Cost Impact": entry["cost_impact"],
                "Details": "",
            }
        )

    for entry in comparison["removed"]:
        rows.append(
            {
                "Change": "Removed",
                "Designator": entry["designator"],
                "Old Part": _part_label(entry["part"]),
                "New Part": "",
                "Old Qty": entry["quantity"],
                "New Qty": "",
                "Cost Impact": entry["cost_impact"],
                "Details": "",
            }
        )

    for entry in comparison["modified"]:
        rows.append(
            {
                "Change": "Modified",
                "Designator": entry["designator"],
                "Old Part": _part_label(entry["old"]["part"]),
                "New Part": _part_label(entry["new"]["part"]),
                "Old Qty": entry["old"]["quantity"],
                "New Qty": entry["new"]["quantity"],
                "Cost Impact": entry["cost_impact"],
                "Details": ", ".join(entry["changes"]),
            }
        )

    for entry in comparison["unchanged"]:
        rows.append(
            {
                "Change": "Unchanged",
                "Designator": entry["designator"],
                "Old Part": _part_label(entry["part"]),
                "New Part": _part_label(entry["part"]),
                "Old Qty": entry["quantity"],
                "New Qty": entry["quantity"],
                "Cost Impact": 0,
                "Details": "",
            }
        )

    return rows


def generate_comparison_csv(comparison: ComparisonResult) -> bytes:
    """
    Generates a CSV file for a BOM comparison.

    A final TOTAL row carries the cost difference and percentage change.

    Returns:
        bytes: The CSV content encoded as utf-8-sig.
    """
    csv_buf = io.StringIO()
    fields = [
        "Change",
        "Designator",
        "Old Part",
        "New Part",
        "Old Qty",
        "New Qty",
        "Cost Impact",
        "Details",
    ]
    writer = csv.DictWriter(csv_buf, fieldnames=fields)
    writer.writeheader()
    writer.writerows(comparison_rows(comparison))

    impact = comparison["cost_impact"]
    writer.writerow(
        {
            "Change": "TOTAL",
            "Old Part": impact["bom1_total"],
            "New Part": impact["bom2_total"],
            "Cost Impact": impact["difference"],
            "Details": f"{impact['percentage_change']}%",
        }
    )

    # encode "utf-8-sig" so Excel opens it correctly with special characters
    return csv_buf.getvalue().encode("utf-8-sig")


def generate_suggestions_csv(suggestions: list[Suggestion]) -> bytes:
    """One row per optimisation suggestion, encoded as utf-8-sig."""
    csv_buf = io.StringIO()
    fields = ["Type", "Designator", "Part", "Suggested Part", "Savings", "Detail", "Notes"]
    writer = csv.DictWriter(csv_buf, fieldnames=fields)
    writer.writeheader()

    for s in suggestions:
        row: dict[str, Any] = {
            "Type": s["type"],
            "Designator": s["designator"],
            "Notes": s.get("notes", ""),
        }
        if s["type"] == "cost_optimization":
            row["Part"] = _part_label(s["current_part"])
            row["Suggested Part"] = _part_label(s["suggested_part"])
            row["Savings"] = s["potential_savings"]
            row["Detail"] = f"compatibility {s['compatibility_score']:.2f}"
        elif s["type"] == "lifecycle_risk":
            row["Part"] = _part_label(s["part"])
            row["Detail"] = f"{s['lifecycle_stage']} ({s['risk_level']})"
        else:
            row["Part"] = _part_label(s["part"])
            row["Detail"] = (
                f"need {s['required_quantity']}, have {s['available_stock']}"
            )
        writer.writerow(row)

    return csv_buf.getvalue().encode("utf-8-sig")


def generate_resolution_csv(report: ResolutionReport) -> bytes:
    """Per-designator resolution method, so unresolved items can be fixed in the source BOM."""
    csv_buf = io.StringIO()
    writer = csv.DictWriter(csv_buf, fieldnames=["Designator", "Value", "Method", "Part ID"])
    writer.writeheader()
    for detail in report["details"]:
        writer.writerow(
            {
                "Designator": detail["designator"],
                "Value": detail["value"],
                "Method": detail["method"],
                "Part ID": detail["part_id"] or "",
            }
        )
    return csv_buf.getvalue().encode("utf-8-sig")


def comparison_markdown(
    comparison: ComparisonResult, old_label: str, new_label: str, currency: str = "$"
) -> str:
    """A Markdown report of a comparison (changed designators only)."""
    impact = comparison["cost_impact"]
    lines = [
        f"# BOM Comparison: {old_label} → {new_label}",
        "",
        f"- {old_label} total: {currency}{impact['bom1_total']}",
        f"- {new_label} total: {currency}{impact['bom2_total']}",
        f"- Difference: {currency}{impact['difference']} ({impact['percentage_change']}%)",
        "",
        "| Change | Designator | Old | New | Impact | Details |",
        "| --- | --- | --- | --- | ---: | --- |",
    ]
    for row in comparison_rows(comparison):
        if row["Change"] == "Unchanged":
            continue
        old = f"{row['Old Qty']}x {row['Old Part']}" if row["Old Part"] else ""
        new = f"{row['New Qty']}x {row['New Part']}" if row["New Part"] else ""
        lines.append(
            f"| {row['Change']} | **{row['Designator']}** | {old} | {new} | "
            f"{currency}{row['Cost Impact']} | {row['Details']} |"
        )
    lines.append("")
    lines.append(f"{len(comparison['unchanged'])} designators unchanged.")
    return "\n".join(lines) + "\n"
