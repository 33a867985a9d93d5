import json
import logging
import os

import pytest

from conftest import DATA_DIR
from src.bom_core import ComponentMatcher, compare_snapshots, load_catalog, parse_csv_bom

# Logging Config
# Silence noisy libraries so we can see our own debug logs
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

# 📂 Config
SNAPSHOTS_DIR = os.path.join(os.path.dirname(__file__), "snapshots")

# BOM revision pairs diffed against the sample catalog.
BOM_PAIRS = [("sample_bom_v1.csv", "sample_bom_v2.csv")]


def stabilize_comparison(comparison, old_report, new_report):
    """
    Reduces a comparison to part ids and Decimal strings so the JSON output
    is deterministic (stable) for comparison.
    """

    def part_id(part):
        return part.id if part else None

    return {
        "resolution": {"old": old_report["by_method"], "new": new_report["by_method"]},
        "added": {
            e["designator"]: {"part": part_id(e["part"]), "cost_impact": str(e["cost_impact"])}
            for e in comparison["added"]
        },
        "removed": {
            e["designator"]: {"part": part_id(e["part"]), "cost_impact": str(e["cost_impact"])}
            for e in comparison["removed"]
        },
        "modified": {
            e["designator"]: {
                "old": part_id(e["old"]["part"]),
                "new": part_id(e["new"]["part"]),
                "changes": e["changes"],
                "cost_impact": str(e["cost_impact"]),
            }
            for e in comparison["modified"]
        },
        "unchanged": sorted(e["designator"] for e in comparison["unchanged"]),
        "cost_impact": {k: str(v) for k, v in comparison["cost_impact"].items()},
    }


def load_snapshot(filename):
    """Loads the 'Truth' JSON if it exists."""
    path = os.path.join(SNAPSHOTS_DIR, filename)
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_snapshot(filename, data):
    """Saves the current output as the new 'Truth'."""
    os.makedirs(SNAPSHOTS_DIR, exist_ok=True)
    path = os.path.join(SNAPSHOTS_DIR, filename)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True, ensure_ascii=False)


@pytest.mark.parametrize("old_name, new_name", BOM_PAIRS)
def test_comparison_regression(old_name, new_name):
    """
    Runs the real parser, matcher and diff against sample BOMs and compares
    the result to the stored snapshot.
    """
    catalog = load_catalog(
        os.path.join(DATA_DIR, "sample_catalog.csv"),
        os.path.join(DATA_DIR, "sample_alternatives.csv"),
    )
    matcher = ComponentMatcher(catalog)

    # 1. Run the REAL Code
    old_items, _ = parse_csv_bom(os.path.join(DATA_DIR, old_name))
    new_items, _ = parse_csv_bom(os.path.join(DATA_DIR, new_name))
    old_snap, old_report = matcher.resolve_items(old_items, version=old_name)
    new_snap, new_report = matcher.resolve_items(new_items, version=new_name)

    # 2. Stabilize Data
    current_result = stabilize_comparison(
        compare_snapshots(old_snap, new_snap), old_report, new_report
    )

    # 3. Load & Compare
    snapshot_filename = (
        f"{os.path.splitext(old_name)[0]}__{os.path.splitext(new_name)[0]}.json"
    )
    expected_result = load_snapshot(snapshot_filename)

    if expected_result is None:
        save_snapshot(snapshot_filename, current_result)
        pytest.fail(
            f"📸 New snapshot created for {old_name} -> {new_name}. "
            f"Please inspect {snapshot_filename} manually."
        )

    assert current_result == expected_result, (
        f"⚠️ Output mismatch for {old_name} -> {new_name}. Comparison behavior changed!"
    )
