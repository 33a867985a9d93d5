from decimal import Decimal

from hypothesis import given, strategies as st

from conftest import make_part, make_snapshot
from src.bom_core import (
    BomLineItem,
    BomSnapshot,
    ComponentMatcher,
    ResolvedBomItem,
    analyze_cost_trend,
    calculate_bom_cost,
    compare_snapshots,
    find_component_usage,
    parse_csv_bom,
)
from src.bom_core.comparison import identify_changes, percentage_change, trend_direction


def test_worked_example():
    """Quantity bump on R5 plus a new U1."""
    c1 = make_part("10k", "0.10")
    r5 = make_part("4.7k", "0.05")
    u1 = make_part("new-part", "2.00")

    bom_a = make_snapshot([("C1", c1, 1), ("R5", r5, 2)], version="A")
    bom_b = make_snapshot([("C1", c1, 1), ("R5", r5, 3), ("U1", u1, 1)], version="B")

    result = compare_snapshots(bom_a, bom_b)

    assert [e["designator"] for e in result["added"]] == ["U1"]
    assert result["added"][0]["cost_impact"] == Decimal("2.00")
    assert result["removed"] == []
    assert [e["designator"] for e in result["unchanged"]] == ["C1"]

    (modified,) = result["modified"]
    assert modified["designator"] == "R5"
    assert modified["changes"] == ["quantity_changed"]
    assert modified["cost_impact"] == Decimal("0.05")

    impact = result["cost_impact"]
    assert impact["bom1_total"] == Decimal("0.20")
    assert impact["bom2_total"] == Decimal("2.25")
    assert impact["difference"] == Decimal("2.05")
    assert impact["percentage_change"] == Decimal("1025")


def test_removed_items_have_negative_impact():
    part = make_part("P", "1.50")
    result = compare_snapshots(make_snapshot([("J1", part, 2)]), make_snapshot([]))

    (removed,) = result["removed"]
    assert removed["designator"] == "J1"
    assert removed["quantity"] == 2
    assert removed["cost_impact"] == Decimal("-3.00")
    assert result["cost_impact"]["percentage_change"] == Decimal("-100")


def test_component_and_notes_change():
    old_part, new_part = make_part("OLD", "1.00"), make_part("NEW", "0.40")
    old = ResolvedBomItem(BomLineItem("U1", notes="socketed"), part=old_part)
    new = ResolvedBomItem(BomLineItem("U1", notes="soldered"), part=new_part)

    assert identify_changes(old, new) == ["component_changed", "notes_changed"]

    result = compare_snapshots(BomSnapshot([old]), BomSnapshot([new]))
    assert result["modified"][0]["cost_impact"] == Decimal("-0.60")
    assert result["modified"][0]["changes"] == ["component_changed", "notes_changed"]


def test_notes_only_difference_is_unchanged():
    part = make_part("P")
    old = BomSnapshot([ResolvedBomItem(BomLineItem("R1", notes="a"), part=part)])
    new = BomSnapshot([ResolvedBomItem(BomLineItem("R1", notes="b"), part=part)])

    result = compare_snapshots(old, new)
    assert result["modified"] == []
    assert [e["designator"] for e in result["unchanged"]] == ["R1"]


def test_zero_baseline_has_zero_percentage():
    free = make_snapshot([("D1", None, 1)])
    paid = make_snapshot([("D1", make_part("D", "0.10"), 1)])

    result = compare_snapshots(free, paid)
    assert result["cost_impact"]["difference"] == Decimal("0.10")
    assert result["cost_impact"]["percentage_change"] == 0
    assert percentage_change(Decimal("0"), Decimal("5")) == 0


def test_unresolved_items_cost_nothing():
    snap = make_snapshot([("R1", make_part("R", "0.25"), 4), ("D1", None, 3)])
    assert calculate_bom_cost(snap) == Decimal("1.00")


@given(
    st.lists(
        st.tuples(
            st.integers(min_value=1, max_value=50),
            st.decimals(min_value=0, max_value=100, places=2),
        ),
        max_size=12,
    )
)
def test_self_comparison_is_all_unchanged(lines):
    parts = [make_part(f"P{i}", str(price)) for i, (_, price) in enumerate(lines)]
    snap = make_snapshot([(f"R{i}", parts[i], qty) for i, (qty, _) in enumerate(lines)])

    result = compare_snapshots(snap, snap)

    assert result["added"] == result["removed"] == result["modified"] == []
    assert len(result["unchanged"]) == len(lines)
    assert result["cost_impact"]["difference"] == 0
    assert result["cost_impact"]["percentage_change"] == 0


@given(
    st.dictionaries(
        st.sampled_from([f"R{i}" for i in range(10)]),
        st.integers(min_value=1, max_value=5),
    ),
    st.dictionaries(
        st.sampled_from([f"R{i}" for i in range(10)]),
        st.integers(min_value=1, max_value=5),
    ),
)
def test_partitions_cover_every_designator_once(old_lines, new_lines):
    part = make_part("P", "0.10")
    old = make_snapshot([(ref, part, qty) for ref, qty in old_lines.items()])
    new = make_snapshot([(ref, part, qty) for ref, qty in new_lines.items()])

    result = compare_snapshots(old, new)
    seen = (
        [e["designator"] for e in result["added"]]
        + [e["designator"] for e in result["removed"]]
        + [e["designator"] for e in result["modified"]]
        + [e["designator"] for e in result["unchanged"]]
    )

    assert sorted(seen) == sorted(set(old_lines) | set(new_lines))
    impacts = sum(
        (e["cost_impact"] for key in ("added", "removed", "modified") for e in result[key]),
        Decimal("0"),
    )
    assert impacts == result["cost_impact"]["difference"]


def test_price_changes_are_seen_at_call_time():
    part = make_part("P", "1.00")
    snap = make_snapshot([("U1", part, 2)])
    assert calculate_bom_cost(snap) == Decimal("2.00")

    part.unit_price = Decimal("1.50")
    assert calculate_bom_cost(snap) == Decimal("3.00")


def test_sample_revisions(sample_catalog, sample_bom_paths):
    matcher = ComponentMatcher(sample_catalog)
    v1, _ = matcher.resolve_items(parse_csv_bom(sample_bom_paths[0])[0], version="v1")
    v2, _ = matcher.resolve_items(parse_csv_bom(sample_bom_paths[1])[0], version="v2")

    result = compare_snapshots(v1, v2)

    assert sorted(e["designator"] for e in result["added"]) == ["C3", "D1"]
    assert [e["designator"] for e in result["removed"]] == ["Q1"]
    modified = {e["designator"]: e for e in result["modified"]}
    assert set(modified) == {"R4", "U1"}
    assert modified["R4"]["changes"] == ["component_changed"]
    assert modified["R4"]["cost_impact"] == 0
    assert modified["U1"]["cost_impact"] == Decimal("-11.60")
    assert sorted(e["designator"] for e in result["unchanged"]) == [
        "C1", "C2", "R1", "R2", "R3",
    ]
    assert result["cost_impact"]["bom1_total"] == Decimal("12.63")
    assert result["cost_impact"]["bom2_total"] == Decimal("1.00")
    assert result["cost_impact"]["difference"] == Decimal("-11.63")


# Trends & Usage


def test_trend_direction():
    assert trend_direction([Decimal("10")]) == "insufficient_data"
    assert trend_direction([Decimal("10"), Decimal("10.4")]) == "stable"
    assert trend_direction([Decimal("10"), Decimal("11")]) == "increasing"
    assert trend_direction([Decimal("10"), Decimal("8")]) == "decreasing"
    assert trend_direction([Decimal("0"), Decimal("0")]) == "stable"


def test_analyze_cost_trend():
    part = make_part("P", "1.00")
    snaps = [
        make_snapshot([("R1", part, 1)], version="1"),
        make_snapshot([("R1", part, 3)], version="2"),
        make_snapshot([("R1", part, 2)], version="3"),
    ]
    trend = analyze_cost_trend(snaps)

    assert [v["version"] for v in trend["versions"]] == ["1", "2", "3"]
    assert [v["total_cost"] for v in trend["versions"]] == [1, 3, 2]
    summary = trend["summary"]
    assert summary["min_cost"] == 1
    assert summary["max_cost"] == 3
    assert summary["avg_cost"] == 2
    assert summary["cost_variance"] == 2
    assert summary["trend_direction"] == "increasing"


def test_analyze_cost_trend_without_snapshots():
    trend = analyze_cost_trend([])
    assert trend["versions"] == []
    assert trend["summary"]["trend_direction"] == "insufficient_data"


def test_find_component_usage():
    opamp, other = make_part("OPA"), make_part("R")
    snaps = [
        make_snapshot([("U1", opamp, 1), ("U2", opamp, 1), ("R1", other, 1)], project="Amp"),
        make_snapshot([("U1", opamp, 2)], project="Fuzz"),
        make_snapshot([("R1", other, 1)], project="Delay"),
    ]
    usage = find_component_usage("OPA", snaps)

    assert usage["total_projects"] == 2
    assert usage["total_quantity"] == 4
    assert usage["designators"] == ["U1", "U2"]
    assert usage["avg_quantity_per_project"] == 2
    assert [p["project"] for p in usage["projects"]] == ["Amp", "Fuzz"]

    assert find_component_usage("MISSING", snaps)["total_projects"] == 0
