import pytest

from conftest import make_part
from src.bom_core import (
    BomLineItem,
    ComponentMatcher,
    DuplicateDesignatorError,
    InMemoryCatalog,
    resolution_report,
)


@pytest.fixture
def catalog():
    return InMemoryCatalog(
        [
            make_part(
                "RES-10K",
                manufacturer_part="RC0603FR-0710KL",
                name="10k Resistor 0603",
                package="0603",
                specifications={"value": 10000.0, "unit": "Ω"},
            ),
            make_part(
                "RES-10K-TH",
                manufacturer_part="CFR-25JB-10K",
                name="10k Resistor THT",
                package="Axial",
                specifications={"value": 10000.0, "unit": "Ω"},
            ),
            make_part(
                "CAP-100N",
                manufacturer_part="CL10B104",
                name="Ceramic Cap",
                package="0603",
                specifications={"value": 1e-7, "unit": "F"},
            ),
        ]
    )


def test_manufacturer_part_wins(catalog):
    """An exact MPN beats a value/footprint match pointing elsewhere."""
    item = BomLineItem("R1", value="10k", footprint="0603", manufacturer_part="CFR-25JB-10K")
    part, method = ComponentMatcher(catalog).match(item)

    assert part.id == "RES-10K-TH"
    assert method == "manufacturer_part"


def test_unknown_mpn_falls_through_to_value_and_footprint(catalog):
    item = BomLineItem("R1", value="10k", footprint="0603", manufacturer_part="NOPE")
    part, method = ComponentMatcher(catalog).match(item)

    assert part.id == "RES-10K"
    assert method == "value_footprint"


def test_parsed_value_is_last_resort(catalog):
    """'0.1uF' is not in any part name but equals CAP-100N's specification."""
    item = BomLineItem("C1", value="0.1uF", footprint="0805")
    part, method = ComponentMatcher(catalog).match(item)

    assert part.id == "CAP-100N"
    assert method == "parsed_value"


def test_unresolved(catalog):
    resolved = ComponentMatcher(catalog).resolve(BomLineItem("D1", value="1N4148"))

    assert resolved.part is None
    assert resolved.method == "unresolved"
    assert resolved.cost == 0
    assert not resolved.allocated


def test_resolve_items_builds_snapshot_and_report(catalog):
    items = [
        BomLineItem("R1", value="10k", footprint="0603"),
        BomLineItem("C1", value="100nF"),
        BomLineItem("D1", value="1N4148"),
    ]
    snapshot, report = ComponentMatcher(catalog).resolve_items(items, version="2", project="Amp")

    assert snapshot.version == "2"
    assert snapshot.project == "Amp"
    assert snapshot.status == "pending"
    assert report["total_items"] == 3
    assert report["resolved"] == 2
    assert report["unresolved"] == ["D1"]
    assert report["by_method"] == {
        "manufacturer_part": 0,
        "value_footprint": 1,
        "parsed_value": 1,
        "unresolved": 1,
    }
    assert report["details"][0] == {
        "designator": "R1",
        "value": "10k",
        "method": "value_footprint",
        "part_id": "RES-10K",
    }


def test_duplicate_designators_reject_snapshot(catalog):
    items = [BomLineItem("R1", value="10k"), BomLineItem("R1", value="4.7k")]
    with pytest.raises(DuplicateDesignatorError) as excinfo:
        ComponentMatcher(catalog).resolve_items(items)
    assert excinfo.value.designators == ["R1"]


def test_matching_never_touches_the_catalog(catalog):
    before = [(p.id, p.stock_quantity, p.unit_price) for p in catalog]
    ComponentMatcher(catalog).resolve_items([BomLineItem("R1", value="10k", footprint="0603")])
    assert [(p.id, p.stock_quantity, p.unit_price) for p in catalog] == before


def test_reresolve_picks_up_catalog_changes(catalog):
    matcher = ComponentMatcher(catalog)
    snapshot, report = matcher.resolve_items([BomLineItem("D1", value="1N4148", footprint="SOD-123")])
    assert report["unresolved"] == ["D1"]

    catalog.add_part(make_part("D-1N4148", name="1N4148 Diode", package="SOD-123"))
    fresh, report = matcher.reresolve(snapshot)

    assert report["unresolved"] == []
    assert fresh.items[0].part_id == "D-1N4148"
    assert fresh.created_at == snapshot.created_at
    # The original snapshot is left alone.
    assert snapshot.items[0].part is None


def test_reresolve_keeps_allocation_only_for_same_part(catalog):
    matcher = ComponentMatcher(catalog)
    snapshot, _ = matcher.resolve_items(
        [
            BomLineItem("R1", value="10k", footprint="0603"),
            BomLineItem("C1", value="100nF"),
        ]
    )
    for resolved in snapshot:
        resolved.allocated = True

    catalog.get("CAP-100N").status = "inactive"
    fresh, _ = matcher.reresolve(snapshot)
    by_ref = fresh.by_designator()

    assert by_ref["R1"].allocated
    assert not by_ref["C1"].allocated
    assert by_ref["C1"].part is None


def test_sample_boms_resolve(sample_catalog, sample_bom_paths):
    from src.bom_core import parse_csv_bom

    matcher = ComponentMatcher(sample_catalog)
    v1_items, _ = parse_csv_bom(sample_bom_paths[0])
    v2_items, _ = parse_csv_bom(sample_bom_paths[1])

    _, report1 = matcher.resolve_items(v1_items, version="v1")
    _, report2 = matcher.resolve_items(v2_items, version="v2")

    assert report1["unresolved"] == []
    assert report2["unresolved"] == ["D1"]
    assert resolution_report(matcher.resolve_items(v1_items)[0]) == report1
