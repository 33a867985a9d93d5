import os
from decimal import Decimal

import pytest

from src.bom_core import (
    BomLineItem,
    BomSnapshot,
    InMemoryCatalog,
    PartCatalogEntry,
    ResolvedBomItem,
    load_catalog,
)

DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")


def make_part(part_id: str, price: str = "1.00", **kwargs) -> PartCatalogEntry:
    """Builds a catalog part with sensible defaults for tests."""
    kwargs.setdefault("manufacturer_part", f"MPN-{part_id}")
    kwargs.setdefault("name", part_id)
    kwargs.setdefault("stock_quantity", 100)
    return PartCatalogEntry(id=part_id, unit_price=Decimal(price), **kwargs)


def make_snapshot(lines, version: str = "1", project: str | None = None) -> BomSnapshot:
    """
    Builds a resolved snapshot from (designator, part_or_None, quantity) tuples.
    """
    items = [
        ResolvedBomItem(
            item=BomLineItem(reference=ref, value=part.name if part else "?", quantity=qty),
            part=part,
            method="manufacturer_part" if part else "unresolved",
        )
        for ref, part, qty in lines
    ]
    return BomSnapshot(items, version=version, project=project)


@pytest.fixture
def sample_catalog() -> InMemoryCatalog:
    """The catalog shipped in data/ for the app and CLI."""
    return load_catalog(
        os.path.join(DATA_DIR, "sample_catalog.csv"),
        os.path.join(DATA_DIR, "sample_alternatives.csv"),
    )


@pytest.fixture
def sample_bom_paths() -> tuple[str, str]:
    return (
        os.path.join(DATA_DIR, "sample_bom_v1.csv"),
        os.path.join(DATA_DIR, "sample_bom_v2.csv"),
    )
