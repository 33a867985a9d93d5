"""
Component resolution against the part catalog.

Each line item goes through a strict strategy chain and stops at the first
strategy that finds an active part:

1. Exact manufacturer part number.
2. Value contained in the part name, with an exact footprint match.
3. Parsed numeric value and unit equal to the part's specifications.

Anything left over is recorded as unresolved. The matcher never writes to the
catalog.
"""

import logging
from collections.abc import Iterable

import src.bom_core.constants as C
from src.bom_core.catalog import PartCatalog
from src.bom_core.types import (
    BomLineItem,
    BomSnapshot,
    PartCatalogEntry,
    ResolutionReport,
    ResolvedBomItem,
)
from src.bom_core.utils import parse_component_value

logger = logging.getLogger(__name__)


class ComponentMatcher:
    """Resolves BOM line items to catalog parts."""

    def __init__(self, catalog: PartCatalog):
        self.catalog = catalog

    def match(self, item: BomLineItem) -> tuple[PartCatalogEntry | None, str]:
        """
        Finds the best active part for one line item.

        Returns:
            (part, method). `part` is None and `method` is 'unresolved' when no
            strategy succeeds.
        """
        if item.manufacturer_part:
            part = self.catalog.find_by_manufacturer_part(item.manufacturer_part)
            if part is not None:
                return part, C.METHOD_MANUFACTURER_PART

        if item.value and item.footprint:
            part = self.catalog.find_by_name_and_footprint(item.value, item.footprint)
            if part is not None:
                return part, C.METHOD_VALUE_FOOTPRINT

        parsed = parse_component_value(item.value)
        if parsed is not None:
            part = self.catalog.find_by_spec_value(*parsed)
            if part is not None:
                return part, C.METHOD_PARSED_VALUE

        return None, C.METHOD_UNRESOLVED

    def resolve(self, item: BomLineItem) -> ResolvedBomItem:
        part, method = self.match(item)
        return ResolvedBomItem(item=item, part=part, method=method, allocated=False)

    def resolve_items(
        self,
        items: Iterable[BomLineItem],
        version: str = "1",
        project: str | None = None,
    ) -> tuple[BomSnapshot, ResolutionReport]:
        """
        Resolves a whole parsed BOM into a snapshot.

        Raises:
            DuplicateDesignatorError: If two items share a designator.
        """
        snapshot = BomSnapshot(
            [self.resolve(item) for item in items], version=version, project=project
        )
        report = resolution_report(snapshot)
        logger.info(
            f"Resolved BOM {version}: {report['resolved']}/{report['total_items']} items, "
            f"{len(report['unresolved'])} unresolved"
        )
        return snapshot, report

    def reresolve(self, snapshot: BomSnapshot) -> tuple[BomSnapshot, ResolutionReport]:
        """
        Re-runs resolution against the current catalog.

        Produces a new snapshot with the same version, project and timestamp.
        Allocation flags survive only where the resolved part did not change.
        """
        items = []
        for old in snapshot:
            new = self.resolve(old.item)
            new.allocated = old.allocated and new.part_id == old.part_id
            items.append(new)

        fresh = BomSnapshot(
            items,
            version=snapshot.version,
            project=snapshot.project,
            created_at=snapshot.created_at,
        )
        return fresh, resolution_report(fresh)


def resolution_report(snapshot: BomSnapshot) -> ResolutionReport:
    """Per-item resolution method and per-method counts for a snapshot."""
    report: ResolutionReport = {
        "total_items": 0,
        "resolved": 0,
        "unresolved": [],
        "by_method": {method: 0 for method in C.RESOLUTION_METHODS},
        "details": [],
    }

    for resolved in snapshot:
        report["total_items"] += 1
        report["by_method"][resolved.method] += 1
        if resolved.is_resolved:
            report["resolved"] += 1
        else:
            report["unresolved"].append(resolved.designator)
        report["details"].append(
            {
                "designator": resolved.designator,
                "value": resolved.item.value,
                "method": resolved.method,
                "part_id": resolved.part_id,
            }
        )

    return report
