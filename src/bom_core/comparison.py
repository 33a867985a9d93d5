"""
Structural and cost comparison between BOM snapshots.

Snapshots are compared by designator. The result is recomputed on every call
from the two snapshots and the unit prices of their parts at call time.
"""

from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

import src.bom_core.constants as C
from src.bom_core.types import (
    BomSnapshot,
    ComparisonResult,
    ResolvedBomItem,
)
from src.bom_core.utils import quantize_money


def calculate_bom_cost(snapshot: BomSnapshot) -> Decimal:
    """Sum of quantity x unit price. Unresolved items contribute zero."""
    return sum((r.cost for r in snapshot), Decimal("0"))


def percentage_change(old_total: Decimal, new_total: Decimal) -> Decimal:
    """Relative change in percent; zero when the old total is zero."""
    if old_total <= 0:
        return Decimal("0")
    return quantize_money((new_total - old_total) / old_total * 100)


def identify_changes(old: ResolvedBomItem, new: ResolvedBomItem) -> list[str]:
    changes = []
    if old.part_id != new.part_id:
        changes.append(C.CHANGE_COMPONENT)
    if old.quantity != new.quantity:
        changes.append(C.CHANGE_QUANTITY)
    if old.item.notes != new.item.notes:
        changes.append(C.CHANGE_NOTES)
    return changes


def compare_snapshots(bom1: BomSnapshot, bom2: BomSnapshot) -> ComparisonResult:
    """
    Compares two snapshots designator by designator.

    - added: in bom2 only, cost impact +qty x price.
    - removed: in bom1 only, cost impact -qty x price.
    - modified: in both with a different part or quantity.
    - unchanged: in both with the same part and quantity.

    Args:
        bom1: The baseline (older) snapshot.
        bom2: The candidate (newer) snapshot.

    Returns:
        The four partitions plus a cost summary. Percentage change is 0 when
        the baseline costs nothing.
    """
    items1 = bom1.by_designator()
    items2 = bom2.by_designator()

    bom1_total = calculate_bom_cost(bom1)
    bom2_total = calculate_bom_cost(bom2)

    comparison: ComparisonResult = {
        "added": [],
        "removed": [],
        "modified": [],
        "unchanged": [],
        "cost_impact": {
            "bom1_total": bom1_total,
            "bom2_total": bom2_total,
            "difference": bom2_total - bom1_total,
            "percentage_change": percentage_change(bom1_total, bom2_total),
        },
    }

    for designator, item2 in items2.items():
        if designator not in items1:
            comparison["added"].append(
                {
                    "designator": designator,
                    "part": item2.part,
                    "quantity": item2.quantity,
                    "cost_impact": item2.cost,
                }
            )

    for designator, item1 in items1.items():
        item2 = items2.get(designator)
        if item2 is None:
            comparison["removed"].append(
                {
                    "designator": designator,
                    "part": item1.part,
                    "quantity": item1.quantity,
                    "cost_impact": -item1.cost,
                }
            )
        elif item1.part_id != item2.part_id or item1.quantity != item2.quantity:
            comparison["modified"].append(
                {
                    "designator": designator,
                    "old": {
                        "part": item1.part,
                        "quantity": item1.quantity,
                        "cost": item1.cost,
                    },
                    "new": {
                        "part": item2.part,
                        "quantity": item2.quantity,
                        "cost": item2.cost,
                    },
                    "cost_impact": item2.cost - item1.cost,
                    "changes": identify_changes(item1, item2),
                }
            )
        else:
            comparison["unchanged"].append(
                {
                    "designator": designator,
                    "part": item1.part,
                    "quantity": item1.quantity,
                }
            )

    return comparison


def trend_direction(costs: list[Decimal]) -> str:
    """'increasing', 'decreasing' or 'stable' within 5% of the first cost."""
    if len(costs) < 2:
        return "insufficient_data"

    first, last = costs[0], costs[-1]
    difference = last - first
    threshold = first * Decimal(str(C.TREND_STABILITY_BAND))

    if abs(difference) < threshold or difference == 0:
        return "stable"
    return "increasing" if difference > 0 else "decreasing"


def analyze_cost_trend(snapshots: Iterable[BomSnapshot]) -> dict[str, Any]:
    """
    Cost per version across several snapshots, in the order given.

    Returns:
        {"versions": [{version, created_at, total_cost, item_count}], "summary":
        {min_cost, max_cost, avg_cost, cost_variance, trend_direction}}
    """
    versions = [
        {
            "version": snap.version,
            "created_at": snap.created_at,
            "total_cost": calculate_bom_cost(snap),
            "item_count": len(snap),
        }
        for snap in snapshots
    ]
    costs = [v["total_cost"] for v in versions]

    if not costs:
        zero = Decimal("0")
        summary = {
            "min_cost": zero,
            "max_cost": zero,
            "avg_cost": zero,
            "cost_variance": zero,
            "trend_direction": "insufficient_data",
        }
    else:
        summary = {
            "min_cost": min(costs),
            "max_cost": max(costs),
            "avg_cost": quantize_money(sum(costs, Decimal("0")) / len(costs)),
            "cost_variance": max(costs) - min(costs),
            "trend_direction": trend_direction(costs),
        }

    return {"versions": versions, "summary": summary}


def find_component_usage(
    part_id: str, snapshots: Iterable[BomSnapshot]
) -> dict[str, Any]:
    """
    Where a part is used across project snapshots.

    Returns:
        Totals, the distinct designators, and a per-project breakdown.
    """
    per_project: dict[str, list[tuple[BomSnapshot, ResolvedBomItem]]] = defaultdict(list)
    for snap in snapshots:
        for resolved in snap:
            if resolved.part_id == part_id:
                per_project[snap.project or "Unassigned"].append((snap, resolved))

    designators: list[str] = []
    total_quantity = 0
    projects = []

    for project, uses in per_project.items():
        project_qty = sum(r.quantity for _, r in uses)
        total_quantity += project_qty
        refs = [r.designator for _, r in uses]
        for ref in refs:
            if ref not in designators:
                designators.append(ref)
        projects.append(
            {
                "project": project,
                "quantity_used": project_qty,
                "designators": refs,
                "bom_version": uses[0][0].version,
            }
        )

    total_projects = len(projects)
    return {
        "total_projects": total_projects,
        "total_quantity": total_quantity,
        "designators": designators,
        "projects": projects,
        "avg_quantity_per_project": (
            total_quantity / total_projects if total_projects else 0
        ),
    }

