"""
Stock allocation for resolved BOM snapshots.

Allocating an item reserves `quantity x boards` units of its resolved part and
flips the item's allocation flag. Failures are reported per item with a reason
(`already_allocated`, `no_component`, `insufficient_stock`) rather than raised.
"""

import logging
from decimal import Decimal

from src.bom_core.config import EngineConfig
from src.bom_core.types import (
    AllocationOutcome,
    AllocationReport,
    BomSnapshot,
    ResolvedBomItem,
)

logger = logging.getLogger(__name__)

ReservationKey = tuple[str | None, str, str]


class StockAllocator:
    """
    Reserves catalog stock for snapshot items and keeps a ledger of what it
    reserved so deallocation can return exactly that amount.
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self._ledger: dict[ReservationKey, tuple[str, int]] = {}

    @staticmethod
    def _key(snapshot: BomSnapshot, resolved: ResolvedBomItem) -> ReservationKey:
        return (snapshot.project, snapshot.version, resolved.designator)

    def reserved_quantity(self, snapshot: BomSnapshot, resolved: ResolvedBomItem) -> int:
        entry = self._ledger.get(self._key(snapshot, resolved))
        return entry[1] if entry else 0

    def allocate_item(
        self, snapshot: BomSnapshot, resolved: ResolvedBomItem, boards: int = 1
    ) -> AllocationOutcome:
        designator = resolved.designator

        if resolved.allocated:
            return {
                "designator": designator,
                "success": False,
                "reason": "already_allocated",
                "message": f"BOM item {designator} is already allocated",
            }

        part = resolved.part
        if part is None:
            return {
                "designator": designator,
                "success": False,
                "reason": "no_component",
                "message": f"BOM item {designator} has no component assigned",
            }

        required = resolved.quantity * boards
        if part.stock_quantity < required:
            return {
                "designator": designator,
                "success": False,
                "reason": "insufficient_stock",
                "message": (
                    f"Insufficient stock for {part.name}. "
                    f"Required: {required}, Available: {part.stock_quantity}"
                ),
                "part_id": part.id,
                "required": required,
                "available": part.stock_quantity,
            }

        part.stock_quantity -= required
        resolved.allocated = True
        self._ledger[self._key(snapshot, resolved)] = (part.id, required)

        logger.info(f"Allocated {required}x {part.id} to {designator}")
        return {
            "designator": designator,
            "success": True,
            "message": f"Allocated {required}x {part.name} to {designator}",
            "part_id": part.id,
            "required": required,
        }

    def allocate(self, snapshot: BomSnapshot, boards: int | None = None) -> AllocationReport:
        """
        Allocates every item of a snapshot.

        Args:
            snapshot: The snapshot to allocate. Its `status` becomes 'allocated'
                when every item is allocated, 'partially_allocated' when at least
                one item was allocated in this run.
            boards: Boards to build. Defaults to `config.default_boards`.
        """
        if boards is None:
            boards = self.config.default_boards
        if boards < 1:
            raise ValueError("boards must be >= 1")

        report: AllocationReport = {
            "total_items": 0,
            "allocated": 0,
            "already_allocated": 0,
            "no_component": 0,
            "insufficient_stock": 0,
            "details": [],
            "insufficient_stock_items": [],
        }

        for resolved in snapshot:
            report["total_items"] += 1
            outcome = self.allocate_item(snapshot, resolved, boards)
            report["details"].append(outcome)

            if outcome["success"]:
                report["allocated"] += 1
                continue

            reason = outcome["reason"]
            if reason == "already_allocated":
                report["already_allocated"] += 1
            elif reason == "no_component":
                report["no_component"] += 1
            elif reason == "insufficient_stock":
                report["insufficient_stock"] += 1
                report["insufficient_stock_items"].append(
                    {
                        "designator": resolved.designator,
                        "part_id": outcome["part_id"],
                        "required": outcome["required"],
                        "available": outcome["available"],
                    }
                )

        if report["allocated"] + report["already_allocated"] == report["total_items"]:
            snapshot.status = "allocated"
        elif report["allocated"] > 0:
            snapshot.status = "partially_allocated"

        logger.info(
            f"Allocation of {snapshot.version} finished: {report['allocated']} allocated, "
            f"{report['insufficient_stock']} short, {report['no_component']} without part"
        )
        return report

    def deallocate_item(
        self, snapshot: BomSnapshot, resolved: ResolvedBomItem
    ) -> AllocationOutcome:
        designator = resolved.designator
        if not resolved.allocated:
            return {
                "designator": designator,
                "success": False,
                "reason": "not_allocated",
                "message": f"BOM item {designator} is not allocated",
            }

        entry = self._ledger.pop(self._key(snapshot, resolved), None)
        resolved.allocated = False
        if entry is None or resolved.part is None or resolved.part.id != entry[0]:
            logger.warning(f"No reservation recorded for {designator}")
            return {
                "designator": designator,
                "success": False,
                "reason": "allocation_not_found",
                "message": f"Allocation record not found for BOM item {designator}",
            }

        resolved.part.stock_quantity += entry[1]
        return {
            "designator": designator,
            "success": True,
            "message": f"Returned {entry[1]}x {resolved.part.name} from {designator}",
            "part_id": entry[0],
            "required": entry[1],
        }

    def deallocate(self, snapshot: BomSnapshot) -> dict:
        """Returns all reserved stock of a snapshot and resets it to 'pending'."""
        results = {"total_items": 0, "deallocated": 0, "errors": 0, "details": []}
        for resolved in snapshot:
            if not resolved.allocated:
                continue
            results["total_items"] += 1
            outcome = self.deallocate_item(snapshot, resolved)
            results["details"].append(outcome)
            if outcome["success"]:
                results["deallocated"] += 1
            else:
                results["errors"] += 1

        snapshot.status = "pending"
        return results


def allocation_summary(snapshot: BomSnapshot) -> dict:
    """Allocation counts, percentage and the cost of allocated items."""
    items = list(snapshot)
    allocated = [r for r in items if r.allocated]
    total = len(items)
    return {
        "total_items": total,
        "allocated_items": len(allocated),
        "unallocated_items": total - len(allocated),
        "items_with_component": sum(1 for r in items if r.is_resolved),
        "items_without_component": sum(1 for r in items if not r.is_resolved),
        "allocation_percentage": round(len(allocated) / total * 100, 2) if total else 0,
        "total_allocated_cost": sum((r.cost for r in allocated), Decimal("0")),
    }
