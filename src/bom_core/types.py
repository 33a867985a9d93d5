"""
Type definitions and shared data structures for the BOM engine.

Entities (catalog parts, line items, snapshots) are dataclasses. Report
structures handed to the UI and exporters are TypedDicts so they serialize
and render like the plain dictionaries they are.
"""

import datetime
from collections.abc import Iterator
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, TypedDict

import src.bom_core.constants as C
from src.bom_core.errors import DuplicateDesignatorError
from src.bom_core.utils import natural_sort_key, to_money

# --- Entities ---


@dataclass
class PartCatalogEntry:
    """
    A purchasable/stockable part.

    `status` controls matching ("active" parts only), while `lifecycle_stage`
    tracks market availability. An obsolete part may still be active in our
    catalog, which is exactly what the lifecycle-risk check reports on.
    """

    id: str
    manufacturer_part: str
    name: str
    package: str = ""
    specifications: dict[str, Any] = field(default_factory=dict)
    unit_price: Decimal = Decimal("0")
    stock_quantity: int = 0
    lifecycle_stage: str = "active"
    category: str | None = None
    manufacturer: str = ""
    status: str = "active"
    eol_date: datetime.date | None = None
    last_time_buy_date: datetime.date | None = None

    def __post_init__(self) -> None:
        self.unit_price = to_money(self.unit_price)
        if self.unit_price < 0:
            raise ValueError(f"Part {self.id}: unit price must be >= 0")
        if self.stock_quantity < 0:
            raise ValueError(f"Part {self.id}: stock quantity must be >= 0")
        if self.lifecycle_stage not in C.LIFECYCLE_STAGES:
            raise ValueError(
                f"Part {self.id}: unknown lifecycle stage {self.lifecycle_stage!r}"
            )

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class ComponentAlternative:
    """A catalog-recorded substitute for another part."""

    original_id: str
    alternative_id: str
    compatibility_score: float
    alternative_type: str = "functional_equivalent"
    is_recommended: bool = False
    notes: str = ""

    @property
    def compatibility_level(self) -> str:
        if self.compatibility_score >= 0.95:
            return "Excellent"
        if self.compatibility_score >= 0.85:
            return "Good"
        if self.compatibility_score >= 0.70:
            return "Fair"
        return "Poor"


@dataclass(frozen=True)
class BomLineItem:
    """One placement on the board, as read from the BOM file."""

    reference: str
    value: str = ""
    footprint: str = ""
    manufacturer_part: str | None = None
    quantity: int = 1
    notes: str | None = None

    def __post_init__(self) -> None:
        if not self.reference:
            raise ValueError("A line item needs a reference designator")
        if self.quantity < 1:
            raise ValueError(f"{self.reference}: quantity must be >= 1")


@dataclass
class ResolvedBomItem:
    """A line item bound to a catalog part (or explicitly unresolved)."""

    item: BomLineItem
    part: PartCatalogEntry | None = None
    method: str = C.METHOD_UNRESOLVED
    allocated: bool = False

    @property
    def designator(self) -> str:
        return self.item.reference

    @property
    def quantity(self) -> int:
        return self.item.quantity

    @property
    def part_id(self) -> str | None:
        return self.part.id if self.part else None

    @property
    def unit_price(self) -> Decimal:
        return self.part.unit_price if self.part else Decimal("0")

    @property
    def cost(self) -> Decimal:
        """Unresolved items contribute nothing."""
        return self.unit_price * self.quantity

    @property
    def is_resolved(self) -> bool:
        return self.part is not None


class BomSnapshot:
    """
    One immutable version of a project's BOM.

    Items are fixed at construction; only their allocation flags (and the
    derived `status`) change afterwards. Designators must be unique; a repeated
    designator rejects the whole snapshot.
    """

    def __init__(
        self,
        items: list[ResolvedBomItem],
        version: str = "1",
        project: str | None = None,
        created_at: datetime.datetime | None = None,
    ):
        seen: set[str] = set()
        duplicates: list[str] = []
        for resolved in items:
            if resolved.designator in seen and resolved.designator not in duplicates:
                duplicates.append(resolved.designator)
            seen.add(resolved.designator)
        if duplicates:
            raise DuplicateDesignatorError(sorted(duplicates, key=natural_sort_key))

        self._items = tuple(items)
        self.version = version
        self.project = project
        self.created_at = created_at or datetime.datetime.now(datetime.timezone.utc)
        self.status = "pending"

    @property
    def items(self) -> tuple[ResolvedBomItem, ...]:
        return self._items

    def __iter__(self) -> Iterator[ResolvedBomItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def by_designator(self) -> dict[str, ResolvedBomItem]:
        return {resolved.designator: resolved for resolved in self._items}

    def __repr__(self) -> str:
        return (
            f"BomSnapshot(version={self.version!r}, project={self.project!r}, "
            f"items={len(self._items)})"
        )


# --- Reports ---


class ParseStats(TypedDict):
    """
    Tracking metrics and diagnostics for a single BOM parse.

    Attributes:
        rows_read: Data rows read (header excluded).
        items_created: Line items produced after range expansion.
        skipped_rows: Rows without a designator. Not failures.
        errors: Itemised problems, e.g. "C5-C1: range end 1 is lower than start 5".
        duplicates: Designators that appeared more than once.
    """

    rows_read: int
    items_created: int
    skipped_rows: int
    errors: list[str]
    duplicates: list[str]


class ResolutionDetail(TypedDict):
    designator: str
    value: str
    method: str
    part_id: str | None


class ResolutionReport(TypedDict):
    """Which strategy resolved each item, plus per-strategy counts."""

    total_items: int
    resolved: int
    unresolved: list[str]
    by_method: dict[str, int]
    details: list[ResolutionDetail]


class AddedEntry(TypedDict):
    designator: str
    part: PartCatalogEntry | None
    quantity: int
    cost_impact: Decimal


class RemovedEntry(TypedDict):
    designator: str
    part: PartCatalogEntry | None
    quantity: int
    cost_impact: Decimal


class ItemState(TypedDict):
    part: PartCatalogEntry | None
    quantity: int
    cost: Decimal


class ModifiedEntry(TypedDict):
    designator: str
    old: ItemState
    new: ItemState
    cost_impact: Decimal
    changes: list[str]


class UnchangedEntry(TypedDict):
    designator: str
    part: PartCatalogEntry | None
    quantity: int


class CostImpact(TypedDict):
    bom1_total: Decimal
    bom2_total: Decimal
    difference: Decimal
    percentage_change: Decimal


class ComparisonResult(TypedDict):
    added: list[AddedEntry]
    removed: list[RemovedEntry]
    modified: list[ModifiedEntry]
    unchanged: list[UnchangedEntry]
    cost_impact: CostImpact


class CategoryRollup(TypedDict):
    count: int
    cost: Decimal


class CostSummary(TypedDict):
    total_cost: Decimal
    total_components: int
    by_category: dict[str, CategoryRollup]


class Suggestion(TypedDict, total=False):
    """
    One optimisation suggestion. Keys beyond `type`, `designator` and `notes`
    depend on the type (cost_optimization, lifecycle_risk, stock_shortage).
    """

    type: str
    designator: str
    notes: str
    current_part: PartCatalogEntry
    suggested_part: PartCatalogEntry
    potential_savings: Decimal
    compatibility_score: float
    part: PartCatalogEntry
    lifecycle_stage: str
    risk_level: str
    required_quantity: int
    available_stock: int
    shortage: int


class CostAnalysis(TypedDict):
    summary: CostSummary
    suggestions: list[Suggestion]


class AllocationOutcome(TypedDict, total=False):
    designator: str
    success: bool
    reason: str
    message: str
    part_id: str
    required: int
    available: int


class ShortageEntry(TypedDict):
    designator: str
    part_id: str
    required: int
    available: int


class AllocationReport(TypedDict):
    total_items: int
    allocated: int
    already_allocated: int
    no_component: int
    insufficient_stock: int
    details: list[AllocationOutcome]
    insufficient_stock_items: list[ShortageEntry]


class LifecycleAlert(TypedDict):
    part_id: str
    alert_type: str
    severity: str
    title: str
    message: str
    affected_projects: list[str]


def create_empty_stats() -> ParseStats:
    """Factory for a fresh stats dictionary."""
    return {
        "rows_read": 0,
        "items_created": 0,
        "skipped_rows": 0,
        "errors": [],
        "duplicates": [],
    }
