"""
Cost rollups and optimisation suggestions for a single snapshot.

Three independent checks run over every resolved item:
- cost optimisation: a cheaper, compatible alternative exists for an expensive part.
- lifecycle risk: the part is eol_announced, eol or obsolete.
- stock shortage: stock on hand is below the required quantity.

An item can therefore produce zero to three suggestions (more than one cost
suggestion when several alternatives qualify).
"""

import datetime
import logging
from decimal import Decimal

import src.bom_core.constants as C
from src.bom_core.catalog import PartCatalog
from src.bom_core.comparison import calculate_bom_cost
from src.bom_core.config import EngineConfig
from src.bom_core.lifecycle import is_at_risk, urgency_level
from src.bom_core.types import (
    BomSnapshot,
    CategoryRollup,
    CostAnalysis,
    CostSummary,
    ResolvedBomItem,
    Suggestion,
)
from src.bom_core.utils import to_money

logger = logging.getLogger(__name__)


def _category_rank(name: str) -> tuple[int, str]:
    try:
        return (C.CATEGORY_ORDER.index(name), name)
    except ValueError:
        return (len(C.CATEGORY_ORDER) - 1, name)


def _rollup(items: list[ResolvedBomItem]) -> dict[str, CategoryRollup]:
    """Quantity and cost per category, ordered by CATEGORY_ORDER."""
    groups: dict[str, CategoryRollup] = {}
    for resolved in items:
        name = (resolved.part.category if resolved.part else None) or C.UNCATEGORIZED
        group = groups.setdefault(name, {"count": 0, "cost": Decimal("0")})
        group["count"] += resolved.quantity
        group["cost"] += resolved.cost
    return {name: groups[name] for name in sorted(groups, key=_category_rank)}


class BomCostAggregator:
    """
    Computes totals and suggestions for a snapshot against a catalog.

    Args:
        catalog: Where alternatives are looked up.
        config: Thresholds (expensive part price, minimum compatibility).
        today: Reference date for lifecycle urgency. Defaults to the current date
            at call time; pass it explicitly for reproducible reports.
    """

    def __init__(
        self,
        catalog: PartCatalog,
        config: EngineConfig | None = None,
        today: datetime.date | None = None,
    ):
        self.catalog = catalog
        self.config = config or EngineConfig()
        self.today = today

    def _today(self) -> datetime.date:
        return self.today or datetime.date.today()

    def summarize(self, snapshot: BomSnapshot) -> CostSummary:
        """Total cost and per-category rollup. Unresolved items land in Uncategorized."""
        items = list(snapshot)
        return {
            "total_cost": calculate_bom_cost(snapshot),
            "total_components": sum(r.quantity for r in items),
            "by_category": _rollup(items),
        }

    def bom_summary(self, snapshot: BomSnapshot) -> dict:
        """Like `summarize`, restricted to allocated items, with allocation counts."""
        allocated = [r for r in snapshot if r.allocated and r.is_resolved]
        return {
            "total_items": len(snapshot),
            "allocated_items": len(allocated),
            "total_components": sum(r.quantity for r in allocated),
            "total_cost": sum((r.cost for r in allocated), Decimal("0")),
            "by_category": _rollup(allocated),
        }

    def _cost_suggestions(self, resolved: ResolvedBomItem) -> list[Suggestion]:
        part = resolved.part
        if part is None or part.unit_price <= to_money(self.config.expensive_threshold):
            return []

        suggestions: list[Suggestion] = []
        for alt in self.catalog.alternatives_for(
            part.id, min_compatibility=self.config.min_compatibility
        ):
            alt_part = self.catalog.get(alt.alternative_id)
            if alt_part is None or not alt_part.is_active:
                continue
            if alt_part.unit_price >= part.unit_price:
                continue
            suggestions.append(
                {
                    "type": "cost_optimization",
                    "designator": resolved.designator,
                    "current_part": part,
                    "suggested_part": alt_part,
                    "potential_savings": (part.unit_price - alt_part.unit_price)
                    * resolved.quantity,
                    "compatibility_score": alt.compatibility_score,
                    "notes": f"Consider replacing {part.name} with {alt_part.name}",
                }
            )
        return suggestions

    def _lifecycle_suggestion(self, resolved: ResolvedBomItem) -> Suggestion | None:
        part = resolved.part
        if part is None or not is_at_risk(part):
            return None
        return {
            "type": "lifecycle_risk",
            "designator": resolved.designator,
            "part": part,
            "lifecycle_stage": part.lifecycle_stage,
            "risk_level": urgency_level(part, self._today()),
            "notes": f"Component is {part.lifecycle_stage}",
        }

    def _stock_suggestion(self, resolved: ResolvedBomItem) -> Suggestion | None:
        part = resolved.part
        if part is None or part.stock_quantity >= resolved.quantity:
            return None
        return {
            "type": "stock_shortage",
            "designator": resolved.designator,
            "part": part,
            "required_quantity": resolved.quantity,
            "available_stock": part.stock_quantity,
            "shortage": resolved.quantity - part.stock_quantity,
            "notes": "Insufficient stock for production",
        }

    def suggestions(self, snapshot: BomSnapshot) -> list[Suggestion]:
        """All optimisation suggestions, in snapshot order."""
        found: list[Suggestion] = []
        for resolved in snapshot:
            found.extend(self._cost_suggestions(resolved))
            for check in (self._lifecycle_suggestion, self._stock_suggestion):
                suggestion = check(resolved)
                if suggestion is not None:
                    found.append(suggestion)
        return found

    def analyze(self, snapshot: BomSnapshot) -> CostAnalysis:
        analysis: CostAnalysis = {
            "summary": self.summarize(snapshot),
            "suggestions": self.suggestions(snapshot),
        }
        logger.info(
            f"Cost analysis for {snapshot.version}: total {analysis['summary']['total_cost']}, "
            f"{len(analysis['suggestions'])} suggestions"
        )
        return analysis
