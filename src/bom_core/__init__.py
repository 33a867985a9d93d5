"""
BOM Engine (Package Entry Point).

Exposes the core logic and data structures for BOM ingestion, component
resolution, snapshot comparison, cost analysis and stock allocation.
"""

from .advisor import (
    ClaudeProvider,
    OllamaProvider,
    SupportsFreeformPrompt,
    make_ai_provider,
    suggest_categories,
)
from .allocation import StockAllocator, allocation_summary
from .catalog import InMemoryCatalog, PartCatalog, load_catalog, parse_catalog_text
from .classifier import categorize_designator, normalize_value
from .comparison import (
    analyze_cost_trend,
    calculate_bom_cost,
    compare_snapshots,
    find_component_usage,
)
from .config import EngineConfig
from .costing import BomCostAggregator
from .errors import (
    BomError,
    CatalogError,
    DuplicateDesignatorError,
    ImportFailedError,
    InvalidRangeError,
)
from .lifecycle import (
    LifecycleMonitor,
    compatibility_score,
    lifecycle_summary,
    urgency_level,
)
from .loader import process_input_data
from .matcher import ComponentMatcher, resolution_report
from .parser import parse_bom_record, parse_csv_bom, parse_csv_text
from .store import BomStore, SqlCatalog
from .types import (
    BomLineItem,
    BomSnapshot,
    ComponentAlternative,
    ParseStats,
    PartCatalogEntry,
    ResolvedBomItem,
    create_empty_stats,
)
from .utils import (
    condense_refs,
    expand_refs,
    float_to_search_string,
    natural_sort_key,
    parse_component_value,
)

__all__ = [
    # types
    "BomLineItem",
    "BomSnapshot",
    "ComponentAlternative",
    "ParseStats",
    "PartCatalogEntry",
    "ResolvedBomItem",
    "create_empty_stats",
    # errors
    "BomError",
    "CatalogError",
    "DuplicateDesignatorError",
    "ImportFailedError",
    "InvalidRangeError",
    # config
    "EngineConfig",
    # parser
    "parse_bom_record",
    "parse_csv_bom",
    "parse_csv_text",
    # catalog
    "InMemoryCatalog",
    "PartCatalog",
    "load_catalog",
    "parse_catalog_text",
    # matcher
    "ComponentMatcher",
    "resolution_report",
    # comparison
    "analyze_cost_trend",
    "calculate_bom_cost",
    "compare_snapshots",
    "find_component_usage",
    # costing
    "BomCostAggregator",
    # allocation
    "StockAllocator",
    "allocation_summary",
    # lifecycle
    "LifecycleMonitor",
    "compatibility_score",
    "lifecycle_summary",
    "urgency_level",
    # advisor
    "ClaudeProvider",
    "OllamaProvider",
    "SupportsFreeformPrompt",
    "make_ai_provider",
    "suggest_categories",
    # store
    "BomStore",
    "SqlCatalog",
    # loader
    "process_input_data",
    # classifier
    "categorize_designator",
    "normalize_value",
    # utils
    "condense_refs",
    "expand_refs",
    "float_to_search_string",
    "natural_sort_key",
    "parse_component_value",
]
