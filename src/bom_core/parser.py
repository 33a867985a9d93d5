"""
File ingestion and parsing logic for tabular BOMs.

This module turns raw CSV rows (KiCad/Altium style exports) into immutable
`BomLineItem`s. It handles header aliases, designator lists and ranges, and
collects itemised diagnostics instead of raising on bad rows.
"""

import csv
import io
import logging
from collections.abc import Mapping

import src.bom_core.constants as C
from src.bom_core.errors import InvalidRangeError
from src.bom_core.types import BomLineItem, ParseStats, create_empty_stats
from src.bom_core.utils import expand_refs

# Initialize Logger
logger = logging.getLogger(__name__)


def _clean_row(row: Mapping[str | None, str | None]) -> dict[str, str]:
    """Lowercases headers and drops overflow columns (None keys)."""
    return {
        str(k).lower().strip(): (v or "").strip()
        for k, v in row.items()
        if k
    }


def _pick(row_clean: dict[str, str], field: str) -> str:
    """Returns the first non-empty value among the field's aliases."""
    for alias in C.COLUMN_ALIASES[field]:
        value = row_clean.get(alias)
        if value:
            return value
    return ""


def split_designators(ref_raw: str, stats: ParseStats | None = None) -> list[str]:
    """
    Splits a designator field on commas and expands ranges.

    "C1, C3-C5" -> ['C1', 'C3', 'C4', 'C5']. Invalid ranges are recorded in
    `stats["errors"]` (when given) and skipped; the remaining tokens are kept.
    """
    refs: list[str] = []
    for token in ref_raw.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            refs.extend(expand_refs(token))
        except InvalidRangeError as e:
            logger.warning(f"Skipping invalid designator range {e}")
            if stats is not None:
                stats["errors"].append(str(e))
    return refs


def parse_bom_record(
    row: Mapping[str | None, str | None], stats: ParseStats | None = None
) -> list[BomLineItem]:
    """
    Converts one raw tabular row into zero or more line items.

    Each expanded designator becomes its own item with quantity 1: a row
    listing "C1-C3" means three placements of the same part. Value, footprint,
    MPN and notes are copied verbatim onto every item.

    Args:
        row: Column name -> cell text. Header case and aliases are tolerated.
        stats: Optional stats object collecting diagnostics.

    Returns:
        The line items. Empty when the row has no designator.
    """
    row_clean = _clean_row(row)
    ref_raw = _pick(row_clean, "reference")

    if not ref_raw:
        if stats is not None:
            stats["skipped_rows"] += 1
        return []

    value = _pick(row_clean, "value")
    footprint = _pick(row_clean, "footprint")
    mpn = _pick(row_clean, "manufacturer_part") or None
    notes = _pick(row_clean, "notes") or None

    return [
        BomLineItem(
            reference=ref,
            value=value,
            footprint=footprint,
            manufacturer_part=mpn,
            quantity=1,
            notes=notes,
        )
        for ref in split_designators(ref_raw, stats)
    ]


def parse_csv_text(
    text: str, source_name: str = "BOM"
) -> tuple[list[BomLineItem], ParseStats]:
    """
    Parses comma-delimited BOM text with a header row.

    Duplicate designators are reported in `stats["duplicates"]` but every item
    is still returned; building a snapshot from them is what rejects the BOM.

    Args:
        text: The CSV content (UTF-8, optional BOM signature already decoded).
        source_name: Label used in log messages.

    Returns:
        A tuple of (line items in file order, parsing statistics).
    """
    stats = create_empty_stats()
    items: list[BomLineItem] = []
    seen: set[str] = set()

    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    for row in reader:
        stats["rows_read"] += 1
        for item in parse_bom_record(row, stats):
            if item.reference in seen and item.reference not in stats["duplicates"]:
                stats["duplicates"].append(item.reference)
            seen.add(item.reference)
            items.append(item)

    stats["items_created"] = len(items)

    logger.info(
        f"Parsed {source_name}: {stats['rows_read']} rows, {stats['items_created']} items, "
        f"{stats['skipped_rows']} skipped, {len(stats['errors'])} errors"
    )
    if stats["duplicates"]:
        logger.warning(
            f"{source_name} repeats designators: {', '.join(stats['duplicates'])}"
        )

    return items, stats


def parse_csv_bom(
    filepath: str, source_name: str | None = None
) -> tuple[list[BomLineItem], ParseStats]:
    """
    Parses a CSV BOM file.

    Args:
        filepath: Path to the CSV file.
        source_name: Label for the source. Defaults to the path.

    Returns:
        A tuple of (line items, parsing statistics).
    """
    with open(filepath, encoding="utf-8-sig", newline="") as f:
        text = f.read()
    return parse_csv_text(text, source_name=source_name or filepath)
