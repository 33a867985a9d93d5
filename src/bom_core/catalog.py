"""
Part catalog query interface and the in-memory implementation.

The matcher and the cost aggregator only talk to a `PartCatalog`; the
SQLAlchemy-backed catalog in `store` implements the same protocol. Catalog
CSV exports (parts and alternatives) are loaded here as well.
"""

import csv
import datetime
import io
import logging
import math
from collections.abc import Iterable
from typing import Any, Protocol

import src.bom_core.constants as C
from src.bom_core.errors import CatalogError
from src.bom_core.types import ComponentAlternative, PartCatalogEntry
from src.bom_core.utils import parse_component_value, to_money

logger = logging.getLogger(__name__)


class PartCatalog(Protocol):
    """Read side of the part catalog. Matching lookups only return active parts."""

    def get(self, part_id: str) -> PartCatalogEntry | None: ...

    def find_by_manufacturer_part(self, code: str) -> PartCatalogEntry | None: ...

    def find_by_name_and_footprint(
        self, substr: str, footprint: str
    ) -> PartCatalogEntry | None: ...

    def find_by_spec_value(self, value: float, unit: str) -> PartCatalogEntry | None: ...

    def find_alternatives(
        self, part_id: str, min_score: float
    ) -> list[PartCatalogEntry]: ...

    def alternatives_for(
        self,
        part_id: str,
        min_compatibility: float | None = None,
        alternative_type: str | None = None,
        recommended_only: bool = False,
    ) -> list[ComponentAlternative]: ...


def spec_value_matches(specs: dict[str, Any], value: float, unit: str) -> bool:
    """True when a specification map holds the same numeric value and unit."""
    if specs.get("unit") != unit:
        return False
    try:
        spec_value = float(specs.get("value"))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False
    return math.isclose(spec_value, value, rel_tol=C.VALUE_MATCH_TOLERANCE)


class InMemoryCatalog:
    """
    A catalog held in plain dictionaries.

    Lookups return the first matching part in insertion order, so results are
    deterministic for a given catalog.
    """

    def __init__(
        self,
        parts: Iterable[PartCatalogEntry] = (),
        alternatives: Iterable[ComponentAlternative] = (),
    ):
        self._parts: dict[str, PartCatalogEntry] = {}
        self._alternatives: list[ComponentAlternative] = []
        for part in parts:
            self.add_part(part)
        for alt in alternatives:
            self.add_alternative(alt)

    def add_part(self, part: PartCatalogEntry) -> None:
        if part.id in self._parts:
            raise CatalogError(f"Duplicate part id: {part.id}")
        self._parts[part.id] = part

    def add_alternative(self, alt: ComponentAlternative) -> None:
        for part_id in (alt.original_id, alt.alternative_id):
            if part_id not in self._parts:
                raise CatalogError(f"Alternative references unknown part {part_id}")
        self._alternatives.append(alt)

    def __len__(self) -> int:
        return len(self._parts)

    def __iter__(self):
        return iter(self._parts.values())

    def _active(self) -> Iterable[PartCatalogEntry]:
        return (p for p in self._parts.values() if p.is_active)

    def get(self, part_id: str) -> PartCatalogEntry | None:
        return self._parts.get(part_id)

    def find_by_manufacturer_part(self, code: str) -> PartCatalogEntry | None:
        return next((p for p in self._active() if p.manufacturer_part == code), None)

    def find_by_name_and_footprint(
        self, substr: str, footprint: str
    ) -> PartCatalogEntry | None:
        needle = substr.lower()
        return next(
            (
                p
                for p in self._active()
                if needle in p.name.lower() and p.package == footprint
            ),
            None,
        )

    def find_by_spec_value(self, value: float, unit: str) -> PartCatalogEntry | None:
        return next(
            (p for p in self._active() if spec_value_matches(p.specifications, value, unit)),
            None,
        )

    def alternatives_for(
        self,
        part_id: str,
        min_compatibility: float | None = None,
        alternative_type: str | None = None,
        recommended_only: bool = False,
    ) -> list[ComponentAlternative]:
        """Alternatives ordered by compatibility, then recommendation."""
        found = [
            a
            for a in self._alternatives
            if a.original_id == part_id
            and (min_compatibility is None or a.compatibility_score >= min_compatibility)
            and (alternative_type is None or a.alternative_type == alternative_type)
            and (not recommended_only or a.is_recommended)
        ]
        return sorted(
            found, key=lambda a: (a.compatibility_score, a.is_recommended), reverse=True
        )

    def find_alternatives(self, part_id: str, min_score: float) -> list[PartCatalogEntry]:
        parts = (
            self._parts[a.alternative_id]
            for a in self.alternatives_for(part_id, min_compatibility=min_score)
        )
        return [p for p in parts if p.is_active]


# --- CSV Loading ---


def _parse_date(raw: str, row_num: int) -> datetime.date | None:
    if not raw:
        return None
    try:
        return datetime.date.fromisoformat(raw)
    except ValueError:
        raise CatalogError(f"Row {row_num}: invalid date {raw!r}") from None


def _parse_specs(row_clean: dict[str, str]) -> dict[str, Any]:
    """
    Builds the specification map from 'value'/'unit' columns.

    Accepts either a plain number plus unit ("10000", "Ω") or an engineering
    string ("10k", "100nF") that `parse_component_value` understands.
    """
    raw_value = row_clean.get("value", "")
    unit = row_clean.get("unit", "")
    if not raw_value:
        return {}
    specs: dict[str, Any] = {}
    try:
        specs["value"] = float(raw_value)
    except ValueError:
        parsed = parse_component_value(raw_value)
        if parsed is not None:
            return {"value": parsed[0], "unit": parsed[1]}
        specs["value"] = raw_value
    if unit:
        specs["unit"] = unit
    return specs


def parse_catalog_text(text: str) -> list[PartCatalogEntry]:
    """
    Parses a catalog CSV export.

    Expected columns: id, mpn, name, package, value, unit, unit_price, stock,
    lifecycle, category, manufacturer, status, eol_date, last_time_buy_date.
    Only id and name are required.

    Raises:
        CatalogError: On a row that cannot be turned into a valid part.
    """
    parts: list[PartCatalogEntry] = []
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))

    for row_num, row in enumerate(reader, start=2):
        row_clean = {str(k).lower().strip(): (v or "").strip() for k, v in row.items() if k}
        part_id = row_clean.get("id", "")
        name = row_clean.get("name", "")
        if not part_id or not name:
            raise CatalogError(f"Row {row_num}: 'id' and 'name' are required")

        try:
            part = PartCatalogEntry(
                id=part_id,
                manufacturer_part=row_clean.get("mpn", ""),
                name=name,
                package=row_clean.get("package", ""),
                specifications=_parse_specs(row_clean),
                unit_price=to_money(row_clean.get("unit_price")),
                stock_quantity=int(row_clean.get("stock") or 0),
                lifecycle_stage=(row_clean.get("lifecycle") or "active").lower(),
                category=row_clean.get("category") or None,
                manufacturer=row_clean.get("manufacturer", ""),
                status=(row_clean.get("status") or "active").lower(),
                eol_date=_parse_date(row_clean.get("eol_date", ""), row_num),
                last_time_buy_date=_parse_date(
                    row_clean.get("last_time_buy_date", ""), row_num
                ),
            )
        except ValueError as e:
            raise CatalogError(f"Row {row_num}: {e}") from e

        parts.append(part)

    return parts


def parse_alternatives_text(text: str) -> list[ComponentAlternative]:
    """
    Parses an alternatives CSV export.

    Expected columns: original_id, alternative_id, compatibility_score,
    alternative_type, is_recommended, notes.
    """
    alternatives: list[ComponentAlternative] = []
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))

    for row_num, row in enumerate(reader, start=2):
        row_clean = {str(k).lower().strip(): (v or "").strip() for k, v in row.items() if k}
        try:
            score = float(row_clean.get("compatibility_score", ""))
        except ValueError:
            raise CatalogError(f"Row {row_num}: invalid compatibility_score") from None
        if not 0.0 <= score <= 1.0:
            raise CatalogError(f"Row {row_num}: compatibility_score must be 0..1")

        alternatives.append(
            ComponentAlternative(
                original_id=row_clean.get("original_id", ""),
                alternative_id=row_clean.get("alternative_id", ""),
                compatibility_score=score,
                alternative_type=row_clean.get("alternative_type")
                or "functional_equivalent",
                is_recommended=row_clean.get("is_recommended", "").lower()
                in ("1", "true", "yes"),
                notes=row_clean.get("notes", ""),
            )
        )

    return alternatives


def load_catalog(
    parts_path: str, alternatives_path: str | None = None
) -> InMemoryCatalog:
    """Loads catalog CSV files from disk into an InMemoryCatalog."""
    with open(parts_path, encoding="utf-8-sig", newline="") as f:
        parts = parse_catalog_text(f.read())

    alternatives: list[ComponentAlternative] = []
    if alternatives_path:
        with open(alternatives_path, encoding="utf-8-sig", newline="") as f:
            alternatives = parse_alternatives_text(f.read())

    catalog = InMemoryCatalog(parts, alternatives)
    logger.info(f"Loaded catalog: {len(parts)} parts, {len(alternatives)} alternatives")
    return catalog
