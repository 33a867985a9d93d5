"""
Heuristic categorization of BOM line items.

Guesses what a component *is* (Resistor, Capacitor, IC...) from its reference
designator and value. Used as the offline fallback when no AI provider is
configured, and to suggest catalog categories for unresolved items.
"""

import re

import src.bom_core.constants as C
from src.bom_core.types import BomLineItem
from src.bom_core.utils import float_to_search_string, parse_component_value

_PREFIX_RE = re.compile(r"^([A-Z]+)")

# Value keywords that override an ambiguous prefix (e.g. "P1" carrying a regulator).
VALUE_HINTS = [
    (re.compile(r"\b(LM|TL|NE|LT|MAX|ATMEGA|STM32|ESP32|74HC|CD4)\w*", re.I), "ICs"),
    (re.compile(r"\b(BC|2N|BSS|IRF|AO)\d+", re.I), "Transistors"),
    (re.compile(r"\b(1N|BAT|BZX|SS)\d+", re.I), "Diodes"),
    (re.compile(r"\bMHz\b", re.I), "Crystals/Oscillators"),
]


def designator_prefix(ref: str) -> str:
    """Leading letters of a designator, upper-cased ("led12" -> "LED")."""
    match = _PREFIX_RE.match(ref.strip().upper())
    return match.group(1) if match else ""


def categorize_designator(ref: str, value: str = "") -> str:
    """
    Classifies a component from its Reference Designator and Value.

    Prefixes are checked longest first so "LED3" is Optoelectronics rather
    than an Inductor. When the prefix is unknown, well-known part number
    families in the value are tried before giving up.

    Args:
        ref: The reference designator (e.g., "R1", "IC4").
        value: The component value (e.g., "10k", "NE5532").

    Returns:
        A category name from CATEGORY_ORDER; "Uncategorized" when nothing fits.
    """
    prefix = designator_prefix(ref)
    if prefix:
        for known, category in C.PREFIX_CATEGORIES:
            if prefix == known:
                return category
        for known, category in C.PREFIX_CATEGORIES:
            if prefix.startswith(known):
                return category

    for pattern, category in VALUE_HINTS:
        if pattern.search(value or ""):
            return category

    return C.UNCATEGORIZED


def normalize_value(category: str, value: str) -> str:
    """
    Standardizes passive values for display and search ("4.7K" becomes "4.7k",
    "0.1uF" becomes "100n").
    """
    clean_val = value.strip()
    if category not in ("Resistors", "Capacitors", "Inductors"):
        return clean_val
    # Physical dimensions are not electrical values.
    if "mm" in clean_val.lower():
        return clean_val

    parsed = parse_component_value(clean_val)
    if parsed is None:
        return clean_val
    return float_to_search_string(parsed[0])


def categorize_items(items: list[BomLineItem]) -> dict[str, str]:
    """Maps each designator to its heuristic category."""
    return {item.reference: categorize_designator(item.reference, item.value) for item in items}
