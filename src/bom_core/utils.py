"""
Utility functions for string manipulation and numeric parsing.

This module handles the low-level formatting logic, including:
- Natural sorting (R1, R2, R10).
- Range expansion (C1-C5 -> C1, C2...) and the reverse condensing.
- Component value parsing (4.7k -> 4700 Ω, 100nF -> 1e-7 F).
- Money normalisation and SI display strings.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any

import src.bom_core.constants as C
from src.bom_core.errors import InvalidRangeError

# Captures: Prefix1, StartNum, Prefix2(Optional), EndNum
RANGE_PATTERN = re.compile(r"^([A-Za-z]+)(\d+)\s*-\s*([A-Za-z]+)?(\d+)$")

_NUMBER = r"(\d+(?:\.\d+)?)"

# Tried in order, first match wins. ASCII keeps case folding away from look-alikes (e.g. the Kelvin sign).
VALUE_PATTERNS = [
    (
        re.compile(rf"^{_NUMBER}(k|R|M)?(?:Ω|ohm)?$", re.IGNORECASE | re.ASCII),
        C.RESISTOR_EXPONENTS,
        str.upper,
        C.UNIT_OHM,
    ),
    (
        re.compile(rf"^{_NUMBER}(p|n|u|µ|μ|m)?F$", re.IGNORECASE | re.ASCII),
        C.CAPACITOR_EXPONENTS,
        str.lower,
        C.UNIT_FARAD,
    ),
    (
        re.compile(rf"^{_NUMBER}(n|u|µ|μ|m)?H$", re.IGNORECASE | re.ASCII),
        C.INDUCTOR_EXPONENTS,
        str.lower,
        C.UNIT_HENRY,
    ),
]


def natural_sort_key(ref: str) -> list[Any]:
    """
    Generates a sort key for natural alphanumeric sorting.

    Splits strings into text and numeric chunks so that 'R10' comes
    after 'R2', rather than 'R1'.

    Args:
        ref: The reference designator string (e.g., "R10").

    Returns:
        A list of mixed types (int/str) suitable for sort keys.
    """
    return [
        (0, int(text)) if text.isdigit() else (1, text.upper())
        for text in re.split(r"(\d+)", ref)
    ]


def deduplicate_refs(refs: list[str]) -> list[str]:
    """Removes duplicates and applies natural sorting to a reference list."""
    if not refs:
        return []
    return sorted(set(refs), key=natural_sort_key)


def expand_refs(ref_raw: str) -> list[str]:
    """
    Explodes a single range token into individual references.

    Handles formats like 'C1-C5' or 'C1-5'. Bounds are inclusive. Tokens that
    are not ranges are returned unchanged as a single-item list.

    Args:
        ref_raw: One comma-free designator token (e.g., "R1-4").

    Returns:
        A list of individual references (e.g., ['R1', 'R2', 'R3', 'R4']).

    Raises:
        InvalidRangeError: If the range is reversed, mixes prefixes, or is
            larger than MAX_RANGE_SPAN.
    """
    ref_raw = ref_raw.strip()
    m = RANGE_PATTERN.match(ref_raw)
    if not m:
        return [ref_raw] if ref_raw else []

    prefix = m.group(1)
    start = int(m.group(2))
    end_prefix = m.group(3)
    end = int(m.group(4))

    if end_prefix and end_prefix.upper() != prefix.upper():
        raise InvalidRangeError(
            ref_raw, f"range mixes prefixes {prefix} and {end_prefix}"
        )
    if end < start:
        raise InvalidRangeError(
            ref_raw, f"range end {end} is lower than start {start}"
        )
    if end - start + 1 > C.MAX_RANGE_SPAN:
        raise InvalidRangeError(
            ref_raw, f"range spans more than {C.MAX_RANGE_SPAN} designators"
        )

    return [f"{prefix}{i}" for i in range(start, end + 1)]


def condense_refs(refs: list[str]) -> str:
    """
    Condenses a list of references into a human-readable range string.

    Example:
        Input:  ['R1', 'R2', 'R3', 'C1', 'Q3', 'Q4']
        Output: 'C1, Q3-Q4, R1-R3'
    """
    if not refs:
        return ""

    pattern = re.compile(r"^([a-zA-Z]+)(\d+)$")
    groups: dict[str, list[int]] = {}
    unparseable = []

    for r in refs:
        m = pattern.match(r)
        if m:
            groups.setdefault(m.group(1), []).append(int(m.group(2)))
        else:
            unparseable.append(r)

    result_parts = sorted(unparseable)

    for prefix in sorted(groups):
        nums = sorted(set(groups[prefix]))
        start = prev = nums[0]
        for n in nums[1:] + [None]:
            if n is not None and n == prev + 1:
                prev = n
                continue
            if start == prev:
                result_parts.append(f"{prefix}{start}")
            else:
                result_parts.append(f"{prefix}{start}-{prefix}{prev}")
            if n is not None:
                start = prev = n

    return ", ".join(result_parts)


def parse_component_value(val_str: str | None) -> tuple[float, str] | None:
    """
    Reduces a component value to its base SI unit.

    Recognises three families, tried in order (first match wins):
    resistors ('10k', '4.7k', '100R', '1M ohm'), capacitors ('100nF', '10uF',
    '22pF') and inductors ('10uH', '100mH'). Spaces are ignored.

    Args:
        val_str: The raw value string from the BOM.

    Returns:
        (value, unit) with unit one of 'Ω', 'F', 'H', or None when the string
        is not a plain passive value (e.g. 'red LED', 'TL072').
    """
    if not val_str:
        return None

    compact = val_str.replace(" ", "")

    for pattern, exponents, fold, unit in VALUE_PATTERNS:
        m = pattern.match(compact)
        if not m:
            continue
        suffix = fold(m.group(2) or "")
        exponent = exponents[suffix]
        return float(f"{m.group(1)}e{exponent}"), unit

    return None


def to_money(value: Any) -> Decimal:
    """
    Normalises prices to Decimal.

    Floats go through their repr so 0.1 stays 0.1 rather than the binary
    approximation. None and empty strings count as zero.
    """
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a monetary amount: {value!r}") from None


def quantize_money(value: Decimal) -> Decimal:
    """Rounds to MONEY_PLACES fractional digits for display and percentages."""
    return value.quantize(Decimal(1).scaleb(-C.MONEY_PLACES))


def float_to_search_string(val: float | None) -> str:
    """
    Converts a float back to a standard engineering string (e.g., '1.5k').

    Args:
        val: The float value in base units (e.g., 1500.0).

    Returns:
        A string formatted with SI suffixes (M, k, m, u, n, p).
        Returns empty string if val is None.
    """
    if val is None:
        return ""

    val = float(val)

    for suffix, multiplier in [("M", 1e6), ("k", 1e3)]:
        if val >= multiplier:
            reduced = round(val / multiplier, 6)
            if reduced.is_integer():
                return f"{int(reduced)}{suffix}"
            return f"{reduced:g}{suffix}"

    if 0 < val < 1.0:
        for suffix, multiplier in [("m", 1e-3), ("u", 1e-6), ("n", 1e-9), ("p", 1e-12)]:
            if val >= multiplier * 0.999999:
                reduced = round(val / multiplier, 6)
                if reduced.is_integer():
                    return f"{int(reduced)}{suffix}"
                return f"{reduced:g}{suffix}"

    val = round(val, 6)
    if val.is_integer():
        return str(int(val))
    return str(val)


def format_component_value(parsed: tuple[float, str] | None) -> str:
    """'(4700.0, "Ω")' -> '4.7kΩ'. Empty string for unparseable values."""
    if parsed is None:
        return ""
    value, unit = parsed
    return f"{float_to_search_string(value)}{unit}"
