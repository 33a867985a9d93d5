"""
Static knowledge base for the BOM engine.

This module serves as the central repository for:
1.  **Physical Constants:** SI prefix exponents per component family.
2.  **Column Aliases:** Header names accepted for each BOM field.
3.  **Lifecycle Vocabulary:** Stages, the at-risk subset and urgency ranks.
4.  **Resolution Methods:** Labels recorded by the matcher.
5.  **Costing Rules:** Default thresholds for optimisation suggestions.
"""

from typing import Any

# --- Physics & Standards ---

# Multipliers are kept as powers of ten so "100n" becomes float("100e-9"),
# which rounds to the same double as the literal 1e-7.

# Resistor exponents, keyed by the uppercased suffix. 'R' marks plain ohms ("100R").
RESISTOR_EXPONENTS = {
    "": 0,
    "R": 0,
    "K": 3,  # kilo
    "M": 6,  # Mega
}

# Capacitor exponents, keyed by the lowercased suffix.
# Includes 'u' (text), 'µ' (micro sign) and 'μ' (greek mu).
CAPACITOR_EXPONENTS = {
    "": 0,
    "p": -12,  # pico
    "n": -9,  # nano
    "u": -6,  # micro
    "µ": -6,
    "μ": -6,
    "m": -3,  # milli
}

# Inductor exponents. No pico inductors on our boards.
INDUCTOR_EXPONENTS = {
    "": 0,
    "n": -9,
    "u": -6,
    "µ": -6,
    "μ": -6,
    "m": -3,
}

UNIT_OHM = "Ω"
UNIT_FARAD = "F"
UNIT_HENRY = "H"

# Largest range we are willing to expand ("R1-R500").
MAX_RANGE_SPAN = 500

# --- Column Aliases ---
# Looked up case-insensitively; the first non-empty alias wins.

COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "reference": ("reference", "ref", "designator"),
    "value": ("value", "val"),
    "footprint": ("footprint", "package"),
    "quantity": ("qty", "quantity"),
    "manufacturer_part": ("mpn", "manufacturer part number", "part number"),
    "notes": ("notes", "note", "comment"),
}

# --- Lifecycle ---

LIFECYCLE_STAGES = ("active", "nrnd", "eol_announced", "eol", "obsolete")

# Stages that trigger a lifecycle-risk suggestion.
AT_RISK_STAGES = ("eol_announced", "eol", "obsolete")

URGENCY_LEVELS = ("low", "medium", "high", "critical")

# eol_announced parts closer than this to their EOL date are 'high'.
EOL_IMMINENT_MONTHS = 6
LAST_TIME_BUY_WINDOW_DAYS = 30

# --- Matching ---

METHOD_MANUFACTURER_PART = "manufacturer_part"
METHOD_VALUE_FOOTPRINT = "value_footprint"
METHOD_PARSED_VALUE = "parsed_value"
METHOD_UNRESOLVED = "unresolved"

RESOLUTION_METHODS = (
    METHOD_MANUFACTURER_PART,
    METHOD_VALUE_FOOTPRINT,
    METHOD_PARSED_VALUE,
    METHOD_UNRESOLVED,
)

# Relative tolerance used when comparing parsed values (100n vs 0.1u).
VALUE_MATCH_TOLERANCE = 1e-9

# --- Comparison ---

CHANGE_COMPONENT = "component_changed"
CHANGE_QUANTITY = "quantity_changed"
CHANGE_NOTES = "notes_changed"

# Cost trend is 'stable' while the change stays within this share of the first cost.
TREND_STABILITY_BAND = 0.05

# Decimal places kept on monetary values.
MONEY_PLACES = 4

# --- Costing Rules ---

UNCATEGORIZED = "Uncategorized"

COSTING_CONFIG: dict[str, Any] = {
    "expensive_threshold": 10.0,  # unit price above which alternatives are checked
    "min_compatibility": 0.85,
}

# Display order for category rollups. Unknown categories sort last.
CATEGORY_ORDER = [
    "ICs",
    "Crystals/Oscillators",
    "Optoelectronics",
    "Transistors",
    "Diodes",
    "Inductors",
    "Capacitors",
    "Resistors",
    "Connectors",
    "Switches",
    "Hardware/Misc",
    UNCATEGORIZED,
]

# Designator prefixes, longest first so "LED" wins over "L".
PREFIX_CATEGORIES = [
    ("LED", "Optoelectronics"),
    ("IC", "ICs"),
    ("SW", "Switches"),
    ("FB", "Inductors"),
    ("TP", "Hardware/Misc"),
    ("R", "Resistors"),
    ("C", "Capacitors"),
    ("L", "Inductors"),
    ("D", "Diodes"),
    ("Q", "Transistors"),
    ("U", "ICs"),
    ("X", "Crystals/Oscillators"),
    ("Y", "Crystals/Oscillators"),
    ("J", "Connectors"),
    ("P", "Connectors"),
    ("F", "Hardware/Misc"),
]

# --- AI Providers ---

AI_PROVIDERS = ("claude", "ollama")
CLAUDE_API_URL = "https://api.anthropic.com/v1/messages"
CLAUDE_API_VERSION = "2023-06-01"
OLLAMA_DEFAULT_URL = "http://localhost:11434"
