"""Length unit naming for kernel-reported unit scales.

The kernel reports the document length unit as a scale to meters; this
module maps well-known scales back to short unit names.
"""

from __future__ import annotations

import math
from typing import Optional

# Known length units as scale to meters, in lookup order
LENGTH_UNITS = {
    "m": 1.0,
    "mm": 0.001,
    "cm": 0.01,
    "in": 0.0254,
    "ft": 0.3048,
}

UNKNOWN_UNIT = "unknown"


def approx_equal(a: float, b: float, epsilon: float = 1e-9) -> bool:
    return abs(a - b) <= epsilon


def unit_name_from_scale(scale_to_meters: float) -> str:
    """Return the short unit name for a scale to meters.

    Examples:
        >>> unit_name_from_scale(0.001)
        'mm'
        >>> unit_name_from_scale(0.5)
        'unknown'
    """
    if not isinstance(scale_to_meters, (int, float)) or not math.isfinite(scale_to_meters):
        return UNKNOWN_UNIT
    for name, scale in LENGTH_UNITS.items():
        if approx_equal(scale_to_meters, scale):
            return name
    return UNKNOWN_UNIT


def is_valid_scale(value: object) -> bool:
    """True for a finite, strictly positive numeric scale."""
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


def normalize_unit_name(unit: str) -> str:
    """Normalize a unit name as reported by STEP/IGES or OCCT.

    Examples:
        >>> normalize_unit_name("MILLIMETRE")
        'mm'
        >>> normalize_unit_name("INCH")
        'in'
    """
    unit = unit.strip().lower()

    mappings = {
        "millimetre": "mm",
        "millimeter": "mm",
        "metre": "m",
        "meter": "m",
        "centimetre": "cm",
        "centimeter": "cm",
        "inch": "in",
        "inches": "in",
        "foot": "ft",
        "feet": "ft",
    }

    return mappings.get(unit, unit)


def scale_from_unit_name(unit: str) -> Optional[float]:
    """Scale to meters for a unit name, or None when the unit is unknown."""
    return LENGTH_UNITS.get(normalize_unit_name(unit))
