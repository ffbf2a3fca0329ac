"""Field validation helpers for untrusted patient records.

The upstream API is typed JSON, so a value only counts as numeric when it
arrives as a real number: numeric-looking strings, booleans, NaN, infinities
and integers too large for a float are all data quality issues.
"""
from __future__ import annotations

import math
from collections.abc import Mapping, Sequence


def is_numeric(value) -> bool:
    if isinstance(value, bool):
        return False
    if not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float; no real vital sign looks like that
        return False


def parse_blood_pressure(value):
    """
    Normalize a blood pressure reading to a (systolic, diastolic) pair.
    Accepts:
      "120/80", " 120 / 80 "
      [120, 80] or (120, 80)
      {"systolic": 120, "diastolic": 80}
    Returns None when the shape is wrong or either component is not numeric.
    """
    systolic = diastolic = None

    if isinstance(value, str):
        parts = value.split("/")
        if len(parts) != 2:
            return None
        try:
            systolic = float(parts[0].strip())
            diastolic = float(parts[1].strip())
        except ValueError:
            return None
    elif isinstance(value, Mapping):
        systolic = value.get("systolic")
        diastolic = value.get("diastolic")
    elif isinstance(value, Sequence) and len(value) == 2:
        systolic, diastolic = value[0], value[1]
    else:
        return None

    if not (is_numeric(systolic) and is_numeric(diastolic)):
        return None
    return systolic, diastolic


__all__ = ["is_numeric", "parse_blood_pressure"]
