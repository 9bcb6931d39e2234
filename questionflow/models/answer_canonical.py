"""Canonicalization helpers for stored answer values.

Provides the string, blankness and numeric views of a stored answer value
used by rule comparisons.
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional

# Currency symbols, thousands separators and whitespace tolerated around numbers
_NUMERIC_NOISE = re.compile(r"[$€£¥,\s]")


def canonicalize_answer_value(value: Any) -> Optional[str]:
    """Return a stable string representation for a stored answer value.

    - Booleans -> "true" / "false"
    - Numbers  -> integer form when integral, else decimal string
    - Text     -> as-is string
    - Lists    -> canonical items joined with ","
    - None     -> None
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        f = float(value)
        if math.isfinite(f) and float(int(f)) == f:
            return str(int(f))
        return str(f)
    if isinstance(value, (list, tuple)):
        return ",".join(canonicalize_answer_value(v) or "" for v in value)
    return str(value)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def to_number(value: Any) -> Optional[float]:
    """Coerce a value to float, returning None when it does not parse."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        f = float(value)
    else:
        cleaned = _NUMERIC_NOISE.sub("", str(value))
        if not cleaned:
            return None
        try:
            f = float(cleaned)
        except ValueError:
            return None
    return f if math.isfinite(f) else None


__all__ = ["canonicalize_answer_value", "is_blank", "to_number"]
