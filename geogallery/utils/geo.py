"""
Coordinate parsing helpers.
"""

from __future__ import annotations

import math
from typing import Any, Sequence


def dms_to_decimal(value: str) -> float:
    """
    Parse a textual coordinate.

    Accepts decimal degrees (``"37.8043"``) or comma separated
    degrees,minutes,seconds (``"37,48,17.44"``). Raises ValueError otherwise.
    """
    text = value.strip()
    if "," in text:
        parts = [p.strip() for p in text.split(",")]
        if len(parts) == 3:
            degrees, minutes, seconds = (float(p) for p in parts)
            return degrees + minutes / 60 + seconds / 3600
    return float(text)


def rationals_to_decimal(values: Sequence[Any], ref: str | bytes | None = None) -> float | None:
    """Convert an EXIF (deg, min, sec) rational triple plus N/S/E/W ref to signed degrees."""
    try:
        degrees, minutes, seconds = (float(v) for v in values)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    decimal = degrees + minutes / 60 + seconds / 3600
    if math.isnan(decimal):
        return None
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if ref and ref.strip("\x00").strip().upper() in {"S", "W"}:
        decimal = -decimal
    return decimal
