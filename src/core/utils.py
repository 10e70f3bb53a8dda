"""
Shared utilities.
"""
import math
from datetime import date, datetime, timezone
from typing import Optional

from dateutil import parser as date_parser


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_date(value) -> Optional[date]:
    """
    Parse a research-engine date ("2025-01-10", "10/01/2025", "null") into a date.
    Returns None for anything that is not a real date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "unknown"):
        return None
    try:
        # ISO first; day-first for the dd/mm/yyyy forms local sources use
        if len(text) >= 10 and text[4] == "-":
            return date.fromisoformat(text[:10])
        return date_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def to_float(value) -> Optional[float]:
    """Lenient number parse; NaN and infinities count as missing."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            number = float(str(value).replace(",", "").replace("%", "").strip())
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def to_int(value) -> Optional[int]:
    number = to_float(value)
    if number is None:
        return None
    return int(round(number))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
