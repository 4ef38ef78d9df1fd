"""
entry_classifier.py — Time entry classification and time arithmetic.

Classifies entries into work / break / pto, parses ISO-8601 durations and
instants, and derives the calendar date keys and weekday names the engine
groups by.  Every helper is total: malformed input yields 0, None or the
neutral class rather than an exception.
"""
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterator, Mapping, Optional

from otplus.config import (
    CLASS_BREAK,
    CLASS_PTO,
    CLASS_WORK,
    ENTRY_TYPE_BREAK,
    ENTRY_TYPE_REGULAR,
    HOLIDAY_ENTRY_TYPES,
    PTO_ENTRY_TYPES,
    TIME_OFF_ENTRY_TYPES,
    WEEKDAY_KEYS,
)

# P[nD][T[nH][nM][nS]], fractional parts allowed
_DURATION_RE = re.compile(
    r"^P(?:(\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(\d+(?:\.\d+)?)H)?(?:(\d+(?:\.\d+)?)M)?(?:(\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)

# Fractional seconds of any width; fromisoformat before 3.11 wants 3 or 6 digits
_FRACTION_RE = re.compile(r"\.(\d+)(?=$|[+-]\d)")


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def entry_type(entry: Mapping[str, Any]) -> str:
    raw = entry.get("type") if isinstance(entry, Mapping) else None
    if not isinstance(raw, str) or not raw.strip():
        return ENTRY_TYPE_REGULAR
    return raw.strip().upper()


def classify(entry: Mapping[str, Any]) -> str:
    """Return ``"break"``, ``"pto"`` or ``"work"`` for an entry."""
    kind = entry_type(entry)
    if kind == ENTRY_TYPE_BREAK:
        return CLASS_BREAK
    if kind in PTO_ENTRY_TYPES:
        return CLASS_PTO
    return CLASS_WORK


def is_holiday_entry(entry: Mapping[str, Any]) -> bool:
    return entry_type(entry) in HOLIDAY_ENTRY_TYPES


def is_time_off_entry(entry: Mapping[str, Any]) -> bool:
    return entry_type(entry) in TIME_OFF_ENTRY_TYPES


# ---------------------------------------------------------------------------
# Durations and instants
# ---------------------------------------------------------------------------

def parse_iso_duration(value: Any) -> float:
    """
    Parse an ISO-8601 duration into hours.

    "PT8H" -> 8.0, "PT1H30M" -> 1.5, "PT0.5H" -> 0.5, "P1DT2H" -> 26.0.
    Anything unparseable returns 0.0.
    """
    if not isinstance(value, str):
        return 0.0
    match = _DURATION_RE.match(value.strip())
    if not match:
        return 0.0
    days, hours, minutes, seconds = (float(g) if g else 0.0 for g in match.groups())
    return days * 24.0 + hours + minutes / 60.0 + seconds / 3600.0


def parse_instant(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 instant; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _interval(entry: Mapping[str, Any]) -> Mapping[str, Any]:
    interval = entry.get("timeInterval") if isinstance(entry, Mapping) else None
    return interval if isinstance(interval, Mapping) else {}


def entry_start(entry: Mapping[str, Any]) -> Optional[datetime]:
    return parse_instant(_interval(entry).get("start"))


def entry_duration_hours(entry: Mapping[str, Any]) -> float:
    """
    Duration of an entry in hours.  The ISO duration wins; when it is absent
    or zero the span ``end - start`` is used.  Negative spans count as 0.
    """
    interval = _interval(entry)
    hours = parse_iso_duration(interval.get("duration"))
    if hours > 0:
        return hours
    start = parse_instant(interval.get("start"))
    end = parse_instant(interval.get("end"))
    if start is None or end is None:
        return 0.0
    span = (end - start).total_seconds() / 3600.0
    return span if span > 0 else 0.0


# ---------------------------------------------------------------------------
# Date keys
# ---------------------------------------------------------------------------

def extract_date_key(value: Any) -> Optional[str]:
    """
    ``YYYY-MM-DD`` of the instant's own calendar date.  The offset carried by
    the instant is kept; there is no conversion to server local time.
    """
    if isinstance(value, str) and len(value.strip()) == 10:
        text = value.strip()
        try:
            return date.fromisoformat(text).isoformat()
        except ValueError:
            return None
    parsed = parse_instant(value)
    return parsed.date().isoformat() if parsed else None


def entry_date_key(entry: Mapping[str, Any]) -> Optional[str]:
    return extract_date_key(_interval(entry).get("start"))


def parse_date_key(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def weekday_key(date_key: str) -> Optional[str]:
    day = parse_date_key(date_key)
    return WEEKDAY_KEYS[day.weekday()] if day else None


def week_key(date_key: str) -> Optional[str]:
    """Monday of the week containing ``date_key``, used for weekly accumulation."""
    day = parse_date_key(date_key)
    if day is None:
        return None
    return (day - timedelta(days=day.weekday())).isoformat()


def iter_date_range(start: date, end: date) -> Iterator[str]:
    """Yield every date key from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current.isoformat()
        current += timedelta(days=1)
