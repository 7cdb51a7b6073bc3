"""General utility helpers shared across modules."""

from __future__ import annotations

import json
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, List, TypeVar

_T = TypeVar("_T")


def to_utc_aware(value: datetime) -> datetime:
    """Return ``value`` as a UTC-aware datetime (naive input is treated as UTC)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_midnight(day: date) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=timezone.utc)


def parse_iso_datetime(raw: str | None) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into a UTC datetime."""

    if not isinstance(raw, str) or not raw:
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return to_utc_aware(datetime.fromisoformat(text))
    except ValueError:
        return None


def format_iso_utc(value: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""

    utc = to_utc_aware(value)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def utc_date_string(value: datetime) -> str:
    """Return the UTC calendar date of ``value`` as ``YYYY-MM-DD``."""

    return to_utc_aware(value).date().isoformat()


def group_by_utc_date(items: Iterable[_T], key=lambda item: item.timestamp) -> Dict[str, List[_T]]:
    """Group items by the UTC date of ``key(item)`` preserving input order."""

    grouped: Dict[str, List[_T]] = {}
    for item in items:
        grouped.setdefault(utc_date_string(key(item)), []).append(item)
    return grouped


def _normalise_value(value: Any) -> Any:
    """Convert objects to JSON-friendly representations."""

    if isinstance(value, datetime):
        return format_iso_utc(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_normalise_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _normalise_value(val) for key, val in value.items()}
    return value


def json_dumps_sorted(value: Any, indent: int | None = None) -> str:
    """Return canonical JSON (sorted keys, compact unless ``indent`` is set)."""

    normalised = _normalise_value(value)
    if indent is not None:
        return json.dumps(normalised, sort_keys=True, indent=indent)
    return json.dumps(normalised, sort_keys=True, separators=(",", ":"))
