"""Day-bucketed persistence of trail pings behind an injected key/value store.

History lives under one key per UTC day (``points:YYYY-MM-DD``) holding a JSON
list of serialised points. Reads fan out across days in bounded parallel
batches; a day that cannot be read or parsed is logged and skipped so one bad
file never hides the rest of the hike.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
import json
import logging
import math
import os
from pathlib import Path
import tempfile
import threading
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence
from urllib.parse import quote, unquote

from .config import (
    LATEST_TIMESTAMP_KEY,
    POINTS_KEY_PREFIX,
    STORE_READ_MAX_PARALLELISM,
)
from .deduplication import deduplicate_stationary
from .errors import StorageError
from .models import TrailPoint
from .utils import (
    format_iso_utc,
    group_by_utc_date,
    parse_iso_datetime,
    utc_midnight,
)

LOGGER = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...

    def list_keys(self, prefix: str) -> List[str]: ...


class InMemoryStore:
    """Dictionary-backed store for tests and mock mode."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def list_keys(self, prefix: str) -> List[str]:
        with self._lock:
            return sorted(key for key in self._data if key.startswith(prefix))


class JsonDirectoryStore:
    """One file per key under ``base_dir``; ``ns:name`` maps to ``ns/name.json``."""

    def __init__(self, base_dir: str | Path) -> None:
        base = Path(base_dir)
        self._base_dir = base if base.is_absolute() else Path.cwd() / base
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _path_for(self, key: str) -> Path:
        namespace, sep, name = key.partition(":")
        if not sep:
            namespace, name = "", key
        if not name or namespace in {".", ".."}:
            raise StorageError(f"Invalid store key: {key!r}")
        filename = quote(name, safe="-_.,") + ".json"
        return self._base_dir / namespace / filename if namespace else self._base_dir / filename

    def get(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Unable to read {path}: {exc}") from exc

    def put(self, key: str, value: str) -> None:
        path = self._path_for(key)
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except OSError as exc:
                raise StorageError(f"Unable to write {path}: {exc}") from exc

    def list_keys(self, prefix: str) -> List[str]:
        namespace, sep, name_prefix = prefix.partition(":")
        if not sep:
            raise StorageError("Key listing requires a namespaced prefix like 'points:'")
        directory = self._base_dir / namespace
        if not directory.is_dir():
            return []
        keys = []
        for path in directory.glob("*.json"):
            name = unquote(path.stem)
            if name.startswith(name_prefix):
                keys.append(f"{namespace}:{name}")
        return sorted(keys)


def day_key(day: str) -> str:
    return f"{POINTS_KEY_PREFIX}{day}"


def serialize_point(point: TrailPoint, *, include_dwell: bool = False) -> Dict[str, Any]:
    """Storable/transferable JSON shape of a point with explicit nulls."""

    payload: Dict[str, Any] = {
        "lat": point.lat,
        "lon": point.lon,
        "time": format_iso_utc(point.timestamp),
        "elevation": point.elevation_feet,
        "velocity": point.velocity_mph,
        "onTrail": point.on_trail,
        "trailMile": point.trail_mile,
        "trailElevation": point.trail_elevation,
    }
    if include_dwell:
        if point.last_ping_time is not None:
            payload["lastPingTime"] = format_iso_utc(point.last_ping_time)
        if point.stationary_pings > 1:
            payload["stationaryPings"] = point.stationary_pings
    return payload


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _coordinate(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def deserialize_point(raw: Dict[str, Any]) -> TrailPoint:
    """Parse a stored point.

    Raises:
        ValueError: If the point has no parseable timestamp.
    """

    timestamp = parse_iso_datetime(raw.get("time"))
    if timestamp is None:
        raise ValueError(f"Point without a valid time: {raw!r}")
    on_trail = raw.get("onTrail")
    return TrailPoint(
        lat=_coordinate(raw.get("lat")),
        lon=_coordinate(raw.get("lon")),
        timestamp=timestamp,
        elevation_feet=_optional_float(raw.get("elevation")),
        velocity_mph=_optional_float(raw.get("velocity")),
        on_trail=on_trail if isinstance(on_trail, bool) else None,
        trail_mile=_optional_float(raw.get("trailMile")),
        trail_elevation=_optional_float(raw.get("trailElevation")),
    )


def _parse_day(raw_json: str) -> List[TrailPoint]:
    payload = json.loads(raw_json)
    if not isinstance(payload, list):
        raise ValueError("Day payload is not a list of points")
    points: List[TrailPoint] = []
    for item in payload:
        try:
            points.append(deserialize_point(item))
        except (TypeError, ValueError, AttributeError) as exc:
            LOGGER.warning("Skipping unreadable stored point %r: %s", item, exc)
    return points


def read_day_points(store: KeyValueStore, day: str) -> List[TrailPoint]:
    """Points stored for one UTC day (empty when the day is unknown)."""

    raw = store.get(day_key(day))
    if not raw:
        return []
    return _parse_day(raw)


def list_point_days(store: KeyValueStore) -> List[str]:
    """Days (``YYYY-MM-DD``) with stored points, ascending."""

    return [key[len(POINTS_KEY_PREFIX):] for key in store.list_keys(POINTS_KEY_PREFIX)]


def read_days(
    store: KeyValueStore,
    days: Sequence[str],
    max_parallelism: int = STORE_READ_MAX_PARALLELISM,
) -> Dict[str, List[TrailPoint]]:
    """Read several days in bounded parallel batches.

    Unreadable days are logged and reported as empty.
    """

    results: Dict[str, List[TrailPoint]] = {}
    if not days:
        return results
    batch_size = min(max(1, max_parallelism), len(days))

    def read_one(day: str) -> List[TrailPoint]:
        try:
            return read_day_points(store, day)
        except Exception as exc:
            LOGGER.error("Failed to read points for day=%s: %s", day, exc)
            return []

    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for day, points in zip(days, executor.map(read_one, days)):
            results[day] = points
    return results


def load_historical_points(
    store: KeyValueStore,
    start_date: date,
    *,
    max_parallelism: int = STORE_READ_MAX_PARALLELISM,
) -> List[TrailPoint]:
    """All stored points since ``start_date``, sorted and stationary-deduplicated.

    A store that cannot even be listed yields an empty history.
    """

    try:
        days = list_point_days(store)
    except Exception as exc:
        LOGGER.error("Failed to list stored days: %s", exc)
        return []

    start = utc_midnight(start_date)
    by_day = read_days(store, days, max_parallelism)
    points = [
        point
        for day in days
        for point in by_day.get(day, [])
        if point.timestamp >= start
    ]
    points.sort(key=lambda p: p.timestamp)
    deduplicated = deduplicate_stationary(points)
    LOGGER.debug(
        "Loaded %d points (%d after stationary dedupe) across %d days",
        len(points),
        len(deduplicated),
        len(days),
    )
    return deduplicated


def store_points_by_day(store: KeyValueStore, points: Iterable[TrailPoint]) -> int:
    """Merge ``points`` into their day buckets; returns the number of days written.

    Points are keyed by timestamp, so re-ingesting the same feed is idempotent
    and a newer copy of a ping replaces the stored one.
    """

    ordered = sorted(points, key=lambda p: p.timestamp)
    if not ordered:
        return 0

    written = 0
    for day, day_points in group_by_utc_date(ordered).items():
        try:
            existing = read_day_points(store, day)
            merged: Dict[str, TrailPoint] = {}
            for point in [*existing, *day_points]:
                merged[format_iso_utc(point.timestamp)] = point
            rows = [
                serialize_point(point)
                for point in sorted(merged.values(), key=lambda p: p.timestamp)
            ]
            store.put(day_key(day), json.dumps(rows, separators=(",", ":")))
            written += 1
        except Exception as exc:
            LOGGER.error("Failed to store points for day=%s: %s", day, exc)

    try:
        store.put(LATEST_TIMESTAMP_KEY, format_iso_utc(ordered[-1].timestamp))
    except Exception as exc:
        LOGGER.error("Failed to record latest timestamp: %s", exc)
    return written


def latest_timestamp(store: KeyValueStore) -> Optional[datetime]:
    """Timestamp of the newest stored ping, if recorded."""

    return parse_iso_datetime(store.get(LATEST_TIMESTAMP_KEY))


__all__ = [
    "InMemoryStore",
    "JsonDirectoryStore",
    "KeyValueStore",
    "deserialize_point",
    "latest_timestamp",
    "list_point_days",
    "load_historical_points",
    "read_day_points",
    "read_days",
    "serialize_point",
    "store_points_by_day",
]
