"""Central configuration for the trail progress tracker.

Tuning values are module constants imported by the rest of the package. The
per-deployment settings (start date, data locations) are parsed from the
environment by :func:`load_settings` and validated before any request is
served. Values are read from environment variables (optionally via a local
`.env`).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import importlib
import math
import os
import re
from typing import Mapping

from .errors import ConfigurationError


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return _parse_bool(value, default)


def _parse_bool(value: str, default: bool) -> bool:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# Trail
# ---------------------------------------------------------------------------
# Official length of the trail (Appalachian Trail, 2025 data book).
TOTAL_TRAIL_MILES = _env_float("TOTAL_TRAIL_MILES", 2197.9)

# Pings farther than this from the reference polyline count as off-trail
# excursions (town stops, side trails).
DEFAULT_OFF_TRAIL_THRESHOLD_MILES = 0.25

# Consecutive pings closer than this are folded into one stationary cluster.
STATIONARY_THRESHOLD_MILES = 100 / 5280

# Equirectangular scale used for segment projection.
MILES_PER_DEGREE_LATITUDE = 69.0

# Mean Earth radius for haversine distances.
EARTH_RADIUS_MILES = 3958.8


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------
# A ping only contributes moving time when the device reports more than this.
MOVING_VELOCITY_THRESHOLD_MPH = 1.0

MIN_DAY_ON_TRAIL = 1

# Multiplier applied to straight-line (haversine) fallbacks when no trail-mile
# data exists. 1.0 reports the raw straight-line distance.
HAVERSINE_CORRECTION_FACTOR = _env_float("HAVERSINE_CORRECTION_FACTOR", 1.0)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------
# Fast-path validity of a cached stats payload.
STATS_CACHE_TTL_SECONDS = _env_int("STATS_CACHE_TTL_SECONDS", 60)

# Backend expiration for the cached stats payload. Must be >= the TTL above.
STATS_CACHE_EXPIRATION_SECONDS = _env_int("STATS_CACHE_EXPIRATION_SECONDS", 300)

# Weather changes slowly; keep lookups for half an hour.
WEATHER_CACHE_TTL_SECONDS = _env_int("WEATHER_CACHE_TTL_SECONDS", 1800)

# Entry cap for the in-process cache backend.
MEMORY_CACHE_MAX_ENTRIES = _env_int("MEMORY_CACHE_MAX_ENTRIES", 256)

STATS_CACHE_KEY = "cache:stats"


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
POINTS_KEY_PREFIX = "points:"
LATEST_TIMESTAMP_KEY = "meta:latest_timestamp"

# Maximum number of day files read concurrently when loading history.
STORE_READ_MAX_PARALLELISM = _env_int("STORE_READ_MAX_PARALLELISM", 8)


# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------
WEATHER_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
REVERSE_GEOCODE_URL = "https://api.bigdatacloud.net/data/reverse-geocode-client"
WEATHER_FORECAST_DAYS = 5

# Request timeouts in seconds. Geocoding is optional so it gets a short leash.
WEATHER_REQUEST_TIMEOUT = _env_float("WEATHER_REQUEST_TIMEOUT", 10.0)
GEOCODE_REQUEST_TIMEOUT = _env_float("GEOCODE_REQUEST_TIMEOUT", 3.0)

HTTP_POOL_CONNECTIONS = 4
HTTP_POOL_MAXSIZE = 4


# ---------------------------------------------------------------------------
# Excel report formatting
# ---------------------------------------------------------------------------
EXCEL_AUTOSIZE_COLUMNS = _env_bool("EXCEL_AUTOSIZE_COLUMNS", True)
EXCEL_AUTOSIZE_MAX_WIDTH = 50  # characters
EXCEL_AUTOSIZE_MIN_WIDTH = 6  # characters
EXCEL_AUTOSIZE_PADDING = 2  # extra characters added to the detected max
# Skip autosizing very large sheets (the per-cell scan gets slow).
EXCEL_AUTOSIZE_MAX_ROWS = 5000


# ---------------------------------------------------------------------------
# Deployment settings
# ---------------------------------------------------------------------------
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True, slots=True)
class TrackerSettings:
    """Validated per-deployment settings."""

    start_date: date
    trail_data_file: str | None = None
    store_dir: str = "trail_history"
    off_trail_threshold_miles: float = DEFAULT_OFF_TRAIL_THRESHOLD_MILES
    total_trail_miles: float = TOTAL_TRAIL_MILES
    use_mock_data: bool = False
    start_lat: float | None = None
    start_lon: float | None = None


def validate_settings(environ: Mapping[str, str]) -> list[str]:
    """Return a list of problems with the deployment settings (empty if valid)."""

    errors: list[str] = []
    start = environ.get("START_DATE")
    if not start:
        errors.append("START_DATE environment variable not configured")
    elif not DATE_PATTERN.match(start):
        errors.append("START_DATE must be in YYYY-MM-DD format")
    else:
        try:
            date.fromisoformat(start)
        except ValueError:
            errors.append("START_DATE is not a valid date")

    threshold = environ.get("OFF_TRAIL_THRESHOLD_MILES")
    if threshold is not None:
        value = _coerce_float(threshold)
        if value is None or value <= 0:
            errors.append("OFF_TRAIL_THRESHOLD_MILES must be a positive number")

    total = environ.get("TOTAL_TRAIL_MILES")
    if total is not None:
        value = _coerce_float(total)
        if value is None or value <= 0:
            errors.append("TOTAL_TRAIL_MILES must be a positive number")

    lat = environ.get("START_LAT")
    if lat is not None:
        value = _coerce_float(lat)
        if value is None or not -90 <= value <= 90:
            errors.append("START_LAT must be a valid latitude between -90 and 90")

    lon = environ.get("START_LON")
    if lon is not None:
        value = _coerce_float(lon)
        if value is None or not -180 <= value <= 180:
            errors.append("START_LON must be a valid longitude between -180 and 180")
    return errors


def load_settings(environ: Mapping[str, str] | None = None) -> TrackerSettings:
    """Parse and validate deployment settings.

    Raises:
        ConfigurationError: If any required value is missing or malformed.
    """

    env = os.environ if environ is None else environ
    errors = validate_settings(env)
    if errors:
        raise ConfigurationError(errors)

    threshold = _coerce_float(env.get("OFF_TRAIL_THRESHOLD_MILES", ""))
    total = _coerce_float(env.get("TOTAL_TRAIL_MILES", ""))
    return TrackerSettings(
        start_date=date.fromisoformat(env["START_DATE"]),
        trail_data_file=env.get("TRAIL_DATA_FILE") or None,
        store_dir=env.get("TRAIL_STORE_DIR") or "trail_history",
        off_trail_threshold_miles=(
            threshold if threshold is not None else DEFAULT_OFF_TRAIL_THRESHOLD_MILES
        ),
        total_trail_miles=total if total is not None else TOTAL_TRAIL_MILES,
        use_mock_data=_parse_bool(env.get("USE_MOCK_DATA", ""), False),
        start_lat=_coerce_float(env.get("START_LAT", "")),
        start_lon=_coerce_float(env.get("START_LON", "")),
    )


def _coerce_float(value: str) -> float | None:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None
