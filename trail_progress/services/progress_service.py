"""Per-request orchestration of the tracker pipeline.

Validates settings, serves the cached summary when it is fresh, otherwise
loads history from the store, classifies and snaps every ping, aggregates and
attaches the latest location and weather. Every collaborator (settings,
store, reference trail, cache, weather and the aggregator itself) is injected
through :class:`ProgressServiceConfig` so each stage can be exercised alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from ..aggregation import calculate_stats, elevation_profile_for_day
from ..cache import ResultCache
from ..config import DATE_PATTERN, STATS_CACHE_KEY, TrackerSettings, load_settings
from ..errors import TrailDataError
from ..mock_data import generate_mock_points, generate_mock_weather
from ..models import DayElevationProfile, StatsSummary, TrailPoint
from ..storage import (
    JsonDirectoryStore,
    KeyValueStore,
    list_point_days,
    load_historical_points,
    read_day_points,
    read_days,
    serialize_point,
    store_points_by_day,
)
from ..trail import TrailReference, load_reference, tag_and_snap_points
from ..utils import group_by_utc_date, utc_date_string, utc_now
from ..weather import WeatherReport

Aggregator = Callable[..., StatsSummary]
WeatherLookup = Callable[[float, float], WeatherReport]


@dataclass(frozen=True, slots=True)
class Location:
    lat: float
    lon: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True, slots=True)
class StatsReport:
    """Summary plus the hiker's latest position and local weather."""

    summary: StatsSummary
    location: Optional[Location] = None
    weather: Optional[WeatherReport] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = self.summary.to_dict()
        payload["location"] = self.location.to_dict() if self.location else None
        payload["weather"] = self.weather.to_dict() if self.weather else None
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "StatsReport":
        location = payload.get("location")
        weather = payload.get("weather")
        return cls(
            summary=StatsSummary.from_dict(payload),
            location=Location(float(location["lat"]), float(location["lon"])) if location else None,
            weather=WeatherReport.from_dict(weather) if weather else None,
        )


@dataclass(frozen=True, slots=True)
class PointsReport:
    """Annotated pings for map rendering."""

    points: List[TrailPoint]
    off_trail_threshold_miles: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": [serialize_point(p, include_dwell=True) for p in self.points],
            "offTrailThreshold": self.off_trail_threshold_miles,
        }


def _default_reference_loader(settings: TrackerSettings) -> Optional[TrailReference]:
    if not settings.trail_data_file:
        return None
    return load_reference(settings.trail_data_file)


def _default_today() -> date:
    return utc_now().date()


@dataclass(slots=True)
class ProgressServiceConfig:
    settings_loader: Callable[[], TrackerSettings] = load_settings
    store: KeyValueStore | None = None
    reference_loader: Callable[[TrackerSettings], Optional[TrailReference]] = (
        _default_reference_loader
    )
    cache: ResultCache | None = None
    weather: WeatherLookup | None = None
    aggregator: Aggregator = calculate_stats
    today: Callable[[], date] = _default_today
    logger: logging.Logger | None = None


class ProgressService:
    def __init__(self, config: ProgressServiceConfig | None = None):
        self.config = config or ProgressServiceConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)
        self._store = self.config.store
        self._reference: Optional[TrailReference] = None
        self._reference_loaded = False
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------
    def _settings(self) -> TrackerSettings:
        return self.config.settings_loader()

    def _store_for(self, settings: TrackerSettings) -> KeyValueStore:
        with self._lock:
            if self._store is None:
                self._store = JsonDirectoryStore(settings.store_dir)
            return self._store

    def _reference_for(self, settings: TrackerSettings) -> Optional[TrailReference]:
        with self._lock:
            if not self._reference_loaded:
                try:
                    self._reference = self.config.reference_loader(settings)
                except TrailDataError as exc:
                    self._log.warning(
                        "Trail reference unavailable, treating all pings as on-trail: %s",
                        exc,
                    )
                    self._reference = None
                self._reference_loaded = True
            return self._reference

    def _annotate(
        self, settings: TrackerSettings, points: Sequence[TrailPoint]
    ) -> List[TrailPoint]:
        reference = self._reference_for(settings)
        if settings.use_mock_data and (reference is None or not reference.has_segments):
            # Generated pings already carry their on/off-trail tags.
            return list(points)
        return tag_and_snap_points(points, reference, settings.off_trail_threshold_miles)

    def _load_points(self, settings: TrackerSettings) -> List[TrailPoint]:
        if settings.use_mock_data:
            return generate_mock_points(settings.start_date)
        return load_historical_points(self._store_for(settings), settings.start_date)

    def _weather_at(self, settings: TrackerSettings, location: Location) -> Optional[WeatherReport]:
        if settings.use_mock_data:
            return generate_mock_weather(self.config.today())
        if self.config.weather is None:
            return None
        try:
            return self.config.weather(location.lat, location.lon)
        except Exception as exc:
            self._log.warning(
                "Weather lookup failed lat=%.4f lon=%.4f: %s",
                location.lat,
                location.lon,
                exc,
            )
            return None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def stats(self) -> StatsReport:
        """Return the hike summary, served from cache while it is fresh.

        Raises:
            ConfigurationError: If the deployment settings are invalid.
        """

        settings = self._settings()
        if settings.use_mock_data or self.config.cache is None:
            return self._compute_report(settings)
        return self.config.cache.get_or_compute(
            STATS_CACHE_KEY,
            lambda: self._compute_report(settings).to_dict(),
            decode=StatsReport.from_dict,
        )

    def _compute_report(self, settings: TrackerSettings) -> StatsReport:
        points = self._annotate(settings, self._load_points(settings))
        today = self.config.today()
        summary = self.config.aggregator(
            points,
            settings.start_date,
            settings.total_trail_miles,
            today=today,
            filter_off_trail=True,
        )
        location = self._latest_location(settings, points)
        weather = self._weather_at(settings, location) if location else None
        self._log.info(
            "Computed stats points=%d miles=%.1f day=%d",
            len(points),
            summary.total_miles_completed,
            summary.current_day_on_trail,
        )
        return StatsReport(summary=summary, location=location, weather=weather)

    @staticmethod
    def _latest_location(
        settings: TrackerSettings, points: Sequence[TrailPoint]
    ) -> Optional[Location]:
        for point in reversed(points):
            if point.has_finite_coordinates:
                return Location(point.lat, point.lon)
        if settings.start_lat is not None and settings.start_lon is not None:
            return Location(settings.start_lat, settings.start_lon)
        return None

    def points(self) -> PointsReport:
        """All annotated pings since the start date plus the threshold used."""

        settings = self._settings()
        annotated = self._annotate(settings, self._load_points(settings))
        return PointsReport(
            points=annotated,
            off_trail_threshold_miles=settings.off_trail_threshold_miles,
        )

    def elevation_days(self) -> List[str]:
        """Days with elevation data, newest first."""

        settings = self._settings()
        if settings.use_mock_data:
            by_day = group_by_utc_date(generate_mock_points(settings.start_date))
        else:
            store = self._store_for(settings)
            try:
                days = list_point_days(store)
            except Exception as exc:
                self._log.error("Failed to list stored days: %s", exc)
                return []
            by_day = read_days(store, days)
        with_elevation = [
            day
            for day, points in by_day.items()
            if any(p.best_elevation is not None for p in self._annotate(settings, points))
        ]
        return sorted(with_elevation, reverse=True)

    def elevation_for_day(self, day: str) -> DayElevationProfile:
        """Elevation profile for one UTC day (empty when nothing is stored).

        Raises:
            ValueError: If ``day`` is not ``YYYY-MM-DD``.
        """

        if not DATE_PATTERN.match(day or ""):
            raise ValueError("Invalid date format. Use YYYY-MM-DD")
        settings = self._settings()
        if settings.use_mock_data:
            raw = [
                p for p in generate_mock_points(settings.start_date)
                if utc_date_string(p.timestamp) == day
            ]
        else:
            try:
                raw = read_day_points(self._store_for(settings), day)
            except Exception as exc:
                self._log.error("Failed to read points for day=%s: %s", day, exc)
                raw = []
        return elevation_profile_for_day(day, self._annotate(settings, raw))

    def ingest(self, points: Iterable[TrailPoint]) -> int:
        """Merge new pings into the store; returns the number of days written."""

        settings = self._settings()
        written = store_points_by_day(self._store_for(settings), points)
        self._log.info("Stored points across %d day(s)", written)
        return written


__all__ = [
    "Location",
    "PointsReport",
    "ProgressService",
    "ProgressServiceConfig",
    "StatsReport",
]
