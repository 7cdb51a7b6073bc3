"""Records flowing through the classification and aggregation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
import math
from typing import Any, Dict, List, Optional

from .utils import format_iso_utc


@dataclass(frozen=True, slots=True)
class TrailPoint:
    """A single satellite ping plus the annotations added by the pipeline.

    Attributes:
        lat: Latitude in decimal degrees.
        lon: Longitude in decimal degrees.
        timestamp: UTC-aware time of the ping.
        elevation_feet: Device-reported elevation, when present.
        velocity_mph: Device-reported speed, when present.
        on_trail: None until classified.
        trail_mile: Interpolated mile marker of the snapped position.
        trail_elevation: Interpolated reference elevation of the snapped position.
        last_ping_time: Time of the last ping folded into this one.
        stationary_pings: Number of pings this point stands for.
    """

    lat: float
    lon: float
    timestamp: datetime
    elevation_feet: Optional[float] = None
    velocity_mph: Optional[float] = None
    on_trail: Optional[bool] = None
    trail_mile: Optional[float] = None
    trail_elevation: Optional[float] = None
    last_ping_time: Optional[datetime] = None
    stationary_pings: int = 1

    @property
    def has_finite_coordinates(self) -> bool:
        return math.isfinite(self.lat) and math.isfinite(self.lon)

    @property
    def best_elevation(self) -> Optional[float]:
        """Reference elevation when snapped, otherwise the device elevation."""

        if self.trail_elevation is not None:
            return self.trail_elevation
        return self.elevation_feet


@dataclass(frozen=True, slots=True)
class TrailReferenceVertex:
    """One vertex of the reference trail polyline."""

    lon: float
    lat: float
    cumulative_mile: float
    elevation_feet: Optional[float] = None


@dataclass(slots=True)
class DailyStatsBucket:
    """Per-UTC-day aggregation; rebuilt on every computation."""

    date: str
    points: List[TrailPoint] = field(default_factory=list)
    distance_miles: float = 0.0
    elevation_gain_feet: int = 0
    elevation_loss_feet: int = 0
    used_trail_miles: bool = False


@dataclass(frozen=True, slots=True)
class StatsSummary:
    """Cumulative and derived statistics for the whole hike."""

    start_date: date
    total_miles_completed: float
    miles_remaining: float
    daily_distance: float
    daily_distance_date: Optional[str]
    average_speed_mph: float
    current_day_on_trail: int
    estimated_finish_date: Optional[date]
    longest_day_miles: float
    longest_day_date: Optional[str]
    most_elevation_gain_feet: int
    most_elevation_gain_date: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startDate": self.start_date.isoformat(),
            "totalMilesCompleted": self.total_miles_completed,
            "milesRemaining": self.miles_remaining,
            "dailyDistance": self.daily_distance,
            "dailyDistanceDate": self.daily_distance_date,
            "averageSpeedMph": self.average_speed_mph,
            "currentDayOnTrail": self.current_day_on_trail,
            "estimatedFinishDate": (
                self.estimated_finish_date.isoformat()
                if self.estimated_finish_date
                else None
            ),
            "longestDayMiles": self.longest_day_miles,
            "longestDayDate": self.longest_day_date,
            "mostElevationGainFeet": self.most_elevation_gain_feet,
            "mostElevationGainDate": self.most_elevation_gain_date,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "StatsSummary":
        finish = payload.get("estimatedFinishDate")
        return cls(
            start_date=date.fromisoformat(payload["startDate"]),
            total_miles_completed=float(payload["totalMilesCompleted"]),
            miles_remaining=float(payload["milesRemaining"]),
            daily_distance=float(payload["dailyDistance"]),
            daily_distance_date=payload.get("dailyDistanceDate"),
            average_speed_mph=float(payload["averageSpeedMph"]),
            current_day_on_trail=int(payload["currentDayOnTrail"]),
            estimated_finish_date=date.fromisoformat(finish) if finish else None,
            longest_day_miles=float(payload["longestDayMiles"]),
            longest_day_date=payload.get("longestDayDate"),
            most_elevation_gain_feet=int(payload["mostElevationGainFeet"]),
            most_elevation_gain_date=payload.get("mostElevationGainDate"),
        )


@dataclass(frozen=True, slots=True)
class FinishProjection:
    """Pace-based projection of the remaining hike."""

    avg_daily_miles: float
    miles_remaining: float
    days_remaining: int
    estimated_finish_date: date


@dataclass(slots=True)
class ElevationSample:
    time: datetime
    elevation: float


@dataclass(slots=True)
class DayElevationProfile:
    """Elevation chart data for a single UTC day."""

    date: str
    points: List[ElevationSample] = field(default_factory=list)
    min_elevation: Optional[int] = None
    max_elevation: Optional[int] = None
    vertical_climbed: Optional[int] = None
    vertical_loss: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "points": [
                {"time": format_iso_utc(p.time), "elevation": p.elevation}
                for p in self.points
            ],
            "minElevation": self.min_elevation,
            "maxElevation": self.max_elevation,
            "verticalClimbed": self.vertical_climbed,
            "verticalLoss": self.vertical_loss,
        }


__all__ = [
    "DailyStatsBucket",
    "DayElevationProfile",
    "ElevationSample",
    "FinishProjection",
    "StatsSummary",
    "TrailPoint",
    "TrailReferenceVertex",
]
