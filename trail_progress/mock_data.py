"""Deterministic demo pings for running the tracker without a live feed.

The route follows the first two weeks of the Appalachian Trail from Springer
Mountain, interpolating a ping every 20 minutes at hiking pace between anchor
waypoints, with a few off-trail town stops mixed in.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Sequence

from .geometry import haversine
from .models import TrailPoint
from .weather import CurrentConditions, DailyForecast, WeatherReport

HIKING_SPEED_MPH = 2.5
PING_INTERVAL_MINUTES = 20
MILES_PER_PING = HIKING_SPEED_MPH * PING_INTERVAL_MINUTES / 60
DAY_START_UTC = time(8, 0, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class Anchor:
    lat: float
    lon: float
    day_offset: int
    elevation_feet: float
    off_trail: bool = False


DEFAULT_ANCHORS: tuple[Anchor, ...] = (
    # Springer Mountain to Hawk Mountain Shelter
    Anchor(34.626693, -84.193828, 0, 3782),
    Anchor(34.663426, -84.133628, 0, 3100),
    Anchor(34.697000, -84.078000, 0, 3550),
    # Blood Mountain to Neels Gap
    Anchor(34.720000, -84.020000, 1, 3200),
    Anchor(34.738658, -83.920314, 1, 4458),
    Anchor(34.745000, -83.850000, 1, 3650),
    Anchor(34.758000, -83.800000, 2, 3200),
    Anchor(34.790000, -83.730000, 2, 2900),
    Anchor(34.822451, -83.660000, 2, 3000),
    # Dahlonega resupply
    Anchor(34.5329, -83.9849, 3, 1500, off_trail=True),
    Anchor(34.5335, -83.9842, 3, 1500, off_trail=True),
    Anchor(34.822451, -83.793192, 4, 3000),
    Anchor(34.858000, -83.720000, 4, 3300),
    Anchor(34.896435, -83.628518, 4, 3100),
    Anchor(34.930000, -83.610000, 5, 3300),
    Anchor(34.969694, -83.593826, 5, 3400),
    Anchor(35.010000, -83.565000, 5, 3800),
    # Hiawassee zero
    Anchor(34.9502, -83.7578, 6, 1900, off_trail=True),
    Anchor(34.9510, -83.7560, 6, 1900, off_trail=True),
    Anchor(35.044825, -83.548652, 7, 4200),
    Anchor(35.090000, -83.510000, 7, 4500),
    Anchor(35.131633, -83.481813, 7, 3800),
    # Franklin zero
    Anchor(35.1822, -83.3815, 8, 2100, off_trail=True),
    Anchor(35.1825, -83.3810, 8, 2100, off_trail=True),
    # Wayah Bald climb and the descent to Wesser
    Anchor(35.131633, -83.554168, 9, 4500),
    Anchor(35.160000, -83.565000, 9, 4800),
    Anchor(35.181013, -83.561199, 9, 5040),
    Anchor(35.220000, -83.570000, 10, 4800),
    Anchor(35.265472, -83.571020, 10, 4000),
    Anchor(35.322742, -83.587340, 10, 1723),
    # Bryson City resupply
    Anchor(35.4312, -83.4496, 11, 1740, off_trail=True),
    Anchor(35.4318, -83.4490, 11, 1740, off_trail=True),
    Anchor(35.363242, -83.716218, 12, 3200),
    Anchor(35.395000, -83.750000, 12, 2700),
    Anchor(35.409373, -83.765050, 12, 2100),
)


def _ping(anchor: Anchor, when: datetime, *, lat: float, lon: float, elevation: float) -> TrailPoint:
    return TrailPoint(
        lat=lat,
        lon=lon,
        timestamp=when,
        elevation_feet=float(elevation),
        velocity_mph=0.0 if anchor.off_trail else HIKING_SPEED_MPH,
        on_trail=not anchor.off_trail,
    )


def generate_mock_points(
    start_date: date,
    anchors: Sequence[Anchor] = DEFAULT_ANCHORS,
) -> List[TrailPoint]:
    """Build a demo ping history starting on ``start_date``.

    Each day starts at 08:00 UTC. On-trail legs are interpolated at roughly
    one ping per :data:`MILES_PER_PING`; town stops emit their anchors only.
    """

    by_day: Dict[int, List[Anchor]] = defaultdict(list)
    for anchor in anchors:
        by_day[anchor.day_offset].append(anchor)

    interval = timedelta(minutes=PING_INTERVAL_MINUTES)
    base = datetime.combine(start_date, DAY_START_UTC)
    points: List[TrailPoint] = []
    for day_offset in sorted(by_day):
        day_anchors = by_day[day_offset]
        now = base + timedelta(days=day_offset)
        for origin, target in zip(day_anchors, day_anchors[1:]):
            if origin.off_trail:
                points.append(
                    _ping(origin, now, lat=origin.lat, lon=origin.lon, elevation=origin.elevation_feet)
                )
                now += interval
                continue
            leg_miles = haversine(origin.lat, origin.lon, target.lat, target.lon)
            pings = max(1, round(leg_miles / MILES_PER_PING))
            for step in range(pings):
                t = step / pings
                points.append(
                    _ping(
                        origin,
                        now,
                        lat=origin.lat + t * (target.lat - origin.lat),
                        lon=origin.lon + t * (target.lon - origin.lon),
                        elevation=round(
                            origin.elevation_feet
                            + t * (target.elevation_feet - origin.elevation_feet)
                        ),
                    )
                )
                now += interval
        last = day_anchors[-1]
        points.append(_ping(last, now, lat=last.lat, lon=last.lon, elevation=last.elevation_feet))
    return points


# (high, low, WMO code) for today and the next four days.
_MOCK_FORECAST = ((72, 58, 2), (75, 60, 0), (70, 55, 2), (68, 52, 61), (65, 50, 2))


def generate_mock_weather(today: date) -> WeatherReport:
    """Fixed demo conditions with a forecast starting on ``today``."""

    return WeatherReport(
        current=CurrentConditions(
            temperature_f=68,
            weather_code=2,
            humidity=65,
            wind_speed_mph=7,
            wind_direction=180,
            feels_like_f=70,
        ),
        forecast=[
            DailyForecast(
                date=(today + timedelta(days=offset)).isoformat(),
                high_f=high,
                low_f=low,
                weather_code=code,
            )
            for offset, (high, low, code) in enumerate(_MOCK_FORECAST)
        ],
        location_name="Demo Trail",
    )


__all__ = ["Anchor", "DEFAULT_ANCHORS", "generate_mock_points", "generate_mock_weather"]
