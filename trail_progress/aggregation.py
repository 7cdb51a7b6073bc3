"""Distance / elevation aggregation over classified trail pings.

Pure transformation: given annotated points, the trail start date and the
trail length it produces a :class:`StatsSummary`. Nothing here performs I/O or
reads the clock unless ``today`` is omitted, so identical inputs always give
identical summaries (which is what makes the summaries safe to cache).
"""

from __future__ import annotations

from datetime import date, timedelta
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import (
    HAVERSINE_CORRECTION_FACTOR,
    MIN_DAY_ON_TRAIL,
    MOVING_VELOCITY_THRESHOLD_MPH,
)
from .geometry import haversine
from .models import (
    DailyStatsBucket,
    DayElevationProfile,
    ElevationSample,
    FinishProjection,
    StatsSummary,
    TrailPoint,
)
from .utils import group_by_utc_date, utc_now


def calculate_current_day(start_date: date, today: date) -> int:
    """1-based day number of ``today`` counted from ``start_date``."""

    return max(MIN_DAY_ON_TRAIL, (today - start_date).days + 1)


def project_finish(
    total_miles: float,
    total_trail_miles: float,
    current_day: int,
    today: date,
) -> FinishProjection:
    """Project the finish date from the average pace over completed days.

    Today is still in progress, so the pace divides by ``current_day - 1``
    (never less than one day).
    """

    completed_days = max(MIN_DAY_ON_TRAIL, current_day - 1)
    avg_daily_miles = total_miles / completed_days
    miles_remaining = max(0.0, total_trail_miles - total_miles)
    days_remaining = 0
    if avg_daily_miles > 0 and miles_remaining > 0:
        days_remaining = math.ceil(miles_remaining / avg_daily_miles)
    return FinishProjection(
        avg_daily_miles=avg_daily_miles,
        miles_remaining=miles_remaining,
        days_remaining=days_remaining,
        estimated_finish_date=today + timedelta(days=days_remaining),
    )


def _chronological(points: Iterable[TrailPoint]) -> List[TrailPoint]:
    return sorted(points, key=lambda p: p.timestamp)


def _haversine_path_miles(points: Sequence[TrailPoint], correction_factor: float) -> float:
    total = 0.0
    for prev, curr in zip(points, points[1:]):
        if not (prev.has_finite_coordinates and curr.has_finite_coordinates):
            continue
        total += haversine(prev.lat, prev.lon, curr.lat, curr.lon)
    return total * correction_factor


def total_distance_miles(
    points: Sequence[TrailPoint],
    correction_factor: float = HAVERSINE_CORRECTION_FACTOR,
) -> float:
    """Furthest trail mile reached, or the straight-line path length without
    any snapped points."""

    trail_miles = [p.trail_mile for p in points if p.trail_mile is not None]
    if trail_miles:
        return max(trail_miles)
    return _haversine_path_miles(_chronological(points), correction_factor)


def moving_time_hours(points: Sequence[TrailPoint]) -> float:
    """Sum of intervals that end in a ping reporting more than walking-still speed."""

    hours = 0.0
    ordered = _chronological(points)
    for prev, curr in zip(ordered, ordered[1:]):
        if not (prev.has_finite_coordinates and curr.has_finite_coordinates):
            continue
        velocity = curr.velocity_mph
        if velocity is None or not velocity > MOVING_VELOCITY_THRESHOLD_MPH:
            continue
        hours += (curr.timestamp - prev.timestamp).total_seconds() / 3600.0
    return hours


def calculate_elevation_stats(elevations: Sequence[float]) -> Tuple[int, int]:
    """Return ``(climbed, loss)`` in whole feet over consecutive samples."""

    climbed = 0.0
    loss = 0.0
    for prev, curr in zip(elevations, elevations[1:]):
        if not (math.isfinite(prev) and math.isfinite(curr)):
            continue
        change = curr - prev
        if change > 0:
            climbed += change
        elif change < 0:
            loss += -change
    return round(climbed), round(loss)


def _elevation_series(points: Sequence[TrailPoint]) -> List[float]:
    series: List[float] = []
    for point in points:
        elevation = point.best_elevation
        if elevation is not None and math.isfinite(elevation):
            series.append(float(elevation))
    return series


def build_daily_buckets(
    points: Iterable[TrailPoint],
    correction_factor: float = HAVERSINE_CORRECTION_FACTOR,
) -> Dict[str, DailyStatsBucket]:
    """Group points into UTC-day buckets (ascending date) with distance and
    elevation totals."""

    buckets: Dict[str, DailyStatsBucket] = {}
    grouped = group_by_utc_date(_chronological(points))
    for day in sorted(grouped):
        day_points = grouped[day]
        bucket = DailyStatsBucket(date=day, points=day_points)
        trail_miles = [p.trail_mile for p in day_points if p.trail_mile is not None]
        if len(trail_miles) >= 2:
            bucket.distance_miles = max(trail_miles) - min(trail_miles)
            bucket.used_trail_miles = True
        else:
            bucket.distance_miles = _haversine_path_miles(day_points, correction_factor)
        gain, loss = calculate_elevation_stats(_elevation_series(day_points))
        bucket.elevation_gain_feet = gain
        bucket.elevation_loss_feet = loss
        buckets[day] = bucket
    return buckets


def select_daily_distance(
    buckets: Dict[str, DailyStatsBucket], today: date
) -> Tuple[float, Optional[str]]:
    """Distance to show as "today": today's bucket, else the latest day with data."""

    today_key = today.isoformat()
    if today_key in buckets:
        return buckets[today_key].distance_miles, today_key
    if not buckets:
        return 0.0, None
    latest = max(buckets)
    return buckets[latest].distance_miles, latest


def _record_day(values: Iterable[Tuple[str, float]]) -> Tuple[float, Optional[str]]:
    best_value = 0.0
    best_day: Optional[str] = None
    for day, value in values:
        if value > best_value:
            best_value = value
            best_day = day
    return best_value, best_day


def zero_summary(start_date: date, total_trail_miles: float, today: date) -> StatsSummary:
    """Summary reported before there are at least two usable pings."""

    return StatsSummary(
        start_date=start_date,
        total_miles_completed=0.0,
        miles_remaining=round(total_trail_miles, 1),
        daily_distance=0.0,
        daily_distance_date=None,
        average_speed_mph=0.0,
        current_day_on_trail=calculate_current_day(start_date, today),
        estimated_finish_date=None,
        longest_day_miles=0.0,
        longest_day_date=None,
        most_elevation_gain_feet=0,
        most_elevation_gain_date=None,
    )


def calculate_stats(
    points: Sequence[TrailPoint],
    start_date: date,
    total_trail_miles: float,
    *,
    today: Optional[date] = None,
    filter_off_trail: bool = False,
    correction_factor: float = HAVERSINE_CORRECTION_FACTOR,
) -> StatsSummary:
    """Compute the hike summary from annotated points.

    Args:
        points: Classified, snapped and deduplicated pings.
        start_date: First day on trail (UTC).
        total_trail_miles: Official trail length.
        today: UTC date treated as "today"; defaults to the current date.
        filter_off_trail: Drop points explicitly tagged off-trail first.
        correction_factor: Multiplier for straight-line distance fallbacks.

    Returns:
        A summary with distances rounded to 0.1 mile.
    """

    if today is None:
        today = utc_now().date()
    if filter_off_trail:
        points = [p for p in points if p.on_trail is not False]
    if len(points) < 2:
        return zero_summary(start_date, total_trail_miles, today)

    ordered = _chronological(points)
    current_day = calculate_current_day(start_date, today)
    total_miles = total_distance_miles(ordered, correction_factor)
    hours_moving = moving_time_hours(ordered)
    avg_speed = total_miles / hours_moving if hours_moving > 0 else 0.0
    projection = project_finish(total_miles, total_trail_miles, current_day, today)

    buckets = build_daily_buckets(ordered, correction_factor)
    daily_miles, daily_date = select_daily_distance(buckets, today)
    longest_miles, longest_date = _record_day(
        (day, bucket.distance_miles) for day, bucket in buckets.items()
    )
    most_gain, most_gain_date = _record_day(
        (day, bucket.elevation_gain_feet) for day, bucket in buckets.items()
    )

    return StatsSummary(
        start_date=start_date,
        total_miles_completed=round(total_miles, 1),
        miles_remaining=round(projection.miles_remaining, 1),
        daily_distance=round(daily_miles, 1),
        daily_distance_date=daily_date,
        average_speed_mph=round(avg_speed, 1),
        current_day_on_trail=current_day,
        estimated_finish_date=projection.estimated_finish_date,
        longest_day_miles=round(longest_miles, 1),
        longest_day_date=longest_date,
        most_elevation_gain_feet=int(most_gain),
        most_elevation_gain_date=most_gain_date,
    )


def elevation_profile_for_day(day: str, points: Iterable[TrailPoint]) -> DayElevationProfile:
    """Elevation chart samples and totals for the pings of one UTC day."""

    samples = [
        ElevationSample(time=p.timestamp, elevation=round(float(p.best_elevation), 1))
        for p in _chronological(points)
        if p.best_elevation is not None and math.isfinite(p.best_elevation)
    ]
    if not samples:
        return DayElevationProfile(date=day)
    elevations = [s.elevation for s in samples]
    climbed, loss = calculate_elevation_stats(elevations)
    return DayElevationProfile(
        date=day,
        points=samples,
        min_elevation=round(min(elevations)),
        max_elevation=round(max(elevations)),
        vertical_climbed=climbed,
        vertical_loss=loss,
    )


__all__ = [
    "build_daily_buckets",
    "calculate_current_day",
    "calculate_elevation_stats",
    "calculate_stats",
    "elevation_profile_for_day",
    "moving_time_hours",
    "project_finish",
    "select_daily_distance",
    "total_distance_miles",
    "zero_summary",
]
