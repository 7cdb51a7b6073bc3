"""Snap on-trail pings to an interpolated trail mile and elevation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

from ..config import DEFAULT_OFF_TRAIL_THRESHOLD_MILES
from ..models import TrailPoint
from .proximity import usable_reference
from .reference import TrailReference


@dataclass(frozen=True, slots=True)
class SnapResult:
    trail_mile: float
    trail_elevation: Optional[float]
    distance: float


def snap_to_trail(lat: float, lon: float, reference: TrailReference) -> SnapResult:
    """Snap a point onto the nearest position of the reference trail."""

    nearest = reference.nearest_segment(lat, lon)
    return SnapResult(
        trail_mile=reference.mile_at(nearest),
        trail_elevation=reference.elevation_at(nearest),
        distance=nearest.distance,
    )


def snap_points_to_trail(
    points: Iterable[TrailPoint],
    reference: Optional[TrailReference],
) -> List[TrailPoint]:
    """Return copies of already-classified points with trail mile/elevation.

    Only points tagged on-trail are snapped; all others carry None.
    """

    trail = usable_reference(reference)
    snapped: List[TrailPoint] = []
    for point in points:
        if point.on_trail and trail is not None and point.has_finite_coordinates:
            snap = snap_to_trail(point.lat, point.lon, trail)
            snapped.append(
                replace(
                    point,
                    trail_mile=snap.trail_mile,
                    trail_elevation=snap.trail_elevation,
                )
            )
        else:
            snapped.append(replace(point, trail_mile=None, trail_elevation=None))
    return snapped


def tag_and_snap_points(
    points: Iterable[TrailPoint],
    reference: Optional[TrailReference],
    threshold_miles: float = DEFAULT_OFF_TRAIL_THRESHOLD_MILES,
) -> List[TrailPoint]:
    """Classify and snap in one projection pass per point.

    Equivalent to :func:`tag_points_on_off_trail` followed by
    :func:`snap_points_to_trail`, at half the projection cost.
    """

    trail = usable_reference(reference)
    annotated: List[TrailPoint] = []
    for point in points:
        if not point.has_finite_coordinates:
            annotated.append(
                replace(point, on_trail=False, trail_mile=None, trail_elevation=None)
            )
            continue
        if trail is None:
            annotated.append(
                replace(point, on_trail=True, trail_mile=None, trail_elevation=None)
            )
            continue

        nearest = trail.nearest_segment(point.lat, point.lon)
        if nearest.distance <= threshold_miles:
            annotated.append(
                replace(
                    point,
                    on_trail=True,
                    trail_mile=trail.mile_at(nearest),
                    trail_elevation=trail.elevation_at(nearest),
                )
            )
        else:
            annotated.append(
                replace(point, on_trail=False, trail_mile=None, trail_elevation=None)
            )
    return annotated


__all__ = [
    "SnapResult",
    "snap_points_to_trail",
    "snap_to_trail",
    "tag_and_snap_points",
]
