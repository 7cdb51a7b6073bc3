"""On/off-trail classification by distance to the reference polyline."""

from __future__ import annotations

from dataclasses import replace
import math
from typing import Iterable, List, Optional

from ..config import DEFAULT_OFF_TRAIL_THRESHOLD_MILES
from ..models import TrailPoint
from .reference import TrailReference


def usable_reference(reference: Optional[TrailReference]) -> Optional[TrailReference]:
    """``reference`` when it has at least one segment, otherwise None."""

    if reference is None or not reference.has_segments:
        return None
    return reference


def distance_to_trail(lat: float, lon: float, reference: TrailReference) -> float:
    """Minimum distance in miles from a point to any reference segment.

    Returns ``inf`` for non-finite coordinates or an unusable polyline.
    """

    if not (math.isfinite(lat) and math.isfinite(lon)) or not reference.has_segments:
        return math.inf
    return reference.distance_to(lat, lon)


def is_on_trail(
    point: TrailPoint,
    reference: Optional[TrailReference],
    threshold_miles: float = DEFAULT_OFF_TRAIL_THRESHOLD_MILES,
) -> bool:
    if not point.has_finite_coordinates:
        return False
    trail = usable_reference(reference)
    if trail is None:
        # No trail data available; treat every fix as on-trail.
        return True
    return distance_to_trail(point.lat, point.lon, trail) <= threshold_miles


def tag_points_on_off_trail(
    points: Iterable[TrailPoint],
    reference: Optional[TrailReference],
    threshold_miles: float = DEFAULT_OFF_TRAIL_THRESHOLD_MILES,
) -> List[TrailPoint]:
    """Return copies of ``points`` with ``on_trail`` set."""

    return [
        replace(point, on_trail=is_on_trail(point, reference, threshold_miles))
        for point in points
    ]


__all__ = [
    "distance_to_trail",
    "is_on_trail",
    "tag_points_on_off_trail",
    "usable_reference",
]
