"""Geodesic helpers used for proximity, snapping and distance fallbacks."""

from __future__ import annotations

from dataclasses import dataclass
import math

from .config import EARTH_RADIUS_MILES, MILES_PER_DEGREE_LATITUDE


@dataclass(frozen=True, slots=True)
class SegmentProjection:
    """Closest approach of a point to a segment.

    Attributes:
        distance: Miles between the point and its projection.
        t: Position of the projection along the segment, clamped to [0, 1].
    """

    distance: float
    t: float


def project_to_segment(
    p_lat: float,
    p_lon: float,
    a_lat: float,
    a_lon: float,
    b_lat: float,
    b_lon: float,
) -> SegmentProjection:
    """Project ``p`` onto segment ``a -> b``.

    Works in a flat frame anchored at ``a`` and scaled at ``p``'s latitude, which
    is accurate enough for the short segments of a simplified trail polyline.
    A zero-length segment projects to ``t = 0``.
    """

    miles_per_deg_lon = MILES_PER_DEGREE_LATITUDE * math.cos(math.radians(p_lat))

    px = (p_lon - a_lon) * miles_per_deg_lon
    py = (p_lat - a_lat) * MILES_PER_DEGREE_LATITUDE
    bx = (b_lon - a_lon) * miles_per_deg_lon
    by = (b_lat - a_lat) * MILES_PER_DEGREE_LATITUDE

    seg_len_sq = bx * bx + by * by
    if seg_len_sq == 0:
        t = 0.0
    else:
        t = max(0.0, min(1.0, (px * bx + py * by) / seg_len_sq))

    dx = px - t * bx
    dy = py - t * by
    return SegmentProjection(distance=math.sqrt(dx * dx + dy * dy), t=t)


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in miles between two lat/lon points."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    )
    return EARTH_RADIUS_MILES * 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))


__all__ = ["SegmentProjection", "haversine", "project_to_segment"]
