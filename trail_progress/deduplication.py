"""Collapse stationary ping clusters into a single dwell-annotated point."""

from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, Sequence

from .config import STATIONARY_THRESHOLD_MILES
from .geometry import haversine
from .models import TrailPoint


def deduplicate_stationary(
    points: Sequence[TrailPoint],
    threshold_miles: float = STATIONARY_THRESHOLD_MILES,
) -> List[TrailPoint]:
    """Fold consecutive pings within ``threshold_miles`` of the last kept one.

    Points must already be in chronological order. The threshold is inclusive:
    a ping must move strictly farther than it to start a new cluster. The
    first ping of every cluster is kept; its ``last_ping_time`` becomes the
    time of the latest folded ping and ``stationary_pings`` counts the whole
    cluster. Pings without finite coordinates are kept as-is, never folded,
    and never become the anchor, so they do not split a cluster.
    """

    result: List[TrailPoint] = []
    anchor: Optional[int] = None
    for point in points:
        if not point.has_finite_coordinates:
            result.append(point)
            continue
        if anchor is not None:
            kept = result[anchor]
            if haversine(kept.lat, kept.lon, point.lat, point.lon) <= threshold_miles:
                result[anchor] = replace(
                    kept,
                    last_ping_time=point.last_ping_time or point.timestamp,
                    stationary_pings=kept.stationary_pings + point.stationary_pings,
                )
                continue
        anchor = len(result)
        result.append(point)
    return result


__all__ = ["deduplicate_stationary"]
