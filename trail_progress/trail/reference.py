"""Reference trail polyline with cumulative mile markers and elevations."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import math
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from ..config import MILES_PER_DEGREE_LATITUDE
from ..errors import TrailDataError
from ..geometry import haversine
from ..models import TrailReferenceVertex

MetricArray = NDArray[np.float64]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NearestSegment:
    """Result of scanning every reference segment for one point."""

    index: int
    t: float
    distance: float


class TrailReference:
    """Immutable ordered polyline used for proximity checks and snapping.

    Vertex data is mirrored into numpy arrays so a point can be projected onto
    every segment in one vectorised pass. The scan is O(segments) per point,
    which is fine for a simplified polyline of a few thousand vertices.
    """

    def __init__(self, vertices: Sequence[TrailReferenceVertex]) -> None:
        self._vertices = tuple(vertices)
        self._lons: MetricArray = np.array([v.lon for v in self._vertices], dtype=float)
        self._lats: MetricArray = np.array([v.lat for v in self._vertices], dtype=float)
        self._miles: MetricArray = np.array(
            [v.cumulative_mile for v in self._vertices], dtype=float
        )
        self._elevations: MetricArray = np.array(
            [
                np.nan if v.elevation_feet is None else v.elevation_feet
                for v in self._vertices
            ],
            dtype=float,
        )
        self._dlons = np.diff(self._lons)
        self._dlats = np.diff(self._lats)

    @property
    def vertices(self) -> tuple[TrailReferenceVertex, ...]:
        return self._vertices

    @property
    def has_segments(self) -> bool:
        """True when at least one segment exists to project onto."""

        return len(self._vertices) >= 2

    @property
    def total_miles(self) -> float:
        if not self._vertices:
            return 0.0
        return float(self._miles[-1])

    def __len__(self) -> int:
        return len(self._vertices)

    def nearest_segment(self, lat: float, lon: float) -> NearestSegment:
        """Project a point onto all segments and keep the closest one.

        Ties resolve to the lowest segment index.

        Raises:
            TrailDataError: If the polyline has fewer than two vertices.
        """

        if not self.has_segments:
            raise TrailDataError("Reference trail needs at least two vertices")

        miles_per_deg_lon = MILES_PER_DEGREE_LATITUDE * math.cos(math.radians(lat))
        px = (lon - self._lons[:-1]) * miles_per_deg_lon
        py = (lat - self._lats[:-1]) * MILES_PER_DEGREE_LATITUDE
        bx = self._dlons * miles_per_deg_lon
        by = self._dlats * MILES_PER_DEGREE_LATITUDE

        seg_len_sq = bx * bx + by * by
        t = np.zeros_like(seg_len_sq)
        np.divide(px * bx + py * by, seg_len_sq, out=t, where=seg_len_sq > 0)
        np.clip(t, 0.0, 1.0, out=t)

        dx = px - t * bx
        dy = py - t * by
        distances = np.sqrt(dx * dx + dy * dy)
        index = int(np.argmin(distances))
        return NearestSegment(
            index=index, t=float(t[index]), distance=float(distances[index])
        )

    def distance_to(self, lat: float, lon: float) -> float:
        """Minimum distance in miles from a point to the polyline."""

        return self.nearest_segment(lat, lon).distance

    def mile_at(self, segment: NearestSegment) -> float:
        """Interpolated mile marker, rounded to hundredths of a mile."""

        mile1 = float(self._miles[segment.index])
        mile2 = float(self._miles[segment.index + 1])
        return round(mile1 + segment.t * (mile2 - mile1), 2)

    def elevation_at(self, segment: NearestSegment) -> Optional[float]:
        """Interpolated elevation in whole feet; None if an endpoint lacks one."""

        elev1 = float(self._elevations[segment.index])
        elev2 = float(self._elevations[segment.index + 1])
        if math.isnan(elev1) or math.isnan(elev2):
            return None
        return float(round(elev1 + segment.t * (elev2 - elev1)))

    def to_rows(self) -> List[List[Any]]:
        return [
            [v.lon, v.lat, v.cumulative_mile, v.elevation_feet] for v in self._vertices
        ]

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[Any]]) -> "TrailReference":
        """Build from ``[lon, lat, cumulative_mile, elevation_feet?]`` rows."""

        vertices: List[TrailReferenceVertex] = []
        for position, row in enumerate(rows):
            if len(row) < 3:
                raise TrailDataError(
                    f"Trail vertex {position} needs lon, lat and cumulative mile"
                )
            try:
                elevation = row[3] if len(row) > 3 else None
                vertices.append(
                    TrailReferenceVertex(
                        lon=float(row[0]),
                        lat=float(row[1]),
                        cumulative_mile=float(row[2]),
                        elevation_feet=None if elevation is None else float(elevation),
                    )
                )
            except (TypeError, ValueError) as exc:
                raise TrailDataError(f"Invalid trail vertex {position}: {row!r}") from exc
        return cls(vertices)


def build_reference(
    coords: Sequence[Sequence[float]],
    *,
    elevations_feet: Optional[Sequence[Optional[float]]] = None,
    total_miles: Optional[float] = None,
) -> TrailReference:
    """Derive cumulative mile markers for a raw ``[lon, lat]`` polyline.

    Mile markers accumulate haversine distance between vertices. When
    ``total_miles`` is given they are scaled so the last vertex matches the
    official trail length, which absorbs the distance lost by simplification.
    """

    if elevations_feet is not None and len(elevations_feet) != len(coords):
        raise TrailDataError("Elevation list must match the coordinate count")

    cumulative = [0.0] * len(coords)
    for i in range(1, len(coords)):
        lon1, lat1 = coords[i - 1][0], coords[i - 1][1]
        lon2, lat2 = coords[i][0], coords[i][1]
        cumulative[i] = cumulative[i - 1] + haversine(lat1, lon1, lat2, lon2)

    raw_total = cumulative[-1] if cumulative else 0.0
    if total_miles is not None and raw_total > 0:
        scale = total_miles / raw_total
        LOGGER.info(
            "Scaling trail miles by %.6f (%.1f / %.1f)", scale, total_miles, raw_total
        )
        cumulative = [mile * scale for mile in cumulative]

    vertices = [
        TrailReferenceVertex(
            lon=float(coords[i][0]),
            lat=float(coords[i][1]),
            cumulative_mile=cumulative[i],
            elevation_feet=(
                None
                if elevations_feet is None or elevations_feet[i] is None
                else float(elevations_feet[i])
            ),
        )
        for i in range(len(coords))
    ]
    return TrailReference(vertices)


def load_reference(path: str | Path) -> TrailReference:
    """Load a reference polyline from a JSON file of vertex rows.

    Accepts either a bare list of rows or ``{"vertices": [...]}``.
    """

    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, ValueError) as exc:
        raise TrailDataError(f"Unable to read trail data from {p}: {exc}") from exc
    rows = payload.get("vertices") if isinstance(payload, dict) else payload
    if not isinstance(rows, list):
        raise TrailDataError(f"Trail data in {p} must be a list of vertices")
    reference = TrailReference.from_rows(rows)
    LOGGER.info(
        "Loaded trail reference vertices=%d miles=%.1f from %s",
        len(reference),
        reference.total_miles,
        p,
    )
    return reference


def save_reference(reference: TrailReference, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as handle:
        json.dump({"vertices": reference.to_rows()}, handle)


__all__ = [
    "NearestSegment",
    "TrailReference",
    "build_reference",
    "load_reference",
    "save_reference",
]
