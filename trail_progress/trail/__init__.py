"""Reference trail model, proximity classification and snapping."""

from .proximity import (
    distance_to_trail,
    is_on_trail,
    tag_points_on_off_trail,
    usable_reference,
)
from .reference import (
    NearestSegment,
    TrailReference,
    build_reference,
    load_reference,
    save_reference,
)
from .snapping import SnapResult, snap_points_to_trail, snap_to_trail, tag_and_snap_points

__all__ = [
    "NearestSegment",
    "SnapResult",
    "TrailReference",
    "build_reference",
    "distance_to_trail",
    "is_on_trail",
    "load_reference",
    "save_reference",
    "snap_points_to_trail",
    "snap_to_trail",
    "tag_and_snap_points",
    "tag_points_on_off_trail",
    "usable_reference",
]
