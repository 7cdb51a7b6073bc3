"""Tests for on/off-trail classification and trail-mile snapping."""

from __future__ import annotations

import math

import pytest

from trail_progress.trail import (
    TrailReference,
    distance_to_trail,
    is_on_trail,
    snap_points_to_trail,
    snap_to_trail,
    tag_and_snap_points,
    tag_points_on_off_trail,
    usable_reference,
)

from conftest import make_point


def test_snap_interpolates_mile_and_elevation(unit_reference: TrailReference) -> None:
    snap = snap_to_trail(0.5, 0.0, unit_reference)
    assert snap.trail_mile == pytest.approx(0.5)
    assert snap.trail_elevation == 150.0
    assert snap.distance == pytest.approx(0.0, abs=1e-9)

    nearest = unit_reference.nearest_segment(0.5, 0.0)
    assert nearest.index == 0
    assert nearest.t == pytest.approx(0.5)


def test_snap_picks_closest_segment(reference: TrailReference) -> None:
    snap = snap_to_trail(35.075, -80.0, reference)
    assert snap.trail_mile == pytest.approx(5.18, abs=0.01)
    assert snap.trail_elevation == 1750.0


def test_elevation_missing_on_either_vertex_is_none() -> None:
    ref = TrailReference.from_rows([[0.0, 0.0, 0.0, 100.0], [0.0, 1.0, 1.0]])
    assert snap_to_trail(0.5, 0.0, ref).trail_elevation is None


def test_tag_and_snap_is_idempotent(reference: TrailReference) -> None:
    points = [
        make_point(35.03, -80.0, 0),
        make_point(35.03, -79.99, 20),
        make_point(35.03, -79.5, 40),
    ]
    once = tag_and_snap_points(points, reference, 0.25)
    twice = tag_and_snap_points(once, reference, 0.25)
    for first, second in zip(once, twice):
        assert (first.on_trail, first.trail_mile, first.trail_elevation) == (
            second.on_trail,
            second.trail_mile,
            second.trail_elevation,
        )


@pytest.mark.parametrize("lon_offset", [0.0, 0.002, 0.004, 0.005, 0.01, 0.5])
def test_points_beyond_threshold_are_off_trail_without_mile(
    reference: TrailReference, lon_offset: float
) -> None:
    threshold = 0.25
    point = make_point(35.03, -80.0 + lon_offset, 0)
    (annotated,) = tag_and_snap_points([point], reference, threshold)
    if distance_to_trail(point.lat, point.lon, reference) > threshold:
        assert annotated.on_trail is False
        assert annotated.trail_mile is None
        assert annotated.trail_elevation is None
    else:
        assert annotated.on_trail is True
        assert annotated.trail_mile == pytest.approx(2.07, abs=0.01)


def test_single_pass_matches_two_stage_pipeline(reference: TrailReference) -> None:
    points = [make_point(35.0 + i * 0.01, -80.0 + (i % 3) * 0.003, i * 20) for i in range(10)]
    combined = tag_and_snap_points(points, reference, 0.25)
    staged = snap_points_to_trail(tag_points_on_off_trail(points, reference, 0.25), reference)
    assert combined == staged


def test_non_finite_coordinates_are_off_trail(reference: TrailReference) -> None:
    bad = make_point(math.nan, -80.0, 0)
    assert is_on_trail(bad, reference) is False
    assert is_on_trail(bad, None) is False
    (annotated,) = tag_and_snap_points([bad], None)
    assert annotated.on_trail is False
    assert annotated.trail_mile is None
    assert distance_to_trail(math.inf, -80.0, reference) == math.inf


def test_missing_reference_assumes_on_trail() -> None:
    points = [make_point(10.0, 10.0, 0), make_point(11.0, 11.0, 20)]
    single_vertex = TrailReference.from_rows([[0.0, 0.0, 0.0]])
    for ref in (None, single_vertex):
        annotated = tag_and_snap_points(points, ref, 0.25)
        assert all(p.on_trail is True for p in annotated)
        assert all(p.trail_mile is None for p in annotated)


def test_pipeline_returns_new_points(reference: TrailReference) -> None:
    original = make_point(35.03, -80.0, 0)
    (annotated,) = tag_and_snap_points([original], reference)
    assert original.on_trail is None
    assert original.trail_mile is None
    assert annotated is not original


def test_nearest_segment_requires_two_vertices() -> None:
    from trail_progress.errors import TrailDataError

    with pytest.raises(TrailDataError):
        TrailReference.from_rows([[0.0, 0.0, 0.0]]).nearest_segment(0.0, 0.0)


def test_degenerate_reference_is_not_usable(reference: TrailReference) -> None:
    single_vertex = TrailReference.from_rows([[0.0, 0.0, 0.0]])
    assert usable_reference(None) is None
    assert usable_reference(single_vertex) is None
    assert usable_reference(reference) is reference

    point = make_point(10.0, 10.0, 0, on_trail=True)
    assert is_on_trail(point, single_vertex) is True
    (snapped,) = snap_points_to_trail([point], single_vertex)
    assert snapped.trail_mile is None
    assert snapped.trail_elevation is None
