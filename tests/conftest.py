"""Global pytest fixtures & helpers.

Adds project root to path and provides point/reference factories shared by
the pipeline, storage and service tests.
"""
from __future__ import annotations

import os
import sys
from datetime import date, datetime, timedelta, timezone

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from trail_progress.config import TrackerSettings
from trail_progress.models import TrailPoint
from trail_progress.trail import TrailReference

START_DATE = date(2025, 3, 1)
BASE_TIME = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


# --- Factory helpers -------------------------------------------------
def make_point(lat=35.0, lon=-80.0, minutes=0, **kwargs) -> TrailPoint:
    """Ping ``minutes`` after 08:00 UTC on the start date."""
    kwargs.setdefault("timestamp", BASE_TIME + timedelta(minutes=minutes))
    return TrailPoint(lat=lat, lon=lon, **kwargs)


def make_reference() -> TrailReference:
    """North-south trail along lon -80 from lat 35.0 (mile 0) to 35.1 (mile 6.9)."""
    return TrailReference.from_rows(
        [
            [-80.0, 35.0, 0.0, 1000.0],
            [-80.0, 35.05, 3.45, 1500.0],
            [-80.0, 35.1, 6.9, 2000.0],
        ]
    )


def make_settings(**overrides) -> TrackerSettings:
    values = {"start_date": START_DATE, "total_trail_miles": 100.0}
    values.update(overrides)
    return TrackerSettings(**values)


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def reference() -> TrailReference:
    return make_reference()


@pytest.fixture
def unit_reference() -> TrailReference:
    return TrailReference.from_rows([[0.0, 0.0, 0.0, 100.0], [0.0, 1.0, 1.0, 200.0]])


@pytest.fixture
def settings() -> TrackerSettings:
    return make_settings()


@pytest.fixture
def hike_points() -> list[TrailPoint]:
    """Two days on the reference trail with a town stop on day two."""
    day_two = 24 * 60
    return [
        make_point(35.0, -80.0, 0, elevation_feet=990.0, velocity_mph=0.0),
        make_point(35.01, -80.0, 20, elevation_feet=1105.0, velocity_mph=2.5),
        make_point(35.02, -80.0, 40, elevation_feet=1195.0, velocity_mph=2.5),
        make_point(35.02, -80.0, day_two, velocity_mph=0.0),
        make_point(35.04, -80.0, day_two + 60, velocity_mph=2.0),
        make_point(35.04, -79.9, day_two + 120, velocity_mph=0.0),
        make_point(35.06, -80.0, day_two + 180, velocity_mph=2.0),
    ]
