"""Tests for ProgressService orchestration, caching and degradation."""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Any, List

import pytest

from trail_progress.aggregation import calculate_stats
from trail_progress.cache import MemoryCacheBackend, ResultCache, StoreCacheBackend
from trail_progress.config import STATS_CACHE_KEY, load_settings
from trail_progress.errors import ConfigurationError, TrailDataError
from trail_progress.mock_data import generate_mock_weather
from trail_progress.services import ProgressService, ProgressServiceConfig, StatsReport
from trail_progress.storage import InMemoryStore, store_points_by_day

from conftest import START_DATE, make_point, make_reference, make_settings

TODAY = START_DATE + timedelta(days=1)


class _Clock:
    def __init__(self, now: float = 5_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _service(store, *, settings=None, reference=None, **overrides: Any) -> ProgressService:
    settings = settings or make_settings()
    config = ProgressServiceConfig(
        settings_loader=lambda: settings,
        store=store,
        reference_loader=lambda _settings: reference,
        today=lambda: TODAY,
        **overrides,
    )
    return ProgressService(config)


@pytest.fixture
def store(hike_points) -> InMemoryStore:
    store = InMemoryStore()
    store_points_by_day(store, hike_points)
    return store


def test_stats_are_computed_from_store(store) -> None:
    report = _service(store, reference=make_reference()).stats()

    summary = report.summary
    assert summary.total_miles_completed == pytest.approx(4.1)
    assert summary.current_day_on_trail == 2
    assert summary.daily_distance_date == "2025-03-02"
    assert report.location is not None
    assert report.location.lat == pytest.approx(35.06)
    assert report.weather is None


def test_cached_stats_do_not_rerun_aggregator(store) -> None:
    calls: List[int] = []

    def counting_aggregator(*args: Any, **kwargs: Any):
        calls.append(1)
        return calculate_stats(*args, **kwargs)

    clock = _Clock()
    cache = ResultCache(
        MemoryCacheBackend(timer=clock),
        ttl_seconds=60,
        expiration_seconds=300,
        clock=clock,
    )
    service = _service(
        store,
        reference=make_reference(),
        cache=cache,
        aggregator=counting_aggregator,
    )

    first = service.stats()
    clock.now += 59
    second = service.stats()
    assert first == second
    assert len(calls) == 1

    clock.now += 2
    service.stats()
    assert len(calls) == 2


def test_stats_cache_in_store_uses_fixed_key(store) -> None:
    cache = ResultCache(StoreCacheBackend(store), ttl_seconds=60, expiration_seconds=300)
    report = _service(store, cache=cache).stats()
    assert store.get(STATS_CACHE_KEY) is not None
    assert StatsReport.from_dict(report.to_dict()) == report


def test_malformed_cached_stats_are_recomputed(store, caplog: pytest.LogCaptureFixture) -> None:
    clock = _Clock()
    calls: List[int] = []

    def counting_aggregator(*args: Any, **kwargs: Any):
        calls.append(1)
        return calculate_stats(*args, **kwargs)

    store.put(
        STATS_CACHE_KEY,
        json.dumps(
            {
                "value": {"data": {"totalMiles": "3.0"}, "timestamp": clock.now},
                "expiresAt": clock.now + 300,
            }
        ),
    )
    cache = ResultCache(
        StoreCacheBackend(store, clock=clock),
        ttl_seconds=60,
        expiration_seconds=300,
        clock=clock,
    )
    service = _service(
        store, reference=make_reference(), cache=cache, aggregator=counting_aggregator
    )

    with caplog.at_level(logging.WARNING):
        report = service.stats()
    assert report.summary.total_miles_completed == pytest.approx(4.1)
    assert "Cached payload unreadable" in caplog.text

    assert service.stats() == report
    assert len(calls) == 1


def test_broken_cache_falls_back_to_computation(store, caplog: pytest.LogCaptureFixture) -> None:
    class _Broken:
        def get(self, key: str) -> Any:
            raise TimeoutError("kv timeout")

        def put(self, key: str, value: Any, ttl_seconds: float) -> None:
            raise TimeoutError("kv timeout")

    service = _service(store, cache=ResultCache(_Broken(), ttl_seconds=60))
    with caplog.at_level(logging.WARNING):
        report = service.stats()
    assert report.summary.total_miles_completed > 0
    assert "Cache read failed" in caplog.text


def test_weather_failure_degrades_to_missing_weather(store, caplog: pytest.LogCaptureFixture) -> None:
    def failing_weather(lat: float, lon: float):
        raise RuntimeError("forecast api down")

    service = _service(store, weather=failing_weather)
    with caplog.at_level(logging.WARNING, logger="ProgressService"):
        report = service.stats()
    assert report.weather is None
    assert report.location is not None
    assert "Weather lookup failed" in caplog.text


def test_weather_is_attached_for_latest_location(store) -> None:
    seen = []

    def weather(lat: float, lon: float):
        seen.append((lat, lon))
        return generate_mock_weather(TODAY)

    report = _service(store, weather=weather).stats()
    assert report.weather is not None
    assert report.weather.forecast[0].date == TODAY.isoformat()
    assert seen == [(pytest.approx(35.06), pytest.approx(-80.0))]


def test_configuration_error_propagates(store) -> None:
    def loader():
        return load_settings({})

    service = ProgressService(ProgressServiceConfig(settings_loader=loader, store=store))
    with pytest.raises(ConfigurationError):
        service.stats()
    with pytest.raises(ConfigurationError):
        service.points()


def test_missing_reference_file_treats_points_as_on_trail(store, caplog) -> None:
    def loader(_settings):
        raise TrailDataError("no such file")

    service = ProgressService(
        ProgressServiceConfig(
            settings_loader=make_settings,
            store=store,
            reference_loader=loader,
            today=lambda: TODAY,
        )
    )
    with caplog.at_level(logging.WARNING, logger="ProgressService"):
        points = service.points()
    assert all(p.on_trail is True for p in points.points)
    assert all(p.trail_mile is None for p in points.points)
    assert "Trail reference unavailable" in caplog.text


def test_empty_store_gives_zero_summary_with_start_location() -> None:
    settings = make_settings(start_lat=34.6267, start_lon=-84.1938)
    report = _service(InMemoryStore(), settings=settings).stats()
    assert report.summary.total_miles_completed == 0.0
    assert report.summary.miles_remaining == 100.0
    assert report.summary.current_day_on_trail == 2
    assert report.location is not None
    assert report.location.lat == pytest.approx(34.6267)


def test_points_report_carries_threshold_and_dwell(store) -> None:
    result = _service(store, reference=make_reference()).points()
    payload = result.to_dict()
    assert payload["offTrailThreshold"] == 0.25
    assert [p["onTrail"] for p in payload["points"]].count(False) == 1
    assert all("trailMile" in p for p in payload["points"])


def test_elevation_days_and_profile(store) -> None:
    service = _service(store, reference=make_reference())
    assert service.elevation_days() == ["2025-03-02", "2025-03-01"]

    profile = service.elevation_for_day("2025-03-01")
    assert profile.min_elevation == 1000
    assert profile.max_elevation == 1200
    assert profile.vertical_climbed == 200
    assert profile.vertical_loss == 0

    empty = service.elevation_for_day("2024-01-01")
    assert empty.points == []
    assert empty.vertical_climbed is None

    with pytest.raises(ValueError):
        service.elevation_for_day("March 1")


def test_elevation_days_skip_days_without_elevation() -> None:
    store = InMemoryStore()
    store_points_by_day(store, [make_point(minutes=0, elevation_feet=900.0), make_point(minutes=24 * 60)])
    assert _service(store).elevation_days() == ["2025-03-01"]


def test_ingest_merges_into_store() -> None:
    store = InMemoryStore()
    service = _service(store)
    assert service.ingest([make_point(minutes=0), make_point(35.1, minutes=24 * 60)]) == 2
    assert len(service.points().points) == 2


def test_mock_mode_serves_generated_points() -> None:
    settings = make_settings(use_mock_data=True, total_trail_miles=2197.9)
    service = _service(InMemoryStore(), settings=settings)

    report = service.stats()
    assert report.summary.total_miles_completed > 0
    assert report.weather is not None
    assert report.weather.location_name == "Demo Trail"

    points = service.points().points
    assert any(p.on_trail is False for p in points)
    assert service.elevation_days()[0] == "2025-03-13"
    assert service.elevation_for_day("2025-03-01").points
