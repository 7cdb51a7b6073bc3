"""Tests for the forecast client with a stubbed HTTP session."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pytest
import requests

from trail_progress.cache import MemoryCacheBackend, ResultCache
from trail_progress.errors import WeatherError
from trail_progress.weather import (
    WeatherClient,
    WeatherReport,
    create_weather_session,
    fetch_weather_cached,
    weather_cache_key,
)

FORECAST = {
    "current": {
        "temperature_2m": 67.6,
        "relative_humidity_2m": 64,
        "weather_code": 3,
        "wind_speed_10m": 16.0,
        "wind_direction_10m": 210,
        "apparent_temperature": 69.4,
    },
    "daily": {
        "time": ["2025-03-01", "2025-03-02", "2025-03-03", "2025-03-04", "2025-03-05", "2025-03-06"],
        "temperature_2m_max": [72.4, 75.0, 70.1, 68.0, 65.5, 60.0],
        "temperature_2m_min": [58.2, 60.0, 55.0, 52.0, 50.0, 45.0],
        "weather_code": [2, 0, 2, 61, 2, 3],
    },
}


class _Response:
    def __init__(self, payload: Any, status: int = 200) -> None:
        self._payload = payload
        self.status_code = status
        self.ok = 200 <= status < 300

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _Session:
    def __init__(self, responses: Dict[str, Any]) -> None:
        self.responses = responses
        self.calls: List[Tuple[str, Dict[str, Any], float]] = []

    def get(self, url: str, params: Dict[str, Any], timeout: float) -> _Response:
        self.calls.append((url, params, timeout))
        for marker, response in self.responses.items():
            if marker in url:
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"unexpected url {url}")


def _client(session: _Session) -> WeatherClient:
    return WeatherClient(session=session)  # type: ignore[arg-type]


def test_fetch_parses_forecast_and_locality() -> None:
    session = _Session(
        {
            "open-meteo": _Response(FORECAST),
            "bigdatacloud": _Response({"locality": "", "city": "Dahlonega"}),
        }
    )
    report = _client(session).fetch(34.53, -83.98)

    assert report.current.temperature_f == 68
    assert report.current.feels_like_f == 69
    assert report.current.weather_code == 3
    assert report.current.wind_speed_mph == 10
    assert len(report.forecast) == 5
    assert report.forecast[3].weather_code == 61
    assert report.forecast[0].high_f == 72
    assert report.location_name == "Dahlonega"

    forecast_params = session.calls[0][1]
    assert forecast_params["temperature_unit"] == "fahrenheit"
    assert forecast_params["forecast_days"] == 5
    assert session.calls[1][2] == pytest.approx(3.0)


def test_geocode_failure_only_drops_location_name() -> None:
    session = _Session(
        {
            "open-meteo": _Response(FORECAST),
            "bigdatacloud": requests.ConnectionError("timeout"),
        }
    )
    report = _client(session).fetch(34.53, -83.98)
    assert report.location_name is None
    assert report.current.temperature_f == 68


@pytest.mark.parametrize(
    "response",
    [
        _Response({}, status=503),
        _Response({"current": {}}),
        _Response(ValueError("not json")),
        requests.ConnectionError("offline"),
    ],
)
def test_forecast_failures_raise_weather_error(response: Any) -> None:
    session = _Session({"open-meteo": response})
    with pytest.raises(WeatherError):
        _client(session).fetch(34.53, -83.98)


def test_cached_fetch_hits_network_once_per_cell() -> None:
    session = _Session(
        {
            "open-meteo": _Response(FORECAST),
            "bigdatacloud": _Response({"locality": "Suches"}),
        }
    )
    client = _client(session)
    cache = ResultCache(MemoryCacheBackend(), ttl_seconds=1800)

    first = fetch_weather_cached(client, cache, 34.6891, -84.0162)
    second = fetch_weather_cached(client, cache, 34.6911, -84.0171)
    assert isinstance(second, WeatherReport)
    assert first == second
    assert len(session.calls) == 2
    assert weather_cache_key(34.6891, -84.0162) == "cache:weather:34.69,-84.02"


def test_weather_session_retries_server_errors() -> None:
    session = create_weather_session()
    adapter = session.get_adapter("https://api.open-meteo.com")
    retry = adapter.max_retries
    assert retry.total == 3
    assert 503 in retry.status_forcelist


def test_cached_fetch_replaces_unreadable_entry() -> None:
    session = _Session(
        {
            "open-meteo": _Response(FORECAST),
            "bigdatacloud": _Response({"locality": "Suches"}),
        }
    )
    cache = ResultCache(MemoryCacheBackend(), ttl_seconds=1800)
    cache.write(weather_cache_key(34.6891, -84.0162), {"current": {"temp": 61}})

    report = fetch_weather_cached(_client(session), cache, 34.6891, -84.0162)
    assert report.location_name == "Suches"
    assert len(session.calls) == 2
