"""Current conditions and short forecast for the hiker's latest position.

Weather codes are returned as the raw WMO integers from Open-Meteo; turning
them into display text is left to the presentation layer.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
from typing import Any, Dict, List, Optional

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .cache import ResultCache
from .config import (
    GEOCODE_REQUEST_TIMEOUT,
    HTTP_POOL_CONNECTIONS,
    HTTP_POOL_MAXSIZE,
    REVERSE_GEOCODE_URL,
    WEATHER_FORECAST_DAYS,
    WEATHER_FORECAST_URL,
    WEATHER_REQUEST_TIMEOUT,
)
from .errors import WeatherError

LOGGER = logging.getLogger(__name__)

KMH_TO_MPH = 0.621371


@dataclass(slots=True)
class CurrentConditions:
    temperature_f: int
    weather_code: Optional[int]
    humidity: Optional[float]
    wind_speed_mph: int
    wind_direction: Optional[float]
    feels_like_f: int


@dataclass(slots=True)
class DailyForecast:
    date: str
    high_f: int
    low_f: int
    weather_code: Optional[int]


@dataclass(slots=True)
class WeatherReport:
    current: CurrentConditions
    forecast: List[DailyForecast] = field(default_factory=list)
    location_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "WeatherReport":
        return cls(
            current=CurrentConditions(**payload["current"]),
            forecast=[DailyForecast(**item) for item in payload.get("forecast", [])],
            location_name=payload.get("location_name"),
        )


def _build_retry() -> Retry:
    return Retry(
        total=3,
        backoff_factor=1.0,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET"],
    )


def create_weather_session() -> Session:
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=HTTP_POOL_CONNECTIONS,
        pool_maxsize=HTTP_POOL_MAXSIZE,
        max_retries=_build_retry(),
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"Accept": "application/json"})
    return session


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class WeatherClient:
    """Fetch forecasts from Open-Meteo plus a best-effort locality name."""

    def __init__(
        self,
        session: Session | None = None,
        *,
        forecast_url: str = WEATHER_FORECAST_URL,
        geocode_url: str | None = REVERSE_GEOCODE_URL,
        timeout: float = WEATHER_REQUEST_TIMEOUT,
        geocode_timeout: float = GEOCODE_REQUEST_TIMEOUT,
    ) -> None:
        self._session = session or create_weather_session()
        self._forecast_url = forecast_url
        self._geocode_url = geocode_url
        self._timeout = timeout
        self._geocode_timeout = geocode_timeout

    def fetch(self, lat: float, lon: float) -> WeatherReport:
        """Return conditions at ``lat``/``lon``.

        Raises:
            WeatherError: If the forecast request fails or returns bad data.
        """

        params = {
            "latitude": lat,
            "longitude": lon,
            "current": (
                "temperature_2m,relative_humidity_2m,weather_code,"
                "wind_speed_10m,wind_direction_10m,apparent_temperature"
            ),
            "daily": "weather_code,temperature_2m_max,temperature_2m_min",
            "timezone": "auto",
            "forecast_days": WEATHER_FORECAST_DAYS,
            "temperature_unit": "fahrenheit",
        }
        try:
            resp = self._session.get(self._forecast_url, params=params, timeout=self._timeout)
        except requests.RequestException as exc:
            raise WeatherError(f"Weather API error: {exc}") from exc
        if not resp.ok:
            raise WeatherError(f"Weather API error: HTTP {resp.status_code}")
        try:
            report = self._parse_forecast(resp.json())
        except (KeyError, TypeError, ValueError) as exc:
            raise WeatherError(f"Unexpected weather payload: {exc}") from exc
        report.location_name = self._lookup_locality(lat, lon)
        return report

    @staticmethod
    def _parse_forecast(data: Dict[str, Any]) -> WeatherReport:
        current = data["current"]
        daily = data["daily"]
        conditions = CurrentConditions(
            temperature_f=round(float(current["temperature_2m"])),
            weather_code=_optional_int(current.get("weather_code")),
            humidity=current.get("relative_humidity_2m"),
            wind_speed_mph=round(float(current["wind_speed_10m"]) * KMH_TO_MPH),
            wind_direction=current.get("wind_direction_10m"),
            feels_like_f=round(float(current["apparent_temperature"])),
        )
        days = daily["time"][:WEATHER_FORECAST_DAYS]
        forecast = [
            DailyForecast(
                date=str(day),
                high_f=round(float(daily["temperature_2m_max"][i])),
                low_f=round(float(daily["temperature_2m_min"][i])),
                weather_code=_optional_int(daily["weather_code"][i]),
            )
            for i, day in enumerate(days)
        ]
        return WeatherReport(current=conditions, forecast=forecast)

    def _lookup_locality(self, lat: float, lon: float) -> Optional[str]:
        if not self._geocode_url:
            return None
        params = {"latitude": lat, "longitude": lon, "localityLanguage": "en"}
        try:
            resp = self._session.get(
                self._geocode_url, params=params, timeout=self._geocode_timeout
            )
            if not resp.ok:
                return None
            geo = resp.json()
        except (requests.RequestException, ValueError) as exc:
            LOGGER.debug("Reverse geocode failed lat=%s lon=%s: %s", lat, lon, exc)
            return None
        if not isinstance(geo, dict):
            return None
        return geo.get("locality") or geo.get("city") or geo.get("principalSubdivision") or None


def weather_cache_key(lat: float, lon: float) -> str:
    """Cache key per ~1 km cell so nearby pings share a lookup."""

    return f"cache:weather:{lat:.2f},{lon:.2f}"


def fetch_weather_cached(
    client: WeatherClient,
    cache: ResultCache | None,
    lat: float,
    lon: float,
) -> WeatherReport:
    """Fetch weather through ``cache`` (if any); errors propagate uncached."""

    if cache is None:
        return client.fetch(lat, lon)
    return cache.get_or_compute(
        weather_cache_key(lat, lon),
        lambda: client.fetch(lat, lon).to_dict(),
        decode=WeatherReport.from_dict,
    )


__all__ = [
    "CurrentConditions",
    "DailyForecast",
    "WeatherClient",
    "WeatherReport",
    "create_weather_session",
    "fetch_weather_cached",
    "weather_cache_key",
]
