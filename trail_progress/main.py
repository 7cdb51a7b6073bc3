"""Command line entry point for the trail progress tracker.

Subcommands:
    stats            Print the hike summary with location and weather.
    points           Print annotated pings for map rendering.
    elevation        List days with elevation data, or one day's profile.
    ingest           Merge pings from a JSON file into the store.
    report           Write an Excel workbook of the summary and daily totals.
    build-reference  Derive a mile-marked reference trail from raw coordinates.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
import json
import logging
from pathlib import Path
import sys
from typing import Any, Callable, List, Sequence

from .cache import MemoryCacheBackend, ResultCache, StoreCacheBackend
from .config import (
    STATS_CACHE_EXPIRATION_SECONDS,
    STATS_CACHE_TTL_SECONDS,
    TOTAL_TRAIL_MILES,
    WEATHER_CACHE_TTL_SECONDS,
    TrackerSettings,
    load_settings,
)
from .errors import ConfigurationError, TrailProgressError
from .excel_writer import write_progress_report
from .models import TrailPoint
from .services import ProgressService, ProgressServiceConfig
from .storage import JsonDirectoryStore, deserialize_point
from .trail import build_reference, save_reference
from .utils import json_dumps_sorted
from .weather import WeatherClient, WeatherReport, fetch_weather_cached

LOGGER = logging.getLogger(__name__)


def _setup_logging(level: str = "INFO") -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trail-progress",
        description="Track a long-distance hike from satellite pings.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Serve generated demo pings instead of the store",
    )
    parser.add_argument(
        "--no-weather",
        action="store_true",
        help="Skip the forecast lookup",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("stats", help="Print the hike summary as JSON")
    sub.add_parser("points", help="Print annotated pings as JSON")

    elevation = sub.add_parser("elevation", help="Elevation days or a day profile")
    elevation.add_argument("--day", help="UTC day (YYYY-MM-DD) to profile")

    ingest = sub.add_parser("ingest", help="Merge pings from a JSON file")
    ingest.add_argument("path", type=Path, help="JSON list of points")

    report = sub.add_parser("report", help="Write an Excel progress report")
    report.add_argument(
        "--output", type=Path, default=Path("trail_progress.xlsx"), help="Workbook path"
    )

    build = sub.add_parser(
        "build-reference", help="Build a mile-marked trail from [lon, lat(, elev_ft)] rows"
    )
    build.add_argument("source", type=Path, help="JSON list of coordinates")
    build.add_argument("output", type=Path, help="Reference file to write")
    build.add_argument(
        "--total-miles",
        type=float,
        default=TOTAL_TRAIL_MILES,
        help="Official trail length the last vertex is scaled to",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _settings_loader(mock: bool) -> Callable[[], TrackerSettings]:
    def load() -> TrackerSettings:
        settings = load_settings()
        if mock and not settings.use_mock_data:
            return replace(settings, use_mock_data=True)
        return settings

    return load


def build_service(args: argparse.Namespace) -> ProgressService:
    """Wire the service with a directory store, stats/weather caches and HTTP."""

    settings = load_settings()
    store = JsonDirectoryStore(settings.store_dir)
    stats_cache = ResultCache(
        StoreCacheBackend(store),
        ttl_seconds=STATS_CACHE_TTL_SECONDS,
        expiration_seconds=STATS_CACHE_EXPIRATION_SECONDS,
    )
    weather_lookup = None
    if not args.no_weather:
        client = WeatherClient()
        weather_cache = ResultCache(
            MemoryCacheBackend(), ttl_seconds=WEATHER_CACHE_TTL_SECONDS
        )

        def weather_lookup(lat: float, lon: float) -> WeatherReport:
            return fetch_weather_cached(client, weather_cache, lat, lon)

    return ProgressService(
        ProgressServiceConfig(
            settings_loader=_settings_loader(args.mock),
            store=store,
            cache=stats_cache,
            weather=weather_lookup,
        )
    )


def _print_json(payload: Any) -> None:
    sys.stdout.write(json_dumps_sorted(payload, indent=2) + "\n")


def _load_point_file(path: Path) -> List[TrailPoint]:
    with path.open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    if isinstance(raw, dict):
        raw = raw.get("points", [])
    if not isinstance(raw, list):
        raise ValueError(f"{path} must contain a list of points")
    points = []
    for item in raw:
        try:
            points.append(deserialize_point(item))
        except (TypeError, ValueError, AttributeError) as exc:
            LOGGER.warning("Skipping unreadable point %r: %s", item, exc)
    return points


def _build_reference_file(args: argparse.Namespace) -> int:
    with args.source.open("r", encoding="utf-8") as handle:
        rows = json.load(handle)
    coords = [(float(row[0]), float(row[1])) for row in rows]
    elevations = None
    if rows and all(len(row) > 2 for row in rows):
        elevations = [None if row[2] is None else float(row[2]) for row in rows]
    reference = build_reference(
        coords, elevations_feet=elevations, total_miles=args.total_miles
    )
    save_reference(reference, args.output)
    LOGGER.info(
        "Wrote reference vertices=%d miles=%.1f to %s",
        len(reference),
        reference.total_miles,
        args.output,
    )
    return 0


def run(args: argparse.Namespace) -> int:
    if args.command == "build-reference":
        return _build_reference_file(args)

    service = build_service(args)
    if args.command == "stats":
        _print_json(service.stats().to_dict())
    elif args.command == "points":
        _print_json(service.points().to_dict())
    elif args.command == "elevation":
        if args.day:
            _print_json(service.elevation_for_day(args.day).to_dict())
        else:
            _print_json({"days": service.elevation_days()})
    elif args.command == "ingest":
        written = service.ingest(_load_point_file(args.path))
        LOGGER.info("Ingest complete days=%d", written)
    elif args.command == "report":
        report = service.stats()
        points = service.points().points
        path = write_progress_report(args.output, report, points)
        LOGGER.info("Report saved to %s", path)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _setup_logging(args.log_level)
    try:
        return run(args)
    except ConfigurationError as exc:
        for message in exc.errors:
            LOGGER.error("Configuration error: %s", message)
        return 2
    except (TrailProgressError, OSError, ValueError) as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return 1


__all__ = ["build_service", "main", "parse_args", "run"]
