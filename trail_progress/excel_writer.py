"""Excel export of the hike summary, per-day buckets and forecast."""

from __future__ import annotations

import logging
from os import PathLike
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pandas as pd
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from .aggregation import build_daily_buckets
from .config import (
    EXCEL_AUTOSIZE_COLUMNS,
    EXCEL_AUTOSIZE_MAX_ROWS,
    EXCEL_AUTOSIZE_MAX_WIDTH,
    EXCEL_AUTOSIZE_MIN_WIDTH,
    EXCEL_AUTOSIZE_PADDING,
)
from .models import TrailPoint
from .services import StatsReport

SUMMARY_SHEET = "Summary"
DAILY_SHEET = "Daily"
FORECAST_SHEET = "Forecast"

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(patternType="solid", fgColor="FFD9E1F2")
HEADER_BORDER = Border(
    left=Side(style="thin", color="000000"),
    right=Side(style="thin", color="000000"),
    top=Side(style="thin", color="000000"),
    bottom=Side(style="thin", color="000000"),
)

DAILY_COLUMNS = [
    "Date",
    "Distance (mi)",
    "Elevation Gain (ft)",
    "Elevation Loss (ft)",
    "Pings",
    "Distance Source",
]

PathInput = str | Path | PathLike[str]

LOGGER = logging.getLogger(__name__)


def _autosize(ws: Worksheet) -> None:
    if not EXCEL_AUTOSIZE_COLUMNS or ws.max_row > EXCEL_AUTOSIZE_MAX_ROWS:
        return
    for col_cells in ws.columns:
        max_len = 0
        col_letter = getattr(col_cells[0], "column_letter", None)
        for cell in col_cells:
            if cell.value is None:
                continue
            max_len = max(max_len, len(str(cell.value)))
        width = min(
            EXCEL_AUTOSIZE_MAX_WIDTH,
            max(EXCEL_AUTOSIZE_MIN_WIDTH, max_len + EXCEL_AUTOSIZE_PADDING),
        )
        if col_letter:
            ws.column_dimensions[col_letter].width = width


def _style_header_row(ws: Worksheet, max_col: int) -> None:
    for col_idx in range(1, max_col + 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = HEADER_BORDER


def summary_rows(report: StatsReport) -> List[Dict[str, Any]]:
    """Metric/value rows for the summary sheet."""

    s = report.summary
    rows: List[Dict[str, Any]] = [
        {"Metric": "Start Date", "Value": s.start_date.isoformat()},
        {"Metric": "Current Day On Trail", "Value": s.current_day_on_trail},
        {"Metric": "Total Miles Completed", "Value": s.total_miles_completed},
        {"Metric": "Miles Remaining", "Value": s.miles_remaining},
        {"Metric": "Daily Distance (mi)", "Value": s.daily_distance},
        {"Metric": "Daily Distance Date", "Value": s.daily_distance_date},
        {"Metric": "Average Speed (mph)", "Value": s.average_speed_mph},
        {
            "Metric": "Estimated Finish Date",
            "Value": s.estimated_finish_date.isoformat() if s.estimated_finish_date else None,
        },
        {"Metric": "Longest Day (mi)", "Value": s.longest_day_miles},
        {"Metric": "Longest Day Date", "Value": s.longest_day_date},
        {"Metric": "Most Elevation Gain (ft)", "Value": s.most_elevation_gain_feet},
        {"Metric": "Most Elevation Gain Date", "Value": s.most_elevation_gain_date},
    ]
    if report.location is not None:
        rows.append({"Metric": "Latest Latitude", "Value": report.location.lat})
        rows.append({"Metric": "Latest Longitude", "Value": report.location.lon})
    if report.weather is not None and report.weather.location_name:
        rows.append({"Metric": "Near", "Value": report.weather.location_name})
    return rows


def daily_rows(points: Sequence[TrailPoint]) -> List[Dict[str, Any]]:
    """One row per UTC day with distance and elevation totals."""

    rows = []
    for day, bucket in build_daily_buckets(points).items():
        rows.append(
            {
                "Date": day,
                "Distance (mi)": round(bucket.distance_miles, 1),
                "Elevation Gain (ft)": bucket.elevation_gain_feet,
                "Elevation Loss (ft)": bucket.elevation_loss_feet,
                "Pings": len(bucket.points),
                "Distance Source": "trail miles" if bucket.used_trail_miles else "straight line",
            }
        )
    return rows


def _write_sheet(writer: pd.ExcelWriter, name: str, df: pd.DataFrame) -> None:
    df.to_excel(writer, sheet_name=name, index=False)
    ws = writer.book[name]
    _style_header_row(ws, len(df.columns))
    _autosize(ws)
    LOGGER.info("Wrote sheet %s rows=%d", name, len(df))


def write_progress_report(
    filepath: PathInput,
    report: StatsReport,
    points: Sequence[TrailPoint],
) -> Path:
    """Write summary, daily and (when available) forecast sheets.

    Points should be the annotated pings the summary was computed from.
    """

    path = Path(filepath)
    on_trail = [p for p in points if p.on_trail is not False]
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        _write_sheet(writer, SUMMARY_SHEET, pd.DataFrame(summary_rows(report)))
        _write_sheet(
            writer,
            DAILY_SHEET,
            pd.DataFrame(daily_rows(on_trail), columns=DAILY_COLUMNS),
        )
        if report.weather is not None and report.weather.forecast:
            forecast = pd.DataFrame(
                [
                    {
                        "Date": f.date,
                        "High (F)": f.high_f,
                        "Low (F)": f.low_f,
                        "Weather Code": f.weather_code,
                    }
                    for f in report.weather.forecast
                ]
            )
            _write_sheet(writer, FORECAST_SHEET, forecast)
    return path


__all__ = ["daily_rows", "summary_rows", "write_progress_report"]
