"""Smoke tests for the Excel progress report."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pandas as pd
from openpyxl import load_workbook

from trail_progress.aggregation import calculate_stats
from trail_progress.excel_writer import daily_rows, summary_rows, write_progress_report
from trail_progress.mock_data import generate_mock_weather
from trail_progress.services import Location, StatsReport
from trail_progress.trail import tag_and_snap_points

from conftest import START_DATE

TODAY = START_DATE + timedelta(days=1)


def _report(points, weather=None) -> StatsReport:
    summary = calculate_stats(points, START_DATE, 100.0, today=TODAY, filter_off_trail=True)
    return StatsReport(summary=summary, location=Location(35.06, -80.0), weather=weather)


def test_write_report_sheets(tmp_path: Path, hike_points, reference) -> None:
    annotated = tag_and_snap_points(hike_points, reference, 0.25)
    report = _report(annotated, weather=generate_mock_weather(TODAY))
    out = write_progress_report(tmp_path / "progress.xlsx", report, annotated)

    with pd.ExcelFile(out) as xf:
        assert xf.sheet_names == ["Summary", "Daily", "Forecast"]
        daily = pd.read_excel(xf, "Daily")
        summary = pd.read_excel(xf, "Summary")
    assert list(daily["Date"]) == ["2025-03-01", "2025-03-02"]
    assert list(daily["Distance Source"]) == ["trail miles", "trail miles"]
    values = dict(zip(summary["Metric"], summary["Value"]))
    assert values["Current Day On Trail"] == 2
    assert values["Near"] == "Demo Trail"

    wb = load_workbook(out)
    assert wb["Daily"]["A1"].font.bold
    assert wb["Summary"].column_dimensions["A"].width > 6


def test_report_without_weather_or_points(tmp_path: Path) -> None:
    report = _report([])
    out = write_progress_report(tmp_path / "empty.xlsx", report, [])
    with pd.ExcelFile(out) as xf:
        assert xf.sheet_names == ["Summary", "Daily"]
        assert pd.read_excel(xf, "Daily").empty


def test_daily_rows_skip_off_trail_only_when_filtered(hike_points, reference) -> None:
    annotated = tag_and_snap_points(hike_points, reference, 0.25)
    rows = daily_rows([p for p in annotated if p.on_trail is not False])
    assert [r["Pings"] for r in rows] == [3, 3]
    assert rows[1]["Distance (mi)"] == 2.8


def test_summary_rows_include_location() -> None:
    rows = summary_rows(_report([]))
    metrics = [r["Metric"] for r in rows]
    assert "Latest Latitude" in metrics
    assert "Near" not in metrics
