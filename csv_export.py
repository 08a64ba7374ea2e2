"""Write ledger and report data to CSV files."""

from __future__ import annotations

import csv
import os
from pathlib import Path

from models import ReportEntry
from report_view import ClientGroup, Summary
from utils import format_hours, format_time

LEDGER_COLUMNS = ["Date", "Weekday", "Start", "End", "Hours", "Client", "Activity", "Notes"]
CLIENTS_REPORT_COLUMNS = ["Date", "Weekday", "Start", "End", "Hours", "Employee", "Activity", "Notes", "Modified"]
ADVANCED_REPORT_COLUMNS = ["Date", "Weekday", "Start", "End", "Hours", "Client", "Employee", "Activity", "Notes"]


def get_export_dir() -> Path:
    """Get export directory from environment variable or default location."""
    if env_path := os.environ.get("LEDGER_EXPORT_DIR"):
        return Path(env_path)
    return Path.cwd() / "exports"


def _open(filename: str, directory: Path | None):
    directory = directory or get_export_dir()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    return path, open(path, "w", newline="", encoding="utf-8")


def _common_cells(entry: ReportEntry) -> list[str]:
    return [
        entry.date.strftime("%d/%m/%Y") if entry.date else "",
        entry.date.strftime("%A") if entry.date else "",
        format_time(entry.start_time),
        format_time(entry.end_time),
        format_hours(entry.duration),
    ]


def _summary_rows(summary: Summary, width: int) -> list[list[str]]:
    padding = [""] * (width - 5)
    return [
        ["", "", "", "Total hours", format_hours(summary.total_hours)] + padding,
        ["", "", "", "Workdays", str(summary.distinct_workdays)] + padding,
    ]


def write_ledger_csv(
    rows: list[ReportEntry],
    summary: Summary,
    filename: str,
    client_names: dict[str, str] | None = None,
    activity_names: dict[str, str] | None = None,
    directory: Path | None = None,
) -> Path:
    """Write one user's month with a hours/workdays footer."""
    client_names = client_names or {}
    activity_names = activity_names or {}

    path, handle = _open(filename, directory)
    with handle:
        writer = csv.writer(handle)
        writer.writerow(LEDGER_COLUMNS)
        for entry in rows:
            writer.writerow(_common_cells(entry) + [
                client_names.get(entry.client_id or "", entry.client_name or ""),
                activity_names.get(entry.activity_id or "", entry.activity_name or ""),
                entry.notes,
            ])
        writer.writerows(_summary_rows(summary, len(LEDGER_COLUMNS)))
    return path


def write_clients_report_csv(groups: list[ClientGroup], filename: str, directory: Path | None = None) -> Path:
    """Write one section per client, each followed by its own footer."""
    path, handle = _open(filename, directory)
    with handle:
        writer = csv.writer(handle)
        for group in groups:
            writer.writerow([group.client_name])
            writer.writerow(CLIENTS_REPORT_COLUMNS)
            for entry in group.reports:
                writer.writerow(_common_cells(entry) + [
                    entry.username or "",
                    entry.activity_name or "",
                    entry.notes,
                    entry.modified_at.strftime("%H:%M %d/%m/%Y") if entry.modified_at else "",
                ])
            writer.writerows(_summary_rows(group.summary, len(CLIENTS_REPORT_COLUMNS)))
            writer.writerow([])
    return path


def write_advanced_report_csv(rows: list[ReportEntry], filename: str, directory: Path | None = None) -> Path:
    path, handle = _open(filename, directory)
    with handle:
        writer = csv.writer(handle)
        writer.writerow(ADVANCED_REPORT_COLUMNS)
        for entry in rows:
            writer.writerow(_common_cells(entry) + [
                entry.client_name or "",
                entry.username or "",
                entry.activity_name or "",
                entry.notes,
            ])
    return path
