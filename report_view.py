"""Sorted and summarised projections of report entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from models import ReportEntry, RowKind
from utils import parse_hours, weekday_sort_key

ASC = "asc"
DESC = "desc"

SORTABLE_FIELDS = (
    "date",
    "weekday",
    "start_time",
    "end_time",
    "duration",
    "client_id",
    "activity_id",
    "notes",
    "modified_at",
    "client_name",
    "username",
    "activity_name",
)


@dataclass(frozen=True)
class Summary:
    total_hours: Decimal
    distinct_workdays: int


@dataclass(frozen=True)
class SortState:
    field: str | None = None
    direction: str = ASC

    def toggle(self, field: str) -> SortState:
        """Flip direction on the same field, start ascending on a new one."""
        if field != self.field:
            return SortState(field, ASC)
        return SortState(field, DESC if self.direction == ASC else ASC)


@dataclass
class ClientGroup:
    client_id: str
    client_name: str
    reports: list[ReportEntry]
    summary: Summary


def _sort_value(row: ReportEntry, field: str):
    if field == "weekday":
        return weekday_sort_key(row.date) if row.date else None
    if field == "duration":
        return parse_hours(row.duration)
    value = getattr(row, field)
    if isinstance(value, str):
        return value.lower() or None
    return value


def sort_rows(rows: list[ReportEntry], field: str | None, direction: str = ASC) -> list[ReportEntry]:
    """Return a stably sorted copy of rows.

    Empty values go last when ascending. Equal values keep their relative
    order in both directions.
    """
    if not field:
        return list(rows)
    if field not in SORTABLE_FIELDS:
        raise ValueError(f"Cannot sort by {field!r}")
    if direction not in (ASC, DESC):
        raise ValueError(f"Unknown sort direction {direction!r}")

    def key(row: ReportEntry):
        value = _sort_value(row, field)
        return (value is None, value)

    # reverse=True keeps ties in input order
    return sorted(rows, key=key, reverse=direction == DESC)


def summarize(rows: list[ReportEntry]) -> Summary:
    """Total hours and number of distinct dates worked."""
    total = Decimal("0")
    days: set[date] = set()
    for row in rows:
        if row.kind is RowKind.PLACEHOLDER:
            continue
        hours = parse_hours(row.duration)
        if hours is not None:
            total += hours
        if row.date:
            days.add(row.date)
    return Summary(total_hours=total, distinct_workdays=len(days))


def group_by_client(reports_by_client: dict[str, dict]) -> list[ClientGroup]:
    """Wrap the client-grouped report mapping with per-group summaries."""
    groups = []
    for client_id, group in reports_by_client.items():
        reports = list(group.get("reports", []))
        name = next((r.client_name for r in reports if r.client_name), client_id)
        groups.append(ClientGroup(
            client_id=client_id,
            client_name=name,
            reports=reports,
            summary=summarize(reports),
        ))
    return groups


# --- Export filenames ---


def _slug(name: str) -> str:
    return name.strip().replace(" ", "-")


def ledger_filename(year: int, month: int) -> str:
    return f"report-{year}-{month:02d}.csv"


def clients_report_filename(start: date, client_names: list[str]) -> str:
    basename = _slug(client_names[0]) if len(client_names) == 1 else "clients"
    return f"{basename}-{start:%Y-%m}.csv"


def advanced_report_filename(
    start: date,
    end: date,
    client_names: list[str],
    user_names: list[str],
    activity_names: list[str],
) -> str:
    """Name parts come from filters that have exactly one value selected."""
    parts = [
        _slug(names[0])
        for names in (client_names, user_names, activity_names)
        if len(names) == 1
    ]
    basename = "-".join(parts) if parts else "report"
    return f"{basename}-{start:%Y-%m-%d}-{end:%Y-%m-%d}.csv"
