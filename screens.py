"""Modal screens for the ledger application."""

from __future__ import annotations

from datetime import date

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Input, Label, Select, SelectionList
from textual.screen import ModalScreen

from errors import FetchError
from models import Activity, Client, Period, ReportEntry, RowKind, User
from periods import report_months
from report_view import (
    SortState,
    advanced_report_filename,
    clients_report_filename,
    group_by_client,
    sort_rows,
    summarize,
)
from utils import format_hours, format_month, format_time, month_bounds, parse_hours, parse_time
import csv_export


class ConfirmScreen(ModalScreen[bool]):
    """Simple confirmation dialog."""

    CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 50;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $warning;
    }

    #confirm-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
    }

    #confirm-buttons Button {
        width: 1fr;
        margin: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
        Binding("y", "confirm", "Yes"),
        Binding("n", "cancel", "No"),
    ]

    def __init__(self, message: str):
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(self.message)
            with Horizontal(id="confirm-buttons"):
                yield Button("Yes (Y)", variant="warning", id="yes")
                yield Button("No (N)", variant="default", id="no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)


def _select_value(select: Select) -> str | None:
    value = select.value
    return value if isinstance(value, str) else None


class EditEntryScreen(ModalScreen[dict | None]):
    """Modal screen for editing one ledger entry.

    Dismisses with the changed field values, or None if cancelled.
    """

    CSS = """
    EditEntryScreen {
        align: center middle;
    }

    #edit-dialog {
        width: 80;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #edit-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    .field-group {
        width: 1fr;
        height: auto;
        margin: 0 1 0 0;
    }

    .field-group:last-of-type {
        margin-right: 0;
    }

    .field-label {
        height: 1;
        margin-bottom: 0;
        color: $text-muted;
    }

    .field-row {
        width: 100%;
        height: auto;
        margin-bottom: 1;
    }

    .field-row Input, .field-row Select {
        width: 100%;
    }

    #edit-buttons {
        width: 100%;
        height: auto;
        margin-top: 1;
        align: center middle;
    }

    #edit-buttons Button {
        width: auto;
        min-width: 12;
        margin: 0 2;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    # Field order for Enter key navigation
    FIELD_ORDER = ["entry-date", "start-time", "end-time", "duration", "notes"]

    # Entry field -> widget id, used to highlight fields rejected by storage
    FIELD_WIDGETS = {
        "date": "entry-date",
        "start_time": "start-time",
        "end_time": "end-time",
        "duration": "duration",
        "client_id": "client",
        "activity_id": "activity",
        "notes": "notes",
    }

    def __init__(
        self,
        entry: ReportEntry,
        period: Period,
        clients: list[Client] | None = None,
        activities: list[Activity] | None = None,
        error_fields: set[str] | None = None,
    ):
        super().__init__()
        self.entry = entry
        self.period = period
        self.clients = clients or []
        self.activities = activities or []
        self.error_fields = set(error_fields or ())

    def compose(self) -> ComposeResult:
        entry = self.entry
        title = "New entry" if entry.kind is RowKind.NEW else "Edit entry"
        with Vertical(id="edit-dialog"):
            yield Label(f"{title}: {self.period.display}", id="edit-title")

            # Row 1: Date, Start, End, Hours
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Date (YYYY-MM-DD)", classes="field-label")
                    yield Input(
                        value=entry.date.isoformat() if entry.date else "",
                        placeholder=self.period.first_day.isoformat(),
                        id="entry-date",
                    )
                with Vertical(classes="field-group"):
                    yield Label("Start (HH:MM)", classes="field-label")
                    yield Input(value=format_time(entry.start_time), placeholder="09:00", id="start-time")
                with Vertical(classes="field-group"):
                    yield Label("End (HH:MM)", classes="field-label")
                    yield Input(value=format_time(entry.end_time), placeholder="17:00", id="end-time")
                with Vertical(classes="field-group"):
                    yield Label("Hours", classes="field-label")
                    yield Input(value=format_hours(entry.duration), placeholder="auto", id="duration")

            # Row 2: Client, Activity
            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Client", classes="field-label")
                    yield self._make_select(
                        [(client.name, client.id) for client in self.clients], entry.client_id, "client"
                    )
                with Vertical(classes="field-group"):
                    yield Label("Activity", classes="field-label")
                    yield self._make_select(
                        [(activity.name, activity.id) for activity in self.activities], entry.activity_id, "activity"
                    )

            with Horizontal(classes="field-row"):
                with Vertical(classes="field-group"):
                    yield Label("Notes", classes="field-label")
                    yield Input(value=entry.notes, id="notes")

            with Horizontal(id="edit-buttons"):
                yield Button("Save", variant="primary", id="save")
                yield Button("Cancel", variant="default", id="cancel")

    def _make_select(self, options: list[tuple[str, str]], value: str | None, widget_id: str) -> Select:
        known = {option_value for _, option_value in options}
        if value in known:
            return Select(options, value=value, id=widget_id)
        return Select(options, id=widget_id)

    def on_mount(self) -> None:
        """Focus the first field and mark fields storage rejected."""
        for field_name in self.error_fields:
            widget_id = self.FIELD_WIDGETS.get(field_name)
            if widget_id:
                self.query_one(f"#{widget_id}").add_class("-invalid")
        self.query_one("#entry-date", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Move to next field on Enter, or save if on last field."""
        current_id = event.input.id
        if current_id in self.FIELD_ORDER:
            current_idx = self.FIELD_ORDER.index(current_id)
            if current_idx < len(self.FIELD_ORDER) - 1:
                next_id = self.FIELD_ORDER[current_idx + 1]
                self.query_one(f"#{next_id}", Input).focus()
            else:
                self._save_entry()

    def on_input_changed(self, event: Input.Changed) -> None:
        event.input.remove_class("-invalid")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
        elif event.button.id == "save":
            self._save_entry()

    def action_cancel(self) -> None:
        self.dismiss(None)

    def _parse_time_field(self, widget_id: str, label: str):
        val = self.query_one(f"#{widget_id}", Input).value.strip()
        try:
            return True, parse_time(val)
        except (ValueError, IndexError):
            self.app.notify(f"Invalid {label} time. Use HH:MM", severity="error")
            return False, None

    def collect_changes(self) -> dict | None:
        """Read and validate the form, notifying the user of the first problem."""
        date_val = self.query_one("#entry-date", Input).value.strip()
        try:
            entry_date = date.fromisoformat(date_val)
        except ValueError:
            self.app.notify("Invalid date. Use YYYY-MM-DD", severity="error")
            return None
        if not self.period.contains(entry_date):
            self.app.notify(f"Date must be in {self.period.display}", severity="error")
            return None

        ok, start_time = self._parse_time_field("start-time", "start")
        if not ok:
            return None
        ok, end_time = self._parse_time_field("end-time", "end")
        if not ok:
            return None
        if start_time and end_time and end_time < start_time:
            self.app.notify("End time must not be before start time", severity="error")
            return None

        hours_val = self.query_one("#duration", Input).value.strip()
        duration = parse_hours(hours_val)
        if hours_val and (duration is None or duration < 0):
            self.app.notify("Invalid hours value", severity="error")
            return None

        changes = {
            "date": entry_date,
            "start_time": start_time,
            "end_time": end_time,
            "duration": duration,
            "client_id": _select_value(self.query_one("#client", Select)),
            "activity_id": _select_value(self.query_one("#activity", Select)),
            "notes": self.query_one("#notes", Input).value.strip(),
        }
        if changes["duration"] is None:
            draft = ReportEntry(id=self.entry.id, start_time=start_time, end_time=end_time)
            changes["duration"] = draft.computed_hours
        return changes

    def _save_entry(self) -> None:
        changes = self.collect_changes()
        if changes is not None:
            self.dismiss(changes)


class SelectPeriodScreen(ModalScreen[Period | None]):
    """Modal screen for choosing the ledger month, newest first."""

    CSS = """
    SelectPeriodScreen {
        align: center middle;
    }

    #period-dialog {
        width: 44;
        height: 20;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #period-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    #period-table {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, periods: list[Period], current: Period | None = None):
        super().__init__()
        self.periods = list(reversed(periods))
        self.current = current

    def compose(self) -> ComposeResult:
        with Vertical(id="period-dialog"):
            yield Label("Select Month", id="period-title")
            yield DataTable(id="period-table")

    def on_mount(self) -> None:
        table = self.query_one("#period-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Month", width=20)
        table.add_column("Status", width=10)
        for idx, period in enumerate(self.periods):
            table.add_row(period.display, "Locked" if period.locked else "Open", key=str(idx))
            if self.current is not None and period.key == self.current.key:
                table.move_cursor(row=idx)
        table.focus()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.row_key and event.row_key.value is not None:
            self.dismiss(self.periods[int(event.row_key.value)])

    def action_cancel(self) -> None:
        self.dismiss(None)


class SelectUserScreen(ModalScreen[User | None]):
    """Modal screen for selecting a user with search."""

    CSS = """
    SelectUserScreen {
        align: center middle;
    }

    #select-dialog {
        width: 60;
        height: 20;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #select-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    #select-search {
        width: 100%;
        margin-bottom: 1;
    }

    #select-table {
        height: 1fr;
    }
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, users: list[User]):
        super().__init__()
        self.users = users

    def compose(self) -> ComposeResult:
        with Vertical(id="select-dialog"):
            yield Label("Select Employee", id="select-title")
            yield Input(placeholder="Search...", id="select-search")
            yield DataTable(id="select-table")

    def on_mount(self) -> None:
        table = self.query_one("#select-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Name", width=30)
        table.add_column("Username", width=20)
        self._refresh_table()
        self.query_one("#select-search", Input).focus()

    def matching_users(self, search: str = "") -> list[User]:
        needle = search.strip().lower()
        return [
            user for user in self.users
            if needle in user.display_name.lower() or needle in user.username.lower()
        ]

    def _refresh_table(self, search: str = "") -> None:
        table = self.query_one("#select-table", DataTable)
        table.clear()
        for user in self.matching_users(search):
            table.add_row(user.display_name, user.username, key=user.id)

    def on_input_changed(self, event: Input.Changed) -> None:
        """Filter users as user types."""
        if event.input.id == "select-search":
            self._refresh_table(event.value)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "select-search":
            self.query_one("#select-table", DataTable).focus()

    def on_key(self, event) -> None:
        """Move to table on down arrow from search input."""
        if event.key == "down":
            search_input = self.query_one("#select-search", Input)
            if search_input.has_focus:
                self.query_one("#select-table", DataTable).focus()
                event.prevent_default()
                event.stop()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.row_key:
            user_id = str(event.row_key.value)
            self.dismiss(next((user for user in self.users if user.id == user_id), None))

    def action_cancel(self) -> None:
        self.dismiss(None)


# --- Reports ---


REPORT_CSS = """
    .report-dialog {
        width: 100%;
        height: 100%;
        padding: 1 2;
        background: $surface;
    }

    .report-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }

    .report-filters {
        width: 100%;
        height: 10;
        margin-bottom: 1;
    }

    .report-filters > * {
        width: 1fr;
        margin-right: 1;
    }

    .report-buttons {
        width: 100%;
        height: auto;
        margin-bottom: 1;
    }

    .report-buttons Button {
        width: auto;
        min-width: 10;
        margin: 0 1;
    }

    .report-table {
        height: 1fr;
    }
"""

REPORT_COLUMNS = [
    ("date", "Date"),
    ("weekday", "Day"),
    ("start_time", "Start"),
    ("end_time", "End"),
    ("duration", "Hours"),
    ("client_name", "Client"),
    ("username", "Employee"),
    ("activity_name", "Activity"),
    ("notes", "Notes"),
    ("modified_at", "Modified"),
]


def report_cells(entry: ReportEntry, columns: list[str]) -> list[str]:
    values = {
        "date": entry.date.strftime("%d/%m/%Y") if entry.date else "",
        "weekday": entry.date.strftime("%A") if entry.date else "",
        "start_time": format_time(entry.start_time),
        "end_time": format_time(entry.end_time),
        "duration": format_hours(entry.duration),
        "client_name": entry.client_name or "",
        "username": entry.username or "",
        "activity_name": entry.activity_name or "",
        "notes": entry.notes,
        "modified_at": entry.modified_at.strftime("%H:%M %d/%m/%Y") if entry.modified_at else "",
    }
    return [values[column] for column in columns]


class ReportScreen(ModalScreen[None]):
    """Shared behaviour of the report screens: loading, sorting and the table."""

    BINDINGS = [
        Binding("escape", "close", "Close"),
    ]

    COLUMNS: list[str] = []

    def __init__(self, store):
        super().__init__()
        self.store = store
        self.sort = SortState()
        self.loading = False
        self.reports: list[ReportEntry] = []

    def _setup_table(self) -> None:
        table = self.query_one(".report-table", DataTable)
        table.cursor_type = "row"
        titles = dict(REPORT_COLUMNS)
        for column in self.COLUMNS:
            table.add_column(titles[column], key=column)

    def on_data_table_header_selected(self, event: DataTable.HeaderSelected) -> None:
        self.sort = self.sort.toggle(str(event.column_key.value))
        self.refresh_table()

    def refresh_table(self) -> None:
        """Show the loaded reports as one sorted list with a footer."""
        table = self.query_one(".report-table", DataTable)
        table.clear()
        for entry in sort_rows(self.reports, self.sort.field, self.sort.direction):
            table.add_row(*report_cells(entry, self.COLUMNS))
        if self.reports:
            self._add_footer(table, self.reports)

    def _add_footer(self, table: DataTable, reports: list[ReportEntry]) -> None:
        summary = summarize(reports)
        blank = [""] * (len(self.COLUMNS) - 2)
        table.add_row("Hours", format_hours(summary.total_hours), *blank)
        table.add_row("Workdays", str(summary.distinct_workdays), *blank)

    def _set_loading(self, loading: bool) -> None:
        self.loading = loading
        for button in self.query(Button):
            button.disabled = loading

    async def _run_query(self, start: date, end: date, group_by: str | None, filters: dict):
        self._set_loading(True)
        try:
            return await self.store.fetch_filtered_reports(start, end, group_by, filters)
        except FetchError as err:
            self.app.notify(err.message, severity="error")
            return None
        finally:
            self._set_loading(False)

    def action_close(self) -> None:
        self.dismiss(None)


class ClientsReportScreen(ReportScreen):
    """One month of entries grouped by client."""

    CSS = REPORT_CSS

    COLUMNS = ["date", "weekday", "start_time", "end_time", "duration", "username", "activity_name", "notes", "modified_at"]

    def __init__(self, store, clients: list[Client], first_activity: date | None, now: date):
        super().__init__(store)
        self.clients = clients
        self.months = report_months(first_activity, now)
        self.groups = []

    def compose(self) -> ComposeResult:
        with Vertical(classes="report-dialog"):
            yield Label("Clients Report", classes="report-title")
            with Horizontal(classes="report-filters"):
                yield Select(
                    [(format_month(year, month), f"{year}-{month:02d}") for year, month in reversed(self.months)],
                    value=f"{self.months[-1][0]}-{self.months[-1][1]:02d}",
                    allow_blank=False,
                    id="report-month",
                )
                yield SelectionList(*[(client.name, client.id) for client in self.clients], id="report-clients")
            with Horizontal(classes="report-buttons"):
                yield Button("Show", variant="primary", id="btn-show")
                yield Button("CSV", id="btn-csv")
                yield Button("Close [Esc]", id="btn-close")
            yield DataTable(classes="report-table")

    def on_mount(self) -> None:
        self._setup_table()

    def selected_month(self) -> tuple[int, int]:
        year, month = str(self.query_one("#report-month", Select).value).split("-")
        return int(year), int(month)

    def selected_clients(self) -> list[Client]:
        ids = set(self.query_one("#report-clients", SelectionList).selected)
        return [client for client in self.clients if client.id in ids]

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-show":
            await self.load()
        elif event.button.id == "btn-csv":
            self.export()
        elif event.button.id == "btn-close":
            self.action_close()

    async def load(self) -> None:
        start, end = month_bounds(*self.selected_month())
        filters = {"clients": [client.id for client in self.selected_clients()]}
        result = await self._run_query(start, end, "client", filters)
        if result is not None:
            self.groups = group_by_client(result)
            self.refresh_table()

    def refresh_table(self) -> None:
        table = self.query_one(".report-table", DataTable)
        table.clear()
        blank = [""] * (len(self.COLUMNS) - 1)
        for group in self.groups:
            table.add_row(f"[b]{group.client_name}[/b]", *blank)
            for entry in sort_rows(group.reports, self.sort.field, self.sort.direction):
                table.add_row(*report_cells(entry, self.COLUMNS))
            self._add_footer(table, group.reports)

    def export(self) -> None:
        if not self.groups:
            self.app.notify("Nothing to export", severity="warning")
            return
        year, month = self.selected_month()
        filename = clients_report_filename(date(year, month, 1), [client.name for client in self.selected_clients()])
        for group in self.groups:
            group.reports = sort_rows(group.reports, self.sort.field, self.sort.direction)
        path = csv_export.write_clients_report_csv(self.groups, filename)
        self.app.notify(f"Exported {path}")


class AdvancedReportScreen(ReportScreen):
    """Entries of all users between two dates, filtered by client, activity and user."""

    CSS = REPORT_CSS

    COLUMNS = ["date", "weekday", "start_time", "end_time", "duration", "client_name", "username", "activity_name", "notes"]

    def __init__(self, store, clients: list[Client], activities: list[Activity], users: list[User]):
        super().__init__(store)
        self.clients = clients
        self.activities = activities
        self.users = users

    def compose(self) -> ComposeResult:
        with Vertical(classes="report-dialog"):
            yield Label("Advanced Report", classes="report-title")
            with Horizontal(classes="report-filters"):
                with Vertical():
                    yield Label("Start (YYYY-MM-DD)")
                    yield Input(id="report-start")
                    yield Label("End (YYYY-MM-DD)")
                    yield Input(id="report-end")
                yield SelectionList(*[(client.name, client.id) for client in self.clients], id="report-clients")
                yield SelectionList(*[(activity.name, activity.id) for activity in self.activities], id="report-activities")
                yield SelectionList(*[(user.display_name, user.id) for user in self.users], id="report-users")
            with Horizontal(classes="report-buttons"):
                yield Button("Show", variant="primary", id="btn-show")
                yield Button("CSV", id="btn-csv")
                yield Button("Close [Esc]", id="btn-close")
            yield DataTable(classes="report-table")

    def on_mount(self) -> None:
        self._setup_table()
        self.query_one("#report-start", Input).focus()

    def date_range(self) -> tuple[date, date] | None:
        try:
            start = date.fromisoformat(self.query_one("#report-start", Input).value.strip())
            end = date.fromisoformat(self.query_one("#report-end", Input).value.strip())
        except ValueError:
            self.app.notify("Enter start and end dates as YYYY-MM-DD", severity="error")
            return None
        if end < start:
            self.app.notify("End date must not be before start date", severity="error")
            return None
        return start, end

    def selected(self, widget_id: str) -> list[str]:
        return list(self.query_one(f"#{widget_id}", SelectionList).selected)

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-show":
            await self.load()
        elif event.button.id == "btn-csv":
            self.export()
        elif event.button.id == "btn-close":
            self.action_close()

    async def load(self) -> None:
        bounds = self.date_range()
        if bounds is None:
            return
        filters = {
            "clients": self.selected("report-clients"),
            "users": self.selected("report-users"),
            "activities": self.selected("report-activities"),
        }
        result = await self._run_query(*bounds, None, filters)
        if result is not None:
            self.reports = list(result)
            self.refresh_table()

    def _names(self, items, widget_id: str, attr: str) -> list[str]:
        ids = set(self.selected(widget_id))
        return [getattr(item, attr) for item in items if item.id in ids]

    def export(self) -> None:
        bounds = self.date_range()
        if bounds is None:
            return
        if not self.reports:
            self.app.notify("Nothing to export", severity="warning")
            return
        filename = advanced_report_filename(
            *bounds,
            client_names=self._names(self.clients, "report-clients", "name"),
            user_names=self._names(self.users, "report-users", "display_name"),
            activity_names=self._names(self.activities, "report-activities", "name"),
        )
        rows = sort_rows(self.reports, self.sort.field, self.sort.direction)
        path = csv_export.write_advanced_report_csv(rows, filename)
        self.app.notify(f"Exported {path}")
