#!/usr/bin/env python3
"""Monthly ledger TUI application."""

from __future__ import annotations

import logging
import os
from datetime import date

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.coordinate import Coordinate
from textual.logging import TextualHandler
from textual.widgets import Footer, DataTable
from rich.text import Text

import csv_export
import storage
from errors import FetchError, LedgerError, RowNotFoundError, ValidationError
from ledger import LedgerSession
from models import New, Period, Persisted, ReportEntry, RowId, RowKind, User
from periods import default_period, periods_for_user
from report_view import SortState, ledger_filename, sort_rows
from screens import (
    AdvancedReportScreen,
    ClientsReportScreen,
    ConfirmScreen,
    EditEntryScreen,
    SelectPeriodScreen,
    SelectUserScreen,
)
from utils import format_hours, format_time
from widgets import LedgerHeader, LedgerSummary

# Ledger columns: (key, title, width)
LEDGER_COLUMNS = [
    ("date", "Date", 11),
    ("weekday", "Day", 10),
    ("start_time", "Start", 6),
    ("end_time", "End", 6),
    ("duration", "Hours", 6),
    ("client_id", "Client", 18),
    ("activity_id", "Activity", 16),
    ("notes", "Notes", 30),
]

# Actions that change rows; disabled while a session call is in flight
MUTATING_ACTIONS = {"new_entry", "duplicate_entry", "edit_entry", "save_entry", "delete_entry"}


def row_key(row_id: RowId) -> str:
    """Stable DataTable row key for a row identity."""
    if isinstance(row_id, Persisted):
        return f"p:{row_id.id}"
    if isinstance(row_id, New):
        return f"n:{row_id.local_id}"
    return f"h:{row_id.label}"


class LedgerApp(App):
    """Main ledger application."""

    CSS = """
    Screen {
        background: $surface;
    }

    #ledger-header {
        height: auto;
        background: $primary;
        color: $text;
        padding: 0 1;
        text-style: bold;
    }

    #ledger-table {
        height: 1fr;
        margin: 1 2;
    }

    #ledger-summary {
        height: auto;
        padding: 1 2;
        color: $text;
    }

    DataTable > .datatable--cursor {
        background: $secondary;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("n", "new_entry", "New"),
        Binding("d", "duplicate_entry", "Duplicate"),
        Binding("e", "edit_entry", "Edit"),
        Binding("s", "save_entry", "Save"),
        Binding("x", "delete_entry", "Delete"),
        Binding("m", "choose_month", "Month"),
        Binding("u", "choose_user", "User"),
        Binding("c", "export_csv", "CSV"),
        Binding("r", "clients_report", "Clients"),
        Binding("a", "advanced_report", "Report"),
    ]

    def __init__(self, user: User | None = None, today: date | None = None):
        super().__init__()
        storage.init_db()

        self.today = today or date.today()
        self.signed_in = user or storage.get_signed_in_user()
        self.selected_user = self.signed_in
        self.admin = bool(self.signed_in and self.signed_in.is_admin)

        config = storage.get_config()
        holidays = None
        if config.holiday_country:
            def holidays(start: date, end: date) -> dict[date, str]:
                return storage.get_holidays_in_range(start, end, config.holiday_country, config.holiday_subdiv)

        self.session = LedgerSession(
            storage.SqliteLedgerStore(self.signed_in) if self.signed_in else None,
            admin=self.admin,
            holidays=holidays,
        )
        self.periods: list[Period] = []
        self.sort = SortState()
        self.busy = False

        self.clients = []
        self.activities = []
        self.users: list[User] = []

        # DataTable row key -> row identity for the rows on screen
        self._row_ids: dict[str, RowId] = {}

    def compose(self) -> ComposeResult:
        yield LedgerHeader(id="ledger-header")
        yield DataTable(id="ledger-table")
        yield LedgerSummary(id="ledger-summary")
        yield Footer()

    def on_mount(self):
        table = self.query_one("#ledger-table", DataTable)
        table.cursor_type = "row"
        for key, title, width in LEDGER_COLUMNS:
            table.add_column(title, width=width, key=key)

        if self.signed_in is None:
            self.notify("No signed-in user. Set LEDGER_USER to a username.", severity="error", timeout=10)
            return

        self.clients = storage.get_all_clients()
        self.activities = storage.get_ledger_activities()
        self.users = storage.get_all_users() if self.admin else [self.signed_in]

        self._select_user(self.signed_in)
        table.focus()

    # --- Loading ---

    def _select_user(self, user: User) -> None:
        """Recompute the month list for a user and load the default month."""
        self.selected_user = user
        self.periods = periods_for_user(user, self.today, admin_override=self.admin)
        period = default_period(self.periods, self.today)
        if period is None:
            self.notify(f"{user.display_name} has no months to show", severity="warning")
            return
        self._start_load(period)

    def _start_load(self, period: Period) -> None:
        self.busy = True
        self.refresh_bindings()
        self.query_one("#ledger-header", LedgerHeader).update_display(
            self.selected_user, period, self.admin, loading=True
        )
        self.run_worker(self._load(period), group="load")

    async def _load(self, period: Period) -> None:
        try:
            current = await self.session.load(period, self.selected_user)
        except FetchError as err:
            self.notify(err.message, severity="error")
            current = True
        if current:
            self.busy = False
            self.refresh_bindings()
            self._refresh_display()

    # --- Display ---

    def _cell(self, row: ReportEntry, key: str) -> str:
        if key == "date":
            text = row.date.strftime("%d/%m/%Y") if row.date else ""
            return f"*{text}" if row.kind is RowKind.NEW else text
        if key == "weekday":
            return row.date.strftime("%A") if row.date else ""
        if key in ("start_time", "end_time"):
            return format_time(getattr(row, key))
        if key == "duration":
            return format_hours(row.duration)
        if key == "client_id":
            return next((c.name for c in self.clients if c.id == row.client_id), row.client_name or "")
        if key == "activity_id":
            return next((a.name for a in self.activities if a.id == row.activity_id), row.activity_name or "")
        return row.notes

    def _row_cells(self, row: ReportEntry) -> list[Text]:
        flagged = self.session.field_errors.get(row.id, set())
        muted = not self.session.is_editable(row)
        cells = []
        for key, _, _ in LEDGER_COLUMNS:
            style = "bold red" if key in flagged else ("dim" if muted else "")
            cells.append(Text(self._cell(row, key), style=style))
        return cells

    def _refresh_display(self) -> None:
        session = self.session
        self.query_one("#ledger-header", LedgerHeader).update_display(
            self.selected_user, session.period, self.admin, loading=session.loading
        )

        table = self.query_one("#ledger-table", DataTable)
        cursor = table.cursor_row
        table.clear()
        self._row_ids = {}
        for row in sort_rows(session.rows, self.sort.field, self.sort.direction):
            key = row_key(row.id)
            self._row_ids[key] = row.id
            table.add_row(*self._row_cells(row), key=key)
        if table.row_count:
            table.move_cursor(row=min(cursor, table.row_count - 1))

        self.query_one("#ledger-summary", LedgerSummary).update_display(
            session.summary(), failed=session.load_failed
        )

    def _selected_row(self) -> ReportEntry | None:
        table = self.query_one("#ledger-table", DataTable)
        if table.row_count == 0:
            return None
        key = table.coordinate_to_cell_key(Coordinate(table.cursor_row, 0)).row_key
        row_id = self._row_ids.get(str(key.value)) if key else None
        if row_id is None:
            return None
        try:
            return self.session.get(row_id)
        except RowNotFoundError:
            # The table still shows rows from before a reload
            return None

    def _move_to(self, row_id: RowId) -> None:
        table = self.query_one("#ledger-table", DataTable)
        table.move_cursor(row=table.get_row_index(row_key(row_id)))

    def on_data_table_header_selected(self, event: DataTable.HeaderSelected) -> None:
        if event.data_table.id != "ledger-table":
            return
        self.sort = self.sort.toggle(str(event.column_key.value))
        self._refresh_display()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        # Selections in modal screens bubble up here as well
        if event.data_table.id == "ledger-table" and self.check_action("edit_entry", ()):
            self.action_edit_entry()

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Hide actions that do not apply to the current state."""
        if action in MUTATING_ACTIONS:
            if self.session.period is None or self.session.locked:
                return None
            return not self.busy
        elif action == "choose_user":
            return True if self.admin else None
        elif action in ("clients_report", "advanced_report"):
            return True if self.admin and self.session.store is not None else None
        elif action in ("choose_month", "export_csv"):
            return self.session.period is not None
        return True

    # --- Row actions ---

    def _notify_error(self, err: LedgerError) -> None:
        if isinstance(err, ValidationError) and err.fields:
            fields = ", ".join(f"{name} {message}" for name, message in err.fields.items())
            self.notify(f"{err.message}: {fields}", severity="error")
        else:
            self.notify(err.message, severity="error")

    def action_new_entry(self) -> None:
        try:
            row = self.session.add_blank(self.today)
        except LedgerError as err:
            self._notify_error(err)
            return
        self._refresh_display()
        self._move_to(row.id)
        self._edit(row)

    def action_duplicate_entry(self) -> None:
        row = self._selected_row()
        if row is None:
            return
        try:
            copy = self.session.duplicate(row.id)
        except LedgerError as err:
            self._notify_error(err)
            return
        self._refresh_display()
        self._move_to(copy.id)
        self._edit(copy)

    def action_edit_entry(self) -> None:
        row = self._selected_row()
        if row is None:
            return
        if row.kind is RowKind.PLACEHOLDER:
            self.notify(row.notes or "This row cannot be edited", severity="warning")
            return
        if not self.session.is_editable(row):
            self.notify(f"{self.session.period.display} is locked", severity="warning")
            return
        self._edit(row)

    def _edit(self, row: ReportEntry) -> None:
        screen = EditEntryScreen(
            row,
            self.session.period,
            clients=self.clients,
            activities=self.activities,
            error_fields=self.session.field_errors.get(row.id),
        )
        self.push_screen(screen, lambda changes: self._on_edit_complete(row.id, changes))

    def _on_edit_complete(self, row_id: RowId, changes: dict | None) -> None:
        """Apply edits locally, then save them."""
        if changes is None:
            return
        if self.busy:
            self.notify("Wait for the current operation to finish", severity="warning")
            return
        try:
            self.session.update_row(row_id, **changes)
        except LedgerError as err:
            self._notify_error(err)
            return
        self._refresh_display()
        self._start_save(row_id)

    def action_save_entry(self) -> None:
        row = self._selected_row()
        if row is not None:
            self._start_save(row.id)

    def _start_save(self, row_id: RowId) -> None:
        if self.busy:
            return
        self.busy = True
        self.refresh_bindings()
        self.run_worker(self._save(row_id), group="write")

    async def _save(self, row_id: RowId) -> None:
        try:
            saved = await self.session.save(row_id)
        except LedgerError as err:
            self._notify_error(err)
        else:
            self.notify("Entry saved")
            row_id = saved.id
        finally:
            self.busy = False
            self.refresh_bindings()
        self._refresh_display()
        if any(row.id == row_id for row in self.session.rows):
            self._move_to(row_id)

    def action_delete_entry(self) -> None:
        row = self._selected_row()
        if row is None:
            return
        if not self.session.is_editable(row):
            self.notify("This row cannot be deleted", severity="warning")
            return
        when = row.date.strftime("%d/%m/%Y") if row.date else "this entry"
        self.push_screen(
            ConfirmScreen(f"Delete the entry for {when}?"),
            lambda confirmed: self._on_delete_confirmed(row.id, confirmed),
        )

    def _on_delete_confirmed(self, row_id: RowId, confirmed: bool | None) -> None:
        if confirmed and not self.busy:
            self.busy = True
            self.refresh_bindings()
            self.run_worker(self._delete(row_id), group="write")

    async def _delete(self, row_id: RowId) -> None:
        try:
            await self.session.delete(row_id)
        except LedgerError as err:
            self._notify_error(err)
        else:
            self.notify("Entry deleted")
        finally:
            self.busy = False
            self.refresh_bindings()
        self._refresh_display()

    # --- Navigation ---

    def action_choose_month(self) -> None:
        self.push_screen(SelectPeriodScreen(self.periods, self.session.period), self._on_period_selected)

    def _on_period_selected(self, period: Period | None) -> None:
        if period is not None:
            self._start_load(period)

    def action_choose_user(self) -> None:
        self.push_screen(SelectUserScreen(self.users), self._on_user_selected)

    def _on_user_selected(self, user: User | None) -> None:
        if user is not None:
            self._select_user(user)

    # --- Reports ---

    def action_export_csv(self) -> None:
        period = self.session.period
        if period is None:
            return
        rows = sort_rows(self.session.export_rows(), self.sort.field, self.sort.direction)
        path = csv_export.write_ledger_csv(
            rows,
            self.session.summary(),
            ledger_filename(period.year, period.month),
            client_names={client.id: client.name for client in self.clients},
            activity_names={activity.id: activity.name for activity in self.activities},
        )
        self.notify(f"Exported {path}")

    def action_clients_report(self) -> None:
        self.push_screen(ClientsReportScreen(
            self.session.store,
            self.clients,
            storage.get_first_activity_date(),
            self.today,
        ))

    def action_advanced_report(self) -> None:
        self.push_screen(AdvancedReportScreen(
            self.session.store,
            self.clients,
            storage.get_all_activities(),
            self.users,
        ))


def configure_logging() -> None:
    """Send log records to the Textual devtools console."""
    level = os.environ.get("LEDGER_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(level=level, handlers=[TextualHandler()])


def main():
    import sys
    if len(sys.argv) > 1 and sys.argv[1] == "--db-info":
        from datetime import datetime
        db_path = storage.DB_PATH
        print(f"Database: {db_path}")
        if db_path.exists():
            mtime = datetime.fromtimestamp(db_path.stat().st_mtime)
            size = db_path.stat().st_size
            print(f"Modified: {mtime.strftime('%Y-%m-%d %H:%M:%S')}")
            print(f"Size: {size:,} bytes")
        else:
            print("Status: Does not exist (will be created on first run)")
        return

    configure_logging()
    app = LedgerApp()
    app.run()


if __name__ == "__main__":
    main()
