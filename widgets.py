"""Custom widgets for the ledger application."""

from __future__ import annotations

from textual.widgets import Static
from rich.text import Text

from models import Period, User
from report_view import Summary
from utils import format_hours


class LedgerHeader(Static):
    """Shows the selected user and month on the left, lock state on the right."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.heading = ""
        self.state_label = ""

    def update_display(self, user: User | None, period: Period | None, admin: bool = False, loading: bool = False):
        name = user.display_name if user else "No user"
        month = period.display if period else "No month"
        self.heading = f"{name}: {month}"

        if loading:
            self.state_label = "Loading..."
        elif period is None:
            self.state_label = ""
        elif period.locked:
            self.state_label = "LOCKED"
        else:
            self.state_label = "Admin" if admin else "Open"

        # Align status to end at column 71 (matching summary right edge)
        target_end_col = 71
        spacing = target_end_col - len(self.state_label) - len(self.heading)

        text = Text()
        text.append(self.heading, style="bold")
        text.append(" " * spacing if spacing > 0 else "  ")
        text.append(self.state_label, style="bold red" if self.state_label == "LOCKED" else "bold")

        self.update(text)


class LedgerSummary(Static):
    """Shows total hours and number of workdays for the rows on screen."""

    def update_display(self, summary: Summary, failed: bool = False):
        if failed:
            self.update(Text("Loading failed. Select the month again to retry.", style="bold red"))
            return

        text = Text()
        hours_line = f"{'Hours':>60}  {format_hours(summary.total_hours):>8}h\n"
        text.append(hours_line, style="dim" if summary.total_hours == 0 else "")
        days_line = f"{'Workdays':>60}  {summary.distinct_workdays:>8}d"
        text.append(days_line, style="dim" if summary.distinct_workdays == 0 else "")

        self.update(text)
