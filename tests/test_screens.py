"""Tests for the screens module."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from models import New, Period, ReportEntry, User
from screens import (
    AdvancedReportScreen,
    ClientsReportScreen,
    ConfirmScreen,
    EditEntryScreen,
    ReportScreen,
    SelectPeriodScreen,
    SelectUserScreen,
    report_cells,
)


class TestConfirmScreen:
    """Tests for the ConfirmScreen."""

    def test_init_with_message(self):
        """Test ConfirmScreen initialisation with message."""
        screen = ConfirmScreen("Delete the entry for 01/04/2024?")
        assert screen.message == "Delete the entry for 01/04/2024?"


class TestEditEntryScreen:
    """Tests for the EditEntryScreen."""

    def test_init_with_entry(self, sample_entry, sample_period, sample_client, sample_activity):
        screen = EditEntryScreen(sample_entry, sample_period, [sample_client], [sample_activity])

        assert screen.entry == sample_entry
        assert screen.period == sample_period
        assert screen.clients == [sample_client]
        assert screen.activities == [sample_activity]
        assert screen.error_fields == set()

    def test_init_with_error_fields(self, sample_period):
        entry = ReportEntry(id=New(0), date=date(2024, 4, 1))
        screen = EditEntryScreen(entry, sample_period, error_fields={"date", "start_time"})

        assert screen.error_fields == {"date", "start_time"}
        assert screen.clients == []

    def test_error_fields_copied(self, sample_entry, sample_period):
        flagged = {"notes"}
        screen = EditEntryScreen(sample_entry, sample_period, error_fields=flagged)
        flagged.add("date")
        assert screen.error_fields == {"notes"}

    def test_every_editable_field_has_a_widget(self):
        from models import EDITABLE_FIELDS

        assert set(EditEntryScreen.FIELD_WIDGETS) == set(EDITABLE_FIELDS)


class TestSelectPeriodScreen:
    def test_newest_first(self):
        periods = [
            Period(2024, 3, 31, True, "2024 March"),
            Period(2024, 4, 30, False, "2024 April"),
            Period(2024, 5, 31, False, "2024 May"),
        ]
        screen = SelectPeriodScreen(periods, periods[1])

        assert [p.month for p in screen.periods] == [5, 4, 3]
        assert screen.current == periods[1]
        # Input is not reordered
        assert periods[0].month == 3


class TestSelectUserScreen:
    def test_matching_users(self, sample_user, sample_admin):
        screen = SelectUserScreen([sample_user, sample_admin])

        assert screen.matching_users() == [sample_user, sample_admin]
        assert screen.matching_users("BERG") == [sample_user]
        assert screen.matching_users(" adm ") == [sample_admin]
        assert screen.matching_users("nobody") == []

    def test_matches_username(self):
        user = User(id="u3", username="cfox", display_name="Charlie", start_date=date(2024, 1, 1))
        assert SelectUserScreen([user]).matching_users("fox") == [user]


class TestReportCells:
    def test_formats_entry(self):
        entry = ReportEntry(
            id=New(0),
            date=date(2024, 4, 6),
            start_time=time(9, 0),
            end_time=time(11, 30),
            duration=Decimal("2.5"),
            client_name="Acme",
            username="Anna",
            notes="Weekend",
            modified_at=datetime(2024, 4, 6, 12, 1),
        )
        cells = report_cells(entry, ["date", "weekday", "duration", "client_name", "activity_name", "modified_at"])
        assert cells == ["06/04/2024", "Saturday", "2.5", "Acme", "", "12:01 06/04/2024"]

    def test_empty_entry(self):
        cells = report_cells(ReportEntry(id=New(0)), ["date", "start_time", "duration", "notes"])
        assert cells == ["", "", "", ""]


class TestReportScreens:
    def test_clients_report_months(self, sample_client):
        screen = ClientsReportScreen(None, [sample_client], date(2024, 2, 10), date(2024, 4, 3))

        assert screen.months == [(2024, 2), (2024, 3), (2024, 4)]
        assert screen.groups == []
        assert screen.sort.field is None

    def test_clients_report_without_activity(self, sample_client):
        screen = ClientsReportScreen(None, [sample_client], None, date(2024, 4, 3))
        assert screen.months == [(2024, 4)]

    def test_advanced_report_init(self, sample_client, sample_activity, sample_user):
        screen = AdvancedReportScreen(None, [sample_client], [sample_activity], [sample_user])

        assert screen.reports == []
        assert screen.users == [sample_user]
        assert "client_name" in screen.COLUMNS

    def test_report_tables_share_one_layout(self):
        # Only the clients report groups its rows
        assert AdvancedReportScreen.refresh_table is ReportScreen.refresh_table
        assert ClientsReportScreen.refresh_table is not ReportScreen.refresh_table
