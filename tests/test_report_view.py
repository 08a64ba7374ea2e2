"""Tests for report_view.py - sorting, summaries and export filenames."""

from datetime import date, time
from decimal import Decimal

import pytest

from models import New, Persisted, Placeholder, ReportEntry
from report_view import (
    ASC,
    DESC,
    SortState,
    advanced_report_filename,
    clients_report_filename,
    group_by_client,
    ledger_filename,
    sort_rows,
    summarize,
)


def entry(entry_id, d=None, **kwargs):
    return ReportEntry(id=Persisted(entry_id), date=d, **kwargs)


class TestSortRows:
    """Tests for sort_rows."""

    def test_weekday_starts_on_saturday(self):
        rows = [
            entry("mon", date(2024, 4, 8)),
            entry("sat", date(2024, 4, 6)),
            entry("fri", date(2024, 4, 5)),
            entry("sun", date(2024, 4, 7)),
        ]
        result = sort_rows(rows, "weekday", ASC)
        assert [r.id.id for r in result] == ["sat", "sun", "mon", "fri"]

    def test_weekday_descending_keeps_ties_in_order(self):
        rows = [
            entry("mon1", date(2024, 4, 1)),
            entry("sat", date(2024, 4, 6)),
            entry("mon2", date(2024, 4, 8)),
            entry("tue", date(2024, 4, 9)),
        ]
        ascending = sort_rows(rows, "weekday", ASC)
        descending = sort_rows(rows, "weekday", DESC)

        assert [r.id.id for r in ascending] == ["sat", "mon1", "mon2", "tue"]
        assert [r.id.id for r in descending] == ["tue", "mon1", "mon2", "sat"]

    def test_does_not_mutate_input(self):
        rows = [entry("b", date(2024, 4, 2)), entry("a", date(2024, 4, 1))]
        original = list(rows)
        sort_rows(rows, "date", ASC)
        assert rows == original

    def test_idempotent(self):
        rows = [entry("b", date(2024, 4, 2)), entry("a", date(2024, 4, 1)), entry("c", date(2024, 4, 1))]
        once = sort_rows(rows, "date", ASC)
        assert sort_rows(once, "date", ASC) == once

    def test_no_field_returns_copy(self):
        rows = [entry("a")]
        result = sort_rows(rows, None)
        assert result == rows
        assert result is not rows

    def test_empty_values_last_ascending(self):
        rows = [entry("none"), entry("late", start_time=time(14, 0)), entry("early", start_time=time(8, 0))]
        result = sort_rows(rows, "start_time", ASC)
        assert [r.id.id for r in result] == ["early", "late", "none"]

    def test_text_case_insensitive(self):
        rows = [entry("b", notes="beta"), entry("a", notes="Alpha"), entry("blank", notes="")]
        result = sort_rows(rows, "notes", ASC)
        assert [r.id.id for r in result] == ["a", "b", "blank"]

    def test_duration_numeric(self):
        rows = [entry("ten", duration=Decimal("10")), entry("two", duration=Decimal("2"))]
        assert [r.id.id for r in sort_rows(rows, "duration", ASC)] == ["two", "ten"]

    def test_mixed_identities(self):
        rows = [
            ReportEntry(id=New(0), date=date(2024, 4, 9)),
            ReportEntry(id=Placeholder("h"), date=date(2024, 4, 1)),
            entry("p", date(2024, 4, 5)),
        ]
        assert [r.date.day for r in sort_rows(rows, "date", ASC)] == [1, 5, 9]

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            sort_rows([], "id", ASC)

    def test_unknown_direction(self):
        with pytest.raises(ValueError):
            sort_rows([], "date", "up")


class TestSortState:
    def test_new_field_starts_ascending(self):
        assert SortState().toggle("date") == SortState("date", ASC)

    def test_same_field_flips(self):
        state = SortState("date", ASC).toggle("date")
        assert state.direction == DESC
        assert state.toggle("date").direction == ASC

    def test_other_field_resets(self):
        assert SortState("date", DESC).toggle("notes") == SortState("notes", ASC)


class TestSummarize:
    """Tests for summarize."""

    def test_empty_duration_counts_as_day(self):
        rows = [
            entry("a", date(2024, 4, 1), duration=Decimal("2")),
            entry("b", date(2024, 4, 1), duration=Decimal("3")),
            entry("c", date(2024, 4, 2), duration=None),
        ]
        summary = summarize(rows)
        assert summary.total_hours == Decimal("5")
        assert summary.distinct_workdays == 2

    def test_rows_without_date(self):
        summary = summarize([entry("a", None, duration=Decimal("1.5"))])
        assert summary.total_hours == Decimal("1.5")
        assert summary.distinct_workdays == 0

    def test_placeholders_ignored(self):
        rows = [ReportEntry(id=Placeholder("h"), date=date(2024, 4, 1), notes="Easter Monday")]
        assert summarize(rows).distinct_workdays == 0

    def test_empty(self):
        summary = summarize([])
        assert summary.total_hours == Decimal("0")
        assert summary.distinct_workdays == 0


class TestGroupByClient:
    def test_wraps_groups(self):
        mapping = {
            "c1": {
                "reports": [
                    entry("a", date(2024, 4, 1), duration=Decimal("4"), client_name="Acme"),
                    entry("b", date(2024, 4, 3), duration=Decimal("1"), client_name="Acme"),
                ],
                "total_hours": Decimal("5"),
                "number_of_workdays": 2,
            },
            "c2": {"reports": [], "total_hours": Decimal("0"), "number_of_workdays": 0},
        }
        groups = group_by_client(mapping)

        assert [g.client_id for g in groups] == ["c1", "c2"]
        assert groups[0].client_name == "Acme"
        assert groups[0].summary.total_hours == Decimal("5")
        assert groups[0].summary.distinct_workdays == 2
        assert groups[1].client_name == "c2"


class TestFilenames:
    def test_ledger(self):
        assert ledger_filename(2024, 3) == "report-2024-03.csv"

    def test_clients_single(self):
        assert clients_report_filename(date(2024, 3, 1), ["Acme Corp"]) == "Acme-Corp-2024-03.csv"

    def test_clients_many(self):
        assert clients_report_filename(date(2024, 3, 1), ["A", "B"]) == "clients-2024-03.csv"

    def test_clients_none(self):
        assert clients_report_filename(date(2024, 3, 1), []) == "clients-2024-03.csv"

    def test_advanced_single_filters(self):
        name = advanced_report_filename(date(2024, 3, 1), date(2024, 3, 31), ["Acme"], ["Anna Berg"], [])
        assert name == "Acme-Anna-Berg-2024-03-01-2024-03-31.csv"

    def test_advanced_generic(self):
        name = advanced_report_filename(date(2024, 3, 1), date(2024, 4, 15), ["A", "B"], [], [])
        assert name == "report-2024-03-01-2024-04-15.csv"
