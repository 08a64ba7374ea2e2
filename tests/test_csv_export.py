"""Tests for csv_export.py."""

import csv
from datetime import date, datetime, time
from decimal import Decimal

from csv_export import get_export_dir, write_advanced_report_csv, write_clients_report_csv, write_ledger_csv
from models import Persisted, ReportEntry
from report_view import ClientGroup, Summary, summarize


def read_rows(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


def make_entry(entry_id, d, hours, **kwargs):
    return ReportEntry(
        id=Persisted(entry_id),
        date=d,
        start_time=time(9, 0),
        end_time=time(9 + int(hours), 0),
        duration=Decimal(hours),
        **kwargs,
    )


class TestExportDir:
    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LEDGER_EXPORT_DIR", str(tmp_path / "out"))
        assert get_export_dir() == tmp_path / "out"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("LEDGER_EXPORT_DIR", raising=False)
        assert get_export_dir().name == "exports"


class TestLedgerCsv:
    def test_rows_and_footer(self, tmp_path):
        rows = [
            make_entry("a", date(2024, 4, 1), "3", client_id="c1", activity_id="a1", notes="Kickoff"),
            make_entry("b", date(2024, 4, 2), "2", client_id="c1"),
        ]
        path = write_ledger_csv(
            rows,
            summarize(rows),
            "report-2024-04.csv",
            client_names={"c1": "Acme"},
            activity_names={"a1": "Design"},
            directory=tmp_path,
        )

        assert path == tmp_path / "report-2024-04.csv"
        content = read_rows(path)
        assert content[0][:5] == ["Date", "Weekday", "Start", "End", "Hours"]
        assert content[1] == ["01/04/2024", "Monday", "09:00", "12:00", "3", "Acme", "Design", "Kickoff"]
        assert content[2][6] == ""
        assert content[-2][3:5] == ["Total hours", "5"]
        assert content[-1][3:5] == ["Workdays", "2"]

    def test_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "dir"
        path = write_ledger_csv([], Summary(Decimal("0"), 0), "empty.csv", directory=target)
        assert path.exists()
        assert len(read_rows(path)) == 3


class TestClientsReportCsv:
    def test_section_per_client(self, tmp_path):
        acme = [make_entry("a", date(2024, 4, 1), "4", username="Anna", activity_name="Design",
                           modified_at=datetime(2024, 4, 1, 17, 5))]
        bolt = [make_entry("b", date(2024, 4, 2), "1", username="Bo")]
        groups = [
            ClientGroup("c1", "Acme", acme, summarize(acme)),
            ClientGroup("c2", "Bolt", bolt, summarize(bolt)),
        ]

        path = write_clients_report_csv(groups, "clients-2024-04.csv", directory=tmp_path)
        content = read_rows(path)

        assert content[0] == ["Acme"]
        assert content[2][5:] == ["Anna", "Design", "", "17:05 01/04/2024"]
        assert content[3][3:5] == ["Total hours", "4"]
        assert ["Bolt"] in content


class TestAdvancedReportCsv:
    def test_columns(self, tmp_path):
        rows = [make_entry("a", date(2024, 4, 6), "2", client_name="Acme", username="Anna",
                           activity_name="Design", notes="Weekend")]
        path = write_advanced_report_csv(rows, "report.csv", directory=tmp_path)
        content = read_rows(path)

        assert content[0][5:8] == ["Client", "Employee", "Activity"]
        assert content[1] == ["06/04/2024", "Saturday", "09:00", "11:00", "2", "Acme", "Anna", "Design", "Weekend"]
        assert len(content) == 2
