"""Shared fixtures for tests."""

from __future__ import annotations

import os
import sqlite3
import tempfile
from datetime import date, time
from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest

# Set up test database before importing storage
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.environ["LEDGER_DB"] = _test_db_path
os.environ.pop("LEDGER_USER", None)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db() -> Generator[Path, None, None]:
    """Set up a test database for the entire test session."""
    import storage

    # Reinitialise storage module with test db path
    storage.DB_PATH = Path(_test_db_path)
    storage.init_db()

    yield Path(_test_db_path)

    # Cleanup
    os.close(_test_db_fd)
    os.unlink(_test_db_path)


@pytest.fixture
def db_connection(setup_test_db: Path) -> Generator[sqlite3.Connection, None, None]:
    """Provide a database connection for tests."""
    import storage

    conn = storage.get_connection()
    yield conn
    conn.close()


@pytest.fixture
def clean_db(setup_test_db: Path) -> Generator[None, None, None]:
    """Clean database tables before each test."""
    import storage

    conn = storage.get_connection()
    conn.execute("DELETE FROM report_entries")
    conn.execute("DELETE FROM client_activities")
    conn.execute("DELETE FROM clients")
    conn.execute("DELETE FROM activities")
    conn.execute("DELETE FROM users")
    conn.execute("DELETE FROM config")
    conn.commit()
    conn.close()

    yield


@pytest.fixture
def sample_user():
    """An employee who started in March 2024 with a cutoff on the 5th."""
    from models import User

    return User(
        id="u1",
        username="anna",
        display_name="Anna Berg",
        start_date=date(2024, 3, 12),
        last_report_day=5,
    )


@pytest.fixture
def sample_admin():
    from models import User

    return User(
        id="u0",
        username="admin",
        display_name="Admin",
        start_date=date(2023, 1, 1),
        is_admin=True,
    )


@pytest.fixture
def sample_period():
    """An unlocked April 2024."""
    from models import Period

    return Period(year=2024, month=4, number_of_days=30, locked=False, display="2024 April")


@pytest.fixture
def locked_period():
    from models import Period

    return Period(year=2024, month=3, number_of_days=31, locked=True, display="2024 March")


@pytest.fixture
def sample_entry():
    """A persisted morning entry on Monday 1 April 2024."""
    from models import Persisted, ReportEntry

    return ReportEntry(
        id=Persisted("e1"),
        date=date(2024, 4, 1),
        start_time=time(9, 0),
        end_time=time(12, 0),
        duration=Decimal("3"),
        client_id="c1",
        activity_id="a1",
        user_id="u1",
        notes="Kickoff",
    )


@pytest.fixture
def sample_activity():
    from models import Activity

    return Activity(id="a1", name="Design", default_hourly_quote=Decimal("80"))


@pytest.fixture
def sample_client():
    from models import Client

    return Client(id="c1", name="Acme Corp", contact_person="Jo", activity_ids=["a1"])
