from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

from errors import FetchError, PersistError, ValidationError
from models import Activity, Client, Config, Persisted, ReportEntry, User
from utils import format_time, month_bounds, parse_hours, parse_time

logger = logging.getLogger(__name__)


def _get_db_path() -> Path:
    """Get database path from environment variable or default location."""
    if env_path := os.environ.get("LEDGER_DB"):
        return Path(env_path)
    return Path(__file__).parent / "data" / "ledger.db"


DB_PATH = _get_db_path()


def get_connection() -> sqlite3.Connection:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Create tables if they don't exist."""
    conn = get_connection()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            username TEXT NOT NULL UNIQUE,
            display_name TEXT NOT NULL,
            start_date TEXT NOT NULL,
            last_report_day INTEGER,
            is_admin INTEGER DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS activities (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            default_hourly_quote TEXT
        );

        CREATE TABLE IF NOT EXISTS clients (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            contact_person TEXT DEFAULT '',
            phone TEXT DEFAULT '',
            email TEXT DEFAULT '',
            notes TEXT DEFAULT ''
        );

        CREATE TABLE IF NOT EXISTS client_activities (
            client_id TEXT NOT NULL,
            activity_id TEXT NOT NULL,
            position INTEGER NOT NULL,
            PRIMARY KEY (client_id, activity_id),
            FOREIGN KEY (client_id) REFERENCES clients(id),
            FOREIGN KEY (activity_id) REFERENCES activities(id)
        );

        CREATE TABLE IF NOT EXISTS report_entries (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            start_time TEXT,
            end_time TEXT,
            duration TEXT,
            client_id TEXT,
            activity_id TEXT,
            notes TEXT DEFAULT '',
            modified_at TEXT NOT NULL,
            FOREIGN KEY (user_id) REFERENCES users(id),
            UNIQUE(user_id, date, start_time)
        );

        CREATE TABLE IF NOT EXISTS config (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_entries_date ON report_entries(date);
        CREATE INDEX IF NOT EXISTS idx_entries_user_date ON report_entries(user_id, date);
    """)
    conn.commit()
    conn.close()


# --- Report Entry Functions ---


ENTRY_SELECT = """
    SELECT e.*, c.name AS client_name, u.display_name AS username, a.name AS activity_name
    FROM report_entries e
    LEFT JOIN clients c ON c.id = e.client_id
    LEFT JOIN users u ON u.id = e.user_id
    LEFT JOIN activities a ON a.id = e.activity_id
"""


def _row_to_entry(row: sqlite3.Row) -> ReportEntry:
    return ReportEntry(
        id=Persisted(row["id"]),
        date=date.fromisoformat(row["date"]),
        start_time=parse_time(row["start_time"]),
        end_time=parse_time(row["end_time"]),
        duration=Decimal(row["duration"]) if row["duration"] else None,
        client_id=row["client_id"],
        activity_id=row["activity_id"],
        user_id=row["user_id"],
        notes=row["notes"] or "",
        modified_at=datetime.fromisoformat(row["modified_at"]),
        client_name=row["client_name"],
        username=row["username"],
        activity_name=row["activity_name"],
    )


def _exists(conn: sqlite3.Connection, table: str, row_id: str) -> bool:
    return conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (row_id,)).fetchone() is not None


def _validate_entry(conn: sqlite3.Connection, fields: dict) -> None:
    """Raise ValidationError listing every invalid field."""
    errors = {}
    if not fields.get("date"):
        errors["date"] = "required"
    start, end = fields.get("start_time"), fields.get("end_time")
    if start and end and end < start:
        errors["end_time"] = "must not be before start time"
    duration = fields.get("duration")
    hours = parse_hours(duration)
    if duration not in (None, "") and (hours is None or hours < 0):
        errors["duration"] = "must be a non-negative number of hours"
    if fields.get("client_id") and not _exists(conn, "clients", fields["client_id"]):
        errors["client_id"] = "unknown client"
    if fields.get("activity_id") and not _exists(conn, "activities", fields["activity_id"]):
        errors["activity_id"] = "unknown activity"
    if not fields.get("user_id") or not _exists(conn, "users", fields["user_id"]):
        errors["user_id"] = "unknown user"
    if errors:
        raise ValidationError("Entry validation failed", errors)


def _entry_params(fields: dict) -> tuple:
    duration = parse_hours(fields.get("duration"))
    return (
        fields["date"].isoformat(),
        format_time(fields.get("start_time")) or None,
        format_time(fields.get("end_time")) or None,
        str(duration) if duration is not None else None,
        fields.get("client_id") or None,
        fields.get("activity_id") or None,
        fields.get("notes") or "",
        datetime.now(timezone.utc).isoformat(),
    )


def _duplicate_key_error() -> ValidationError:
    return ValidationError("An entry already exists for this date and start time", {
        "date": "already exists",
        "start_time": "already exists",
    })


def get_entry(entry_id: str) -> ReportEntry | None:
    """Get a single entry by ID."""
    conn = get_connection()
    row = conn.execute(ENTRY_SELECT + " WHERE e.id = ?", (entry_id,)).fetchone()
    conn.close()
    return _row_to_entry(row) if row else None


def get_month_entries(year: int, month: int, user_id: str) -> list[ReportEntry]:
    """Get a user's entries for a calendar month."""
    start, end = month_bounds(year, month)
    conn = get_connection()
    rows = conn.execute(
        ENTRY_SELECT + """
        WHERE e.user_id = ? AND e.date >= ? AND e.date <= ?
        ORDER BY e.date, e.start_time
        """,
        (user_id, start.isoformat(), end.isoformat()),
    ).fetchall()
    conn.close()
    return [_row_to_entry(row) for row in rows]


def create_entry(fields: dict) -> ReportEntry:
    """Insert a new entry. The ID and modification time are assigned here."""
    entry_id = uuid.uuid4().hex
    conn = get_connection()
    try:
        _validate_entry(conn, fields)
        conn.execute(
            """
            INSERT INTO report_entries
            (date, start_time, end_time, duration, client_id, activity_id, notes, modified_at, id, user_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            _entry_params(fields) + (entry_id, fields["user_id"]),
        )
        conn.commit()
    except sqlite3.IntegrityError as err:
        raise _duplicate_key_error() from err
    finally:
        conn.close()

    logger.debug("Created entry %s", entry_id)
    return get_entry(entry_id)  # type: ignore[return-value]


def update_entry(entry_id: str, fields: dict) -> ReportEntry:
    """Update an entry's fields. The owning user cannot change."""
    existing = get_entry(entry_id)
    if existing is None:
        raise PersistError(f"Entry {entry_id} does not exist")

    fields = {**fields, "user_id": existing.user_id}
    conn = get_connection()
    try:
        _validate_entry(conn, fields)
        conn.execute(
            """
            UPDATE report_entries
            SET date = ?, start_time = ?, end_time = ?, duration = ?,
                client_id = ?, activity_id = ?, notes = ?, modified_at = ?
            WHERE id = ?
            """,
            _entry_params(fields) + (entry_id,),
        )
        conn.commit()
    except sqlite3.IntegrityError as err:
        raise _duplicate_key_error() from err
    finally:
        conn.close()

    return get_entry(entry_id)  # type: ignore[return-value]


def delete_entry(entry_id: str) -> bool:
    """Delete an entry. Returns False if it did not exist."""
    conn = get_connection()
    deleted = conn.execute("DELETE FROM report_entries WHERE id = ?", (entry_id,)).rowcount
    conn.commit()
    conn.close()
    return deleted > 0


def get_reports(
    start: date,
    end: date,
    group_by: str | None = None,
    filters: dict[str, list[str]] | None = None,
) -> list[ReportEntry] | dict[str, dict]:
    """Entries of all users between two dates (inclusive), optionally by client.

    ``filters`` may restrict ``clients``, ``users`` and ``activities`` to
    lists of IDs; an empty list means no restriction.
    """
    filters = filters or {}
    where = ["e.date >= ?", "e.date <= ?"]
    params: list = [start.isoformat(), end.isoformat()]
    for key, column in (("clients", "e.client_id"), ("users", "e.user_id"), ("activities", "e.activity_id")):
        ids = filters.get(key) or []
        if ids:
            where.append(f"{column} IN ({', '.join('?' for _ in ids)})")
            params.extend(ids)

    conn = get_connection()
    rows = conn.execute(
        ENTRY_SELECT + " WHERE " + " AND ".join(where) + " ORDER BY e.date, e.start_time",
        params,
    ).fetchall()
    conn.close()
    entries = [_row_to_entry(row) for row in rows]

    if group_by is None:
        return entries
    if group_by != "client":
        raise ValueError(f"Unsupported grouping: {group_by}")

    grouped: dict[str, dict] = {}
    for entry in entries:
        if not entry.client_id:
            continue
        group = grouped.setdefault(entry.client_id, {
            "reports": [],
            "total_hours": Decimal("0"),
            "number_of_workdays": 0,
        })
        group["reports"].append(entry)
        if entry.duration is not None:
            group["total_hours"] += entry.duration
    for group in grouped.values():
        group["number_of_workdays"] = len({e.date for e in group["reports"]})
    return grouped


def get_first_activity_date() -> date | None:
    """Date of the earliest entry of any user."""
    conn = get_connection()
    row = conn.execute("SELECT MIN(date) AS first FROM report_entries").fetchone()
    conn.close()
    return date.fromisoformat(row["first"]) if row["first"] else None


# --- User Functions ---


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        display_name=row["display_name"],
        start_date=date.fromisoformat(row["start_date"]),
        last_report_day=row["last_report_day"],
        is_admin=bool(row["is_admin"]),
    )


def save_user(user: User) -> None:
    """Insert or update a user."""
    conn = get_connection()
    conn.execute(
        """
        INSERT OR REPLACE INTO users (id, username, display_name, start_date, last_report_day, is_admin)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            user.id,
            user.username,
            user.display_name,
            user.start_date.isoformat(),
            user.last_report_day,
            int(user.is_admin),
        ),
    )
    conn.commit()
    conn.close()


def get_user(user_id: str) -> User | None:
    conn = get_connection()
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    conn.close()
    return _row_to_user(row) if row else None


def get_user_by_username(username: str) -> User | None:
    conn = get_connection()
    row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    conn.close()
    return _row_to_user(row) if row else None


def get_all_users() -> list[User]:
    conn = get_connection()
    rows = conn.execute("SELECT * FROM users ORDER BY display_name").fetchall()
    conn.close()
    return [_row_to_user(row) for row in rows]


# --- Client and Activity Functions ---


def save_activity(activity: Activity) -> None:
    """Insert or update an activity."""
    conn = get_connection()
    conn.execute(
        "INSERT OR REPLACE INTO activities (id, name, default_hourly_quote) VALUES (?, ?, ?)",
        (
            activity.id,
            activity.name,
            str(activity.default_hourly_quote) if activity.default_hourly_quote is not None else None,
        ),
    )
    conn.commit()
    conn.close()


def get_all_activities() -> list[Activity]:
    conn = get_connection()
    rows = conn.execute("SELECT * FROM activities ORDER BY name").fetchall()
    conn.close()
    return [
        Activity(
            id=row["id"],
            name=row["name"],
            default_hourly_quote=Decimal(row["default_hourly_quote"]) if row["default_hourly_quote"] else None,
        )
        for row in rows
    ]


def save_client(client: Client) -> None:
    """Insert or update a client and its linked activities."""
    conn = get_connection()
    conn.execute(
        """
        INSERT OR REPLACE INTO clients (id, name, contact_person, phone, email, notes)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (client.id, client.name, client.contact_person, client.phone, client.email, client.notes),
    )
    conn.execute("DELETE FROM client_activities WHERE client_id = ?", (client.id,))
    conn.executemany(
        "INSERT INTO client_activities (client_id, activity_id, position) VALUES (?, ?, ?)",
        [(client.id, activity_id, pos) for pos, activity_id in enumerate(client.activity_ids)],
    )
    conn.commit()
    conn.close()


def get_all_clients() -> list[Client]:
    conn = get_connection()
    rows = conn.execute("SELECT * FROM clients ORDER BY name").fetchall()
    links = conn.execute(
        "SELECT client_id, activity_id FROM client_activities ORDER BY client_id, position"
    ).fetchall()
    conn.close()

    activity_ids: dict[str, list[str]] = {}
    for link in links:
        activity_ids.setdefault(link["client_id"], []).append(link["activity_id"])

    return [
        Client(
            id=row["id"],
            name=row["name"],
            contact_person=row["contact_person"] or "",
            phone=row["phone"] or "",
            email=row["email"] or "",
            notes=row["notes"] or "",
            activity_ids=activity_ids.get(row["id"], []),
        )
        for row in rows
    ]


def get_ledger_activities() -> list[Activity]:
    """Activities linked to at least one client, in client order, without repeats."""
    by_id = {activity.id: activity for activity in get_all_activities()}
    seen: dict[str, Activity] = {}
    for client in get_all_clients():
        for activity_id in client.activity_ids:
            if activity_id in by_id and activity_id not in seen:
                seen[activity_id] = by_id[activity_id]
    return list(seen.values())


# --- Config Functions ---


def get_config() -> Config:
    """Load config from database."""
    conn = get_connection()
    rows = conn.execute("SELECT key, value FROM config").fetchall()
    conn.close()

    config = Config()
    for row in rows:
        if row["key"] == "holiday_country":
            config.holiday_country = row["value"]
        elif row["key"] == "holiday_subdiv":
            config.holiday_subdiv = row["value"]
        elif row["key"] == "signed_in_user":
            config.signed_in_user = row["value"]

    return config


def save_config(config: Config):
    """Save config to database."""
    conn = get_connection()
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("holiday_country", config.holiday_country))
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("holiday_subdiv", config.holiday_subdiv))
    conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)",
                 ("signed_in_user", config.signed_in_user))
    conn.commit()
    conn.close()


def get_signed_in_user() -> User | None:
    """The user named by LEDGER_USER, or by the signed_in_user config key."""
    username = os.environ.get("LEDGER_USER") or get_config().signed_in_user
    if not username:
        return None
    return get_user_by_username(username)


# --- Holidays ---


def get_public_holidays(year: int, country: str, subdiv: str | None = None) -> dict[date, str]:
    """Get public holidays for a given year and country/subdivision."""
    import holidays
    try:
        public = holidays.country_holidays(country, subdiv=subdiv or None, years=year)
    except NotImplementedError as err:
        raise FetchError(f"No public holidays for {country}: {err}") from err
    return {d: name for d, name in public.items()}


def get_holidays_in_range(start: date, end: date, country: str, subdiv: str | None = None) -> dict[date, str]:
    """Get public holidays that fall on weekdays in a date range."""
    public = get_public_holidays(start.year, country, subdiv)
    if start.year != end.year:
        public.update(get_public_holidays(end.year, country, subdiv))

    return {d: name for d, name in public.items()
            if start <= d <= end and d.weekday() < 5}


# --- Async Ledger Store ---


class SqliteLedgerStore:
    """Runs the storage functions off the event loop for a ledger session.

    ``owner`` is the signed-in user; reads and writes without an explicit
    user ID act on their entries.
    """

    def __init__(self, owner: User) -> None:
        self.owner = owner

    async def fetch_month_entries(self, year: int, month: int, user_id: str | None) -> list[ReportEntry]:
        try:
            return await asyncio.to_thread(get_month_entries, year, month, user_id or self.owner.id)
        except sqlite3.Error as err:
            raise FetchError(f"Could not load entries: {err}") from err

    async def create_entry(self, fields: dict) -> ReportEntry:
        fields = {**fields, "user_id": fields.get("user_id") or self.owner.id}
        try:
            return await asyncio.to_thread(create_entry, fields)
        except sqlite3.Error as err:
            raise PersistError(f"Could not save entry: {err}") from err

    async def update_entry(self, entry_id: str, fields: dict) -> ReportEntry:
        try:
            return await asyncio.to_thread(update_entry, entry_id, fields)
        except sqlite3.Error as err:
            raise PersistError(f"Could not save entry: {err}") from err

    async def delete_entry(self, entry_id: str) -> bool:
        try:
            return await asyncio.to_thread(delete_entry, entry_id)
        except sqlite3.Error as err:
            raise PersistError(f"Could not delete entry: {err}") from err

    async def fetch_filtered_reports(
        self,
        start: date,
        end: date,
        group_by: str | None = None,
        filters: dict[str, list[str]] | None = None,
    ) -> list[ReportEntry] | dict[str, dict]:
        try:
            return await asyncio.to_thread(get_reports, start, end, group_by, filters)
        except sqlite3.Error as err:
            raise FetchError(f"Could not load reports: {err}") from err
