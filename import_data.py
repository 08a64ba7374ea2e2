#!/usr/bin/env python3
"""Import users, clients, activities and report entries from a JSON seed file.

Expected layout::

    {
      "config": {"holiday_country": "GB", "holiday_subdiv": "ENG", "signed_in_user": "anna"},
      "users": [{"id": "u1", "username": "anna", "display_name": "Anna", "start_date": "2024-01-15",
                 "last_report_day": 5, "is_admin": false}],
      "activities": [{"id": "a1", "name": "Design", "default_hourly_quote": "80"}],
      "clients": [{"id": "c1", "name": "Acme", "activities": ["a1"]}],
      "entries": [{"user": "anna", "date": "2024-03-04", "start_time": "09:00", "end_time": "12:30",
                   "client": "c1", "activity": "a1", "notes": "Kickoff"}]
    }

Entries refer to users by username. Missing durations are computed from the
start and end time.
"""

import json
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import storage
from errors import ValidationError
from models import Activity, Client, Config, New, ReportEntry, User
from utils import parse_hours, parse_time


def parse_date(val: str | None) -> date | None:
    """Parse a date like '2024-03-04' or '2024-03-04 00:00:00'."""
    if not val:
        return None
    try:
        return date.fromisoformat(val.split(" ")[0])
    except ValueError:
        return None


def parse_user(data: dict) -> User:
    return User(
        id=data.get("id") or data["username"],
        username=data["username"],
        display_name=data.get("display_name") or data["username"],
        start_date=parse_date(data.get("start_date")) or date.today(),
        last_report_day=data.get("last_report_day"),
        is_admin=bool(data.get("is_admin", False)),
    )


def parse_activity(data: dict) -> Activity:
    quote = data.get("default_hourly_quote")
    return Activity(
        id=data["id"],
        name=data["name"],
        default_hourly_quote=Decimal(str(quote)) if quote not in (None, "") else None,
    )


def parse_client(data: dict) -> Client:
    return Client(
        id=data["id"],
        name=data["name"],
        contact_person=data.get("contact_person", ""),
        phone=data.get("phone", ""),
        email=data.get("email", ""),
        notes=data.get("notes", ""),
        activity_ids=list(data.get("activities", [])),
    )


def parse_entry(data: dict, user_ids: dict[str, str]) -> dict | None:
    """Build storage fields for an entry, or None if it has no usable date or user."""
    entry_date = parse_date(data.get("date"))
    user_id = user_ids.get(data.get("user", ""))
    if entry_date is None or user_id is None:
        return None

    # Seed files only hold HH:MM; bad values are dropped
    try:
        start = parse_time(data.get("start_time"))
        end = parse_time(data.get("end_time"))
    except (ValueError, IndexError):
        start = end = None

    duration = parse_hours(data.get("duration"))
    if duration is None:
        duration = ReportEntry(id=New(0), start_time=start, end_time=end).computed_hours

    return {
        "date": entry_date,
        "start_time": start,
        "end_time": end,
        "duration": duration,
        "client_id": data.get("client"),
        "activity_id": data.get("activity"),
        "user_id": user_id,
        "notes": data.get("notes", ""),
    }


def import_from_json(json_path: Path):
    """Import all data from a seed file."""
    with open(json_path) as f:
        data = json.load(f)

    # Initialize database
    storage.init_db()

    config_data = data.get("config")
    if config_data:
        config = Config(**{k: v for k, v in config_data.items() if k in Config.__dataclass_fields__})
        storage.save_config(config)
        print(f"Imported config: holidays {config.holiday_country or 'off'}")

    user_ids: dict[str, str] = {}
    for user_data in data.get("users", []):
        user = parse_user(user_data)
        storage.save_user(user)
        user_ids[user.username] = user.id
    print(f"Imported {len(user_ids)} users")

    activities = [parse_activity(a) for a in data.get("activities", [])]
    for activity in activities:
        storage.save_activity(activity)
    print(f"Imported {len(activities)} activities")

    clients = [parse_client(c) for c in data.get("clients", [])]
    for client in clients:
        storage.save_client(client)
    print(f"Imported {len(clients)} clients")

    imported = skipped = 0
    for entry_data in data.get("entries", []):
        fields = parse_entry(entry_data, user_ids)
        if fields is None:
            skipped += 1
            continue
        try:
            storage.create_entry(fields)
        except ValidationError as err:
            print(f"Skipped entry for {entry_data.get('date')}: {err.message} {err.fields}")
            skipped += 1
            continue
        imported += 1

    print(f"\nTotal: {imported} entries imported, {skipped} skipped")
    return imported


if __name__ == "__main__":
    json_path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path(__file__).parent / "seed.json"
    import_from_json(json_path)
