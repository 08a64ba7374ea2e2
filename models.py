from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal


class RowKind(enum.Enum):
    PERSISTED = "persisted"
    NEW = "new"
    PLACEHOLDER = "placeholder"


@dataclass(frozen=True)
class Persisted:
    """Identity issued by storage."""

    id: str


@dataclass(frozen=True)
class New:
    """Client-side identity for a row that has not been saved yet.

    ``origin`` is a snapshot of the row this one was duplicated from. It is
    not part of equality, so a row is found by its local id alone.
    """

    local_id: int
    origin: ReportEntry | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Placeholder:
    """Display-only row identity (e.g. a public holiday with no entry)."""

    label: str


RowId = Persisted | New | Placeholder


def classify(row_id: RowId) -> RowKind:
    """Return the kind of a row identity."""
    if isinstance(row_id, Persisted):
        return RowKind.PERSISTED
    if isinstance(row_id, New):
        return RowKind.NEW
    if isinstance(row_id, Placeholder):
        return RowKind.PLACEHOLDER
    raise TypeError(f"Not a row identity: {row_id!r}")


@dataclass
class ReportEntry:
    id: RowId
    date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    duration: Decimal | None = None
    client_id: str | None = None
    activity_id: str | None = None
    user_id: str | None = None
    notes: str = ""
    modified_at: datetime | None = None
    # Filled in by the report query, never sent back to storage
    client_name: str | None = None
    username: str | None = None
    activity_name: str | None = None

    @property
    def kind(self) -> RowKind:
        return classify(self.id)

    @property
    def computed_hours(self) -> Decimal | None:
        """Hours between start and end time, or None if either is missing."""
        if not self.start_time or not self.end_time:
            return None

        start = timedelta(hours=self.start_time.hour, minutes=self.start_time.minute)
        end = timedelta(hours=self.end_time.hour, minutes=self.end_time.minute)
        if end < start:
            return None
        return Decimal(str((end - start).total_seconds() / 3600)).quantize(Decimal("0.01"))

    def fields(self) -> dict:
        """The values sent to storage on create/update."""
        return {
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "client_id": self.client_id,
            "activity_id": self.activity_id,
            "user_id": self.user_id,
            "notes": self.notes,
        }


EDITABLE_FIELDS = ("date", "start_time", "end_time", "duration", "client_id", "activity_id", "notes")


def make_new_row(local_id: int, period: Period, today: date, user_id: str | None = None) -> ReportEntry:
    """Blank row dated today if today is in the period, else the 1st."""
    return ReportEntry(
        id=New(local_id),
        date=today if period.contains(today) else period.first_day,
        user_id=user_id,
    )


def make_duplicate(local_id: int, origin: ReportEntry) -> ReportEntry:
    """Copy of ``origin`` under a new identity that remembers its origin."""
    return replace(
        origin,
        id=New(local_id, origin=replace(origin)),
        modified_at=None,
    )


@dataclass(frozen=True)
class Period:
    year: int
    month: int
    number_of_days: int
    locked: bool
    display: str

    @property
    def key(self) -> tuple[int, int]:
        return (self.year, self.month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, self.number_of_days)

    def contains(self, d: date | None) -> bool:
        return d is not None and (d.year, d.month) == self.key


@dataclass
class User:
    id: str
    username: str
    display_name: str
    start_date: date
    last_report_day: int | None = None
    is_admin: bool = False


@dataclass
class Activity:
    id: str
    name: str
    default_hourly_quote: Decimal | None = None


@dataclass
class Client:
    id: str
    name: str
    contact_person: str = ""
    phone: str = ""
    email: str = ""
    notes: str = ""
    activity_ids: list[str] = field(default_factory=list)


@dataclass
class Config:
    holiday_country: str = "GB"
    holiday_subdiv: str = "ENG"
    signed_in_user: str = ""
