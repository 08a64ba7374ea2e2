"""Working set of report entries for one user and month.

The session owns the rows shown in the ledger table. It allocates identities
for unsaved rows, enforces the month lock and the duplicate rule before
anything reaches storage, and swaps rows for the stored version once storage
confirms a write.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import replace
from datetime import date
from typing import Callable, Protocol

from errors import (
    FetchError,
    LockedPeriodError,
    PersistError,
    PlaceholderRowError,
    RowNotFoundError,
    UnchangedDuplicateError,
    ValidationError,
)
from models import (
    EDITABLE_FIELDS,
    New,
    Period,
    Persisted,
    Placeholder,
    ReportEntry,
    RowId,
    RowKind,
    User,
    classify,
    make_duplicate,
    make_new_row,
)
from report_view import Summary, summarize

logger = logging.getLogger(__name__)

HolidayLookup = Callable[[date, date], dict[date, str]]

# Fields that must differ from the origin before a duplicate may be saved
DUPLICATE_KEY_FIELDS = ("date", "start_time", "end_time")


class LedgerStore(Protocol):
    async def fetch_month_entries(self, year: int, month: int, user_id: str | None) -> list[ReportEntry]: ...

    async def create_entry(self, fields: dict) -> ReportEntry: ...

    async def update_entry(self, entry_id: str, fields: dict) -> ReportEntry: ...

    async def delete_entry(self, entry_id: str) -> bool: ...


class LedgerSession:
    def __init__(
        self,
        store: LedgerStore,
        *,
        admin: bool = False,
        holidays: HolidayLookup | None = None,
    ) -> None:
        self.store = store
        self.admin = admin
        self.holidays = holidays

        self.period: Period | None = None
        self.user: User | None = None
        self.rows: list[ReportEntry] = []
        self.field_errors: dict[RowId, set[str]] = {}
        self.loading = False
        self.load_failed = False

        self._local_ids = itertools.count()
        self._load_token = 0

    # --- Loading ---

    async def load(self, period: Period, user: User | None = None) -> bool:
        """Replace rows with the stored entries for a user and month.

        Returns False when a newer load started before this one finished;
        its result is dropped. Raises FetchError if storage fails.
        """
        self._load_token += 1
        token = self._load_token

        self.period = period
        self.user = user
        self.rows = []
        self.field_errors = {}
        self.loading = True
        self.load_failed = False

        user_id = user.id if self.admin and user else None
        logger.debug("Loading %s for user %s (token %d)", period.display, user_id, token)
        try:
            entries = await self.store.fetch_month_entries(period.year, period.month, user_id)
            placeholders = self._holiday_placeholders(period, entries)
        except FetchError:
            if token != self._load_token:
                logger.debug("Dropping failed stale load %d", token)
                return False
            self.loading = False
            self.load_failed = True
            raise

        if token != self._load_token:
            logger.debug("Dropping stale load %d", token)
            return False

        self.rows = list(entries) + placeholders
        self.loading = False
        return True

    def _holiday_placeholders(self, period: Period, entries: list[ReportEntry]) -> list[ReportEntry]:
        if self.holidays is None:
            return []
        logged = {entry.date for entry in entries}
        return [
            ReportEntry(id=Placeholder(f"holiday:{d.isoformat()}"), date=d, notes=name)
            for d, name in sorted(self.holidays(period.first_day, period.last_day).items())
            if d not in logged
        ]

    # --- Lookup ---

    def index_of(self, row_id: RowId) -> int:
        for idx, row in enumerate(self.rows):
            if row.id == row_id:
                return idx
        raise RowNotFoundError(f"No row {row_id!r} in the ledger")

    def get(self, row_id: RowId) -> ReportEntry:
        return self.rows[self.index_of(row_id)]

    @property
    def locked(self) -> bool:
        return self.period is not None and self.period.locked

    def is_editable(self, row: ReportEntry) -> bool:
        return not self.locked and row.kind is not RowKind.PLACEHOLDER

    def _check_unlocked(self) -> None:
        if self.period is None:
            raise LockedPeriodError("No month is selected")
        if self.period.locked:
            raise LockedPeriodError(f"{self.period.display} is locked")

    def _editable_row(self, row_id: RowId) -> tuple[int, ReportEntry]:
        idx = self.index_of(row_id)
        row = self.rows[idx]
        self._check_unlocked()
        if row.kind is RowKind.PLACEHOLDER:
            raise PlaceholderRowError("This row cannot be edited")
        return idx, row

    # --- Client-side edits ---

    def add_blank(self, today: date | None = None) -> ReportEntry:
        """Prepend an empty row for the selected month."""
        self._check_unlocked()
        assert self.period is not None

        user_id = self.user.id if self.admin and self.user else None
        row = make_new_row(next(self._local_ids), self.period, today or date.today(), user_id)
        self.rows.insert(0, row)
        return row

    def duplicate(self, row_id: RowId) -> ReportEntry:
        """Insert a copy of a row directly before it."""
        idx, row = self._editable_row(row_id)
        copy = make_duplicate(next(self._local_ids), row)
        self.rows.insert(idx, copy)
        return copy

    def update_row(self, row_id: RowId, **changes) -> ReportEntry:
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not editable: {', '.join(sorted(unknown))}")

        idx, row = self._editable_row(row_id)
        updated = replace(row, **changes)
        self.rows[idx] = updated

        flagged = self.field_errors.get(row_id)
        if flagged:
            flagged.difference_update(changes)
            if not flagged:
                del self.field_errors[row_id]
        return updated

    # --- Persistence ---

    def _check_duplicate_changed(self, row: ReportEntry) -> None:
        origin = row.id.origin if isinstance(row.id, New) else None
        if origin is None:
            return
        if all(getattr(row, name) == getattr(origin, name) for name in DUPLICATE_KEY_FIELDS):
            raise UnchangedDuplicateError("Change the date, start time or end time of the copied entry")

    async def save(self, row_id: RowId) -> ReportEntry:
        """Create or update a row in storage and adopt the stored version."""
        _, row = self._editable_row(row_id)
        kind = classify(row.id)
        if kind is RowKind.NEW:
            self._check_duplicate_changed(row)

        try:
            if kind is RowKind.NEW:
                saved = await self.store.create_entry(row.fields())
            else:
                assert isinstance(row.id, Persisted)
                saved = await self.store.update_entry(row.id.id, row.fields())
        except ValidationError as err:
            logger.warning("Storage rejected %r: %s", row_id, err.fields)
            self.field_errors[row_id] = set(err.fields)
            raise

        self.field_errors.pop(row_id, None)
        try:
            idx = self.index_of(row_id)
        except RowNotFoundError:
            # The ledger was reloaded while the write was in flight
            logger.debug("Saved row %r is no longer loaded", row_id)
            return saved
        self.rows[idx] = saved
        return saved

    async def delete(self, row_id: RowId) -> None:
        _, row = self._editable_row(row_id)

        if isinstance(row.id, Persisted):
            if not await self.store.delete_entry(row.id.id):
                raise PersistError("The entry could not be deleted")

        self.field_errors.pop(row_id, None)
        try:
            self.rows.pop(self.index_of(row_id))
        except RowNotFoundError:
            logger.debug("Deleted row %r is no longer loaded", row_id)

    # --- Views ---

    def summary(self) -> Summary:
        return summarize(self.rows)

    def export_rows(self) -> list[ReportEntry]:
        return [row for row in self.rows if row.kind is not RowKind.PLACEHOLDER]
