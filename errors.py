"""Exceptions raised by the ledger and its storage collaborator."""

from __future__ import annotations


class LedgerError(Exception):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class FetchError(LedgerError):
    """Reading entries from storage failed."""


class PersistError(LedgerError):
    """Creating, updating or deleting an entry failed."""


class ValidationError(PersistError):
    """Storage rejected one or more fields of an entry.

    ``fields`` maps each offending field name to a short message so the
    presentation layer can highlight it.
    """

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.fields = dict(fields or {})


class LockedPeriodError(LedgerError):
    """The selected month is locked for editing."""


class UnchangedDuplicateError(LedgerError):
    """A duplicated entry is being saved without changing its date or times."""


class PlaceholderRowError(LedgerError):
    """Placeholder rows are display-only."""


class RowNotFoundError(LedgerError):
    """No row with the given identity is in the session."""
