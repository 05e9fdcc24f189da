"""Error taxonomy for chart ingestion.

- FormatError: payload shape is wrong, the whole adapter call fails.
- RowValidationError: a single row is incomplete, dropped inside the adapter.
- PersistenceError: a store call failed; UniqueViolationError is the
  identity-key collision variant that callers convert into a re-fetch.
"""

from __future__ import annotations


class ChartIntakeError(Exception):
    """Base class for all chart-intake errors."""


class FormatError(ChartIntakeError, ValueError):
    """Raised when a payload's structure does not match what the adapter expects."""


class RowValidationError(ChartIntakeError):
    """Raised for a row missing a required field. Never escapes an adapter."""

    def __init__(self, row_number: int, missing: list[str]):
        self.row_number = row_number
        self.missing = missing
        super().__init__(f"Row {row_number} missing required fields: {', '.join(missing)}")


class PersistenceError(ChartIntakeError):
    """Raised when a create/read/update/delete against the store fails."""


class UniqueViolationError(PersistenceError):
    """Raised when a create collides with an existing identity key."""


class ChartRequestError(ChartIntakeError, ValueError):
    """Raised for an invalid chart request or upload filename."""


class SourceUnavailableError(ChartIntakeError):
    """Raised when a remote chart source cannot deliver usable data."""
