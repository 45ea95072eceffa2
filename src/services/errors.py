from __future__ import annotations

"""Error taxonomy for the record store.

Not-found is not an error: lookups return None and callers branch on it.
"""

__all__ = [
    "RecordStoreError",
    "ValidationFailedError",
    "CapacityExhaustedError",
    "OperationFailedError",
    "PartialWriteError",
]


class RecordStoreError(Exception):
    """Base exception for record store errors."""


class ValidationFailedError(RecordStoreError):
    """Caller-supplied key, text or field set is empty or unknown.

    Raised before any backing-store call is made.
    """


class CapacityExhaustedError(RecordStoreError):
    """Every note slot of the record is already filled."""


class OperationFailedError(RecordStoreError):
    """A backing-store call failed (network, permission, quota, ...)."""


class PartialWriteError(OperationFailedError):
    """A multi-call write failed after some of its calls already landed.

    Nothing is rolled back; `row` and `written` describe what is on the sheet.
    """

    def __init__(self, message: str, *, row: int, written: tuple[str, ...]) -> None:
        super().__init__(message)
        self.row = row
        self.written = written
