from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the failure log.

Every backing-store failure seen by the record service is recorded as one
JSON line, including partial writes where the first range landed and the
second did not. Nothing is rolled back, so this log is where those
inconsistency windows become visible.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured failure record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        operation: record service operation (create/update/add_note/...)
        sheet: surface the failing call addressed
        row: physical row number, -1 when not known yet
        key: record key, empty when not known
        error_type: classification in UPPER_SNAKE_CASE (OPERATION_FAILED, PARTIAL_WRITE)
        message: underlying error description
    """
    timestamp: str  # ISO8601 UTC
    operation: str
    sheet: str
    row: int  # -1 when unknown
    key: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(
        operation: str, sheet: str, row: int, key: str, error_type: str, message: str
    ) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            operation=operation,
            sheet=sheet,
            row=row,
            key=key,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
