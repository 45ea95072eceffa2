from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Any

"""AuditEntry model for the field-level change log.

One entry per changed field. Entries are append-only: nothing in this package
updates or deletes a row of the audit surface once written.

The column order of AUDIT_HEADER is the on-sheet contract; to_row/from_row
must stay in step with it.
"""

__all__ = [
    "AUDIT_HEADER",
    "AuditEntry",
]

AUDIT_HEADER: tuple[str, ...] = (
    "Fecha",
    "Id",
    "Fila",
    "Campo",
    "Antes",
    "Despues",
    "Usuario",
    "Origen",
    "Nota",
)


@dataclass(frozen=True)
class AuditEntry:
    """Immutable record of a single field change.

    Attributes:
        timestamp: local time the change was written (TIMESTAMP_FORMAT)
        key: record key; empty for entries emitted on create
        row: physical sheet row of the record
        field: human readable column title
        before: encoded value before the write
        after: encoded value after the write
        actor: who made the change
        origin: which surface made the change
        note: optional free text (e.g. rejection reason)
    """
    timestamp: str
    key: str
    row: int
    field: str
    before: str
    after: str
    actor: str
    origin: str
    note: str = ""

    def to_row(self) -> list[str]:
        return [
            self.timestamp,
            self.key,
            str(self.row),
            self.field,
            self.before,
            self.after,
            self.actor,
            self.origin,
            self.note,
        ]

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> AuditEntry:
        cells = [("" if v is None else str(v)) for v in row]
        cells += [""] * (len(AUDIT_HEADER) - len(cells))
        raw_row = cells[2].strip()
        return cls(
            timestamp=cells[0],
            key=cells[1],
            row=int(raw_row) if raw_row.isdigit() else 0,
            field=cells[3],
            before=cells[4],
            after=cells[5],
            actor=cells[6],
            origin=cells[7],
            note=cells[8],
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
