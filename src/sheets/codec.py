from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from src.models.columns import (
    BASE_COLUMNS,
    DERIVED_COLUMN,
    NOTE_TEXT_COLUMNS,
    NOTE_TIME_COLUMNS,
    REJECTION_REASON_COLUMN,
    WRITABLE_COLUMNS,
    ColumnDef,
    writable_blocks,
)
from src.models.event_record import EventRecord, NoteSlots

"""Row codec: raw sheet row <-> EventRecord.

decode_row: positional cells -> EventRecord (missing trailing cells -> "").
encode_record: EventRecord values -> one WriteRange per writable block.
Non-writable columns (key, protected block, status, derived, rejection
reason, note slots) never appear in encoded output.
"""

__all__ = [
    "WriteRange",
    "cell",
    "decode_row",
    "encode_record",
    "writable_values",
]


@dataclass(frozen=True)
class WriteRange:
    """A contiguous run of writable columns and the values to put there."""
    columns: tuple[ColumnDef, ...]
    values: tuple[str, ...]

    @property
    def first(self) -> ColumnDef:
        return self.columns[0]

    @property
    def last(self) -> ColumnDef:
        return self.columns[-1]

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(c.field for c in self.columns)


def cell(raw: Sequence[Any] | None, index: int) -> str:
    """Cell value at `index` as string; missing or None -> ""."""
    if raw is None or index >= len(raw) or raw[index] is None:
        return ""
    return str(raw[index])


def decode_row(raw: Sequence[Any] | None, row_number: int | None = None) -> EventRecord:
    """Decode one full-width row (first to last schema column)."""
    values = {c.field: cell(raw, c.index) for c in BASE_COLUMNS}
    notes = NoteSlots.from_cells(
        [cell(raw, c.index) for c in NOTE_TEXT_COLUMNS],
        [cell(raw, c.index) for c in NOTE_TIME_COLUMNS],
    )
    return EventRecord(
        values=values,
        notes=notes,
        comercial_final=cell(raw, DERIVED_COLUMN.index),
        motivo_rechazo=cell(raw, REJECTION_REASON_COLUMN.index),
        row_number=row_number,
    )


def writable_values(values: Mapping[str, Any]) -> dict[str, str]:
    """Encoded value of every writable field; absent fields default to ""."""
    out: dict[str, str] = {}
    for col in WRITABLE_COLUMNS:
        v = values.get(col.field)
        out[col.field] = "" if v is None else str(v)
    return out


def encode_record(values: Mapping[str, Any]) -> tuple[WriteRange, ...]:
    """Encode record values into the writable ranges, left to right.

    The key is never part of the output: on create it stays blank for the
    downstream assignment, on update the row is already located by it.
    """
    encoded = writable_values(values)
    return tuple(
        WriteRange(columns=block, values=tuple(encoded[c.field] for c in block))
        for block in writable_blocks()
    )
