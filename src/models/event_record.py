from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .columns import (
    BASE_COLUMNS,
    DERIVED_COLUMN,
    KEY_COLUMN,
    NOTE_SLOT_COUNT,
    REJECTION_REASON_COLUMN,
)

"""EventRecord and note slot models.

An EventRecord is one data row of the event sheet after decoding: the base
field values keyed by schema field name, the read-only derived value, the
rejection reason and the fixed array of note slots.
"""

__all__ = [
    "NoteSlot",
    "NoteSlots",
    "EventRecord",
]


@dataclass(frozen=True)
class NoteSlot:
    """One (text, timestamp) cell pair. `index` is 1-based."""
    index: int
    text: str = ""
    timestamp: str = ""

    @property
    def filled(self) -> bool:
        return self.text.strip() != ""

    def to_dict(self) -> dict[str, Any]:
        return {"slot": self.index, "texto": self.text, "fecha": self.timestamp}


@dataclass(frozen=True)
class NoteSlots:
    """Fixed-size array of note slots.

    Slots fill in ascending index order and are displayed descending, so the
    most recently written note comes first.
    """
    slots: tuple[NoteSlot, ...]

    def __post_init__(self) -> None:
        if len(self.slots) != NOTE_SLOT_COUNT:
            raise ValueError(f"expected {NOTE_SLOT_COUNT} note slots, got {len(self.slots)}")

    @classmethod
    def empty(cls) -> NoteSlots:
        return cls(tuple(NoteSlot(index=i + 1) for i in range(NOTE_SLOT_COUNT)))

    @classmethod
    def from_cells(cls, texts: Sequence[str], timestamps: Sequence[str]) -> NoteSlots:
        slots = []
        for i in range(NOTE_SLOT_COUNT):
            text = texts[i] if i < len(texts) else ""
            ts = timestamps[i] if i < len(timestamps) else ""
            slots.append(NoteSlot(index=i + 1, text=text.strip(), timestamp=ts.strip()))
        return cls(tuple(slots))

    def first_empty_index(self) -> int | None:
        """1-based index of the first empty slot scanning upward, None when full."""
        for slot in self.slots:
            if not slot.filled:
                return slot.index
        return None

    @property
    def is_contiguous(self) -> bool:
        """True when no filled slot follows an empty one."""
        seen_empty = False
        for slot in self.slots:
            if not slot.filled:
                seen_empty = True
            elif seen_empty:
                return False
        return True

    def filled_descending(self) -> list[NoteSlot]:
        return [s for s in reversed(self.slots) if s.filled]

    def texts(self) -> list[str]:
        return [s.text for s in self.filled_descending()]


@dataclass(frozen=True)
class EventRecord:
    """Decoded event row.

    `values` always holds every base field (missing cells decode to "").
    `row_number` is the physical sheet row the record was read from or
    written to; it is informational only and never reused across calls.
    """
    values: dict[str, str]
    notes: NoteSlots = field(default_factory=NoteSlots.empty)
    comercial_final: str = ""
    motivo_rechazo: str = ""
    row_number: int | None = None

    @property
    def key(self) -> str:
        return self.values.get(KEY_COLUMN.field, "")

    def get(self, name: str) -> str:
        return self.values.get(name, "")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {c.field: self.values.get(c.field, "") for c in BASE_COLUMNS}
        data[DERIVED_COLUMN.field] = self.comercial_final
        data[REJECTION_REASON_COLUMN.field] = self.motivo_rechazo
        data["observaciones"] = self.notes.texts()
        return data
