from __future__ import annotations

import logging

from src.models.columns import NOTE_TEXT_COLUMNS, NOTE_TIME_COLUMNS
from src.models.event_record import NoteSlot, NoteSlots
from src.sheets.codec import cell
from src.sheets.gateway import SheetsGateway
from src.sheets.ranges import a1_range
from .clock import Clock
from .errors import CapacityExhaustedError, OperationFailedError, PartialWriteError
from .resolver import KeyIndexResolver

"""Note slot allocator.

Each record has NOTE_SLOT_COUNT (text, timestamp) column pairs. A note goes
into the first empty text slot scanning upward; a full record rejects new
notes instead of overwriting or rotating. Text and timestamp are two separate
single-cell writes: if the second fails the slot keeps its text without a
date.
"""

__all__ = [
    "NoteSlotAllocator",
]

logger = logging.getLogger(__name__)

_FIRST = NOTE_TEXT_COLUMNS[0]
_LAST = NOTE_TIME_COLUMNS[-1]


class NoteSlotAllocator:
    def __init__(
        self,
        gateway: SheetsGateway,
        resolver: KeyIndexResolver,
        clock: Clock,
    ) -> None:
        self._gateway = gateway
        self._resolver = resolver
        self._clock = clock

    @property
    def sheet_name(self) -> str:
        return self._resolver.sheet_name

    def read_slots(self, row: int) -> NoteSlots:
        rows = self._gateway.get_values(a1_range(self.sheet_name, _FIRST.label, row, _LAST.label, row))
        raw = rows[0] if rows else []
        # raw starts at the first note text column
        offset = _FIRST.index
        return NoteSlots.from_cells(
            [cell(raw, c.index - offset) for c in NOTE_TEXT_COLUMNS],
            [cell(raw, c.index - offset) for c in NOTE_TIME_COLUMNS],
        )

    def list_notes(self, key: str) -> list[NoteSlot] | None:
        row = self._resolver.resolve(key)
        if row is None:
            return None
        return self.read_slots(row).filled_descending()

    def add_note(self, key: str, text: str) -> NoteSlot | None:
        """Write `text` into the first empty slot of `key`'s row.

        Returns the slot written, None when the key does not resolve.
        Raises CapacityExhaustedError when every slot is filled.
        """
        row = self._resolver.resolve(key)
        if row is None:
            return None
        slots = self.read_slots(row)
        if not slots.is_contiguous:
            logger.warning(f"note slots of row {row} have gaps; filling the lowest empty slot")
        index = slots.first_empty_index()
        if index is None:
            raise CapacityExhaustedError(f"all {len(slots.slots)} note slots of row {row} are in use")

        text_col = NOTE_TEXT_COLUMNS[index - 1]
        time_col = NOTE_TIME_COLUMNS[index - 1]
        stamp = self._clock.stamp()
        self._gateway.update_values(a1_range(self.sheet_name, text_col.label, row), [[text]])
        try:
            self._gateway.update_values(a1_range(self.sheet_name, time_col.label, row), [[stamp]])
        except OperationFailedError as e:
            logger.error(f"partial note write row={row} slot={index}: text written, timestamp not")
            raise PartialWriteError(str(e), row=row, written=(text_col.field,)) from e
        logger.info(f"note added row={row} slot={index}")
        return NoteSlot(index=index, text=text, timestamp=stamp)
