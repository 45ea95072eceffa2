from __future__ import annotations

import logging
from collections.abc import Sequence

import pandas as pd

from src.models.audit_entry import AUDIT_HEADER, AuditEntry
from src.models.columns import FIRST_DATA_ROW, HEADER_ROW
from src.sheets.gateway import SheetsGateway
from src.sheets.ranges import a1_range, column_letter
from .clock import TIMESTAMP_FORMAT
from .errors import OperationFailedError
from .resolver import normalize_key

"""Audit sink: the durable field-level change log.

The sink owns the audit surface: it creates the sheet and its header row on
first write, appends one row per AuditEntry and answers per-key history
queries sorted newest first.

Audit rows are written RAW so before/after values and timestamps are stored
verbatim instead of being parsed as numbers, dates or formulas.

Surface creation is check-then-create on every append, so a log sheet removed
by hand is recreated. Two first writes racing each other can both see the
sheet missing; the loser's addSheet fails and is accepted when a re-check
shows the sheet now exists.
"""

__all__ = [
    "AuditSink",
]

logger = logging.getLogger(__name__)

_LAST_LABEL = column_letter(len(AUDIT_HEADER) - 1)
_INPUT_OPTION = "RAW"
_FRAME_COLUMNS = ["timestamp", "key", "row", "field", "before", "after", "actor", "origin", "note"]


class AuditSink:
    def __init__(self, gateway: SheetsGateway, sheet_name: str) -> None:
        self._gateway = gateway
        self.sheet_name = sheet_name

    def ensure_log_exists(self) -> bool:
        """Create the audit sheet with its header if missing.

        Returns True when this call created it.
        """
        if self.sheet_name in self._gateway.sheet_titles():
            return False
        try:
            self._gateway.add_sheet(self.sheet_name)
        except OperationFailedError:
            if self.sheet_name not in self._gateway.sheet_titles():
                raise
            logger.warning(f"audit sheet '{self.sheet_name}' created concurrently; reusing it")
            return False
        header = a1_range(self.sheet_name, "A", HEADER_ROW, _LAST_LABEL, HEADER_ROW)
        self._gateway.update_values(header, [list(AUDIT_HEADER)], value_input_option=_INPUT_OPTION)
        logger.info(f"created audit sheet '{self.sheet_name}'")
        return True

    def append(self, entries: Sequence[AuditEntry]) -> int:
        if not entries:
            return 0
        self.ensure_log_exists()
        target = a1_range(self.sheet_name, "A", HEADER_ROW, _LAST_LABEL, HEADER_ROW)
        self._gateway.append_values(
            target,
            [e.to_row() for e in entries],
            insert_rows=True,
            value_input_option=_INPUT_OPTION,
        )
        logger.debug(f"audit +{len(entries)} entries")
        return len(entries)

    def query_by_key(self, key: str) -> list[AuditEntry]:
        """History of one record key, most recent first.

        Timestamps that do not parse sort as epoch zero (oldest). Entries with
        equal timestamps come back bottom row first. A log that was never
        created has no history.
        """
        needle = normalize_key(key)
        if self.sheet_name not in self._gateway.sheet_titles():
            return []
        rows = self._gateway.get_values(
            a1_range(self.sheet_name, "A", FIRST_DATA_ROW, _LAST_LABEL)
        )
        if not rows:
            return []
        entries = [AuditEntry.from_row(r) for r in rows]
        df = pd.DataFrame([e.to_dict() for e in entries], columns=_FRAME_COLUMNS)
        df = df[df["key"] == needle]
        if df.empty:
            return []
        parsed = pd.to_datetime(df["timestamp"], format=TIMESTAMP_FORMAT, errors="coerce")
        # index is the position on the sheet; later rows win ties
        df = df.assign(_ts=parsed.fillna(pd.Timestamp(0)), _pos=df.index)
        df = df.sort_values(["_ts", "_pos"], ascending=False)
        return [entries[i] for i in df.index]
