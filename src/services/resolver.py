from __future__ import annotations

import logging

from src.models.columns import FIRST_DATA_ROW, KEY_COLUMN, KEY_SENTINEL
from src.sheets.codec import cell
from src.sheets.gateway import SheetsGateway
from src.sheets.ranges import a1_range

"""Key index resolver.

Maps an external record key to its physical row by scanning the key column.
Results are never cached: rows can move between calls when the sheet is
edited by hand, so every record operation resolves again.
"""

__all__ = [
    "normalize_key",
    "KeyIndexResolver",
]

logger = logging.getLogger(__name__)


def normalize_key(raw: str | None) -> str:
    """Drop a single leading sentinel (":1" -> "1")."""
    key = raw or ""
    if key.startswith(KEY_SENTINEL):
        key = key[len(KEY_SENTINEL):]
    return key


class KeyIndexResolver:
    def __init__(self, gateway: SheetsGateway, sheet_name: str) -> None:
        self._gateway = gateway
        self.sheet_name = sheet_name

    def resolve(self, key: str | None) -> int | None:
        """Return the 1-based row holding `key`, or None when absent.

        Exact string equality only; the first match top to bottom wins.
        """
        needle = normalize_key(key)
        if not needle:
            return None
        column = a1_range(self.sheet_name, KEY_COLUMN.label, FIRST_DATA_ROW, KEY_COLUMN.label)
        rows = self._gateway.get_values(column)
        for offset, raw in enumerate(rows):
            if cell(raw, 0) == needle:
                row = FIRST_DATA_ROW + offset
                logger.debug(f"resolved key={needle} row={row}")
                return row
        logger.debug(f"key not found: {needle}")
        return None
