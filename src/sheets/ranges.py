from __future__ import annotations

import re

"""A1 notation helpers for the Sheets values API.

Ranges look like `'Base Mail'!B5:P5`, `'Base Mail'!A2:A` or `'Auditoria'!A:I`.
Sheet names are always quoted so names with spaces survive.
"""

__all__ = [
    "column_letter",
    "a1_range",
    "parse_row_number",
]

_UPDATED_ROW_RE = re.compile(r"!\$?[A-Z]+\$?(\d+)")


def column_letter(index: int) -> str:
    """Zero-based column index -> spreadsheet label (0 -> A, 26 -> AA)."""
    if index < 0:
        raise ValueError(f"negative column index: {index}")
    label = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


def _quote(sheet: str) -> str:
    return "'" + sheet.replace("'", "''") + "'"


def a1_range(
    sheet: str,
    first: str,
    start_row: int | None = None,
    last: str | None = None,
    end_row: int | None = None,
) -> str:
    """Build an A1 range.

    a1_range("Base Mail", "A", 2, "A")        -> 'Base Mail'!A2:A
    a1_range("Base Mail", "B", 7, "P", 7)     -> 'Base Mail'!B7:P7
    a1_range("Base Mail", "X", 7)             -> 'Base Mail'!X7
    """
    start = f"{first}{start_row if start_row is not None else ''}"
    if last is None:
        return f"{_quote(sheet)}!{start}"
    end = f"{last}{end_row if end_row is not None else ''}"
    return f"{_quote(sheet)}!{start}:{end}"


def parse_row_number(updated_range: str) -> int:
    """Extract the first physical row number from an API-reported range.

    The append call answers with something like `'Base Mail'!B57:P57`.
    """
    m = _UPDATED_ROW_RE.search(updated_range or "")
    if not m:
        raise ValueError(f"no row number in range: {updated_range!r}")
    return int(m.group(1))

