from __future__ import annotations

from src.models.columns import (
    ALL_COLUMNS,
    BASE_COLUMNS,
    DERIVED_COLUMN,
    KEY_COLUMN,
    LAST_COLUMN,
    NOTE_SLOT_COUNT,
    NOTE_TEXT_COLUMNS,
    NOTE_TIME_COLUMNS,
    PROTECTED_BLOCK,
    REJECTION_REASON_COLUMN,
    STATUS_COLUMN,
    WRITABLE_COLUMNS,
    ColumnRole,
    writable_blocks,
)


def test_positions_are_contiguous_and_unique():
    assert [c.index for c in ALL_COLUMNS] == list(range(len(ALL_COLUMNS)))
    assert len({c.field for c in ALL_COLUMNS}) == len(ALL_COLUMNS)


def test_base_layout_a_to_w():
    assert len(BASE_COLUMNS) == 23
    assert BASE_COLUMNS[0].label == "A"
    assert BASE_COLUMNS[-1].label == "W"
    assert KEY_COLUMN.field == "id" and KEY_COLUMN.role is ColumnRole.KEY


def test_status_column_is_formula_and_not_writable():
    assert STATUS_COLUMN.label == "W"
    assert STATUS_COLUMN.role is ColumnRole.FORMULA
    assert not STATUS_COLUMN.writable


def test_protected_block_is_two_adjacent_columns():
    assert [c.label for c in PROTECTED_BLOCK] == ["Q", "R"]
    assert PROTECTED_BLOCK[1].index == PROTECTED_BLOCK[0].index + 1
    assert not any(c.writable for c in PROTECTED_BLOCK)


def test_note_columns_are_index_aligned():
    assert NOTE_SLOT_COUNT == 8
    assert [c.label for c in NOTE_TEXT_COLUMNS] == ["X", "Y", "Z", "AA", "AB", "AC", "AD", "AE"]
    assert NOTE_TIME_COLUMNS[0].label == "AF"
    assert NOTE_TIME_COLUMNS[-1].label == "AM"
    for text_col, time_col in zip(NOTE_TEXT_COLUMNS, NOTE_TIME_COLUMNS, strict=True):
        assert time_col.index - text_col.index == NOTE_SLOT_COUNT


def test_derived_and_rejection_columns_follow_notes():
    assert DERIVED_COLUMN.label == "AN" and not DERIVED_COLUMN.writable
    assert REJECTION_REASON_COLUMN.label == "AO" and not REJECTION_REASON_COLUMN.writable
    assert LAST_COLUMN is REJECTION_REASON_COLUMN


def test_writable_blocks_bracket_protected_columns():
    blocks = writable_blocks()
    assert [(b[0].label, b[-1].label) for b in blocks] == [("B", "P"), ("S", "V")]
    flattened = [c for b in blocks for c in b]
    assert tuple(flattened) == WRITABLE_COLUMNS
    assert KEY_COLUMN not in flattened
    assert STATUS_COLUMN not in flattened
