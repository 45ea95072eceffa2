from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.sheets.ranges import column_letter

"""Static column layout of the event sheet.

Every position used anywhere in the package is resolved through this module.
Header lives in physical row 1 (HEADER_ROW), data starts in row 2.

Layout:
- A..W   base record (A = key, W = status formula)
- Q..R   protected block filled by the downstream commercial assignment
- X..AE  note text slots 1..8
- AF..AM note timestamp slots 1..8 (index-aligned with the text slots)
- AN     derived field (sheet formula)
- AO     rejection reason (written on its own, outside the diff set)
"""

__all__ = [
    "ColumnRole",
    "ColumnDef",
    "HEADER_ROW",
    "FIRST_DATA_ROW",
    "KEY_SENTINEL",
    "BASE_COLUMNS",
    "KEY_COLUMN",
    "STATUS_COLUMN",
    "PROTECTED_BLOCK",
    "NOTE_SLOT_COUNT",
    "NOTE_TEXT_COLUMNS",
    "NOTE_TIME_COLUMNS",
    "DERIVED_COLUMN",
    "REJECTION_REASON_COLUMN",
    "ALL_COLUMNS",
    "FIRST_COLUMN",
    "LAST_COLUMN",
    "WRITABLE_COLUMNS",
    "COLUMNS_BY_FIELD",
    "SCHEDULE_TRIGGER_FIELDS",
    "SCHEDULE_STAMP_FIELD",
    "BUDGET_FIELD",
    "BUDGET_STAMP_FIELD",
    "writable_blocks",
]


class ColumnRole(Enum):
    """What this service may do with a column.

    Only FIELD columns are written through the normal encode/diff path.
    """
    KEY = "key"  # assigned downstream, never written
    FIELD = "field"
    PROTECTED = "protected"  # downstream-only block, never written
    FORMULA = "formula"  # computed by the sheet (status)
    NOTE_TEXT = "note_text"
    NOTE_TIME = "note_time"
    DERIVED = "derived"  # computed by the sheet, exposed read-only
    REJECTION = "rejection"  # single-cell write, audited separately


@dataclass(frozen=True)
class ColumnDef:
    field: str
    index: int  # zero-based position
    label: str  # spreadsheet column letter(s)
    title: str  # human readable name used in audit entries
    role: ColumnRole = ColumnRole.FIELD

    @property
    def writable(self) -> bool:
        return self.role is ColumnRole.FIELD


HEADER_ROW = 1
FIRST_DATA_ROW = 2
KEY_SENTINEL = ":"


def _col(index: int, field: str, title: str, role: ColumnRole = ColumnRole.FIELD) -> ColumnDef:
    return ColumnDef(field=field, index=index, label=column_letter(index), title=title, role=role)


_BASE_LAYOUT: tuple[tuple[str, str, ColumnRole], ...] = (
    ("id", "Id", ColumnRole.KEY),
    ("fecha_cliente", "Fecha Cliente", ColumnRole.FIELD),
    ("hora_cliente", "Hora Cliente", ColumnRole.FIELD),
    ("nombre", "Nombre", ColumnRole.FIELD),
    ("telefono", "Teléfono", ColumnRole.FIELD),
    ("mail", "Mail", ColumnRole.FIELD),
    ("lugar", "Lugar", ColumnRole.FIELD),
    ("cantidad_personas", "Cantidad Personas", ColumnRole.FIELD),
    ("observacion", "Observación", ColumnRole.FIELD),
    ("redireccion", "Redirección", ColumnRole.FIELD),
    ("canal", "Canal", ColumnRole.FIELD),
    ("respuesta_via_mail", "Respuesta Vía Mail", ColumnRole.FIELD),
    ("asignacion_comercial_mail", "Asignación Comercial Mail", ColumnRole.FIELD),
    ("horario_inicio_evento", "Horario Inicio Evento", ColumnRole.FIELD),
    ("horario_finalizacion_evento", "Horario Finalización Evento", ColumnRole.FIELD),
    ("fecha_evento", "Fecha Evento", ColumnRole.FIELD),
    ("sector", "Sector", ColumnRole.PROTECTED),
    ("vendedor_comercial_asignado", "Vendedor Comercial Asignado", ColumnRole.PROTECTED),
    ("marca_temporal", "Marca Temporal", ColumnRole.FIELD),
    ("demora", "Demora", ColumnRole.FIELD),
    ("presupuesto", "Presupuesto", ColumnRole.FIELD),
    ("fecha_presup_enviado", "Fecha Presup. Enviado", ColumnRole.FIELD),
    # Status is a sheet formula; flip the role to FIELD to make it writable.
    ("estado", "Estado", ColumnRole.FORMULA),
)

BASE_COLUMNS: tuple[ColumnDef, ...] = tuple(
    _col(i, field, title, role) for i, (field, title, role) in enumerate(_BASE_LAYOUT)
)

KEY_COLUMN = BASE_COLUMNS[0]
STATUS_COLUMN = next(c for c in BASE_COLUMNS if c.field == "estado")
PROTECTED_BLOCK: tuple[ColumnDef, ...] = tuple(
    c for c in BASE_COLUMNS if c.role is ColumnRole.PROTECTED
)

NOTE_SLOT_COUNT = 8
_NOTE_TEXT_START = len(BASE_COLUMNS)
_NOTE_TIME_START = _NOTE_TEXT_START + NOTE_SLOT_COUNT

NOTE_TEXT_COLUMNS: tuple[ColumnDef, ...] = tuple(
    _col(_NOTE_TEXT_START + i, f"observacion{i + 1}", f"Observación {i + 1}", ColumnRole.NOTE_TEXT)
    for i in range(NOTE_SLOT_COUNT)
)
NOTE_TIME_COLUMNS: tuple[ColumnDef, ...] = tuple(
    _col(
        _NOTE_TIME_START + i,
        f"fecha_observacion{i + 1}",
        f"Fecha Observación {i + 1}",
        ColumnRole.NOTE_TIME,
    )
    for i in range(NOTE_SLOT_COUNT)
)

DERIVED_COLUMN = _col(_NOTE_TIME_START + NOTE_SLOT_COUNT, "comercial_final", "Comercial Final", ColumnRole.DERIVED)
REJECTION_REASON_COLUMN = _col(DERIVED_COLUMN.index + 1, "motivo_rechazo", "Motivo Rechazo", ColumnRole.REJECTION)

ALL_COLUMNS: tuple[ColumnDef, ...] = (
    BASE_COLUMNS + NOTE_TEXT_COLUMNS + NOTE_TIME_COLUMNS + (DERIVED_COLUMN, REJECTION_REASON_COLUMN)
)
FIRST_COLUMN = ALL_COLUMNS[0]
LAST_COLUMN = ALL_COLUMNS[-1]

WRITABLE_COLUMNS: tuple[ColumnDef, ...] = tuple(c for c in BASE_COLUMNS if c.writable)
COLUMNS_BY_FIELD: dict[str, ColumnDef] = {c.field: c for c in ALL_COLUMNS}

# Automatic timestamp rules applied on update
SCHEDULE_TRIGGER_FIELDS: tuple[str, ...] = ("horario_inicio_evento", "horario_finalizacion_evento")
SCHEDULE_STAMP_FIELD = "marca_temporal"
BUDGET_FIELD = "presupuesto"
BUDGET_STAMP_FIELD = "fecha_presup_enviado"


def writable_blocks() -> tuple[tuple[ColumnDef, ...], ...]:
    """Contiguous runs of writable base columns, left to right.

    With the current layout this is (B..P, S..V): the key column, the
    protected block and the status column fall between or after them.
    """
    blocks: list[tuple[ColumnDef, ...]] = []
    current: list[ColumnDef] = []
    for col in BASE_COLUMNS:
        if col.writable:
            current.append(col)
        elif current:
            blocks.append(tuple(current))
            current = []
    if current:
        blocks.append(tuple(current))
    return tuple(blocks)
