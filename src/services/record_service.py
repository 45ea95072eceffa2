from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from src.config.loader import AppConfig
from src.logging.error_log import ErrorLogBuffer
from src.models.audit_entry import AuditEntry
from src.models.columns import (
    BASE_COLUMNS,
    BUDGET_FIELD,
    BUDGET_STAMP_FIELD,
    COLUMNS_BY_FIELD,
    FIRST_COLUMN,
    FIRST_DATA_ROW,
    LAST_COLUMN,
    REJECTION_REASON_COLUMN,
    SCHEDULE_STAMP_FIELD,
    SCHEDULE_TRIGGER_FIELDS,
    WRITABLE_COLUMNS,
)
from src.models.error_record import ErrorRecord
from src.models.event_record import EventRecord, NoteSlot
from src.sheets.codec import WriteRange, decode_row, encode_record, writable_values
from src.sheets.gateway import SheetsGateway
from src.sheets.ranges import a1_range, parse_row_number
from .audit_sink import AuditSink
from .clock import Clock
from .errors import OperationFailedError, PartialWriteError, ValidationFailedError
from .notes import NoteSlotAllocator
from .resolver import KeyIndexResolver, normalize_key

"""Record service: create/read/update over the event sheet.

Flow of a mutation: resolve key -> read row -> decode -> merge + timestamp
rules -> diff over writable fields -> encode -> range writes -> audit append.

Consistency notes (no transactions on the backing store):
- create and update issue one write per writable range. When a later write
  fails the earlier ones stay on the sheet; PartialWriteError is raised and a
  PARTIAL_WRITE record goes to the failure log. Nothing is rolled back.
- Audit entries are appended only after the data writes succeed. If the
  append fails the data change stands without its audit entries
  (AUDIT_WRITE_FAILED in the failure log).
- Two concurrent updates of the same key both diff against the same
  snapshot; the later range write wins cell by cell. Callers that need more
  must serialize per key.
"""

__all__ = [
    "NOTES_INPUT_FIELD",
    "EventRecordService",
    "build_record_service",
]

logger = logging.getLogger(__name__)

# Present in EventRecord.to_dict(); accepted on input and ignored like any read-only field
NOTES_INPUT_FIELD = "observaciones"


class EventRecordService:
    def __init__(
        self,
        gateway: SheetsGateway,
        *,
        sheet_name: str,
        audit_sink: AuditSink,
        clock: Clock | None = None,
        actor: str = "api",
        origin: str = "api",
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self._gateway = gateway
        self.sheet_name = sheet_name
        self.audit = audit_sink
        self.clock = clock or Clock()
        self.actor = actor
        self.origin = origin
        self.error_log = error_log
        self.resolver = KeyIndexResolver(gateway, sheet_name)
        self.notes = NoteSlotAllocator(gateway, self.resolver, self.clock)

    # ---- failure bookkeeping ----

    def _record_failure(self, operation: str, key: str, row: int, error_type: str, error: Exception) -> None:
        if self.error_log is not None:
            self.error_log.append(
                ErrorRecord.create(operation, self.sheet_name, row, key, error_type, str(error))
            )

    @contextmanager
    def _recording(self, operation: str, key: str = "", row: int = -1) -> Iterator[None]:
        try:
            yield
        except PartialWriteError as e:
            self._record_failure(operation, key, e.row, "PARTIAL_WRITE", e)
            raise
        except OperationFailedError as e:
            logger.error(f"{operation} failed key={key or '-'}: {e}")
            self._record_failure(operation, key, row, "OPERATION_FAILED", e)
            raise

    # ---- input handling ----

    @staticmethod
    def _require_key(key: str | None) -> str:
        """Validate a caller key; the resolver strips the sentinel itself."""
        if key is None or not normalize_key(key).strip():
            raise ValidationFailedError("record key is required")
        return key

    @staticmethod
    def _writable_input(fields: Mapping[str, Any]) -> dict[str, str]:
        """Writable subset of caller input, values coerced to str.

        Unknown names fail validation; known read-only names are dropped.
        """
        unknown = sorted(n for n in fields if n not in COLUMNS_BY_FIELD and n != NOTES_INPUT_FIELD)
        if unknown:
            raise ValidationFailedError(f"unknown fields: {unknown}")
        writable: dict[str, str] = {}
        ignored: list[str] = []
        for name, value in fields.items():
            col = COLUMNS_BY_FIELD.get(name)
            if col is None or not col.writable:
                ignored.append(name)
                continue
            writable[name] = "" if value is None else str(value)
        if ignored:
            logger.warning(f"ignoring read-only fields: {sorted(ignored)}")
        return writable

    def _apply_timestamps(self, current: Mapping[str, str], incoming: Mapping[str, str], merged: dict[str, str]) -> None:
        """Stamp marca temporal / fecha presupuesto the first time their trigger is set."""
        if (
            not current.get(SCHEDULE_STAMP_FIELD, "").strip()
            and not merged.get(SCHEDULE_STAMP_FIELD, "").strip()
            and any(incoming.get(f, "").strip() for f in SCHEDULE_TRIGGER_FIELDS)
        ):
            merged[SCHEDULE_STAMP_FIELD] = self.clock.stamp()
        if (
            not current.get(BUDGET_STAMP_FIELD, "").strip()
            and not merged.get(BUDGET_STAMP_FIELD, "").strip()
            and incoming.get(BUDGET_FIELD, "").strip()
        ):
            merged[BUDGET_STAMP_FIELD] = self.clock.stamp()

    # ---- backing store helpers ----

    def _row_range(self, row: int) -> str:
        return a1_range(self.sheet_name, FIRST_COLUMN.label, row, LAST_COLUMN.label, row)

    def _read_row(self, row: int) -> EventRecord:
        rows = self._gateway.get_values(self._row_range(row))
        return decode_row(rows[0] if rows else [], row)

    def _write_ranges(
        self, row: int, ranges: Sequence[WriteRange], written: Sequence[str] = ()
    ) -> tuple[str, ...]:
        done = list(written)
        for wr in ranges:
            target = a1_range(self.sheet_name, wr.first.label, row, wr.last.label, row)
            try:
                self._gateway.update_values(target, [list(wr.values)])
            except OperationFailedError as e:
                if done:
                    logger.error(f"partial write row={row}: {len(done)} fields written, {target} failed")
                    raise PartialWriteError(str(e), row=row, written=tuple(done)) from e
                raise
            done.extend(wr.fields)
        return tuple(done)

    def _append_audit(self, operation: str, key: str, row: int, entries: list[AuditEntry]) -> None:
        try:
            self.audit.append(entries)
        except OperationFailedError as e:
            logger.error(f"{operation} row={row} written but {len(entries)} audit entries lost: {e}")
            self._record_failure(operation, key, row, "AUDIT_WRITE_FAILED", e)
            raise

    def _entry(self, key: str, row: int, title: str, before: str, after: str, actor: str | None, note: str = "") -> AuditEntry:
        return AuditEntry(
            timestamp=self.clock.stamp(),
            key=key,
            row=row,
            field=title,
            before=before,
            after=after,
            actor=actor or self.actor,
            origin=self.origin,
            note=note,
        )

    # ---- operations ----

    def list(self) -> list[EventRecord]:
        with self._recording("list"):
            rows = self._gateway.get_values(
                a1_range(self.sheet_name, FIRST_COLUMN.label, FIRST_DATA_ROW, LAST_COLUMN.label)
            )
        return [decode_row(raw, FIRST_DATA_ROW + i) for i, raw in enumerate(rows)]

    def get(self, key: str) -> EventRecord | None:
        key = self._require_key(key)
        with self._recording("get", key):
            row = self.resolver.resolve(key)
            if row is None:
                return None
            return self._read_row(row)

    def create(self, fields: Mapping[str, Any], *, actor: str | None = None) -> EventRecord:
        """Append a new row; the key is left blank for the downstream assignment."""
        if not fields:
            raise ValidationFailedError("no fields supplied")
        writable = self._writable_input(fields)
        if not any(v.strip() for v in writable.values()):
            raise ValidationFailedError("create needs at least one non-empty writable field")

        values = {c.field: "" for c in BASE_COLUMNS}
        values.update(writable)
        first, *rest = encode_record(values)

        with self._recording("create"):
            # Table detection only looks at the first block; a row whose first
            # block is empty must never be reused.
            updated = self._gateway.append_values(
                a1_range(self.sheet_name, first.first.label, None, first.last.label),
                [list(first.values)],
                insert_rows=True,
            )
            try:
                row = parse_row_number(updated)
            except ValueError as e:
                raise OperationFailedError(f"cannot locate appended row: {e}") from e
            self._write_ranges(row, rest, written=first.fields)

        entries = [
            self._entry("", row, c.title, "", values[c.field], actor)
            for c in WRITABLE_COLUMNS
            if values[c.field] != ""
        ]
        self._append_audit("create", "", row, entries)
        logger.info(f"created row={row} fields={len(entries)}")
        return EventRecord(values=values, row_number=row)

    def update(
        self,
        key: str,
        fields: Mapping[str, Any] | None,
        rejection_reason: str | None = None,
        *,
        actor: str | None = None,
    ) -> EventRecord | None:
        """Merge `fields` over the stored record and write what changed.

        Returns the merged record, None when the key does not resolve.
        """
        key = self._require_key(key)
        if not fields and rejection_reason is None:
            raise ValidationFailedError("nothing to update")
        incoming = self._writable_input(fields or {})

        with self._recording("update", key):
            row = self.resolver.resolve(key)
            if row is None:
                return None
            current = self._read_row(row)

            merged = dict(current.values)
            merged.update(incoming)
            self._apply_timestamps(current.values, incoming, merged)

            before = writable_values(current.values)
            after = writable_values(merged)
            changed = [c for c in WRITABLE_COLUMNS if before[c.field] != after[c.field]]
            reason_changed = rejection_reason is not None and rejection_reason != current.motivo_rechazo

            written: tuple[str, ...] = ()
            if changed:
                written = self._write_ranges(row, encode_record(merged))
            if reason_changed:
                reason_range = WriteRange(columns=(REJECTION_REASON_COLUMN,), values=(rejection_reason,))
                self._write_ranges(row, [reason_range], written=written)

        note = rejection_reason or ""
        nkey = normalize_key(key)
        entries = [
            self._entry(nkey, row, c.title, before[c.field], after[c.field], actor, note)
            for c in changed
        ]
        if reason_changed:
            entries.append(
                self._entry(nkey, row, REJECTION_REASON_COLUMN.title, current.motivo_rechazo, rejection_reason, actor, note)
            )
        if entries:
            self._append_audit("update", nkey, row, entries)
            logger.info(f"updated key={key} row={row} changes={len(entries)}")
        else:
            logger.info(f"update key={key} row={row}: no changes")

        return EventRecord(
            values=merged,
            notes=current.notes,
            comercial_final=current.comercial_final,
            motivo_rechazo=rejection_reason if rejection_reason is not None else current.motivo_rechazo,
            row_number=row,
        )

    def list_notes(self, key: str) -> list[NoteSlot] | None:
        key = self._require_key(key)
        with self._recording("list_notes", key):
            return self.notes.list_notes(key)

    def add_note(self, key: str, text: str | None) -> NoteSlot | None:
        key = self._require_key(key)
        text = (text or "").strip()
        if not text:
            raise ValidationFailedError("note text is required")
        with self._recording("add_note", key):
            return self.notes.add_note(key, text)

    def list_audit(self, key: str) -> list[AuditEntry]:
        key = self._require_key(key)
        with self._recording("list_audit", key):
            return self.audit.query_by_key(key)


def build_record_service(
    config: AppConfig, gateway: SheetsGateway, error_log: ErrorLogBuffer | None = None
) -> EventRecordService:
    return EventRecordService(
        gateway,
        sheet_name=config.sheet_name,
        audit_sink=AuditSink(gateway, config.audit_sheet_name),
        clock=Clock(config.timezone),
        actor=config.actor,
        origin=config.origin,
        error_log=error_log,
    )
