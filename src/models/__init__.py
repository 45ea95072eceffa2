"""Domain models for the event sheet record store.

Column layout, decoded records, note slots and the audit/failure log entries.
"""

from .audit_entry import AUDIT_HEADER, AuditEntry
from .columns import ColumnDef, ColumnRole
from .error_record import ErrorRecord
from .event_record import EventRecord, NoteSlot, NoteSlots

__all__ = [
    # Schema
    "ColumnDef",
    "ColumnRole",
    # Records
    "EventRecord",
    "NoteSlot",
    "NoteSlots",
    # Logs
    "AUDIT_HEADER",
    "AuditEntry",
    "ErrorRecord",
]
