from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from src.config.loader import DEFAULT_CONFIG_PATH, AppConfig, ConfigError, load_config
from src.logging.error_log import ErrorLogBuffer
from src.logging.init import log_summary, set_debug, setup_logging
from src.services.errors import (
    CapacityExhaustedError,
    OperationFailedError,
    ValidationFailedError,
)
from src.services.record_service import EventRecordService, build_record_service
from src.sheets.connection import build_sheets_service
from src.sheets.gateway import SheetsGateway

"""CLI entrypoint.

    python -m src.cli [--config PATH] [--debug] [--actor NAME] <command> ...

Commands map 1:1 onto the record service: list, get, create, update, notes,
add-note, audit. Results are printed as JSON; the last line is always a
SUMMARY line with the command and its outcome.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_NOT_FOUND = 3
EXIT_VALIDATION = 4
EXIT_CAPACITY = 5


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True lets .env win over variables already in the process, so the
    spreadsheet identity and credentials in .env are always the ones used.
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="event-sheet-store", description="Event sheet record store")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--actor", default=None, help="Actor recorded in audit entries")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List every record")
    get = sub.add_parser("get", help="Show one record")
    get.add_argument("key")

    create = sub.add_parser("create", help="Append a new record")
    create.add_argument("--field", action="append", default=[], metavar="NAME=VALUE")

    update = sub.add_parser("update", help="Update fields of a record")
    update.add_argument("key")
    update.add_argument("--field", action="append", default=[], metavar="NAME=VALUE")
    update.add_argument("--rejection-reason", default=None)

    notes = sub.add_parser("notes", help="List notes of a record, newest first")
    notes.add_argument("key")
    add_note = sub.add_parser("add-note", help="Add a note to the first free slot")
    add_note.add_argument("key")
    add_note.add_argument("text")

    audit = sub.add_parser("audit", help="Change history of a record, newest first")
    audit.add_argument("key")
    return p.parse_args(argv)


def _parse_fields(pairs: list[str]) -> dict[str, str]:
    fields: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ValidationFailedError(f"expected NAME=VALUE, got {pair!r}")
        fields[name.strip()] = value
    return fields


def _build_service(cfg: AppConfig, error_log: ErrorLogBuffer) -> EventRecordService:  # pragma: no cover (needs credentials)
    gateway = SheetsGateway(build_sheets_service(cfg), cfg.spreadsheet_id)
    return build_record_service(cfg, gateway, error_log)


def _run(service: EventRecordService, args: argparse.Namespace) -> Any:
    """Execute the command; None means the key did not resolve."""
    if args.command == "list":
        return [r.to_dict() for r in service.list()]
    if args.command == "get":
        record = service.get(args.key)
        return record.to_dict() if record is not None else None
    if args.command == "create":
        return service.create(_parse_fields(args.field), actor=args.actor).to_dict()
    if args.command == "update":
        record = service.update(
            args.key, _parse_fields(args.field), args.rejection_reason, actor=args.actor
        )
        return record.to_dict() if record is not None else None
    if args.command == "notes":
        slots = service.list_notes(args.key)
        return [s.to_dict() for s in slots] if slots is not None else None
    if args.command == "add-note":
        slot = service.add_note(args.key, args.text)
        return slot.to_dict() if slot is not None else None
    if args.command == "audit":
        return [e.to_dict() for e in service.list_audit(args.key)]
    raise ValidationFailedError(f"unknown command: {args.command}")  # pragma: no cover


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # Only read sys.argv when no list was passed ([] is a valid argv in tests)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(logger)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer()
    try:
        service = _build_service(cfg, error_log)
    except ConfigError as e:
        logger.error(f"credentials: {e}")
        return EXIT_FATAL

    status = "ok"
    code = EXIT_SUCCESS
    try:
        result = _run(service, args)
        if result is None:
            status, code = "not_found", EXIT_NOT_FOUND
            logger.error(f"not found: {getattr(args, 'key', '')}")
        else:
            print(json.dumps(result, ensure_ascii=False, indent=2))
    except ValidationFailedError as e:
        status, code = "validation_failed", EXIT_VALIDATION
        logger.error(f"validation: {e}")
    except CapacityExhaustedError as e:
        status, code = "capacity_exhausted", EXIT_CAPACITY
        logger.error(f"notes: {e}")
    except OperationFailedError as e:
        status, code = "operation_failed", EXIT_FATAL
        logger.error(f"operation failed: {e}")
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info(f"failure log: {path}")

    log_summary(f"command={args.command} status={status}")
    return code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
