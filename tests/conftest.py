# Shared pytest fixtures
from __future__ import annotations

import tempfile
from datetime import UTC, datetime
from pathlib import Path

import pytest

from src.logging.error_log import ErrorLogBuffer
from src.logging.init import reset_logging
from src.services.audit_sink import AuditSink
from src.services.record_service import EventRecordService
from tests.fakes import AUDIT_SHEET, DATA_SHEET, HEADER, FixedClock, InMemorySheets


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sheets() -> InMemorySheets:
    return InMemorySheets({DATA_SHEET: [list(HEADER)]})


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 1, 10, 0, 0, tzinfo=UTC))


@pytest.fixture()
def error_log(tmp_path: Path) -> ErrorLogBuffer:
    return ErrorLogBuffer(logs_dir=tmp_path / "logs")


@pytest.fixture()
def service(sheets: InMemorySheets, clock: FixedClock, error_log: ErrorLogBuffer) -> EventRecordService:
    return EventRecordService(
        sheets,  # type: ignore[arg-type]
        sheet_name=DATA_SHEET,
        audit_sink=AuditSink(sheets, AUDIT_SHEET),  # type: ignore[arg-type]
        clock=clock,
        actor="tester",
        origin="test",
        error_log=error_log,
    )


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        for name in (
            "GOOGLE_SPREADSHEET_ID",
            "GOOGLE_SHEET_NAME",
            "GOOGLE_AUDIT_SHEET_NAME",
            "GOOGLE_APPLICATION_CREDENTIALS",
            "GOOGLE_CLIENT_EMAIL",
            "GOOGLE_PRIVATE_KEY",
        ):
            monkeypatch.delenv(name, raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """spreadsheet_id: sheet-123
sheet_name: Base Mail
audit_sheet_name: Auditoria
timezone: UTC
actor: cli
origin: cli
credentials:
  file: ./credentials.json
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "event_store.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg
