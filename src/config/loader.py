from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load YAML config (default config/event_store.yml)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults (sheet names, timezone=UTC, actor/origin=api)
- Let GOOGLE_* environment variables override the store identity
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/event_store.yml")

DEFAULT_SHEET_NAME = "Base Mail"
DEFAULT_AUDIT_SHEET_NAME = "Auditoria"

# env var -> config attribute
ENV_OVERRIDES = {
    "GOOGLE_SPREADSHEET_ID": "spreadsheet_id",
    "GOOGLE_SHEET_NAME": "sheet_name",
    "GOOGLE_AUDIT_SHEET_NAME": "audit_sheet_name",
}


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class CredentialsConfig:
    file: str | None = None  # service account JSON; env credentials take precedence


@dataclass(frozen=True)
class AppConfig:
    spreadsheet_id: str
    sheet_name: str
    audit_sheet_name: str
    timezone: str
    actor: str
    origin: str
    credentials: CredentialsConfig


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
            (missing required keys, wrong types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    for env_name, key in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            data[key] = value

    _validate_config_schema(data)

    tz = data.get("timezone", "UTC")
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {tz}") from e

    creds_raw = data.get("credentials") or {}
    return AppConfig(
        spreadsheet_id=data["spreadsheet_id"],
        sheet_name=data.get("sheet_name", DEFAULT_SHEET_NAME),
        audit_sheet_name=data.get("audit_sheet_name", DEFAULT_AUDIT_SHEET_NAME),
        timezone=tz,
        actor=data.get("actor", "api"),
        origin=data.get("origin", "api"),
        credentials=CredentialsConfig(file=creds_raw.get("file")),
    )
