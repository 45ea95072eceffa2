from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from src.config.loader import AppConfig, ConfigError

"""Google Sheets service construction.

Credential resolution order (first hit wins):
    1. GOOGLE_APPLICATION_CREDENTIALS -> service account JSON file
    2. GOOGLE_CLIENT_EMAIL + GOOGLE_PRIVATE_KEY (+ other GOOGLE_* fields) from the
       environment / .env, assembled into service account info
    3. credentials.file from the YAML config

The core never looks at credentials; it only receives the built resource
through SheetsGateway.
"""

__all__ = [
    "SCOPES",
    "service_account_info_from_env",
    "build_sheets_service",
]

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def service_account_info_from_env() -> dict[str, Any] | None:
    """Service account info assembled from GOOGLE_* variables, None if incomplete."""
    email = os.getenv("GOOGLE_CLIENT_EMAIL")
    private_key = os.getenv("GOOGLE_PRIVATE_KEY")
    if not email or not private_key:
        return None
    return {
        "type": os.getenv("GOOGLE_TYPE", "service_account"),
        "project_id": os.getenv("GOOGLE_PROJECT_ID"),
        "private_key_id": os.getenv("GOOGLE_PRIVATE_KEY_ID"),
        # .env files usually carry the PEM with literal \n sequences
        "private_key": private_key.replace("\\n", "\n"),
        "client_email": email,
        "client_id": os.getenv("GOOGLE_CLIENT_ID"),
        "auth_uri": os.getenv("GOOGLE_AUTH_URI", "https://accounts.google.com/o/oauth2/auth"),
        "token_uri": os.getenv("GOOGLE_TOKEN_URI", "https://oauth2.googleapis.com/token"),
        "auth_provider_x509_cert_url": os.getenv(
            "GOOGLE_AUTH_PROVIDER_CERT_URL", "https://www.googleapis.com/oauth2/v1/certs"
        ),
        "client_x509_cert_url": os.getenv("GOOGLE_CLIENT_CERT_URL"),
        "universe_domain": os.getenv("GOOGLE_UNIVERSE_DOMAIN", "googleapis.com"),
    }


def build_sheets_service(cfg: AppConfig) -> Any:  # pragma: no cover (thin wrapper; needs real credentials)
    """Build the discovery `sheets` v4 resource for `cfg`.

    Raises ConfigError when no usable credentials are found.
    """
    from google.oauth2 import service_account
    from googleapiclient.discovery import build

    key_file = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    info = service_account_info_from_env()
    try:
        if key_file:
            creds = service_account.Credentials.from_service_account_file(key_file, scopes=SCOPES)
        elif info is not None:
            creds = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        elif cfg.credentials.file:
            path = Path(cfg.credentials.file)
            if not path.exists():
                raise ConfigError(f"credentials file not found: {path}")
            creds = service_account.Credentials.from_service_account_file(str(path), scopes=SCOPES)
        else:
            raise ConfigError(
                "no Google credentials: set GOOGLE_APPLICATION_CREDENTIALS, "
                "GOOGLE_CLIENT_EMAIL/GOOGLE_PRIVATE_KEY or credentials.file"
            )
    except (ValueError, OSError) as e:
        raise ConfigError(f"invalid Google credentials: {e}") from e
    return build("sheets", "v4", credentials=creds, cache_discovery=False)
