from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

"""Local-time stamps written into the sheet (marca temporal, note dates, audit)."""

__all__ = [
    "TIMESTAMP_FORMAT",
    "Clock",
]

TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"


class Clock:
    """Current time in the configured timezone."""

    def __init__(self, timezone: str = "UTC") -> None:
        self.tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def stamp(self) -> str:
        return self.now().strftime(TIMESTAMP_FORMAT)
