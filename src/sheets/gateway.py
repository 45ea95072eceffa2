from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from src.services.errors import OperationFailedError

"""Thin gateway over the Google Sheets v4 values API.

Wraps the discovery-built `sheets` resource (see src.sheets.connection) and
exposes the five calls the record store needs: range get, range update,
range append, sheet title listing and sheet creation.

Every API failure is wrapped into OperationFailedError with the original
exception chained. There is no retry or backoff here.
"""

__all__ = [
    "OperationFailedError",
    "CallMetrics",
    "SheetsGateway",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallMetrics:
    """Timing data for a single backing-store call."""
    operation: str  # get / update / append / metadata / add_sheet
    target: str  # A1 range or sheet title
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float
    ok: bool


class SheetsGateway:
    """Values API access for one spreadsheet.

    Parameters
    ----------
    service: discovery resource returned by googleapiclient `build("sheets", "v4")`
    spreadsheet_id: target spreadsheet
    value_input_option: how written values are interpreted (USER_ENTERED parses
        dates and numbers the way typing them in the UI would)
    metrics_callback: optional hook receiving CallMetrics after every call,
        successful or not
    """

    def __init__(
        self,
        service: Any,
        spreadsheet_id: str,
        *,
        value_input_option: str = "USER_ENTERED",
        metrics_callback: Callable[[CallMetrics], None] | None = None,
    ) -> None:
        self._service = service
        self.spreadsheet_id = spreadsheet_id
        self.value_input_option = value_input_option
        self._metrics_callback = metrics_callback

    def _values(self) -> Any:
        return self._service.spreadsheets().values()

    def _execute(self, operation: str, target: str, request: Any) -> dict[str, Any]:
        start_time = time.time()
        ok = False
        try:
            response = request.execute()
            ok = True
        except Exception as e:
            raise OperationFailedError(f"{operation} {target} failed: {e}") from e
        finally:
            end_time = time.time()
            logger.debug(
                f"sheets {operation} {target} ok={ok} elapsed={end_time - start_time:.3f}s"
            )
            if self._metrics_callback is not None:
                self._metrics_callback(
                    CallMetrics(
                        operation=operation,
                        target=target,
                        elapsed_seconds=end_time - start_time,
                        start_time=start_time,
                        end_time=end_time,
                        ok=ok,
                    )
                )
        return response or {}

    def get_values(self, a1: str) -> list[list[Any]]:
        """Return the rows of `a1`. Trailing empty cells/rows are omitted by the API."""
        request = self._values().get(spreadsheetId=self.spreadsheet_id, range=a1)
        response = self._execute("get", a1, request)
        return response.get("values", [])

    def update_values(
        self, a1: str, rows: Sequence[Sequence[Any]], *, value_input_option: str | None = None
    ) -> None:
        request = self._values().update(
            spreadsheetId=self.spreadsheet_id,
            range=a1,
            valueInputOption=value_input_option or self.value_input_option,
            body={"values": [list(r) for r in rows]},
        )
        self._execute("update", a1, request)

    def append_values(
        self,
        a1: str,
        rows: Sequence[Sequence[Any]],
        *,
        insert_rows: bool = False,
        value_input_option: str | None = None,
    ) -> str:
        """Append rows after the table found in `a1`.

        Returns the range the API reports as written, e.g. `'Base Mail'!B57:P57`.
        insert_rows=True asks the API to insert fresh rows instead of
        overwriting empty ones below the table. value_input_option overrides
        the gateway default for this call (RAW stores values verbatim).
        """
        request = self._values().append(
            spreadsheetId=self.spreadsheet_id,
            range=a1,
            valueInputOption=value_input_option or self.value_input_option,
            insertDataOption="INSERT_ROWS" if insert_rows else "OVERWRITE",
            body={"values": [list(r) for r in rows]},
        )
        response = self._execute("append", a1, request)
        updated = response.get("updates", {}).get("updatedRange")
        if not updated:
            raise OperationFailedError(f"append {a1} returned no updatedRange")
        return updated

    def sheet_titles(self) -> list[str]:
        request = self._service.spreadsheets().get(
            spreadsheetId=self.spreadsheet_id, fields="sheets.properties.title"
        )
        response = self._execute("metadata", self.spreadsheet_id, request)
        return [s.get("properties", {}).get("title", "") for s in response.get("sheets", [])]

    def add_sheet(self, title: str) -> None:
        request = self._service.spreadsheets().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"requests": [{"addSheet": {"properties": {"title": title}}}]},
        )
        self._execute("add_sheet", title, request)
