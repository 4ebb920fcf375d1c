"""Google Sheets read/write for location rows and coordinate columns."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from geosheet.common.errors import SheetReadError, SheetWriteError
from geosheet.common.logging import get_logger, log_event
from geosheet.common.models import Coordinate

VALUE_INPUT_OPTION = "USER_ENTERED"


def build_sheets_service(credentials):
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def write_range_for(count: int, *, lat_col: str = "H", lng_col: str = "I", start_row: int = 2) -> str:
    # End row is count + start_row: 3 results -> H2:I5.
    return f"{lat_col}{start_row}:{lng_col}{count + start_row}"


class SpreadsheetGateway:
    def __init__(
        self,
        service,
        spreadsheet_id: str,
        *,
        read_range: str = "A2:I",
        lat_col: str = "H",
        lng_col: str = "I",
        start_row: int = 2,
        logger: logging.Logger | None = None,
    ) -> None:
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.read_range = read_range
        self.lat_col = lat_col
        self.lng_col = lng_col
        self.start_row = start_row
        self.logger = logger or get_logger("sheets")

    @classmethod
    def from_config(cls, spreadsheet_config: dict, service, **kwargs: Any) -> "SpreadsheetGateway":
        return cls(
            service,
            spreadsheet_config["id"],
            read_range=spreadsheet_config["read_range"],
            lat_col=spreadsheet_config["write_columns"]["lat"],
            lng_col=spreadsheet_config["write_columns"]["lng"],
            start_row=int(spreadsheet_config["write_start_row"]),
            **kwargs,
        )

    def _values(self):
        return self.service.spreadsheets().values()

    def read_rows(self) -> list[list[str]]:
        try:
            response = self._values().get(spreadsheetId=self.spreadsheet_id, range=self.read_range).execute()
        except (HttpError, GoogleAuthError) as exc:
            raise SheetReadError(f"The API returned an error: {exc}") from exc

        rows = [list(row) for row in response.get("values", [])]
        log_event(self.logger, f"read {len(rows)} rows", stage="read", event="SHEET_READ", status="ok", rows_out=len(rows))
        return rows

    def write_range(self, count: int) -> str:
        return write_range_for(count, lat_col=self.lat_col, lng_col=self.lng_col, start_row=self.start_row)

    def write_coordinates(self, coordinates: Sequence[Coordinate]) -> dict[str, Any]:
        target = self.write_range(len(coordinates))
        body = {"values": [coordinate.to_cell_values() for coordinate in coordinates]}
        try:
            response = (
                self._values()
                .update(
                    spreadsheetId=self.spreadsheet_id,
                    range=target,
                    valueInputOption=VALUE_INPUT_OPTION,
                    body=body,
                )
                .execute()
            )
        except (HttpError, GoogleAuthError) as exc:
            raise SheetWriteError(f"Writing {target} failed: {exc}") from exc

        log_event(
            self.logger,
            f"wrote {response.get('updatedCells', 0)} cells to {response.get('updatedRange', target)}",
            stage="write",
            event="SHEET_WRITE",
            status="ok",
            rows_in=len(coordinates),
        )
        return response
