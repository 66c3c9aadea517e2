"""HTTP client for the Google Sheets v4 REST API."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from resourcesync.adapters.http_resilience import ResilientClient
from resourcesync.config.errors import CredentialsError
from resourcesync.config.sheets import SHEETS_BASE_URL, SHEETS_SCOPE

from .schema import ErrorResponse, Spreadsheet, UpdateValuesResponse, ValueRange

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path
    from types import TracebackType

    from resourcesync.config.http_resilience import ResilienceConfig
    from resourcesync.config.sheets import SheetsConfig

log = getLogger(__name__)

type TokenProvider = Callable[[], str]

HEADER_BACKGROUND = {"red": 0.8, "green": 0.8, "blue": 0.8}
HEADER_FORMAT_FIELDS = "userEnteredFormat(backgroundColor,textFormat,horizontalAlignment)"


class SheetsAPIError(RuntimeError):
    """Raised when the Sheets API answers with an error payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ServiceAccountTokenProvider:
    """Bearer tokens for a service account, refreshed when they expire."""

    def __init__(self, credentials_path: Path, *, scopes: Sequence[str] = (SHEETS_SCOPE,)) -> None:
        if not credentials_path.is_file():
            raise CredentialsError(credentials_path, "Credentials file not found")
        try:
            self._credentials = service_account.Credentials.from_service_account_file(
                str(credentials_path), scopes=list(scopes)
            )
        except ValueError as exc:
            raise CredentialsError(
                credentials_path, f"Invalid service account credentials ({exc})"
            ) from exc

    def __call__(self) -> str:
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return str(self._credentials.token)


def a1_range(sheet_title: str, cells: str | None = None) -> str:
    quoted = "'" + sheet_title.replace("'", "''") + "'"
    return f"{quoted}!{cells}" if cells else quoted


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class GoogleSheetsClient:
    """Spreadsheet access through the Sheets REST API.

    Open it with ``async with``; the underlying HTTP client lives until exit.
    """

    config: SheetsConfig
    token_provider: TokenProvider | None = None
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False)

    async def __aenter__(self) -> GoogleSheetsClient:
        if self.token_provider is None:
            self.token_provider = ServiceAccountTokenProvider(self.config.credentials_path)
        self._client = self.client_factory(self.config.resilience)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def base_url(self) -> str:
        return (self.config.resilience.base_url or SHEETS_BASE_URL).rstrip("/")

    async def get_spreadsheet(self, spreadsheet_id: str) -> Spreadsheet:
        payload = await self._request(
            "GET",
            f"{self.base_url}/{quote(spreadsheet_id, safe='')}",
            params={"fields": "spreadsheetId,properties.title,sheets.properties"},
        )
        return Spreadsheet.model_validate(payload)

    async def first_sheet_title(self, spreadsheet_id: str) -> str:
        spreadsheet = await self.get_spreadsheet(spreadsheet_id)
        if not spreadsheet.sheets:
            raise SheetsAPIError(f"Spreadsheet {spreadsheet_id} has no sheets")
        first = min(spreadsheet.sheets, key=lambda sheet: sheet.properties.index)
        return first.properties.title

    async def read_rows(self, spreadsheet_id: str, sheet_title: str) -> list[list[str]]:
        payload = await self._request(
            "GET", self._values_url(spreadsheet_id, a1_range(sheet_title))
        )
        value_range = ValueRange.model_validate(payload)
        log.info("Read %s rows from sheet %s", len(value_range.values), sheet_title)
        return value_range.values

    async def create_spreadsheet(self, title: str, *, sheet_title: str) -> str:
        payload = await self._request(
            "POST",
            self.base_url,
            json={
                "properties": {"title": title},
                "sheets": [{"properties": {"title": sheet_title}}],
            },
        )
        spreadsheet = Spreadsheet.model_validate(payload)
        if not spreadsheet.spreadsheet_id:
            raise SheetsAPIError("Spreadsheet creation returned no spreadsheetId")
        log.info("Created new spreadsheet with ID: %s", spreadsheet.spreadsheet_id)
        return spreadsheet.spreadsheet_id

    async def write_rows(
        self,
        spreadsheet_id: str,
        sheet_title: str,
        rows: Sequence[Sequence[str]],
    ) -> int:
        target = a1_range(sheet_title, "A1")
        payload = await self._request(
            "PUT",
            self._values_url(spreadsheet_id, target),
            params={"valueInputOption": "RAW"},
            json={"range": target, "majorDimension": "ROWS", "values": [list(row) for row in rows]},
        )
        response = UpdateValuesResponse.model_validate(payload)
        log.info("%s cells updated in %s", response.updated_cells, response.updated_range)
        return response.updated_cells

    async def format_header(
        self,
        spreadsheet_id: str,
        sheet_title: str,
        *,
        column_count: int,
    ) -> None:
        spreadsheet = await self.get_spreadsheet(spreadsheet_id)
        sheet = spreadsheet.sheet(sheet_title)
        if sheet is None:
            raise SheetsAPIError(f"Sheet {sheet_title!r} not found in {spreadsheet_id}")
        requests = [
            {
                "repeatCell": {
                    "range": {"sheetId": sheet.sheet_id, "startRowIndex": 0, "endRowIndex": 1},
                    "cell": {
                        "userEnteredFormat": {
                            "backgroundColor": HEADER_BACKGROUND,
                            "horizontalAlignment": "CENTER",
                            "textFormat": {"bold": True},
                        }
                    },
                    "fields": HEADER_FORMAT_FIELDS,
                }
            },
            {
                "autoResizeDimensions": {
                    "dimensions": {
                        "sheetId": sheet.sheet_id,
                        "dimension": "COLUMNS",
                        "startIndex": 0,
                        "endIndex": column_count,
                    }
                }
            },
        ]
        await self._request(
            "POST",
            f"{self.base_url}/{quote(spreadsheet_id, safe='')}:batchUpdate",
            json={"requests": requests},
        )

    def _values_url(self, spreadsheet_id: str, cell_range: str) -> str:
        encoded_id = quote(spreadsheet_id, safe="")
        return f"{self.base_url}/{encoded_id}/values/{quote(cell_range, safe='')}"

    async def _authorization(self) -> dict[str, str]:
        if self.token_provider is None:
            raise RuntimeError("GoogleSheetsClient must be used as an async context manager")
        token = await asyncio.to_thread(self.token_provider)
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        json: object = None,
    ) -> object:
        if self._client is None:
            raise RuntimeError("GoogleSheetsClient must be used as an async context manager")
        headers = await self._authorization()
        response = await self._client.request(
            method, url, params=params, json=json, headers=headers
        )
        if response.is_error:
            raise _api_error(response)
        return response.json()


def _api_error(response: httpx.Response) -> SheetsAPIError:
    try:
        error = ErrorResponse.model_validate(response.json())
    except ValueError:
        return SheetsAPIError(
            f"Sheets API request failed with HTTP {response.status_code}",
            status_code=response.status_code,
        )
    log.error("Sheets API error %s: %s", error.error.code, error.error.message)
    return SheetsAPIError(error.error.message, status_code=error.error.code)

