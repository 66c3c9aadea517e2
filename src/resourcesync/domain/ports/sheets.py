"""Port for spreadsheet services."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence


@runtime_checkable
class SpreadsheetClient(Protocol):
    """Async access to a remote spreadsheet."""

    async def first_sheet_title(self, spreadsheet_id: str) -> str: ...

    async def read_rows(self, spreadsheet_id: str, sheet_title: str) -> list[list[str]]: ...

    async def create_spreadsheet(self, title: str, *, sheet_title: str) -> str: ...

    async def write_rows(
        self,
        spreadsheet_id: str,
        sheet_title: str,
        rows: Sequence[Sequence[str]],
    ) -> int: ...

    async def format_header(
        self,
        spreadsheet_id: str,
        sheet_title: str,
        *,
        column_count: int,
    ) -> None: ...
