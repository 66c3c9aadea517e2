"""Fakes for the spreadsheet and link-checking ports."""

from __future__ import annotations

from typing import TYPE_CHECKING

from resourcesync.domain.links import LinkCheckResult, LinkFailure

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType


class FakeSheetsClient:
    def __init__(
        self,
        sheets: dict[str, list[list[str]]] | None = None,
        *,
        created_id: str = "created-sheet",
    ) -> None:
        self.sheets = sheets or {}
        self.created_id = created_id
        self.created: list[tuple[str, str]] = []
        self.written: list[tuple[str, str, list[list[str]]]] = []
        self.formatted: list[tuple[str, str, int]] = []

    async def __aenter__(self) -> FakeSheetsClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        return None

    async def first_sheet_title(self, spreadsheet_id: str) -> str:
        return next(iter(self.sheets))

    async def read_rows(self, spreadsheet_id: str, sheet_title: str) -> list[list[str]]:
        return self.sheets[sheet_title]

    async def create_spreadsheet(self, title: str, *, sheet_title: str) -> str:
        self.created.append((title, sheet_title))
        return self.created_id

    async def write_rows(
        self,
        spreadsheet_id: str,
        sheet_title: str,
        rows: Sequence[Sequence[str]],
    ) -> int:
        copied = [list(row) for row in rows]
        self.written.append((spreadsheet_id, sheet_title, copied))
        return sum(len(row) for row in copied)

    async def format_header(
        self,
        spreadsheet_id: str,
        sheet_title: str,
        *,
        column_count: int,
    ) -> None:
        self.formatted.append((spreadsheet_id, sheet_title, column_count))


class FakeLinkChecker:
    """Answers 200 for every URL except those listed in ``broken``."""

    def __init__(self, broken: dict[str, LinkCheckResult] | None = None) -> None:
        self.broken = broken or {}
        self.checked: list[str] = []

    async def __aenter__(self) -> FakeLinkChecker:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        return None

    async def check(self, url: str) -> LinkCheckResult:
        self.checked.append(url)
        return self.broken.get(url) or LinkCheckResult(url=url, status_code=200)

    async def check_many(self, urls: Sequence[str]) -> list[LinkCheckResult]:
        return [await self.check(url) for url in urls]


def not_found(url: str) -> LinkCheckResult:
    return LinkCheckResult(url=url, status_code=404, failure=LinkFailure.HTTP_STATUS)
