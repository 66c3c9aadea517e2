"""Google Sheets configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

SHEETS_BASE_URL: Final[str] = "https://sheets.googleapis.com/v4/spreadsheets"
SHEETS_SCOPE: Final[str] = "https://www.googleapis.com/auth/spreadsheets"
DEFAULT_CREDENTIALS_FILE: Final[str] = "google-sheets-credentials.json"
DEFAULT_SPREADSHEET_ID_FILE: Final[str] = "spreadsheet-id.txt"
EXPORT_SPREADSHEET_TITLE: Final[str] = "Resources Database Export"
EXPORT_SHEET_TITLE: Final[str] = "Resources"


@dataclass(frozen=True, slots=True)
class SheetsConfig:
    credentials_path: Path
    spreadsheet_id: str | None
    spreadsheet_id_file: Path
    resilience: ResilienceConfig


def _default_resilience_config() -> ResilienceConfig:
    # Sheets allows 60 requests per minute per user; stay well below.
    return ResilienceConfig(
        name="sheets",
        base_url=SHEETS_BASE_URL,
        timeout_seconds=30.0,
        retry=RetryPolicy(total=3),
        ratelimit=RateLimit(max_calls=1, per_seconds=1.0),
    )


def read_spreadsheet_id(path: Path) -> str | None:
    """Return the spreadsheet id remembered in ``path`` (if any)."""

    try:
        value = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    return value or None


def get_sheets_config(*, resilience: ResilienceConfig | None = None) -> SheetsConfig:
    credentials_path = Path(os.getenv("GOOGLE_SHEETS_CREDENTIALS") or DEFAULT_CREDENTIALS_FILE)
    id_file = Path(os.getenv("SPREADSHEET_ID_FILE") or DEFAULT_SPREADSHEET_ID_FILE)
    env_id = os.getenv("SPREADSHEET_ID")
    spreadsheet_id = env_id.strip() if env_id and env_id.strip() else read_spreadsheet_id(id_file)
    return SheetsConfig(
        credentials_path=credentials_path,
        spreadsheet_id=spreadsheet_id,
        spreadsheet_id_file=id_file,
        resilience=resilience or _default_resilience_config(),
    )
