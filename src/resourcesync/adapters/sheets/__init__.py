"""Google Sheets adapter."""

from __future__ import annotations

from .client import (
    GoogleSheetsClient,
    ServiceAccountTokenProvider,
    SheetsAPIError,
    TokenProvider,
    a1_range,
)

__all__ = [
    "GoogleSheetsClient",
    "ServiceAccountTokenProvider",
    "SheetsAPIError",
    "TokenProvider",
    "a1_range",
]
