"""Domain port definitions for adapters."""

from __future__ import annotations

from .links import LinkChecker
from .sheets import SpreadsheetClient
from .store import DocumentStore, SnapshotError, StoreError

__all__ = [
    "DocumentStore",
    "LinkChecker",
    "SnapshotError",
    "SpreadsheetClient",
    "StoreError",
]
