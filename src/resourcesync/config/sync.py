"""Synchronisation defaults for bulk loads."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_int

# Firestore's per-batch write limit.
DEFAULT_MAX_BATCH_SIZE = 500
DEFAULT_RESOURCE_COLLECTION = "resourcesApp"
DEFAULT_SHEET_IMPORT_COLLECTION = "testResources"
DEFAULT_DISCOUNT_COLLECTION = "studentDisc"
DEFAULT_COPY_COLLECTIONS = ("feedback", "resourcesApp")
DEFAULT_DISPLAY_LIMIT = 10


@dataclass(frozen=True, slots=True)
class SyncConfig:
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        max_batch_size=env_int("RESOURCESYNC_BATCH_SIZE", DEFAULT_MAX_BATCH_SIZE),
    )
