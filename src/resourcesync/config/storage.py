"""Locations for the local document database and generated files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

APP_DIR_NAME: Final[str] = "resourcesync"
DEFAULT_DB_FILENAME: Final[str] = "resourcesync.db"
DATA_DIR_ENV: Final[str] = "RESOURCESYNC_DATA_DIR"
OUTPUT_DIR_ENV: Final[str] = "RESOURCESYNC_OUTPUT_DIR"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Where the sqlite database lives and where exports and reports are written.

    ``output_dir`` defaults to the working directory so that exports land next to
    the operator, the way the one-off maintenance scripts always did.
    """

    data_dir: Path
    output_dir: Path = Path()
    database_filename: str = DEFAULT_DB_FILENAME

    def database_path(self) -> Path:
        directory = self.data_dir.expanduser().resolve()
        directory.mkdir(parents=True, exist_ok=True)
        return directory / self.database_filename

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"

    def output_path(self, filename: str) -> Path:
        return self.output_dir.expanduser() / filename


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _platform_data_home() -> Path:
    if os.name == "nt":
        local = os.getenv("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = os.getenv("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    data_dir = os.getenv(DATA_DIR_ENV)
    output_dir = os.getenv(OUTPUT_DIR_ENV)
    return StorageConfig(
        data_dir=Path(data_dir) if data_dir else _platform_data_home() / APP_DIR_NAME,
        output_dir=Path(output_dir) if output_dir else Path(),
    )


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise the sqlite file under the data directory."""

    uri = os.getenv("DATABASE_URI")
    if uri:
        return DatabaseConfig(uri=uri)
    return DatabaseConfig(uri=(storage or get_storage_config()).database_uri())
