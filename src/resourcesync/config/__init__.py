"""Application configuration helpers."""

from __future__ import annotations

from .env import env_int, require_env_var, require_env_vars
from .errors import ConfigurationError, CredentialsError, MissingConfigurationError
from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig, RetryPolicy
from .links import LinkCheckConfig, get_link_check_config
from .logging import configure_logging
from .sheets import SheetsConfig, get_sheets_config, read_spreadsheet_id
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncConfig, get_sync_config

__all__ = [
    "NO_RETRY",
    "ConfigurationError",
    "CredentialsError",
    "DatabaseConfig",
    "LinkCheckConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SheetsConfig",
    "StorageConfig",
    "SyncConfig",
    "configure_logging",
    "env_int",
    "get_database_config",
    "get_link_check_config",
    "get_sheets_config",
    "get_storage_config",
    "get_sync_config",
    "read_spreadsheet_id",
    "require_env_var",
    "require_env_vars",
]
