"""Configuration error definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class ConfigurationError(RuntimeError):
    """Raised when configuration values are invalid."""


class MissingConfigurationError(ConfigurationError):
    """One or more required settings are absent or blank."""

    def __init__(self, *names: str) -> None:
        super().__init__(f"Missing configuration for: {', '.join(names)}")
        self.names = names


class CredentialsError(ConfigurationError):
    """The service account key file is missing or unreadable."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{reason}: {path}")
        self.path = path
