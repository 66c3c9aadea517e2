from __future__ import annotations

import logging
from pathlib import Path

import pytest

from resourcesync.config import (
    NO_RETRY,
    ConfigurationError,
    MissingConfigurationError,
    configure_logging,
    env_int,
    get_database_config,
    get_link_check_config,
    get_sheets_config,
    get_storage_config,
    get_sync_config,
    read_spreadsheet_id,
    require_env_var,
    require_env_vars,
)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    assert require_env_vars(["EXAMPLE_VAR"])["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.delenv("MISSING_A", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_require_env_var_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "   ")

    with pytest.raises(MissingConfigurationError):
        require_env_var("EXAMPLE_VAR")


def test_env_int(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SOME_SIZE", raising=False)
    assert env_int("SOME_SIZE", 9) == 9

    monkeypatch.setenv("SOME_SIZE", " 12 ")
    assert env_int("SOME_SIZE", 9) == 12


@pytest.mark.parametrize("raw", ["abc", "0", "-1"])
def test_env_int_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("SOME_SIZE", raw)

    with pytest.raises(ConfigurationError):
        env_int("SOME_SIZE", 9)


def test_sync_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RESOURCESYNC_BATCH_SIZE", raising=False)

    config = get_sync_config()

    assert config.max_batch_size == 500


def test_database_uri_prefers_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///custom.db")

    assert get_database_config().uri == "sqlite+pysqlite:///custom.db"


def test_database_uri_falls_back_to_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("RESOURCESYNC_DATA_DIR", str(tmp_path / "data"))

    uri = get_database_config().uri

    assert uri == f"sqlite+pysqlite:///{(tmp_path / 'data').resolve() / 'resourcesync.db'}"
    assert (tmp_path / "data").is_dir()
    assert get_storage_config().data_dir == tmp_path / "data"


def test_output_dir_defaults_to_working_directory(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RESOURCESYNC_OUTPUT_DIR", raising=False)

    assert get_storage_config().output_path("report.json") == Path("report.json")


def test_output_dir_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("RESOURCESYNC_OUTPUT_DIR", str(tmp_path))

    assert get_storage_config().output_path("report.json") == tmp_path / "report.json"


def test_sheets_config_reads_id_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    id_file = tmp_path / "spreadsheet-id.txt"
    id_file.write_text("  abc123\n", encoding="utf-8")
    monkeypatch.delenv("SPREADSHEET_ID", raising=False)
    monkeypatch.setenv("SPREADSHEET_ID_FILE", str(id_file))
    monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS", "creds.json")

    config = get_sheets_config()

    assert config.spreadsheet_id == "abc123"
    assert config.credentials_path == Path("creds.json")
    assert config.resilience.ratelimit is not None


def test_sheets_config_environment_id_wins(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    id_file = tmp_path / "spreadsheet-id.txt"
    id_file.write_text("from-file", encoding="utf-8")
    monkeypatch.setenv("SPREADSHEET_ID_FILE", str(id_file))
    monkeypatch.setenv("SPREADSHEET_ID", "from-env")

    assert get_sheets_config().spreadsheet_id == "from-env"


def test_read_spreadsheet_id_missing_or_blank(tmp_path: Path) -> None:
    blank = tmp_path / "blank.txt"
    blank.write_text("   ", encoding="utf-8")

    assert read_spreadsheet_id(tmp_path / "absent.txt") is None
    assert read_spreadsheet_id(blank) is None


def test_link_check_config_has_timeout_and_no_retries() -> None:
    config = get_link_check_config()

    assert config.resilience.timeout_seconds == 10.0
    assert config.resilience.retry == NO_RETRY
    assert not config.resilience.follow_redirects
    assert config.report_path == "broken_links_report.json"


def test_configure_logging_quiets_httpx() -> None:
    configure_logging(level=logging.DEBUG)

    assert logging.getLogger("httpx").level == logging.WARNING
