from __future__ import annotations

import csv
import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from resourcesync import app
from resourcesync.adapters.reports import read_broken_links_report, write_broken_links_report
from resourcesync.config import MissingConfigurationError
from resourcesync.domain.links import BrokenLink, BrokenLinksReport, LinkValidationSummary
from tests.helpers.remote import FakeLinkChecker, FakeSheetsClient, not_found
from tests.helpers.stores import FakeStore, store_factory

NOW = datetime(2025, 3, 4, 5, 6, 7, 891000, tzinfo=UTC)


@pytest.fixture(autouse=True)
def sheets_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    id_file = tmp_path / "spreadsheet-id.txt"
    monkeypatch.delenv("SPREADSHEET_ID", raising=False)
    monkeypatch.delenv("RESOURCESYNC_BATCH_SIZE", raising=False)
    monkeypatch.setenv("SPREADSHEET_ID_FILE", str(id_file))
    monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS", str(tmp_path / "credentials.json"))
    return id_file


def _write_csv(path: Path, rows: list[list[str]]) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        csv.writer(handle).writerows(rows)


def test_import_csv_resources(tmp_path: Path) -> None:
    path = tmp_path / "resources.csv"
    _write_csv(
        path,
        [
            ["ID", "Title", "Type", "State", "Website", "Phone", "Email"],
            ["r1", "Food Bank", "Food", "CA", "https://food.example", "", ""],
            ["", "Legal Aid", "Legal", "NV", "", "555-0100", ""],
            ["r1", "Duplicate", "", "", "", "", ""],
        ],
    )
    store = FakeStore({"resourcesApp": {"r1": {"title": "Old"}}})

    result = app.import_csv_resources(
        path, store_factory=store_factory(store), suffix=lambda: "000001"
    )

    assert (result.summary.new, result.summary.updated, result.summary.rejected) == (1, 1, 1)
    assert store.documents["resourcesApp"]["r1"] == {
        "title": "Food Bank",
        "Resource Type": "Food",
        "state": "CA",
        "website": "https://food.example",
    }
    assert store.documents["resourcesApp"]["legal-aid-legal"] == {
        "title": "Legal Aid",
        "Resource Type": "Legal",
        "state": "NV",
        "phone number": "555-0100",
    }


def test_import_csv_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        app.import_csv_resources(tmp_path / "absent.csv", store_factory=store_factory(FakeStore()))


def test_load_records_simulation_leaves_store_untouched() -> None:
    store = FakeStore()

    result = app.load_records(
        [{"id": "a", "title": "A"}],
        collection="resourcesApp",
        store_factory=store_factory(store),
        simulate=True,
    )

    assert result.summary.new == 1
    assert store.batches == []


def test_load_records_uses_configured_batch_size(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RESOURCESYNC_BATCH_SIZE", "2")
    store = FakeStore()

    app.load_records(
        [{"id": f"r{index}", "n": index} for index in range(5)],
        collection="resourcesApp",
        store_factory=store_factory(store),
    )

    assert [len(batch) for _, batch in store.batches] == [2, 2, 1]


def test_import_sheet_resources() -> None:
    sheets = FakeSheetsClient({"Sheet1": [["id", "title"], ["r1", "A"], ["", "B"]]})
    store = FakeStore()

    result = app.import_sheet_resources(
        spreadsheet_id="sheet-1",
        store_factory=store_factory(store),
        sheets_client_factory=lambda _config: sheets,
    )

    assert result.summary.new == 2
    assert store.documents["testResources"] == {"r1": {"title": "A"}, "b": {"title": "B"}}


def test_import_sheet_requires_spreadsheet_id() -> None:
    with pytest.raises(MissingConfigurationError, match="SPREADSHEET_ID"):
        app.import_sheet_resources(store_factory=store_factory(FakeStore()))


def test_upload_json_records(tmp_path: Path) -> None:
    path = tmp_path / "resources.json"
    path.write_text(
        json.dumps({"resources": [{"id": "r1", "title": "A"}, {}, {"title": "B"}]}),
        encoding="utf-8",
    )
    store = FakeStore()

    result = app.upload_json_records(path, store_factory=store_factory(store))

    assert result.summary.new == 2
    assert result.summary.rejected == 1
    assert sorted(store.documents["resourcesApp"]) == ["b", "r1"]


def test_upload_discounts_skips_unchanged(tmp_path: Path) -> None:
    path = tmp_path / "discounts.md"
    path.write_text(
        json.dumps(
            {
                "student_discounts": [
                    {"id": "museum", "name": "Museum", "discount": "50%"},
                    {"id": "bus", "name": "Bus", "discount": "free"},
                ]
            }
        ),
        encoding="utf-8",
    )
    store = FakeStore({"studentDisc": {"museum": {"name": "Museum", "discount": "50%"}}})

    result = app.upload_discounts(path, store_factory=store_factory(store))

    assert (result.summary.new, result.summary.unchanged) == (1, 1)
    assert store.written_ids() == ["bus"]


def test_export_resources_csv(tmp_path: Path) -> None:
    store = FakeStore(
        {
            "resourcesApp": {
                "r1": {"title": "A, with comma", "state": "CA", "tags": ["x"]},
                "r2": {"title": "B", "tags": ["y"]},
            }
        }
    )

    result = app.export_resources_csv(
        output_dir=tmp_path, store_factory=store_factory(store), clock=lambda: NOW
    )

    assert result.path == tmp_path / "resources_export_2025-03-04T05-06-07.891Z.csv"
    assert result.records == 2
    assert result.fields == ("id", "title", "state", "tags")
    with result.path.open(newline="", encoding="utf-8") as handle:
        rows = list(csv.reader(handle))
    assert rows == [
        ["id", "title", "state", "tags"],
        ["r1", "A, with comma", "CA", '["x"]'],
        ["r2", "B", "", '["y"]'],
    ]


def test_export_empty_collection_writes_nothing(tmp_path: Path) -> None:
    result = app.export_resources_csv(output_dir=tmp_path, store_factory=store_factory(FakeStore()))

    assert result.path is None
    assert list(tmp_path.iterdir()) == []


def test_export_sheet_creates_spreadsheet_and_remembers_id(sheets_env: Path) -> None:
    sheets = FakeSheetsClient()
    store = FakeStore({"resourcesApp": {"r1": {"title": "A", "state": "CA"}}})

    result = app.export_resources_sheet(
        store_factory=store_factory(store), sheets_client_factory=lambda _config: sheets
    )

    assert result.created
    assert result.spreadsheet_id == "created-sheet"
    assert result.url == "https://docs.google.com/spreadsheets/d/created-sheet"
    assert sheets_env.read_text(encoding="utf-8") == "created-sheet"
    assert sheets.created == [("Resources Database Export", "Resources")]
    assert sheets.written == [
        ("created-sheet", "Resources", [["id", "title", "state"], ["r1", "A", "CA"]])
    ]
    assert sheets.formatted == [("created-sheet", "Resources", 3)]
    assert result.updated_cells == 6


def test_export_sheet_reuses_existing_spreadsheet(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SPREADSHEET_ID", "existing")
    sheets = FakeSheetsClient()
    store = FakeStore({"resourcesApp": {"r1": {"title": "A"}}})

    result = app.export_resources_sheet(
        store_factory=store_factory(store), sheets_client_factory=lambda _config: sheets
    )

    assert not result.created
    assert sheets.created == []
    assert sheets.written[0][0] == "existing"


def test_analyze_collection(tmp_path: Path) -> None:
    store = FakeStore(
        {
            "resourcesApp": {
                "r1": {"title": "A", "state": "CA", "website": "https://a.example"},
                "r2": {"title": "B", "state": "CA"},
            }
        }
    )

    analysis, path = app.analyze_collection(
        output_dir=tmp_path,
        broken_links_path=tmp_path / "missing.json",
        store_factory=store_factory(store),
        clock=lambda: NOW,
    )

    assert path == tmp_path / "resource_analysis_report_2025-03-04.json"
    assert analysis.total_resources == 2
    assert analysis.url_analysis is not None
    assert analysis.url_analysis.broken_links is None
    assert json.loads(path.read_text(encoding="utf-8"))["totalResources"] == 2


def test_analyze_collection_defaults_to_configured_output_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("RESOURCESYNC_OUTPUT_DIR", str(tmp_path))
    store = FakeStore({"resourcesApp": {"r1": {"title": "A"}}})

    analysis, path = app.analyze_collection(store_factory=store_factory(store), clock=lambda: NOW)

    assert path == tmp_path / "resource_analysis_report_2025-03-04.json"
    assert path.exists()
    assert analysis.total_resources == 1


def test_validate_links_writes_report_for_broken_links(tmp_path: Path) -> None:
    store = FakeStore(
        {
            "resourcesApp": {
                "r1": {"title": "A", "website": "https://a.example"},
                "r2": {"name": "B", "link": "https://b.example"},
                "r3": {"title": "C"},
            }
        }
    )
    checker = FakeLinkChecker({"https://b.example": not_found("https://b.example")})
    report_path = tmp_path / "broken.json"

    report = app.validate_resource_links(
        report_path=report_path,
        store_factory=store_factory(store),
        link_checker_factory=lambda _config: checker,
        clock=lambda: NOW,
    )

    assert checker.checked == ["https://a.example", "https://b.example"]
    assert report.summary == LinkValidationSummary(
        total_resources=3, working_links=1, broken_links=1
    )
    saved = read_broken_links_report(report_path)
    assert [(link.identifier, link.name, link.error) for link in saved.broken_links] == [
        ("r2", "B", "HTTP Status 404")
    ]


def test_validate_links_skips_report_when_all_work(tmp_path: Path) -> None:
    store = FakeStore({"resourcesApp": {"r1": {"website": "https://a.example"}}})
    report_path = tmp_path / "broken.json"

    report = app.validate_resource_links(
        report_path=report_path,
        store_factory=store_factory(store),
        link_checker_factory=lambda _config: FakeLinkChecker(),
    )

    assert report.broken_links == []
    assert not report_path.exists()


def _invalid_url_report(path: Path) -> None:
    write_broken_links_report(
        path,
        BrokenLinksReport(
            timestamp=NOW,
            summary=LinkValidationSummary(total_resources=4, working_links=0, broken_links=4),
            broken_links=[
                BrokenLink(identifier="r1", name="One", url="example .org", error="Invalid URL"),
                BrokenLink(identifier="r2", name="Two", url="https://", error="Invalid URL: x"),
                BrokenLink(
                    identifier="r3", name="Three", url="https://c.example", error="HTTP Status 404"
                ),
                BrokenLink(identifier="r4", name="Four", url="d.example", error="Parse Error: y"),
            ],
        ),
    )


def test_fix_invalid_urls(tmp_path: Path) -> None:
    report_path = tmp_path / "broken.json"
    _invalid_url_report(report_path)
    store = FakeStore(
        {"resourcesApp": {"r1": {"title": "One", "website": "example .org"}, "r3": {"title": "3"}}}
    )
    checker = FakeLinkChecker()

    summary = app.fix_invalid_urls(
        report_path=report_path,
        store_factory=store_factory(store),
        link_checker_factory=lambda _config: checker,
    )

    assert (summary.attempted, summary.fixed, summary.failed) == (3, 1, 2)
    assert summary.succeeded
    assert summary.updates == [("r1", "website", "https://example.org")]
    assert checker.checked == ["https://example.org", "https://d.example"]
    assert store.documents["resourcesApp"]["r1"] == {
        "title": "One",
        "website": "https://example.org",
    }


def test_fix_invalid_urls_simulation(tmp_path: Path) -> None:
    report_path = tmp_path / "broken.json"
    _invalid_url_report(report_path)
    store = FakeStore({"resourcesApp": {"r1": {"website": "example .org"}}})

    summary = app.fix_invalid_urls(
        report_path=report_path,
        store_factory=store_factory(store),
        link_checker_factory=lambda _config: FakeLinkChecker(),
        simulate=True,
    )

    assert summary.fixed == 1
    assert store.batches == []
    assert store.documents["resourcesApp"]["r1"] == {"website": "example .org"}


def test_fix_invalid_urls_reports_store_failure(tmp_path: Path) -> None:
    report_path = tmp_path / "broken.json"
    _invalid_url_report(report_path)
    store = FakeStore({"resourcesApp": {"r1": {"website": "example .org"}}}, fail_on_flush=1)

    summary = app.fix_invalid_urls(
        report_path=report_path,
        store_factory=store_factory(store),
        link_checker_factory=lambda _config: FakeLinkChecker(),
    )

    assert not summary.succeeded
    assert summary.fixed == 0
    assert summary.error == "quota exceeded"


@pytest.mark.parametrize(
    ("fail_on_flush", "written"),
    [(1, []), (2, ["r1", "r2"])],
)
def test_fix_invalid_urls_counts_only_committed_repairs(
    tmp_path: Path, fail_on_flush: int, written: list[str]
) -> None:
    identifiers = ["r1", "r2", "r3", "r4", "r5"]
    report_path = tmp_path / "broken.json"
    write_broken_links_report(
        report_path,
        BrokenLinksReport(
            timestamp=NOW,
            summary=LinkValidationSummary(total_resources=5, working_links=0, broken_links=5),
            broken_links=[
                BrokenLink(identifier=key, name=key, url=f"{key}.example", error="Invalid URL")
                for key in identifiers
            ],
        ),
    )
    store = FakeStore(
        {"resourcesApp": {key: {"website": f"{key}.example"} for key in identifiers}},
        max_batch_size=2,
        fail_on_flush=fail_on_flush,
    )

    summary = app.fix_invalid_urls(
        report_path=report_path,
        store_factory=store_factory(store),
        link_checker_factory=lambda _config: FakeLinkChecker(),
    )

    assert not summary.succeeded
    assert store.written_ids() == written
    assert summary.fixed == len(written)
    assert summary.failed == len(identifiers) - len(written)
    assert [identifier for identifier, _, _ in summary.updates] == written


def test_copy_collections() -> None:
    source = FakeStore(
        {
            "feedback": {"f1": {"text": "Great"}, "f2": {"text": "Meh"}},
            "resourcesApp": {"r1": {"title": "A"}},
            "other": {"o1": {"n": 1}},
        }
    )
    destination = FakeStore(max_batch_size=1)

    copied = app.copy_collections(
        "sqlite+pysqlite:///unused.db",
        store_factory=store_factory(destination),
        source_factory=store_factory(source),
    )

    assert copied == {"feedback": 2, "resourcesApp": 1}
    assert destination.documents == {
        "feedback": {"f1": {"text": "Great"}, "f2": {"text": "Meh"}},
        "resourcesApp": {"r1": {"title": "A"}},
    }
    assert len(destination.batches) == 3
