"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, AbstractContextManager
from dataclasses import dataclass, field
from functools import partial
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from resourcesync.adapters.csv_files import export_filename, read_csv_rows, write_csv_rows
from resourcesync.adapters.json_documents import read_json_records
from resourcesync.adapters.links import HttpLinkChecker
from resourcesync.adapters.reports import (
    ReportFormatError,
    analysis_report_filename,
    read_broken_links_report,
    write_analysis_report,
    write_broken_links_report,
)
from resourcesync.adapters.sheets import GoogleSheetsClient
from resourcesync.adapters.sqlalchemy import open_document_store
from resourcesync.config import (
    MissingConfigurationError,
    get_database_config,
    get_link_check_config,
    get_sheets_config,
    get_storage_config,
    get_sync_config,
)
from resourcesync.config.sheets import EXPORT_SHEET_TITLE, EXPORT_SPREADSHEET_TITLE
from resourcesync.config.sync import (
    DEFAULT_COPY_COLLECTIONS,
    DEFAULT_DISCOUNT_COLLECTION,
    DEFAULT_DISPLAY_LIMIT,
    DEFAULT_RESOURCE_COLLECTION,
    DEFAULT_SHEET_IMPORT_COLLECTION,
)
from resourcesync.domain.analysis import analyze_resources, value_counts
from resourcesync.domain.links import (
    build_broken_links_report,
    fix_url,
    link_targets,
    url_field,
)
from resourcesync.domain.model import SetOperation
from resourcesync.domain.ports.store import SnapshotError, StoreError
from resourcesync.domain.reconciliation import (
    BatchFlushError,
    ReconcilingLoader,
    WriteBatcher,
    read_snapshot,
    time_suffix,
)
from resourcesync.domain.tabular import (
    RESOURCE_CSV_HEADERS,
    common_fields,
    field_counts,
    records_to_rows,
    rows_to_records,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import datetime

    from resourcesync.config import LinkCheckConfig, SheetsConfig
    from resourcesync.domain.analysis import ResourceAnalysis
    from resourcesync.domain.links import BrokenLinksReport, LinkCheckResult
    from resourcesync.domain.model import Record
    from resourcesync.domain.ports import DocumentStore, LinkChecker, SpreadsheetClient
    from resourcesync.domain.reconciliation import ReconciliationResult
    from resourcesync.domain.reconciliation.identifiers import SuffixProvider

type StoreFactory = Callable[[], AbstractContextManager[DocumentStore]]
type SheetsClientFactory = Callable[[SheetsConfig], AbstractAsyncContextManager[SpreadsheetClient]]
type LinkCheckerFactory = Callable[[LinkCheckConfig], AbstractAsyncContextManager[LinkChecker]]
type Clock = Callable[[], datetime]

DEFAULT_CSV_FILE = Path("Firebase Resources - resources.csv")
DEFAULT_JSON_FILE = Path("resources.json")
DEFAULT_DISCOUNTS_FILE = Path("discounts.md")
RESOURCES_KEY = "resources"
DISCOUNTS_KEY = "student_discounts"
SPREADSHEET_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}"

log = getLogger(__name__)


def default_store_factory(database_uri: str | None = None) -> StoreFactory:
    """Factory opening the configured database (or ``database_uri``) as a document store."""

    def factory() -> AbstractContextManager[DocumentStore]:
        return open_document_store(database_uri or get_database_config().uri)

    return factory


def _default_sheets_client_factory(config: SheetsConfig) -> GoogleSheetsClient:
    return GoogleSheetsClient(config)


def _default_link_checker_factory(config: LinkCheckConfig) -> HttpLinkChecker:
    return HttpLinkChecker(config)


# Loading ---------------------------------------------------------------------


def load_records(
    records: Iterable[Mapping[str, object] | None],
    *,
    collection: str,
    store_factory: StoreFactory | None = None,
    simulate: bool = False,
    batch_size: int | None = None,
    suffix: SuffixProvider = time_suffix,
    display_limit: int = DEFAULT_DISPLAY_LIMIT,
) -> ReconciliationResult:
    """Reconcile ``records`` into ``collection`` and log the run summary."""

    effective_factory = store_factory or default_store_factory()
    effective_batch_size = batch_size or get_sync_config().max_batch_size
    with effective_factory() as store:
        loader = ReconcilingLoader(
            store=store,
            collection=collection,
            suffix=suffix,
            simulate=simulate,
            max_batch_size=effective_batch_size,
        )
        result = loader.load(records)

    for line in result.summary.report_lines(limit=display_limit):
        log.info(line)
    if result.failed:
        log.error(
            "Upload stopped after %s of %s records: %s",
            result.summary.processed,
            result.summary.total,
            result.summary.error,
        )
    elif simulate:
        log.info("Simulation completed. No changes were made to the database.")
    return result


def import_csv_resources(
    path: Path = DEFAULT_CSV_FILE,
    *,
    collection: str = DEFAULT_RESOURCE_COLLECTION,
    store_factory: StoreFactory | None = None,
    simulate: bool = False,
    batch_size: int | None = None,
    suffix: SuffixProvider = time_suffix,
) -> ReconciliationResult:
    """Load a resources CSV with the fixed column layout."""

    records = rows_to_records(read_csv_rows(path), header_mapping=RESOURCE_CSV_HEADERS)
    log.info("Parsed %s records from %s", len(records), path)
    return load_records(
        records,
        collection=collection,
        store_factory=store_factory,
        simulate=simulate,
        batch_size=batch_size,
        suffix=suffix,
    )


async def _read_sheet(
    client_factory: SheetsClientFactory,
    config: SheetsConfig,
    spreadsheet_id: str,
    sheet_title: str | None,
) -> list[list[str]]:
    async with client_factory(config) as client:
        if sheet_title is None:
            sheet_title = await client.first_sheet_title(spreadsheet_id)
            log.info('Using first sheet: "%s"', sheet_title)
        log.info('Reading data from sheet: "%s"', sheet_title)
        return await client.read_rows(spreadsheet_id, sheet_title)


def import_sheet_resources(
    *,
    spreadsheet_id: str | None = None,
    sheet_title: str | None = None,
    collection: str = DEFAULT_SHEET_IMPORT_COLLECTION,
    store_factory: StoreFactory | None = None,
    sheets_client_factory: SheetsClientFactory | None = None,
    simulate: bool = False,
    batch_size: int | None = None,
    suffix: SuffixProvider = time_suffix,
) -> ReconciliationResult:
    """Load the rows of a spreadsheet whose first row holds the field names."""

    config = get_sheets_config()
    effective_id = spreadsheet_id or config.spreadsheet_id
    if effective_id is None:
        raise MissingConfigurationError("SPREADSHEET_ID")

    rows = asyncio.run(
        _read_sheet(
            sheets_client_factory or _default_sheets_client_factory,
            config,
            effective_id,
            sheet_title,
        )
    )
    records = rows_to_records(rows)
    log.info("Read %s resources from Google Sheet", len(records))
    return load_records(
        records,
        collection=collection,
        store_factory=store_factory,
        simulate=simulate,
        batch_size=batch_size,
        suffix=suffix,
    )


def upload_json_records(
    path: Path = DEFAULT_JSON_FILE,
    *,
    key: str | None = RESOURCES_KEY,
    collection: str = DEFAULT_RESOURCE_COLLECTION,
    store_factory: StoreFactory | None = None,
    simulate: bool = False,
    batch_size: int | None = None,
) -> ReconciliationResult:
    """Load records stored under ``key`` of a JSON document."""

    return load_records(
        read_json_records(path, key=key),
        collection=collection,
        store_factory=store_factory,
        simulate=simulate,
        batch_size=batch_size,
    )


def upload_discounts(
    path: Path = DEFAULT_DISCOUNTS_FILE,
    *,
    collection: str = DEFAULT_DISCOUNT_COLLECTION,
    store_factory: StoreFactory | None = None,
    simulate: bool = False,
    batch_size: int | None = None,
) -> ReconciliationResult:
    """Load the student discount list; unchanged discounts are skipped."""

    return upload_json_records(
        path,
        key=DISCOUNTS_KEY,
        collection=collection,
        store_factory=store_factory,
        simulate=simulate,
        batch_size=batch_size,
    )


# Export ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CsvExportResult:
    path: Path | None
    records: int
    fields: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SheetExportResult:
    spreadsheet_id: str | None
    created: bool
    records: int
    updated_cells: int = 0

    @property
    def url(self) -> str | None:
        if self.spreadsheet_id is None:
            return None
        return SPREADSHEET_URL.format(spreadsheet_id=self.spreadsheet_id)


def _output_path(output_dir: Path | None, filename: str) -> Path:
    if output_dir is not None:
        return output_dir / filename
    return get_storage_config().output_path(filename)


def _read_documents(
    store_factory: StoreFactory | None, collection: str
) -> list[tuple[str, Record]]:
    effective_factory = store_factory or default_store_factory()
    with effective_factory() as store:
        snapshot = read_snapshot(store, collection)
    return [(identifier, dict(data)) for identifier, data in snapshot.items()]


def _export_records(documents: Sequence[tuple[str, Record]]) -> list[Record]:
    return [{"id": identifier, **data} for identifier, data in documents]


def _export_layout(records: Sequence[Record]) -> list[str]:
    counts = field_counts(records)
    log.info("Field occurrence in resources:")
    for name, count in counts.most_common():
        log.info("%s: %s/%s (%.1f%%)", name, count, len(records), count / len(records) * 100)
    fields = common_fields(records)
    log.info("Fields to be included: %s", ", ".join(fields))
    return fields


def _log_distribution(records: Sequence[Record], name: str) -> None:
    analysis = value_counts(records, name)
    log.info(
        "%s present in %s/%s resources (%.1f%%)",
        analysis.display_name,
        analysis.present_in,
        len(records),
        analysis.percentage_present,
    )
    for item in analysis.values:
        log.info("%s: %s resources (%.1f%%)", item.value, item.count, item.percentage)


def export_resources_csv(
    *,
    collection: str = DEFAULT_RESOURCE_COLLECTION,
    output_dir: Path | None = None,
    output_path: Path | None = None,
    store_factory: StoreFactory | None = None,
    clock: Clock | None = None,
) -> CsvExportResult:
    """Write every document of ``collection`` to a timestamped CSV file."""

    records = _export_records(_read_documents(store_factory, collection))
    log.info("Retrieved %s resources", len(records))
    if not records:
        log.warning("No resources found in collection %s; nothing exported", collection)
        return CsvExportResult(path=None, records=0)

    fields = _export_layout(records)
    filename = export_filename(clock() if clock is not None else None)
    path = output_path or _output_path(output_dir, filename)
    write_csv_rows(path, records_to_rows(records, fields))
    log.info("Export successful! CSV file created: %s", path)
    log.info("File contains %s resources with %s fields each.", len(records), len(fields))
    _log_distribution(records, "Resource Type")
    _log_distribution(records, "state")
    return CsvExportResult(path=path, records=len(records), fields=tuple(fields))


async def _push_to_sheet(
    client_factory: SheetsClientFactory,
    config: SheetsConfig,
    rows: Sequence[Sequence[str]],
    column_count: int,
) -> tuple[str, bool, int]:
    async with client_factory(config) as client:
        spreadsheet_id = config.spreadsheet_id
        created = spreadsheet_id is None
        if spreadsheet_id is None:
            log.info("Creating new Google Spreadsheet...")
            spreadsheet_id = await client.create_spreadsheet(
                EXPORT_SPREADSHEET_TITLE, sheet_title=EXPORT_SHEET_TITLE
            )
            config.spreadsheet_id_file.write_text(spreadsheet_id, encoding="utf-8")
            log.info("Spreadsheet ID saved to %s", config.spreadsheet_id_file)
        else:
            log.info("Updating existing spreadsheet with ID: %s", spreadsheet_id)
        updated_cells = await client.write_rows(spreadsheet_id, EXPORT_SHEET_TITLE, rows)
        await client.format_header(spreadsheet_id, EXPORT_SHEET_TITLE, column_count=column_count)
    return spreadsheet_id, created, updated_cells


def export_resources_sheet(
    *,
    collection: str = DEFAULT_RESOURCE_COLLECTION,
    store_factory: StoreFactory | None = None,
    sheets_client_factory: SheetsClientFactory | None = None,
) -> SheetExportResult:
    """Push every document of ``collection`` to the export spreadsheet."""

    config = get_sheets_config()
    records = _export_records(_read_documents(store_factory, collection))
    log.info("Retrieved %s resources", len(records))
    if not records:
        log.warning("No resources found in collection %s; nothing exported", collection)
        return SheetExportResult(spreadsheet_id=config.spreadsheet_id, created=False, records=0)

    fields = _export_layout(records)
    spreadsheet_id, created, updated_cells = asyncio.run(
        _push_to_sheet(
            sheets_client_factory or _default_sheets_client_factory,
            config,
            records_to_rows(records, fields),
            len(fields),
        )
    )
    result = SheetExportResult(
        spreadsheet_id=spreadsheet_id,
        created=created,
        records=len(records),
        updated_cells=updated_cells,
    )
    log.info("Spreadsheet updated successfully. Updated %s cells.", updated_cells)
    log.info("Access your spreadsheet at: %s", result.url)
    return result


# Analysis --------------------------------------------------------------------


def _read_optional_broken_links(path: Path) -> BrokenLinksReport | None:
    try:
        return read_broken_links_report(path)
    except FileNotFoundError:
        log.info("No broken links report found at %s", path)
    except ReportFormatError as exc:
        log.warning("Ignoring broken links report: %s", exc)
    return None


def _log_analysis(analysis: ResourceAnalysis) -> None:
    log.info("Total resources: %s", analysis.total_resources)
    log.info("Fields overview:")
    for presence in analysis.fields_overview:
        log.info(
            "%s: present in %s/%s resources (%.1f%%)",
            presence.name,
            presence.count,
            analysis.total_resources,
            presence.percentage,
        )
    for field_analysis in analysis.field_analysis:
        if not field_analysis.present_in:
            log.info('Field "%s" not found in any resources', field_analysis.field)
            continue
        log.info(
            "%s: %s unique values in %s resources%s",
            field_analysis.display_name,
            field_analysis.unique_value_count,
            field_analysis.present_in,
            " (some with multiple values)" if field_analysis.has_multiple_values else "",
        )
        for item in field_analysis.values:
            log.info("  %s: %s resources (%.1f%%)", item.value, item.count, item.percentage)

    urls = analysis.url_analysis
    if urls is None:
        log.info("No URL field found in any resource")
        return
    log.info(
        "Resources with %s: %s/%s (%.1f%%)",
        urls.url_field,
        urls.resources_with_url,
        analysis.total_resources,
        urls.percentage_with_url,
    )
    for url, count in urls.duplicate_urls:
        log.info("Duplicate URL %s: used in %s resources", url, count)
    if urls.broken_links is not None:
        digest = urls.broken_links
        log.info(
            "Broken links report: %s working, %s broken of %s resources",
            digest.working_links,
            digest.broken_links,
            digest.total_resources,
        )
        for error_type, count in digest.error_types:
            log.info("  %s: %s resources", error_type, count)


def analyze_collection(
    *,
    collection: str = DEFAULT_RESOURCE_COLLECTION,
    output_dir: Path | None = None,
    broken_links_path: Path | None = None,
    store_factory: StoreFactory | None = None,
    clock: Clock | None = None,
) -> tuple[ResourceAnalysis, Path]:
    """Analyse field usage in ``collection`` and write the JSON report."""

    documents = _read_documents(store_factory, collection)
    report_path = broken_links_path or _output_path(None, get_link_check_config().report_path)
    analysis = analyze_resources(
        [data for _, data in documents],
        broken_links=_read_optional_broken_links(report_path),
        clock=clock,
    )
    _log_analysis(analysis)
    path = _output_path(output_dir, analysis_report_filename(analysis.generated_at))
    write_analysis_report(path, analysis)
    return analysis, path


# Links -----------------------------------------------------------------------


async def _check_urls(
    checker_factory: LinkCheckerFactory,
    config: LinkCheckConfig,
    urls: Sequence[str],
) -> list[LinkCheckResult]:
    if not urls:
        return []
    async with checker_factory(config) as checker:
        return await checker.check_many(urls)


def validate_resource_links(
    *,
    collection: str = DEFAULT_RESOURCE_COLLECTION,
    report_path: Path | None = None,
    store_factory: StoreFactory | None = None,
    link_checker_factory: LinkCheckerFactory | None = None,
    clock: Clock | None = None,
) -> BrokenLinksReport:
    """HEAD-check every resource URL and write a report of the broken ones."""

    config = get_link_check_config()
    documents = _read_documents(store_factory, collection)
    log.info("Found %s resources to validate.", len(documents))
    targets = link_targets(documents)
    if len(targets) < len(documents):
        log.info("%s resources have no URL to validate", len(documents) - len(targets))

    results = asyncio.run(
        _check_urls(
            link_checker_factory or _default_link_checker_factory,
            config,
            [target.url for target in targets],
        )
    )
    report = build_broken_links_report(
        targets, results, total_resources=len(documents), clock=clock
    )
    log.info(
        "Link validation finished: %s checked, %s working, %s broken",
        report.summary.total_resources,
        report.summary.working_links,
        report.summary.broken_links,
    )
    for index, link in enumerate(report.broken_links, start=1):
        log.info("%s. %s (ID: %s) %s: %s", index, link.name, link.identifier, link.url, link.error)

    if report.broken_links:
        write_broken_links_report(report_path or _output_path(None, config.report_path), report)
    else:
        log.info("All links are working correctly!")
    return report


@dataclass(slots=True)
class UrlFixSummary:
    attempted: int = 0
    fixed: int = 0
    failed: int = 0
    simulated: bool = False
    error: str | None = None
    updates: list[tuple[str, str, str]] = field(default_factory=list["tuple[str, str, str]"])

    @property
    def succeeded(self) -> bool:
        return self.error is None


def fix_invalid_urls(
    *,
    collection: str = DEFAULT_RESOURCE_COLLECTION,
    report_path: Path | None = None,
    store_factory: StoreFactory | None = None,
    link_checker_factory: LinkCheckerFactory | None = None,
    simulate: bool = False,
) -> UrlFixSummary:
    """Repair malformed URLs listed in the broken links report."""

    config = get_link_check_config()
    report = read_broken_links_report(report_path or _output_path(None, config.report_path))
    candidates = report.invalid_url_links()
    log.info(
        "Found %s invalid URL format issues among %s broken links",
        len(candidates),
        len(report.broken_links),
    )
    summary = UrlFixSummary(attempted=len(candidates), simulated=simulate)

    repairs: list[tuple[str, str]] = []
    for link in candidates:
        fixed = fix_url(link.url)
        if fixed is None:
            log.info("Could not fix URL format for %s (ID: %s)", link.url, link.identifier)
            summary.failed += 1
            continue
        log.info("Fixed URL format: %s -> %s", link.url, fixed)
        repairs.append((link.identifier, fixed))

    results = asyncio.run(
        _check_urls(
            link_checker_factory or _default_link_checker_factory,
            config,
            [fixed for _, fixed in repairs],
        )
    )

    effective_factory = store_factory or default_store_factory()
    with effective_factory() as store:
        snapshot = read_snapshot(store, collection)
        operations: list[SetOperation] = []
        for (identifier, fixed), result in zip(repairs, results, strict=True):
            log.info(
                "URL validation for %s: %s",
                fixed,
                "success" if result.ok else f"still not working ({result.error})",
            )
            data = snapshot.get(identifier)
            if data is None:
                log.info("Resource with ID %s no longer exists.", identifier)
                summary.failed += 1
                continue
            name = url_field(data)
            if name is None:
                log.info("Could not determine which field to update for resource %s", identifier)
                summary.failed += 1
                continue
            operations.append(SetOperation(identifier=identifier, data={**data, name: fixed}))
            summary.updates.append((identifier, name, fixed))
            summary.fixed += 1
            log.info(
                "%s %s field of %s to: %s",
                "[SIMULATE] Would update" if simulate else "Updating",
                name,
                identifier,
                fixed,
            )

        if not simulate and operations:
            batcher = WriteBatcher(
                partial(store.batch_write, collection), max_size=store.max_batch_size
            )
            try:
                for operation in operations:
                    batcher.enqueue(operation)
                batcher.close()
            except BatchFlushError as exc:
                # updates line up with operations; only the committed prefix was stored
                unwritten = len(operations) - exc.committed
                summary.fixed -= unwritten
                summary.failed += unwritten
                del summary.updates[exc.committed :]
                summary.error = str(exc.cause)
                log.error("Error updating URLs: %s", exc)

    log.info(
        "URL fix summary: %s attempted, %s fixed, %s failed",
        summary.attempted,
        summary.fixed,
        summary.failed,
    )
    if simulate:
        log.info("Simulation completed. No changes were made to the database.")
    return summary


# Copy ------------------------------------------------------------------------


def copy_collections(
    source_uri: str,
    *,
    collections: Sequence[str] = DEFAULT_COPY_COLLECTIONS,
    store_factory: StoreFactory | None = None,
    source_factory: StoreFactory | None = None,
) -> dict[str, int]:
    """Copy whole collections from the store at ``source_uri`` into the configured store."""

    effective_source = source_factory or partial(open_document_store, source_uri, migrate=False)
    effective_destination = store_factory or default_store_factory()
    copied: dict[str, int] = {}
    log.info("Starting collection copy process...")
    with effective_source() as source, effective_destination() as destination:
        for collection in collections:
            log.info("Starting to copy collection: %s", collection)
            try:
                documents = source.get_all(collection)
            except StoreError as exc:
                raise SnapshotError(f"Could not read source collection {collection!r}") from exc
            with WriteBatcher(
                partial(destination.batch_write, collection),
                max_size=destination.max_batch_size,
            ) as batcher:
                for identifier, data in documents:
                    batcher.enqueue(SetOperation(identifier=identifier, data=dict(data)))
            copied[collection] = batcher.committed
            log.info(
                "Finished copying collection: %s (%s documents)", collection, batcher.committed
            )
    log.info("All collections copied successfully!")
    return copied
