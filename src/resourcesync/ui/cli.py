from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from resourcesync.app import (
    DEFAULT_CSV_FILE,
    DEFAULT_DISCOUNTS_FILE,
    DEFAULT_JSON_FILE,
    RESOURCES_KEY,
    analyze_collection,
    copy_collections,
    default_store_factory,
    export_resources_csv,
    export_resources_sheet,
    fix_invalid_urls,
    import_csv_resources,
    import_sheet_resources,
    upload_discounts,
    upload_json_records,
    validate_resource_links,
)
from resourcesync.config import configure_logging
from resourcesync.config.sync import (
    DEFAULT_COPY_COLLECTIONS,
    DEFAULT_DISCOUNT_COLLECTION,
    DEFAULT_RESOURCE_COLLECTION,
    DEFAULT_SHEET_IMPORT_COLLECTION,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from resourcesync.app import StoreFactory
    from resourcesync.domain.reconciliation import ReconciliationResult

log = logging.getLogger(__name__)

# Commands that write to the store and therefore ask for confirmation.
WRITE_COMMANDS = frozenset(
    {
        "copy-collections",
        "fix-urls",
        "import-csv",
        "import-sheet",
        "upload-discounts",
        "upload-json",
    }
)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid integer: {value}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError(f"Must be positive: {value}")
    return number


def _add_collection(parser: argparse.ArgumentParser, default: str) -> None:
    parser.add_argument(
        "--collection",
        type=str,
        default=default,
        help="Target collection (default: %(default)s)",
    )


def _add_load_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Classify records and log intended writes without writing anything",
    )
    parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Do not ask for confirmation before writing",
    )
    parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=None,
        help="Maximum number of writes per batch (defaults to config)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise resource collections")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--database-uri",
        type=str,
        default=None,
        help="SQLAlchemy URI of the document store (defaults to DATABASE_URI or the data dir)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_csv = subparsers.add_parser("import-csv", help="Load resources from a CSV file")
    import_csv.add_argument("--file", type=Path, default=DEFAULT_CSV_FILE, help="CSV file to read")
    _add_collection(import_csv, DEFAULT_RESOURCE_COLLECTION)
    _add_load_options(import_csv)

    import_sheet = subparsers.add_parser(
        "import-sheet", help="Load resources from a Google spreadsheet"
    )
    import_sheet.add_argument(
        "--spreadsheet-id",
        type=str,
        default=None,
        help="Spreadsheet to read (defaults to SPREADSHEET_ID or the id file)",
    )
    import_sheet.add_argument(
        "--sheet",
        type=str,
        default=None,
        help="Sheet name to read (defaults to the first sheet)",
    )
    _add_collection(import_sheet, DEFAULT_SHEET_IMPORT_COLLECTION)
    _add_load_options(import_sheet)

    upload_json = subparsers.add_parser("upload-json", help="Load records from a JSON document")
    upload_json.add_argument(
        "--file", type=Path, default=DEFAULT_JSON_FILE, help="JSON file to read"
    )
    upload_json.add_argument(
        "--key",
        type=str,
        default=RESOURCES_KEY,
        help="Top-level key holding the records (default: %(default)s)",
    )
    _add_collection(upload_json, DEFAULT_RESOURCE_COLLECTION)
    _add_load_options(upload_json)

    discounts = subparsers.add_parser("upload-discounts", help="Load the student discount list")
    discounts.add_argument(
        "--file", type=Path, default=DEFAULT_DISCOUNTS_FILE, help="JSON file to read"
    )
    _add_collection(discounts, DEFAULT_DISCOUNT_COLLECTION)
    _add_load_options(discounts)

    export_csv = subparsers.add_parser("export-csv", help="Export a collection to a CSV file")
    _add_collection(export_csv, DEFAULT_RESOURCE_COLLECTION)
    export_csv.add_argument(
        "--output-dir", type=Path, default=None, help="Directory for the timestamped file"
    )
    export_csv.add_argument(
        "--output", type=Path, default=None, help="Exact output file (overrides --output-dir)"
    )

    export_sheet = subparsers.add_parser(
        "export-sheet", help="Export a collection to a Google spreadsheet"
    )
    _add_collection(export_sheet, DEFAULT_RESOURCE_COLLECTION)

    analyze = subparsers.add_parser("analyze", help="Analyse field usage of a collection")
    _add_collection(analyze, DEFAULT_RESOURCE_COLLECTION)
    analyze.add_argument(
        "--output-dir", type=Path, default=None, help="Directory for the analysis report"
    )
    analyze.add_argument(
        "--broken-links-report",
        type=Path,
        default=None,
        help="Broken links report to include (default: broken_links_report.json)",
    )

    validate = subparsers.add_parser("validate-links", help="Check every resource URL")
    _add_collection(validate, DEFAULT_RESOURCE_COLLECTION)
    validate.add_argument(
        "--report", type=Path, default=None, help="Where to write the broken links report"
    )

    fix = subparsers.add_parser("fix-urls", help="Repair malformed URLs from the links report")
    _add_collection(fix, DEFAULT_RESOURCE_COLLECTION)
    fix.add_argument(
        "--report", type=Path, default=None, help="Broken links report to read"
    )
    fix.add_argument(
        "--simulate",
        action="store_true",
        help="Log the repairs without writing anything",
    )
    fix.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    copy = subparsers.add_parser(
        "copy-collections", help="Copy collections from another document store"
    )
    copy.add_argument(
        "--source-uri",
        type=str,
        required=True,
        help="SQLAlchemy URI of the store to copy from",
    )
    copy.add_argument(
        "--collection",
        dest="collections",
        action="append",
        default=None,
        help="Collection to copy; repeat for several (default: feedback, resourcesApp)",
    )
    copy.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    return parser.parse_args(list(argv))


def confirm(prompt: str, *, input_func: Callable[[str], str] = input) -> bool:
    """Ask a yes/no question; anything but ``y``/``yes`` counts as no."""

    try:
        answer = input_func(f"{prompt} (y/n): ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _needs_confirmation(args: argparse.Namespace) -> bool:
    if args.command not in WRITE_COMMANDS:
        return False
    return not (getattr(args, "simulate", False) or args.yes)


def _confirmation_prompt(args: argparse.Namespace) -> str:
    if args.command == "copy-collections":
        collections = ", ".join(args.collections or DEFAULT_COPY_COLLECTIONS)
        return f"Copy {collections} from {args.source_uri} into the configured store?"
    return f"This will write to the {args.collection} collection. Continue?"


def _load_succeeded(result: ReconciliationResult) -> bool:
    return not result.failed


def _run_command(args: argparse.Namespace, store_factory: StoreFactory) -> bool:
    """Execute the parsed command; returns ``False`` when it finished with a failure."""

    match args.command:
        case "import-csv":
            return _load_succeeded(
                import_csv_resources(
                    args.file,
                    collection=args.collection,
                    store_factory=store_factory,
                    simulate=args.simulate,
                    batch_size=args.batch_size,
                )
            )
        case "import-sheet":
            return _load_succeeded(
                import_sheet_resources(
                    spreadsheet_id=args.spreadsheet_id,
                    sheet_title=args.sheet,
                    collection=args.collection,
                    store_factory=store_factory,
                    simulate=args.simulate,
                    batch_size=args.batch_size,
                )
            )
        case "upload-json":
            return _load_succeeded(
                upload_json_records(
                    args.file,
                    key=args.key or None,
                    collection=args.collection,
                    store_factory=store_factory,
                    simulate=args.simulate,
                    batch_size=args.batch_size,
                )
            )
        case "upload-discounts":
            return _load_succeeded(
                upload_discounts(
                    args.file,
                    collection=args.collection,
                    store_factory=store_factory,
                    simulate=args.simulate,
                    batch_size=args.batch_size,
                )
            )
        case "export-csv":
            export_resources_csv(
                collection=args.collection,
                output_dir=args.output_dir,
                output_path=args.output,
                store_factory=store_factory,
            )
        case "export-sheet":
            export_resources_sheet(collection=args.collection, store_factory=store_factory)
        case "analyze":
            analyze_collection(
                collection=args.collection,
                output_dir=args.output_dir,
                broken_links_path=args.broken_links_report,
                store_factory=store_factory,
            )
        case "validate-links":
            validate_resource_links(
                collection=args.collection,
                report_path=args.report,
                store_factory=store_factory,
            )
        case "fix-urls":
            summary = fix_invalid_urls(
                collection=args.collection,
                report_path=args.report,
                store_factory=store_factory,
                simulate=args.simulate,
            )
            return summary.succeeded
        case "copy-collections":
            copy_collections(
                args.source_uri,
                collections=tuple(args.collections or DEFAULT_COPY_COLLECTIONS),
                store_factory=store_factory,
            )
        case _:
            raise ValueError(f"Unsupported command: {args.command}")
    return True


def main(
    argv: Sequence[str] | None = None,
    *,
    store_factory: StoreFactory | None = None,
    input_func: Callable[[str], str] = input,
) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    if _needs_confirmation(parsed_args) and not confirm(
        _confirmation_prompt(parsed_args), input_func=input_func
    ):
        log.info("Operation cancelled.")
        return

    effective_factory = store_factory or default_store_factory(parsed_args.database_uri)
    try:
        succeeded = _run_command(parsed_args, effective_factory)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)
    if not succeeded:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
