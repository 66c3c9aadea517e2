"""Reading and writing resource tables as CSV files."""

from __future__ import annotations

import csv
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

log = logging.getLogger(__name__)

EXPORT_FILENAME_PREFIX = "resources_export"


def read_csv_rows(path: Path) -> list[list[str]]:
    """Return every row of ``path``; raises ``FileNotFoundError`` if it is missing."""

    # utf-8-sig drops the BOM spreadsheet tools put in front of exported files
    with path.open(newline="", encoding="utf-8-sig") as handle:
        rows = list(csv.reader(handle))
    log.info("Read %s lines from %s", len(rows), path)
    return rows


def write_csv_rows(path: Path, rows: Iterable[Sequence[str]]) -> int:
    """Write ``rows`` with standard quoting and return how many were written."""

    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        for row in rows:
            writer.writerow(row)
            count += 1
    return count


def export_filename(now: datetime | None = None) -> str:
    moment = now or datetime.now(UTC)
    stamp = moment.strftime("%Y-%m-%dT%H-%M-%S.%f")[:-3] + "Z"
    return f"{EXPORT_FILENAME_PREFIX}_{stamp}.csv"
