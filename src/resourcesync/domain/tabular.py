"""Conversions between rows of text cells and records."""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Mapping
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from resourcesync.domain.model import Record

# Column layout of the resources CSV; the file's own header row is ignored.
RESOURCE_CSV_HEADERS: Final[Mapping[int, str]] = {
    0: "id",
    1: "title",
    2: "Resource Type",
    3: "state",
    4: "website",
    5: "phone number",
    6: "email",
}

PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "id",
    "title",
    "Resource Type",
    "state",
    "website",
    "phone number",
    "email",
)

COMMON_FIELD_THRESHOLD: Final[float] = 0.5


def _is_blank(row: Sequence[str]) -> bool:
    return not any(cell.strip() for cell in row)


def header_names(header_row: Sequence[str], header_mapping: Mapping[int, str] | None) -> list[str]:
    if header_mapping is None:
        return [cell.strip() for cell in header_row]
    return [header_mapping.get(index, f"field{index}") for index in range(len(header_row))]


def rows_to_records(
    rows: Iterable[Sequence[str]],
    *,
    header_mapping: Mapping[int, str] | None = None,
) -> list[Record]:
    """Turn rows into records using the first non-blank row as the header.

    With ``header_mapping`` the header row only fixes the column count and the
    names come from the mapping. Empty cells and columns without a name are
    left out of the record.
    """

    headers: list[str] | None = None
    records: list[Record] = []
    for row in rows:
        if _is_blank(row):
            continue
        if headers is None:
            headers = header_names(row, header_mapping)
            continue
        record: Record = {}
        for index, name in enumerate(headers):
            if index >= len(row) or not name:
                continue
            value = row[index]
            if value != "":
                record[name] = value
        records.append(record)
    return records


def field_counts(records: Iterable[Mapping[str, object]]) -> Counter[str]:
    counts: Counter[str] = Counter()
    for record in records:
        counts.update(record.keys())
    return counts


def common_fields(
    records: Sequence[Mapping[str, object]],
    *,
    priority: Sequence[str] = PRIORITY_FIELDS,
    identifier_field: str = "id",
    threshold: float = COMMON_FIELD_THRESHOLD,
) -> list[str]:
    """Columns for an export: priority fields first, then fields most records share."""

    if not records:
        return [identifier_field]
    counts = field_counts(records)
    total = len(records)
    common = [name for name, count in counts.most_common() if count / total > threshold]
    if identifier_field not in common:
        common.insert(0, identifier_field)

    ordered = [name for name in priority if counts[name] or name == identifier_field]
    ordered.extend(name for name in common if name not in ordered)
    return ordered


def stringify_value(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Mapping | list | tuple):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def records_to_rows(
    records: Iterable[Mapping[str, object]],
    fields: Sequence[str],
) -> list[list[str]]:
    """Header row followed by one stringified row per record."""

    rows = [list(fields)]
    rows.extend([stringify_value(record.get(name)) for name in fields] for record in records)
    return rows
