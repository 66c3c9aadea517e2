"""Records from JSON documents."""

from __future__ import annotations

import json
from collections.abc import Mapping
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)


class DocumentFormatError(ValueError):
    """Raised when a JSON document does not contain records where expected."""


def _as_record(value: object, position: object) -> dict[str, object] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise DocumentFormatError(f"Entry {position} is not an object")
    return dict(cast(Mapping[str, object], value))


def records_from_document(
    document: object,
    *,
    key: str | None = None,
    identifier_field: str = "id",
) -> list[dict[str, object] | None]:
    """Extract records from ``document``, optionally below a top-level ``key``.

    A list yields its entries. A mapping of identifier to object yields one
    record per entry with the identifier stored in ``identifier_field``.
    """

    payload = document
    if key is not None:
        if not isinstance(document, Mapping) or key not in document:
            raise DocumentFormatError(f"Top-level key {key!r} not found")
        payload = cast(Mapping[str, Any], document)[key]

    if isinstance(payload, list):
        return [_as_record(item, index) for index, item in enumerate(cast(list[Any], payload))]
    if isinstance(payload, Mapping):
        records: list[dict[str, object] | None] = []
        for identifier, value in cast(Mapping[str, Any], payload).items():
            record = _as_record(value, identifier)
            if record is not None:
                record[identifier_field] = identifier
            records.append(record)
        return records
    raise DocumentFormatError("Expected a list of records or a mapping of identifier to record")


def read_json_records(
    path: Path,
    *,
    key: str | None = None,
    identifier_field: str = "id",
) -> list[dict[str, object] | None]:
    """Load records from a JSON file; raises ``FileNotFoundError`` if it is missing."""

    with path.open(encoding="utf-8") as handle:
        try:
            document = json.load(handle)
        except json.JSONDecodeError as exc:
            raise DocumentFormatError(f"{path} is not valid JSON: {exc}") from exc
    records = records_from_document(document, key=key, identifier_field=identifier_field)
    log.info("Loaded %s records from %s", len(records), path)
    return records
