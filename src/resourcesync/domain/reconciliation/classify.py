"""Change classification against the existing snapshot."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from resourcesync.domain.model import Classification

if TYPE_CHECKING:
    from resourcesync.domain.model import Record


def record_content(record: Mapping[str, object], identifier_field: str = "id") -> Record:
    """Copy of ``record`` without its identifier field."""

    return {key: value for key, value in record.items() if key != identifier_field}


def values_equal(left: object, right: object) -> bool:
    """Deep value equality that keeps booleans distinct from numbers."""

    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if left.keys() != right.keys():
            return False
        return all(values_equal(left[key], right[key]) for key in left)
    if isinstance(left, Sequence) and not isinstance(left, str | bytes):
        if not isinstance(right, Sequence) or isinstance(right, str | bytes):
            return False
        return len(left) == len(right) and all(map(values_equal, left, right))
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    return left == right


def has_changed(
    existing: Mapping[str, object],
    incoming: Mapping[str, object],
    *,
    identifier_field: str = "id",
) -> bool:
    return not values_equal(
        record_content(existing, identifier_field),
        record_content(incoming, identifier_field),
    )


def classify(
    record: Mapping[str, object],
    identifier: str,
    snapshot: Mapping[str, Mapping[str, object]],
    *,
    identifier_field: str = "id",
) -> Classification:
    """Return ``NEW``, ``UPDATED`` or ``UNCHANGED`` for ``record`` stored at ``identifier``."""

    existing = snapshot.get(identifier)
    if existing is None:
        return Classification.NEW
    if has_changed(existing, record, identifier_field=identifier_field):
        return Classification.UPDATED
    return Classification.UNCHANGED
