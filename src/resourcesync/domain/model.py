"""Core value types shared by the loader, the exporters and the adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

type Record = dict[str, object]


class Classification(StrEnum):
    """Outcome of reconciling one incoming record against the snapshot."""

    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    REJECTED = "rejected"


class RejectionReason(StrEnum):
    EMPTY_RECORD = "empty record"
    EMPTY_FIELD_NAME = "empty field name"
    DUPLICATE_IDENTIFIER = "duplicate identifier"


@dataclass(frozen=True, slots=True)
class SetOperation:
    """Store ``data`` under ``identifier``, replacing any existing document."""

    identifier: str
    data: Record = field(default_factory=dict[str, object])


@dataclass(frozen=True, slots=True)
class DeleteOperation:
    """Remove the document stored under ``identifier``."""

    identifier: str


type WriteOperation = SetOperation | DeleteOperation
