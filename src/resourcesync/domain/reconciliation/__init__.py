"""Reconciling bulk loader shared by every import path.

Flow for one run:
1) read the target collection snapshot
2) assign an identifier to every incoming record (explicit or derived)
3) reject empty, malformed and duplicate records
4) classify the rest as new, updated or unchanged
5) batch the writes for new and updated records and flush them
6) report a summary
"""

from __future__ import annotations

from .batching import BatchFlushError, WriteBatcher
from .classify import classify, has_changed, record_content, values_equal
from .identifiers import (
    DEFAULT_IDENTIFIER_FIELDS,
    IdentifierAssignment,
    IdentifierFields,
    IdentifierRegistry,
    derive_identifier,
    slugify,
    time_suffix,
)
from .loader import (
    ReconciliationResult,
    ReconcilingLoader,
    RecordOutcome,
    RecordReconciler,
    read_snapshot,
)
from .summary import GeneratedIdentifier, RederivedIdentifier, RejectedEntry, RunSummary

__all__ = [
    "DEFAULT_IDENTIFIER_FIELDS",
    "BatchFlushError",
    "GeneratedIdentifier",
    "IdentifierAssignment",
    "IdentifierFields",
    "IdentifierRegistry",
    "ReconciliationResult",
    "ReconcilingLoader",
    "RecordOutcome",
    "RecordReconciler",
    "RederivedIdentifier",
    "RejectedEntry",
    "RunSummary",
    "WriteBatcher",
    "classify",
    "derive_identifier",
    "has_changed",
    "read_snapshot",
    "record_content",
    "slugify",
    "time_suffix",
    "values_equal",
]
