"""Reconciling bulk loader.

Reads the target collection once, walks the incoming records in order and
writes only what is new or changed, in batches the store accepts atomically.
The snapshot is not refreshed during the run: concurrent writers can make it
stale, which is acceptable for an offline batch tool.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from resourcesync.domain.model import Classification, RejectionReason, SetOperation
from resourcesync.domain.ports.store import SnapshotError, StoreError

from .batching import BatchFlushError, WriteBatcher
from .classify import classify, record_content
from .identifiers import (
    DEFAULT_IDENTIFIER_FIELDS,
    IdentifierFields,
    IdentifierRegistry,
    SuffixProvider,
    explicit_identifier,
    time_suffix,
)
from .summary import GeneratedIdentifier, RederivedIdentifier, RejectedEntry, RunSummary

if TYPE_CHECKING:
    from collections.abc import Iterable

    from resourcesync.domain.model import Record, WriteOperation
    from resourcesync.domain.ports.store import DocumentStore

type Snapshot = Mapping[str, Mapping[str, object]]

PROGRESS_INTERVAL = 50

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecordOutcome:
    position: int
    classification: Classification
    identifier: str | None = None
    operation: SetOperation | None = None
    reason: RejectionReason | None = None


def _rejection_reason(
    record: Mapping[str, object] | None,
    identifier_field: str,
) -> RejectionReason | None:
    if not record or not record_content(record, identifier_field):
        return RejectionReason.EMPTY_RECORD
    for key in record:
        if not isinstance(key, str) or not key.strip():
            return RejectionReason.EMPTY_FIELD_NAME
    return None


@dataclass(slots=True)
class RecordReconciler:
    """Pure per-record decisions for one run: validation, identity and change detection."""

    snapshot: Snapshot
    fields: IdentifierFields = DEFAULT_IDENTIFIER_FIELDS
    suffix: SuffixProvider = time_suffix
    summary: RunSummary = field(default_factory=RunSummary)
    _registry: IdentifierRegistry = field(init=False)

    def __post_init__(self) -> None:
        self._registry = IdentifierRegistry(fields=self.fields, suffix=self.suffix)

    def reconcile(self, record: Mapping[str, object] | None, position: int) -> RecordOutcome:
        reason = _rejection_reason(record, self.fields.identifier)
        if reason is not None or record is None:
            identifier = explicit_identifier(record, self.fields) if record else None
            return self._reject(position, reason or RejectionReason.EMPTY_RECORD, identifier)

        assignment = self._registry.assign(record, position)
        identifier = assignment.identifier
        if assignment.duplicate:
            log.warning(
                "Duplicate ID found in input: %s. Only the first occurrence will be used.",
                identifier,
            )
            return self._reject(position, RejectionReason.DUPLICATE_IDENTIFIER, identifier)

        if assignment.derived:
            title = record.get(self.fields.title)
            self.summary.generated.append(
                GeneratedIdentifier(
                    position=position,
                    identifier=identifier,
                    title=str(title) if title else None,
                )
            )
            log.debug('Generated ID "%s" for record at index %s', identifier, position)
        if assignment.rederived_from is not None:
            self.summary.rederived.append(
                RederivedIdentifier(
                    position=position,
                    original=assignment.rederived_from,
                    identifier=identifier,
                )
            )

        content = record_content(record, self.fields.identifier)
        classification = classify(
            content, identifier, self.snapshot, identifier_field=self.fields.identifier
        )
        self.summary.count(classification)
        operation = (
            None
            if classification is Classification.UNCHANGED
            else SetOperation(identifier=identifier, data=content)
        )
        return RecordOutcome(
            position=position,
            classification=classification,
            identifier=identifier,
            operation=operation,
        )

    def _reject(
        self,
        position: int,
        reason: RejectionReason,
        identifier: str | None,
    ) -> RecordOutcome:
        if reason is not RejectionReason.DUPLICATE_IDENTIFIER:
            log.warning("Skipping record at index %s: %s", position, reason)
        self.summary.reject(RejectedEntry(position=position, reason=reason, identifier=identifier))
        return RecordOutcome(
            position=position,
            classification=Classification.REJECTED,
            identifier=identifier,
            reason=reason,
        )


@dataclass(slots=True)
class ReconciliationResult:
    summary: RunSummary
    operations: tuple[WriteOperation, ...] = ()
    error: BatchFlushError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def read_snapshot(store: DocumentStore, collection: str) -> Snapshot:
    """Read every document of ``collection`` into a read-only mapping."""

    log.info("Checking for existing documents in collection: %s", collection)
    try:
        documents = store.get_all(collection)
    except StoreError as exc:
        raise SnapshotError(f"Could not read collection {collection!r}: {exc}") from exc
    snapshot: dict[str, Record] = {identifier: dict(data) for identifier, data in documents}
    log.info("Found %s existing documents in the collection", len(snapshot))
    return MappingProxyType(snapshot)


@dataclass(slots=True, kw_only=True)
class ReconcilingLoader:
    """Load records into one collection of a document store."""

    store: DocumentStore
    collection: str
    fields: IdentifierFields = DEFAULT_IDENTIFIER_FIELDS
    suffix: SuffixProvider = time_suffix
    simulate: bool = False
    max_batch_size: int | None = None

    def batch_size(self) -> int:
        if self.max_batch_size is None:
            return self.store.max_batch_size
        return min(self.max_batch_size, self.store.max_batch_size)

    def load(self, records: Iterable[Mapping[str, object] | None]) -> ReconciliationResult:
        incoming = list(records)
        snapshot = read_snapshot(self.store, self.collection)
        reconciler = RecordReconciler(snapshot=snapshot, fields=self.fields, suffix=self.suffix)
        summary = reconciler.summary
        summary.total = len(incoming)
        summary.simulated = self.simulate

        log.info(
            "%s %s records to collection: %s",
            "Simulating upload of" if self.simulate else "Uploading",
            len(incoming),
            self.collection,
        )

        operations: list[WriteOperation] = []
        error: BatchFlushError | None = None
        batcher = WriteBatcher(self._flush, max_size=self.batch_size())
        try:
            for position, record in enumerate(incoming):
                outcome = reconciler.reconcile(record, position)
                summary.processed += 1
                if outcome.operation is not None:
                    operations.append(outcome.operation)
                    if self.simulate:
                        log.info(
                            "[SIMULATE] Would %s document %s: %s",
                            "create" if outcome.classification is Classification.NEW else "update",
                            outcome.identifier,
                            outcome.operation.data,
                        )
                    else:
                        batcher.enqueue(outcome.operation)
                if (position + 1) % PROGRESS_INTERVAL == 0:
                    log.info("Progress: %s/%s records processed", position + 1, len(incoming))
            if not self.simulate:
                batcher.close()
        except BatchFlushError as exc:
            summary.processed -= exc.pending
            summary.error = str(exc.cause)
            error = exc
            log.error("Error in batch upload: %s", exc)

        summary.committed = batcher.committed
        summary.flushes = batcher.flushes
        return ReconciliationResult(summary=summary, operations=tuple(operations), error=error)

    def _flush(self, batch: Sequence[WriteOperation]) -> None:
        self.store.batch_write(self.collection, batch)
