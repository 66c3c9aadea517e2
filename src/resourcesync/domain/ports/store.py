"""Ports for reading and writing document collections."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from resourcesync.domain.model import Record, WriteOperation


class StoreError(RuntimeError):
    """Raised when the document store rejects a read or a batch write."""


class SnapshotError(StoreError):
    """Raised when the existing documents of a collection cannot be read."""


@runtime_checkable
class DocumentStore(Protocol):
    """Collection-oriented document store with atomic batch writes."""

    @property
    def max_batch_size(self) -> int: ...

    def get_all(self, collection: str) -> Sequence[tuple[str, Record]]: ...

    def batch_write(self, collection: str, operations: Sequence[WriteOperation]) -> None:
        """Apply ``operations`` as one atomic unit or raise ``StoreError``."""
        ...
