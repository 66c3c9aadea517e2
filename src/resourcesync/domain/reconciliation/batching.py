"""Bounded write batches flushed as atomic units."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from types import TracebackType

    from resourcesync.domain.model import WriteOperation

type FlushCallback = Callable[[Sequence[WriteOperation]], None]

log = logging.getLogger(__name__)


class BatchFlushError(RuntimeError):
    """Raised when a batch could not be submitted.

    ``committed`` counts operations from earlier batches that are already
    stored; ``pending`` counts the operations of the batch that failed.
    """

    def __init__(self, *, committed: int, pending: int, cause: BaseException) -> None:
        super().__init__(
            f"Batch flush failed after {committed} committed operations "
            f"({pending} operations lost): {cause}"
        )
        self.committed = committed
        self.pending = pending
        self.cause = cause


class WriteBatcher:
    """Collect write operations and hand them to ``flush`` in chunks of ``max_size``."""

    def __init__(self, flush: FlushCallback, *, max_size: int) -> None:
        if max_size <= 0:
            raise ValueError(f"Batch size must be positive, got {max_size}")
        self._flush = flush
        self.max_size = max_size
        self._batch: list[WriteOperation] = []
        self.committed = 0
        self.flushes = 0
        self._failed = False

    @property
    def pending(self) -> int:
        return len(self._batch)

    def enqueue(self, operation: WriteOperation) -> None:
        if self._failed:
            raise RuntimeError("Cannot enqueue after a failed flush")
        self._batch.append(operation)
        if len(self._batch) >= self.max_size:
            self.flush()

    def flush(self) -> None:
        if not self._batch:
            return
        batch, self._batch = self._batch, []
        try:
            self._flush(batch)
        except Exception as exc:
            self._failed = True
            raise BatchFlushError(
                committed=self.committed, pending=len(batch), cause=exc
            ) from exc
        self.committed += len(batch)
        self.flushes += 1
        log.info("Batch committed: %s operations", len(batch))

    def close(self) -> None:
        """Flush the final partial batch, if any."""

        if not self._failed:
            self.flush()

    def __enter__(self) -> WriteBatcher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is None:
            self.close()
        return False
