"""Document store backed by a single SQLAlchemy table."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from resourcesync.config.sync import DEFAULT_MAX_BATCH_SIZE
from resourcesync.domain.model import DeleteOperation, SetOperation
from resourcesync.domain.ports.store import StoreError

from .mappings import document_table
from .migrations import upgrade_head

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine

    from resourcesync.domain.model import Record, WriteOperation

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlAlchemyDocumentStore:
    """Collections of JSON documents keyed by ``(collection, identifier)``.

    Each ``batch_write`` runs in one transaction, so a batch is stored
    completely or not at all. When ``owns_engine`` is set the engine is
    disposed on ``close``.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        owns_engine: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_batch_size <= 0:
            raise ValueError(f"Batch size must be positive, got {max_batch_size}")
        self._engine = engine
        self._max_batch_size = max_batch_size
        self._owns_engine = owns_engine
        self._clock = clock

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def max_batch_size(self) -> int:
        return self._max_batch_size

    def get_all(self, collection: str) -> list[tuple[str, Record]]:
        statement = (
            select(document_table.c.identifier, document_table.c.data)
            .where(document_table.c.collection == collection)
            .order_by(document_table.c.identifier)
        )
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(statement).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Reading collection {collection!r} failed: {exc}") from exc
        return [(row.identifier, dict(row.data)) for row in rows]

    def batch_write(self, collection: str, operations: Sequence[WriteOperation]) -> None:
        if len(operations) > self._max_batch_size:
            raise StoreError(
                f"Batch of {len(operations)} operations exceeds the limit of "
                f"{self._max_batch_size}"
            )
        if not operations:
            return
        try:
            with self._engine.begin() as connection:
                for operation in operations:
                    self._apply(connection, collection, operation)
        except SQLAlchemyError as exc:
            raise StoreError(f"Batch write to {collection!r} failed: {exc}") from exc
        log.debug("Wrote %s operations to %s", len(operations), collection)

    def _apply(self, connection: Connection, collection: str, operation: WriteOperation) -> None:
        match operation:
            case SetOperation(identifier=identifier, data=data):
                now = self._clock()
                result = connection.execute(
                    update(document_table)
                    .where(
                        document_table.c.collection == collection,
                        document_table.c.identifier == identifier,
                    )
                    .values(data=data, updated_at=now)
                )
                if result.rowcount == 0:
                    connection.execute(
                        insert(document_table).values(
                            collection=collection,
                            identifier=identifier,
                            data=data,
                            updated_at=now,
                        )
                    )
            case DeleteOperation(identifier=identifier):
                connection.execute(
                    delete(document_table).where(
                        document_table.c.collection == collection,
                        document_table.c.identifier == identifier,
                    )
                )

    def close(self) -> None:
        if self._owns_engine:
            self._engine.dispose()

    def __enter__(self) -> SqlAlchemyDocumentStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


@contextmanager
def open_document_store(
    database_uri: str,
    *,
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
    migrate: bool = True,
) -> Iterator[SqlAlchemyDocumentStore]:
    """Create an engine for ``database_uri``, migrate it and yield a store over it."""

    engine = create_engine(database_uri)
    with SqlAlchemyDocumentStore(
        engine, max_batch_size=max_batch_size, owns_engine=True
    ) as store:
        if migrate:
            try:
                upgrade_head(engine=engine)
            except SQLAlchemyError as exc:
                raise StoreError(f"Could not prepare database {engine.url}: {exc}") from exc
        yield store
