"""SQLAlchemy adapter package for resourcesync."""

from __future__ import annotations

from .mappings import document_table, metadata
from .store import SqlAlchemyDocumentStore, open_document_store

__all__ = [
    "SqlAlchemyDocumentStore",
    "document_table",
    "metadata",
    "open_document_store",
]
