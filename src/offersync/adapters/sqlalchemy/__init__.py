"""SQLAlchemy adapter package for the document index."""

from __future__ import annotations

from .mappings import create_all_tables, documents_table, metadata
from .store import DocumentMissingError, SqlAlchemyIndexStore

__all__ = [
    "DocumentMissingError",
    "SqlAlchemyIndexStore",
    "create_all_tables",
    "documents_table",
    "metadata",
]
