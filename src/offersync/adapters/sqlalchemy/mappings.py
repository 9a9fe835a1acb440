"""Table metadata for the SQL-backed document index."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Column, MetaData, String, Table

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "pk": "pk_%(table_name)s",
    }
)

# One row per (collection, id); the body holds the JSON source as the index would.
documents_table = Table(
    "documents",
    metadata,
    Column("collection", String, primary_key=True),
    Column("doc_id", String, primary_key=True),
    Column("body", JSON, nullable=False),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the document index."""

    log.info("Creating all tables")
    metadata.create_all(engine)
