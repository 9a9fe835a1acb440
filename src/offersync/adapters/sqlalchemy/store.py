"""Index store keeping documents in a relational database.

Meant for local runs and tests: calls are blocking, each public method runs in
its own transaction, and bulk items are isolated from each other by savepoints
so one failing item does not roll back the rest of the batch.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, delete, event, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from offersync.domain.model import MutationOp
from offersync.domain.ports.index import BulkItemResult, BulkResponse

from .mappings import create_all_tables, documents_table

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy.engine import Connection, Engine

    from offersync.domain.model import IndexMutation

log = getLogger(__name__)

_STATUS_OK = 200
_STATUS_CREATED = 201
_STATUS_NOT_FOUND = 404
_STATUS_STORAGE_ERROR = 500


class DocumentMissingError(LookupError):
    """Raised when a partial update targets a document that does not exist."""

    def __init__(self, collection: str, key: str) -> None:
        super().__init__(f"[{key}]: document missing in {collection}")
        self.collection = collection
        self.key = key


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; take over transaction control.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection: Connection) -> None:
        connection.exec_driver_sql("BEGIN")


class SqlAlchemyIndexStore:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @classmethod
    def from_uri(cls, uri: str) -> SqlAlchemyIndexStore:
        engine = create_engine(uri, future=True)
        if engine.dialect.name == "sqlite":
            _enable_sqlite_savepoints(engine)
        create_all_tables(engine)
        return cls(engine)

    async def get(self, collection: str, key: str) -> Mapping[str, object] | None:
        with self._engine.connect() as connection:
            return _fetch(connection, collection, key)

    async def upsert(
        self,
        collection: str,
        key: str,
        document: Mapping[str, object],
        *,
        refresh: bool = False,
    ) -> None:
        with self._engine.begin() as connection:
            _write(connection, collection, key, document)

    async def update(
        self,
        collection: str,
        key: str,
        changes: Mapping[str, object],
        *,
        refresh: bool = False,
    ) -> None:
        with self._engine.begin() as connection:
            _merge(connection, collection, key, changes)

    async def delete(self, collection: str, key: str, *, refresh: bool = False) -> None:
        with self._engine.begin() as connection:
            _remove(connection, collection, key)

    async def bulk(
        self,
        mutations: Sequence[IndexMutation],
        *,
        refresh: bool = False,
    ) -> BulkResponse:
        items: list[BulkItemResult] = []
        with self._engine.begin() as connection:
            for mutation in mutations:
                items.append(_apply_isolated(connection, mutation))
        return BulkResponse(
            has_errors=any(not item.ok for item in items),
            items=tuple(items),
        )

    async def close(self) -> None:
        self._engine.dispose()


def _apply_isolated(connection: Connection, mutation: IndexMutation) -> BulkItemResult:
    savepoint = connection.begin_nested()
    try:
        status = _apply(connection, mutation)
    except DocumentMissingError as exc:
        savepoint.rollback()
        return BulkItemResult(
            status=_STATUS_NOT_FOUND,
            error={"type": "document_missing_exception", "reason": str(exc)},
        )
    except SQLAlchemyError as exc:
        savepoint.rollback()
        log.warning("Bulk item %s/%s failed: %s", mutation.collection, mutation.key, exc)
        return BulkItemResult(
            status=_STATUS_STORAGE_ERROR,
            error={"type": "storage_exception", "reason": str(exc)},
        )
    savepoint.commit()
    return BulkItemResult(status=status)


def _apply(connection: Connection, mutation: IndexMutation) -> int:
    match mutation.op:
        case MutationOp.UPSERT:
            created = _write(connection, mutation.collection, mutation.key, mutation.payload or {})
            return _STATUS_CREATED if created else _STATUS_OK
        case MutationOp.PATCH:
            _merge(connection, mutation.collection, mutation.key, mutation.payload or {})
            return _STATUS_OK
        case MutationOp.DELETE:
            removed = _remove(connection, mutation.collection, mutation.key)
            return _STATUS_OK if removed else _STATUS_NOT_FOUND


def _fetch(connection: Connection, collection: str, key: str) -> dict[str, Any] | None:
    body = connection.execute(
        select(documents_table.c.body).where(
            documents_table.c.collection == collection,
            documents_table.c.doc_id == key,
        )
    ).scalar_one_or_none()
    return dict(body) if body is not None else None


def _write(
    connection: Connection, collection: str, key: str, document: Mapping[str, object]
) -> bool:
    """Replace the whole document; returns True when it did not exist before."""

    body = dict(document)
    result = connection.execute(
        update(documents_table)
        .where(
            documents_table.c.collection == collection,
            documents_table.c.doc_id == key,
        )
        .values(body=body)
    )
    if result.rowcount:
        return False
    connection.execute(insert(documents_table).values(collection=collection, doc_id=key, body=body))
    return True


def _merge(
    connection: Connection, collection: str, key: str, changes: Mapping[str, object]
) -> None:
    current = _fetch(connection, collection, key)
    if current is None:
        raise DocumentMissingError(collection, key)
    current.update(changes)
    connection.execute(
        update(documents_table)
        .where(
            documents_table.c.collection == collection,
            documents_table.c.doc_id == key,
        )
        .values(body=current)
    )


def _remove(connection: Connection, collection: str, key: str) -> bool:
    result = connection.execute(
        delete(documents_table).where(
            documents_table.c.collection == collection,
            documents_table.c.doc_id == key,
        )
    )
    return bool(result.rowcount)
