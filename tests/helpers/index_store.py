"""In-memory index store with injectable failures."""

from __future__ import annotations

import copy
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from offersync.domain.model import IndexMutation, MutationOp
from offersync.domain.ports.index import BulkItemResult, BulkResponse, IndexStore

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


class DocumentNotFound(LookupError):
    pass


@dataclass
class InMemoryIndexStore(IndexStore):
    collections: defaultdict[str, dict[str, dict[str, object]]] = field(
        default_factory=lambda: defaultdict(dict)
    )
    bulk_calls: list[list[IndexMutation]] = field(default_factory=list)
    refreshed_upserts: list[tuple[str, str]] = field(default_factory=list)
    bulk_failures: dict[str, list[int]] = field(default_factory=dict)
    failing_collections: set[str] = field(default_factory=set)
    closed: bool = False

    def seed(self, collection: str, key: str, document: Mapping[str, object]) -> None:
        self.collections[collection][key] = dict(document)

    def document(self, collection: str, key: str) -> dict[str, object] | None:
        return self.collections[collection].get(key)

    def fail_bulk_item(self, key: str, status: int, *, times: int = 1) -> None:
        self.bulk_failures[key] = [status] * times

    async def get(self, collection: str, key: str) -> Mapping[str, object] | None:
        self._check_available(collection)
        document = self.collections[collection].get(key)
        return copy.deepcopy(document) if document is not None else None

    async def upsert(
        self,
        collection: str,
        key: str,
        document: Mapping[str, object],
        *,
        refresh: bool = False,
    ) -> None:
        self._check_available(collection)
        self.collections[collection][key] = dict(document)
        if refresh:
            self.refreshed_upserts.append((collection, key))

    async def update(
        self,
        collection: str,
        key: str,
        changes: Mapping[str, object],
        *,
        refresh: bool = False,
    ) -> None:
        self._check_available(collection)
        current = self.collections[collection].get(key)
        if current is None:
            raise DocumentNotFound(f"{collection}/{key}")
        current.update(changes)

    async def delete(self, collection: str, key: str, *, refresh: bool = False) -> None:
        self._check_available(collection)
        self.collections[collection].pop(key, None)

    async def bulk(
        self,
        mutations: Sequence[IndexMutation],
        *,
        refresh: bool = False,
    ) -> BulkResponse:
        self.bulk_calls.append(list(mutations))
        items = tuple(self._apply(mutation) for mutation in mutations)
        return BulkResponse(has_errors=any(not item.ok for item in items), items=items)

    async def close(self) -> None:
        self.closed = True

    def _apply(self, mutation: IndexMutation) -> BulkItemResult:
        pending = self.bulk_failures.get(mutation.key)
        if pending:
            status = pending.pop(0)
            return BulkItemResult(status=status, error={"type": "injected", "status": status})

        documents = self.collections[mutation.collection]
        match mutation.op:
            case MutationOp.UPSERT:
                documents[mutation.key] = dict(mutation.payload or {})
                return BulkItemResult(status=201)
            case MutationOp.PATCH:
                current = documents.get(mutation.key)
                if current is None:
                    return BulkItemResult(
                        status=404, error={"type": "document_missing_exception"}
                    )
                current.update(mutation.payload or {})
                return BulkItemResult(status=200)
            case MutationOp.DELETE:
                removed = documents.pop(mutation.key, None)
                return BulkItemResult(status=200 if removed is not None else 404)

    def _check_available(self, collection: str) -> None:
        if collection in self.failing_collections:
            raise ConnectionError(f"collection {collection} unavailable")
