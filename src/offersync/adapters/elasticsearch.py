"""Elasticsearch implementation of the index store."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from elasticsearch import AsyncElasticsearch

from offersync.domain.model import MutationOp
from offersync.domain.ports.index import BulkItemResult, BulkResponse

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from offersync.config.index import ElasticsearchConfig
    from offersync.domain.model import IndexMutation

log = getLogger(__name__)

_BULK_ACTIONS: dict[MutationOp, str] = {
    MutationOp.UPSERT: "index",
    MutationOp.PATCH: "update",
    MutationOp.DELETE: "delete",
}


def create_client(config: ElasticsearchConfig) -> AsyncElasticsearch:
    """Build the async client; an API key wins over the guest credentials."""

    auth: dict[str, Any]
    if config.api_key:
        auth = {"api_key": config.api_key}
    else:
        auth = {"basic_auth": (config.username, config.password)}
    if not config.verify_certs:
        log.warning("TLS certificate verification is disabled for %s", config.url)
    return AsyncElasticsearch(
        [config.url],
        verify_certs=config.verify_certs,
        ssl_show_warn=config.verify_certs,
        request_timeout=config.request_timeout_seconds,
        **auth,
    )


def build_operations(mutations: Sequence[IndexMutation]) -> list[Mapping[str, object]]:
    """Encode mutations as the action/source line pairs of the bulk API."""

    operations: list[Mapping[str, object]] = []
    for mutation in mutations:
        action = _BULK_ACTIONS[mutation.op]
        operations.append({action: {"_index": mutation.collection, "_id": mutation.key}})
        match mutation.op:
            case MutationOp.UPSERT:
                operations.append(dict(mutation.payload or {}))
            case MutationOp.PATCH:
                operations.append({"doc": dict(mutation.payload or {})})
            case MutationOp.DELETE:
                pass
    return operations


def parse_bulk_items(body: Mapping[str, Any]) -> BulkResponse:
    items: list[BulkItemResult] = []
    for entry in body.get("items", ()):
        # Each entry is keyed by its action name: {"index": {...}}.
        (outcome,) = entry.values()
        items.append(
            BulkItemResult(status=int(outcome.get("status", 0)), error=outcome.get("error"))
        )
    return BulkResponse(has_errors=bool(body.get("errors")), items=tuple(items))


class ElasticsearchIndexStore:
    def __init__(self, client: AsyncElasticsearch) -> None:
        self._client = client

    @classmethod
    def from_config(cls, config: ElasticsearchConfig) -> ElasticsearchIndexStore:
        return cls(create_client(config))

    async def get(self, collection: str, key: str) -> Mapping[str, object] | None:
        response = await self._client.options(ignore_status=404).get(index=collection, id=key)
        body = response.body
        if not body.get("found"):
            return None
        return body.get("_source") or {}

    async def upsert(
        self,
        collection: str,
        key: str,
        document: Mapping[str, object],
        *,
        refresh: bool = False,
    ) -> None:
        await self._client.index(index=collection, id=key, document=dict(document), refresh=refresh)

    async def update(
        self,
        collection: str,
        key: str,
        changes: Mapping[str, object],
        *,
        refresh: bool = False,
    ) -> None:
        await self._client.update(index=collection, id=key, doc=dict(changes), refresh=refresh)

    async def delete(self, collection: str, key: str, *, refresh: bool = False) -> None:
        await self._client.options(ignore_status=404).delete(
            index=collection, id=key, refresh=refresh
        )

    async def bulk(
        self,
        mutations: Sequence[IndexMutation],
        *,
        refresh: bool = False,
    ) -> BulkResponse:
        if not mutations:
            return BulkResponse(has_errors=False, items=())
        response = await self._client.bulk(operations=build_operations(mutations), refresh=refresh)
        return parse_bulk_items(response.body)

    async def close(self) -> None:
        await self._client.close()
