"""Port for the key-addressable document index."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from offersync.domain.model import IndexMutation


@dataclass(frozen=True, slots=True)
class BulkItemResult:
    """Store-reported outcome of one bulk item."""

    status: int
    error: Mapping[str, object] | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class BulkResponse:
    """Per-item results in submission order."""

    has_errors: bool
    items: tuple[BulkItemResult, ...]


@runtime_checkable
class IndexStore(Protocol):
    """Minimal document store contract used by the synchronizer."""

    async def get(self, collection: str, key: str) -> Mapping[str, object] | None: ...

    async def upsert(
        self,
        collection: str,
        key: str,
        document: Mapping[str, object],
        *,
        refresh: bool = False,
    ) -> None: ...

    async def update(
        self,
        collection: str,
        key: str,
        changes: Mapping[str, object],
        *,
        refresh: bool = False,
    ) -> None: ...

    async def delete(self, collection: str, key: str, *, refresh: bool = False) -> None:
        """Delete a document; deleting an absent document is a no-op."""
        ...

    async def bulk(
        self,
        mutations: Sequence[IndexMutation],
        *,
        refresh: bool = False,
    ) -> BulkResponse: ...

    async def close(self) -> None: ...
