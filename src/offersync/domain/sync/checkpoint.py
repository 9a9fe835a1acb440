"""Persisted "last processed block" and its monotonic in-memory holder."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from offersync.domain.errors import CheckpointError

if TYPE_CHECKING:
    from offersync.domain.ports.index import IndexStore

log = getLogger(__name__)

LAST_BLOCK_FIELD = "lastBlock"


@dataclass(slots=True)
class CheckpointStore:
    """Single checkpoint document at a well-known id within a dedicated collection."""

    index: IndexStore
    collection: str = "block"
    document_id: str = "1"

    async def read(self) -> int | None:
        """Return the persisted block, or None on first run."""

        try:
            source = await self.index.get(self.collection, self.document_id)
        except Exception as exc:
            raise CheckpointError(
                f"Could not read checkpoint {self.collection}/{self.document_id}"
            ) from exc
        if source is None:
            return None
        value = source.get(LAST_BLOCK_FIELD)
        if value is None:
            return None
        if not isinstance(value, int | str):
            raise CheckpointError(f"Malformed checkpoint value: {value!r}")
        try:
            return int(value)
        except ValueError as exc:
            raise CheckpointError(f"Malformed checkpoint value: {value!r}") from exc

    async def write(self, block: int) -> None:
        try:
            await self.index.upsert(
                self.collection,
                self.document_id,
                {LAST_BLOCK_FIELD: block},
                refresh=True,
            )
        except Exception as exc:
            raise CheckpointError(f"Could not persist checkpoint {block}") from exc


@dataclass(slots=True)
class CheckpointTracker:
    """Hold the checkpoint in memory and persist every forward move.

    Only one logical task may call ``advance``; the tracker does not lock.
    """

    store: CheckpointStore
    current: int | None = None
    _loaded: bool = False

    async def load(self) -> int | None:
        self.current = await self.store.read()
        self._loaded = True
        return self.current

    async def advance(self, block: int | None) -> bool:
        """Persist ``block`` if it is newer than the held value; lower or equal is a no-op."""

        if not self._loaded:
            raise CheckpointError("Checkpoint advanced before it was loaded")
        if block is None:
            return False
        if self.current is not None and block <= self.current:
            return False
        await self.store.write(block)
        self.current = block
        log.debug("Checkpoint advanced to block %s", block)
        return True
