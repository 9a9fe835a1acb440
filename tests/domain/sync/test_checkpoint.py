from __future__ import annotations

import asyncio

import pytest

from offersync.domain.errors import CheckpointError
from offersync.domain.sync import CheckpointStore, CheckpointTracker
from tests.helpers.index_store import InMemoryIndexStore


def test_read_returns_none_before_first_write(index_store: InMemoryIndexStore) -> None:
    store = CheckpointStore(index_store)

    assert asyncio.run(store.read()) is None


def test_write_stores_last_block_document(index_store: InMemoryIndexStore) -> None:
    store = CheckpointStore(index_store)

    asyncio.run(store.write(42))

    assert index_store.document("block", "1") == {"lastBlock": 42}
    assert ("block", "1") in index_store.refreshed_upserts
    assert asyncio.run(store.read()) == 42


def test_read_accepts_numeric_strings(index_store: InMemoryIndexStore) -> None:
    index_store.seed("block", "1", {"lastBlock": "17"})

    assert asyncio.run(CheckpointStore(index_store).read()) == 17


def test_malformed_checkpoint_is_an_error(index_store: InMemoryIndexStore) -> None:
    index_store.seed("block", "1", {"lastBlock": "seventeen"})

    with pytest.raises(CheckpointError, match="Malformed"):
        asyncio.run(CheckpointStore(index_store).read())


def test_unreachable_store_raises_checkpoint_error(index_store: InMemoryIndexStore) -> None:
    index_store.failing_collections.add("block")
    store = CheckpointStore(index_store)

    with pytest.raises(CheckpointError):
        asyncio.run(store.read())
    with pytest.raises(CheckpointError):
        asyncio.run(store.write(3))


def test_tracker_only_moves_forward(index_store: InMemoryIndexStore) -> None:
    tracker = CheckpointTracker(CheckpointStore(index_store))

    async def scenario() -> list[bool]:
        await tracker.load()
        return [
            await tracker.advance(10),
            await tracker.advance(5),
            await tracker.advance(10),
            await tracker.advance(None),
            await tracker.advance(11),
        ]

    assert asyncio.run(scenario()) == [True, False, False, False, True]
    assert tracker.current == 11
    assert index_store.document("block", "1") == {"lastBlock": 11}


def test_tracker_resumes_from_persisted_value(index_store: InMemoryIndexStore) -> None:
    index_store.seed("block", "1", {"lastBlock": 30})
    tracker = CheckpointTracker(CheckpointStore(index_store))

    async def scenario() -> bool:
        await tracker.load()
        return await tracker.advance(29)

    assert asyncio.run(scenario()) is False
    assert tracker.current == 30


def test_tracker_must_be_loaded_before_advancing(index_store: InMemoryIndexStore) -> None:
    tracker = CheckpointTracker(CheckpointStore(index_store))

    with pytest.raises(CheckpointError, match="before it was loaded"):
        asyncio.run(tracker.advance(1))
