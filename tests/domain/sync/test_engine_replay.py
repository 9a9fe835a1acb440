from __future__ import annotations

import asyncio

import pytest

from offersync.domain.codec import OfferCodec
from offersync.domain.errors import LedgerUnavailableError, ReplayError, SyncError
from offersync.domain.model import (
    MutationOp,
    OfferBought,
    OfferBuyerRejected,
    OfferCancelled,
    OfferChanged,
    OfferCompleted,
    ReplayWindow,
)
from offersync.domain.sync import FailureKind, ReconciliationEngine, ReplayPhase, SyncState
from tests.helpers.index_store import InMemoryIndexStore
from tests.helpers.ledger import FakeLedger, make_created


def _engine(ledger: FakeLedger, index_store: InMemoryIndexStore) -> ReconciliationEngine:
    return ReconciliationEngine(
        ledger=ledger, index=index_store, codec=OfferCodec(price_decimals=2)
    )


def _fresh_start_window() -> ReplayWindow:
    return ReplayWindow(
        created=(make_created("A", block=1), make_created("B", block=2)),
        changed=(OfferChanged(offer="A", block=3, price=200),),
        bought=(OfferBought(offer="B", block=4, buyer="0xbuyer"),),
        completed=(OfferCompleted(offer="A", block=5),),
        reached_block=5,
    )


def test_fresh_start_replays_every_phase(index_store: InMemoryIndexStore) -> None:
    ledger = FakeLedger(_fresh_start_window())
    engine = _engine(ledger, index_store)

    summary = asyncio.run(engine.start(replay_only=True))

    assert ledger.replay_calls == [None]
    assert index_store.document("offers", "A") is None
    document_b = index_store.document("offers", "B")
    assert document_b is not None
    assert document_b["bought"] is True
    assert document_b["buyer"] == "0xbuyer"
    assert document_b["price"] == 1.0
    assert index_store.document("block", "1") == {"lastBlock": 5}
    assert summary.reached_block == 5
    assert summary.checkpoint == 5
    assert engine.checkpoint == 5
    assert engine.state is SyncState.STOPPED


def test_phases_run_in_fixed_order(index_store: InMemoryIndexStore) -> None:
    window = ReplayWindow(
        created=(make_created("A", block=1), make_created("B", block=1)),
        changed=(OfferChanged(offer="A", block=2, title="Desk lamp"),),
        bought=(OfferBought(offer="B", block=3, buyer="0xbuyer"),),
        buyer_rejected=(OfferBuyerRejected(offer="A", block=4),),
        cancelled=(OfferCancelled(offer="C", block=5),),
        reached_block=5,
    )

    asyncio.run(_engine(FakeLedger(window), index_store).start(replay_only=True))

    calls = [[(mutation.op, mutation.key) for mutation in call] for call in index_store.bulk_calls]
    assert calls == [
        [(MutationOp.UPSERT, "A"), (MutationOp.UPSERT, "B")],
        [(MutationOp.PATCH, "A")],
        [(MutationOp.PATCH, "B")],
        [(MutationOp.PATCH, "A")],
        [(MutationOp.DELETE, "C")],
    ]


def test_replay_is_idempotent(index_store: InMemoryIndexStore) -> None:
    window = _fresh_start_window()

    asyncio.run(_engine(FakeLedger(window), index_store).start(replay_only=True))
    first = {key: dict(doc) for key, doc in index_store.collections["offers"].items()}
    second_ledger = FakeLedger(window)
    asyncio.run(_engine(second_ledger, index_store).start(replay_only=True))

    assert second_ledger.replay_calls == [5]
    assert index_store.collections["offers"] == first
    assert index_store.document("block", "1") == {"lastBlock": 5}


def test_deletion_wins_over_changes_in_same_window(index_store: InMemoryIndexStore) -> None:
    window = ReplayWindow(
        created=(make_created("A", block=1),),
        changed=(OfferChanged(offer="A", block=2, title="Renamed"),),
        bought=(OfferBought(offer="A", block=3, buyer="0xbuyer"),),
        cancelled=(OfferCancelled(offer="A", block=4),),
        reached_block=4,
    )

    engine = _engine(FakeLedger(window), index_store)
    summary = asyncio.run(engine.start(replay_only=True))

    assert index_store.document("offers", "A") is None
    assert summary.applied[ReplayPhase.CHANGED] == 0
    assert summary.applied[ReplayPhase.BOUGHT] == 0
    assert summary.applied[ReplayPhase.REMOVED] == 1


def test_changes_for_one_offer_are_merged_in_block_order(
    index_store: InMemoryIndexStore,
) -> None:
    window = ReplayWindow(
        created=(make_created("A", block=1),),
        changed=(
            OfferChanged(offer="A", block=3, title="Third"),
            OfferChanged(offer="A", block=2, title="Second", price=500),
        ),
        reached_block=3,
    )

    asyncio.run(_engine(FakeLedger(window), index_store).start(replay_only=True))

    document = index_store.document("offers", "A")
    assert document is not None
    assert document["title"] == "Third"
    assert document["price"] == 5.0
    assert len(index_store.bulk_calls[1]) == 1


def test_bought_then_rejected_ends_unbought(index_store: InMemoryIndexStore) -> None:
    window = ReplayWindow(
        created=(make_created("A", block=1),),
        bought=(OfferBought(offer="A", block=2, buyer="0xbuyer"),),
        buyer_rejected=(OfferBuyerRejected(offer="A", block=3, buyer="0xbuyer"),),
        reached_block=3,
    )

    asyncio.run(_engine(FakeLedger(window), index_store).start(replay_only=True))

    document = index_store.document("offers", "A")
    assert document is not None
    assert (document["bought"], document["buyer"]) == (False, None)


def test_empty_window_writes_nothing_but_the_checkpoint(
    index_store: InMemoryIndexStore,
) -> None:
    engine = _engine(FakeLedger(ReplayWindow(reached_block=9)), index_store)

    summary = asyncio.run(engine.start(replay_only=True))

    assert index_store.bulk_calls == []
    assert summary.total == 0
    assert index_store.document("block", "1") == {"lastBlock": 9}


def test_replay_resumes_from_checkpoint(index_store: InMemoryIndexStore) -> None:
    index_store.seed("block", "1", {"lastBlock": 7})
    ledger = FakeLedger(ReplayWindow(reached_block=7))

    asyncio.run(_engine(ledger, index_store).start(replay_only=True))

    assert ledger.replay_calls == [7]
    assert index_store.document("block", "1") == {"lastBlock": 7}


def test_partial_bulk_failure_is_fatal_and_keeps_checkpoint(
    index_store: InMemoryIndexStore,
) -> None:
    window = ReplayWindow(
        created=(make_created("A", block=1), make_created("B", block=2)),
        reached_block=2,
    )
    index_store.fail_bulk_item("B", 429)
    engine = _engine(FakeLedger(window), index_store)

    with pytest.raises(ReplayError) as exc_info:
        asyncio.run(engine.start())

    assert exc_info.value.phase is ReplayPhase.CREATED
    (failure,) = exc_info.value.failures
    assert failure.mutation.key == "B"
    assert failure.kind is FailureKind.TRANSIENT
    assert engine.state is SyncState.FAILED
    assert index_store.document("offers", "A") is not None
    assert index_store.document("block", "1") is None

    retry = _engine(FakeLedger(window), index_store)
    asyncio.run(retry.start(replay_only=True))

    assert index_store.document("offers", "B") is not None
    assert index_store.document("block", "1") == {"lastBlock": 2}


def test_unreachable_ledger_fails_the_session(index_store: InMemoryIndexStore) -> None:
    engine = _engine(FakeLedger(replay_error=ConnectionError("refused")), index_store)

    with pytest.raises(LedgerUnavailableError):
        asyncio.run(engine.start())

    assert engine.state is SyncState.FAILED


def test_unreadable_checkpoint_fails_the_session(index_store: InMemoryIndexStore) -> None:
    index_store.failing_collections.add("block")
    ledger = FakeLedger()
    engine = _engine(ledger, index_store)

    with pytest.raises(SyncError):
        asyncio.run(engine.start())

    assert ledger.replay_calls == []
    assert engine.state is SyncState.FAILED


def test_engine_cannot_start_twice(index_store: InMemoryIndexStore) -> None:
    engine = _engine(FakeLedger(), index_store)
    asyncio.run(engine.start(replay_only=True))

    with pytest.raises(SyncError, match="cannot start"):
        asyncio.run(engine.start())


def test_replay_only_does_not_subscribe(index_store: InMemoryIndexStore) -> None:
    ledger = FakeLedger()

    asyncio.run(_engine(ledger, index_store).start(replay_only=True))

    assert ledger.handlers == {}
