"""Reconciliation engine keeping the offer index in step with the ledger.

A session runs through ``IDLE -> BOOTSTRAPPING -> REPLAYING -> LIVE_SYNCING``.
Bootstrapping reads the checkpoint, replaying applies the historical window in
five bulk batches (created, changed, bought, buyer rejected, removed), and live
syncing applies each subscribed event as a single-document write followed by a
checkpoint advance. Any error before live syncing is fatal and leaves the
engine ``FAILED``; live errors are isolated per event unless the session is
configured to treat them as fatal.

Ordering caveat: live events of different kinds may arrive on independent
channels, so a Changed and a Completed for the same offer can be applied out of
ledger order. The last applied write wins; there is no conflict detection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any

from offersync.domain.codec import OfferCodec
from offersync.domain.errors import CheckpointError, LedgerUnavailableError, ReplayError, SyncError
from offersync.domain.model import EventKind, IndexMutation, LedgerEvent

from .batch import BatchWriter
from .checkpoint import CheckpointStore, CheckpointTracker

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from offersync.config import Settings
    from offersync.domain.model import (
        OfferBought,
        OfferBuyerRejected,
        OfferChanged,
        OfferCreated,
        OfferPatch,
        ReplayWindow,
    )
    from offersync.domain.ports.index import IndexStore
    from offersync.domain.ports.ledger import LedgerSource, Subscription

log = getLogger(__name__)

DEFAULT_OFFERS_COLLECTION = "offers"


class SyncState(StrEnum):
    IDLE = "idle"
    BOOTSTRAPPING = "bootstrapping"
    REPLAYING = "replaying"
    LIVE_SYNCING = "live_syncing"
    STOPPED = "stopped"
    FAILED = "failed"


class ReplayPhase(StrEnum):
    CREATED = "created"
    CHANGED = "changed"
    BOUGHT = "bought"
    BUYER_REJECTED = "buyer_rejected"
    REMOVED = "removed"


# Documents must exist before patches land on them, and deletions go last so an
# interim patch cannot resurrect an offer removed within the same window.
REPLAY_ORDER: tuple[ReplayPhase, ...] = (
    ReplayPhase.CREATED,
    ReplayPhase.CHANGED,
    ReplayPhase.BOUGHT,
    ReplayPhase.BUYER_REJECTED,
    ReplayPhase.REMOVED,
)


@dataclass(slots=True)
class ReplaySummary:
    from_block: int | None
    reached_block: int | None
    checkpoint: int | None
    applied: dict[ReplayPhase, int] = field(default_factory=dict[ReplayPhase, int])

    @property
    def total(self) -> int:
        return sum(self.applied.values())


@dataclass(slots=True)
class LiveStats:
    applied: int = 0
    reverted: int = 0
    failed: int = 0
    unrecovered: int = 0


type _Handler = Callable[[Any], Awaitable[None]]


class ReconciliationEngine:
    """Orchestrate checkpoint, replay and live application for one sync session."""

    def __init__(
        self,
        *,
        ledger: LedgerSource,
        index: IndexStore,
        codec: OfferCodec | None = None,
        checkpoint: CheckpointTracker | None = None,
        offers_collection: str = DEFAULT_OFFERS_COLLECTION,
        live_errors_fatal: bool = False,
    ) -> None:
        self._ledger = ledger
        self._index = index
        self._codec = codec or OfferCodec()
        self._checkpoint = checkpoint or CheckpointTracker(CheckpointStore(index))
        self._writer = BatchWriter(index)
        self._offers = offers_collection
        self._live_errors_fatal = live_errors_fatal
        self._subscriptions: list[Subscription] = []
        self.state = SyncState.IDLE
        self.stats = LiveStats()

        self._apply_handlers: dict[EventKind, _Handler] = {
            EventKind.CREATED: self._create_offer,
            EventKind.CHANGED: self._update_offer,
            EventKind.BOUGHT: self._set_bought,
            EventKind.BUYER_REJECTED: self._unset_bought,
            EventKind.COMPLETED: self._delete_offer,
            EventKind.CANCELLED: self._delete_offer,
        }
        self._revert_handlers: dict[EventKind, _Handler] = {
            EventKind.CREATED: self._delete_offer,
            EventKind.CHANGED: self._restore_from_dump,
            EventKind.BOUGHT: self._unset_bought,
            EventKind.BUYER_REJECTED: self._restore_bought,
            EventKind.COMPLETED: self._restore_from_dump,
            EventKind.CANCELLED: self._restore_from_dump,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        ledger: LedgerSource,
        index: IndexStore,
    ) -> ReconciliationEngine:
        store = CheckpointStore(
            index,
            collection=settings.index.checkpoint_collection,
            document_id=settings.index.checkpoint_id,
        )
        return cls(
            ledger=ledger,
            index=index,
            codec=OfferCodec(price_decimals=settings.ledger.price_decimals),
            checkpoint=CheckpointTracker(store),
            offers_collection=settings.index.offers_collection,
            live_errors_fatal=settings.sync.live_errors_fatal,
        )

    @property
    def checkpoint(self) -> int | None:
        return self._checkpoint.current

    async def start(self, *, replay_only: bool = False) -> ReplaySummary:
        """Bootstrap, replay to the ledger head and (unless ``replay_only``) go live."""

        if self.state is not SyncState.IDLE:
            raise SyncError(f"Engine cannot start from state {self.state}")

        try:
            self.state = SyncState.BOOTSTRAPPING
            last_block = await self._checkpoint.load()
            log.info("Last block: %s", last_block)
            summary = await self._replay()
        except SyncError:
            self.state = SyncState.FAILED
            raise
        except Exception as exc:
            failed_while = self.state
            self.state = SyncState.FAILED
            raise SyncError(f"Synchronization failed while {failed_while}") from exc

        log.info(
            "Resync finished: applied=%s, reached=%s, checkpoint=%s",
            summary.total,
            summary.reached_block,
            summary.checkpoint,
        )
        if replay_only:
            self.state = SyncState.STOPPED
            return summary

        self._subscribe_all()
        self.state = SyncState.LIVE_SYNCING
        return summary

    def stop(self) -> None:
        """Deregister live handlers; an event already being handled finishes normally."""

        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        if self.state is SyncState.LIVE_SYNCING:
            self.state = SyncState.STOPPED
        log.info("Live synchronization stopped: %s", self.stats)

    # -- replay ---------------------------------------------------------------

    async def _replay(self) -> ReplaySummary:
        self.state = SyncState.REPLAYING
        from_block = self._checkpoint.current
        log.info("Requesting replay from %s", "genesis" if from_block is None else from_block)
        try:
            window = await self._ledger.replay(from_block)
        except SyncError:
            raise
        except Exception as exc:
            raise LedgerUnavailableError("Ledger replay request failed") from exc

        summary = ReplaySummary(
            from_block=from_block,
            reached_block=window.reached_block,
            checkpoint=from_block,
        )
        for phase, mutations in self.plan_replay(window):
            log.info("RESYNC %s: %s mutation(s)", phase, len(mutations))
            result = await self._writer.apply_batch(mutations)
            if result.has_errors:
                for failure in result.failed:
                    log.error("Bulk item failed during %s replay: %s", phase, failure.describe())
                raise ReplayError(phase, result.failed)
            summary.applied[phase] = len(result.succeeded)

        await self._checkpoint.advance(window.reached_block)
        summary.checkpoint = self._checkpoint.current
        return summary

    def plan_replay(self, window: ReplayWindow) -> list[tuple[ReplayPhase, list[IndexMutation]]]:
        """Turn a replay window into one mutation batch per phase, at most one per offer.

        Patches for offers removed within the same window are dropped: the
        deletion wins anyway, and on a repeated replay the document may already
        be gone, which would turn a harmless patch into a failed bulk item.
        """

        removed = dict.fromkeys(event.offer for event in _in_ledger_order(window.removed))

        created = {
            event.offer: self._codec.from_created(event).to_source()
            for event in _in_ledger_order(window.created)
        }

        patches: dict[str, OfferPatch] = {}
        for event in _in_ledger_order(window.changed):
            if event.offer in removed:
                continue
            patch = self._changed_patch(event)
            if patch is None:
                continue
            previous = patches.get(event.offer)
            patches[event.offer] = patch if previous is None else previous.merged_with(patch)

        bought = {
            event.offer: self._codec.bought_patch(event.offer, event.buyer)
            for event in _in_ledger_order(window.bought)
            if event.offer not in removed
        }
        rejected = {
            event.offer: self._codec.unbought_patch(event.offer)
            for event in _in_ledger_order(window.buyer_rejected)
            if event.offer not in removed
        }

        collection = self._offers
        return [
            (
                ReplayPhase.CREATED,
                [IndexMutation.upsert(collection, key, doc) for key, doc in created.items()],
            ),
            (
                ReplayPhase.CHANGED,
                [IndexMutation.patch(collection, key, p.to_source()) for key, p in patches.items()],
            ),
            (
                ReplayPhase.BOUGHT,
                [IndexMutation.patch(collection, key, p.to_source()) for key, p in bought.items()],
            ),
            (
                ReplayPhase.BUYER_REJECTED,
                [
                    IndexMutation.patch(collection, key, p.to_source())
                    for key, p in rejected.items()
                ],
            ),
            (
                ReplayPhase.REMOVED,
                [IndexMutation.delete(collection, key) for key in removed],
            ),
        ]

    # -- live -----------------------------------------------------------------

    def _subscribe_all(self) -> None:
        for kind in EventKind:
            self._subscriptions.append(
                self._ledger.subscribe(kind, self._on_live_event, self._on_live_revert)
            )

    async def apply_event(self, event: LedgerEvent) -> None:
        """Apply one live event to the index, then advance the checkpoint to its block."""

        await self._apply_handlers[event.kind](event)
        await self._checkpoint.advance(event.block)

    async def revert_event(self, event: LedgerEvent) -> None:
        """Compensate for a retracted event; the checkpoint does not move."""

        await self._revert_handlers[event.kind](event)

    async def _on_live_event(self, event: LedgerEvent) -> None:
        log.info("CALLBACK %s: offer=%s block=%s", event.kind, event.offer, event.block)
        if await self._guarded(self.apply_event, event, action="apply"):
            self.stats.applied += 1

    async def _on_live_revert(self, event: LedgerEvent) -> None:
        log.info("REVERT %s: offer=%s block=%s", event.kind, event.offer, event.block)
        if await self._guarded(self.revert_event, event, action="revert"):
            self.stats.reverted += 1

    async def _guarded(
        self,
        handler: Callable[[LedgerEvent], Awaitable[None]],
        event: LedgerEvent,
        *,
        action: str,
    ) -> bool:
        try:
            await handler(event)
        except CheckpointError:
            self.state = SyncState.FAILED
            log.exception(
                "Checkpoint write failed on %s of %s for offer %s", action, event.kind, event.offer
            )
            raise
        except Exception as exc:
            self.stats.failed += 1
            log.exception(
                "Live %s of %s failed: offer=%s block=%s",
                action,
                event.kind,
                event.offer,
                event.block,
            )
            if self._live_errors_fatal:
                self.state = SyncState.FAILED
                raise SyncError(
                    f"Live {action} of {event.kind} failed for offer {event.offer}"
                ) from exc
            return False
        return True

    # -- single-document mutations ------------------------------------------------

    async def _create_offer(self, event: OfferCreated) -> None:
        document = self._codec.from_created(event)
        await self._index.upsert(self._offers, event.offer, document.to_source())

    async def _update_offer(self, event: OfferChanged) -> None:
        patch = self._changed_patch(event)
        if patch is None:
            return
        await self._index.update(self._offers, event.offer, patch.to_source())

    async def _set_bought(self, event: OfferBought) -> None:
        patch = self._codec.bought_patch(event.offer, event.buyer)
        await self._index.update(self._offers, event.offer, patch.to_source())

    async def _restore_bought(self, event: OfferBuyerRejected) -> None:
        patch = self._codec.bought_patch(event.offer, event.buyer)
        await self._index.update(self._offers, event.offer, patch.to_source())

    async def _unset_bought(self, event: LedgerEvent) -> None:
        patch = self._codec.unbought_patch(event.offer)
        await self._index.update(self._offers, event.offer, patch.to_source())

    async def _delete_offer(self, event: LedgerEvent) -> None:
        await self._index.delete(self._offers, event.offer)

    async def _restore_from_dump(self, event: LedgerEvent) -> None:
        # A retracted event carries no trustworthy data, so re-read the ledger.
        snapshot = await self._ledger.dump(event.offer)
        if snapshot is None:
            self.stats.unrecovered += 1
            log.warning("Failed to revert offer %s: ledger has no current state", event.offer)
            return
        document = self._codec.from_snapshot(snapshot)
        await self._index.upsert(self._offers, document.offer, document.to_source(), refresh=True)

    def _changed_patch(self, event: OfferChanged) -> OfferPatch | None:
        try:
            return self._codec.from_changed(event)
        except ValueError:
            log.warning(
                "Ignoring change event without fields: offer=%s block=%s", event.offer, event.block
            )
            return None


def _in_ledger_order[TEvent: LedgerEvent](events: Iterable[TEvent]) -> Sequence[TEvent]:
    """Sort by block when every event has one; otherwise keep delivery order."""

    materialized = list(events)
    if any(event.block is None for event in materialized):
        return materialized
    return sorted(materialized, key=lambda event: event.block or 0)
