"""Scriptable ledger source and event builders."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from offersync.domain.model import OfferCreated, OfferSnapshot, ReplayWindow
from offersync.domain.ports.ledger import LiveLedgerSource

if TYPE_CHECKING:
    from offersync.domain.model import EventKind, LedgerEvent
    from offersync.domain.ports.ledger import EventHandler


def make_created(
    offer: str,
    *,
    block: int | None = None,
    price: int = 100,
    title: str = "Lamp",
    seller: str = "0xseller",
) -> OfferCreated:
    return OfferCreated(
        offer=offer,
        block=block,
        seller=seller,
        title=title,
        price=price,
        category="home",
        ships_from="DE",
        attached_files="ipfs://files",
    )


def make_snapshot(
    offer: str,
    *,
    price: int = 100,
    title: str = "Lamp",
    bought: bool = False,
    buyer: str | None = None,
) -> OfferSnapshot:
    return OfferSnapshot(
        offer=offer,
        seller="0xseller",
        title=title,
        price=price,
        category="home",
        ships_from="DE",
        attached_files="ipfs://files",
        bought=bought,
        buyer=buyer,
    )


class FakeSubscription:
    def __init__(self, ledger: FakeLedger, kind: EventKind) -> None:
        self._ledger = ledger
        self._kind = kind
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        self._ledger.handlers.pop(self._kind, None)


class FakeLedger(LiveLedgerSource):
    """Serves a fixed replay window and lets tests push live events by hand."""

    def __init__(
        self,
        window: ReplayWindow | None = None,
        *,
        snapshots: dict[str, OfferSnapshot] | None = None,
        replay_error: Exception | None = None,
    ) -> None:
        self.window = window or ReplayWindow()
        self.snapshots = dict(snapshots or {})
        self.replay_error = replay_error
        self.replay_calls: list[int | None] = []
        self.dump_calls: list[str] = []
        self.handlers: dict[EventKind, tuple[EventHandler, EventHandler]] = {}
        self.subscribe_counts: defaultdict[EventKind, int] = defaultdict(int)
        self.live_script: list[tuple[LedgerEvent, bool]] = []
        self.closed = False

    async def replay(self, from_block: int | None = None) -> ReplayWindow:
        self.replay_calls.append(from_block)
        if self.replay_error is not None:
            raise self.replay_error
        return self.window

    def subscribe(
        self,
        kind: EventKind,
        on_apply: EventHandler,
        on_revert: EventHandler,
    ) -> FakeSubscription:
        self.handlers[kind] = (on_apply, on_revert)
        self.subscribe_counts[kind] += 1
        return FakeSubscription(self, kind)

    async def dump(self, offer_id: str) -> OfferSnapshot | None:
        self.dump_calls.append(offer_id)
        return self.snapshots.get(offer_id)

    async def emit(self, event: LedgerEvent) -> None:
        on_apply, _ = self.handlers[event.kind]
        await on_apply(event)

    async def retract(self, event: LedgerEvent) -> None:
        _, on_revert = self.handlers[event.kind]
        await on_revert(event)

    async def listen(self) -> None:
        # Plays the scripted events, then behaves like a source that was closed.
        for event, removed in self.live_script:
            if removed:
                await self.retract(event)
            else:
                await self.emit(event)

    async def close(self) -> None:
        self.closed = True
