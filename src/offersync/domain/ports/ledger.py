"""Port for the ledger that emits offer lifecycle events."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from offersync.domain.model import EventKind, LedgerEvent, OfferSnapshot, ReplayWindow

EventHandler = Callable[["LedgerEvent"], Awaitable[None]]


@runtime_checkable
class Subscription(Protocol):
    """Handle returned by ``LedgerSource.subscribe``."""

    def cancel(self) -> None: ...


@runtime_checkable
class LedgerSource(Protocol):
    """Replay, live subscription and point-in-time dump of offers."""

    async def replay(self, from_block: int | None = None) -> ReplayWindow:
        """Return every event from ``from_block`` (or genesis) up to the current head."""
        ...

    def subscribe(
        self,
        kind: EventKind,
        on_apply: EventHandler,
        on_revert: EventHandler,
    ) -> Subscription:
        """Register handlers for new and retracted events of one kind."""
        ...

    async def dump(self, offer_id: str) -> OfferSnapshot | None:
        """Return the current authoritative state of an offer, or None if it no longer exists."""
        ...


@runtime_checkable
class LiveLedgerSource(LedgerSource, Protocol):
    """A ledger source that delivers subscribed events while ``listen`` runs."""

    async def listen(self) -> None:
        """Deliver events to subscribers until ``close`` is called."""
        ...

    async def close(self) -> None: ...
