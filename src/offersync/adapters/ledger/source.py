"""Ledger source backed by the gateway's resync endpoint and polled event feed."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from offersync.domain.errors import LedgerUnavailableError

from .client import LedgerGatewayClient
from .translator import parse_live_event, parse_resync, parse_snapshot

if TYPE_CHECKING:
    from offersync.config.ledger import LedgerConfig
    from offersync.domain.model import EventKind, OfferSnapshot, ReplayWindow
    from offersync.domain.ports.ledger import EventHandler

    from .schema import LiveEventPayload

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _HandlerPair:
    on_apply: EventHandler
    on_revert: EventHandler


class _Subscription:
    def __init__(self, source: PollingLedgerSource, kind: EventKind, pair: _HandlerPair) -> None:
        self._source = source
        self._kind = kind
        self._pair = pair
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._source._detach(self._kind, self._pair)  # noqa: SLF001


class PollingLedgerSource:
    """Implements ``LedgerSource`` by polling the gateway for new and retracted events.

    ``replay`` remembers where the window ended so the first poll resumes right
    after it. Feed entries are dispatched one at a time in feed order; an entry
    flagged ``removed`` goes to the revert handler of its kind.
    """

    def __init__(self, client: LedgerGatewayClient, *, poll_interval: float) -> None:
        self._client = client
        self._poll_interval = poll_interval
        self._handlers: defaultdict[EventKind, list[_HandlerPair]] = defaultdict(list)
        self._next_block: int | None = None
        self._cursor: str | None = None
        self._closed = asyncio.Event()

    @classmethod
    def from_config(cls, config: LedgerConfig) -> PollingLedgerSource:
        return cls(LedgerGatewayClient(config), poll_interval=config.poll_interval_seconds)

    async def replay(self, from_block: int | None = None) -> ReplayWindow:
        response = await self._client.fetch_resync(from_block)
        window = parse_resync(response)
        log.info(
            "Ledger replay window: %s event(s) up to block %s",
            window.event_count,
            window.reached_block,
        )
        if window.reached_block is not None:
            self._next_block = window.reached_block + 1
        elif from_block is not None:
            self._next_block = from_block
        self._cursor = None
        return window

    def subscribe(
        self,
        kind: EventKind,
        on_apply: EventHandler,
        on_revert: EventHandler,
    ) -> _Subscription:
        pair = _HandlerPair(on_apply, on_revert)
        self._handlers[kind].append(pair)
        return _Subscription(self, kind, pair)

    def _detach(self, kind: EventKind, pair: _HandlerPair) -> None:
        handlers = self._handlers.get(kind)
        if handlers and pair in handlers:
            handlers.remove(pair)

    async def dump(self, offer_id: str) -> OfferSnapshot | None:
        payload = await self._client.fetch_offer(offer_id)
        if payload is None:
            return None
        return parse_snapshot(payload)

    async def poll_once(self) -> int:
        """Fetch one page of the feed and dispatch it; returns the number of entries seen."""

        feed = await self._client.fetch_events(from_block=self._next_block, cursor=self._cursor)
        for payload in feed.events:
            await self._dispatch(payload)
            if payload.block_number is not None and not payload.removed:
                self._next_block = max(self._next_block or 0, payload.block_number + 1)
        if feed.cursor is not None:
            self._cursor = feed.cursor
        return len(feed.events)

    async def listen(self) -> None:
        """Poll until ``close`` is called. Errors raised by handlers propagate."""

        while not self._closed.is_set():
            try:
                seen = await self.poll_once()
            except LedgerUnavailableError as exc:
                log.warning("Polling the ledger failed, retrying: %s", exc)
                seen = 0
            if seen == 0:
                await self._wait()

    async def close(self) -> None:
        self._closed.set()
        await self._client.aclose()

    async def _wait(self) -> None:
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=self._poll_interval)
        except TimeoutError:
            pass

    async def _dispatch(self, payload: LiveEventPayload) -> None:
        try:
            event = parse_live_event(payload)
        except ValidationError:
            log.exception("Error parsing ledger event for offer %s", payload.offer)
            return

        # Copy: a handler may cancel its own subscription.
        for pair in list(self._handlers.get(event.kind, ())):
            handler = pair.on_revert if payload.removed else pair.on_apply
            await handler(event)
