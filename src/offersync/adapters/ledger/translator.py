"""Translate ledger gateway payloads into domain events."""

from __future__ import annotations

from typing import TYPE_CHECKING

from offersync.domain.model import (
    EventKind,
    LedgerEvent,
    OfferBought,
    OfferBuyerRejected,
    OfferCancelled,
    OfferChanged,
    OfferCompleted,
    OfferCreated,
    OfferSnapshot,
    ReplayWindow,
)

from .schema import (
    BoughtPayload,
    BuyerRejectedPayload,
    ChangedPayload,
    CreatedPayload,
    LiveEventPayload,
    OfferDumpPayload,
    ResyncResponse,
)

if TYPE_CHECKING:
    from .schema import WireEventKind

WIRE_KINDS: dict[WireEventKind, EventKind] = {
    "created": EventKind.CREATED,
    "changed": EventKind.CHANGED,
    "bought": EventKind.BOUGHT,
    "buyerRejected": EventKind.BUYER_REJECTED,
    "completed": EventKind.COMPLETED,
    "cancelled": EventKind.CANCELLED,
}


def parse_created(payload: CreatedPayload) -> OfferCreated:
    return OfferCreated(
        offer=payload.offer,
        block=payload.block_number,
        seller=payload.seller,
        title=payload.title,
        price=payload.price,
        category=payload.category,
        ships_from=payload.ships_from,
        attached_files=payload.attached_files,
    )


def parse_changed(payload: ChangedPayload) -> OfferChanged:
    return OfferChanged(
        offer=payload.offer,
        block=payload.block_number,
        title=payload.title,
        price=payload.price,
        category=payload.category,
        ships_from=payload.ships_from,
        attached_files=payload.attached_files,
    )


def parse_resync(response: ResyncResponse) -> ReplayWindow:
    return ReplayWindow(
        created=tuple(parse_created(item) for item in response.created),
        changed=tuple(parse_changed(item) for item in response.changed),
        bought=tuple(
            OfferBought(offer=item.offer, block=item.block_number, buyer=item.buyer)
            for item in response.bought
        ),
        buyer_rejected=tuple(
            OfferBuyerRejected(offer=item.offer, block=item.block_number, buyer=item.buyer)
            for item in response.buyer_rejected
        ),
        completed=tuple(
            OfferCompleted(offer=item.offer, block=item.block_number) for item in response.completed
        ),
        cancelled=tuple(
            OfferCancelled(offer=item.offer, block=item.block_number) for item in response.cancelled
        ),
        reached_block=response.synced_to_block,
    )


def parse_live_event(payload: LiveEventPayload) -> LedgerEvent:
    """Build the typed event for one feed entry; variant fields are validated per kind."""

    kind = WIRE_KINDS[payload.kind]
    data = payload.model_dump(by_alias=True, exclude={"kind", "removed"}, exclude_none=True)
    match kind:
        case EventKind.CREATED:
            return parse_created(CreatedPayload.model_validate(data))
        case EventKind.CHANGED:
            return parse_changed(ChangedPayload.model_validate(data))
        case EventKind.BOUGHT:
            bought = BoughtPayload.model_validate(data)
            return OfferBought(offer=bought.offer, block=bought.block_number, buyer=bought.buyer)
        case EventKind.BUYER_REJECTED:
            rejected = BuyerRejectedPayload.model_validate(data)
            return OfferBuyerRejected(
                offer=rejected.offer, block=rejected.block_number, buyer=rejected.buyer
            )
        case EventKind.COMPLETED:
            return OfferCompleted(offer=payload.offer, block=payload.block_number)
        case EventKind.CANCELLED:
            return OfferCancelled(offer=payload.offer, block=payload.block_number)


def parse_snapshot(payload: OfferDumpPayload) -> OfferSnapshot:
    return OfferSnapshot(
        offer=payload.offer,
        seller=payload.seller,
        title=payload.title,
        price=payload.price,
        category=payload.category,
        ships_from=payload.ships_from,
        attached_files=payload.attached_files,
        bought=payload.bought,
        buyer=payload.buyer,
    )
