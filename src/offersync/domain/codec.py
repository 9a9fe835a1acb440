"""Translate ledger events into index documents and patches.

Every function here is pure: the codec never touches the index, the ledger, or
engine state. Prices are converted exactly once, from the ledger's native
integer unit into the index's canonical decimal unit, at the Created/Changed
(and snapshot) boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from .model import OfferDocument, OfferPatch

if TYPE_CHECKING:
    from .model import OfferChanged, OfferCreated, OfferSnapshot

DEFAULT_PRICE_DECIMALS = 18

_CHANGED_FIELDS = ("title", "price", "category", "ships_from", "attached_files")


@dataclass(frozen=True, slots=True)
class OfferCodec:
    price_decimals: int = DEFAULT_PRICE_DECIMALS

    def __post_init__(self) -> None:
        if self.price_decimals < 0:
            raise ValueError("price_decimals must be non-negative")

    def to_canonical_price(self, native: int) -> Decimal:
        """Convert a native integer amount (e.g. wei) into the canonical unit (e.g. ether)."""

        return Decimal(native).scaleb(-self.price_decimals)

    def from_created(self, event: OfferCreated) -> OfferDocument:
        return OfferDocument(
            offer=event.offer,
            seller=event.seller,
            title=event.title,
            price=self.to_canonical_price(event.price),
            category=event.category,
            ships_from=event.ships_from,
            attached_files=event.attached_files,
            bought=False,
            buyer=None,
        )

    def from_changed(self, event: OfferChanged) -> OfferPatch:
        """Map only the fields the event carries; absent fields are left out, never nulled."""

        changes: dict[str, object] = {}
        for name in _CHANGED_FIELDS:
            value = getattr(event, name)
            if value is None:
                continue
            changes[name] = self.to_canonical_price(value) if name == "price" else value
        if not changes:
            raise ValueError(f"Change event for offer {event.offer} carries no fields")
        return OfferPatch(offer=event.offer, changes=changes)

    def from_snapshot(self, snapshot: OfferSnapshot) -> OfferDocument:
        return OfferDocument(
            offer=snapshot.offer,
            seller=snapshot.seller,
            title=snapshot.title,
            price=self.to_canonical_price(snapshot.price),
            category=snapshot.category,
            ships_from=snapshot.ships_from,
            attached_files=snapshot.attached_files,
            bought=snapshot.bought,
            buyer=snapshot.buyer if snapshot.bought else None,
        )

    @staticmethod
    def bought_patch(offer: str, buyer: str | None) -> OfferPatch:
        return OfferPatch(offer=offer, changes={"bought": True, "buyer": buyer})

    @staticmethod
    def unbought_patch(offer: str) -> OfferPatch:
        return OfferPatch(offer=offer, changes={"bought": False, "buyer": None})
