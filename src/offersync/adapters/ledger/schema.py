"""Pydantic models describing the ledger gateway payloads."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

WireEventKind = Literal["created", "changed", "bought", "buyerRejected", "completed", "cancelled"]


def _parse_quantity(value: object) -> object:
    # Amounts and blocks may arrive as decimal or 0x-prefixed strings (JSON number limits).
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        return int(stripped, 16) if stripped.lower().startswith("0x") else int(stripped)
    return value


class LedgerBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EventPayload(LedgerBaseModel):
    offer: str
    block_number: int | None = Field(default=None, alias="blockNumber")

    _normalize_block = field_validator("block_number", mode="before")(_parse_quantity)


class CreatedPayload(EventPayload):
    seller: str
    title: str
    price: int
    category: str
    ships_from: str = Field(alias="shipsFrom")
    attached_files: str = Field(default="", alias="attachedFiles")

    _normalize_price = field_validator("price", mode="before")(_parse_quantity)


class ChangedPayload(EventPayload):
    title: str | None = None
    price: int | None = None
    category: str | None = None
    ships_from: str | None = Field(default=None, alias="shipsFrom")
    attached_files: str | None = Field(default=None, alias="attachedFiles")

    _normalize_price = field_validator("price", mode="before")(_parse_quantity)


class BoughtPayload(EventPayload):
    buyer: str


class BuyerRejectedPayload(EventPayload):
    buyer: str | None = None


class CompletedPayload(EventPayload):
    pass


class CancelledPayload(EventPayload):
    pass


class ResyncResponse(LedgerBaseModel):
    created: list[CreatedPayload] = Field(default_factory=list[CreatedPayload])
    changed: list[ChangedPayload] = Field(default_factory=list[ChangedPayload])
    bought: list[BoughtPayload] = Field(default_factory=list[BoughtPayload])
    buyer_rejected: list[BuyerRejectedPayload] = Field(
        default_factory=list[BuyerRejectedPayload], alias="buyerRejected"
    )
    completed: list[CompletedPayload] = Field(default_factory=list[CompletedPayload])
    cancelled: list[CancelledPayload] = Field(default_factory=list[CancelledPayload])
    synced_to_block: int | None = Field(default=None, alias="syncedToBlock")

    _normalize_block = field_validator("synced_to_block", mode="before")(_parse_quantity)


class LiveEventPayload(LedgerBaseModel):
    """One entry of the event feed; ``removed`` marks a retraction (e.g. a reorg)."""

    kind: WireEventKind
    offer: str
    block_number: int | None = Field(default=None, alias="blockNumber")
    removed: bool = False
    seller: str | None = None
    title: str | None = None
    price: int | None = None
    category: str | None = None
    ships_from: str | None = Field(default=None, alias="shipsFrom")
    attached_files: str | None = Field(default=None, alias="attachedFiles")
    buyer: str | None = None

    _normalize_block = field_validator("block_number", mode="before")(_parse_quantity)
    _normalize_price = field_validator("price", mode="before")(_parse_quantity)


class EventFeedResponse(LedgerBaseModel):
    events: list[LiveEventPayload] = Field(default_factory=list[LiveEventPayload])
    cursor: str | None = None


class OfferDumpPayload(LedgerBaseModel):
    offer: str
    seller: str
    title: str
    price: int
    category: str
    ships_from: str = Field(alias="shipsFrom")
    attached_files: str = Field(default="", alias="attachedFiles")
    bought: bool = False
    buyer: str | None = None

    _normalize_price = field_validator("price", mode="before")(_parse_quantity)

    @field_validator("buyer", mode="before")
    @classmethod
    def _blank_buyer(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ErrorResponse(LedgerBaseModel):
    error: str
    message: str | None = None
