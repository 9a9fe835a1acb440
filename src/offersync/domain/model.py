"""Domain types for offers, ledger events and index mutations (pure, dependency-light)."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from collections.abc import Mapping


class EventKind(StrEnum):
    CREATED = "created"
    CHANGED = "changed"
    BOUGHT = "bought"
    BUYER_REJECTED = "buyer_rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MutationOp(StrEnum):
    UPSERT = "upsert"
    PATCH = "patch"
    DELETE = "delete"


# Document field names as stored in the index.
_FIELD_ALIASES: dict[str, str] = {
    "ships_from": "shipsFrom",
    "attached_files": "attachedFiles",
}
_ALIAS_FIELDS = {alias: name for name, alias in _FIELD_ALIASES.items()}


def _to_index_value(value: object) -> object:
    # the index maps prices as JSON numbers
    if isinstance(value, Decimal):
        return float(value)
    return value


@dataclass(frozen=True, slots=True)
class OfferDocument:
    """Projection of one offer as stored in the index."""

    offer: str
    seller: str
    title: str
    price: Decimal
    category: str
    ships_from: str
    attached_files: str
    bought: bool = False
    buyer: str | None = None

    def __post_init__(self) -> None:
        if self.buyer is not None and not self.bought:
            raise ValueError(f"Offer {self.offer} has a buyer but is not bought")

    def to_source(self) -> dict[str, object]:
        return {
            _FIELD_ALIASES.get(item.name, item.name): _to_index_value(getattr(self, item.name))
            for item in fields(self)
        }

    @classmethod
    def from_source(cls, source: Mapping[str, object]) -> OfferDocument:
        values = {_ALIAS_FIELDS.get(key, key): value for key, value in source.items()}
        known = {item.name for item in fields(cls)}
        kwargs = {key: value for key, value in values.items() if key in known}
        kwargs["price"] = Decimal(str(kwargs["price"]))
        return cls(**kwargs)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class OfferPatch:
    """Sparse update of an offer document; ``changes`` never contains the key itself."""

    offer: str
    changes: Mapping[str, object] = field(default_factory=dict)

    def to_source(self) -> dict[str, object]:
        return {
            _FIELD_ALIASES.get(name, name): _to_index_value(value)
            for name, value in self.changes.items()
        }

    def merged_with(self, later: OfferPatch) -> OfferPatch:
        if later.offer != self.offer:
            raise ValueError(f"Cannot merge patches for {self.offer} and {later.offer}")
        return OfferPatch(offer=self.offer, changes={**self.changes, **later.changes})


@dataclass(frozen=True, slots=True)
class OfferSnapshot:
    """Authoritative state of one offer as dumped by the ledger (native price units)."""

    offer: str
    seller: str
    title: str
    price: int
    category: str
    ships_from: str
    attached_files: str
    bought: bool
    buyer: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class LedgerEvent:
    """Base for all ledger events; ``block`` is the ledger position when known."""

    kind: ClassVar[EventKind]

    offer: str
    block: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class OfferCreated(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.CREATED

    seller: str
    title: str
    price: int
    category: str
    ships_from: str
    attached_files: str


@dataclass(frozen=True, slots=True, kw_only=True)
class OfferChanged(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.CHANGED

    title: str | None = None
    price: int | None = None
    category: str | None = None
    ships_from: str | None = None
    attached_files: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class OfferBought(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.BOUGHT

    buyer: str


@dataclass(frozen=True, slots=True, kw_only=True)
class OfferBuyerRejected(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.BUYER_REJECTED

    buyer: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class OfferCompleted(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.COMPLETED


@dataclass(frozen=True, slots=True, kw_only=True)
class OfferCancelled(LedgerEvent):
    kind: ClassVar[EventKind] = EventKind.CANCELLED


EVENT_TYPES: dict[EventKind, type[LedgerEvent]] = {
    EventKind.CREATED: OfferCreated,
    EventKind.CHANGED: OfferChanged,
    EventKind.BOUGHT: OfferBought,
    EventKind.BUYER_REJECTED: OfferBuyerRejected,
    EventKind.COMPLETED: OfferCompleted,
    EventKind.CANCELLED: OfferCancelled,
}


@dataclass(frozen=True, slots=True)
class ReplayWindow:
    """Historical events between a checkpoint and the ledger head, grouped by kind."""

    created: tuple[OfferCreated, ...] = ()
    changed: tuple[OfferChanged, ...] = ()
    bought: tuple[OfferBought, ...] = ()
    buyer_rejected: tuple[OfferBuyerRejected, ...] = ()
    completed: tuple[OfferCompleted, ...] = ()
    cancelled: tuple[OfferCancelled, ...] = ()
    reached_block: int | None = None

    @property
    def removed(self) -> tuple[OfferCompleted | OfferCancelled, ...]:
        return (*self.completed, *self.cancelled)

    @property
    def event_count(self) -> int:
        return (
            len(self.created)
            + len(self.changed)
            + len(self.bought)
            + len(self.buyer_rejected)
            + len(self.completed)
            + len(self.cancelled)
        )


@dataclass(frozen=True, slots=True)
class IndexMutation:
    """One write against the index store."""

    op: MutationOp
    collection: str
    key: str
    payload: Mapping[str, object] | None = None

    def __post_init__(self) -> None:
        if self.op is MutationOp.DELETE and self.payload is not None:
            raise ValueError("Delete mutations carry no payload")
        if self.op is not MutationOp.DELETE and self.payload is None:
            raise ValueError(f"{self.op} mutation for {self.key} requires a payload")

    @classmethod
    def upsert(cls, collection: str, key: str, document: Mapping[str, object]) -> IndexMutation:
        return cls(MutationOp.UPSERT, collection, key, document)

    @classmethod
    def patch(cls, collection: str, key: str, changes: Mapping[str, object]) -> IndexMutation:
        return cls(MutationOp.PATCH, collection, key, changes)

    @classmethod
    def delete(cls, collection: str, key: str) -> IndexMutation:
        return cls(MutationOp.DELETE, collection, key)
