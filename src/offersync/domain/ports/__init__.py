"""Domain port definitions for adapters."""

from __future__ import annotations

from .index import BulkItemResult, BulkResponse, IndexStore
from .ledger import EventHandler, LedgerSource, LiveLedgerSource, Subscription

__all__ = [
    "BulkItemResult",
    "BulkResponse",
    "EventHandler",
    "IndexStore",
    "LedgerSource",
    "LiveLedgerSource",
    "Subscription",
]
