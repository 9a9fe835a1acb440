"""Synchronization core: checkpoint, batch writer and reconciliation engine."""

from __future__ import annotations

from .batch import BatchResult, BatchWriter, BulkItemFailure, FailureKind, classify_status
from .checkpoint import CheckpointStore, CheckpointTracker
from .engine import (
    REPLAY_ORDER,
    LiveStats,
    ReconciliationEngine,
    ReplayPhase,
    ReplaySummary,
    SyncState,
)

__all__ = [
    "REPLAY_ORDER",
    "BatchResult",
    "BatchWriter",
    "BulkItemFailure",
    "CheckpointStore",
    "CheckpointTracker",
    "FailureKind",
    "LiveStats",
    "ReconciliationEngine",
    "ReplayPhase",
    "ReplaySummary",
    "SyncState",
    "classify_status",
]
