"""Errors raised by the synchronization core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from offersync.domain.sync.batch import BulkItemFailure


class SyncError(RuntimeError):
    """Fatal synchronization error; the session cannot continue."""


class CheckpointError(SyncError):
    """Raised when the checkpoint cannot be read or persisted."""


class LedgerUnavailableError(SyncError):
    """Raised when the ledger cannot be reached or returns an unusable response."""


class ReplayError(SyncError):
    """Raised when a replay batch reports failed items."""

    def __init__(self, phase: str, failures: Sequence[BulkItemFailure]) -> None:
        super().__init__(f"Replay phase '{phase}' failed for {len(failures)} item(s)")
        self.phase = phase
        self.failures = tuple(failures)
