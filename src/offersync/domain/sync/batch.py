"""Bulk submission of index mutations with per-item failure classification."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from offersync.domain.model import IndexMutation
    from offersync.domain.ports.index import IndexStore

log = getLogger(__name__)

# Throttling and gateway hiccups; anything else is most likely a mapping/schema problem
# that needs the document fixed before it can be retried.
TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})


class FailureKind(StrEnum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"


def classify_status(status: int) -> FailureKind:
    return FailureKind.TRANSIENT if status in TRANSIENT_STATUSES else FailureKind.PERMANENT


@dataclass(frozen=True, slots=True)
class BulkItemFailure:
    """A failed bulk item together with the request that caused it."""

    index: int
    status: int
    error: Mapping[str, object]
    mutation: IndexMutation

    @property
    def kind(self) -> FailureKind:
        return classify_status(self.status)

    @property
    def retryable(self) -> bool:
        return self.kind is FailureKind.TRANSIENT

    def describe(self) -> str:
        return (
            f"#{self.index} {self.mutation.op} {self.mutation.collection}/{self.mutation.key} "
            f"status={self.status} ({self.kind}) error={dict(self.error)} "
            f"payload={dict(self.mutation.payload or {})}"
        )


@dataclass(frozen=True, slots=True)
class BatchResult:
    succeeded: tuple[IndexMutation, ...] = ()
    failed: tuple[BulkItemFailure, ...] = ()

    @property
    def has_errors(self) -> bool:
        return bool(self.failed)


@dataclass(slots=True)
class BatchWriter:
    """Submit a batch of mutations as one bulk call.

    Item failures are returned, not raised, so the caller decides fatality.
    Transport errors from the store propagate unchanged.
    """

    index: IndexStore

    async def apply_batch(self, mutations: Sequence[IndexMutation]) -> BatchResult:
        if not mutations:
            return BatchResult()
        _ensure_unique_keys(mutations)

        response = await self.index.bulk(mutations, refresh=True)
        if len(response.items) != len(mutations):
            raise RuntimeError(
                f"Bulk response has {len(response.items)} items for {len(mutations)} mutations"
            )

        succeeded: list[IndexMutation] = []
        failed: list[BulkItemFailure] = []
        for position, (mutation, item) in enumerate(zip(mutations, response.items, strict=True)):
            if item.ok:
                succeeded.append(mutation)
                continue
            failed.append(
                BulkItemFailure(
                    index=position,
                    status=item.status,
                    error=item.error or {},
                    mutation=mutation,
                )
            )

        if response.has_errors and not failed:
            log.warning("Bulk response flagged errors but every item succeeded")
        return BatchResult(succeeded=tuple(succeeded), failed=tuple(failed))


def _ensure_unique_keys(mutations: Sequence[IndexMutation]) -> None:
    seen: set[tuple[str, str]] = set()
    for mutation in mutations:
        target = (mutation.collection, mutation.key)
        if target in seen:
            raise ValueError(
                f"Batch contains more than one mutation for {mutation.collection}/{mutation.key}"
            )
        seen.add(target)
