"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import sys
from logging import getLogger
from typing import TYPE_CHECKING

from offersync.config import IndexBackend
from offersync.domain.errors import SyncError
from offersync.domain.sync import CheckpointStore, ReconciliationEngine

if TYPE_CHECKING:
    from offersync.config import IndexConfig, LedgerConfig, Settings
    from offersync.domain.ports import IndexStore, LiveLedgerSource
    from offersync.domain.sync import ReplaySummary

log = getLogger(__name__)


def build_index_store(config: IndexConfig) -> IndexStore:
    """Create the configured index store backend."""

    if config.backend is IndexBackend.ELASTICSEARCH:
        from offersync.adapters.elasticsearch import ElasticsearchIndexStore  # noqa: PLC0415

        if config.elasticsearch is None:
            raise SyncError("Elasticsearch backend selected without Elasticsearch settings")
        return ElasticsearchIndexStore.from_config(config.elasticsearch)

    from offersync.adapters.sqlalchemy import SqlAlchemyIndexStore  # noqa: PLC0415

    if config.database is None:
        raise SyncError("SQLAlchemy backend selected without database settings")
    return SqlAlchemyIndexStore.from_uri(config.database.uri)


def build_ledger_source(config: LedgerConfig) -> LiveLedgerSource:
    from offersync.adapters.ledger import PollingLedgerSource  # noqa: PLC0415

    return PollingLedgerSource.from_config(config)


async def run_sync(
    settings: Settings,
    *,
    ledger: LiveLedgerSource | None = None,
    index: IndexStore | None = None,
    replay_only: bool = False,
) -> ReplaySummary:
    """Replay the ledger into the index, then keep following it until the source closes."""

    index_store = index or build_index_store(settings.index)
    source = ledger or build_ledger_source(settings.ledger)
    engine = ReconciliationEngine.from_settings(settings, ledger=source, index=index_store)
    log.info(
        "Starting offer sync: registry=%s, backend=%s, replay_only=%s",
        settings.ledger.registry_contract,
        settings.index.backend,
        replay_only,
    )
    try:
        summary = await engine.start(replay_only=replay_only)
        if not replay_only:
            await source.listen()
    finally:
        engine.stop()
        await source.close()
        await index_store.close()

    log.info(
        "Finished offer sync: applied=%s, reverted=%s, failed=%s, checkpoint=%s",
        engine.stats.applied,
        engine.stats.reverted,
        engine.stats.failed,
        engine.checkpoint,
    )
    return summary


def start_syncer(
    settings: Settings,
    *,
    die_on_fail: bool | None = None,
    replay_only: bool = False,
    ledger: LiveLedgerSource | None = None,
    index: IndexStore | None = None,
) -> ReplaySummary | SyncError:
    """Run a sync session; a fatal error exits the process unless ``die_on_fail`` is off.

    With ``die_on_fail`` disabled the error is returned so an embedding caller
    can keep running.
    """

    should_die = settings.sync.die_on_fail if die_on_fail is None else die_on_fail
    try:
        return asyncio.run(run_sync(settings, ledger=ledger, index=index, replay_only=replay_only))
    except SyncError as exc:
        log.exception("Fatal synchronization error")
        if should_die:
            sys.exit(1)
        return exc


def show_checkpoint(settings: Settings, *, index: IndexStore | None = None) -> int | None:
    """Return the last block persisted in the index, or None before the first sync."""

    async def _read() -> int | None:
        index_store = index or build_index_store(settings.index)
        store = CheckpointStore(
            index_store,
            collection=settings.index.checkpoint_collection,
            document_id=settings.index.checkpoint_id,
        )
        try:
            return await store.read()
        finally:
            await index_store.close()

    return asyncio.run(_read())
