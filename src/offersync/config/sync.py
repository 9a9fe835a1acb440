"""Synchronization policy and the top-level settings bundle."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .env import env_bool, optional_env_var
from .errors import ConfigurationError
from .index import IndexConfig, get_index_config
from .ledger import LedgerConfig, get_ledger_config


@dataclass(frozen=True, slots=True)
class SyncConfig:
    die_on_fail: bool = True
    live_errors_fatal: bool = False
    log_level: int = logging.INFO


@dataclass(frozen=True, slots=True)
class Settings:
    """Everything a sync session needs, built once at process start."""

    ledger: LedgerConfig
    index: IndexConfig
    sync: SyncConfig


def _parse_log_level(raw: str | None) -> int:
    if raw is None:
        return logging.INFO
    level = logging.getLevelNamesMapping().get(raw.upper())
    if level is None:
        raise ConfigurationError(f"Unknown OFFERSYNC_LOG_LEVEL: {raw!r}")
    return level


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        die_on_fail=env_bool("OFFERSYNC_DIE_ON_FAIL", default=True),
        live_errors_fatal=env_bool("OFFERSYNC_LIVE_ERRORS_FATAL", default=False),
        log_level=_parse_log_level(optional_env_var("OFFERSYNC_LOG_LEVEL")),
    )


def load_settings() -> Settings:
    return Settings(
        ledger=get_ledger_config(),
        index=get_index_config(),
        sync=get_sync_config(),
    )
