"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .index import (
    ElasticsearchConfig,
    IndexBackend,
    IndexConfig,
    get_elasticsearch_config,
    get_index_config,
)
from .ledger import LedgerConfig, get_ledger_config
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import Settings, SyncConfig, get_sync_config, load_settings

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "ElasticsearchConfig",
    "IndexBackend",
    "IndexConfig",
    "LedgerConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "Settings",
    "StorageConfig",
    "SyncConfig",
    "configure_logging",
    "get_database_config",
    "get_elasticsearch_config",
    "get_index_config",
    "get_ledger_config",
    "get_storage_config",
    "get_sync_config",
    "load_settings",
    "require_env_var",
    "require_env_vars",
]
