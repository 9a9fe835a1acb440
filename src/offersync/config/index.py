"""Index store configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .env import env_bool, optional_env_var, require_env_var
from .errors import ConfigurationError
from .storage import DatabaseConfig, get_database_config

OFFERS_COLLECTION = "offers"
CHECKPOINT_COLLECTION = "block"
CHECKPOINT_DOCUMENT_ID = "1"
GUEST_USERNAME = "guest"
GUEST_PASSWORD = "guest"  # noqa: S105


class IndexBackend(StrEnum):
    ELASTICSEARCH = "elasticsearch"
    SQLALCHEMY = "sqlalchemy"


@dataclass(frozen=True, slots=True)
class ElasticsearchConfig:
    url: str
    api_key: str | None = None
    username: str = GUEST_USERNAME
    password: str = GUEST_PASSWORD
    verify_certs: bool = True
    request_timeout_seconds: float = 30.0


@dataclass(frozen=True, slots=True)
class IndexConfig:
    """Where documents and the checkpoint live."""

    backend: IndexBackend = IndexBackend.ELASTICSEARCH
    elasticsearch: ElasticsearchConfig | None = None
    database: DatabaseConfig | None = None
    offers_collection: str = OFFERS_COLLECTION
    checkpoint_collection: str = CHECKPOINT_COLLECTION
    checkpoint_id: str = CHECKPOINT_DOCUMENT_ID


def _parse_backend(raw: str | None) -> IndexBackend:
    if raw is None:
        return IndexBackend.ELASTICSEARCH
    try:
        return IndexBackend(raw.lower())
    except ValueError as exc:
        choices = ", ".join(backend.value for backend in IndexBackend)
        raise ConfigurationError(
            f"Unsupported OFFERSYNC_INDEX_BACKEND {raw!r} (expected one of: {choices})"
        ) from exc


def get_elasticsearch_config() -> ElasticsearchConfig:
    return ElasticsearchConfig(
        url=require_env_var("ELASTIC_URL"),
        api_key=optional_env_var("ELASTIC_API_KEY"),
        verify_certs=env_bool("ELASTIC_VERIFY_CERTS", default=True),
    )


def get_index_config() -> IndexConfig:
    backend = _parse_backend(optional_env_var("OFFERSYNC_INDEX_BACKEND"))
    if backend is IndexBackend.ELASTICSEARCH:
        return IndexConfig(backend=backend, elasticsearch=get_elasticsearch_config())
    return IndexConfig(backend=backend, database=get_database_config())
