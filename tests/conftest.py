from __future__ import annotations

import os

import pytest

from offersync.domain.codec import OfferCodec
from tests.helpers.index_store import InMemoryIndexStore

_CONFIG_PREFIXES = ("LEDGER_", "ELASTIC_", "OFFERSYNC_", "DATABASE_URI")


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith(_CONFIG_PREFIXES):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def index_store() -> InMemoryIndexStore:
    return InMemoryIndexStore()


@pytest.fixture
def codec() -> OfferCodec:
    return OfferCodec(price_decimals=2)
