"""Ledger gateway configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int, optional_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_LEDGER_GATEWAY_URL = "http://localhost:8545"
DEFAULT_POLL_INTERVAL_SECONDS = 2.0
# wei -> ether
DEFAULT_PRICE_DECIMALS = 18
LEDGER_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class LedgerConfig:
    """Holds ledger gateway configuration values."""

    registry_contract: str
    resilience: ResilienceConfig
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    price_decimals: int = DEFAULT_PRICE_DECIMALS


def get_ledger_config(*, resilience: ResilienceConfig | None = None) -> LedgerConfig:
    values = require_env_vars(("LEDGER_REGISTRY_CONTRACT",))
    base_url = optional_env_var("LEDGER_GATEWAY_URL") or DEFAULT_LEDGER_GATEWAY_URL
    poll_interval = env_float("LEDGER_POLL_INTERVAL", default=DEFAULT_POLL_INTERVAL_SECONDS)
    if poll_interval <= 0:
        raise ConfigurationError("LEDGER_POLL_INTERVAL must be positive")
    price_decimals = env_int("LEDGER_PRICE_DECIMALS", default=DEFAULT_PRICE_DECIMALS)
    if price_decimals < 0:
        raise ConfigurationError("LEDGER_PRICE_DECIMALS must be non-negative")

    return LedgerConfig(
        registry_contract=values["LEDGER_REGISTRY_CONTRACT"],
        resilience=resilience
        or ResilienceConfig(
            name="ledger",
            base_url=base_url,
            timeout_seconds=LEDGER_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=4),
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            default_headers={"Accept": "application/json"},
        ),
        poll_interval_seconds=poll_interval,
        price_decimals=price_decimals,
    )
