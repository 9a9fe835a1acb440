"""Ledger gateway adapter."""

from __future__ import annotations

from .client import LedgerAPIError, LedgerGatewayClient
from .source import PollingLedgerSource

__all__ = ["LedgerAPIError", "LedgerGatewayClient", "PollingLedgerSource"]
