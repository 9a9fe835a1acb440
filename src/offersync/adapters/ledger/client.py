"""HTTP client for the ledger gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from offersync.adapters.http_resilience import ResilientClient
from offersync.domain.errors import LedgerUnavailableError

from .schema import ErrorResponse, EventFeedResponse, OfferDumpPayload, ResyncResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from offersync.config.http_resilience import ResilienceConfig
    from offersync.config.ledger import LedgerConfig

log = getLogger(__name__)


class LedgerAPIError(LedgerUnavailableError):
    """Raised when the gateway answers with an application-level error."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class LedgerGatewayClient:
    """Typed access to the gateway's resync, dump and event feed endpoints.

    One ``ResilientClient`` is opened lazily and reused until ``aclose``.
    """

    config: LedgerConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = None

    @property
    def _registry_path(self) -> str:
        return f"/registries/{quote(self.config.registry_contract, safe='')}"

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_resync(self, from_block: int | None) -> ResyncResponse:
        params: dict[str, str | int] = {}
        if from_block is not None:
            params["fromBlock"] = from_block
        response = await self._request(f"{self._registry_path}/resync", params=params)
        assert response is not None
        return self._validate(ResyncResponse, response)

    async def fetch_offer(self, offer_id: str) -> OfferDumpPayload | None:
        path = f"{self._registry_path}/offers/{quote(offer_id, safe='')}"
        response = await self._request(path, allow_not_found=True)
        if response is None:
            return None
        return self._validate(OfferDumpPayload, response)

    async def fetch_events(
        self,
        *,
        from_block: int | None = None,
        cursor: str | None = None,
    ) -> EventFeedResponse:
        params: dict[str, str | int] = {}
        if cursor is not None:
            params["cursor"] = cursor
        elif from_block is not None:
            params["fromBlock"] = from_block
        response = await self._request(f"{self._registry_path}/events", params=params)
        assert response is not None
        return self._validate(EventFeedResponse, response)

    async def _request(
        self,
        path: str,
        *,
        params: dict[str, str | int] | None = None,
        allow_not_found: bool = False,
    ) -> httpx.Response | None:
        try:
            response = await self._http().get(path, params=httpx.QueryParams(params or {}))
        except httpx.HTTPError as exc:
            raise LedgerUnavailableError(f"Ledger gateway request to {path} failed: {exc}") from exc

        if allow_not_found and response.status_code == httpx.codes.NOT_FOUND:
            return None
        if response.is_error:
            message = _error_message(response)
            log.error(f"Ledger gateway error {response.status_code} on {path}: {message}")
            raise LedgerAPIError(message, status=response.status_code)
        return response

    @staticmethod
    def _validate[TModel: BaseModel](
        model: type[TModel],
        response: httpx.Response,
    ) -> TModel:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise LedgerAPIError(
                f"Unexpected ledger gateway payload for {model.__name__}",
                status=response.status_code,
            ) from exc


def _error_message(response: httpx.Response) -> str:
    try:
        payload = ErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return response.reason_phrase or f"HTTP {response.status_code}"
    return payload.message or payload.error
