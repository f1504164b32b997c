"""Rate-limited async HTTP transport shared by the remote price providers."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from aiolimiter import AsyncLimiter

from tariff_sync.core.config import HttpProviderConfig
from tariff_sync.core.exceptions import UnauthorizedError, UpstreamUnavailableError
from tariff_sync.providers.base import ProviderBase

logger = logging.getLogger(__name__)

_USER_AGENT = "tariff-sync/0.1"
_AUTH_STATUSES = (401, 403)


class ProviderHttpClient:
    """Rate-limited async client bound to one provider's base URL.

    No retries: a failed request surfaces as an exception and the next
    scheduled update is the retry.

    Use via ``async with ProviderHttpClient(...) as client:`` or call
    ``aclose()`` explicitly.
    """

    def __init__(
        self,
        config: HttpProviderConfig,
        provider: str,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._provider = provider
        self._limiter = AsyncLimiter(max_rate=config.rate_limit, time_period=1.0)
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"User-Agent": _USER_AGENT, **(headers or {})},
            timeout=httpx.Timeout(config.request_timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> ProviderHttpClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``url`` (relative to the base URL, or absolute) and decode JSON."""
        response = await self._request("GET", url, params=params)
        return self._decode(response)

    async def post_json(self, url: str, payload: dict[str, Any]) -> Any:
        """POST a JSON body and decode the JSON response."""
        response = await self._request("POST", url, json=payload)
        return self._decode(response)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Execute one request and map failures onto the provider error taxonomy.

        Raises:
            UnauthorizedError: HTTP 401 or 403.
            UpstreamUnavailableError: Any other non-2xx status or transport error.
        """
        await self._limiter.acquire()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise UpstreamUnavailableError(
                f"{self._provider} request failed: {e}",
                context={"provider": self._provider, "url": url},
            ) from e

        if response.status_code in _AUTH_STATUSES:
            raise UnauthorizedError(
                f"{self._provider} rejected credentials (HTTP {response.status_code})",
                context={
                    "provider": self._provider,
                    "url": str(response.request.url),
                    "status_code": response.status_code,
                },
            )

        if not response.is_success:
            logger.debug(
                "%s HTTP %d body: %s",
                self._provider, response.status_code, response.text[:200],
            )
            raise UpstreamUnavailableError(
                f"HTTP {response.status_code} from {self._provider}",
                context={
                    "provider": self._provider,
                    "url": str(response.request.url),
                    "status_code": response.status_code,
                },
            )

        return response

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailableError(
                f"{self._provider} returned invalid JSON",
                context={"provider": self._provider, "url": str(response.request.url)},
            ) from e


class HttpPriceProvider(ProviderBase):
    """Base for providers that fetch prices from a remote API."""

    def __init__(
        self,
        config: HttpProviderConfig,
        client: ProviderHttpClient | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._config = config
        self._client = client or ProviderHttpClient(config, self.name, headers=headers)

    async def aclose(self) -> None:
        await self._client.aclose()
