"""Shared async HTTP client for the delivery providers."""

import time
from typing import Any, Optional

import httpx

from shared.logging import get_logger

log = get_logger(__name__)

USER_AGENT = "okada-otp/1.0"


class HttpClient:
    """Thin async wrapper around httpx.AsyncClient, one per provider family.

    Each instance carries its own timeout, logs every outbound call with its
    latency under the instance ``name``, and is closed by the app lifespan.
    """

    def __init__(
        self,
        name: str = "http",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.name = name
        self._client = httpx.AsyncClient(
            timeout=timeout, headers={"User-Agent": USER_AGENT}, transport=transport
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        started = time.perf_counter()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            log.warning(
                "provider_http_error",
                client=self.name,
                method=method,
                host=httpx.URL(url).host,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
                error_type=type(e).__name__,
            )
            raise
        log.debug(
            "provider_http_call",
            client=self.name,
            method=method,
            host=response.request.url.host,
            status_code=response.status_code,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("POST", url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._request("GET", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
