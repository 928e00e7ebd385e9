"""HTTP utilities for fetching channel pages, continuations and watch pages."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from .config import CatalogConfig
from .parsers import Cursor, Enrichment
from .parsers.channel import extract_item_detail
from .parsers.initial_data import extract_initial_data

LOGGER = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class HttpFetchError(RuntimeError):
    """Raised when an HTTP request fails irrecoverably."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(HttpFetchError):
    """Raised when the platform answers with HTTP 429."""


class YoutubeClient:
    """Async client for the three fetch primitives the crawler needs."""

    def __init__(
        self,
        config: CatalogConfig,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client = client or self._build_client()
        self._owns_client = client is None
        self._sleep = sleep or asyncio.sleep
        self._max_attempts = max(1, int(config.retry.max_attempts))
        self._backoff = max(0.0, float(config.retry.backoff_factor))

    def _build_client(self) -> httpx.AsyncClient:
        headers = {
            "User-Agent": self._config.user_agent,
            "Accept-Language": self._config.accept_language,
        }
        kwargs: dict[str, object] = {
            "timeout": self._config.timeout.request_timeout,
            "headers": headers,
            "follow_redirects": True,
        }
        if self._transport:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def fetch_page(self, url: str) -> str:
        LOGGER.debug("Requesting page: %s", url)
        response = await self._request("GET", url, headers={"Accept": self._config.client.accept_header})
        html = response.text
        LOGGER.debug("Received %.1f KB from %s", len(html) / 1024, url)
        return html

    async def fetch_browse(self, token: str, graft_url: str) -> dict:
        payload = self._config.client.browse_payload(token, graft_url)
        response = await self._request("POST", self._config.client.browse_url, json=payload)
        try:
            data = response.json()
        except ValueError as exc:
            raise HttpFetchError(f"Browse response for {graft_url} is not JSON") from exc
        if not isinstance(data, dict):
            raise HttpFetchError(f"Browse response for {graft_url} is not an object")
        return data

    async def fetch_continuation(self, cursor: Cursor) -> dict:
        return await self.fetch_browse(cursor.token, cursor.context_url)

    async def fetch_item_detail(self, item_id: str) -> Enrichment:
        html = await self.fetch_page(self._config.watch_url(item_id))
        return extract_item_detail(extract_initial_data(html))

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        for attempt in range(self._max_attempts):
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.TimeoutException as exc:
                LOGGER.warning(
                    "Request timeout (%s) attempt %d/%d: %s",
                    url,
                    attempt + 1,
                    self._max_attempts,
                    exc,
                )
                if self._should_retry(attempt):
                    await self._sleep_before_retry(attempt)
                    continue
                raise HttpFetchError(f"Timed out fetching {url}") from exc
            except httpx.HTTPError as exc:
                LOGGER.warning(
                    "Request error (%s) attempt %d/%d: %s",
                    url,
                    attempt + 1,
                    self._max_attempts,
                    exc,
                )
                if self._should_retry(attempt):
                    await self._sleep_before_retry(attempt)
                    continue
                raise HttpFetchError(str(exc)) from exc

            status = response.status_code
            if status == httpx.codes.TOO_MANY_REQUESTS:
                raise RateLimitedError(f"HTTP 429: Too Many Requests for {url}", status_code=status)
            if 500 <= status < 600 and self._should_retry(attempt):
                LOGGER.warning("Server error %d for %s; retrying", status, url)
                await self._sleep_before_retry(attempt)
                continue
            if not response.is_success:
                raise HttpFetchError(
                    f"HTTP {status}: {response.reason_phrase} for {url}",
                    status_code=status,
                )
            return response

        raise HttpFetchError(f"Exhausted retries while fetching {url}")

    def _should_retry(self, attempt: int) -> bool:
        return attempt + 1 < self._max_attempts

    async def _sleep_before_retry(self, attempt: int) -> None:
        if self._backoff <= 0:
            return
        await self._sleep(self._backoff * (2**attempt))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "YoutubeClient":
        return self

    async def __aexit__(self, *_exc_info) -> None:
        await self.aclose()
