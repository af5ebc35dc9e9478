from __future__ import annotations

import asyncio
from typing import Optional
from urllib.parse import urlparse

import httpx

from app.core.logging import get_logger

logger = get_logger()

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def is_absolute_http(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


class BaseScraperService:
    """
    Shared base class for HTTP scraping services.

    Provides HTTP client management and an optional fixed-delay retry that is
    reused by the feed, article, conference and PubMed fetchers.
    """

    def __init__(
        self,
        *,
        user_agent: str = BROWSER_USER_AGENT,
        timeout_s: float = 10.0,
        max_retries: int = 0,
        retry_delay_s: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize base scraper service.

        Args:
            user_agent: User-Agent string for HTTP requests
            timeout_s: Request timeout in seconds
            max_retries: Extra attempts for failed requests (0 = single attempt)
            retry_delay_s: Fixed delay between attempts
            client: Optional pre-built client (owned by the caller)
        """
        self.user_agent = user_agent
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.retry_delay_s = max(0.0, retry_delay_s)
        self._client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None

    async def __aenter__(self):
        """Initialize HTTP client on context entry."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_s,
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        """Close HTTP client on context exit."""
        if self._client and self._owns_client:
            await self._client.aclose()

    async def fetch(self, url: str) -> httpx.Response:
        """
        Fetch URL, retrying after a fixed delay when configured.

        Raises:
            httpx.HTTPError: If all attempts fail
        """
        if self._client is None:
            raise RuntimeError(f"{self.__class__.__name__} HTTP client not initialized")

        attempt = 0
        last_exc: Optional[Exception] = None

        while attempt <= self.max_retries:
            try:
                response = await self._client.get(url)
                response.raise_for_status()
                return response
            except httpx.HTTPError as exc:
                last_exc = exc
                attempt += 1
                if attempt > self.max_retries:
                    break
                await asyncio.sleep(self.retry_delay_s)

        assert last_exc is not None
        raise last_exc

    async def fetch_html(self, url: str) -> str:
        """
        Fetch URL and return response text (HTML).
        """
        response = await self.fetch(url)
        return response.text

    async def fetch_html_or_none(self, url: str) -> Optional[str]:
        """
        Like fetch_html(), but network and HTTP status failures are logged
        and mapped to None.
        """
        try:
            return await self.fetch_html(url)
        except httpx.HTTPError as exc:
            logger.warning(
                "scraper_fetch_failed",
                scraper=self.__class__.__name__,
                url=url,
                error=str(exc),
            )
            return None
