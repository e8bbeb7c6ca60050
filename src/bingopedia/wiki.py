"""MediaWiki-backed redirect and content services."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .cache import BoundedCache
from .config import (
    DEFAULT_API_URL,
    DEFAULT_MOBILE_REST_URL,
    DEFAULT_REST_URL,
    DEFAULT_USER_AGENT,
)
from .exceptions import ArticleNotFoundError, RedirectServiceError, TransientContentError
from .retry import NO_RETRY, RetryPolicy, retry_async
from .titles import normalize

logger = logging.getLogger(__name__)


class _ServerError(Exception):
    """5xx response; retried, then reported as transient."""


class WikipediaClient:
    """Redirect resolution and article content from Wikipedia.

    Redirects use the query API with ``redirects=1``, which walks the whole
    redirect chain server-side. Content is fetched from the REST API, trying
    desktop HTML, then mobile HTML, then the summary extract.

    Args:
        api_url: MediaWiki ``api.php`` endpoint.
        rest_url: REST base for desktop HTML and summaries.
        mobile_rest_url: REST base for mobile HTML.
        user_agent: Sent with every request, as Wikimedia requires.
        timeout: Per-request timeout in seconds.
        retry_policy: Backoff for 5xx and transport errors on content fetches.
        content_cache_size: Number of articles kept in memory.
        client: Optional pre-built ``httpx.AsyncClient`` (tests inject a mock transport).
    """

    def __init__(
        self,
        *,
        api_url: str = DEFAULT_API_URL,
        rest_url: str = DEFAULT_REST_URL,
        mobile_rest_url: str = DEFAULT_MOBILE_REST_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        retry_policy: RetryPolicy = NO_RETRY,
        content_cache_size: int = 100,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_url = api_url
        self.rest_url = rest_url.rstrip("/")
        self.mobile_rest_url = mobile_rest_url.rstrip("/")
        self._retry_policy = retry_policy
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout, headers={"User-Agent": user_agent}, follow_redirects=True
        )
        self._content_cache: BoundedCache[str] = BoundedCache(content_cache_size)

    async def __aenter__(self) -> "WikipediaClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def resolve_canonical(self, title: str) -> Optional[str]:
        """Terminal title of the redirect chain, or ``None`` for a missing page."""
        params = {
            "action": "query",
            "format": "json",
            "redirects": 1,
            "titles": title,
        }
        try:
            response = await self._client.get(self.api_url, params=params)
        except httpx.TransportError as exc:
            raise RedirectServiceError(f"Transport error resolving {title!r}: {exc}") from exc
        if response.status_code >= 500:
            raise RedirectServiceError(f"HTTP {response.status_code} resolving {title!r}")
        response.raise_for_status()
        return self._canonical_from_query(response.json())

    @staticmethod
    def _canonical_from_query(data: Dict[str, Any]) -> Optional[str]:
        query = data.get("query", {})
        pages = query.get("pages", {})
        for page_id, page in pages.items():
            # Missing pages have negative ids and a "missing" marker
            if "missing" in page or "invalid" in page or int(page_id) < 0:
                return None
            if page.get("title"):
                return page["title"]
        redirects = query.get("redirects") or []
        if redirects:
            return redirects[-1].get("to")
        normalized = query.get("normalized") or []
        if normalized:
            return normalized[-1].get("to")
        return None

    async def fetch_content(self, title: str) -> str:
        key = normalize(title)
        cached = self._content_cache.get(key)
        if cached is not None:
            return cached

        encoded = quote(title.replace(" ", "_"), safe="")
        endpoints = (
            ("desktop", f"{self.rest_url}/page/html/{encoded}", False),
            ("mobile", f"{self.mobile_rest_url}/page/mobile-html/{encoded}", False),
            ("summary", f"{self.rest_url}/page/summary/{encoded}", True),
        )
        transient: Optional[str] = None
        for name, url, is_summary in endpoints:
            try:
                response = await retry_async(
                    lambda url=url: self._get_checked(url),
                    policy=self._retry_policy,
                    retry_on=(_ServerError, httpx.TransportError),
                    label=f"{name} content for {title!r}",
                )
            except (_ServerError, httpx.TransportError) as exc:
                logger.warning("Failed to fetch %s content for %r: %s", name, title, exc)
                transient = str(exc) or exc.__class__.__name__
                continue
            if response.status_code != 200:
                continue
            markup = self._summary_markup(response) if is_summary else response.text
            if markup:
                self._content_cache.set(key, markup)
                return markup

        if transient is not None:
            raise TransientContentError(title, transient)
        raise ArticleNotFoundError(title)

    async def _get_checked(self, url: str) -> httpx.Response:
        response = await self._client.get(url)
        if response.status_code >= 500:
            raise _ServerError(f"HTTP {response.status_code}")
        return response

    @staticmethod
    def _summary_markup(response: httpx.Response) -> Optional[str]:
        try:
            data = response.json()
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        return data.get("extract_html") or data.get("extract")
