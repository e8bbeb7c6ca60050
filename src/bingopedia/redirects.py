from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from .cache import BoundedCache
from .exceptions import RedirectServiceError
from .retry import NO_RETRY, RetryPolicy, retry_async
from .services import RedirectService
from .titles import display_title, normalize

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_CACHE_SIZE = 200


class RedirectResolver:
    """Resolves article titles to their canonical form through a redirect service.

    Results, including fallbacks, are cached under the normalized spelling that
    was asked for, so each spelling costs at most one lookup per session.
    Concurrent callers for the same spelling share a single in-flight lookup.
    Failures never propagate: the caller gets the original title back.

    Args:
        service: The redirect resolution service.
        cache: Cache owned by the game session; a fresh one is created if omitted.
        timeout: Per-attempt timeout in seconds for the service call.
        retry_policy: Backoff applied to transient service errors before falling back.
    """

    def __init__(
        self,
        service: RedirectService,
        *,
        cache: Optional[BoundedCache[str]] = None,
        timeout: float = 5.0,
        retry_policy: RetryPolicy = NO_RETRY,
    ) -> None:
        self._service = service
        self._cache: BoundedCache[str] = cache if cache is not None else BoundedCache(DEFAULT_REDIRECT_CACHE_SIZE)
        self._timeout = timeout
        self._retry_policy = retry_policy
        self._inflight: Dict[str, "asyncio.Future[str]"] = {}
        self.lookups = 0
        self.fallbacks = 0

    @property
    def cache(self) -> BoundedCache[str]:
        return self._cache

    def cached(self, raw_title: str) -> Optional[str]:
        return self._cache.get(normalize(raw_title))

    async def resolve(self, raw_title: str) -> str:
        """Canonical display title for ``raw_title``."""
        key = normalize(raw_title)
        if not key:
            return ""
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._lookup(key, raw_title))
            self._inflight[key] = task
            task.add_done_callback(lambda _t, k=key: self._inflight.pop(k, None))
        # a caller giving up (timeout) must not cancel the lookup other callers await
        return await asyncio.shield(task)

    async def canonical(self, raw_title: str) -> str:
        """Normalized canonical form, the only form used for equality."""
        return normalize(await self.resolve(raw_title))

    async def _lookup(self, key: str, raw_title: str) -> str:
        self.lookups += 1
        fallback = display_title(raw_title)
        try:
            resolved = await retry_async(
                lambda: asyncio.wait_for(self._service.resolve_canonical(raw_title), self._timeout),
                policy=self._retry_policy,
                retry_on=(RedirectServiceError, asyncio.TimeoutError),
                label=f"redirect {raw_title!r}",
            )
        except asyncio.TimeoutError:
            logger.warning("Redirect lookup for %r timed out; using original title", raw_title)
            resolved = None
        except Exception as exc:
            logger.warning("Redirect lookup for %r failed (%s); using original title", raw_title, exc)
            resolved = None
        else:
            if resolved is None:
                logger.warning("Page %r does not exist; using original title", raw_title)

        if not resolved:
            self.fallbacks += 1
            resolved = fallback
        self._cache.set(key, resolved)
        return resolved
