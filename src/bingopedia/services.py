"""Interfaces of the external services the engine consumes."""

from typing import Optional, Protocol


class RedirectService(Protocol):
    async def resolve_canonical(self, title: str) -> Optional[str]:
        """Canonical title after following redirects, or ``None`` if the page does not exist.

        Raises ``RedirectServiceError`` for transient failures.
        """
        ...


class ContentService(Protocol):
    async def fetch_content(self, title: str) -> str:
        """Raw article markup.

        Raises ``ArticleNotFoundError`` or ``TransientContentError``.
        """
        ...
