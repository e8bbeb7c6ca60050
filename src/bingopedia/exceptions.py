"""Exception hierarchy for the bingo engine."""

from __future__ import annotations

from typing import List, Optional


class BingopediaError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, is_retryable: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.is_retryable = is_retryable


class InsufficientPoolError(BingopediaError):
    """The category pool cannot yield a full puzzle under the active constraints."""

    def __init__(self, message: str, reasons: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.reasons = list(reasons or [])


class InvariantViolation(BingopediaError):
    """A programming error: game state would be corrupted if execution continued."""


class PuzzleFormatError(BingopediaError):
    """A serialized puzzle does not have the expected shape."""


class RedirectServiceError(BingopediaError):
    """The redirect service failed in a way worth retrying."""

    def __init__(self, message: str) -> None:
        super().__init__(message, is_retryable=True)


class ContentFetchError(BingopediaError):
    """Article content could not be obtained."""

    def __init__(self, title: str, message: str, is_retryable: bool = False) -> None:
        super().__init__(message, is_retryable=is_retryable)
        self.title = title


class ArticleNotFoundError(ContentFetchError):
    def __init__(self, title: str) -> None:
        super().__init__(title, f"Article not found: {title}")


class TransientContentError(ContentFetchError):
    def __init__(self, title: str, reason: str) -> None:
        super().__init__(title, f"Failed to fetch {title}: {reason}", is_retryable=True)


class GameNotWonError(BingopediaError):
    """A final score was requested before any line was completed."""
