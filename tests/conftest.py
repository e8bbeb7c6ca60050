from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional

import pytest

from bingopedia.exceptions import ArticleNotFoundError, RedirectServiceError, TransientContentError
from bingopedia.models import CuratedCategory, CuratedGroup, CuratedPool, Puzzle
from bingopedia.titles import display_title, normalize


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedirectService:
    """Redirect graph keyed by normalized source title."""

    def __init__(self, redirects: Optional[Dict[str, str]] = None, missing: Iterable[str] = ()):
        self.redirects = {normalize(k): v for k, v in (redirects or {}).items()}
        self.missing = {normalize(t) for t in missing}
        self.failing: Dict[str, int] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []

    def gate(self, title: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[normalize(title)] = event
        return event

    def fail(self, title: str, times: int) -> None:
        self.failing[normalize(title)] = times

    async def resolve_canonical(self, title: str) -> Optional[str]:
        self.calls.append(title)
        key = normalize(title)
        if key in self.gates:
            await self.gates[key].wait()
        if self.failing.get(key, 0) > 0:
            self.failing[key] -= 1
            raise RedirectServiceError(f"boom for {title}")
        if key in self.missing:
            return None
        return self.redirects.get(key, display_title(title))


class FakeContentService:
    def __init__(self, not_found: Iterable[str] = (), transient: Iterable[str] = ()):
        self.not_found = {normalize(t) for t in not_found}
        self.transient = {normalize(t) for t in transient}
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []

    def gate(self, title: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[normalize(title)] = event
        return event

    async def fetch_content(self, title: str) -> str:
        self.calls.append(title)
        key = normalize(title)
        if key in self.gates:
            await self.gates[key].wait()
        if key in self.not_found:
            raise ArticleNotFoundError(title)
        if key in self.transient:
            raise TransientContentError(title, "HTTP 503")
        return f"<p>{title}</p>"


ANIMAL_GRID = ["Dog", "Cat", "Bird", "Horse", "Cow"] + [f"Cell {i}" for i in range(5, 25)]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def animal_puzzle() -> Puzzle:
    return Puzzle(grid=tuple(ANIMAL_GRID), starting="Animal", grid_size=5)


@pytest.fixture
def redirect_service() -> FakeRedirectService:
    return FakeRedirectService(redirects={"Canine": "Dog", "Domestic cat": "Cat", "USA": "United States"})


@pytest.fixture
def content_service() -> FakeContentService:
    return FakeContentService()


def make_pool(
    n_categories: int,
    *,
    articles_per_category: int = 3,
    grouped: int = 0,
    group_cap: int = 1,
    group: str = "occupations",
) -> CuratedPool:
    """Pool whose last ``grouped`` categories belong to ``group``; article titles never overlap."""
    categories = []
    for c in range(n_categories):
        categories.append(
            CuratedCategory(
                name=f"cat{c}",
                articles=tuple(f"Article {c}-{a}" for a in range(articles_per_category)),
                group=group if c >= n_categories - grouped else None,
            )
        )
    groups = {group: CuratedGroup(name=group, max_per_game=group_cap)} if grouped else {}
    return CuratedPool(categories=categories, groups=groups)


@pytest.fixture
def pool_factory():
    return make_pool
