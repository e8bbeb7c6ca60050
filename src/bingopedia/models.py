from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .exceptions import PuzzleFormatError

DEFAULT_GRID_SIZE = 5


@dataclass(frozen=True)
class CuratedGroup:
    name: str
    max_per_game: int


@dataclass(frozen=True)
class CuratedCategory:
    name: str
    articles: Tuple[str, ...]
    group: Optional[str] = None


@dataclass
class CuratedPool:
    """Categories plus the group caps that constrain how many may share a puzzle."""

    categories: List[CuratedCategory]
    groups: Dict[str, CuratedGroup] = field(default_factory=dict)

    def caps(self) -> Dict[str, int]:
        return {name: g.max_per_game for name, g in self.groups.items()}

    @property
    def total_articles(self) -> int:
        return sum(len(c.articles) for c in self.categories)


@dataclass(frozen=True)
class Puzzle:
    """Immutable bingo board: grid titles in row-major order plus a starting title."""

    grid: Tuple[str, ...]
    starting: str
    grid_size: int = DEFAULT_GRID_SIZE

    def __post_init__(self) -> None:
        if self.grid_size < 1:
            raise PuzzleFormatError(f"grid_size must be positive, got {self.grid_size}")
        expected = self.grid_size * self.grid_size
        if len(self.grid) != expected:
            raise PuzzleFormatError(
                f"Puzzle of size {self.grid_size} needs {expected} grid titles, got {len(self.grid)}"
            )

    @property
    def cell_count(self) -> int:
        return len(self.grid)

    def titles(self) -> List[str]:
        """Grid titles followed by the starting title (the shareable flat form)."""
        return list(self.grid) + [self.starting]

    def rows(self) -> List[List[str]]:
        n = self.grid_size
        return [list(self.grid[r * n:(r + 1) * n]) for r in range(n)]

    @classmethod
    def from_titles(cls, titles: Sequence[str], grid_size: Optional[int] = None) -> "Puzzle":
        if grid_size is None:
            root = math.isqrt(max(len(titles) - 1, 0))
            if root * root + 1 != len(titles):
                raise PuzzleFormatError(
                    f"Cannot infer grid size from {len(titles)} titles"
                )
            grid_size = root
        expected = grid_size * grid_size + 1
        if len(titles) != expected:
            raise PuzzleFormatError(f"Expected {expected} titles, got {len(titles)}")
        return cls(grid=tuple(titles[:-1]), starting=titles[-1], grid_size=grid_size)


class NavigationSource(str, Enum):
    LINK = "link"
    HISTORY = "history"
    GRID = "grid"
    EXTERNAL = "external"


@dataclass(frozen=True)
class NavigationEvent:
    title: str
    source: NavigationSource = NavigationSource.LINK
    timestamp: float = field(default_factory=time.monotonic)


class ContentFailureKind(str, Enum):
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class ContentResult:
    """Outcome of a content fetch for one navigation generation."""

    title: str
    generation: int
    markup: Optional[str] = None
    failure: Optional[ContentFailureKind] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class ScoreReport:
    elapsed_seconds: int
    click_count: int
    matched_canonical_titles: Tuple[str, ...]
    navigation_history: Tuple[str, ...]
    winning_lines: Tuple[str, ...] = ()

    @property
    def score(self) -> int:
        return self.elapsed_seconds * self.click_count

    def to_dict(self) -> Dict[str, object]:
        return {
            "score": self.score,
            "time": self.elapsed_seconds,
            "clicks": self.click_count,
            "bingoSquares": list(self.matched_canonical_titles),
            "history": list(self.navigation_history),
            "winningLines": list(self.winning_lines),
        }
