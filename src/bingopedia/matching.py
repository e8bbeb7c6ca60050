from __future__ import annotations

import asyncio
import logging
from typing import Collection, Dict, Iterable, Optional, Set

from .models import Puzzle
from .redirects import RedirectResolver
from .titles import normalize
from .uniqueness import canonical_collisions

logger = logging.getLogger(__name__)


class MatchEngine:
    """Decides which grid cells a navigated article corresponds to.

    A cell matches when its canonical form equals the navigated article's,
    whichever side carries the redirect. The plain normalized spellings are
    compared as well so a failed lookup on one side still matches an exact
    title on the other.
    """

    def __init__(self, puzzle: Puzzle, resolver: RedirectResolver) -> None:
        self._puzzle = puzzle
        self._resolver = resolver
        self._grid_canonical: Dict[int, str] = {}

    @property
    def puzzle(self) -> Puzzle:
        return self._puzzle

    @property
    def grid_canonical(self) -> Dict[int, str]:
        return dict(self._grid_canonical)

    async def prewarm(self) -> Dict[int, str]:
        """Resolve every grid cell up front so later checks are cache hits."""
        await self._ensure_resolved(range(self._puzzle.cell_count))
        collisions = canonical_collisions(self._grid_canonical)
        for canonical, indices in collisions.items():
            logger.warning("Grid cells %s resolve to the same article %r", indices, canonical)
        return self.grid_canonical

    async def cell_canonical(self, index: int) -> str:
        await self._ensure_resolved([index])
        return self._grid_canonical[index]

    async def check_match(
        self,
        navigated_raw_title: str,
        matched: Collection[int] = (),
        *,
        resolved_title: Optional[str] = None,
    ) -> Set[int]:
        """Indices that become matched by visiting ``navigated_raw_title``.

        Cells already in ``matched`` are never returned again.
        """
        if resolved_title is None:
            resolved_title = await self._resolver.resolve(navigated_raw_title)
        keys = {normalize(navigated_raw_title), normalize(resolved_title)}
        keys.discard("")
        if not keys:
            return set()

        pending = [i for i in range(self._puzzle.cell_count) if i not in matched]
        await self._ensure_resolved(pending)
        newly: Set[int] = set()
        for index in pending:
            cell_keys = {normalize(self._puzzle.grid[index]), self._grid_canonical[index]}
            if cell_keys & keys:
                newly.add(index)
        if newly:
            logger.info("Article %r matched cells %s", resolved_title, sorted(newly))
        return newly

    def canonical_titles(self, indices: Iterable[int]) -> list[str]:
        """Canonical forms for the given cells in grid order, falling back to the raw key."""
        return [
            self._grid_canonical.get(i) or normalize(self._puzzle.grid[i])
            for i in sorted(indices)
        ]

    async def _ensure_resolved(self, indices: Iterable[int]) -> None:
        missing = [i for i in indices if i not in self._grid_canonical]
        if not missing:
            return
        resolved = await asyncio.gather(
            *(self._resolver.canonical(self._puzzle.grid[i]) for i in missing)
        )
        for index, canonical in zip(missing, resolved):
            self._grid_canonical[index] = canonical or normalize(self._puzzle.grid[index])
