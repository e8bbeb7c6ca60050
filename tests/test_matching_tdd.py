from __future__ import annotations

import logging

from bingopedia.matching import MatchEngine
from bingopedia.models import Puzzle
from bingopedia.redirects import RedirectResolver

from conftest import ANIMAL_GRID, FakeRedirectService


def engine_for(puzzle, service):
    return MatchEngine(puzzle, RedirectResolver(service))


async def test_redirect_on_navigated_side(animal_puzzle, redirect_service):
    engine = engine_for(animal_puzzle, redirect_service)
    assert await engine.check_match("Canine") == {0}


async def test_redirect_on_grid_side(redirect_service):
    grid = ["Domestic cat"] + ANIMAL_GRID[2:] + ["Extra"]
    puzzle = Puzzle(grid=tuple(grid), starting="Animal", grid_size=5)
    engine = engine_for(puzzle, redirect_service)
    assert await engine.check_match("Cat") == {0}
    assert await engine.check_match("cat") == {0}


async def test_exact_match_survives_failed_resolution(animal_puzzle):
    service = FakeRedirectService()
    service.fail("Horse", 10)
    engine = engine_for(animal_puzzle, service)
    assert await engine.check_match("horse") == {3}


async def test_already_matched_cells_not_returned(animal_puzzle, redirect_service):
    engine = engine_for(animal_puzzle, redirect_service)
    assert await engine.check_match("Dog", matched={0}) == set()
    assert await engine.check_match("Unrelated article") == set()


async def test_prewarm_warns_on_canonical_collision(redirect_service, caplog):
    grid = ["Dog", "Canine"] + ANIMAL_GRID[2:] + ["Extra"]
    puzzle = Puzzle(grid=tuple(grid), starting="Animal", grid_size=5)
    engine = engine_for(puzzle, redirect_service)
    with caplog.at_level(logging.WARNING, logger="bingopedia.matching"):
        canonical = await engine.prewarm()
    assert canonical[0] == canonical[1] == "dog"
    assert "same article" in caplog.text
    assert await engine.check_match("Dog") == {0, 1}
    assert engine.canonical_titles([1, 0]) == ["dog", "dog"]


async def test_prewarm_makes_checks_cache_hits(animal_puzzle, redirect_service):
    engine = engine_for(animal_puzzle, redirect_service)
    await engine.prewarm()
    before = len(redirect_service.calls)
    assert await engine.cell_canonical(1) == "cat"
    await engine.check_match("Bird")
    assert len(redirect_service.calls) == before
