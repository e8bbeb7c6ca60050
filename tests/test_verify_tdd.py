from __future__ import annotations

from bingopedia.core import GenerationParams, PuzzleGenerator
from bingopedia.models import Puzzle
from bingopedia.verify import count_group_usage, group_cap_violations, verify_puzzle


def test_generated_puzzle_verifies(pool_factory):
    result = PuzzleGenerator().generate(pool_factory(40, grouped=8, group_cap=3), GenerationParams(seed=123))
    rep = verify_puzzle(result.puzzle, group_usage=result.group_usage, caps=result.caps)
    assert rep["ok"] is True
    assert rep["ok_distinct_titles"] is True
    assert rep["ok_group_caps"] is True
    assert rep["cell_count"] == 25
    assert rep["puzzle_hash"].startswith("sha256:")


def test_duplicate_between_grid_and_start_detected():
    grid = tuple(f"T{i}" for i in range(9))
    rep = verify_puzzle(Puzzle(grid=grid, starting="t4", grid_size=3))
    assert rep["ok"] is False
    assert rep["collisions"] == {"t4": [4, 9]}


def test_empty_title_detected():
    grid = tuple(f"T{i}" for i in range(8)) + ("  ",)
    rep = verify_puzzle(Puzzle(grid=grid, starting="Start", grid_size=3))
    assert rep["empty_titles"] == [8]
    assert rep["ok_non_empty_titles"] is False


def test_group_caps():
    usage = count_group_usage(["a", None, "a", "b", "a"])
    assert usage == {"a": 3, "b": 1}
    assert group_cap_violations(usage, {"a": 2, "b": 1}) == ["group 'a' used 3 times, cap is 2"]
    assert group_cap_violations(usage, {}) == []
