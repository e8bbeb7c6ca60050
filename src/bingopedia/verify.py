from __future__ import annotations

from collections import Counter
from typing import Dict, List, Mapping, Optional, Sequence

from .models import Puzzle
from .titles import normalize
from .uniqueness import puzzle_hash, title_collisions


def count_group_usage(groups: Sequence[Optional[str]]) -> Dict[str, int]:
    counts: Counter[str] = Counter(g for g in groups if g is not None)
    return dict(counts)


def group_cap_violations(usage: Mapping[str, int], caps: Mapping[str, int]) -> List[str]:
    return [
        f"group {group!r} used {count} times, cap is {caps[group]}"
        for group, count in sorted(usage.items())
        if group in caps and count > caps[group]
    ]


def verify_puzzle(
    puzzle: Puzzle,
    *,
    group_usage: Optional[Mapping[str, int]] = None,
    caps: Optional[Mapping[str, int]] = None,
) -> Dict[str, object]:
    titles = puzzle.titles()
    collisions = title_collisions(titles)
    empty = [idx for idx, t in enumerate(titles) if not normalize(t)]
    violations = group_cap_violations(group_usage or {}, caps or {})
    return {
        "grid_size": puzzle.grid_size,
        "cell_count": puzzle.cell_count,
        "puzzle_hash": puzzle_hash(puzzle),
        "collisions": collisions,
        "empty_titles": empty,
        "group_usage": dict(group_usage or {}),
        "group_violations": violations,
        "ok_distinct_titles": not collisions,
        "ok_non_empty_titles": not empty,
        "ok_group_caps": not violations,
        "ok": not collisions and not empty and not violations,
    }
