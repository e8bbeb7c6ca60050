from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import List, Mapping, Optional

from .models import CuratedPool
from .titles import normalize


@dataclass
class Feasibility:
    feasible: bool
    reasons: List[str]


def target_count(grid_size: int) -> int:
    """Grid cells plus the starting article."""
    return grid_size * grid_size + 1


def max_acceptable_categories(pool: CuratedPool, caps: Optional[Mapping[str, int]] = None) -> int:
    """Upper bound on categories a single walk can accept under group caps.

    Empty categories never contribute an article, so they are not counted.
    """
    caps = pool.caps() if caps is None else caps
    per_group: Counter[str] = Counter()
    ungrouped = 0
    for category in pool.categories:
        if not category.articles:
            continue
        if category.group is None or category.group not in caps:
            ungrouped += 1
        else:
            per_group[category.group] += 1
    capped = sum(min(count, caps[group]) for group, count in per_group.items())
    return ungrouped + capped


def distinct_article_count(pool: CuratedPool) -> int:
    return len({normalize(t) for c in pool.categories for t in c.articles if normalize(t)})


def check_pool_capacity(
    pool: CuratedPool, *, grid_size: int, caps: Optional[Mapping[str, int]] = None
) -> Feasibility:
    """Necessary conditions for a full puzzle; a walk may still fail on article collisions."""
    need = target_count(grid_size)
    reasons: List[str] = []
    acceptable = max_acceptable_categories(pool, caps)
    if acceptable < need:
        reasons.append(
            f"group caps admit at most {acceptable} categories, need {need}"
        )
    distinct = distinct_article_count(pool)
    if distinct < need:
        reasons.append(f"pool has {distinct} distinct articles, need {need}")
    return Feasibility(feasible=not reasons, reasons=reasons)
