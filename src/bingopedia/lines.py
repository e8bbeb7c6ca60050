from __future__ import annotations

from functools import lru_cache
from typing import Collection, Dict, Iterable, List, Set, Tuple


@lru_cache(maxsize=16)
def enumerate_lines(grid_size: int) -> Tuple[Tuple[str, Tuple[int, ...]], ...]:
    """All winning lines of an NxN board as ``(line_id, indices)`` pairs.

    Rows first, then columns, then the two diagonals. Indices are row-major.
    """
    if grid_size < 1:
        raise ValueError("grid_size must be >= 1")
    n = grid_size
    lines: List[Tuple[str, Tuple[int, ...]]] = []
    for r in range(n):
        lines.append((f"row-{r}", tuple(r * n + c for c in range(n))))
    for c in range(n):
        lines.append((f"col-{c}", tuple(r * n + c for r in range(n))))
    lines.append(("diag-main", tuple(i * n + i for i in range(n))))
    lines.append(("diag-anti", tuple(i * n + (n - 1 - i) for i in range(n))))
    return tuple(lines)


def line_index(grid_size: int) -> Dict[str, Tuple[int, ...]]:
    return dict(enumerate_lines(grid_size))


def detect_winning_lines(matched_indices: Collection[int], grid_size: int) -> Set[str]:
    matched = set(matched_indices)
    if not matched:
        return set()
    return {
        line_id
        for line_id, indices in enumerate_lines(grid_size)
        if all(i in matched for i in indices)
    }


def winning_cells(line_ids: Iterable[str], grid_size: int) -> List[int]:
    """Sorted union of the cells covered by the given lines, for highlighting."""
    lookup = line_index(grid_size)
    cells: Set[int] = set()
    for line_id in line_ids:
        cells.update(lookup[line_id])
    return sorted(cells)
