from __future__ import annotations

import hashlib
import json
from collections import defaultdict
from typing import Dict, Iterable, List, Sequence

from .models import Puzzle
from .titles import normalize


def title_collisions(titles: Sequence[str]) -> Dict[str, List[int]]:
    """Normalized forms shared by more than one position, with those positions."""
    positions: Dict[str, List[int]] = defaultdict(list)
    for idx, title in enumerate(titles):
        positions[normalize(title)].append(idx)
    return {key: idxs for key, idxs in positions.items() if len(idxs) > 1}


def canonical_collisions(canonical_by_index: Dict[int, str]) -> Dict[str, List[int]]:
    """Grid cells that only collide after redirect resolution."""
    positions: Dict[str, List[int]] = defaultdict(list)
    for idx in sorted(canonical_by_index):
        positions[canonical_by_index[idx]].append(idx)
    return {key: idxs for key, idxs in positions.items() if key and len(idxs) > 1}


def titles_hash(titles: Iterable[str]) -> str:
    payload = json.dumps(list(titles), ensure_ascii=True, separators=(",", ":"))
    return "sha256:" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


def puzzle_hash(puzzle: Puzzle) -> str:
    return titles_hash(puzzle.titles())


def puzzle_id(puzzle: Puzzle) -> str:
    """Short shareable identifier (16 hex chars) derived from the puzzle hash."""
    return puzzle_hash(puzzle).split(":", 1)[1][:16]
