from __future__ import annotations

import json
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import PuzzleFormatError
from .models import Puzzle, ScoreReport
from .uniqueness import puzzle_hash, puzzle_id


def ensure_parent(path: Path, *, mkdirs: bool) -> None:
    parent = path.parent
    if not parent.exists() and mkdirs:
        parent.mkdir(parents=True, exist_ok=True)


def write_json(path: Path, data: object, *, mkdirs: bool, overwrite: bool) -> None:
    if path.exists() and not overwrite:
        raise FileExistsError(
            f"Refusing to overwrite existing file without --force: {path}"
        )
    ensure_parent(path, mkdirs=mkdirs)
    text = json.dumps(data, ensure_ascii=False, sort_keys=True, indent=2)
    path.write_text(text + "\n", encoding="utf-8")


def build_run_meta(
    *,
    app_version: str,
    params_hash: str,
    seed: Optional[int],
    rng_engine: str,
    policy: str,
) -> Dict[str, object]:
    return {
        "app_version": app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "python_version": sys.version.split()[0],
        "platform": platform.system().lower(),
        "params_hash": params_hash,
        "seed": seed,
        "rng_engine": rng_engine,
        "generation_policy": policy,
        "hash_algorithm": "sha256",
    }


def puzzle_to_dict(puzzle: Puzzle) -> Dict[str, object]:
    return {
        "grid_size": puzzle.grid_size,
        "grid": list(puzzle.grid),
        "starting": puzzle.starting,
        # flat form used for sharing: grid cells then the starting article
        "bingopediaGame": puzzle.titles(),
    }


def puzzle_from_dict(data: Dict[str, Any]) -> Puzzle:
    body = data.get("puzzle", data)
    if not isinstance(body, dict):
        raise PuzzleFormatError("Puzzle payload must be a mapping")
    grid_size = body.get("grid_size")
    if "grid" in body and "starting" in body:
        grid = body["grid"]
        if not isinstance(grid, list) or not all(isinstance(t, str) for t in grid):
            raise PuzzleFormatError("'grid' must be a list of titles")
        size = int(grid_size) if grid_size is not None else None
        return Puzzle.from_titles(list(grid) + [str(body["starting"])], size)
    titles = body.get("bingopediaGame")
    if not isinstance(titles, list) or not all(isinstance(t, str) for t in titles):
        raise PuzzleFormatError("Puzzle payload needs 'grid'+'starting' or 'bingopediaGame'")
    return Puzzle.from_titles(titles, int(grid_size) if grid_size is not None else None)


def emit_puzzle_json(
    path: Path,
    *,
    puzzle: Puzzle,
    run_meta: Dict[str, object],
    mkdirs: bool,
    overwrite: bool,
) -> None:
    data = {
        "run_meta": run_meta,
        "puzzle": puzzle_to_dict(puzzle),
        "puzzle_hash": puzzle_hash(puzzle),
        "puzzle_id": puzzle_id(puzzle),
    }
    write_json(path, data, mkdirs=mkdirs, overwrite=overwrite)


def load_puzzle_json(path: Path) -> Puzzle:
    if not path.exists():
        raise FileNotFoundError(f"Puzzle file not found: {path}")
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise PuzzleFormatError("Top-level puzzle JSON must be a mapping")
    return puzzle_from_dict(data)


def emit_score_report_json(
    path: Path, *, report: ScoreReport, puzzle: Puzzle, mkdirs: bool, overwrite: bool
) -> None:
    data = dict(report.to_dict())
    data["puzzle_id"] = puzzle_id(puzzle)
    write_json(path, data, mkdirs=mkdirs, overwrite=overwrite)
