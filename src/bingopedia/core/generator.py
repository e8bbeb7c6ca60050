"""Puzzle generator with configurable failure policies."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from ..exceptions import InsufficientPoolError, InvariantViolation
from ..feasibility import check_pool_capacity, target_count
from ..models import DEFAULT_GRID_SIZE, CuratedCategory, CuratedPool, Puzzle
from ..rng import RandomSource, create_rng, derive_seed
from ..titles import normalize
from ..verify import verify_puzzle
from .constraints import GroupConstraintChecker

logger = logging.getLogger(__name__)

POLICIES = ("fail_fast", "relax")


@dataclass
class GenerationParams:
    """Parameters for puzzle generation."""

    grid_size: int = DEFAULT_GRID_SIZE
    seed: Optional[int] = None
    rng_engine: str = "py_random"
    policy: str = "fail_fast"
    relax_max_rounds: int = 3


@dataclass
class GenerationMetrics:
    """Counters describing how a walk went."""

    categories_walked: int = 0
    skipped_by_group: int = 0
    skipped_exhausted: int = 0
    relax_rounds: int = 0


@dataclass
class GenerationResult:
    """A puzzle plus the bookkeeping needed to audit it."""

    puzzle: Puzzle
    sources: List[str]
    group_usage: Dict[str, int]
    caps: Dict[str, int]
    metrics: GenerationMetrics = field(default_factory=GenerationMetrics)


class PuzzleGenerator:
    """Samples one article per category, honouring group caps, until the board is full."""

    def __init__(self, policy: str = "fail_fast", relax_max_rounds: int = 3):
        if policy not in POLICIES:
            raise ValueError(f"Unknown generation policy: {policy}")
        self.policy = policy
        self.relax_max_rounds = relax_max_rounds

    @classmethod
    def from_params(cls, params: GenerationParams) -> "PuzzleGenerator":
        return cls(policy=params.policy, relax_max_rounds=params.relax_max_rounds)

    def generate(self, pool: CuratedPool, params: GenerationParams) -> GenerationResult:
        """Build a puzzle using the configured policy."""
        if params.grid_size < 1:
            raise ValueError("grid_size must be >= 1")
        if self.policy == "relax":
            return self._generate_relaxing(pool, params)
        return self._generate_fail_fast(pool, params)

    def _generate_fail_fast(self, pool: CuratedPool, params: GenerationParams) -> GenerationResult:
        feasibility = check_pool_capacity(pool, grid_size=params.grid_size)
        if not feasibility.feasible:
            raise InsufficientPoolError(
                "Curated pool cannot satisfy the puzzle size under group constraints",
                reasons=feasibility.reasons,
            )
        rng = create_rng(params.rng_engine, params.seed)
        return self._walk(pool, GroupConstraintChecker(pool.caps()), params.grid_size, rng)

    def _generate_relaxing(self, pool: CuratedPool, params: GenerationParams) -> GenerationResult:
        """Retry with every group cap raised by one per round."""
        base = GroupConstraintChecker(pool.caps())
        last_error: Optional[InsufficientPoolError] = None
        for round_idx in range(self.relax_max_rounds + 1):
            checker = base.relaxed(round_idx)
            seed = params.seed if params.seed is None else derive_seed(params.seed, round_idx, "relax")
            rng = create_rng(params.rng_engine, seed)
            try:
                result = self._walk(pool, checker, params.grid_size, rng)
            except InsufficientPoolError as exc:
                last_error = exc
                logger.warning(
                    "Generation round %d failed (%s); relaxing group caps", round_idx, exc.message
                )
                continue
            result.metrics.relax_rounds = round_idx
            return result
        assert last_error is not None
        raise InsufficientPoolError(
            f"Curated pool exhausted after {self.relax_max_rounds} relaxation rounds",
            reasons=last_error.reasons,
        )

    def _walk(
        self,
        pool: CuratedPool,
        checker: GroupConstraintChecker,
        grid_size: int,
        rng: RandomSource,
    ) -> GenerationResult:
        target = target_count(grid_size)
        metrics = GenerationMetrics()
        chosen: List[str] = []
        sources: List[str] = []
        used: Set[str] = set()

        for category in rng.shuffled(pool.categories):
            if len(chosen) == target:
                break
            metrics.categories_walked += 1
            if not checker.can_accept(category.group):
                metrics.skipped_by_group += 1
                continue
            article = self._pick_article(category, used, rng)
            if article is None:
                metrics.skipped_exhausted += 1
                continue
            checker.accept(category.group)
            used.add(normalize(article))
            chosen.append(article)
            sources.append(category.name)

        if len(chosen) < target:
            raise InsufficientPoolError(
                f"Need {target} articles, pool yielded {len(chosen)}",
                reasons=[
                    f"{metrics.skipped_by_group} categories skipped by group caps",
                    f"{metrics.skipped_exhausted} categories had no unused article",
                ],
            )

        cells = grid_size * grid_size
        puzzle = Puzzle(grid=tuple(chosen[:cells]), starting=chosen[cells], grid_size=grid_size)
        result = GenerationResult(
            puzzle=puzzle,
            sources=sources,
            group_usage=checker.snapshot(),
            caps=dict(checker.caps),
            metrics=metrics,
        )
        self._check_invariants(result)
        logger.debug(
            "Generated puzzle after walking %d categories (%d skipped by caps)",
            metrics.categories_walked,
            metrics.skipped_by_group,
        )
        return result

    def _pick_article(
        self, category: CuratedCategory, used: Set[str], rng: RandomSource
    ) -> Optional[str]:
        candidates = [a for a in category.articles if normalize(a) and normalize(a) not in used]
        if not candidates:
            return None
        return rng.choice(candidates)

    def _check_invariants(self, result: GenerationResult) -> None:
        report = verify_puzzle(result.puzzle, group_usage=result.group_usage, caps=result.caps)
        if not report["ok"]:
            raise InvariantViolation(f"Generated puzzle violates invariants: {report}")
