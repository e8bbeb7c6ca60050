"""Navigation controller: the single writer of game session state."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, List, Optional, Set, Tuple

from .cache import BoundedCache
from .config import EngineSettings
from .exceptions import (
    ArticleNotFoundError,
    ContentFetchError,
    GameNotWonError,
    InvariantViolation,
    TransientContentError,
)
from .lines import detect_winning_lines, winning_cells
from .matching import MatchEngine
from .models import (
    ContentFailureKind,
    ContentResult,
    NavigationEvent,
    NavigationSource,
    Puzzle,
    ScoreReport,
)
from .redirects import RedirectResolver
from .services import ContentService, RedirectService
from .timer import GameTimer
from .titles import display_title, normalize

logger = logging.getLogger(__name__)


class NavState(str, Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    MATCH_CHECKING = "match_checking"
    TIMER_SYNC = "timer_sync"
    WON = "won"


class DropReason(str, Enum):
    NOT_STARTED = "not_started"
    WON = "won"
    BUSY = "busy"
    DEBOUNCED = "debounced"
    DUPLICATE = "duplicate"
    EMPTY = "empty"


@dataclass(frozen=True)
class NavigationOutcome:
    event: NavigationEvent
    accepted: bool
    generation: int
    resolved_title: Optional[str] = None
    newly_matched: FrozenSet[int] = frozenset()
    new_winning_lines: FrozenSet[str] = frozenset()
    drop_reason: Optional[DropReason] = None


@dataclass
class GameSession:
    """Everything that belongs to one game; replaced wholesale on a new game."""

    puzzle: Puzzle
    redirect_cache: BoundedCache[str]
    timer: GameTimer
    matched: Set[int] = field(default_factory=set)
    click_count: int = 0
    history: List[str] = field(default_factory=list)
    current_article: Optional[str] = None
    won: bool = False
    winning_lines: Set[str] = field(default_factory=set)
    generation: int = 0
    navigating: bool = False
    started: bool = False

    @classmethod
    def new(
        cls,
        puzzle: Puzzle,
        *,
        redirect_cache_size: int = 200,
        clock: Callable[[], float] = time.monotonic,
    ) -> "GameSession":
        return cls(
            puzzle=puzzle,
            redirect_cache=BoundedCache(redirect_cache_size),
            timer=GameTimer(clock),
        )

    @property
    def winning_cells(self) -> List[int]:
        return winning_cells(self.winning_lines, self.puzzle.grid_size)


class NavigationController:
    """Serializes navigation events against one game session.

    At most one navigation is in flight; events arriving meanwhile are dropped,
    not queued. Content loads run in the background and are tagged with the
    generation of the navigation that requested them, so a response arriving
    after a newer navigation began is discarded instead of overwriting it.
    """

    def __init__(
        self,
        session: GameSession,
        resolver: RedirectResolver,
        match_engine: MatchEngine,
        content_service: ContentService,
        *,
        resolve_timeout: float = 5.0,
        content_timeout: float = 15.0,
        debounce: float = 0.3,
        clock: Callable[[], float] = time.monotonic,
        on_match: Optional[Callable[[int, str], None]] = None,
        on_win: Optional[Callable[[FrozenSet[str]], None]] = None,
        on_content: Optional[Callable[[ContentResult], None]] = None,
        on_content_failed: Optional[Callable[[ContentResult], None]] = None,
        on_dropped: Optional[Callable[[NavigationEvent, DropReason], None]] = None,
    ) -> None:
        if match_engine.puzzle is not session.puzzle:
            raise InvariantViolation("Match engine is bound to a different puzzle than the session")
        self._session = session
        self._resolver = resolver
        self._engine = match_engine
        self._content = content_service
        self._resolve_timeout = resolve_timeout
        self._content_timeout = content_timeout
        self._debounce = debounce
        self._clock = clock
        self._on_match = on_match
        self._on_win = on_win
        self._on_content = on_content
        self._on_content_failed = on_content_failed
        self._on_dropped = on_dropped
        self._state = NavState.IDLE
        self._last_event: Optional[Tuple[str, float]] = None
        self._content_task: Optional["asyncio.Task[ContentResult]"] = None
        self._pending: Set["asyncio.Task[ContentResult]"] = set()

    @property
    def state(self) -> NavState:
        return self._state

    @property
    def session(self) -> GameSession:
        return self._session

    async def start(self) -> None:
        """Show the starting article and pre-resolve the grid."""
        session = self._session
        if session.started:
            raise InvariantViolation("Game session already started")
        session.started = True
        session.generation += 1
        starting = session.puzzle.starting
        session.current_article = starting
        session.history.append(starting)
        self._spawn_content(session.generation, starting)
        await self._engine.prewarm()

    async def navigate(
        self,
        title: str,
        source: NavigationSource = NavigationSource.LINK,
        *,
        timestamp: Optional[float] = None,
    ) -> NavigationOutcome:
        event = NavigationEvent(
            title=title,
            source=source,
            timestamp=self._clock() if timestamp is None else timestamp,
        )
        # guard and lock happen before the first await
        reason = self._guard(event)
        if reason is not None:
            return self._drop(event, reason)

        session = self._session
        session.navigating = True
        session.generation += 1
        stamp = session.generation
        self._last_event = (normalize(title), event.timestamp)
        try:
            return await self._run(event, stamp)
        finally:
            session.navigating = False
            if self._state is not NavState.WON:
                self._state = NavState.IDLE

    async def wait_for_content(self) -> Optional[ContentResult]:
        """Await the most recently requested content load."""
        if self._content_task is None:
            return None
        return await self._content_task

    def export_puzzle(self) -> Puzzle:
        return self._session.puzzle

    def snapshot(self) -> ScoreReport:
        session = self._session
        return ScoreReport(
            elapsed_seconds=session.timer.elapsed_seconds,
            click_count=session.click_count,
            matched_canonical_titles=tuple(self._engine.canonical_titles(session.matched)),
            navigation_history=tuple(session.history),
            winning_lines=tuple(sorted(session.winning_lines)),
        )

    def score_report(self) -> ScoreReport:
        """Final totals for the score sink; only available once the game is won."""
        if not self._session.won:
            raise GameNotWonError("No winning line yet")
        return self.snapshot()

    def _guard(self, event: NavigationEvent) -> Optional[DropReason]:
        session = self._session
        if not session.started:
            return DropReason.NOT_STARTED
        if session.won:
            return DropReason.WON
        if session.navigating:
            return DropReason.BUSY
        key = normalize(event.title)
        if not key:
            return DropReason.EMPTY
        if self._last_event is not None:
            last_key, last_ts = self._last_event
            if key == last_key and event.timestamp - last_ts < self._debounce:
                return DropReason.DEBOUNCED
        if key == normalize(session.current_article):
            return DropReason.DUPLICATE
        return None

    def _drop(self, event: NavigationEvent, reason: DropReason) -> NavigationOutcome:
        logger.debug("Dropped navigation to %r (%s)", event.title, reason.value)
        self._emit(self._on_dropped, event, reason)
        return NavigationOutcome(
            event=event,
            accepted=False,
            generation=self._session.generation,
            drop_reason=reason,
        )

    async def _run(self, event: NavigationEvent, stamp: int) -> NavigationOutcome:
        session = self._session

        self._state = NavState.NAVIGATING
        session.click_count += 1
        session.timer.pause()
        resolved = await self._resolve_bounded(event.title)
        self._require_lock(stamp)
        session.current_article = resolved
        session.history.append(resolved)
        self._spawn_content(stamp, resolved)

        self._state = NavState.MATCH_CHECKING
        newly = await self._engine.check_match(event.title, session.matched, resolved_title=resolved)
        new_lines = self._commit_matches(stamp, newly)

        if not session.won:
            self._state = NavState.TIMER_SYNC
            self._sync_timer(stamp)

        for index in sorted(newly):
            self._emit(self._on_match, index, session.puzzle.grid[index])
        if new_lines and session.won:
            logger.info(
                "Bingo after %d clicks and %ds: %s",
                session.click_count,
                session.timer.elapsed_seconds,
                sorted(new_lines),
            )
            self._emit(self._on_win, frozenset(new_lines))

        return NavigationOutcome(
            event=event,
            accepted=True,
            generation=stamp,
            resolved_title=resolved,
            newly_matched=frozenset(newly),
            new_winning_lines=frozenset(new_lines),
        )

    async def _resolve_bounded(self, title: str) -> str:
        try:
            resolved = await asyncio.wait_for(self._resolver.resolve(title), self._resolve_timeout)
        except asyncio.TimeoutError:
            logger.warning("Redirect for %r not resolved within %.1fs; using original title", title, self._resolve_timeout)
            return display_title(title)
        return resolved or display_title(title)

    def _require_lock(self, stamp: int) -> None:
        session = self._session
        if not session.navigating or stamp != session.generation:
            raise InvariantViolation(
                f"Navigation generation {stamp} mutating state without the lock "
                f"(current generation {session.generation})"
            )

    def _commit_matches(self, stamp: int, newly: Set[int]) -> Set[str]:
        self._require_lock(stamp)
        session = self._session
        out_of_range = [i for i in newly if not 0 <= i < session.puzzle.cell_count]
        if out_of_range:
            raise InvariantViolation(f"Match engine returned unknown cells {out_of_range}")
        session.matched.update(newly)
        lines = detect_winning_lines(session.matched, session.puzzle.grid_size)
        new_lines = lines - session.winning_lines
        session.winning_lines |= lines
        if lines and not session.won:
            session.won = True
            session.timer.stop()
            self._state = NavState.WON
        return new_lines

    def _sync_timer(self, stamp: int) -> None:
        task = self._content_task
        if task is not None and task.done() and stamp == self._session.generation:
            self._session.timer.resume()

    def _spawn_content(self, stamp: int, title: str) -> None:
        task = asyncio.ensure_future(self._load_content(stamp, title))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self._content_task = task

    async def _load_content(self, stamp: int, title: str) -> ContentResult:
        try:
            markup = await asyncio.wait_for(self._content.fetch_content(title), self._content_timeout)
            result = ContentResult(title=title, generation=stamp, markup=markup)
        except ArticleNotFoundError as exc:
            result = ContentResult(
                title=title, generation=stamp, failure=ContentFailureKind.NOT_FOUND, error=exc.message
            )
        except TransientContentError as exc:
            result = ContentResult(
                title=title, generation=stamp, failure=ContentFailureKind.TRANSIENT, error=exc.message
            )
        except asyncio.TimeoutError:
            result = ContentResult(
                title=title,
                generation=stamp,
                failure=ContentFailureKind.TRANSIENT,
                error=f"timed out after {self._content_timeout:.1f}s",
            )
        except ContentFetchError as exc:
            result = ContentResult(
                title=title, generation=stamp, failure=ContentFailureKind.TRANSIENT, error=exc.message
            )
        except Exception as exc:
            logger.warning("Unexpected error fetching content for %r: %r", title, exc)
            result = ContentResult(
                title=title,
                generation=stamp,
                failure=ContentFailureKind.TRANSIENT,
                error=str(exc) or exc.__class__.__name__,
            )

        if stamp != self._session.generation:
            logger.debug(
                "Discarding content for %r from generation %d (current %d)",
                title,
                stamp,
                self._session.generation,
            )
            return result

        self._session.timer.resume()
        if result.ok:
            self._emit(self._on_content, result)
        else:
            logger.warning("Content for %r failed (%s): %s", title, result.failure.value, result.error)
            self._emit(self._on_content_failed, result)
        return result

    def _emit(self, callback: Optional[Callable[..., None]], *args: object) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Navigation callback %r failed", callback)


def create_game(
    puzzle: Puzzle,
    redirect_service: RedirectService,
    content_service: ContentService,
    settings: Optional[EngineSettings] = None,
    *,
    clock: Callable[[], float] = time.monotonic,
    **callbacks: Callable[..., None],
) -> NavigationController:
    """Wire a fresh session, resolver, match engine and controller for one game."""
    settings = settings or EngineSettings()
    session = GameSession.new(puzzle, redirect_cache_size=settings.redirect_cache_size, clock=clock)
    resolver = RedirectResolver(
        redirect_service,
        cache=session.redirect_cache,
        timeout=settings.resolve_timeout_sec,
        retry_policy=settings.retry,
    )
    engine = MatchEngine(puzzle, resolver)
    return NavigationController(
        session,
        resolver,
        engine,
        content_service,
        resolve_timeout=settings.resolve_timeout_sec,
        content_timeout=settings.content_timeout_sec,
        debounce=settings.debounce_sec,
        clock=clock,
        **callbacks,
    )
