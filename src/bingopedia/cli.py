from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path
from typing import List

import typer

from .config import resolve_parameters, settings_from_resolved
from .core import GenerationParams, PuzzleGenerator
from .curated import load_pool
from .exceptions import InsufficientPoolError, PuzzleFormatError
from .logging_setup import setup_logging
from .redirects import RedirectResolver
from .serialize import build_run_meta, emit_puzzle_json, load_puzzle_json
from .uniqueness import puzzle_id
from .verify import verify_puzzle
from .version import __version__
from .wiki import WikipediaClient

app = typer.Typer(help="Wikipedia bingo puzzle engine CLI")


@app.callback(invoke_without_command=True)
def common_options(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", help="Show application version and exit", is_eager=True
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(0)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)


@app.command()
def generate(
    pool: str = typer.Option(None, "--pool", help="Curated articles file (JSON/YAML)"),
    config: str = typer.Option(None, "--config", help="Path to config file (YAML/JSON)"),
    grid_size: int = typer.Option(None, "--grid-size", help="Board side length"),
    seed: int = typer.Option(None, "--seed", help="RNG seed for reproducible puzzles"),
    policy: str = typer.Option(None, "--policy", help="fail_fast|relax"),
    out_puzzle: str = typer.Option(None, "--out-puzzle", help="puzzle.json output path"),
    log_file: str = typer.Option(None, "--log-file", help="Log file path"),
    log_level: str = typer.Option(None, "--log-level", help="DEBUG|INFO|WARN|ERROR"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Resolve params and exit"),
    force: bool = typer.Option(False, "--force", help="Overwrite outputs if they exist"),
    no_mkdirs: bool = typer.Option(False, "--no-mkdirs", help="Do not create parent directories"),
) -> None:
    """Generate a puzzle from a curated category pool."""

    cli_overrides = {}
    if pool:
        cli_overrides["pool_path"] = pool
    if grid_size is not None:
        cli_overrides["grid_size"] = grid_size
    if seed is not None:
        cli_overrides["seed.value"] = seed
    if policy:
        cli_overrides["generation_policy"] = policy
    if out_puzzle:
        cli_overrides["out_puzzle"] = out_puzzle
    if log_file:
        cli_overrides["log_file"] = log_file
    if log_level:
        cli_overrides["log_level"] = log_level

    resolved, params_hash, _cfg_path_unused = resolve_parameters(
        config_path_str=config, cli_overrides=cli_overrides
    )

    setup_logging(
        level=str(resolved.get("log_level", "INFO")),
        log_file=resolved.get("log_file"),
        json_format=(str(resolved.get("log_format", "text")) == "json"),
    )
    settings = settings_from_resolved(resolved)

    if dry_run:
        typer.echo(f"Policy: {settings.generation_policy}")
        typer.echo(f"Params hash: {params_hash}")
        raise typer.Exit(0)

    pool_path = resolved.get("pool_path")
    if not pool_path:
        typer.echo("No curated pool given (--pool or pool_path in config)", err=True)
        raise typer.Exit(code=2)

    curated = load_pool(Path(pool_path))
    params = GenerationParams(
        grid_size=settings.grid_size,
        seed=settings.seed,
        rng_engine=settings.rng_engine,
        policy=settings.generation_policy,
        relax_max_rounds=settings.relax_max_rounds,
    )

    start_time = time.time()
    try:
        result = PuzzleGenerator.from_params(params).generate(curated, params)
    except InsufficientPoolError as exc:
        typer.echo(f"Cannot start a game: {exc.message}", err=True)
        for reason in exc.reasons:
            typer.echo(f"  - {reason}", err=True)
        raise typer.Exit(code=1)
    elapsed = time.time() - start_time

    report = verify_puzzle(result.puzzle, group_usage=result.group_usage, caps=result.caps)
    run_meta = build_run_meta(
        app_version=__version__,
        params_hash=params_hash,
        seed=settings.seed,
        rng_engine=settings.rng_engine,
        policy=settings.generation_policy,
    )

    out_path = Path(resolved.get("out_puzzle") or "puzzle.json")
    emit_puzzle_json(
        out_path,
        puzzle=result.puzzle,
        run_meta=run_meta,
        mkdirs=(not no_mkdirs),
        overwrite=force,
    )

    for row in result.puzzle.rows():
        typer.echo(" | ".join(row))
    typer.echo(f"Start: {result.puzzle.starting}")
    typer.echo(
        f"Generated puzzle {puzzle_id(result.puzzle)} in {elapsed:.3f}s "
        f"({result.metrics.categories_walked} categories walked, "
        f"{result.metrics.relax_rounds} relax rounds, ok={report['ok']})"
    )
    typer.echo(f"Output file: {out_path}")
    raise typer.Exit(code=0)


@app.command()
def verify(
    puzzle: str = typer.Option(..., "--puzzle", help="Path to puzzle.json"),
) -> None:
    """Check a puzzle file for shape and duplicate titles."""
    try:
        loaded = load_puzzle_json(Path(puzzle))
    except (PuzzleFormatError, ValueError) as exc:
        typer.echo(f"Invalid puzzle: {exc}", err=True)
        raise typer.Exit(code=1)
    report = verify_puzzle(loaded)
    if not report["ok"]:
        for key, positions in report["collisions"].items():
            typer.echo(f"Duplicate title {key!r} at positions {positions}", err=True)
        for idx in report["empty_titles"]:
            typer.echo(f"Empty title at position {idx}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Puzzle {puzzle_id(loaded)} OK ({loaded.grid_size}x{loaded.grid_size})")
    raise typer.Exit(code=0)


@app.command()
def resolve(
    titles: List[str] = typer.Argument(..., help="Article titles to resolve"),
    config: str = typer.Option(None, "--config", help="Path to config file (YAML/JSON)"),
) -> None:
    """Show the canonical article each title redirects to."""
    resolved, _hash, _cfg = resolve_parameters(config_path_str=config, cli_overrides={})
    setup_logging(level=str(resolved.get("log_level", "INFO")))
    settings = settings_from_resolved(resolved)

    async def run() -> List[str]:
        async with WikipediaClient(
            api_url=settings.api_url,
            rest_url=settings.rest_url,
            mobile_rest_url=settings.mobile_rest_url,
            user_agent=settings.user_agent,
            timeout=settings.resolve_timeout_sec,
        ) as client:
            resolver = RedirectResolver(
                client, timeout=settings.resolve_timeout_sec, retry_policy=settings.retry
            )
            return list(await asyncio.gather(*(resolver.resolve(t) for t in titles)))

    for raw, canonical in zip(titles, asyncio.run(run())):
        typer.echo(f"{raw} -> {canonical}")
    raise typer.Exit(code=0)


def main(_argv: list[str] | None = None) -> int:
    try:
        app(standalone_mode=True)
        return 0
    except SystemExit as e:
        return int(e.code) if e.code is not None else 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
