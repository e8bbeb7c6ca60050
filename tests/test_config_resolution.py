from __future__ import annotations

import os
from pathlib import Path

import pytest

from bingopedia.config import resolve_parameters, settings_from_resolved


def test_env_precedence_over_config(tmp_path: Path, monkeypatch):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("grid_size: 4\ndebounce_ms: 100\n", encoding="utf-8")
    monkeypatch.setenv("BINGOPEDIA_GRID_SIZE", "6")

    resolved, params_hash, _ = resolve_parameters(
        config_path_str=str(cfg), cli_overrides={}, env=os.environ
    )
    assert resolved["grid_size"] == 6
    assert resolved["debounce_ms"] == 100
    assert params_hash.startswith("sha256:")


def test_cli_precedence_over_env(tmp_path: Path, monkeypatch):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("grid_size: 4\n", encoding="utf-8")
    monkeypatch.setenv("BINGOPEDIA_GRID_SIZE", "6")

    resolved, _hash, _ = resolve_parameters(
        config_path_str=str(cfg), cli_overrides={"grid_size": 3}, env=os.environ
    )
    assert resolved["grid_size"] == 3


def test_nested_keys_merge_with_defaults(tmp_path: Path):
    cfg = tmp_path / "config.json"
    cfg.write_text('{"retry": {"max_attempts": 5}}', encoding="utf-8")
    resolved, _hash, _ = resolve_parameters(
        config_path_str=str(cfg),
        cli_overrides={"seed.value": 7},
        env={"BINGOPEDIA_RETRY_MAX_DELAY": "8"},
    )
    assert resolved["retry"] == {
        "max_attempts": 5,
        "initial_delay": 1.0,
        "max_delay": 8.0,
        "backoff_multiplier": 2.0,
    }
    assert resolved["seed"] == {"engine": "py_random", "value": 7}
    settings = settings_from_resolved(resolved)
    assert settings.retry.max_attempts == 5
    assert settings.seed == 7


def test_path_normalization_cli_vs_config(tmp_path: Path, monkeypatch):
    cfg_dir = tmp_path / "cfg"
    cfg_dir.mkdir()
    cfg = cfg_dir / "conf.yaml"
    cfg.write_text("pool_path: pool.yaml\n", encoding="utf-8")

    monkeypatch.chdir(tmp_path)
    resolved, _hash, _ = resolve_parameters(
        config_path_str=str(cfg),
        cli_overrides={"out_puzzle": "puzzle.json"},
        env={},
    )
    assert Path(resolved["pool_path"]).parent == cfg_dir.resolve()
    assert Path(resolved["out_puzzle"]).parent == tmp_path.resolve()


def test_params_hash_ignores_runtime_settings():
    base = {
        "grid_size": 5,
        "generation_policy": "relax",
        "seed": {"engine": "py_random", "value": 20250824},
        "log_level": "INFO",
        "debounce_ms": 300,
    }
    _, h1, _ = resolve_parameters(config_path_str=None, cli_overrides=base, env={})
    altered = dict(base, log_level="DEBUG", debounce_ms=50)
    _, h2, _ = resolve_parameters(config_path_str=None, cli_overrides=altered, env={})
    assert h1 == h2
    changed = dict(base, grid_size=4)
    _, h3, _ = resolve_parameters(config_path_str=None, cli_overrides=changed, env={})
    assert h1 != h3


def test_settings_defaults_and_validation():
    resolved, _, _ = resolve_parameters(config_path_str=None, cli_overrides={}, env={})
    settings = settings_from_resolved(resolved)
    assert settings.redirect_cache_size == 200
    assert settings.resolve_timeout_sec == 5.0
    assert settings.debounce_sec == pytest.approx(0.3)
    with pytest.raises(ValueError):
        settings_from_resolved(dict(resolved, generation_policy="yolo"))
    with pytest.raises(ValueError):
        settings_from_resolved(dict(resolved, grid_size=0))


def test_missing_config_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        resolve_parameters(config_path_str=str(tmp_path / "nope.yaml"), cli_overrides={}, env={})


def test_backoff_and_mobile_url_from_env():
    resolved, _hash, _ = resolve_parameters(
        config_path_str=None,
        cli_overrides={},
        env={
            "BINGOPEDIA_RETRY_BACKOFF_MULTIPLIER": "3",
            "BINGOPEDIA_MOBILE_REST_URL": "https://fr.m.wikipedia.org/api/rest_v1",
        },
    )
    settings = settings_from_resolved(resolved)
    assert settings.retry.backoff_multiplier == 3.0
    assert settings.mobile_rest_url == "https://fr.m.wikipedia.org/api/rest_v1"
