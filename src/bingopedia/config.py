from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .retry import RetryPolicy

ENV_PREFIX = "BINGOPEDIA_"

DEFAULT_API_URL = "https://en.wikipedia.org/w/api.php"
DEFAULT_REST_URL = "https://en.wikipedia.org/api/rest_v1"
DEFAULT_MOBILE_REST_URL = "https://en.m.wikipedia.org/api/rest_v1"
DEFAULT_USER_AGENT = "Bingopedia/0.1 (navigation engine)"

DEFAULTS: Dict[str, Any] = {
    "grid_size": 5,
    "generation_policy": "fail_fast",
    "relax_max_rounds": 3,
    "seed": {"engine": "py_random", "value": None},
    "redirect_cache_size": 200,
    "content_cache_size": 100,
    "resolve_timeout_sec": 5.0,
    "content_timeout_sec": 15.0,
    "debounce_ms": 300,
    "retry": {
        "max_attempts": 3,
        "initial_delay": 1.0,
        "max_delay": 4.0,
        "backoff_multiplier": 2.0,
    },
    "api_url": DEFAULT_API_URL,
    "rest_url": DEFAULT_REST_URL,
    "mobile_rest_url": DEFAULT_MOBILE_REST_URL,
    "user_agent": DEFAULT_USER_AGENT,
    "log_level": "INFO",
    "log_format": "text",
}

PATH_KEYS = ("pool_path", "out_puzzle", "log_file")

_INT_KEYS = {
    "grid_size",
    "relax_max_rounds",
    "redirect_cache_size",
    "content_cache_size",
    "debounce_ms",
    "seed.value",
    "retry.max_attempts",
}
_FLOAT_KEYS = {
    "resolve_timeout_sec",
    "content_timeout_sec",
    "retry.initial_delay",
    "retry.max_delay",
    "retry.backoff_multiplier",
}


def _read_config_file(config_path: Path | None) -> Dict[str, Any]:
    if not config_path:
        return {}
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    suffix = config_path.suffix.lower()
    text = config_path.read_text(encoding="utf-8")
    if suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ValueError("Top-level YAML config must be a mapping")
        return data
    if suffix == ".json":
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("Top-level JSON config must be a mapping")
        return data
    raise ValueError(f"Unsupported config extension: {suffix}")


def _collect_env_vars(env: Mapping[str, str]) -> Dict[str, Any]:
    """Map ENV variables with BINGOPEDIA_ prefix to config keys.

    We use an explicit map to avoid ambiguity. Keys not present are ignored.
    """
    mapping: Dict[str, str] = {
        # Generation
        f"{ENV_PREFIX}GRID_SIZE": "grid_size",
        f"{ENV_PREFIX}GENERATION_POLICY": "generation_policy",
        f"{ENV_PREFIX}RELAX_MAX_ROUNDS": "relax_max_rounds",
        f"{ENV_PREFIX}SEED_VALUE": "seed.value",
        f"{ENV_PREFIX}SEED_ENGINE": "seed.engine",
        f"{ENV_PREFIX}POOL_PATH": "pool_path",
        # Resolution & content
        f"{ENV_PREFIX}REDIRECT_CACHE_SIZE": "redirect_cache_size",
        f"{ENV_PREFIX}CONTENT_CACHE_SIZE": "content_cache_size",
        f"{ENV_PREFIX}RESOLVE_TIMEOUT_SEC": "resolve_timeout_sec",
        f"{ENV_PREFIX}CONTENT_TIMEOUT_SEC": "content_timeout_sec",
        f"{ENV_PREFIX}DEBOUNCE_MS": "debounce_ms",
        f"{ENV_PREFIX}RETRY_MAX_ATTEMPTS": "retry.max_attempts",
        f"{ENV_PREFIX}RETRY_INITIAL_DELAY": "retry.initial_delay",
        f"{ENV_PREFIX}RETRY_MAX_DELAY": "retry.max_delay",
        f"{ENV_PREFIX}RETRY_BACKOFF_MULTIPLIER": "retry.backoff_multiplier",
        f"{ENV_PREFIX}API_URL": "api_url",
        f"{ENV_PREFIX}REST_URL": "rest_url",
        f"{ENV_PREFIX}MOBILE_REST_URL": "mobile_rest_url",
        f"{ENV_PREFIX}USER_AGENT": "user_agent",
        # Output & UX
        f"{ENV_PREFIX}OUT_PUZZLE": "out_puzzle",
        f"{ENV_PREFIX}LOG_LEVEL": "log_level",
        f"{ENV_PREFIX}LOG_FORMAT": "log_format",
        f"{ENV_PREFIX}LOG_FILE": "log_file",
    }

    result: Dict[str, Any] = {}
    for env_key, cfg_key in mapping.items():
        if env_key not in env:
            continue
        raw = env[env_key]
        try:
            if cfg_key in _INT_KEYS:
                result[cfg_key] = int(raw)
            elif cfg_key in _FLOAT_KEYS:
                result[cfg_key] = float(raw)
            else:
                result[cfg_key] = raw
        except ValueError:
            result[cfg_key] = raw
    return result


def _set_nested(config: Dict[str, Any], dotted_key: str, value: Any) -> None:
    parts = dotted_key.split(".")
    cursor = config
    for part in parts[:-1]:
        if part not in cursor or not isinstance(cursor[part], dict):
            cursor[part] = {}
        cursor = cursor[part]
    cursor[parts[-1]] = value


def _apply_overrides(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = json.loads(json.dumps(base))  # deep copy via JSON
    for key, value in overrides.items():
        if "." in key:
            _set_nested(merged, key, value)
        elif isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _apply_overrides(merged[key], value)
        else:
            merged[key] = value
    return merged


def canonical_json_dumps(data: Any) -> str:
    return json.dumps(data, ensure_ascii=True, sort_keys=True, separators=(",", ":"))


def compute_params_hash(resolved: Mapping[str, Any]) -> str:
    """Hash of the settings that determine which puzzle a run produces."""
    include = {
        "grid_size",
        "generation_policy",
        "relax_max_rounds",
        "seed.engine",
        "seed.value",
    }

    def extract(path: str, source: Mapping[str, Any]) -> Any:
        cur: Any = source
        for part in path.split("."):
            if not isinstance(cur, Mapping) or part not in cur:
                return None
            cur = cur[part]
        return cur

    contract: Dict[str, Any] = {}
    for item in include:
        value = extract(item, resolved)
        if value is not None:
            contract[item] = value

    digest = hashlib.sha256(canonical_json_dumps(contract).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


def resolve_paths(
    resolved: Dict[str, Any],
    config_file: Path | None,
    cli_overrides: Dict[str, Any],
) -> Dict[str, Any]:
    """Normalize paths per policy.

    - Paths from config file: resolve relative to config directory
    - Paths from CLI: resolve relative to CWD
    """
    cwd = Path.cwd()
    cfg_dir = config_file.parent if config_file else None

    def normalize(path_value: str | None, is_cli: bool) -> str | None:
        if path_value is None or path_value == "":
            return None
        p = Path(path_value)
        if p.is_absolute():
            return str(p)
        base = cwd if is_cli else (cfg_dir or cwd)
        return str((base / p).resolve())

    result = dict(resolved)
    cli_keys = {k for k in cli_overrides.keys() if k in PATH_KEYS}

    for key in PATH_KEYS:
        value = resolved.get(key)
        if value is None:
            continue
        result[key] = normalize(str(value), key in cli_keys)

    return result


def resolve_parameters(
    *,
    config_path_str: str | None,
    cli_overrides: Dict[str, Any],
    env: Mapping[str, str] | None = None,
) -> Tuple[Dict[str, Any], str, Path | None]:
    """Resolve parameters with precedence CLI > ENV > config > defaults.

    Returns (resolved_params, params_hash, config_path)
    """
    config_path = Path(config_path_str).resolve() if config_path_str else None
    file_cfg = _read_config_file(config_path) if config_path else {}
    env_map = _collect_env_vars(os.environ if env is None else env)

    merged = _apply_overrides(DEFAULTS, file_cfg)
    merged = _apply_overrides(merged, env_map)
    merged = _apply_overrides(merged, cli_overrides)

    merged = resolve_paths(merged, config_path, cli_overrides)

    params_hash = compute_params_hash(merged)
    return merged, params_hash, config_path


@dataclass(frozen=True)
class EngineSettings:
    """Typed view of the resolved parameters used to wire a game together."""

    grid_size: int = 5
    generation_policy: str = "fail_fast"
    relax_max_rounds: int = 3
    seed: Optional[int] = None
    rng_engine: str = "py_random"
    redirect_cache_size: int = 200
    content_cache_size: int = 100
    resolve_timeout_sec: float = 5.0
    content_timeout_sec: float = 15.0
    debounce_ms: int = 300
    retry: RetryPolicy = RetryPolicy()
    api_url: str = DEFAULT_API_URL
    rest_url: str = DEFAULT_REST_URL
    mobile_rest_url: str = DEFAULT_MOBILE_REST_URL
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def debounce_sec(self) -> float:
        return self.debounce_ms / 1000.0


def settings_from_resolved(resolved: Mapping[str, Any]) -> EngineSettings:
    seed = resolved.get("seed") or {}
    retry = resolved.get("retry") or {}
    seed_value = seed.get("value")
    settings = EngineSettings(
        grid_size=int(resolved.get("grid_size", 5)),
        generation_policy=str(resolved.get("generation_policy", "fail_fast")),
        relax_max_rounds=int(resolved.get("relax_max_rounds", 3)),
        seed=None if seed_value in (None, "") else int(seed_value),
        rng_engine=str(seed.get("engine", "py_random")),
        redirect_cache_size=int(resolved.get("redirect_cache_size", 200)),
        content_cache_size=int(resolved.get("content_cache_size", 100)),
        resolve_timeout_sec=float(resolved.get("resolve_timeout_sec", 5.0)),
        content_timeout_sec=float(resolved.get("content_timeout_sec", 15.0)),
        debounce_ms=int(resolved.get("debounce_ms", 300)),
        retry=RetryPolicy(
            max_attempts=int(retry.get("max_attempts", 3)),
            initial_delay=float(retry.get("initial_delay", 1.0)),
            max_delay=float(retry.get("max_delay", 4.0)),
            backoff_multiplier=float(retry.get("backoff_multiplier", 2.0)),
        ),
        api_url=str(resolved.get("api_url", DEFAULT_API_URL)),
        rest_url=str(resolved.get("rest_url", DEFAULT_REST_URL)),
        mobile_rest_url=str(resolved.get("mobile_rest_url", DEFAULT_MOBILE_REST_URL)),
        user_agent=str(resolved.get("user_agent", DEFAULT_USER_AGENT)),
    )
    if settings.grid_size < 1:
        raise ValueError("grid_size must be >= 1")
    if settings.generation_policy not in ("fail_fast", "relax"):
        raise ValueError(f"Unknown generation_policy: {settings.generation_policy}")
    return settings
