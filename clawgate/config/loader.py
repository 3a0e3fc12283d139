"""Configuration loader for clawgate.

Loads configuration from a JSON5 file:
- JSON5 parsing (comments, trailing commas, unquoted keys)
- $include directives: {"$include": "./extra.json"}
- ${ENV_VAR} environment variable substitution

Configuration is read once at process start and is read-only afterwards;
the parsed object is cached until invalidate_config_cache() is called.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import json5
from pydantic import ValidationError

from ..errors import ConfigError
from .schema import ClawgateConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CLAWGATE_CONFIG"

_cached_config: Optional[ClawgateConfig] = None

# ---------------------------------------------------------------------------
# $include + env-var substitution
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively replace ${VAR} with os.environ values (unknown vars stay as-is)."""
    if isinstance(obj, str):
        def _replace(m: re.Match) -> str:
            return os.environ.get(m.group(1), m.group(0))

        return _ENV_VAR_RE.sub(_replace, obj)
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(v) for v in obj]
    return obj


def _resolve_includes(obj: Any, base_dir: Path, depth: int = 0) -> Any:
    """Resolve {"$include": "./path.json"} directives recursively."""
    if depth > 10:
        raise ConfigError("$include depth limit exceeded (circular?)")

    if isinstance(obj, dict):
        if "$include" in obj and len(obj) == 1:
            include_path = base_dir / obj["$include"]
            if not include_path.exists():
                logger.warning(f"$include target not found: {include_path}")
                return {}
            included = json5.loads(include_path.read_text(encoding="utf-8"))
            return _resolve_includes(included, include_path.parent, depth + 1)
        return {k: _resolve_includes(v, base_dir, depth) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_resolve_includes(v, base_dir, depth) for v in obj]
    return obj


# ---------------------------------------------------------------------------
# Core load
# ---------------------------------------------------------------------------

def get_config_path() -> Path:
    """Get the path of the active configuration file.

    Order: $CLAWGATE_CONFIG, ./clawgate.json, ./clawgate.json5,
    ~/.clawgate/config.json. Returns the user-level default even if it
    does not exist.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()

    candidates = [
        Path.cwd() / "clawgate.json",
        Path.cwd() / "clawgate.json5",
        Path.home() / ".clawgate" / "config.json",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate

    return Path.home() / ".clawgate" / "config.json"


def load_config_raw(path: Path) -> dict[str, Any]:
    """Load a config file with JSON5 parsing, $include resolution and env-var substitution."""
    raw = path.read_text(encoding="utf-8")
    obj = json5.loads(raw)
    obj = _resolve_includes(obj, path.parent)
    obj = _substitute_env_vars(obj)
    return obj if isinstance(obj, dict) else {}


def load_config(config_path: Optional[str | Path] = None) -> ClawgateConfig:
    """Load clawgate configuration.

    A missing file yields the defaults. A file that exists but cannot be
    parsed or validated raises ConfigError: silently falling back to the
    defaults would change who is allowed to reach the agent.

    Args:
        config_path: Optional path to config file.  Supports JSON5.

    Returns:
        Parsed configuration.
    """
    global _cached_config

    if _cached_config is not None and config_path is None:
        return _cached_config

    path = Path(config_path) if config_path else get_config_path()

    if not path.exists():
        logger.info(f"No config file at {path}, using defaults")
        config_obj = ClawgateConfig()
    else:
        try:
            config_dict = load_config_raw(path)
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Failed to load config from {path}: {exc}") from exc

        try:
            config_obj = ClawgateConfig.model_validate(config_dict)
        except ValidationError as exc:
            raise ConfigError(f"Invalid config in {path}: {exc}") from exc

        logger.info(f"Loaded config from {path} (channels={sorted(config_obj.channels)})")

    if config_path is None:
        _cached_config = config_obj
    return config_obj


def invalidate_config_cache() -> None:
    """Invalidate the in-process config cache so the next load_config() re-reads disk."""
    global _cached_config
    _cached_config = None
