"""
Hierarchical configuration loader for todoist_sync_server.

Finds YAML config files by convention, checks every section against the
schema in ``config_schema`` as soon as a file is read, interpolates env
vars and merges the files with "project wins" semantics.

Usage:
    from todoist_sync_server.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config_schema import SECTION_MODELS
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TODOIST_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".todoist_sync"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` patterns with env values.

    * ``${VAR}`` is replaced with ``os.environ.get(VAR, "")``.
    * ``${VAR:-default}`` uses *default* when VAR is unset or empty.
    * Literal ``${`` with no closing ``}`` is left untouched.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. Loading and checking one file
# ---------------------------------------------------------------------------


def load_config_file(path: Path) -> dict[str, Any]:
    """Read one config file and validate each known section.

    Section bodies are returned interpolated but otherwise as written, so
    a later file can still replace a whole section.  Unknown sections are
    dropped with a warning.  A Todoist token written as a literal value
    is accepted but logged.

    Raises:
        ConfigurationError: Invalid YAML, a non-mapping root or section,
            or a section the schema rejects.  The message names *path*.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping, got {type(data).__name__}"
        )

    sections: dict[str, Any] = {}
    for name, body in data.items():
        model = SECTION_MODELS.get(name)
        if model is None:
            logger.warning("Ignoring unknown section '%s' in %s", name, path)
            continue
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise ConfigurationError(
                f"Section '{name}' in {path} must be a mapping, "
                f"got {type(body).__name__}"
            )

        if name == "todoist":
            _warn_on_literal_token(body, path)

        body = _interpolate_recursive(body)
        try:
            model.model_validate(body)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid '{name}' section in {path}: {exc}"
            ) from exc
        sections[name] = body

    return sections


def _warn_on_literal_token(section: dict[str, Any], path: Path) -> None:
    token = section.get("token")
    if isinstance(token, str) and token and "${" not in token:
        logger.warning(
            "Config file %s holds a literal Todoist token; "
            "prefer token: ${TODOIST_API_TOKEN}",
            path,
        )


# ---------------------------------------------------------------------------
# 3. Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``TODOIST_SYNC_CONFIG`` env var (explicit single path)
        2. ``.todoist_sync/config.yml`` in CWD (project-level)
        3. ``.todoist_sync/config.yaml`` in CWD (alternate extension)
        4. ``~/.config/todoist_sync/config.yml`` (XDG global)

    Only paths that exist on disk are returned.
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    cwd = Path.cwd()
    candidates.append(cwd / PROJECT_CONFIG_DIR / "config.yml")
    candidates.append(cwd / PROJECT_CONFIG_DIR / "config.yaml")
    candidates.append(Path.home() / ".config" / "todoist_sync" / "config.yml")

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config(paths: list[Path] | None = None) -> dict[str, Any]:
    """Load and merge config files.

    Args:
        paths: Files in precedence order, highest first.  Defaults to
            ``discover_config_files()``.

    Files are loaded from lowest precedence to highest; each file's
    sections **replace** (not deep-merge) those from earlier files.
    Returns an empty dict when there is nothing to load.

    Raises:
        ConfigurationError: If any file fails ``load_config_file``.
    """
    if paths is None:
        paths = discover_config_files()

    if not paths:
        logger.debug("No config files found, using zero-config defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        merged.update(load_config_file(path))
    return merged
