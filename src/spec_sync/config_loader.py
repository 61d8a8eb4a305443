"""
Hierarchical configuration loader for spec-sync.

Provides convention-based config file discovery, YAML !include support,
env var interpolation, and hierarchical merge with "project wins" semantics.
JSON config files are accepted too (JSON is a subset of YAML).

Usage:
    from spec_sync.config_loader import load_sync_config

    config = load_sync_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from spec_sync.config_schema import SyncConfig, build_config

logger = logging.getLogger(__name__)

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
        var_name = match.group(1)
        default = match.group(2)  # None when no :- clause
        env_val = os.environ.get(var_name)
        if env_val is not None and env_val != "":
            return env_val
        if default is not None:
            return default
        return ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Walk a nested dict/list and interpolate env vars in all strings."""
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support (dedicated SafeLoader subclass)
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """YAML SafeLoader subclass with ``!include`` support.

    Uses a dedicated subclass so the global ``yaml.SafeLoader`` is never
    modified.  Tracks an *include stack* per-load to detect circular includes.
    """


def _include_constructor(
    loader: ConfigLoader, node: yaml.ScalarNode
) -> Any:
    """Handle ``!include path/to/file.yml`` directives."""
    include_path_str: str = loader.construct_scalar(node)

    # Resolve relative to the file that contains the !include
    if os.path.isabs(include_path_str):
        include_path = Path(include_path_str)
    else:
        parent_dir = Path(loader.name).resolve().parent
        include_path = parent_dir / include_path_str

    include_path = include_path.resolve()

    include_stack: list[Path] = getattr(loader, "_include_stack", [])
    if include_path in include_stack:
        chain = (
            " -> ".join(str(p) for p in include_stack)
            + f" -> {include_path}"
        )
        raise ValueError(f"Circular include detected: {chain}")

    if not include_path.exists():
        source_file = Path(loader.name).resolve()
        raise FileNotFoundError(
            f"Include file not found: {include_path} (referenced from {source_file})"
        )

    new_stack = include_stack + [include_path]
    return _load_yaml_with_includes(
        include_path, _include_stack=new_stack
    )


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    """Load a YAML (or JSON) file using the ``ConfigLoader``."""
    path = path.resolve()
    if _include_stack is None:
        _include_stack = [path]

    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Convention-based file discovery
# ---------------------------------------------------------------------------

_PROJECT_CANDIDATES = (
    ".specify/sync.config.yml",
    ".specify/sync.config.yaml",
    ".specify/sync.config.json",
    ".spec-kit/sync.config.yml",
    ".spec-kit/sync.config.yaml",
    ".spec-kit/sync.config.json",
)


def discover_config_files(base_dir: Path | None = None) -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``SPEC_SYNC_CONFIG`` env var (explicit single path).
        2. ``.specify/sync.config.{yml,yaml,json}`` under *base_dir*
        3. ``.spec-kit/sync.config.{yml,yaml,json}`` under *base_dir*
           (legacy project directory)
        4. ``~/.config/spec_sync/config.yml`` (XDG global)

    Only paths that exist on disk are returned.

    Args:
        base_dir: Project directory; defaults to the current working
            directory.
    """
    candidates: list[Path] = []

    env_path = os.environ.get("SPEC_SYNC_CONFIG")
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    root = base_dir or Path.cwd()
    candidates.extend(root / rel for rel in _PROJECT_CANDIDATES)

    candidates.append(
        Path.home() / ".config" / "spec_sync" / "config.yml"
    )

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config(
    base_dir: Path | None = None,
) -> dict[str, Any]:
    """Load and merge all discovered config files.

    Merge strategy ("project wins"):
        Files are loaded from lowest precedence to highest.  Each file's
        top-level keys **replace** (not deep-merge) those from earlier files.

    After merging, env var interpolation is applied to all string values.

    Returns an empty dict when no config files exist (zero-config).
    """
    paths = discover_config_files(base_dir)

    if not paths:
        logger.debug(
            "No config files found, using zero-config defaults"
        )
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    merged = _interpolate_recursive(merged)  # type: ignore[assignment]

    return merged


def load_sync_config(
    path: str | Path | None = None,
    base_dir: Path | None = None,
) -> SyncConfig:
    """Load and validate the sync configuration.

    Reads the file on every call; callers that want caching hold on to the
    returned object themselves.

    Args:
        path: Explicit config file. When given, discovery is skipped.
        base_dir: Project directory for discovery (default: CWD).

    Returns:
        Validated ``SyncConfig``.

    Raises:
        FileNotFoundError: If *path* is given but does not exist.
        pydantic.ValidationError: If the merged data violates the schema.
    """
    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        data = _load_yaml_with_includes(config_path)
        if data is not None and not isinstance(data, dict):
            raise ValueError(
                f"Config file {config_path} must contain a mapping, "
                f"got {type(data).__name__}"
            )
        raw = _interpolate_recursive(data or {})
    else:
        raw = load_hierarchical_config(base_dir)

    return build_config(raw)
