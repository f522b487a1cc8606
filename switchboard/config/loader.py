"""Layered TOML configuration files.

Files are read from the config directory in order, later files winning:

1. ``default.toml``, shipped defaults (optional)
2. ``{SWITCHBOARD_ENV}.toml``, per-environment overrides (optional)

Environment variables are applied on top by the settings class, not here.
"""

import os
import tomllib
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from switchboard.errors import ConfigurationError

CONFIG_DIR_ENV = "SWITCHBOARD_CONFIG_DIR"
ENVIRONMENT_ENV = "SWITCHBOARD_ENV"
DEFAULT_ENVIRONMENT = "development"

# How many parent directories are searched for config/
_SEARCH_DEPTH = 5


def get_config_dir() -> Path:
    """Locate the config directory.

    SWITCHBOARD_CONFIG_DIR wins when set and must exist. Otherwise the
    nearest ``config/`` at or above the working directory is used.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        path = Path(override)
        if not path.is_dir():
            raise FileNotFoundError(f"Config directory not found: {override}")
        return path

    here = Path.cwd()
    for candidate in [here, *here.parents][:_SEARCH_DEPTH]:
        if (candidate / "config").is_dir():
            return candidate / "config"
    return Path("config")


def get_environment() -> str:
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def config_files(config_dir: Path, env: str) -> list[Path]:
    """Existing config files for ``env``, lowest precedence first."""
    candidates = [config_dir / "default.toml", config_dir / f"{env}.toml"]
    return [p for p in candidates if p.is_file()]


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If the TOML syntax is invalid
    """
    try:
        with file_path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {file_path}") from None
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {file_path}: {e}", str(file_path)) from e


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested tables merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def check_sections(
    config: dict[str, Any], known_sections: Iterable[str], source: Path | str
) -> None:
    """Reject top-level keys that no settings field accepts.

    Settings ignores unknown keys, so a misspelt ``[handof]`` table would
    otherwise be dropped silently.
    """
    unknown = sorted(set(config) - set(known_sections))
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration section(s) in {source}: {', '.join(unknown)}",
            str(source),
        )


def load_config(
    known_sections: Iterable[str] | None = None,
    config_dir: Path | None = None,
    env: str | None = None,
) -> dict[str, Any]:
    """Read and merge the config files for the current environment.

    Args:
        known_sections: Accepted top-level keys; skipped when None
        config_dir: Directory to read from, defaults to get_config_dir()
        env: Environment name, defaults to get_environment()

    Returns:
        Merged configuration dictionary, empty when no file exists
    """
    config_dir = config_dir or get_config_dir()
    env = env or get_environment()
    known = set(known_sections) if known_sections is not None else None

    config: dict[str, Any] = {}
    for path in config_files(config_dir, env):
        layer = load_toml(path)
        if known is not None:
            check_sections(layer, known, path)
        config = deep_merge(config, layer)
    return config
