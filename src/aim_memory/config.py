"""AimConfig: where the global databases live and how the cwd is obtained.

Resolution order for the global memory directory (first hit wins):

    1. explicit memory_path (``aim serve --memory-path ...``)
    2. $AIM_MEMORY_PATH
    3. [storage].memory_path in $XDG_CONFIG_HOME/aim/aim.toml
    4. ~/.local/share/aim

aim.toml example:

    [storage]
    memory_path = "~/notes/aim"   # a directory, or a .jsonl file whose parent is used

Project-local databases never come from config: they live in ``<project-root>/.aim/``
and are located by ``aim_memory.locations``.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "aim.toml"
_ENV_MEMORY_PATH = "AIM_MEMORY_PATH"
_DEFAULT_MEMORY_DIR = Path("~/.local/share/aim")
PROJECT_DIRNAME = ".aim"


class ConfigError(ValueError):
    """aim.toml exists but cannot be parsed."""


@dataclass
class AimConfig:
    """Resolved configuration: the global base dir plus a cwd provider."""

    memory_dir: Path
    cwd: Callable[[], Path] = field(default=Path.cwd)
    config_path: Path | None = None


def user_config_path(env: Mapping[str, str] | None = None) -> Path:
    """Location of aim.toml under the XDG config dir."""
    env = os.environ if env is None else env
    base = env.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base).expanduser() / "aim" / _CONFIG_FILENAME


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid config file {path}: {exc}"
        raise ConfigError(msg) from exc


def normalize_memory_path(value: str | Path, cwd: Path) -> Path:
    """Turn a user-supplied memory path into an absolute directory.

    A path ending in ``.jsonl`` names a database file; its directory is used.
    """
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = cwd / path
    if path.name.endswith(".jsonl"):
        path = path.parent
    return path


def load_config(
    memory_path: str | Path | None = None,
    *,
    cwd: Callable[[], Path] | None = None,
    env: Mapping[str, str] | None = None,
) -> AimConfig:
    """Build an AimConfig from the CLI flag, environment and aim.toml."""
    env = os.environ if env is None else env
    cwd_fn = cwd or Path.cwd
    config_path = user_config_path(env)

    if memory_path:
        raw_path: str | Path = memory_path
        source: Path | None = None
    elif env.get(_ENV_MEMORY_PATH):
        raw_path = env[_ENV_MEMORY_PATH]
        source = None
    else:
        raw = _read_toml(config_path)
        storage = raw.get("storage", {})
        raw_path = storage.get("memory_path") or _DEFAULT_MEMORY_DIR
        source = config_path if "memory_path" in storage else None

    return AimConfig(
        memory_dir=normalize_memory_path(raw_path, cwd_fn()),
        cwd=cwd_fn,
        config_path=source,
    )


def init_project(root: Path) -> Path:
    """Create <root>/.aim so auto-detection selects project storage. Idempotent."""
    aim_dir = root / PROJECT_DIRNAME
    aim_dir.mkdir(parents=True, exist_ok=True)
    return aim_dir
