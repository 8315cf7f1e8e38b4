"""Map (context, location) to the JSONL file backing a database.

Filenames:
    memory.jsonl              the master (default) database
    memory-<context>.jsonl    a named database; <context> is not sanitized

Directories, by precedence:
    location="global"   -> the configured memory dir, always
    location="project"  -> <project-root>/.aim (NoProjectError if no root is found)
    location=None       -> <project-root>/.aim if that directory exists, else global
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from aim_memory.config import PROJECT_DIRNAME

if TYPE_CHECKING:
    from aim_memory.config import AimConfig

Location = Literal["project", "global"]
LOCATIONS: tuple[str, ...] = ("project", "global")

# .aim first: an existing .aim dir is an explicit request for project storage
PROJECT_MARKERS: tuple[str, ...] = (
    PROJECT_DIRNAME, ".git", "package.json", "pyproject.toml", "Cargo.toml", "go.mod",
)
MAX_SEARCH_DEPTH = 5

CURRENT_PROJECT = "project (.aim directory detected)"
CURRENT_GLOBAL_NO_AIM = "global (no .aim directory in project)"
CURRENT_GLOBAL_NO_PROJECT = "global (no project detected)"


class NoProjectError(RuntimeError):
    """location="project" was requested but no project root was found."""


def validate_location(value: object) -> Location | None:
    """Check a caller-supplied location; None means auto-detect."""
    if value is None or value == "":
        return None
    if value not in LOCATIONS:
        msg = f"Invalid location {value!r}: expected 'project' or 'global'"
        raise ValueError(msg)
    return value  # type: ignore[return-value]


def find_project_root(start: Path, max_depth: int = MAX_SEARCH_DEPTH) -> Path | None:
    """Walk upward from start; return the first directory holding a project marker."""
    current = start
    for _ in range(max_depth):
        for marker in PROJECT_MARKERS:
            if (current / marker).exists():
                return current
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


def database_filename(context: str | None = None) -> str:
    return f"memory-{context}.jsonl" if context else "memory.jsonl"


class LocationResolver:
    """Resolves database paths against an injected global dir and cwd."""

    def __init__(self, memory_dir: Path | str, cwd: Callable[[], Path] = Path.cwd) -> None:
        self.memory_dir = Path(memory_dir)
        self._cwd = cwd

    @classmethod
    def from_config(cls, cfg: AimConfig) -> LocationResolver:
        return cls(cfg.memory_dir, cfg.cwd)

    def project_root(self) -> Path | None:
        return find_project_root(self._cwd())

    def project_dir(self) -> Path | None:
        """<root>/.aim, only when a root is detected and the directory exists."""
        root = self.project_root()
        if root is None:
            return None
        aim_dir = root / PROJECT_DIRNAME
        return aim_dir if aim_dir.is_dir() else None

    def resolve(self, context: str | None = None, location: Location | None = None) -> Path:
        filename = database_filename(context)

        if location == "global":
            return self.memory_dir / filename

        if location == "project":
            root = self.project_root()
            if root is None:
                msg = "No project detected - cannot use project location"
                raise NoProjectError(msg)
            # .aim is created on first save
            return root / PROJECT_DIRNAME / filename

        project_dir = self.project_dir()
        if project_dir is not None:
            return project_dir / filename
        return self.memory_dir / filename

    def current_location(self) -> str:
        """Describe where auto-detection currently sends databases."""
        root = self.project_root()
        if root is None:
            return CURRENT_GLOBAL_NO_PROJECT
        if (root / PROJECT_DIRNAME).is_dir():
            return CURRENT_PROJECT
        return CURRENT_GLOBAL_NO_AIM
