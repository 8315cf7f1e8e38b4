from __future__ import annotations

from pathlib import Path

import pytest

from aim_memory.locations import LocationResolver
from aim_memory.manager import KnowledgeGraphManager


@pytest.fixture
def global_dir(tmp_path: Path) -> Path:
    return tmp_path / "global"


@pytest.fixture
def no_project_dir(tmp_path: Path) -> Path:
    """A cwd with no project marker within the search depth."""
    d = tmp_path / "a" / "b" / "c" / "d" / "e" / "f"
    d.mkdir(parents=True)
    return d


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """A git project with a nested working directory at src/pkg."""
    root = tmp_path / "proj"
    (root / ".git").mkdir(parents=True)
    (root / "src" / "pkg").mkdir(parents=True)
    return root


@pytest.fixture
def make_manager(global_dir: Path):
    def _make(cwd: Path) -> KnowledgeGraphManager:
        return KnowledgeGraphManager(LocationResolver(global_dir, cwd=lambda: cwd))
    return _make


@pytest.fixture
def manager(make_manager, no_project_dir: Path) -> KnowledgeGraphManager:
    """Manager whose databases all resolve to the global dir."""
    return make_manager(no_project_dir)
