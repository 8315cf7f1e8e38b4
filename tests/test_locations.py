from __future__ import annotations

from pathlib import Path

import pytest

from aim_memory.config import AimConfig
from aim_memory.locations import (
    CURRENT_GLOBAL_NO_AIM,
    CURRENT_GLOBAL_NO_PROJECT,
    CURRENT_PROJECT,
    LocationResolver,
    NoProjectError,
    database_filename,
    find_project_root,
    validate_location,
)


def _resolver(global_dir: Path, cwd: Path) -> LocationResolver:
    return LocationResolver(global_dir, cwd=lambda: cwd)


def test_database_filename():
    assert database_filename() == "memory.jsonl"
    assert database_filename("") == "memory.jsonl"
    assert database_filename("work") == "memory-work.jsonl"


def test_find_project_root_walks_up_to_nearest_marker(project_root):
    assert find_project_root(project_root / "src" / "pkg") == project_root


def test_find_project_root_prefers_closest_directory(project_root):
    inner = project_root / "src"
    (inner / "pyproject.toml").write_text("")
    assert find_project_root(inner / "pkg") == inner


def test_find_project_root_accepts_manifest_files(tmp_path):
    for marker in ("package.json", "pyproject.toml", "Cargo.toml", "go.mod"):
        root = tmp_path / marker.replace(".", "_")
        root.mkdir()
        (root / marker).write_text("")
        assert find_project_root(root) == root


def test_find_project_root_respects_depth_limit(tmp_path):
    root = tmp_path / "proj"
    (root / ".git").mkdir(parents=True)
    deep = root / "1" / "2" / "3" / "4" / "5"
    deep.mkdir(parents=True)
    # root is six levels up from deep (deep itself counts as the first)
    assert find_project_root(deep) is None
    assert find_project_root(deep.parent) == root


def test_find_project_root_none(no_project_dir):
    assert find_project_root(no_project_dir) is None


def test_global_location_is_unconditional(global_dir, project_root):
    (project_root / ".aim").mkdir()
    r = _resolver(global_dir, project_root / "src" / "pkg")
    assert r.resolve("work", "global") == global_dir / "memory-work.jsonl"


def test_project_location_without_aim_dir(global_dir, project_root):
    r = _resolver(global_dir, project_root / "src" / "pkg")
    path = r.resolve(None, "project")
    assert path == project_root / ".aim" / "memory.jsonl"
    assert not path.parent.exists()


def test_project_location_without_project_fails(global_dir, no_project_dir):
    r = _resolver(global_dir, no_project_dir)
    with pytest.raises(NoProjectError, match="No project detected"):
        r.resolve(None, "project")


def test_auto_detect_uses_existing_aim_dir(global_dir, project_root):
    (project_root / ".aim").mkdir()
    r = _resolver(global_dir, project_root / "src" / "pkg")
    assert r.resolve() == project_root / ".aim" / "memory.jsonl"
    assert r.current_location() == CURRENT_PROJECT


def test_auto_detect_falls_back_to_global_without_aim_dir(global_dir, project_root):
    r = _resolver(global_dir, project_root / "src" / "pkg")
    assert r.project_root() == project_root
    assert r.resolve("work") == global_dir / "memory-work.jsonl"
    assert r.current_location() == CURRENT_GLOBAL_NO_AIM


def test_auto_detect_without_project(global_dir, no_project_dir):
    r = _resolver(global_dir, no_project_dir)
    assert r.resolve() == global_dir / "memory.jsonl"
    assert r.current_location() == CURRENT_GLOBAL_NO_PROJECT
    assert r.project_dir() is None


def test_aim_dir_alone_marks_project_root(global_dir, tmp_path):
    root = tmp_path / "notes"
    (root / ".aim").mkdir(parents=True)
    r = _resolver(global_dir, root)
    assert r.resolve("x") == root / ".aim" / "memory-x.jsonl"


def test_resolver_reads_cwd_on_every_call(global_dir, project_root, no_project_dir):
    (project_root / ".aim").mkdir()
    cwd = [no_project_dir]
    r = LocationResolver(global_dir, cwd=lambda: cwd[0])
    assert r.resolve() == global_dir / "memory.jsonl"
    cwd[0] = project_root
    assert r.resolve() == project_root / ".aim" / "memory.jsonl"


def test_from_config(global_dir, no_project_dir):
    cfg = AimConfig(memory_dir=global_dir, cwd=lambda: no_project_dir)
    r = LocationResolver.from_config(cfg)
    assert r.resolve() == global_dir / "memory.jsonl"


@pytest.mark.parametrize("value", [None, "", "project", "global"])
def test_validate_location_accepts(value):
    assert validate_location(value) == (value or None)


def test_validate_location_rejects_unknown():
    with pytest.raises(ValueError, match="Invalid location"):
        validate_location("home")
