from __future__ import annotations

import json

from click.testing import CliRunner

from aim_memory.cli import cli
from aim_memory.locations import LocationResolver
from aim_memory.manager import KnowledgeGraphManager


def _seed(global_dir, cwd, context=None):
    m = KnowledgeGraphManager(LocationResolver(global_dir, cwd=lambda: cwd))
    m.create_entities(
        [
            {"name": "Alice", "entityType": "person", "observations": ["likes tea"]},
            {"name": "Bob", "entityType": "person", "observations": []},
        ],
        context=context,
    )
    m.create_relations([{"from": "Alice", "to": "Bob", "relationType": "knows"}], context=context)


def test_show_pretty(global_dir, no_project_dir, monkeypatch):
    _seed(global_dir, no_project_dir)
    monkeypatch.chdir(no_project_dir)

    result = CliRunner().invoke(cli, ["show", "--memory-path", str(global_dir)])
    assert result.exit_code == 0, result.output
    assert "=== default database ===" in result.output
    assert "  Alice --knows--> Bob" in result.output


def test_search_json(global_dir, no_project_dir, monkeypatch):
    _seed(global_dir, no_project_dir, context="work")
    monkeypatch.chdir(no_project_dir)

    result = CliRunner().invoke(
        cli, ["search", "TEA", "-c", "work", "--format", "json", "--memory-path", str(global_dir)],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [e["name"] for e in data["entities"]] == ["Alice"]
    assert data["relations"] == []


def test_open_names(global_dir, no_project_dir, monkeypatch):
    _seed(global_dir, no_project_dir)
    monkeypatch.chdir(no_project_dir)

    result = CliRunner().invoke(
        cli, ["open", "Alice", "Bob", "Carol", "--memory-path", str(global_dir)],
    )
    assert result.exit_code == 0, result.output
    assert "ENTITIES (2):" in result.output
    assert "RELATIONS (1):" in result.output


def test_project_location_without_project(global_dir, no_project_dir, monkeypatch):
    monkeypatch.chdir(no_project_dir)
    result = CliRunner().invoke(
        cli, ["show", "--location", "project", "--memory-path", str(global_dir)],
    )
    assert result.exit_code == 1
    assert "No project detected" in result.output


def test_foreign_file_reported(global_dir, no_project_dir, monkeypatch):
    global_dir.mkdir()
    (global_dir / "memory.jsonl").write_text('{"foo":"bar"}\n')
    monkeypatch.chdir(no_project_dir)

    result = CliRunner().invoke(cli, ["show", "--memory-path", str(global_dir)])
    assert result.exit_code == 1
    assert "safety marker" in result.output


def test_init_then_databases(global_dir, project_root, monkeypatch):
    monkeypatch.chdir(project_root)
    runner = CliRunner()

    result = runner.invoke(cli, ["init"])
    assert result.exit_code == 0, result.output
    assert (project_root / ".aim").is_dir()

    _seed(global_dir, project_root, context="notes")
    result = runner.invoke(cli, ["databases", "--memory-path", str(global_dir)])
    assert result.exit_code == 0, result.output
    assert "notes" in result.output
    assert "Current location: project (.aim directory detected)" in result.output
