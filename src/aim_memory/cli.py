"""aim CLI — a knowledge graph memory stored as JSONL files.

Commands:
    aim serve                  start stdio MCP server
    aim init                   create .aim/ so this project gets its own databases
    aim databases              list project and global databases
    aim show                   dump a database
    aim search QUERY           substring search over names, types and observations
    aim open NAME...           entities by exact name
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from aim_memory.config import AimConfig, ConfigError, init_project, load_config
from aim_memory.formatting import FORMATS, format_graph
from aim_memory.locations import LOCATIONS, LocationResolver, NoProjectError
from aim_memory.manager import KnowledgeGraphManager
from aim_memory.mcp import run_server
from aim_memory.store import GraphFileError, MarkerError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_CORE_ERRORS = (ConfigError, NoProjectError, MarkerError, GraphFileError, OSError)


def _load_cfg(memory_path: str | None) -> AimConfig:
    try:
        return load_config(memory_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _manager(memory_path: str | None) -> KnowledgeGraphManager:
    return KnowledgeGraphManager(LocationResolver.from_config(_load_cfg(memory_path)))


_memory_path_option = click.option(
    "--memory-path",
    default=None,
    help="Global memory directory (or a .jsonl file inside it)",
)


def _query_options(f: Callable[..., Any]) -> Callable[..., Any]:
    f = click.option("--format", "fmt", type=click.Choice(FORMATS), default="pretty",
                     show_default=True, help="Output format")(f)
    f = click.option("--location", type=click.Choice(LOCATIONS), default=None,
                     help="Force project or global storage (default: auto-detect)")(f)
    f = click.option("--context", "-c", default=None, help="Database name (default: master)")(f)
    return _memory_path_option(f)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="aim-memory")
def cli() -> None:
    """aim — persistent knowledge graph memory for AI assistants."""


# ---------------------------------------------------------------------------
# aim serve
# ---------------------------------------------------------------------------


@cli.command()
@_memory_path_option
@click.option("--verbose", "-v", is_flag=True, help="Log tool calls and file access to stderr")
def serve(memory_path: str | None, verbose: bool) -> None:
    """Start stdio MCP server (register it in your MCP client config)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    run_server(_load_cfg(memory_path))


# ---------------------------------------------------------------------------
# aim init
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(root: str) -> None:
    """Create .aim/ in the project root so databases are stored with the project."""
    aim_dir = init_project(Path(root).resolve())
    click.echo(f"Project memory dir: {aim_dir}")


# ---------------------------------------------------------------------------
# aim databases
# ---------------------------------------------------------------------------


@cli.command()
@_memory_path_option
def databases(memory_path: str | None) -> None:
    """List databases in the project .aim dir and the global dir."""
    from rich.console import Console
    from rich.table import Table

    manager = _manager(memory_path)
    try:
        result = manager.list_databases()
    except OSError as exc:
        raise click.ClickException(str(exc)) from exc

    table = Table(title="aim databases", show_header=True, header_style="bold")
    table.add_column("Location", style="dim", no_wrap=True)
    table.add_column("Databases")

    project_dir = manager.resolver.project_dir()
    table.add_row(
        "project",
        ", ".join(result["project_databases"]) or "[dim](none)[/dim]",
    )
    if project_dir is not None:
        table.add_row("", f"[dim]{project_dir}[/dim]")
    table.add_row(
        "global",
        ", ".join(result["global_databases"]) or "[dim](none)[/dim]",
    )
    table.add_row("", f"[dim]{manager.resolver.memory_dir}[/dim]")

    console = Console()
    console.print(table)
    console.print(f"Current location: {result['current_location']}")


# ---------------------------------------------------------------------------
# aim show / search / open
# ---------------------------------------------------------------------------


def _run_query(memory_path: str | None, query: Callable[[KnowledgeGraphManager], Any],
               fmt: str, context: str | None) -> None:
    manager = _manager(memory_path)
    try:
        graph = query(manager)
    except _CORE_ERRORS as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(format_graph(graph, fmt, context))


@cli.command()
@_query_options
def show(memory_path: str | None, context: str | None, location: str | None, fmt: str) -> None:
    """Print a whole database."""
    _run_query(
        memory_path,
        lambda m: m.read_graph(context=context, location=location),  # type: ignore[arg-type]
        fmt,
        context,
    )


@cli.command()
@click.argument("query")
@_query_options
def search(
    query: str, memory_path: str | None, context: str | None, location: str | None, fmt: str,
) -> None:
    """Case-insensitive search over entity names, types and observations."""
    _run_query(
        memory_path,
        lambda m: m.search_nodes(query, context=context, location=location),  # type: ignore[arg-type]
        fmt,
        context,
    )


@cli.command("open")
@click.argument("names", nargs=-1, required=True)
@_query_options
def open_(
    names: tuple[str, ...], memory_path: str | None, context: str | None,
    location: str | None, fmt: str,
) -> None:
    """Print entities by exact name, with the relations among them."""
    _run_query(
        memory_path,
        lambda m: m.open_nodes(names, context=context, location=location),  # type: ignore[arg-type]
        fmt,
        context,
    )
