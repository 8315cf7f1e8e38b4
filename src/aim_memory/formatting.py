"""Render query results as JSON or as human-readable text."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aim_memory.models import KnowledgeGraph

FORMATS: tuple[str, ...] = ("json", "pretty")


def format_pretty(graph: KnowledgeGraph, context: str | None = None) -> str:
    lines = [f"=== {context or 'default'} database ===", ""]

    if not graph.entities:
        lines.append("ENTITIES: (none)")
    else:
        lines.append(f"ENTITIES ({len(graph.entities)}):")
        for e in graph.entities:
            lines.append(f"  {e.name} [{e.entity_type}]")
            lines.extend(f"    - {o}" for o in e.observations)

    lines.append("")

    if not graph.relations:
        lines.append("RELATIONS: (none)")
    else:
        lines.append(f"RELATIONS ({len(graph.relations)}):")
        for r in graph.relations:
            lines.append(f"  {r.source} --{r.relation_type}--> {r.target}")

    return "\n".join(lines)


def format_graph(graph: KnowledgeGraph, fmt: str | None = "json", context: str | None = None) -> str:
    """Dispatch on fmt ("json" when None)."""
    fmt = fmt or "json"
    if fmt == "json":
        return json.dumps(graph.to_dict(), indent=2, ensure_ascii=False)
    if fmt == "pretty":
        return format_pretty(graph, context)
    msg = f"Invalid format {fmt!r}: expected one of {', '.join(FORMATS)}"
    raise ValueError(msg)
