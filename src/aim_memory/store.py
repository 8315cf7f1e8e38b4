"""Load and save a knowledge graph as a marker-guarded JSONL file.

File layout (one JSON value per line, UTF-8):

    {"type":"_aim","source":"mcp-knowledge-graph"}                             # marker (line 1)
    {"type":"entity","name":...,"entityType":...,"observations":[...]}         # entity
    {"type":"relation","from":...,"to":...,"relationType":...}                 # relation

A missing file is an empty graph. A non-empty file whose first record is not the
marker is refused, so an unrelated .jsonl file is never read (or rewritten).

Writes go to <file>.tmp and are renamed over the target, so an interrupted save
leaves the previous contents in place.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from aim_memory.models import Entity, KnowledgeGraph, Relation

logger = logging.getLogger("aim.store")

FILE_MARKER: dict[str, str] = {"type": "_aim", "source": "mcp-knowledge-graph"}
_MARKER_LINE = json.dumps(FILE_MARKER, separators=(",", ":"))


class MarkerError(ValueError):
    """The file exists but does not start with the safety marker."""


class GraphFileError(ValueError):
    """A record after the marker is malformed."""


def _dumps(obj: dict[str, Any]) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


class GraphStore:
    """Whole-file reader/writer for one database path at a time."""

    def load(self, path: Path) -> KnowledgeGraph:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("no database at %s, starting empty", path)
            return KnowledgeGraph()

        lines = [(n, line) for n, line in enumerate(text.split("\n"), 1) if line.strip()]
        if not lines:
            return KnowledgeGraph()

        self._check_marker(path, lines[0][1])

        graph = KnowledgeGraph()
        for lineno, line in lines[1:]:
            try:
                obj = json.loads(line)
                kind = obj.get("type")
                if kind == "entity":
                    graph.entities.append(Entity.from_dict(obj))
                elif kind == "relation":
                    graph.relations.append(Relation.from_dict(obj))
                else:
                    logger.debug("%s:%d: skipping record of type %r", path, lineno, kind)
            except (json.JSONDecodeError, AttributeError, KeyError, TypeError) as exc:
                msg = f"{path}:{lineno}: malformed record ({exc})"
                raise GraphFileError(msg) from exc

        logger.debug(
            "loaded %s: %d entities, %d relations",
            path, len(graph.entities), len(graph.relations),
        )
        return graph

    @staticmethod
    def _check_marker(path: Path, first_line: str) -> None:
        try:
            first = json.loads(first_line)
        except json.JSONDecodeError:
            first = None
        if first != FILE_MARKER:
            msg = (
                f"File {path} does not contain required _aim safety marker. "
                "This file may not belong to the knowledge graph system. "
                f"Expected first line: {_MARKER_LINE}"
            )
            raise MarkerError(msg)

    def save(self, graph: KnowledgeGraph, path: Path) -> None:
        lines = [_MARKER_LINE]
        lines += [_dumps({"type": "entity", **e.to_dict()}) for e in graph.entities]
        lines += [_dumps({"type": "relation", **r.to_dict()}) for r in graph.relations]

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text("\n".join(lines), encoding="utf-8")
        tmp.replace(path)
        logger.debug(
            "saved %s: %d entities, %d relations",
            path, len(graph.entities), len(graph.relations),
        )
