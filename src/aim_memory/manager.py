"""KnowledgeGraphManager: the mutation and query surface over one database file.

Every call is a full read-modify-write: resolve the path, load the whole graph,
change it in memory, save the whole graph. Nothing is cached between calls and
concurrent writers are not coordinated (last save wins).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from aim_memory.locations import database_filename
from aim_memory.models import Entity, KnowledgeGraph, Relation, unique
from aim_memory.store import GraphStore

if TYPE_CHECKING:
    from aim_memory.locations import Location, LocationResolver

logger = logging.getLogger("aim.manager")

_DEFAULT_DB_NAME = "default"


class EntityNotFoundError(LookupError):
    """add_observations targeted an entity that is not in the graph."""


def _as_entity(e: Entity | dict[str, Any]) -> Entity:
    return e if isinstance(e, Entity) else Entity.from_dict(e)


def _as_relation(r: Relation | dict[str, Any]) -> Relation:
    return r if isinstance(r, Relation) else Relation.from_dict(r)


def _database_names(directory: Path | None) -> list[str]:
    """memory.jsonl -> "default", memory-<x>.jsonl -> "<x>"; sorted.

    An unreadable directory lists as empty.
    """
    if directory is None or not directory.is_dir():
        return []
    try:
        filenames = [p.name for p in directory.iterdir()]
    except OSError as exc:
        logger.warning("cannot list databases in %s: %s", directory, exc)
        return []
    names = []
    for name in filenames:
        if not name.endswith(".jsonl"):
            continue
        if name == database_filename():
            names.append(_DEFAULT_DB_NAME)
        else:
            names.append(name.removeprefix("memory-").removesuffix(".jsonl"))
    return sorted(names)


class KnowledgeGraphManager:
    def __init__(self, resolver: LocationResolver, store: GraphStore | None = None) -> None:
        self.resolver = resolver
        self.store = store or GraphStore()

    def _load(self, context: str | None, location: Location | None) -> tuple[KnowledgeGraph, Path]:
        path = self.resolver.resolve(context, location)
        return self.store.load(path), path

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_entities(
        self,
        entities: Iterable[Entity | dict[str, Any]],
        *,
        context: str | None = None,
        location: Location | None = None,
    ) -> list[Entity]:
        """Add entities whose names are new; return only those that were added."""
        graph, path = self._load(context, location)
        seen = graph.names()
        created: list[Entity] = []
        for e in map(_as_entity, entities):
            if e.name in seen:
                continue
            seen.add(e.name)
            created.append(Entity(e.name, e.entity_type, unique(e.observations)))
        graph.entities.extend(created)
        self.store.save(graph, path)
        logger.info("created %d entities in %s", len(created), path)
        return created

    def create_relations(
        self,
        relations: Iterable[Relation | dict[str, Any]],
        *,
        context: str | None = None,
        location: Location | None = None,
    ) -> list[Relation]:
        """Add relations whose (from, to, type) triple is new; endpoints are not checked."""
        graph, path = self._load(context, location)
        seen = {r.key for r in graph.relations}
        created: list[Relation] = []
        for r in map(_as_relation, relations):
            if r.key in seen:
                continue
            seen.add(r.key)
            created.append(r)
        graph.relations.extend(created)
        self.store.save(graph, path)
        logger.info("created %d relations in %s", len(created), path)
        return created

    def add_observations(
        self,
        observations: Iterable[dict[str, Any]],
        *,
        context: str | None = None,
        location: Location | None = None,
    ) -> list[dict[str, Any]]:
        """Append new observation strings to existing entities.

        All-or-nothing: every target must exist before anything is touched, and a
        missing one raises EntityNotFoundError without saving. Note that
        delete_observations silently skips missing entities instead; the two
        disagree and callers rely on both behaviours.
        """
        graph, path = self._load(context, location)
        batch = list(observations)
        targets: list[Entity] = []
        for item in batch:
            entity = graph.find(item["entityName"])
            if entity is None:
                msg = f"Entity with name {item['entityName']} not found"
                raise EntityNotFoundError(msg)
            targets.append(entity)

        results = []
        for item, entity in zip(batch, targets, strict=True):
            added = [c for c in unique(item.get("contents", [])) if c not in entity.observations]
            entity.observations.extend(added)
            results.append({"entityName": item["entityName"], "addedObservations": added})
        self.store.save(graph, path)
        logger.info("added observations to %d entities in %s", len(results), path)
        return results

    def delete_entities(
        self,
        entity_names: Iterable[str],
        *,
        context: str | None = None,
        location: Location | None = None,
    ) -> None:
        """Remove entities and every relation touching them. Unknown names are ignored."""
        names = set(entity_names)
        graph, path = self._load(context, location)
        graph.entities = [e for e in graph.entities if e.name not in names]
        graph.relations = [
            r for r in graph.relations if r.source not in names and r.target not in names
        ]
        self.store.save(graph, path)
        logger.info("deleted entities %s in %s", sorted(names), path)

    def delete_observations(
        self,
        deletions: Iterable[dict[str, Any]],
        *,
        context: str | None = None,
        location: Location | None = None,
    ) -> None:
        graph, path = self._load(context, location)
        for d in deletions:
            entity = graph.find(d["entityName"])
            if entity is None:
                continue
            drop = set(d.get("observations", []))
            entity.observations = [o for o in entity.observations if o not in drop]
        self.store.save(graph, path)

    def delete_relations(
        self,
        relations: Iterable[Relation | dict[str, Any]],
        *,
        context: str | None = None,
        location: Location | None = None,
    ) -> None:
        drop = {_as_relation(r).key for r in relations}
        graph, path = self._load(context, location)
        before = len(graph.relations)
        graph.relations = [r for r in graph.relations if r.key not in drop]
        self.store.save(graph, path)
        logger.info("deleted %d relations in %s", before - len(graph.relations), path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def read_graph(
        self, *, context: str | None = None, location: Location | None = None
    ) -> KnowledgeGraph:
        graph, _ = self._load(context, location)
        return graph

    def search_nodes(
        self, query: str, *, context: str | None = None, location: Location | None = None
    ) -> KnowledgeGraph:
        """Entities matching query (case-insensitive substring) and the relations among them."""
        graph, _ = self._load(context, location)
        return graph.subgraph([e for e in graph.entities if e.matches(query)])

    def open_nodes(
        self,
        names: Iterable[str],
        *,
        context: str | None = None,
        location: Location | None = None,
    ) -> KnowledgeGraph:
        """Entities with exactly these names and the relations among them."""
        wanted = set(names)
        graph, _ = self._load(context, location)
        return graph.subgraph([e for e in graph.entities if e.name in wanted])

    def list_databases(self) -> dict[str, Any]:
        """Enumerate database files in the project .aim dir and the global dir."""
        return {
            "project_databases": _database_names(self.resolver.project_dir()),
            "global_databases": _database_names(self.resolver.memory_dir),
            "current_location": self.resolver.current_location(),
        }
