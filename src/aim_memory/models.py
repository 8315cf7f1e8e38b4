"""Data models for the knowledge graph: entities, relations and the graph itself."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any


def unique(items: Iterable[str]) -> list[str]:
    """Drop repeated strings, keeping first-seen order."""
    return list(dict.fromkeys(items))


@dataclass
class Entity:
    """A named node with a type and an ordered, duplicate-free list of observations."""

    name: str
    entity_type: str
    observations: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Entity:
        return cls(
            name=d["name"],
            entity_type=d.get("entityType", ""),
            observations=unique(d.get("observations") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entityType": self.entity_type,
            "observations": list(self.observations),
        }

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name, type or any observation."""
        q = query.lower()
        return (
            q in self.name.lower()
            or q in self.entity_type.lower()
            or any(q in o.lower() for o in self.observations)
        )


@dataclass(frozen=True)
class Relation:
    """A directed, typed edge. Identity is the full (source, target, type) triple."""

    source: str
    target: str
    relation_type: str

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Relation:
        return cls(source=d["from"], target=d["to"], relation_type=d["relationType"])

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.source, "to": self.target, "relationType": self.relation_type}

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.source, self.target, self.relation_type)


@dataclass
class KnowledgeGraph:
    entities: list[Entity] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)

    def find(self, name: str) -> Entity | None:
        for e in self.entities:
            if e.name == name:
                return e
        return None

    def names(self) -> set[str]:
        return {e.name for e in self.entities}

    def subgraph(self, entities: list[Entity]) -> KnowledgeGraph:
        """Keep the given entities and only the relations between them."""
        kept = {e.name for e in entities}
        return KnowledgeGraph(
            entities=entities,
            relations=[r for r in self.relations if r.source in kept and r.target in kept],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "relations": [r.to_dict() for r in self.relations],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> KnowledgeGraph:
        return cls(
            entities=[Entity.from_dict(e) for e in d.get("entities", [])],
            relations=[Relation.from_dict(r) for r in d.get("relations", [])],
        )
