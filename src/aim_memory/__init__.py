"""Knowledge graph memory: entities, relations and observations in marker-guarded JSONL files.

Layout:
    <project-root>/.aim/          # project-local databases (used when this dir exists)
        memory.jsonl              # master database
        memory-<context>.jsonl    # named databases
    <memory_dir>/                 # global databases, same file names

memory*.jsonl line types:
    {"type":"_aim","source":"mcp-knowledge-graph"}                          # marker (line 1)
    {"type":"entity","name":...,"entityType":...,"observations":[...]}      # entity
    {"type":"relation","from":...,"to":...,"relationType":...}              # relation

Each operation reads the whole file, changes it in memory and rewrites it
(tmp file + rename). There is no locking: the last writer wins.
"""

from aim_memory.config import AimConfig, load_config
from aim_memory.locations import LocationResolver, NoProjectError
from aim_memory.manager import EntityNotFoundError, KnowledgeGraphManager
from aim_memory.models import Entity, KnowledgeGraph, Relation
from aim_memory.store import GraphFileError, GraphStore, MarkerError

__all__ = [
    "AimConfig",
    "Entity",
    "EntityNotFoundError",
    "GraphFileError",
    "GraphStore",
    "KnowledgeGraph",
    "KnowledgeGraphManager",
    "LocationResolver",
    "MarkerError",
    "NoProjectError",
    "Relation",
    "load_config",
]
