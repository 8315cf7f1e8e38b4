"""Stdio MCP server for aim.

Tools (the aim_ prefix groups them in the client's tool list):
    aim_create_entities(entities, context?, location?)      → created entities (JSON)
    aim_create_relations(relations, context?, location?)    → created relations (JSON)
    aim_add_observations(observations, context?, location?) → [{entityName, addedObservations}]
    aim_delete_entities(entityNames, context?, location?)
    aim_delete_observations(deletions, context?, location?)
    aim_delete_relations(relations, context?, location?)
    aim_read_graph(context?, location?, format?)
    aim_search_nodes(query, context?, location?, format?)
    aim_open_nodes(names, context?, location?, format?)
    aim_list_databases()

Protocol: JSON-RPC 2.0 over stdin/stdout (MCP spec). Logs go to stderr only.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any

from aim_memory.formatting import FORMATS, format_graph
from aim_memory.locations import LOCATIONS, LocationResolver, validate_location
from aim_memory.manager import KnowledgeGraphManager

if TYPE_CHECKING:
    from collections.abc import Callable

    from aim_memory.config import AimConfig

logger = logging.getLogger("aim.mcp")

_SERVER_NAME = "aim-memory"
_PROTOCOL_VERSION = "2024-11-05"

_CONTEXT = {
    "type": "string",
    "description": (
        "Optional database name. Leave blank for the master database; any other name "
        "('work', 'personal', ...) selects memory-<name>.jsonl, created on first write."
    ),
}
_LOCATION = {
    "type": "string",
    "enum": list(LOCATIONS),
    "description": (
        "Optional storage override. 'project' forces <project-root>/.aim, 'global' forces "
        "the configured memory directory. Omit for auto-detection."
    ),
}
_FORMAT = {
    "type": "string",
    "enum": list(FORMATS),
    "description": "Output format: 'json' (default) or 'pretty' for human-readable text.",
}
_ENTITY = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "The name of the entity"},
        "entityType": {"type": "string", "description": "The type of the entity"},
        "observations": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Facts about the entity",
        },
    },
    "required": ["name", "entityType", "observations"],
}
_RELATION = {
    "type": "object",
    "properties": {
        "from": {"type": "string", "description": "Entity where the relation starts"},
        "to": {"type": "string", "description": "Entity where the relation ends"},
        "relationType": {"type": "string", "description": "Relation type, in active voice"},
    },
    "required": ["from", "to", "relationType"],
}


def _schema(required: dict[str, Any] | None = None, *, fmt: bool = False) -> dict[str, Any]:
    props: dict[str, Any] = {"context": _CONTEXT, "location": _LOCATION}
    if fmt:
        props["format"] = _FORMAT
    props.update(required or {})
    return {"type": "object", "properties": props, "required": list(required or {})}


def _tool_defs() -> list[dict[str, Any]]:
    return [
        {
            "name": "aim_create_entities",
            "description": (
                "Create entities (people, projects, concepts) in the knowledge graph. "
                "Entities whose name already exists are skipped. Returns the entities created."
            ),
            "inputSchema": _schema({"entities": {"type": "array", "items": _ENTITY}}),
        },
        {
            "name": "aim_create_relations",
            "description": (
                "Create directed relations between entities. Only link entities that exist. "
                "Duplicate relations are skipped. Returns the relations created."
            ),
            "inputSchema": _schema({"relations": {"type": "array", "items": _RELATION}}),
        },
        {
            "name": "aim_add_observations",
            "description": (
                "Add facts to existing entities. Fails if any entity does not exist. "
                "Facts already present are skipped."
            ),
            "inputSchema": _schema({
                "observations": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "entityName": {"type": "string"},
                            "contents": {"type": "array", "items": {"type": "string"}},
                        },
                        "required": ["entityName", "contents"],
                    },
                },
            }),
        },
        {
            "name": "aim_delete_entities",
            "description": "Delete entities and every relation that touches them.",
            "inputSchema": _schema({
                "entityNames": {"type": "array", "items": {"type": "string"}},
            }),
        },
        {
            "name": "aim_delete_observations",
            "description": "Delete specific facts from entities. Missing entities are ignored.",
            "inputSchema": _schema({
                "deletions": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "entityName": {"type": "string"},
                            "observations": {"type": "array", "items": {"type": "string"}},
                        },
                        "required": ["entityName", "observations"],
                    },
                },
            }),
        },
        {
            "name": "aim_delete_relations",
            "description": "Delete relations matching from, to and relationType exactly.",
            "inputSchema": _schema({"relations": {"type": "array", "items": _RELATION}}),
        },
        {
            "name": "aim_read_graph",
            "description": "Read the entire knowledge graph of one database.",
            "inputSchema": _schema(fmt=True),
        },
        {
            "name": "aim_search_nodes",
            "description": (
                "Case-insensitive substring search over entity names, types and facts. "
                "Use when you don't know exact entity names."
            ),
            "inputSchema": _schema(
                {"query": {"type": "string", "description": "Text to search for"}}, fmt=True,
            ),
        },
        {
            "name": "aim_open_nodes",
            "description": "Retrieve entities by exact name. Unknown names are ignored.",
            "inputSchema": _schema(
                {"names": {"type": "array", "items": {"type": "string"}}}, fmt=True,
            ),
        },
        {
            "name": "aim_list_databases",
            "description": (
                "List databases in the project .aim directory and the global directory, "
                "and show which location auto-detection currently uses."
            ),
            "inputSchema": {"type": "object", "properties": {}},
        },
    ]


_REQUIRED_ARGS = {
    t["name"]: t["inputSchema"].get("required", []) for t in _tool_defs()
}


class AimServer:
    def __init__(self, cfg: AimConfig) -> None:
        self._cfg = cfg
        self.manager = KnowledgeGraphManager(LocationResolver.from_config(cfg))

    @staticmethod
    def _target(args: dict[str, Any]) -> dict[str, Any]:
        return {
            "context": args.get("context") or None,
            "location": validate_location(args.get("location")),
        }

    def _call_create_entities(self, args: dict[str, Any]) -> str:
        created = self.manager.create_entities(args["entities"], **self._target(args))
        return json.dumps([e.to_dict() for e in created], indent=2, ensure_ascii=False)

    def _call_create_relations(self, args: dict[str, Any]) -> str:
        created = self.manager.create_relations(args["relations"], **self._target(args))
        return json.dumps([r.to_dict() for r in created], indent=2, ensure_ascii=False)

    def _call_add_observations(self, args: dict[str, Any]) -> str:
        results = self.manager.add_observations(args["observations"], **self._target(args))
        return json.dumps(results, indent=2, ensure_ascii=False)

    def _call_delete_entities(self, args: dict[str, Any]) -> str:
        self.manager.delete_entities(args["entityNames"], **self._target(args))
        return "Entities deleted successfully"

    def _call_delete_observations(self, args: dict[str, Any]) -> str:
        self.manager.delete_observations(args["deletions"], **self._target(args))
        return "Observations deleted successfully"

    def _call_delete_relations(self, args: dict[str, Any]) -> str:
        self.manager.delete_relations(args["relations"], **self._target(args))
        return "Relations deleted successfully"

    def _call_read_graph(self, args: dict[str, Any]) -> str:
        graph = self.manager.read_graph(**self._target(args))
        return format_graph(graph, args.get("format"), args.get("context"))

    def _call_search_nodes(self, args: dict[str, Any]) -> str:
        graph = self.manager.search_nodes(args["query"], **self._target(args))
        return format_graph(graph, args.get("format"), args.get("context"))

    def _call_open_nodes(self, args: dict[str, Any]) -> str:
        graph = self.manager.open_nodes(args["names"], **self._target(args))
        return format_graph(graph, args.get("format"), args.get("context"))

    def _call_list_databases(self, args: dict[str, Any]) -> str:
        return json.dumps(self.manager.list_databases(), indent=2)

    def call_tool(self, name: str, arguments: dict[str, Any] | None) -> str:
        dispatch: dict[str, Callable[[dict[str, Any]], str]] = {
            "aim_create_entities": self._call_create_entities,
            "aim_create_relations": self._call_create_relations,
            "aim_add_observations": self._call_add_observations,
            "aim_delete_entities": self._call_delete_entities,
            "aim_delete_observations": self._call_delete_observations,
            "aim_delete_relations": self._call_delete_relations,
            "aim_read_graph": self._call_read_graph,
            "aim_search_nodes": self._call_search_nodes,
            "aim_open_nodes": self._call_open_nodes,
            "aim_list_databases": self._call_list_databases,
        }
        if name not in dispatch:
            msg = f"Unknown tool: {name}"
            raise ValueError(msg)
        args = arguments or {}
        missing = [k for k in _REQUIRED_ARGS[name] if k not in args]
        if missing:
            msg = f"Missing required argument(s) for {name}: {', '.join(missing)}"
            raise ValueError(msg)
        if args.get("format") not in (None, *FORMATS):
            msg = f"Invalid format {args['format']!r}: expected 'json' or 'pretty'"
            raise ValueError(msg)
        return dispatch[name](args)


def _server_version() -> str:
    try:
        return version(_SERVER_NAME)
    except PackageNotFoundError:
        return "0.0.0"


def handle_message(server: AimServer, msg: dict[str, Any]) -> dict[str, Any] | None:
    """Process one JSON-RPC message; return the response, or None for notifications."""
    method = msg.get("method", "")
    msg_id = msg.get("id")

    if method == "initialize":
        return {
            "jsonrpc": "2.0",
            "id": msg_id,
            "result": {
                "protocolVersion": _PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "serverInfo": {"name": _SERVER_NAME, "version": _server_version()},
            },
        }

    if method == "notifications/initialized":
        return None

    if method == "tools/list":
        return {"jsonrpc": "2.0", "id": msg_id, "result": {"tools": _tool_defs()}}

    if method == "tools/call":
        params = msg.get("params") or {}
        tool_name = params.get("name", "")
        try:
            text = server.call_tool(tool_name, params.get("arguments"))
            is_error = False
        except Exception as exc:
            logger.warning("tool %s failed: %s", tool_name, exc)
            text = f"Error: {exc}"
            is_error = True
        return {
            "jsonrpc": "2.0",
            "id": msg_id,
            "result": {"content": [{"type": "text", "text": text}], "isError": is_error},
        }

    if msg_id is not None:
        return {
            "jsonrpc": "2.0",
            "id": msg_id,
            "error": {"code": -32601, "message": f"Method not found: {method}"},
        }
    return None


async def _run_server(cfg: AimConfig) -> None:
    server = AimServer(cfg)
    reader = asyncio.StreamReader()
    loop = asyncio.get_running_loop()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)

    writer_transport, _ = await loop.connect_write_pipe(asyncio.BaseProtocol, sys.stdout.buffer)

    def write_json(obj: Any) -> None:
        writer_transport.write((json.dumps(obj) + "\n").encode())

    logger.info("aim MCP server running on stdio (global dir: %s)", cfg.memory_dir)
    while True:
        try:
            line = await reader.readline()
        except (asyncio.IncompleteReadError, EOFError):
            break
        if not line:
            break
        try:
            msg = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("ignoring non-JSON input line")
            continue
        if not isinstance(msg, dict):
            continue

        response = handle_message(server, msg)
        if response is not None:
            write_json(response)


def run_server(cfg: AimConfig) -> None:
    """Entry point for `aim serve`."""
    asyncio.run(_run_server(cfg))
