"""
Tool surface - Catalogue, dispatch and resources for agent tool calls.

A tool call is `(name, arguments)` where arguments use the camelCase names
from the catalogue below. The dispatcher validates the arguments, calls the
CanvasService and renders the outcome as MCP text content:

    {"content": [{"type": "text", "text": "..."}], "isError": false}

Unknown tool names come back as an UnknownOperation failure so the HTTP layer
can answer 400.
"""

import json
import math
import logging
from typing import Any, Awaitable, Callable, Optional

from canvas_core.layout import LayoutAlgorithm
from canvas_core.models import CanvasData, CanvasKind, ConnectionStyle, NodeKind
from canvas_core.results import ErrorKind, OperationResult
from canvas_core.templates import CUSTOM_TEMPLATE, WORKFLOW_TEMPLATES, template_catalog

from .service import CanvasService, canvas_summary

logger = logging.getLogger(__name__)


class ToolArgumentError(ValueError):
    """A tool call carried a missing or mistyped argument."""


def _string(description: str, enum: Optional[list[str]] = None) -> dict:
    schema = {"type": "string", "description": description}
    if enum:
        schema["enum"] = enum
    return schema


def _number(description: str) -> dict:
    return {"type": "number", "description": description}


def _string_list(description: str) -> dict:
    return {"type": "array", "items": {"type": "string"}, "description": description}


def _tool(name: str, description: str, properties: dict, required: list[str]) -> dict:
    return {
        "name": name,
        "description": description,
        "inputSchema": {"type": "object", "properties": properties, "required": required},
    }


CANVAS_ID = _string("ID of the canvas")
NODE_KINDS = [k.value for k in NodeKind]
CANVAS_KINDS = [k.value for k in CanvasKind]
CONNECTION_STYLES = [s.value for s in ConnectionStyle]
LAYOUTS = [a.value for a in LayoutAlgorithm]
WORKFLOW_CHOICES = list(WORKFLOW_TEMPLATES) + [CUSTOM_TEMPLATE]

TOOLS: list[dict] = [
    _tool("canvas_create", "Create a new design canvas for mindmaps, workflows, or freeform design", {
        "name": _string("Name of the canvas"),
        "type": _string("Type of canvas", CANVAS_KINDS),
    }, ["name", "type"]),
    _tool("canvas_delete", "Delete an existing canvas", {
        "canvasId": _string("ID of the canvas to delete"),
    }, ["canvasId"]),
    _tool("canvas_add_node", "Add a node to an existing canvas", {
        "canvasId": CANVAS_ID,
        "nodeType": _string("Type of node to add", NODE_KINDS),
        "label": _string("Label/text for the node"),
        "x": _number("X position (optional, auto-positioned if not provided)"),
        "y": _number("Y position (optional, auto-positioned if not provided)"),
    }, ["canvasId", "nodeType", "label"]),
    _tool("canvas_update_node", "Update properties of an existing node", {
        "canvasId": CANVAS_ID,
        "nodeId": _string("ID of the node to update"),
        "label": _string("New label for the node"),
        "x": _number("New X position"),
        "y": _number("New Y position"),
    }, ["canvasId", "nodeId"]),
    _tool("canvas_delete_node", "Delete a node and all its connections from a canvas", {
        "canvasId": CANVAS_ID,
        "nodeId": _string("ID of the node to delete"),
    }, ["canvasId", "nodeId"]),
    _tool("canvas_add_connection", "Add a connection between two nodes", {
        "canvasId": CANVAS_ID,
        "fromNodeId": _string("Source node ID"),
        "toNodeId": _string("Target node ID"),
        "label": _string("Optional label for the connection"),
        "style": _string("Connection style (default: arrow)", CONNECTION_STYLES),
    }, ["canvasId", "fromNodeId", "toNodeId"]),
    _tool("canvas_delete_connection", "Delete a connection from a canvas", {
        "canvasId": CANVAS_ID,
        "connectionId": _string("ID of the connection to delete"),
    }, ["canvasId", "connectionId"]),
    _tool("canvas_export_svg", "Export canvas as SVG vector graphic", {
        "canvasId": _string("ID of the canvas to export"),
    }, ["canvasId"]),
    _tool("canvas_export_json", "Export canvas as JSON data for persistence or transfer", {
        "canvasId": _string("ID of the canvas to export"),
    }, ["canvasId"]),
    _tool("canvas_import_json", "Import canvas from JSON data", {
        "json": _string("JSON string containing canvas data"),
    }, ["json"]),
    _tool("canvas_layout_auto", "Automatically arrange nodes using a layout algorithm", {
        "canvasId": CANVAS_ID,
        "algorithm": _string("Layout algorithm to apply", LAYOUTS),
    }, ["canvasId", "algorithm"]),
    _tool("mindmap_create", "Create a complete mindmap from a central topic and branches", {
        "name": _string("Name for the mindmap canvas"),
        "centralTopic": _string("Central topic/theme of the mindmap"),
        "branches": _string_list("Branch topics to connect to the central topic"),
    }, ["name", "centralTopic", "branches"]),
    _tool("mindmap_add_branch", "Add new branches to an existing mindmap", {
        "canvasId": _string("ID of the mindmap canvas"),
        "parentNodeId": _string("ID of the parent node to branch from"),
        "branchTopics": _string_list("Topics for the new branches"),
    }, ["canvasId", "parentNodeId", "branchTopics"]),
    _tool("workflow_create", "Create a research workflow from a template", {
        "name": _string("Name for the workflow canvas"),
        "template": _string("Workflow template to use", WORKFLOW_CHOICES),
        "customSteps": _string_list('Custom step titles (required if template is "custom")'),
    }, ["name", "template"]),
    _tool("canvas_list", "List all canvases with their basic info", {}, []),
    _tool("canvas_get", "Get full details of a specific canvas", {
        "canvasId": _string("ID of the canvas to retrieve"),
    }, ["canvasId"]),
]

TOOL_NAMES = {tool["name"] for tool in TOOLS}

RESOURCES: list[dict] = [
    {"uri": "canvas://list", "name": "All Canvases", "mimeType": "application/json",
     "description": "List of all design canvases"},
    {"uri": "templates://mindmap", "name": "Mindmap Templates", "mimeType": "application/json",
     "description": "Pre-built mindmap templates"},
    {"uri": "templates://workflow", "name": "Workflow Templates", "mimeType": "application/json",
     "description": "Research workflow templates"},
]


# --- Response shaping ---

def to_mcp_response(result: OperationResult) -> dict:
    """Render an OperationResult as MCP text content."""
    text = result.message if result else f"Error: {result.message}"
    return {"content": [{"type": "text", "text": text}], "isError": not result.success}


def _numbered(items: list[str]) -> str:
    return "\n".join(f"  {i}. {item}" for i, item in enumerate(items, start=1))


def describe_canvas(canvas: CanvasData) -> str:
    """Readable node/connection listing used by canvas_get."""
    labels = {n.id: n.label for n in canvas.nodes}
    node_lines = "\n".join(f'  - [{n.type.value}] "{n.label}" ({n.id})' for n in canvas.nodes)
    conn_lines = "\n".join(
        f'  - "{labels.get(c.from_node_id, "?")}" -> "{labels.get(c.to_node_id, "?")}" ({c.id})'
        for c in canvas.connections
    )
    return (
        f"{canvas.name} ({canvas.type.value})\n\nID: {canvas.id}\n\n"
        f"Nodes ({len(canvas.nodes)}):\n{node_lines or '  (none)'}\n\n"
        f"Connections ({len(canvas.connections)}):\n{conn_lines or '  (none)'}"
    )


# --- Argument access ---

def _required(args: dict, key: str) -> Any:
    if args.get(key) is None:
        raise ToolArgumentError(f"Missing required argument: {key}")
    return args[key]


def _required_str(args: dict, key: str) -> str:
    value = _required(args, key)
    if not isinstance(value, str):
        raise ToolArgumentError(f"Argument {key} must be a string")
    return value


def _optional_str(args: dict, key: str) -> Optional[str]:
    if args.get(key) is None:
        return None
    return _required_str(args, key)


def _optional_number(args: dict, key: str) -> Optional[float]:
    value = args.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ToolArgumentError(f"Argument {key} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ToolArgumentError(f"Argument {key} must be a number") from None
    if not math.isfinite(number):
        raise ToolArgumentError(f"Argument {key} must be a finite number")
    return number


def _str_list(args: dict, key: str, required: bool = True) -> Optional[list[str]]:
    value = _required(args, key) if required else args.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ToolArgumentError(f"Argument {key} must be a list of strings")
    return value


ToolHandler = Callable[[dict], Awaitable[OperationResult]]


class ToolDispatcher:
    """Routes tool calls and resource reads to a CanvasService."""

    def __init__(self, service: CanvasService):
        self.service = service
        self._handlers: dict[str, ToolHandler] = {
            "canvas_create": self._canvas_create,
            "canvas_delete": self._canvas_delete,
            "canvas_add_node": self._canvas_add_node,
            "canvas_update_node": self._canvas_update_node,
            "canvas_delete_node": self._canvas_delete_node,
            "canvas_add_connection": self._canvas_add_connection,
            "canvas_delete_connection": self._canvas_delete_connection,
            "canvas_export_svg": self._canvas_export_svg,
            "canvas_export_json": self._canvas_export_json,
            "canvas_import_json": self._canvas_import_json,
            "canvas_layout_auto": self._canvas_layout_auto,
            "mindmap_create": self._mindmap_create,
            "mindmap_add_branch": self._mindmap_add_branch,
            "workflow_create": self._workflow_create,
            "canvas_list": self._canvas_list,
            "canvas_get": self._canvas_get,
        }

    async def dispatch(self, name: str, arguments: Optional[dict] = None) -> OperationResult:
        """Run one tool call. Never raises."""
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("Unknown tool: %s", name)
            return OperationResult.fail(ErrorKind.UNKNOWN_OPERATION, f"Unknown tool: {name}")

        args = arguments or {}
        try:
            return await handler(args)
        except ToolArgumentError as e:
            logger.warning("Bad arguments for %s: %s", name, e)
            return OperationResult.fail(ErrorKind.INVALID_INPUT, str(e))
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return OperationResult.fail(ErrorKind.INVALID_INPUT, f"{type(e).__name__}: {e}")

    async def call(self, name: str, arguments: Optional[dict] = None) -> dict:
        """Run one tool call and return the MCP response shape."""
        return to_mcp_response(await self.dispatch(name, arguments))

    # --- Canvas tools ---

    async def _canvas_create(self, args: dict) -> OperationResult:
        result = await self.service.create(_required_str(args, "name"), _required_str(args, "type"))
        if result:
            result.message += f"\n\nCanvas ID: {result.data.id}"
        return result

    async def _canvas_delete(self, args: dict) -> OperationResult:
        return await self.service.delete(_required_str(args, "canvasId"))

    async def _canvas_add_node(self, args: dict) -> OperationResult:
        result = await self.service.add_node(
            _required_str(args, "canvasId"),
            _required_str(args, "nodeType"),
            _required_str(args, "label"),
            x=_optional_number(args, "x"),
            y=_optional_number(args, "y"),
        )
        if result:
            result.message += f"\n\nNode ID: {result.data.id}"
        return result

    async def _canvas_update_node(self, args: dict) -> OperationResult:
        return await self.service.update_node(
            _required_str(args, "canvasId"),
            _required_str(args, "nodeId"),
            label=_optional_str(args, "label"),
            x=_optional_number(args, "x"),
            y=_optional_number(args, "y"),
        )

    async def _canvas_delete_node(self, args: dict) -> OperationResult:
        return await self.service.delete_node(
            _required_str(args, "canvasId"), _required_str(args, "nodeId")
        )

    async def _canvas_add_connection(self, args: dict) -> OperationResult:
        result = await self.service.add_connection(
            _required_str(args, "canvasId"),
            _required_str(args, "fromNodeId"),
            _required_str(args, "toNodeId"),
            label=_optional_str(args, "label"),
            style=_optional_str(args, "style") or ConnectionStyle.ARROW.value,
        )
        if result:
            result.message += f"\n\nConnection ID: {result.data.id}"
        return result

    async def _canvas_delete_connection(self, args: dict) -> OperationResult:
        return await self.service.delete_connection(
            _required_str(args, "canvasId"), _required_str(args, "connectionId")
        )

    async def _canvas_export_svg(self, args: dict) -> OperationResult:
        result = await self.service.export_svg(_required_str(args, "canvasId"))
        if result:
            result.message += f"\n\n```svg\n{result.data}\n```"
        return result

    async def _canvas_export_json(self, args: dict) -> OperationResult:
        result = await self.service.export_json(_required_str(args, "canvasId"))
        if result:
            result.message += f"\n\n```json\n{result.data}\n```"
        return result

    async def _canvas_import_json(self, args: dict) -> OperationResult:
        result = await self.service.import_json(_required_str(args, "json"))
        if result:
            canvas = result.data
            result.message += (
                f"\n\nNew Canvas ID: {canvas.id}\nNodes: {len(canvas.nodes)}\n"
                f"Connections: {len(canvas.connections)}"
            )
        return result

    async def _canvas_layout_auto(self, args: dict) -> OperationResult:
        return await self.service.apply_layout(
            _required_str(args, "canvasId"), _required_str(args, "algorithm")
        )

    # --- Generators ---

    async def _mindmap_create(self, args: dict) -> OperationResult:
        central = _required_str(args, "centralTopic")
        branches = _str_list(args, "branches")
        result = await self.service.create_mindmap(_required_str(args, "name"), central, branches)
        if result:
            result.message += (
                f'\n\nCanvas ID: {result.data.id}\nCentral Topic: "{central}"\n'
                f"Branches: {len(branches)}\n\n{_numbered(branches)}"
            )
        return result

    async def _mindmap_add_branch(self, args: dict) -> OperationResult:
        topics = _str_list(args, "branchTopics")
        result = await self.service.add_mindmap_branches(
            _required_str(args, "canvasId"), _required_str(args, "parentNodeId"), topics
        )
        if result:
            result.message += f"\n\n{_numbered(topics)}"
        return result

    async def _workflow_create(self, args: dict) -> OperationResult:
        result = await self.service.create_workflow(
            _required_str(args, "name"),
            _required_str(args, "template"),
            _str_list(args, "customSteps", required=False),
        )
        if result:
            canvas = result.data
            titles = [n.label.split("\n")[0] for n in canvas.nodes]
            result.message += (
                f"\n\nCanvas ID: {canvas.id}\nSteps: {len(titles)}\n\n{_numbered(titles)}"
            )
        return result

    # --- Queries ---

    async def _canvas_list(self, args: dict) -> OperationResult:
        result = await self.service.list_canvases()
        canvases = result.data
        if not canvases:
            result.message = "No canvases found.\n\nCreate one using mindmap_create or workflow_create."
            return result
        entries = "\n\n".join(
            f"- {c.name} ({c.type.value})\n  ID: {c.id}\n"
            f"  Nodes: {len(c.nodes)} | Connections: {len(c.connections)}"
            for c in canvases
        )
        plural = "Canvas" if len(canvases) == 1 else "Canvases"
        result.message = f"{len(canvases)} {plural}\n\n{entries}"
        return result

    async def _canvas_get(self, args: dict) -> OperationResult:
        result = await self.service.get(_required_str(args, "canvasId"))
        if result:
            result.message = describe_canvas(result.data)
        return result

    # --- Resources ---

    async def list_resources(self) -> list[dict]:
        """Static resources plus one `canvas://{id}` entry per stored canvas."""
        listed = await self.service.list_canvases()
        dynamic = [
            {"uri": f"canvas://{c.id}", "name": c.name, "mimeType": "application/json",
             "description": f"{c.type.value} canvas with {len(c.nodes)} nodes"}
            for c in listed.data
        ]
        return RESOURCES + dynamic

    async def read_resource(self, uri: str) -> OperationResult:
        """Resolve a resource URI to JSON text in `data`."""
        if uri == "canvas://list":
            listed = await self.service.list_canvases()
            return OperationResult.ok(data=json.dumps([canvas_summary(c) for c in listed.data], indent=2))
        if uri == "templates://mindmap":
            return OperationResult.ok(data=json.dumps(template_catalog()["mindmap"], indent=2))
        if uri == "templates://workflow":
            return OperationResult.ok(data=json.dumps(template_catalog()["workflow"], indent=2))
        if uri.startswith("canvas://"):
            result = await self.service.get(uri.removeprefix("canvas://"))
            if result:
                result.data = json.dumps(result.data.to_json_dict(), indent=2)
            return result
        return OperationResult.not_found("Resource", uri)
