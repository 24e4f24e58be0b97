#!/usr/bin/env python3
"""
Canvas Engine MCP Server

Provides MCP tools for AI agents to build and edit canvases.
Every tool forwards to the backend's POST /mcp/tools/call, so agents and the
REST API share one implementation, and open editors refresh over WebSocket.
"""

import os
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP

# Backend URL
API_BASE = os.environ.get("CANVAS_API_BASE", "http://127.0.0.1:8765").rstrip("/")

# Create MCP server
mcp = FastMCP("canvas-engine")


class BackendError(Exception):
    """The backend rejected the request or could not be reached."""


# --- HTTP Client Helper ---

def call_tool(name: str, arguments: dict) -> str:
    """Run a tool call on the backend and return its text content."""
    payload = {"name": name, "arguments": {k: v for k, v in arguments.items() if v is not None}}
    try:
        with httpx.Client(timeout=30.0) as client:
            response = client.post(f"{API_BASE}/mcp/tools/call", json=payload)
    except httpx.HTTPError as e:
        raise BackendError(f"Connection failed: {e}. Is the canvas backend running?") from e

    try:
        body = response.json()
    except ValueError:
        raise BackendError(f"API error ({response.status_code}): {response.text}") from None

    if response.status_code >= 400 and "content" not in body:
        raise BackendError(f"API error: {body.get('detail', 'Unknown error')}")

    text = "\n".join(part.get("text", "") for part in body.get("content", []))
    if body.get("isError"):
        raise BackendError(text)
    return text


# ============================================================================
# CANVAS TOOLS
# ============================================================================

@mcp.tool()
def canvas_create(name: str, type: str = "freeform") -> str:
    """
    Create a new design canvas.

    Args:
        name: Name of the canvas
        type: mindmap, workflow or freeform

    Returns the new canvas ID.
    """
    return call_tool("canvas_create", {"name": name, "type": type})


@mcp.tool()
def canvas_delete(canvas_id: str) -> str:
    """Delete an existing canvas."""
    return call_tool("canvas_delete", {"canvasId": canvas_id})


@mcp.tool()
def canvas_list() -> str:
    """List all canvases with their node and connection counts."""
    return call_tool("canvas_list", {})


@mcp.tool()
def canvas_get(canvas_id: str) -> str:
    """
    Get full details of a canvas.

    Lists every node (with its type and ID) and every connection, so you can
    reference IDs in follow-up calls.
    """
    return call_tool("canvas_get", {"canvasId": canvas_id})


# ============================================================================
# NODE & CONNECTION TOOLS
# ============================================================================

@mcp.tool()
def canvas_add_node(
    canvas_id: str,
    node_type: str,
    label: str,
    x: Optional[float] = None,
    y: Optional[float] = None,
) -> str:
    """
    Add a node to a canvas.

    Args:
        canvas_id: ID of the canvas
        node_type: idea, task, research, note, decision, source, process, analyze or output
        label: Text shown in the node (use \\n for extra lines)
        x: X position (auto-placed on a grid if omitted)
        y: Y position (auto-placed on a grid if omitted)
    """
    return call_tool("canvas_add_node", {
        "canvasId": canvas_id, "nodeType": node_type, "label": label, "x": x, "y": y,
    })


@mcp.tool()
def canvas_update_node(
    canvas_id: str,
    node_id: str,
    label: Optional[str] = None,
    x: Optional[float] = None,
    y: Optional[float] = None,
) -> str:
    """Update a node's label and/or position. Only provided fields change."""
    return call_tool("canvas_update_node", {
        "canvasId": canvas_id, "nodeId": node_id, "label": label, "x": x, "y": y,
    })


@mcp.tool()
def canvas_delete_node(canvas_id: str, node_id: str) -> str:
    """Delete a node and all of its connections."""
    return call_tool("canvas_delete_node", {"canvasId": canvas_id, "nodeId": node_id})


@mcp.tool()
def canvas_add_connection(
    canvas_id: str,
    from_node_id: str,
    to_node_id: str,
    label: Optional[str] = None,
    style: str = "arrow",
) -> str:
    """
    Connect two nodes.

    Args:
        canvas_id: ID of the canvas
        from_node_id: Source node ID
        to_node_id: Target node ID
        label: Optional text shown at the middle of the line
        style: solid, dashed or arrow
    """
    return call_tool("canvas_add_connection", {
        "canvasId": canvas_id, "fromNodeId": from_node_id, "toNodeId": to_node_id,
        "label": label, "style": style,
    })


@mcp.tool()
def canvas_delete_connection(canvas_id: str, connection_id: str) -> str:
    """Delete a single connection."""
    return call_tool("canvas_delete_connection", {"canvasId": canvas_id, "connectionId": connection_id})


# ============================================================================
# LAYOUT & EXPORT TOOLS
# ============================================================================

@mcp.tool()
def canvas_layout_auto(canvas_id: str, algorithm: str = "grid") -> str:
    """
    Rearrange all nodes.

    Args:
        canvas_id: ID of the canvas
        algorithm: horizontal, vertical, grid, radial or tree
    """
    return call_tool("canvas_layout_auto", {"canvasId": canvas_id, "algorithm": algorithm})


@mcp.tool()
def canvas_export_svg(canvas_id: str) -> str:
    """Export a canvas as an SVG document."""
    return call_tool("canvas_export_svg", {"canvasId": canvas_id})


@mcp.tool()
def canvas_export_json(canvas_id: str) -> str:
    """Export a canvas as JSON for transfer or backup."""
    return call_tool("canvas_export_json", {"canvasId": canvas_id})


@mcp.tool()
def canvas_import_json(json: str) -> str:
    """Import a canvas from exported JSON. The imported canvas gets a new ID."""
    return call_tool("canvas_import_json", {"json": json})


# ============================================================================
# GENERATOR TOOLS
# ============================================================================

@mcp.tool()
def mindmap_create(name: str, central_topic: str, branches: list[str]) -> str:
    """
    Create a complete mindmap in one call.

    Args:
        name: Name for the mindmap canvas
        central_topic: Topic in the middle
        branches: Topics arranged in a circle around it
    """
    return call_tool("mindmap_create", {"name": name, "centralTopic": central_topic, "branches": branches})


@mcp.tool()
def mindmap_add_branch(canvas_id: str, parent_node_id: str, branch_topics: list[str]) -> str:
    """Fan new branches out from an existing mindmap node."""
    return call_tool("mindmap_add_branch", {
        "canvasId": canvas_id, "parentNodeId": parent_node_id, "branchTopics": branch_topics,
    })


@mcp.tool()
def workflow_create(name: str, template: str, custom_steps: Optional[list[str]] = None) -> str:
    """
    Create a left-to-right workflow.

    Args:
        name: Name for the workflow canvas
        template: literature-review, competitive-analysis, user-research,
            data-analysis or custom
        custom_steps: Step titles, required when template is "custom"
    """
    return call_tool("workflow_create", {"name": name, "template": template, "customSteps": custom_steps})


# ============================================================================
# MAIN
# ============================================================================

def main():
    mcp.run()


if __name__ == "__main__":
    main()
