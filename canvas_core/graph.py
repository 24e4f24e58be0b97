"""
Canvas Graph - Indexed aggregate over a canvas document.

This module implements the graph-model operations:
- O(1) node/connection lookups via index dictionaries
- Cascade delete (removing a node removes every connection touching it)
- Reference checks on connection creation
- Partial (merge) node updates

The CanvasData document stays the single source of truth; the indexes are
rebuilt from it on construction and kept in sync by every mutation.
"""

from typing import Optional, Iterable

from pydantic import ValidationError

from .models import (
    CanvasData, CanvasNode, CanvasConnection, NodeKind, ConnectionStyle,
    DEFAULT_NODE_WIDTH, DEFAULT_NODE_HEIGHT,
)
from .results import ErrorKind, OperationResult


# Auto-placement grid for nodes added without coordinates
AUTO_COLUMNS = 4
AUTO_SPACING_X = 200
AUTO_SPACING_Y = 120
AUTO_START_X = 100
AUTO_START_Y = 100

# Fields a partial node update may touch
UPDATABLE_NODE_FIELDS = {
    "type", "label", "x", "y", "width", "height",
    "font_family", "font_size", "text_color", "bg_color", "border_color",
    "border_width", "image_url", "image_data", "metadata",
}


def auto_position(count: int) -> tuple[float, float]:
    """Grid slot for the node that would be added after `count` nodes."""
    x = (count % AUTO_COLUMNS) * AUTO_SPACING_X + AUTO_START_X
    y = (count // AUTO_COLUMNS) * AUTO_SPACING_Y + AUTO_START_Y
    return x, y


class CanvasGraph:
    """
    Owns one canvas document and addresses its nodes/connections by id.

    All mutators return an OperationResult; the result's `data` is the node
    or connection that was created/changed/removed.
    """

    def __init__(self, canvas: CanvasData):
        self._canvas = canvas
        self._node_index: dict[str, CanvasNode] = {}
        self._connection_index: dict[str, CanvasConnection] = {}
        self._connections_by_node: dict[str, set[str]] = {}
        self._rebuild_indexes()

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild all indexes from the current document state."""
        self._node_index.clear()
        self._connection_index.clear()
        self._connections_by_node.clear()

        for node in self._canvas.nodes:
            self._node_index[node.id] = node
        for conn in self._canvas.connections:
            self._index_connection(conn)

    def _index_connection(self, conn: CanvasConnection):
        self._connection_index[conn.id] = conn
        self._connections_by_node.setdefault(conn.from_node_id, set()).add(conn.id)
        self._connections_by_node.setdefault(conn.to_node_id, set()).add(conn.id)

    def _unindex_connection(self, conn: CanvasConnection):
        self._connection_index.pop(conn.id, None)
        for endpoint in (conn.from_node_id, conn.to_node_id):
            if endpoint in self._connections_by_node:
                self._connections_by_node[endpoint].discard(conn.id)

    # --- Properties ---

    @property
    def canvas(self) -> CanvasData:
        return self._canvas

    @property
    def nodes(self) -> list[CanvasNode]:
        return self._canvas.nodes

    @property
    def connections(self) -> list[CanvasConnection]:
        return self._canvas.connections

    def get_node(self, node_id: str) -> Optional[CanvasNode]:
        """Get a node by ID (O(1) lookup)."""
        return self._node_index.get(node_id)

    def get_connection(self, connection_id: str) -> Optional[CanvasConnection]:
        """Get a connection by ID (O(1) lookup)."""
        return self._connection_index.get(connection_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._node_index

    def connections_for_node(self, node_id: str) -> list[CanvasConnection]:
        """All connections where the node is either endpoint, in document order."""
        ids = self._connections_by_node.get(node_id, set())
        return [c for c in self._canvas.connections if c.id in ids]

    def outgoing(self, node_id: str) -> list[CanvasConnection]:
        return [c for c in self.connections_for_node(node_id) if c.from_node_id == node_id]

    # --- Node Operations ---

    def add_node(
        self,
        kind: NodeKind = NodeKind.IDEA,
        label: str = "",
        x: Optional[float] = None,
        y: Optional[float] = None,
        width: float = DEFAULT_NODE_WIDTH,
        height: float = DEFAULT_NODE_HEIGHT,
        **style,
    ) -> OperationResult:
        """
        Add a node with a fresh id.

        If x or y is omitted the node is placed in a 4-column grid slot
        derived from the current node count, so callers that never give
        coordinates still get non-overlapping nodes.
        """
        auto_x, auto_y = auto_position(len(self._canvas.nodes))
        node = CanvasNode(
            type=kind,
            label=label,
            x=auto_x if x is None else x,
            y=auto_y if y is None else y,
            width=width,
            height=height,
            **style,
        )
        return self.insert_node(node)

    def insert_node(self, node: CanvasNode) -> OperationResult:
        """Append an already-built node (generators use this)."""
        if node.id in self._node_index:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Duplicate node id: {node.id}")
        self._canvas.nodes.append(node)
        self._node_index[node.id] = node
        return OperationResult.ok(f'Added {node.type.value} node "{node.label}"', data=node)

    def update_node(self, node_id: str, **fields) -> OperationResult:
        """Update only the provided (non-None) fields of a node."""
        node = self._node_index.get(node_id)
        if node is None:
            return OperationResult.not_found("Node", node_id)

        updates = {k: v for k, v in fields.items() if v is not None}
        unknown = set(updates) - UPDATABLE_NODE_FIELDS
        if unknown:
            return OperationResult.fail(
                ErrorKind.INVALID_INPUT, f"Unknown node fields: {', '.join(sorted(unknown))}"
            )
        # Validate the merged node so a saved document always loads again
        try:
            merged = CanvasNode.model_validate({**node.model_dump(), **updates})
        except ValidationError as e:
            return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Invalid node update: {e}")

        for key in updates:
            setattr(node, key, getattr(merged, key))
        return OperationResult.ok(f'Updated node "{node.label}"', data=node)

    def move_nodes(self, node_ids: Iterable[str], dx: float, dy: float) -> list[CanvasNode]:
        """Translate nodes by a document-space delta; unknown ids are ignored."""
        moved = []
        for node_id in node_ids:
            node = self._node_index.get(node_id)
            if node is None:
                continue
            node.x += dx
            node.y += dy
            moved.append(node)
        return moved

    def delete_node(self, node_id: str) -> OperationResult:
        """Delete a node and every connection that references it."""
        node = self._node_index.get(node_id)
        if node is None:
            return OperationResult.not_found("Node", node_id)

        self._canvas.nodes = [n for n in self._canvas.nodes if n.id != node_id]
        self._node_index.pop(node_id, None)

        connected_ids = self._connections_by_node.pop(node_id, set())
        if connected_ids:
            for conn_id in connected_ids:
                conn = self._connection_index.get(conn_id)
                if conn:
                    self._unindex_connection(conn)
            self._canvas.connections = [
                c for c in self._canvas.connections if c.id not in connected_ids
            ]

        return OperationResult.ok(f'Deleted node "{node.label}" and its connections', data=node)

    def delete_nodes(self, node_ids: Iterable[str]) -> list[CanvasNode]:
        """Cascade-delete several nodes; returns the nodes that existed."""
        removed = []
        for node_id in list(node_ids):
            result = self.delete_node(node_id)
            if result:
                removed.append(result.data)
        return removed

    # --- Connection Operations ---

    def add_connection(
        self,
        from_node_id: str,
        to_node_id: str,
        label: Optional[str] = None,
        style: ConnectionStyle = ConnectionStyle.ARROW,
        color: Optional[str] = None,
    ) -> OperationResult:
        """Connect two existing nodes. Never creates a dangling reference."""
        missing = [nid for nid in (from_node_id, to_node_id) if nid not in self._node_index]
        if missing:
            return OperationResult.fail(
                ErrorKind.INVALID_REFERENCE,
                f"Connection endpoint not found: {', '.join(missing)}",
            )

        conn = CanvasConnection(
            from_node_id=from_node_id,
            to_node_id=to_node_id,
            label=label or None,
            style=ConnectionStyle(style),
            color=color,
        )
        self._canvas.connections.append(conn)
        self._index_connection(conn)

        source = self._node_index[from_node_id]
        target = self._node_index[to_node_id]
        message = f'Connected "{source.label}" -> "{target.label}"'
        if label:
            message += f" ({label})"
        return OperationResult.ok(message, data=conn)

    def delete_connection(self, connection_id: str) -> OperationResult:
        """Delete a single connection."""
        conn = self._connection_index.get(connection_id)
        if conn is None:
            return OperationResult.not_found("Connection", connection_id)

        self._canvas.connections = [c for c in self._canvas.connections if c.id != connection_id]
        self._unindex_connection(conn)
        return OperationResult.ok("Connection deleted", data=conn)

    # --- Bulk replacement ---

    def replace_nodes(self, nodes: list[CanvasNode]):
        """Swap in a repositioned node list (layouts return new node copies)."""
        self._canvas.nodes = nodes
        self._rebuild_indexes()
