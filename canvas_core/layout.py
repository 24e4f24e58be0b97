"""
Layout algorithms for canvas nodes.

Provides the layout strategies that can be applied to a canvas:
- Horizontal: One row, left to right in list order
- Vertical: One column, top to bottom in list order
- Grid: ceil(sqrt(n)) columns
- Radial: First node in the middle, the rest on a circle around it
- Tree: Columns by breadth-first depth from the root nodes

All layout functions are pure: they return repositioned copies of the nodes
in the same order and never modify their input.
"""

import math
from collections import deque
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CanvasNode, CanvasConnection


class LayoutAlgorithm(str, Enum):
    """Available layout strategies."""
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    GRID = "grid"
    RADIAL = "radial"
    TREE = "tree"


# Default layout parameters
DEFAULT_START_X = 100
DEFAULT_START_Y = 100
DEFAULT_GAP_X = 220
DEFAULT_GAP_Y = 120

RADIAL_CENTER = (400.0, 300.0)
RADIAL_RADIUS = 200


def _moved(node: "CanvasNode", x: float, y: float) -> "CanvasNode":
    return node.model_copy(update={"x": x, "y": y})


def horizontal_layout(
    nodes: list["CanvasNode"],
    gap_x: float = DEFAULT_GAP_X,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
) -> list["CanvasNode"]:
    """Place nodes left to right on a single row."""
    return [_moved(node, start_x + i * gap_x, start_y) for i, node in enumerate(nodes)]


def vertical_layout(
    nodes: list["CanvasNode"],
    gap_y: float = DEFAULT_GAP_Y,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
) -> list["CanvasNode"]:
    """Place nodes top to bottom in a single column."""
    return [_moved(node, start_x, start_y + i * gap_y) for i, node in enumerate(nodes)]


def grid_layout(
    nodes: list["CanvasNode"],
    gap_x: float = DEFAULT_GAP_X,
    gap_y: float = DEFAULT_GAP_Y,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
    columns: int | None = None
) -> list["CanvasNode"]:
    """
    Arrange nodes in a grid pattern.

    Args:
        nodes: List of nodes to arrange
        gap_x: Horizontal distance between node origins
        gap_y: Vertical distance between node origins
        start_x: X coordinate of first node
        start_y: Y coordinate of first node
        columns: Number of columns (ceil(sqrt(n)) if None)

    Returns:
        Repositioned copies of the nodes
    """
    if not nodes:
        return []

    if columns is None:
        columns = math.ceil(math.sqrt(len(nodes)))

    return [
        _moved(node, start_x + (i % columns) * gap_x, start_y + (i // columns) * gap_y)
        for i, node in enumerate(nodes)
    ]


def radial_position(
    center: tuple[float, float],
    radius: float,
    angle: float,
    width: float,
    height: float,
) -> tuple[float, float]:
    """Top-left corner that puts a width x height box's center on the circle."""
    cx, cy = center
    return (
        cx + radius * math.cos(angle) - width / 2,
        cy + radius * math.sin(angle) - height / 2,
    )


def radial_angle(index: int, count: int) -> float:
    """Angle of slot `index` out of `count`, starting due north, clockwise on screen."""
    return 2 * math.pi * index / count - math.pi / 2


def radial_layout(
    nodes: list["CanvasNode"],
    center: tuple[float, float] = RADIAL_CENTER,
    radius: float = RADIAL_RADIUS,
) -> list["CanvasNode"]:
    """
    Put the first node in the middle and spread the rest evenly around it.

    With zero nodes there is nothing to place; a single node is only centered.
    """
    if not nodes:
        return []

    first = nodes[0]
    cx, cy = center
    result = [_moved(first, cx - first.width / 2, cy - first.height / 2)]

    ring = nodes[1:]
    for idx, node in enumerate(ring):
        x, y = radial_position(center, radius, radial_angle(idx, len(ring)), node.width, node.height)
        result.append(_moved(node, x, y))
    return result


def tree_depths(
    nodes: list["CanvasNode"],
    connections: list["CanvasConnection"],
) -> dict[int, list[str]]:
    """
    Group node ids by breadth-first depth from the roots.

    Roots are nodes with no incoming connection; if every node has one, the
    first node is the root. A node is visited once, so it keeps the depth at
    which BFS first reached it. Nodes unreachable from any root join depth 0
    after the roots.
    """
    if not nodes:
        return {}

    # Build adjacency list (parent -> children), ignoring dangling connections
    children: dict[str, list[str]] = {n.id: [] for n in nodes}
    has_parent: set[str] = set()
    for conn in connections:
        if conn.from_node_id in children and conn.to_node_id in children:
            children[conn.from_node_id].append(conn.to_node_id)
            has_parent.add(conn.to_node_id)

    roots = [n.id for n in nodes if n.id not in has_parent]
    if not roots:
        roots = [nodes[0].id]

    by_depth: dict[int, list[str]] = {}
    visited: set[str] = set()
    queue = deque((root, 0) for root in roots)

    while queue:
        node_id, depth = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)
        by_depth.setdefault(depth, []).append(node_id)
        for child in children[node_id]:
            if child not in visited:
                queue.append((child, depth + 1))

    # Cycles with no way in from a root
    for node in nodes:
        if node.id not in visited:
            by_depth.setdefault(0, []).append(node.id)

    return by_depth


def tree_layout(
    nodes: list["CanvasNode"],
    connections: list["CanvasConnection"],
    gap_x: float = DEFAULT_GAP_X,
    gap_y: float = DEFAULT_GAP_Y,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
) -> list["CanvasNode"]:
    """
    Arrange nodes left to right by depth, one column per level.

    Args:
        nodes: List of nodes to arrange
        connections: Connections defining the hierarchy
        gap_x: Distance between depth columns
        gap_y: Distance between nodes stacked in a column
        start_x: X coordinate of the root column
        start_y: Y coordinate of the first node in each column

    Returns:
        Repositioned copies of the nodes, in input order
    """
    positions: dict[str, tuple[float, float]] = {}
    for depth, node_ids in tree_depths(nodes, connections).items():
        for idx, node_id in enumerate(node_ids):
            positions[node_id] = (start_x + depth * gap_x, start_y + idx * gap_y)

    return [_moved(node, *positions[node.id]) for node in nodes]


def apply_layout(
    nodes: list["CanvasNode"],
    connections: list["CanvasConnection"],
    algorithm: LayoutAlgorithm | str,
) -> list["CanvasNode"]:
    """
    Run a layout algorithm by name.

    Raises:
        ValueError: If the algorithm is not one of LayoutAlgorithm
    """
    algorithm = LayoutAlgorithm(algorithm)

    if algorithm is LayoutAlgorithm.HORIZONTAL:
        return horizontal_layout(nodes)
    elif algorithm is LayoutAlgorithm.VERTICAL:
        return vertical_layout(nodes)
    elif algorithm is LayoutAlgorithm.GRID:
        return grid_layout(nodes)
    elif algorithm is LayoutAlgorithm.RADIAL:
        return radial_layout(nodes)
    elif algorithm is LayoutAlgorithm.TREE:
        return tree_layout(nodes, connections)

    raise ValueError(f"Unhandled layout algorithm: {algorithm}")
