"""
Canvas Engine Core - Graph model, layout, geometry, rendering and interaction.

This package holds everything that works on a single canvas document in
memory. The backend service and the MCP server build on top of it.
"""

from .models import (
    # Enums
    NodeKind,
    CanvasKind,
    ConnectionStyle,
    # Core models
    NodeStyle,
    CanvasNode,
    CanvasConnection,
    CanvasData,
    style_for,
)

from .results import ErrorKind, OperationResult
from .graph import CanvasGraph
from .validation import validate_canvas, validation_summary, ValidationIssue, IssueSeverity
from .layout import (
    LayoutAlgorithm,
    apply_layout,
    horizontal_layout,
    vertical_layout,
    grid_layout,
    radial_layout,
    tree_layout,
)
from .generators import build_mindmap, add_mindmap_branches, build_workflow, resolve_workflow_steps
from .geometry import Viewport, Transform, ResizeHandle, hit_test, apply_resize
from .svg import export_svg
from .raster import RasterRenderer
from .interaction import InteractionController, ViewSession, Mode

__all__ = [
    # Enums
    "NodeKind",
    "CanvasKind",
    "ConnectionStyle",
    # Models
    "NodeStyle",
    "CanvasNode",
    "CanvasConnection",
    "CanvasData",
    "style_for",
    # Results
    "ErrorKind",
    "OperationResult",
    # Graph
    "CanvasGraph",
    # Validation
    "validate_canvas",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Layout
    "LayoutAlgorithm",
    "apply_layout",
    "horizontal_layout",
    "vertical_layout",
    "grid_layout",
    "radial_layout",
    "tree_layout",
    # Generators
    "build_mindmap",
    "add_mindmap_branches",
    "build_workflow",
    "resolve_workflow_steps",
    # Geometry
    "Viewport",
    "Transform",
    "ResizeHandle",
    "hit_test",
    "apply_resize",
    # Rendering
    "export_svg",
    "RasterRenderer",
    # Interaction
    "InteractionController",
    "ViewSession",
    "Mode",
]
