"""
Core data models for canvases.

These models define the canonical schema for canvas documents:
- Nodes with a closed kind, geometry, label and optional style overrides
- Connections between nodes (fromNodeId/toNodeId naming, as persisted)
- The document aggregate with its timestamps

Field Naming Convention:
- Python attributes are snake_case (`from_node_id`, `created_at`)
- JSON serialization outputs camelCase (`fromNodeId`, `createdAt`), which is
  the persisted document layout; both spellings are accepted on input
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field


class NodeKind(str, Enum):
    """Semantic kinds for nodes. Each kind has a fixed color scheme."""
    IDEA = "idea"
    TASK = "task"
    RESEARCH = "research"
    NOTE = "note"
    DECISION = "decision"
    SOURCE = "source"
    PROCESS = "process"
    ANALYZE = "analyze"
    OUTPUT = "output"


class CanvasKind(str, Enum):
    """What a canvas is used for."""
    MINDMAP = "mindmap"
    WORKFLOW = "workflow"
    FREEFORM = "freeform"


class ConnectionStyle(str, Enum):
    """Line styles for connections."""
    SOLID = "solid"
    DASHED = "dashed"
    ARROW = "arrow"


@dataclass(frozen=True)
class NodeStyle:
    """Color triple used to draw a node kind."""
    bg: str
    border: str
    text: str


NODE_STYLES: dict[NodeKind, NodeStyle] = {
    NodeKind.IDEA: NodeStyle("#fef3c7", "#f59e0b", "#92400e"),
    NodeKind.TASK: NodeStyle("#dbeafe", "#3b82f6", "#1e40af"),
    NodeKind.RESEARCH: NodeStyle("#ede9fe", "#8b5cf6", "#5b21b6"),
    NodeKind.NOTE: NodeStyle("#dcfce7", "#22c55e", "#166534"),
    NodeKind.DECISION: NodeStyle("#fce7f3", "#ec4899", "#9d174d"),
    NodeKind.SOURCE: NodeStyle("#e0f2fe", "#0ea5e9", "#0369a1"),
    NodeKind.PROCESS: NodeStyle("#f3e8ff", "#a855f7", "#7e22ce"),
    NodeKind.ANALYZE: NodeStyle("#fef9c3", "#eab308", "#a16207"),
    NodeKind.OUTPUT: NodeStyle("#d1fae5", "#10b981", "#065f46"),
}


def style_for(kind: NodeKind) -> NodeStyle:
    """Look up the color scheme for a node kind."""
    return NODE_STYLES[kind]


# Default node geometry when a caller does not give one
DEFAULT_NODE_WIDTH = 160
DEFAULT_NODE_HEIGHT = 80
DEFAULT_FONT_SIZE = 12
DEFAULT_FONT_FAMILY = "system-ui"


def generate_id() -> str:
    """Generate a unique node, connection or canvas ID."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CanvasNode(BaseModel):
    """A node on the canvas."""
    # Geometry and style numbers must be finite
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    id: str = Field(default_factory=generate_id)
    type: NodeKind = NodeKind.IDEA
    label: str = ""
    x: float = 100
    y: float = 100
    width: float = Field(default=DEFAULT_NODE_WIDTH, gt=0)
    height: float = Field(default=DEFAULT_NODE_HEIGHT, gt=0)
    # Style overrides (None = use the kind's defaults)
    font_family: Optional[str] = Field(default=None, alias="fontFamily")
    font_size: Optional[float] = Field(default=None, alias="fontSize", gt=0)
    text_color: Optional[str] = Field(default=None, alias="textColor")
    bg_color: Optional[str] = Field(default=None, alias="bgColor")
    border_color: Optional[str] = Field(default=None, alias="borderColor")
    border_width: Optional[float] = Field(default=None, alias="borderWidth", ge=0)
    # Image reference, either a URL or inline data
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    image_data: Optional[str] = Field(default=None, alias="imageData")
    metadata: Optional[dict[str, Any]] = None

    def center(self) -> tuple[float, float]:
        """Get the center point of the node."""
        return (self.x + self.width / 2, self.y + self.height / 2)

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def contains(self, x: float, y: float) -> bool:
        """Inclusive axis-aligned containment test in document space."""
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height

    @property
    def has_image(self) -> bool:
        return bool(self.image_url or self.image_data)

    def resolved_style(self) -> NodeStyle:
        """Kind colors with any per-node overrides applied."""
        base = style_for(self.type)
        return NodeStyle(
            bg=self.bg_color or base.bg,
            border=self.border_color or base.border,
            text=self.text_color or base.text,
        )


class CanvasConnection(BaseModel):
    """A connection between two nodes."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    from_node_id: str = Field(alias="fromNodeId")
    to_node_id: str = Field(alias="toNodeId")
    label: Optional[str] = None
    style: ConnectionStyle = ConnectionStyle.ARROW
    color: Optional[str] = None

    def touches(self, node_id: str) -> bool:
        """True if the node is either endpoint."""
        return self.from_node_id == node_id or self.to_node_id == node_id


class CanvasData(BaseModel):
    """
    The complete canvas document.
    This is what gets saved to/loaded from the persistence collaborator.

    Nodes are kept in insertion order, which is also the z-order: later nodes
    draw on top and are hit-tested first.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    name: str = "Untitled Canvas"
    type: CanvasKind = CanvasKind.FREEFORM
    nodes: list[CanvasNode] = Field(default_factory=list)
    connections: list[CanvasConnection] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")

    def to_json_dict(self) -> dict:
        """Convert to a JSON-serializable dict with the persisted field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_json_dict(cls, data: dict) -> "CanvasData":
        """Create a CanvasData from a JSON dict (raises pydantic.ValidationError)."""
        return cls.model_validate(data)

    def touch(self):
        """Refresh the modification timestamp."""
        self.updated_at = utc_now()

    def get_node(self, node_id: str) -> Optional[CanvasNode]:
        """Get a node by ID (O(n) - use CanvasGraph for indexed access)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_connection(self, connection_id: str) -> Optional[CanvasConnection]:
        """Get a connection by ID (O(n) - use CanvasGraph for indexed access)."""
        for conn in self.connections:
            if conn.id == connection_id:
                return conn
        return None
