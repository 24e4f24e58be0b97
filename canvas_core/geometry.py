"""
Geometry & transform - Mapping between document space and view space.

Document space is where node x/y/width/height live. View space is the pixel
space of the rendering surface. The mapping centers the content bounding box
in the viewport, then applies the user's pan (pixels) and zoom (scale):

    base   = (viewport - content * zoom) / 2 - content_min * zoom
    screen = base + pan + doc * zoom

`Transform.to_canvas` is the exact inverse and is what hit-testing uses.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CanvasNode


MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
ZOOM_IN_STEP = 1.1
ZOOM_OUT_STEP = 0.9

HANDLE_HIT_SIZE = 8      # Screen pixels, converted to document units per zoom
MIN_NODE_SIZE = 40       # Document units
EMPTY_CONTENT_SIZE = 100


def clamp_zoom(value: float) -> float:
    return min(max(value, MIN_ZOOM), MAX_ZOOM)


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned box in document space."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


def content_bounds(nodes: Sequence["CanvasNode"], padding: float = 0) -> Bounds:
    """Min/max over all node extents, grown by `padding` on every side.

    An empty document yields a 100x100 box at the origin.
    """
    if not nodes:
        return Bounds(-padding, -padding, EMPTY_CONTENT_SIZE + padding, EMPTY_CONTENT_SIZE + padding)
    return Bounds(
        min(n.x for n in nodes) - padding,
        min(n.y for n in nodes) - padding,
        max(n.x + n.width for n in nodes) + padding,
        max(n.y + n.height for n in nodes) + padding,
    )


@dataclass(frozen=True)
class Transform:
    """Resolved document -> screen mapping for one frame."""
    offset_x: float
    offset_y: float
    zoom: float

    def to_screen(self, x: float, y: float) -> tuple[float, float]:
        return (self.offset_x + x * self.zoom, self.offset_y + y * self.zoom)

    def to_canvas(self, sx: float, sy: float) -> tuple[float, float]:
        return ((sx - self.offset_x) / self.zoom, (sy - self.offset_y) / self.zoom)

    def scale(self, length: float) -> float:
        return length * self.zoom


@dataclass
class Viewport:
    """Size of the drawing surface plus the user's zoom and pan."""
    width: float
    height: float
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def __post_init__(self):
        self.zoom = clamp_zoom(self.zoom)

    def set_zoom(self, value: float) -> float:
        self.zoom = clamp_zoom(value)
        return self.zoom

    def zoom_by(self, factor: float) -> float:
        """Multiply zoom by a factor, clamped to [0.1, 5]. Zoom is about the viewport."""
        return self.set_zoom(self.zoom * factor)

    def set_pan(self, x: float, y: float):
        self.pan_x = x
        self.pan_y = y

    def transform(self, nodes: Sequence["CanvasNode"]) -> Transform:
        """Build the transform that centers `nodes` in this viewport."""
        bounds = content_bounds(nodes)
        base_x = (self.width - bounds.width * self.zoom) / 2 - bounds.min_x * self.zoom
        base_y = (self.height - bounds.height * self.zoom) / 2 - bounds.min_y * self.zoom
        return Transform(base_x + self.pan_x, base_y + self.pan_y, self.zoom)

    def canvas_to_screen(self, nodes: Sequence["CanvasNode"], x: float, y: float) -> tuple[float, float]:
        return self.transform(nodes).to_screen(x, y)

    def screen_to_canvas(self, nodes: Sequence["CanvasNode"], sx: float, sy: float) -> tuple[float, float]:
        return self.transform(nodes).to_canvas(sx, sy)


# --- Resize handles ---

class ResizeHandle(str, Enum):
    """The eight resize handles: corners and edge midpoints."""
    NW = "nw"
    N = "n"
    NE = "ne"
    E = "e"
    SE = "se"
    S = "s"
    SW = "sw"
    W = "w"

    @property
    def moves_left(self) -> bool:
        return "w" in self.value

    @property
    def moves_right(self) -> bool:
        return "e" in self.value

    @property
    def moves_top(self) -> bool:
        return "n" in self.value

    @property
    def moves_bottom(self) -> bool:
        return "s" in self.value


def handle_positions(node: "CanvasNode") -> list[tuple[ResizeHandle, float, float]]:
    """Document-space centers of a node's handles, clockwise from top-left."""
    left, top, right, bottom = node.bounds()
    mid_x = node.x + node.width / 2
    mid_y = node.y + node.height / 2
    return [
        (ResizeHandle.NW, left, top),
        (ResizeHandle.N, mid_x, top),
        (ResizeHandle.NE, right, top),
        (ResizeHandle.E, right, mid_y),
        (ResizeHandle.SE, right, bottom),
        (ResizeHandle.S, mid_x, bottom),
        (ResizeHandle.SW, left, bottom),
        (ResizeHandle.W, left, mid_y),
    ]


def handle_at(node: "CanvasNode", x: float, y: float, zoom: float) -> Optional[ResizeHandle]:
    """Handle under a document-space point.

    The hit size is divided by zoom so handles stay the same size on screen.
    """
    reach = HANDLE_HIT_SIZE / zoom
    for handle, hx, hy in handle_positions(node):
        if abs(x - hx) <= reach and abs(y - hy) <= reach:
            return handle
    return None


def node_at(nodes: Sequence["CanvasNode"], x: float, y: float) -> Optional["CanvasNode"]:
    """Topmost node containing a document-space point (reverse z-order)."""
    for node in reversed(nodes):
        if node.contains(x, y):
            return node
    return None


@dataclass
class HitResult:
    """What a pointer landed on."""
    node: Optional["CanvasNode"] = None
    handle: Optional[ResizeHandle] = None

    @property
    def is_empty(self) -> bool:
        return self.node is None


def hit_test(
    nodes: Sequence["CanvasNode"],
    x: float,
    y: float,
    zoom: float,
    selected_ids: Sequence[str] = (),
) -> HitResult:
    """
    Resolve a document-space point.

    When exactly one node is selected its resize handles win over everything
    else; otherwise the topmost containing node is returned.
    """
    if len(selected_ids) == 1:
        selected_id = next(iter(selected_ids))
        for node in nodes:
            if node.id == selected_id:
                handle = handle_at(node, x, y, zoom)
                if handle is not None:
                    return HitResult(node=node, handle=handle)
                break
    return HitResult(node=node_at(nodes, x, y))


@dataclass
class Rect:
    x: float
    y: float
    width: float
    height: float


def apply_resize(
    rect: Rect,
    handle: ResizeHandle,
    dx: float,
    dy: float,
    min_size: float = MIN_NODE_SIZE,
) -> Rect:
    """
    Drag a handle by a document-space delta.

    Corner handles change two dimensions, edge handles one. Handles on the
    left/top edge also move the origin. When a dimension hits `min_size` the
    origin is pinned so the opposite edge stays put.
    """
    x, y, width, height = rect.x, rect.y, rect.width, rect.height

    if handle.moves_left:
        x += dx
        width -= dx
    elif handle.moves_right:
        width += dx

    if handle.moves_top:
        y += dy
        height -= dy
    elif handle.moves_bottom:
        height += dy

    if width < min_size:
        width = min_size
        if handle.moves_left:
            x = rect.x + rect.width - min_size
    if height < min_size:
        height = min_size
        if handle.moves_top:
            y = rect.y + rect.height - min_size

    return Rect(x, y, width, height)
