"""
Interaction controller - Turn pointer and keyboard events into graph edits.

The controller is a small state machine:

    idle/connecting --down on empty--> panning    --up--> idle/connecting
    idle            --down on node---> moving     --up--> idle
    idle            --down on handle-> resizing   --up--> idle

Connect mode is a sticky flag layered over it: while on, clicks on nodes pick
a pending source and then a target instead of starting a move.

All view state (zoom/pan, selection, hover, edit buffer) lives on a
ViewSession owned by the controller and handed to the renderer by reference.
Pointer coordinates are view-space pixels.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .geometry import (
    Rect, ResizeHandle, Viewport, ZOOM_IN_STEP, ZOOM_OUT_STEP,
    apply_resize, hit_test, node_at,
)
from .graph import CanvasGraph
from .models import ConnectionStyle
from .results import OperationResult


class Mode(str, Enum):
    IDLE = "idle"
    PANNING = "panning"
    MOVING = "moving"
    RESIZING = "resizing"
    CONNECTING = "connecting"


DRAG_MODES = (Mode.PANNING, Mode.MOVING, Mode.RESIZING)
DELETE_KEYS = ("Delete", "Backspace")


@dataclass
class ViewSession:
    """Per-view editing state. One session per open canvas view."""
    viewport: Viewport
    selected_node_ids: set[str] = field(default_factory=set)
    selected_connection_ids: set[str] = field(default_factory=set)
    hovered_node_id: Optional[str] = None
    mode: Mode = Mode.IDLE
    connect_mode: bool = False
    pending_source_id: Optional[str] = None
    # Label editing
    editing_node_id: Optional[str] = None
    edit_value: str = ""
    # Drag bookkeeping (view-space pixels)
    pan_anchor: tuple[float, float] = (0.0, 0.0)
    last_pointer: tuple[float, float] = (0.0, 0.0)
    resize_node_id: Optional[str] = None
    active_handle: Optional[ResizeHandle] = None
    # Unsaved in-memory changes
    dirty: bool = False

    @property
    def is_editing(self) -> bool:
        return self.editing_node_id is not None

    @property
    def resting_mode(self) -> Mode:
        return Mode.CONNECTING if self.connect_mode else Mode.IDLE

    def clear_selection(self):
        self.selected_node_ids.clear()
        self.selected_connection_ids.clear()


class InteractionController:
    """
    Applies user gestures to a CanvasGraph.

    Mutations happen in memory only and mark the session dirty; persisting
    the document is the caller's job. Every state change fires the redraw
    callbacks synchronously with the session.
    """

    def __init__(self, graph: CanvasGraph, viewport: Viewport, session: Optional[ViewSession] = None):
        self.graph = graph
        self.session = session or ViewSession(viewport=viewport)
        self.last_result: Optional[OperationResult] = None
        self._redraw_callbacks: list[Callable[[ViewSession], None]] = []

    # --- Redraw plumbing ---

    def on_redraw(self, callback: Callable[[ViewSession], None]):
        """Register a callback invoked after every visible change."""
        self._redraw_callbacks.append(callback)

    def _redraw(self):
        for callback in self._redraw_callbacks:
            callback(self.session)

    def _mutated(self, result: Optional[OperationResult] = None):
        if result is not None:
            self.last_result = result
            if not result:
                return
        self.session.dirty = True
        self.graph.canvas.touch()

    def mark_saved(self):
        self.session.dirty = False

    # --- Coordinates ---

    def to_canvas(self, x: float, y: float) -> tuple[float, float]:
        return self.session.viewport.screen_to_canvas(self.graph.nodes, x, y)

    @property
    def zoom(self) -> float:
        return self.session.viewport.zoom

    # --- Modes ---

    def set_connect_mode(self, enabled: bool):
        s = self.session
        s.connect_mode = enabled
        s.pending_source_id = None
        if s.mode not in DRAG_MODES:
            s.mode = s.resting_mode
        self._redraw()

    def select_connection(self, connection_id: str, additive: bool = False):
        if self.graph.get_connection(connection_id) is None:
            return
        s = self.session
        if not additive:
            s.clear_selection()
        s.selected_connection_ids.add(connection_id)
        self._redraw()

    def select_all(self):
        self.session.selected_node_ids = {n.id for n in self.graph.nodes}
        self._redraw()

    # --- Pointer events ---

    def pointer_down(self, x: float, y: float, shift: bool = False):
        s = self.session
        if s.is_editing:
            self.commit_edit()

        cx, cy = self.to_canvas(x, y)
        selected = () if s.connect_mode else tuple(s.selected_node_ids)
        hit = hit_test(self.graph.nodes, cx, cy, self.zoom, selected)

        if s.connect_mode:
            if hit.is_empty:
                s.connect_mode = False
                s.pending_source_id = None
                self._start_pan(x, y)
            else:
                self._connect_click(hit.node.id)
            self._redraw()
            return

        if hit.handle is not None:
            s.mode = Mode.RESIZING
            s.resize_node_id = hit.node.id
            s.active_handle = hit.handle
            s.last_pointer = (x, y)
        elif hit.node is not None:
            node_id = hit.node.id
            if shift:
                if node_id in s.selected_node_ids:
                    s.selected_node_ids.discard(node_id)
                else:
                    s.selected_node_ids.add(node_id)
            elif node_id not in s.selected_node_ids:
                s.selected_node_ids = {node_id}
            s.selected_connection_ids.clear()
            s.mode = Mode.MOVING
            s.last_pointer = (x, y)
        else:
            if not shift:
                s.clear_selection()
            self._start_pan(x, y)

        self._redraw()

    def _start_pan(self, x: float, y: float):
        s = self.session
        s.mode = Mode.PANNING
        s.pan_anchor = (x - s.viewport.pan_x, y - s.viewport.pan_y)

    def _connect_click(self, node_id: str):
        s = self.session
        if s.pending_source_id is None:
            s.pending_source_id = node_id
            s.selected_node_ids = {node_id}
        elif s.pending_source_id == node_id:
            s.pending_source_id = None
        else:
            result = self.graph.add_connection(s.pending_source_id, node_id, style=ConnectionStyle.ARROW)
            s.pending_source_id = None
            s.selected_node_ids = {node_id}
            self._mutated(result)

    def pointer_move(self, x: float, y: float):
        s = self.session

        if s.mode == Mode.PANNING:
            ax, ay = s.pan_anchor
            s.viewport.set_pan(x - ax, y - ay)
            self._redraw()

        elif s.mode == Mode.MOVING:
            lx, ly = s.last_pointer
            dx, dy = (x - lx) / self.zoom, (y - ly) / self.zoom
            s.last_pointer = (x, y)
            if self.graph.move_nodes(s.selected_node_ids, dx, dy):
                self._mutated()
            self._redraw()

        elif s.mode == Mode.RESIZING:
            lx, ly = s.last_pointer
            dx, dy = (x - lx) / self.zoom, (y - ly) / self.zoom
            s.last_pointer = (x, y)
            node = self.graph.get_node(s.resize_node_id)
            if node is not None:
                rect = apply_resize(Rect(node.x, node.y, node.width, node.height), s.active_handle, dx, dy)
                self._mutated(self.graph.update_node(
                    node.id, x=rect.x, y=rect.y, width=rect.width, height=rect.height
                ))
            self._redraw()

        else:
            cx, cy = self.to_canvas(x, y)
            hovered = node_at(self.graph.nodes, cx, cy)
            hovered_id = hovered.id if hovered else None
            if hovered_id != s.hovered_node_id:
                s.hovered_node_id = hovered_id
                self._redraw()

    def pointer_up(self):
        s = self.session
        if s.mode in DRAG_MODES:
            s.mode = s.resting_mode
            s.resize_node_id = None
            s.active_handle = None
            self._redraw()

    def double_click(self, x: float, y: float):
        cx, cy = self.to_canvas(x, y)
        node = node_at(self.graph.nodes, cx, cy)
        if node is None:
            return
        s = self.session
        s.editing_node_id = node.id
        s.edit_value = node.label
        self._redraw()

    # --- Label editing ---

    def text_input(self, value: str):
        if self.session.is_editing:
            self.session.edit_value = value

    def commit_edit(self):
        s = self.session
        if not s.is_editing:
            return
        node = self.graph.get_node(s.editing_node_id)
        label = s.edit_value.replace("\r", "").replace("\n", "")
        if node is not None and label != node.label:
            self._mutated(self.graph.update_node(node.id, label=label))
        s.editing_node_id = None
        s.edit_value = ""
        self._redraw()

    def cancel_edit(self):
        s = self.session
        s.editing_node_id = None
        s.edit_value = ""
        self._redraw()

    # --- Keyboard / wheel ---

    def key_down(self, key: str, ctrl: bool = False):
        s = self.session

        if s.is_editing:
            if key == "Enter":
                self.commit_edit()
            elif key == "Escape":
                self.cancel_edit()
            return

        if key in DELETE_KEYS:
            self._delete_selection()
        elif key == "Escape":
            s.clear_selection()
            self.set_connect_mode(False)
        elif ctrl and key.lower() == "a":
            self.select_all()

    def _delete_selection(self):
        s = self.session
        if not s.selected_node_ids and not s.selected_connection_ids:
            return
        removed = self.graph.delete_nodes(s.selected_node_ids)
        for conn_id in s.selected_connection_ids:
            # May already be gone through the node cascade
            if self.graph.get_connection(conn_id) is not None:
                self.graph.delete_connection(conn_id)
                removed.append(conn_id)
        if s.pending_source_id in s.selected_node_ids:
            s.pending_source_id = None
        if s.hovered_node_id in s.selected_node_ids:
            s.hovered_node_id = None
        s.clear_selection()
        if removed:
            self._mutated()
        self._redraw()

    def wheel(self, delta_y: float):
        """Zoom one step per notch: scrolling down zooms out."""
        if delta_y == 0:
            return
        factor = ZOOM_OUT_STEP if delta_y > 0 else ZOOM_IN_STEP
        self.session.viewport.zoom_by(factor)
        self._redraw()
