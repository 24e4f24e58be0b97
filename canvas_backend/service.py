"""
Canvas Service - Document-level operations over the persistence store.

Every mutating operation is a read-modify-write of the whole document:
load, change through a CanvasGraph, refresh `updatedAt`, save. There is no
locking or version token; concurrent writers to one canvas race and the last
save wins.

Operations never raise for expected failures. They return an OperationResult
whose `data` carries the created/changed object on success.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from canvas_core.generators import (
    add_mindmap_branches, build_mindmap, build_workflow, resolve_workflow_steps,
)
from canvas_core.geometry import Viewport
from canvas_core.graph import CanvasGraph
from canvas_core.layout import LayoutAlgorithm, apply_layout
from canvas_core.models import (
    CanvasData, CanvasKind, ConnectionStyle, NodeKind, generate_id, utc_now,
)
from canvas_core.raster import RasterRenderer
from canvas_core.results import ErrorKind, OperationResult
from canvas_core.svg import export_svg
from canvas_core.validation import IssueSeverity, validate_canvas, validation_summary

from .store import CanvasStore

logger = logging.getLogger(__name__)

CANVAS_UPDATED = "canvas_updated"
CANVAS_DELETED = "canvas_deleted"

ChangeListener = Callable[[str, str], Awaitable[None]]


def _enum_value(enum_cls, value, what: str):
    """Coerce a string into a closed enum, or return a failed result."""
    try:
        return enum_cls(value), None
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        return None, OperationResult.fail(
            ErrorKind.INVALID_INPUT, f"Unknown {what}: {value} (expected one of: {allowed})"
        )


def canvas_summary(canvas: CanvasData) -> dict:
    """Short listing entry for a canvas."""
    return {
        "id": canvas.id,
        "name": canvas.name,
        "type": canvas.type.value,
        "nodeCount": len(canvas.nodes),
        "connectionCount": len(canvas.connections),
        "updatedAt": canvas.updated_at.isoformat(),
    }


class CanvasService:
    """Async facade used by the tool dispatcher, the REST API and the CLI."""

    def __init__(self, store: CanvasStore, renderer: Optional[RasterRenderer] = None):
        self.store = store
        self.renderer = renderer or RasterRenderer()
        self._listeners: list[ChangeListener] = []

    # --- Change notification ---

    def on_change(self, listener: ChangeListener):
        """Register an async listener called with (event, canvas_id) after saves."""
        self._listeners.append(listener)

    async def _notify(self, event: str, canvas_id: str):
        for listener in self._listeners:
            await listener(event, canvas_id)

    # --- Load / commit helpers ---

    async def _load(self, canvas_id: str) -> tuple[Optional[CanvasData], Optional[OperationResult]]:
        canvas = await self.store.load(canvas_id)
        if canvas is None:
            logger.warning("Canvas not found: %s", canvas_id)
            return None, OperationResult.not_found("Canvas", canvas_id)
        return canvas, None

    async def _commit(self, canvas: CanvasData):
        canvas.touch()
        await self.store.save(canvas)
        await self._notify(CANVAS_UPDATED, canvas.id)

    async def _mutate(self, canvas_id: str, change: Callable[[CanvasGraph], OperationResult]) -> OperationResult:
        """Load, apply a graph operation, and save only if it succeeded."""
        canvas, missing = await self._load(canvas_id)
        if missing:
            return missing
        result = change(CanvasGraph(canvas))
        if result:
            await self._commit(canvas)
            logger.info("%s [canvas %s]", result.message, canvas_id)
        else:
            logger.warning("Rejected change to canvas %s: %s", canvas_id, result.message)
        return result

    # --- Documents ---

    async def create(self, name: str, kind: str = CanvasKind.FREEFORM.value) -> OperationResult:
        canvas_kind, error = _enum_value(CanvasKind, kind, "canvas type")
        if error:
            return error
        canvas = CanvasData(name=name, type=canvas_kind)
        await self.store.save(canvas)
        await self._notify(CANVAS_UPDATED, canvas.id)
        logger.info("Created %s canvas %r (%s)", canvas_kind.value, name, canvas.id)
        return OperationResult.ok(f'Created {canvas_kind.value} canvas "{name}"', data=canvas)

    async def delete(self, canvas_id: str) -> OperationResult:
        canvas, missing = await self._load(canvas_id)
        if missing:
            return missing
        await self.store.delete(canvas_id)
        await self._notify(CANVAS_DELETED, canvas_id)
        logger.info("Deleted canvas %r (%s)", canvas.name, canvas_id)
        return OperationResult.ok(f'Deleted canvas "{canvas.name}"', data=canvas)

    async def get(self, canvas_id: str) -> OperationResult:
        canvas, missing = await self._load(canvas_id)
        if missing:
            return missing
        return OperationResult.ok(data=canvas)

    async def list_canvases(self) -> OperationResult:
        canvases = await self.store.list_canvases()
        return OperationResult.ok(f"{len(canvases)} canvases", data=canvases)

    async def save(self, canvas: CanvasData) -> OperationResult:
        """Overwrite an existing document wholesale (editor save). Id is preserved."""
        existing = await self.store.load(canvas.id)
        if existing is None:
            return OperationResult.not_found("Canvas", canvas.id)
        canvas.created_at = existing.created_at
        await self._commit(canvas)
        logger.info("Saved canvas %r (%s)", canvas.name, canvas.id)
        return OperationResult.ok(f'Saved canvas "{canvas.name}"', data=canvas)

    # --- Nodes ---

    async def add_node(
        self,
        canvas_id: str,
        kind: str,
        label: str,
        x: Optional[float] = None,
        y: Optional[float] = None,
        **style: Any,
    ) -> OperationResult:
        node_kind, error = _enum_value(NodeKind, kind, "node type")
        if error:
            return error

        def change(graph: CanvasGraph) -> OperationResult:
            try:
                return graph.add_node(node_kind, label, x=x, y=y, **style)
            except ValidationError as e:
                return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Invalid node: {e}")

        return await self._mutate(canvas_id, change)

    async def update_node(self, canvas_id: str, node_id: str, **fields: Any) -> OperationResult:
        return await self._mutate(canvas_id, lambda graph: graph.update_node(node_id, **fields))

    async def delete_node(self, canvas_id: str, node_id: str) -> OperationResult:
        return await self._mutate(canvas_id, lambda graph: graph.delete_node(node_id))

    # --- Connections ---

    async def add_connection(
        self,
        canvas_id: str,
        from_node_id: str,
        to_node_id: str,
        label: Optional[str] = None,
        style: str = ConnectionStyle.ARROW.value,
        color: Optional[str] = None,
    ) -> OperationResult:
        conn_style, error = _enum_value(ConnectionStyle, style, "connection style")
        if error:
            return error
        return await self._mutate(
            canvas_id,
            lambda graph: graph.add_connection(from_node_id, to_node_id, label=label, style=conn_style, color=color),
        )

    async def delete_connection(self, canvas_id: str, connection_id: str) -> OperationResult:
        return await self._mutate(canvas_id, lambda graph: graph.delete_connection(connection_id))

    # --- Export / import ---

    async def export_svg(self, canvas_id: str) -> OperationResult:
        canvas, missing = await self._load(canvas_id)
        if missing:
            return missing
        return OperationResult.ok(f'SVG exported for "{canvas.name}"', data=export_svg(canvas))

    async def export_png(self, canvas_id: str, width: int = 1200, height: int = 800) -> OperationResult:
        canvas, missing = await self._load(canvas_id)
        if missing:
            return missing
        png = self.renderer.render_png(canvas, Viewport(width=width, height=height))
        return OperationResult.ok(f'PNG rendered for "{canvas.name}"', data=png)

    async def export_json(self, canvas_id: str) -> OperationResult:
        canvas, missing = await self._load(canvas_id)
        if missing:
            return missing
        return OperationResult.ok(
            f'JSON export for "{canvas.name}"', data=json.dumps(canvas.to_json_dict(), indent=2)
        )

    async def import_json(self, raw: str) -> OperationResult:
        """
        Create a new canvas from an exported document.

        The document gets a fresh id and timestamps; node and connection ids
        are kept. Connections that point at missing nodes do not fail the
        import, they are listed as warnings in the message.
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Rejected import: invalid JSON (%s)", e)
            return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Invalid JSON: {e}")
        if not isinstance(data, dict):
            return OperationResult.fail(ErrorKind.INVALID_INPUT, "Canvas JSON must be an object")

        try:
            canvas = CanvasData.from_json_dict(data)
        except ValidationError as e:
            logger.warning("Rejected import: %d validation errors", e.error_count())
            return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Invalid canvas data: {e}")

        canvas.id = generate_id()
        canvas.created_at = canvas.updated_at = utc_now()
        await self.store.save(canvas)
        await self._notify(CANVAS_UPDATED, canvas.id)

        message = f'Imported canvas "{canvas.name}"'
        problems = [i for i in validate_canvas(canvas) if i.severity == IssueSeverity.ERROR]
        if problems:
            message += "\n\nWarnings:\n" + "\n".join(f"- {i.message}" for i in problems)
            logger.warning("Imported canvas %s with %d structural errors", canvas.id, len(problems))
        logger.info("Imported canvas %r (%s)", canvas.name, canvas.id)
        return OperationResult.ok(message, data=canvas)

    # --- Layout / validation ---

    async def apply_layout(self, canvas_id: str, algorithm: str) -> OperationResult:
        layout, error = _enum_value(LayoutAlgorithm, algorithm, "layout algorithm")
        if error:
            return error

        def change(graph: CanvasGraph) -> OperationResult:
            graph.replace_nodes(apply_layout(graph.nodes, graph.connections, layout))
            return OperationResult.ok(
                f'Applied {layout.value} layout to "{graph.canvas.name}"', data=graph.canvas
            )

        return await self._mutate(canvas_id, change)

    async def validate(self, canvas_id: str) -> OperationResult:
        canvas, missing = await self._load(canvas_id)
        if missing:
            return missing
        issues = validate_canvas(canvas)
        summary = validation_summary(issues)
        return OperationResult.ok(
            f"{summary['errors']} errors, {summary['warnings']} warnings",
            data={"issues": [i.to_dict() for i in issues], "summary": summary},
        )

    # --- Generators ---

    async def create_mindmap(self, name: str, central_topic: str, branches: list[str]) -> OperationResult:
        canvas = build_mindmap(name, central_topic, branches)
        await self.store.save(canvas)
        await self._notify(CANVAS_UPDATED, canvas.id)
        logger.info("Created mindmap %r with %d branches (%s)", name, len(branches), canvas.id)
        return OperationResult.ok(f'Created mindmap "{name}"', data=canvas)

    async def add_mindmap_branches(self, canvas_id: str, parent_node_id: str, topics: list[str]) -> OperationResult:
        return await self._mutate(
            canvas_id, lambda graph: add_mindmap_branches(graph, parent_node_id, topics)
        )

    async def create_workflow(
        self, name: str, template: str, custom_steps: Optional[list[str]] = None
    ) -> OperationResult:
        resolved = resolve_workflow_steps(template, custom_steps)
        if not resolved:
            logger.warning("Rejected workflow %r: %s", name, resolved.message)
            return resolved
        canvas = build_workflow(name, resolved.data)
        await self.store.save(canvas)
        await self._notify(CANVAS_UPDATED, canvas.id)
        logger.info("Created workflow %r from %s (%s)", name, template, canvas.id)
        return OperationResult.ok(f'Created workflow "{name}" from {template} template', data=canvas)
