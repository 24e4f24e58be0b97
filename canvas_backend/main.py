"""
Canvas Engine Backend - FastAPI Application

This is the main entry point for the canvas backend.
It provides:
- Tool-call endpoints for agents (catalogue, dispatch, resources)
- REST API for canvas documents (CRUD, import, layout, SVG/PNG export, validation)
- WebSocket endpoint broadcasting canvas_updated / canvas_deleted events
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, ValidationError

from canvas_core.models import CanvasData
from canvas_core.results import ErrorKind, OperationResult

from .config import Settings, configure_logging
from .service import CanvasService, canvas_summary
from .store import create_store
from .tools import TOOLS, ToolDispatcher, to_mcp_response
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)

# Error kind -> HTTP status for REST handlers
ERROR_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_REFERENCE: 400,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.UNKNOWN_OPERATION: 400,
}


def raise_for_result(result: OperationResult):
    """Turn a failed OperationResult into an HTTPException."""
    if not result:
        raise HTTPException(status_code=ERROR_STATUS.get(result.error, 400), detail=result.message)


# --- Request bodies ---

class ToolCallRequest(BaseModel):
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class CreateCanvasRequest(BaseModel):
    name: str = "Untitled Canvas"
    type: str = "freeform"


class LayoutRequest(BaseModel):
    algorithm: str = "grid"


def create_app(service: Optional[CanvasService] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around a service (a configured one by default)."""
    settings = settings or Settings.from_env()
    if service is None:
        service = CanvasService(create_store(settings.store, settings.data_dir))
    dispatcher = ToolDispatcher(service)
    ws_manager = WebSocketManager()

    # --- Async change notification ---
    # Service listeners enqueue; one background task fans out to WebSockets

    changes: asyncio.Queue[tuple[str, str]] = asyncio.Queue()

    async def on_canvas_change(event: str, canvas_id: str):
        changes.put_nowait((event, canvas_id))

    async def change_broadcaster():
        """Background task that broadcasts changes to WebSocket clients."""
        while True:
            event, canvas_id = await changes.get()
            await ws_manager.notify(event, canvas_id)

    service.on_change(on_canvas_change)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan handler for startup/shutdown tasks."""
        broadcaster_task = asyncio.create_task(change_broadcaster())
        logger.info("Canvas backend started (store=%s)", settings.store)

        yield

        broadcaster_task.cancel()
        try:
            await broadcaster_task
        except asyncio.CancelledError:
            pass

    app = FastAPI(
        title="Canvas Engine API",
        description="Diagram canvases for mindmaps, workflows and freeform design",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.service = service
    app.state.dispatcher = dispatcher
    app.state.ws_manager = ws_manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "connections": ws_manager.connection_count}

    # --- Tool calls ---

    @app.get("/mcp/tools")
    async def list_tools():
        """The tool catalogue with JSON-schema input descriptions."""
        return {"tools": TOOLS}

    @app.post("/mcp/tools/call")
    async def call_tool(request: ToolCallRequest):
        """
        Run one tool call.

        Tool-level failures return 200 with `isError: true`; an unknown tool
        name is a 400.
        """
        result = await dispatcher.dispatch(request.name, request.arguments)
        response = to_mcp_response(result)
        if result.error == ErrorKind.UNKNOWN_OPERATION:
            return JSONResponse(status_code=400, content=response)
        return response

    @app.get("/mcp/resources")
    async def list_resources():
        return {"resources": await dispatcher.list_resources()}

    @app.get("/mcp/resources/read")
    async def read_resource(uri: str = Query(...)):
        result = await dispatcher.read_resource(uri)
        raise_for_result(result)
        return {"contents": [{"uri": uri, "mimeType": "application/json", "text": result.data}]}

    # --- Canvas documents ---

    @app.get("/api/canvases")
    async def list_canvases():
        """List all canvases (summaries only)."""
        result = await service.list_canvases()
        return {"success": True, "canvases": [canvas_summary(c) for c in result.data]}

    @app.post("/api/canvases", status_code=201)
    async def create_canvas(request: CreateCanvasRequest):
        """Create a new empty canvas."""
        result = await service.create(request.name, request.type)
        raise_for_result(result)
        return {"success": True, "canvas": result.data.to_json_dict()}

    # Fixed path MUST be before the parameterized routes
    @app.post("/api/canvases/import", status_code=201)
    async def import_canvas(request: Request):
        """Import an exported canvas document (request body is the document)."""
        raw = (await request.body()).decode("utf-8", errors="replace")
        result = await service.import_json(raw)
        raise_for_result(result)
        return {"success": True, "message": result.message, "canvas": result.data.to_json_dict()}

    @app.get("/api/canvases/{canvas_id}")
    async def get_canvas(canvas_id: str):
        """Get a full canvas document."""
        result = await service.get(canvas_id)
        raise_for_result(result)
        return result.data.to_json_dict()

    @app.put("/api/canvases/{canvas_id}")
    async def replace_canvas(canvas_id: str, body: dict[str, Any]):
        """Overwrite a canvas with an edited document. The path id wins."""
        try:
            canvas = CanvasData.from_json_dict({**body, "id": canvas_id})
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=f"Invalid canvas data: {e}")
        result = await service.save(canvas)
        raise_for_result(result)
        return {"success": True, "canvas": result.data.to_json_dict()}

    @app.delete("/api/canvases/{canvas_id}")
    async def delete_canvas(canvas_id: str):
        """Delete a canvas."""
        result = await service.delete(canvas_id)
        raise_for_result(result)
        return {"success": True}

    @app.get("/api/canvases/{canvas_id}/svg")
    async def canvas_svg(canvas_id: str):
        """Export as a standalone SVG document."""
        result = await service.export_svg(canvas_id)
        raise_for_result(result)
        return Response(content=result.data, media_type="image/svg+xml")

    @app.get("/api/canvases/{canvas_id}/png")
    async def canvas_png(
        canvas_id: str,
        width: int = Query(default=1200, gt=0, le=8000),
        height: int = Query(default=800, gt=0, le=8000),
    ):
        """Raster render of the whole canvas, centered at zoom 1."""
        result = await service.export_png(canvas_id, width, height)
        raise_for_result(result)
        return Response(content=result.data, media_type="image/png")

    @app.post("/api/canvases/{canvas_id}/layout")
    async def layout_canvas(canvas_id: str, request: LayoutRequest):
        """Rearrange all nodes with a layout algorithm."""
        result = await service.apply_layout(canvas_id, request.algorithm)
        raise_for_result(result)
        return {"success": True, "message": result.message, "canvas": result.data.to_json_dict()}

    @app.get("/api/canvases/{canvas_id}/validate")
    async def validate_canvas(canvas_id: str):
        """
        Validate a canvas for structural issues.

        Returns a list of issues (errors, warnings, info) and a summary.
        """
        result = await service.validate(canvas_id)
        raise_for_result(result)
        return {"success": True, **result.data}

    # --- WebSocket ---

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for real-time updates.

        Clients connect here to receive canvas_updated / canvas_deleted events.
        """
        await ws_manager.connect(websocket)

        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text('{"type": "pong"}')
        except WebSocketDisconnect:
            await ws_manager.disconnect(websocket)

    return app


_settings = Settings.from_env()
configure_logging(_settings.log_level)
app = create_app(settings=_settings)


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=_settings.host, port=_settings.port)
