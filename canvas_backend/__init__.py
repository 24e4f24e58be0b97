"""Canvas Engine Backend - Document service, tool dispatch and HTTP API."""

from .service import CanvasService
from .store import CanvasStore, JsonDirectoryStore, MemoryCanvasStore, create_store
from .tools import TOOLS, ToolDispatcher

__all__ = [
    "CanvasService",
    "CanvasStore",
    "MemoryCanvasStore",
    "JsonDirectoryStore",
    "create_store",
    "TOOLS",
    "ToolDispatcher",
]
