"""
Canvas persistence.

The service treats storage as an opaque async key-value collaborator: whole
documents in, whole documents out, keyed by canvas id. Saves are full
overwrites, so the last writer wins.

Two implementations ship here:
- MemoryCanvasStore: process-local dict (the default; used by tests)
- JsonDirectoryStore: one `<id>.json` file per canvas in a directory
"""

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from canvas_core.models import CanvasData

logger = logging.getLogger(__name__)

# Ids become file names; anything else cannot have been written by us
_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


@runtime_checkable
class CanvasStore(Protocol):
    """Async document store used by CanvasService."""

    async def load(self, canvas_id: str) -> Optional[CanvasData]:
        """Return a fresh copy of the document, or None if it does not exist."""
        ...

    async def save(self, canvas: CanvasData) -> None:
        """Create or fully overwrite the document under `canvas.id`."""
        ...

    async def delete(self, canvas_id: str) -> bool:
        """Remove the document; False if it did not exist."""
        ...

    async def list_canvases(self) -> list[CanvasData]:
        """All stored documents."""
        ...


class MemoryCanvasStore:
    """
    Dict-backed store.

    Documents are kept in their JSON form so callers never share mutable
    state with the store: every load returns an independent copy.
    """

    def __init__(self):
        self._documents: dict[str, dict] = {}

    async def load(self, canvas_id: str) -> Optional[CanvasData]:
        data = self._documents.get(canvas_id)
        if data is None:
            return None
        return CanvasData.from_json_dict(data)

    async def save(self, canvas: CanvasData) -> None:
        self._documents[canvas.id] = canvas.to_json_dict()

    async def delete(self, canvas_id: str) -> bool:
        return self._documents.pop(canvas_id, None) is not None

    async def list_canvases(self) -> list[CanvasData]:
        return [CanvasData.from_json_dict(data) for data in self._documents.values()]


class JsonDirectoryStore:
    """One pretty-printed JSON file per canvas. File IO runs in a worker thread."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, canvas_id: str) -> Optional[Path]:
        if not _SAFE_ID.match(canvas_id):
            return None
        return self.directory / f"{canvas_id}.json"

    def _read(self, path: Path) -> Optional[CanvasData]:
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            return CanvasData.from_json_dict(json.load(f))

    def _write(self, path: Path, canvas: CanvasData):
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(canvas.to_json_dict(), f, indent=2)
        tmp.replace(path)

    async def load(self, canvas_id: str) -> Optional[CanvasData]:
        path = self._path(canvas_id)
        if path is None:
            return None
        return await asyncio.to_thread(self._read, path)

    async def save(self, canvas: CanvasData) -> None:
        path = self._path(canvas.id)
        if path is None:
            raise ValueError(f"Canvas id is not usable as a file name: {canvas.id}")
        await asyncio.to_thread(self._write, path, canvas)

    async def delete(self, canvas_id: str) -> bool:
        path = self._path(canvas_id)
        if path is None or not path.exists():
            return False
        await asyncio.to_thread(path.unlink)
        return True

    def _read_all(self) -> list[CanvasData]:
        if not self.directory.exists():
            return []
        canvases = []
        for f in sorted(self.directory.glob("*.json")):
            try:
                canvases.append(self._read(f))
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.warning("Skipping unreadable canvas file %s: %s", f, e)
        return canvases

    async def list_canvases(self) -> list[CanvasData]:
        return await asyncio.to_thread(self._read_all)


def create_store(kind: str, data_dir: Optional[Path] = None) -> CanvasStore:
    """Build the store named by configuration ('memory' or 'json')."""
    if kind == "memory":
        return MemoryCanvasStore()
    if kind == "json":
        if data_dir is None:
            raise ValueError("The json store needs a data directory")
        return JsonDirectoryStore(data_dir)
    raise ValueError(f"Unknown store: {kind}")
