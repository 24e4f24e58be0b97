"""
Environment configuration for the canvas backend.

Every setting has a default so the server starts with no environment at all:
in-memory storage on 127.0.0.1:8765.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
DEFAULT_DATA_DIR = Path.home() / ".canvas-engine" / "canvases"
DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"]

STORE_MEMORY = "memory"
STORE_JSON = "json"


def _split_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass
class Settings:
    store: str = STORE_MEMORY
    data_dir: Path = DEFAULT_DATA_DIR
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @classmethod
    def from_env(cls) -> "Settings":
        """Read CANVAS_* environment variables (raises ValueError on a bad value)."""
        store = os.environ.get("CANVAS_STORE", STORE_MEMORY).lower()
        if store not in (STORE_MEMORY, STORE_JSON):
            raise ValueError(f"CANVAS_STORE must be '{STORE_MEMORY}' or '{STORE_JSON}', got '{store}'")

        origins = os.environ.get("CANVAS_CORS_ORIGINS")
        return cls(
            store=store,
            data_dir=Path(os.environ.get("CANVAS_DATA_DIR", str(DEFAULT_DATA_DIR))).expanduser(),
            host=os.environ.get("CANVAS_HOST", DEFAULT_HOST),
            port=int(os.environ.get("CANVAS_PORT", DEFAULT_PORT)),
            log_level=os.environ.get("CANVAS_LOG_LEVEL", "INFO").upper(),
            cors_origins=_split_origins(origins) if origins else list(DEFAULT_CORS_ORIGINS),
        )


def configure_logging(level: str = "INFO"):
    """Root logging setup, called once by the app module and the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
