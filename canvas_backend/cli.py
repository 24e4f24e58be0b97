#!/usr/bin/env python3
"""Canvas engine CLI - serve the backend, or work on canvas JSON files offline."""

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError

from canvas_core.geometry import Viewport
from canvas_core.layout import LayoutAlgorithm, apply_layout
from canvas_core.models import CanvasData
from canvas_core.raster import RasterRenderer
from canvas_core.svg import export_svg
from canvas_core.validation import validate_canvas, validation_summary

from .config import Settings, configure_logging


class CanvasFileError(Exception):
    """A canvas file could not be read or parsed."""


def _json_out(data) -> int:
    print(json.dumps(data))
    return 0 if data.get("status") != "error" else 1


def _error(message: str) -> int:
    return _json_out({"status": "error", "error": message})


def _load_canvas(path: str) -> CanvasData:
    try:
        with open(path, encoding="utf-8") as f:
            return CanvasData.from_json_dict(json.load(f))
    except OSError as e:
        raise CanvasFileError(f"Cannot read {path}: {e.strerror or e}") from e
    except json.JSONDecodeError as e:
        raise CanvasFileError(f"{path} is not valid JSON: {e}") from e
    except ValidationError as e:
        raise CanvasFileError(f"{path} is not a valid canvas: {e.error_count()} validation errors") from e


def _write_text(path: str, text: str):
    Path(path).write_text(text, encoding="utf-8")


# --- Commands ---

def cmd_serve(args) -> int:
    import uvicorn
    settings = Settings.from_env()
    uvicorn.run(
        "canvas_backend.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def cmd_render(args) -> int:
    canvas = _load_canvas(args.file)
    viewport = Viewport(width=args.width, height=args.height, zoom=args.zoom)
    RasterRenderer().render(canvas, viewport).save(args.output, "PNG")
    return _json_out({
        "status": "ok", "output": args.output,
        "width": args.width, "height": args.height, "nodes": len(canvas.nodes),
    })


def cmd_export_svg(args) -> int:
    canvas = _load_canvas(args.file)
    svg = export_svg(canvas)
    if args.output:
        _write_text(args.output, svg)
        return _json_out({"status": "ok", "output": args.output})
    print(svg)
    return 0


def cmd_layout(args) -> int:
    algorithm = LayoutAlgorithm(args.algorithm)
    canvas = _load_canvas(args.file)
    canvas.nodes = apply_layout(canvas.nodes, canvas.connections, algorithm)
    canvas.touch()
    output = args.output or args.file
    _write_text(output, json.dumps(canvas.to_json_dict(), indent=2))
    return _json_out({"status": "ok", "algorithm": algorithm.value, "output": output, "nodes": len(canvas.nodes)})


def cmd_validate(args) -> int:
    canvas = _load_canvas(args.file)
    issues = validate_canvas(canvas)
    summary = validation_summary(issues)
    _json_out({
        "status": "ok" if summary["valid"] else "invalid",
        "issues": [i.to_dict() for i in issues],
        "summary": summary,
    })
    return 0 if summary["valid"] else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="canvas-engine", description="Canvas engine tools")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("serve", help="Run the HTTP/WebSocket backend")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)

    p = sub.add_parser("render", help="Render a canvas JSON file to PNG")
    p.add_argument("file")
    p.add_argument("-o", "--output", required=True)
    p.add_argument("--width", type=int, default=1200)
    p.add_argument("--height", type=int, default=800)
    p.add_argument("--zoom", type=float, default=1.0)

    p = sub.add_parser("export-svg", help="Export a canvas JSON file to SVG")
    p.add_argument("file")
    p.add_argument("-o", "--output", default=None)

    p = sub.add_parser("layout", help="Apply a layout algorithm to a canvas JSON file")
    p.add_argument("file")
    p.add_argument("algorithm", choices=[a.value for a in LayoutAlgorithm])
    p.add_argument("-o", "--output", default=None)

    p = sub.add_parser("validate", help="Check a canvas JSON file for structural issues")
    p.add_argument("file")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(Settings.from_env().log_level)

    cmd_map = {
        "serve": cmd_serve,
        "render": cmd_render,
        "export-svg": cmd_export_svg,
        "layout": cmd_layout,
        "validate": cmd_validate,
    }
    try:
        return cmd_map[args.command](args)
    except CanvasFileError as e:
        return _error(str(e))


if __name__ == "__main__":
    sys.exit(main())
