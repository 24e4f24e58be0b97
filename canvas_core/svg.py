"""
SVG export - Render a canvas to a standalone SVG document.

The output is self-contained XML: a viewBox around the content (plus
padding), one <style> block, a <line> (and arrowhead <polygon>) per
connection and a <rect> plus one <text> per label line for every node.
"""

import math
from xml.sax.saxutils import escape

from .geometry import content_bounds
from .models import CanvasData, ConnectionStyle

SVG_NS = "http://www.w3.org/2000/svg"
SVG_PADDING = 50
LINE_HEIGHT = 16
ARROW_LENGTH = 10
ARROW_ANGLE = math.pi / 6
CONNECTION_COLOR = "#6366f1"

STYLE_BLOCK = (
    "<style>"
    ".node-rect { rx: 8; ry: 8; } "
    ".node-text { font-family: Inter, system-ui, sans-serif; font-size: 12px; } "
    ".conn-line { fill: none; stroke: #6366f1; stroke-width: 2; } "
    ".conn-arrow { fill: #6366f1; } "
    ".conn-label { font-family: Inter, system-ui, sans-serif; font-size: 10px; fill: #6b7280; }"
    "</style>"
)

EMPTY_SVG = (
    f'<svg xmlns="{SVG_NS}" viewBox="0 0 800 600">'
    '<text x="400" y="300" text-anchor="middle" fill="#666">Empty Canvas</text>'
    "</svg>"
)

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def escape_xml(text: str) -> str:
    """Escape & < > " ' for use in text content and attribute values."""
    return escape(text, _XML_ENTITIES)


def _num(value: float) -> str:
    """Compact number formatting: 2 decimals at most, no trailing zeros."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def arrowhead_points(from_x: float, from_y: float, to_x: float, to_y: float,
                     length: float = ARROW_LENGTH) -> list[tuple[float, float]]:
    """Triangle with its tip on (to_x, to_y), wings at +/-30 degrees."""
    angle = math.atan2(to_y - from_y, to_x - from_x)
    return [
        (to_x, to_y),
        (to_x - length * math.cos(angle - ARROW_ANGLE), to_y - length * math.sin(angle - ARROW_ANGLE)),
        (to_x - length * math.cos(angle + ARROW_ANGLE), to_y - length * math.sin(angle + ARROW_ANGLE)),
    ]


def export_svg(canvas: CanvasData, padding: float = SVG_PADDING) -> str:
    """
    Render a canvas to an SVG string.

    Connections whose endpoints do not resolve are skipped. An empty canvas
    produces a placeholder with an "Empty Canvas" caption.
    """
    if not canvas.nodes:
        return EMPTY_SVG

    bounds = content_bounds(canvas.nodes, padding)
    nodes_by_id = {n.id: n for n in canvas.nodes}

    parts = [
        f'<svg xmlns="{SVG_NS}" viewBox="{_num(bounds.min_x)} {_num(bounds.min_y)} '
        f'{_num(bounds.width)} {_num(bounds.height)}">',
        STYLE_BLOCK,
    ]

    # Connections first so nodes draw over them
    for conn in canvas.connections:
        source = nodes_by_id.get(conn.from_node_id)
        target = nodes_by_id.get(conn.to_node_id)
        if source is None or target is None:
            continue

        x1, y1 = source.center()
        x2, y2 = target.center()
        line = (
            f'<line class="conn-line" x1="{_num(x1)}" y1="{_num(y1)}" '
            f'x2="{_num(x2)}" y2="{_num(y2)}"'
        )
        if conn.color:
            line += f' stroke="{escape_xml(conn.color)}"'
        if conn.style == ConnectionStyle.DASHED:
            line += ' stroke-dasharray="5,5"'
        parts.append(line + " />")

        if conn.style == ConnectionStyle.ARROW:
            points = " ".join(f"{_num(px)},{_num(py)}" for px, py in arrowhead_points(x1, y1, x2, y2))
            fill = f' fill="{escape_xml(conn.color)}"' if conn.color else ""
            parts.append(f'<polygon class="conn-arrow" points="{points}"{fill} />')

        if conn.label:
            parts.append(
                f'<text class="conn-label" x="{_num((x1 + x2) / 2)}" y="{_num((y1 + y2) / 2 - 5)}" '
                f'text-anchor="middle">{escape_xml(conn.label)}</text>'
            )

    for node in canvas.nodes:
        style = node.resolved_style()
        border_width = node.border_width if node.border_width is not None else 2
        parts.append(
            f'<rect class="node-rect" x="{_num(node.x)}" y="{_num(node.y)}" '
            f'width="{_num(node.width)}" height="{_num(node.height)}" '
            f'fill="{escape_xml(style.bg)}" stroke="{escape_xml(style.border)}" '
            f'stroke-width="{_num(border_width)}" />'
        )

        lines = node.label.split("\n")
        cx, cy = node.center()
        start_y = cy - (len(lines) - 1) * LINE_HEIGHT / 2
        for i, text in enumerate(lines):
            parts.append(
                f'<text class="node-text" x="{_num(cx)}" y="{_num(start_y + i * LINE_HEIGHT)}" '
                f'text-anchor="middle" dominant-baseline="middle" '
                f'fill="{escape_xml(style.text)}">{escape_xml(text)}</text>'
            )

    parts.append("</svg>")
    return "".join(parts)
