"""
Raster renderer - Draw a canvas onto a Pillow image.

Draw order:
1. Background fill and a fixed-pixel grid (screen space, unaffected by zoom/pan)
2. Under the zoom/pan transform: connections, then nodes in z-order
3. Title overlay pinned to the top-left corner (screen space)

Everything is computed in screen pixels: document coordinates go through the
viewport Transform, and stroke widths stay constant on screen.
"""

import io
import math
from functools import lru_cache
from typing import Callable, Mapping, Optional, TYPE_CHECKING

from PIL import Image, ImageDraw, ImageFont

from .geometry import Transform, Viewport, handle_positions
from .models import (
    CanvasData, CanvasNode, ConnectionStyle,
    DEFAULT_FONT_FAMILY, DEFAULT_FONT_SIZE,
)

if TYPE_CHECKING:
    from .interaction import ViewSession


BACKGROUND_COLOR = "#0a0a0a"
GRID_COLOR = "#1f1f1f"
GRID_SIZE = 30
CONNECTION_COLOR = "#6366f1"
SELECTION_COLOR = "#f59e0b"
HOVER_COLOR = (99, 102, 241)
LABEL_COLOR = "#9ca3af"
HINT_COLOR = "#6b7280"
TITLE_COLOR = "#f4f4f5"
SUBTITLE_COLOR = "#71717a"

CORNER_RADIUS = 8
CONNECTION_WIDTH = 2
BORDER_WIDTH = 2
SELECTED_BORDER_WIDTH = 3
ARROW_LENGTH = 12
ARROW_ANGLE = math.pi / 6
DASH_PATTERN = (5, 5)
HANDLE_SIZE = 8
TEXT_PADDING = 16
IMAGE_PADDING = 4
IMAGE_LABEL_HEIGHT = 24
ELLIPSIS = "..."


# --- Fonts ---

_FONT_CANDIDATES = (
    "DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "Arial Bold.ttf",
    "arialbd.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
)


@lru_cache(maxsize=64)
def load_font(size: int, family: Optional[str] = None) -> ImageFont.FreeTypeFont:
    """
    Load a font at a pixel size.

    Tries the requested family first (when it names a font file Pillow can
    find), then common system sans fonts, then Pillow's bundled default.
    """
    fonts_to_try = []
    if family and family != DEFAULT_FONT_FAMILY:
        fonts_to_try.append(family.split(",")[0].strip())
    fonts_to_try.extend(_FONT_CANDIDATES)

    for font in fonts_to_try:
        try:
            return ImageFont.truetype(font, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


# --- Text layout ---

def truncate_text(text: str, max_width: float, measure: Callable[[str], float]) -> str:
    """Shorten a line with an ellipsis until it fits (keeps at least 3 chars)."""
    if measure(text) <= max_width:
        return text
    while len(text) > 3 and measure(text + ELLIPSIS) > max_width:
        text = text[:-1]
    return text + ELLIPSIS


def wrap_label(label: str, max_width: float, measure: Callable[[str], float]) -> list[str]:
    """
    Split a label into display lines.

    Explicit newlines always break. Within a line, words are packed greedily
    up to `max_width`; a single word that still overflows is truncated with
    an ellipsis.
    """
    lines: list[str] = []
    for raw in label.split("\n"):
        words = raw.split()
        if not words:
            lines.append("")
            continue
        current = words[0]
        for word in words[1:]:
            candidate = f"{current} {word}"
            if measure(candidate) <= max_width:
                current = candidate
            else:
                lines.append(current)
                current = word
        lines.append(current)
    return [truncate_text(line, max_width, measure) for line in lines]


# --- Drawing helpers ---

def _dashed_line(draw: ImageDraw.ImageDraw, start, end, fill, width: int, pattern=DASH_PATTERN):
    """Pillow has no dash support; emit the visible segments one by one."""
    (x1, y1), (x2, y2) = start, end
    length = math.hypot(x2 - x1, y2 - y1)
    if length == 0:
        return
    ux, uy = (x2 - x1) / length, (y2 - y1) / length
    dash, gap = pattern
    pos = 0.0
    while pos < length:
        seg_end = min(pos + dash, length)
        draw.line(
            [(x1 + ux * pos, y1 + uy * pos), (x1 + ux * seg_end, y1 + uy * seg_end)],
            fill=fill, width=width,
        )
        pos += dash + gap


def fit_image(img_w: float, img_h: float, avail_w: float, avail_h: float) -> tuple[float, float]:
    """Largest size with the image's aspect ratio that fits the box."""
    if img_w <= 0 or img_h <= 0 or avail_w <= 0 or avail_h <= 0:
        return (0.0, 0.0)
    img_aspect = img_w / img_h
    if img_aspect > avail_w / avail_h:
        return (avail_w, avail_w / img_aspect)
    return (avail_h * img_aspect, avail_h)


class RasterRenderer:
    """
    Interactive renderer backed by Pillow.

    The renderer holds no view state of its own; zoom/pan come from the
    Viewport and selection/hover from the ViewSession passed to `render`.
    """

    def __init__(self, images: Optional[Mapping[str, Image.Image]] = None):
        # node_id -> already-loaded image for image nodes
        self.images: dict[str, Image.Image] = dict(images or {})

    def render(
        self,
        canvas: CanvasData,
        viewport: Viewport,
        session: Optional["ViewSession"] = None,
    ) -> Image.Image:
        width, height = int(viewport.width), int(viewport.height)
        img = Image.new("RGB", (width, height), BACKGROUND_COLOR)
        draw = ImageDraw.Draw(img, "RGBA")

        self._draw_grid(draw, width, height)

        if not canvas.nodes:
            font = load_font(14)
            draw.text((width / 2, height / 2), "Empty canvas", fill=HINT_COLOR, font=font, anchor="mm")
        else:
            transform = viewport.transform(canvas.nodes)
            selected_nodes = session.selected_node_ids if session else set()
            selected_conns = session.selected_connection_ids if session else set()
            hovered = session.hovered_node_id if session else None

            self._draw_connections(draw, canvas, transform, selected_conns)
            for node in canvas.nodes:
                self._draw_node(
                    img, draw, node, transform,
                    selected=node.id in selected_nodes,
                    hovered=node.id == hovered,
                )

        self._draw_overlay(draw, canvas)
        return img

    def render_png(self, canvas: CanvasData, viewport: Viewport,
                   session: Optional["ViewSession"] = None) -> bytes:
        """Render and encode as PNG bytes."""
        buffer = io.BytesIO()
        self.render(canvas, viewport, session).save(buffer, "PNG")
        return buffer.getvalue()

    # --- Layers ---

    def _draw_grid(self, draw: ImageDraw.ImageDraw, width: int, height: int):
        for x in range(0, width, GRID_SIZE):
            draw.line([(x, 0), (x, height)], fill=GRID_COLOR, width=1)
        for y in range(0, height, GRID_SIZE):
            draw.line([(0, y), (width, y)], fill=GRID_COLOR, width=1)

    def _draw_connections(self, draw: ImageDraw.ImageDraw, canvas: CanvasData,
                          transform: Transform, selected: set[str]):
        nodes_by_id = {n.id: n for n in canvas.nodes}
        label_font = load_font(max(1, round(transform.scale(10))))

        for conn in canvas.connections:
            source = nodes_by_id.get(conn.from_node_id)
            target = nodes_by_id.get(conn.to_node_id)
            if source is None or target is None:
                continue

            color = SELECTION_COLOR if conn.id in selected else (conn.color or CONNECTION_COLOR)
            fx, fy = source.center()
            tx, ty = target.center()
            start = transform.to_screen(fx, fy)
            end = transform.to_screen(tx, ty)

            if conn.style == ConnectionStyle.DASHED:
                _dashed_line(draw, start, end, color, CONNECTION_WIDTH)
            else:
                draw.line([start, end], fill=color, width=CONNECTION_WIDTH)

            if conn.style == ConnectionStyle.ARROW:
                # Tip sits on the target's border, not its center
                angle = math.atan2(ty - fy, tx - fx)
                tip = transform.to_screen(
                    tx - (target.width / 2) * math.cos(angle),
                    ty - (target.height / 2) * math.sin(angle),
                )
                for wing in (angle - ARROW_ANGLE, angle + ARROW_ANGLE):
                    draw.line(
                        [tip, (tip[0] - ARROW_LENGTH * math.cos(wing), tip[1] - ARROW_LENGTH * math.sin(wing))],
                        fill=color, width=CONNECTION_WIDTH,
                    )

            if conn.label:
                mid = ((start[0] + end[0]) / 2, (start[1] + end[1]) / 2 - 5)
                draw.text(mid, conn.label, fill=LABEL_COLOR, font=label_font, anchor="ms")

    def _draw_node(self, img: Image.Image, draw: ImageDraw.ImageDraw, node: CanvasNode,
                   transform: Transform, selected: bool, hovered: bool):
        style = node.resolved_style()
        x0, y0 = transform.to_screen(node.x, node.y)
        w, h = transform.scale(node.width), transform.scale(node.height)
        box = [x0, y0, x0 + w, y0 + h]
        radius = min(transform.scale(CORNER_RADIUS), w / 2, h / 2)

        border = SELECTION_COLOR if selected else style.border
        if selected:
            border_width = SELECTED_BORDER_WIDTH
        else:
            border_width = node.border_width if node.border_width is not None else BORDER_WIDTH
        draw.rounded_rectangle(box, radius=radius, fill=style.bg, outline=border,
                               width=max(0, round(border_width)))

        if hovered and not selected:
            draw.rounded_rectangle(box, radius=radius, outline=HOVER_COLOR + (128,), width=BORDER_WIDTH)

        font_size = node.font_size or DEFAULT_FONT_SIZE
        font = load_font(max(1, round(transform.scale(font_size))), node.font_family)
        line_height = transform.scale(font_size + 4)
        cx = x0 + w / 2

        image = self.images.get(node.id) if node.has_image else None
        if image is not None:
            pad = transform.scale(IMAGE_PADDING)
            label_h = transform.scale(IMAGE_LABEL_HEIGHT) if node.label else 0
            avail_w = w - pad * 2
            avail_h = h - pad * 2 - label_h
            draw_w, draw_h = fit_image(image.width, image.height, avail_w, avail_h)
            if draw_w >= 1 and draw_h >= 1:
                scaled = image.resize((round(draw_w), round(draw_h)))
                img.paste(scaled, (round(x0 + pad + (avail_w - draw_w) / 2),
                                   round(y0 + pad + (avail_h - draw_h) / 2)))
            if node.label:
                text = truncate_text(node.label.split("\n")[0], w - transform.scale(TEXT_PADDING), font.getlength)
                draw.text((cx, y0 + h - label_h / 2), text, fill=style.text, font=font, anchor="mm")
        else:
            lines = wrap_label(node.label, w - transform.scale(TEXT_PADDING), font.getlength)
            start_y = y0 + h / 2 - (len(lines) - 1) * line_height / 2
            for i, line in enumerate(lines):
                draw.text((cx, start_y + i * line_height), line, fill=style.text, font=font, anchor="mm")

        if selected:
            half = HANDLE_SIZE / 2
            for _handle, hx, hy in handle_positions(node):
                sx, sy = transform.to_screen(hx, hy)
                draw.ellipse([sx - half, sy - half, sx + half, sy + half], fill=SELECTION_COLOR)

    def _draw_overlay(self, draw: ImageDraw.ImageDraw, canvas: CanvasData):
        draw.text((12, 24), canvas.name, fill=TITLE_COLOR, font=load_font(14), anchor="ls")
        summary = f"{canvas.type.value} • {len(canvas.nodes)} nodes"
        draw.text((12, 42), summary, fill=SUBTITLE_COLOR, font=load_font(11), anchor="ls")
