"""
Preview renderer for dynamic marker snapshots.

Draws the output of TrackRegistry.tick onto a plain grid background so a
replay can be inspected frame by frame without a map SDK:

- Trails are polylines whose segments fade with per-point opacity
- Markers are filled circles in the category color, dimmed by liveness
- A heading arrow points in the direction of travel (north up)
- Titles are drawn beside each marker
"""

import logging
import math
from typing import Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from constants import (
    COLORS,
    PREVIEW_ARROW_LENGTH,
    PREVIEW_GRID_SPACING,
    PREVIEW_HEIGHT,
    PREVIEW_MARKER_RADIUS,
    PREVIEW_WIDTH,
)
from marker_tracking.data_models import LivenessState, RenderSnapshot, TrackingConfiguration
from marker_tracking.styling import argb_alpha, argb_to_rgb

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int]


# Font cache
_font_cache: dict = {}
_font_path: Optional[str] = None


def _get_font(size: float = 12) -> ImageFont.FreeTypeFont:
    """Get a cached font instance."""
    global _font_path

    int_size = int(size)

    if int_size in _font_cache:
        return _font_cache[int_size]

    if _font_path is None:
        for font_name in ["DejaVuSans.ttf", "Arial.ttf", "Helvetica.ttf",
                          "/System/Library/Fonts/Helvetica.ttc"]:
            try:
                ImageFont.truetype(font_name, 12)
                _font_path = font_name
                break
            except OSError:
                continue

    if _font_path:
        font = ImageFont.truetype(_font_path, int_size)
    else:
        font = ImageFont.load_default()

    _font_cache[int_size] = font
    return font


def hex_to_rgb(value: str) -> Color:
    """Parse '#RRGGBB' into an RGB tuple."""
    text = value.lstrip("#")
    return int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16)


def blend(color: Color, background: Color, opacity: float) -> Color:
    """Mix color over background at the given opacity (0=background, 1=color)."""
    opacity = min(1.0, max(0.0, opacity))
    return tuple(int(round(c * opacity + b * (1.0 - opacity))) for c, b in zip(color, background))


class SnapshotRenderer:
    """Renders a list of RenderSnapshots to an RGB image.

    Args:
        width: Image width in pixels (match the viewport width)
        height: Image height in pixels (match the viewport height)
        config: Supplies trail color and width (defaults when None)
        show_titles: Draw marker titles

    Example:
        renderer = SnapshotRenderer(800, 600, config)
        frame = renderer.render(registry.tick(now_ms, viewport))
        save_frame(frame, "frame_0001.png")
    """

    def __init__(self, width: int = PREVIEW_WIDTH, height: int = PREVIEW_HEIGHT,
                 config: Optional[TrackingConfiguration] = None, show_titles: bool = True):
        self.width = int(width)
        self.height = int(height)
        self.config = config if config is not None else TrackingConfiguration()
        self.show_titles = show_titles
        self.background = COLORS.VOID_BLACK
        self._font = _get_font(12)

    def render(self, snapshots: Sequence[RenderSnapshot]) -> np.ndarray:
        """Draw one frame.

        Args:
            snapshots: Output of one registry tick

        Returns:
            HxWx3 uint8 RGB array
        """
        img = Image.new("RGB", (self.width, self.height), self.background)
        draw = ImageDraw.Draw(img)
        self._draw_grid(draw)

        # Lower z first; expired markers under live ones
        ordered = sorted(snapshots, key=lambda s: (s.z_index, -s.liveness.severity))
        for snap in ordered:
            if snap.trail:
                self._draw_trail(draw, snap)
        for snap in ordered:
            if snap.visible:
                self._draw_marker(draw, snap)

        return np.array(img)

    def _draw_grid(self, draw: ImageDraw.ImageDraw) -> None:
        for x in range(0, self.width, PREVIEW_GRID_SPACING):
            draw.line([(x, 0), (x, self.height)], fill=COLORS.GRID, width=1)
        for y in range(0, self.height, PREVIEW_GRID_SPACING):
            draw.line([(0, y), (self.width, y)], fill=COLORS.GRID, width=1)

    def _draw_trail(self, draw: ImageDraw.ImageDraw, snap: RenderSnapshot) -> None:
        """Draw trail segments, each faded by the opacity of its newer end."""
        trail_color = argb_to_rgb(self.config.trail_color)
        base_alpha = argb_alpha(self.config.trail_color)
        line_width = max(1, int(round(self.config.trail_width)))

        points = snap.trail
        for older, newer in zip(points, points[1:]):
            fill = blend(trail_color, self.background, base_alpha * newer.opacity * snap.opacity)
            draw.line([(older.x, older.y), (newer.x, newer.y)], fill=fill, width=line_width)

    def _draw_marker(self, draw: ImageDraw.ImageDraw, snap: RenderSnapshot) -> None:
        x, y = snap.screen_x, snap.screen_y
        radius = PREVIEW_MARKER_RADIUS
        fill = blend(hex_to_rgb(snap.color), self.background, snap.opacity)
        outline = COLORS.RED if snap.liveness is LivenessState.OFFLINE else COLORS.WHITE

        draw.ellipse([x - radius, y - radius, x + radius, y + radius],
                     fill=fill, outline=blend(outline, self.background, snap.opacity), width=2)

        # Heading arrow: 0 deg points up, clockwise
        rad = math.radians(snap.heading_degrees)
        tip = (x + PREVIEW_ARROW_LENGTH * math.sin(rad), y - PREVIEW_ARROW_LENGTH * math.cos(rad))
        head = 5
        left = (tip[0] - head * math.sin(rad - math.pi * 0.8),
                tip[1] + head * math.cos(rad - math.pi * 0.8))
        right = (tip[0] - head * math.sin(rad + math.pi * 0.8),
                 tip[1] + head * math.cos(rad + math.pi * 0.8))
        arrow_color = blend(COLORS.WHITE, self.background, snap.opacity)
        draw.line([(x, y), tip], fill=arrow_color, width=2)
        draw.polygon([tip, left, right], fill=arrow_color)

        if self.show_titles and snap.title:
            text_pos = (x + radius + 4, y - radius - 2)
            draw.text(text_pos, snap.title, fill=arrow_color, font=self._font)


def save_frame(frame: np.ndarray, path: str) -> None:
    """Write an RGB frame to disk (format from the file extension)."""
    Image.fromarray(frame).save(path)
    logger.debug(f"Wrote preview frame {path}")
