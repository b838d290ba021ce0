"""
Default marker styling by category and liveness.

Categories are free-form strings; known ones get a palette color and icon,
everything else falls back to the default teal marker.
"""

from typing import Optional, Tuple

from constants import (
    CATEGORY_COLORS,
    CATEGORY_ICONS,
    COLORS,
    DEFAULT_ICON,
    STATE_OPACITY,
)
from marker_tracking.data_models import LivenessState


def category_color(category: str) -> Tuple[int, int, int]:
    """Default RGB color for a category (case-insensitive)."""
    return CATEGORY_COLORS.get(category.lower(), COLORS.TEAL)


def argb_to_rgb(argb: int) -> Tuple[int, int, int]:
    """Drop the alpha byte of an ARGB integer."""
    return ((argb >> 16) & 0xFF, (argb >> 8) & 0xFF, argb & 0xFF)


def argb_alpha(argb: int) -> float:
    """Alpha of an ARGB integer as 0.0-1.0."""
    return ((argb >> 24) & 0xFF) / 255.0


def rgb_to_hex(rgb: Tuple[int, int, int]) -> str:
    return "#{:02X}{:02X}{:02X}".format(*rgb)


def marker_color(category: str, custom_color: Optional[int] = None) -> Tuple[int, int, int]:
    """Marker RGB color, preferring an explicit ARGB override."""
    if custom_color is not None:
        return argb_to_rgb(custom_color)
    return category_color(category)


def marker_icon(category: str, icon_id: Optional[str] = None) -> str:
    """Icon identifier, preferring an explicit override."""
    if icon_id:
        return icon_id
    return CATEGORY_ICONS.get(category.lower(), DEFAULT_ICON)


def state_opacity(state: LivenessState) -> float:
    """Marker opacity for a liveness state; fades as reports age."""
    return STATE_OPACITY[state.value]
