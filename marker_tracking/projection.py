"""
Spherical Web Mercator projection between geographic and screen space.

Longitude maps linearly to X (radians); latitude maps through
ln(tan(45 deg + lat/2)) on Y with the same scale. Screen positions are
offsets from the projected viewport center, scaled by
2^zoom * BASE_PIXELS_PER_PROJECTED_UNIT, with Y growing downward.

Everything here is pure: no state, safe to call concurrently.
"""

import math
from typing import Optional, Tuple

from constants import BASE_PIXELS_PER_PROJECTED_UNIT, VIEWPORT_BUFFER_PX
from marker_tracking.data_models import Viewport


def mercator(lat: float, lon: float) -> Optional[Tuple[float, float]]:
    """Project lat/lon to unscaled Mercator units, or None if unprojectable."""
    if not (math.isfinite(lat) and math.isfinite(lon)) or abs(lat) >= 90.0:
        return None
    x = math.radians(lon)
    y = math.log(math.tan(math.pi / 4 + math.radians(lat) / 2))
    return x, y


def inverse_mercator(x: float, y: float) -> Tuple[float, float]:
    """Convert unscaled Mercator units back to (lat, lon)."""
    lat = math.degrees(2 * math.atan(math.exp(y)) - math.pi / 2)
    lon = math.degrees(x)
    return lat, lon


def pixels_per_unit(zoom: float) -> float:
    """Screen pixels per projected unit at the given zoom level."""
    return (2.0 ** zoom) * BASE_PIXELS_PER_PROJECTED_UNIT


def to_screen(lat: float, lon: float, viewport: Viewport) -> Optional[Tuple[float, float]]:
    """Project to screen coordinates without visibility culling.

    Used for trail polylines, which must stay continuous across the
    viewport edge. Returns None only for unprojectable coordinates.
    """
    point = mercator(lat, lon)
    center = mercator(viewport.center_lat, viewport.center_lon)
    if point is None or center is None:
        return None

    scale = pixels_per_unit(viewport.zoom)
    screen_x = viewport.width_px / 2 + (point[0] - center[0]) * scale
    screen_y = viewport.height_px / 2 - (point[1] - center[1]) * scale  # Screen Y grows downward
    return screen_x, screen_y


def is_on_screen(x: float, y: float, viewport: Viewport, buffer_px: float = VIEWPORT_BUFFER_PX) -> bool:
    """Whether a screen point lies inside the viewport expanded by buffer_px."""
    return (-buffer_px <= x <= viewport.width_px + buffer_px and
            -buffer_px <= y <= viewport.height_px + buffer_px)


def project(lat: float, lon: float, viewport: Viewport) -> Optional[Tuple[float, float]]:
    """Project to screen coordinates, or None if outside the buffered viewport.

    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees
        viewport: Renderer camera (center, zoom, pixel size)

    Returns:
        (x, y) in screen pixels, or None when not visible
    """
    screen = to_screen(lat, lon, viewport)
    if screen is None or not is_on_screen(screen[0], screen[1], viewport):
        return None
    return screen


def unproject(x: float, y: float, viewport: Viewport) -> Optional[Tuple[float, float]]:
    """Convert a screen point back to (lat, lon) for hit-testing."""
    center = mercator(viewport.center_lat, viewport.center_lon)
    if center is None:
        return None
    scale = pixels_per_unit(viewport.zoom)
    merc_x = center[0] + (x - viewport.width_px / 2) / scale
    merc_y = center[1] - (y - viewport.height_px / 2) / scale
    return inverse_mercator(merc_x, merc_y)


def is_visible(lat: float, lon: float, viewport: Viewport) -> bool:
    """Whether a coordinate projects inside the buffered viewport."""
    return project(lat, lon, viewport) is not None


class GeoProjection:
    """Namespace for the projection functions, for callers that inject a projector."""

    project = staticmethod(project)
    to_screen = staticmethod(to_screen)
    unproject = staticmethod(unproject)
    is_visible = staticmethod(is_visible)
