"""
Constants for the dynamic marker tracking engine.

Centralized definitions for tracking defaults, projection parameters,
trail settings, and marker styling.
"""

import math
from typing import Dict, Tuple
from dataclasses import dataclass


# =============================================================================
# Animation Defaults
# =============================================================================

DEFAULT_ANIMATION_DURATION_MS = 1000  # Suitable for 1Hz update sources
DEFAULT_PREDICTION_WINDOW_MS = 2000   # Dead-reckoning stops after this


# =============================================================================
# Liveness Thresholds (milliseconds since last fix)
# =============================================================================

DEFAULT_STALE_THRESHOLD_MS = 10000
DEFAULT_OFFLINE_THRESHOLD_MS = 30000
DEFAULT_STATIONARY_SPEED_THRESHOLD = 0.5  # m/s (~1.8 km/h)
DEFAULT_STATIONARY_DURATION_MS = 30000


# =============================================================================
# Trail / Breadcrumb Settings
# =============================================================================

DEFAULT_MAX_TRAIL_POINTS = 50
DEFAULT_MIN_TRAIL_POINT_DISTANCE_M = 5.0
DEFAULT_TRAIL_COLOR = 0x7F2196F3  # ARGB, blue at 50% opacity
DEFAULT_TRAIL_WIDTH = 3.0


# =============================================================================
# Display Settings
# =============================================================================

DEFAULT_Z_INDEX = 100  # Above static markers at 0
DEFAULT_MIN_ZOOM_LEVEL = 0.0


# =============================================================================
# Projection (spherical Web Mercator)
# =============================================================================

TILE_SIZE = 256  # Standard web map tile size
BASE_PIXELS_PER_PROJECTED_UNIT = TILE_SIZE / (2.0 * math.pi)  # One tile spans 2*pi at zoom 0
VIEWPORT_BUFFER_PX = 50  # Margin for partially visible markers


# =============================================================================
# Geodesy
# =============================================================================

EARTH_RADIUS_M = 6371000.0
METERS_PER_DEGREE_LAT = 111320.0  # Flat-earth approximation for short distances


# =============================================================================
# Colors (RGB format for Pillow)
# =============================================================================

@dataclass(frozen=True)
class Colors:
    """Common colors in RGB format."""
    WHITE: Tuple[int, int, int] = (255, 255, 255)
    BLACK: Tuple[int, int, int] = (0, 0, 0)
    GREY: Tuple[int, int, int] = (100, 100, 100)
    GRID: Tuple[int, int, int] = (40, 45, 50)
    VOID_BLACK: Tuple[int, int, int] = (15, 18, 22)  # Preview background

    # Category palette
    BLUE: Tuple[int, int, int] = (33, 150, 243)
    PURPLE: Tuple[int, int, int] = (156, 39, 176)
    GREEN: Tuple[int, int, int] = (76, 175, 80)
    ORANGE: Tuple[int, int, int] = (255, 152, 0)
    RED: Tuple[int, int, int] = (244, 67, 54)
    CYAN: Tuple[int, int, int] = (0, 188, 212)
    INDIGO: Tuple[int, int, int] = (63, 81, 181)
    TEAL: Tuple[int, int, int] = (46, 101, 120)  # Default marker color


COLORS = Colors()


# =============================================================================
# Category Styling
# =============================================================================

CATEGORY_COLORS: Dict[str, Tuple[int, int, int]] = {
    "vehicle": COLORS.BLUE, "car": COLORS.BLUE, "truck": COLORS.BLUE, "bus": COLORS.BLUE,
    "drone": COLORS.PURPLE, "aircraft": COLORS.PURPLE, "plane": COLORS.PURPLE,
    "helicopter": COLORS.PURPLE,
    "person": COLORS.GREEN, "pedestrian": COLORS.GREEN, "runner": COLORS.GREEN,
    "cyclist": COLORS.GREEN,
    "delivery": COLORS.ORANGE, "courier": COLORS.ORANGE, "package": COLORS.ORANGE,
    "emergency": COLORS.RED, "ambulance": COLORS.RED, "police": COLORS.RED, "fire": COLORS.RED,
    "transit": COLORS.CYAN, "train": COLORS.CYAN, "subway": COLORS.CYAN, "tram": COLORS.CYAN,
    "boat": COLORS.INDIGO, "ship": COLORS.INDIGO, "vessel": COLORS.INDIGO,
}

CATEGORY_ICONS: Dict[str, str] = {
    "vehicle": "ic_vehicle", "car": "ic_vehicle",
    "truck": "ic_truck",
    "bus": "ic_bus",
    "drone": "ic_drone",
    "aircraft": "ic_aircraft", "plane": "ic_aircraft",
    "helicopter": "ic_helicopter",
    "person": "ic_person", "pedestrian": "ic_person",
    "runner": "ic_runner",
    "cyclist": "ic_cyclist",
    "delivery": "ic_delivery", "courier": "ic_delivery",
    "emergency": "ic_ambulance", "ambulance": "ic_ambulance",
    "police": "ic_police",
    "fire": "ic_fire_station",
    "transit": "ic_train", "train": "ic_train",
    "subway": "ic_subway",
    "boat": "ic_boat", "ship": "ic_boat",
}

DEFAULT_CATEGORY = "default"
DEFAULT_ICON = "ic_marker_dynamic"

# Marker opacity by liveness state
STATE_OPACITY: Dict[str, float] = {
    "tracking": 1.0,
    "stationary": 0.9,
    "stale": 0.6,
    "offline": 0.4,
    "expired": 0.2,
}


# =============================================================================
# Preview Rendering
# =============================================================================

PREVIEW_WIDTH = 800
PREVIEW_HEIGHT = 600
PREVIEW_MARKER_RADIUS = 7
PREVIEW_ARROW_LENGTH = 16
PREVIEW_GRID_SPACING = 100  # Pixels between background grid lines


# =============================================================================
# Replay
# =============================================================================

DEFAULT_TICK_INTERVAL_MS = 100  # 10 Hz render clock
DEFAULT_REPLAY_ZOOM = 16.0
