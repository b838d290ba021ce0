"""
Bounded breadcrumb trail for a single marker.

Retains rendered positions in order, skipping points that are too close to
the last retained one and dropping the oldest once capacity is exceeded.
"""

import logging
from collections import deque
from typing import Deque, List, Tuple

import numpy as np

from constants import DEFAULT_MAX_TRAIL_POINTS, DEFAULT_MIN_TRAIL_POINT_DISTANCE_M
from marker_tracking.data_models import TrailPoint
from marker_tracking.geodesy import haversine_m

logger = logging.getLogger(__name__)


class TrailBuffer:
    """Distance-filtered FIFO of trail points.

    Args:
        capacity: Maximum number of retained points
        min_distance_m: Minimum great-circle distance from the last retained
            point for a new point to be kept
    """

    def __init__(self, capacity: int = DEFAULT_MAX_TRAIL_POINTS,
                 min_distance_m: float = DEFAULT_MIN_TRAIL_POINT_DISTANCE_M):
        if capacity < 1:
            raise ValueError(f"Trail capacity must be >= 1, got {capacity}")
        if min_distance_m < 0:
            raise ValueError(f"Minimum trail distance must be >= 0, got {min_distance_m}")
        self.capacity = capacity
        self.min_distance_m = min_distance_m
        self._points: Deque[TrailPoint] = deque()

    def append(self, position: Tuple[float, float], timestamp_ms: int) -> bool:
        """Add a rendered position to the trail.

        Args:
            position: (lat, lon) in degrees
            timestamp_ms: Render time of the position

        Returns:
            True if the point was retained, False if it was filtered out
        """
        lat, lon = position
        if self._points:
            last = self._points[-1]
            if haversine_m(last.latitude, last.longitude, lat, lon) < self.min_distance_m:
                return False

        self._points.append(TrailPoint(lat, lon, int(timestamp_ms)))
        while len(self._points) > self.capacity:
            self._points.popleft()
        return True

    def points(self) -> List[TrailPoint]:
        """Retained points, oldest first."""
        return list(self._points)

    def opacities(self, gradient: bool = True) -> List[float]:
        """Per-point opacity derived from recency rank.

        With gradient the oldest point is fully transparent (0.0) and the
        newest fully opaque (1.0); without it every point is opaque.
        """
        n = len(self._points)
        if n == 0:
            return []
        if not gradient or n == 1:
            return [1.0] * n
        return np.linspace(0.0, 1.0, n).tolist()

    def clear(self) -> None:
        self._points.clear()

    def reconfigure(self, capacity: int, min_distance_m: float) -> None:
        """Apply new limits, trimming the oldest points if capacity shrank."""
        if capacity < 1:
            raise ValueError(f"Trail capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.min_distance_m = min_distance_m
        dropped = 0
        while len(self._points) > capacity:
            self._points.popleft()
            dropped += 1
        if dropped:
            logger.debug(f"Trail trimmed by {dropped} points to capacity {capacity}")

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self):
        return iter(self._points)
