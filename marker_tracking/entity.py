"""
Mutable per-entity tracking record.

A TrackEntity lives only inside a TrackRegistry. Callers receive frozen
EntityState copies via freeze(), never the entity itself.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from constants import DEFAULT_CATEGORY
from marker_tracking.data_models import EntityState, Fix, LivenessState, TrackingConfiguration
from marker_tracking.geodesy import initial_bearing_deg, haversine_m
from marker_tracking.trail import TrailBuffer

# Below this separation the bearing between two fixes is noise
_MIN_BEARING_DISTANCE_M = 0.5


@dataclass
class TrackEntity:
    """One tracked marker.

    Attributes:
        id: Stable identifier for the track's lifetime
        title: Display title (defaults to the id)
        category: Free-form styling class, e.g. "vehicle" or "drone"
        current_fix: Most recent accepted fix
        previous_fix: Fix before current_fix, the interpolation origin
        liveness: Last classified liveness state
        show_trail: Whether rendered positions are appended to the trail
        trail_capacity: Per-entity override of max_trail_points, or None
        trail: Retained breadcrumb positions
        last_known_heading: Latest reported heading, carried across fixes without one
        last_known_speed: Latest reported speed, carried across fixes without one
        low_speed_since_ms: Start of the current below-threshold speed run
        animating: Whether the last tick was inside the animation window
    """
    id: str
    title: str = ""
    category: str = DEFAULT_CATEGORY
    current_fix: Optional[Fix] = None
    previous_fix: Optional[Fix] = None
    liveness: LivenessState = LivenessState.TRACKING
    show_trail: bool = False
    trail_capacity: Optional[int] = None
    trail: TrailBuffer = field(default_factory=TrailBuffer)
    metadata: Dict[str, Any] = field(default_factory=dict)
    icon_id: Optional[str] = None
    custom_color: Optional[int] = None
    last_known_heading: Optional[float] = None
    last_known_speed: Optional[float] = None
    low_speed_since_ms: Optional[int] = None
    animating: bool = False

    def __post_init__(self):
        if not self.title:
            self.title = self.id

    def effective_trail_capacity(self, config: TrackingConfiguration) -> int:
        return self.trail_capacity if self.trail_capacity is not None else config.max_trail_points

    def sync_trail(self, config: TrackingConfiguration) -> None:
        """Bring the trail buffer limits in line with the active configuration."""
        capacity = self.effective_trail_capacity(config)
        min_distance = config.min_trail_point_distance_meters
        if self.trail.capacity != capacity or self.trail.min_distance_m != min_distance:
            self.trail.reconfigure(capacity, min_distance)

    def course_heading(self) -> Optional[float]:
        """Bearing from the previous fix to the current one, if they are apart."""
        prev, cur = self.previous_fix, self.current_fix
        if prev is None or cur is None:
            return None
        if haversine_m(prev.lat, prev.lon, cur.lat, cur.lon) < _MIN_BEARING_DISTANCE_M:
            return None
        return initial_bearing_deg(prev.lat, prev.lon, cur.lat, cur.lon)

    def freeze(self) -> EntityState:
        """Immutable copy safe to hand outside the registry."""
        return EntityState(
            id=self.id,
            title=self.title,
            category=self.category,
            current_fix=self.current_fix,
            previous_fix=self.previous_fix,
            liveness=self.liveness,
            show_trail=self.show_trail,
            trail_capacity=self.trail_capacity,
            trail=tuple(self.trail.points()),
            metadata=dict(self.metadata),
            icon_id=self.icon_id,
            custom_color=self.custom_color,
            last_known_heading=self.last_known_heading,
            last_known_speed=self.last_known_speed,
        )
