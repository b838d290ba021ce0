"""
Dynamic marker tracking engine.

Keeps moving map markers (vehicles, drones, people) smooth and current
between sparse position reports: interpolation between fixes, dead
reckoning after the last one, liveness classification, breadcrumb trails
and projection to screen space.
"""

from marker_tracking.data_models import (
    EntityState,
    Fix,
    FixOutcome,
    FixStatus,
    LivenessState,
    MarkerExpiredEvent,
    PositionUpdatedEvent,
    RenderSnapshot,
    StateChangeEvent,
    TrackingConfiguration,
    TrailPoint,
    TrailVertex,
    Viewport,
)
from marker_tracking.liveness import LivenessClassifier
from marker_tracking.motion import MotionPredictor, PredictedPosition
from marker_tracking.projection import GeoProjection
from marker_tracking.registry import TrackRegistry
from marker_tracking.trail import TrailBuffer

__all__ = [
    "EntityState",
    "Fix",
    "FixOutcome",
    "FixStatus",
    "LivenessState",
    "MarkerExpiredEvent",
    "PositionUpdatedEvent",
    "RenderSnapshot",
    "StateChangeEvent",
    "TrackingConfiguration",
    "TrailPoint",
    "TrailVertex",
    "Viewport",
    "LivenessClassifier",
    "MotionPredictor",
    "PredictedPosition",
    "GeoProjection",
    "TrackRegistry",
    "TrailBuffer",
]
