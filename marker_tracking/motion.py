"""
Motion prediction for dynamic markers.

Computes where a marker should be drawn at an arbitrary render time from
its two most recent fixes:

- Interpolation: the segment from the previous fix to the current fix is
  animated over the window [max(prev.t, cur.t - animation), cur.t]. Before
  the window the previous position is held; at cur.t the marker sits
  exactly on the current fix.
- Dead reckoning: after cur.t the marker keeps moving along its last known
  heading at its last known speed, for at most prediction_window_ms.
- Freeze: beyond the prediction window (or without prediction or
  kinematics) the last computed position is held until a new fix arrives.

The animation window ends at the current fix's own timestamp. A live
registry ticked on wall-clock time only sees a fix once now >= cur.t, so it
never interpolates: each tick goes straight to dead reckoning and
enable_animation and animation_duration_ms have no visible effect. They
matter when the render clock runs behind the fix timestamps, as when a
recorded log is replayed with a delay.

Pure and deterministic: the same entity, time and configuration always
produce the same result, so behavior can be replayed from fixed timestamps.
"""

from typing import NamedTuple, Optional

from marker_tracking.data_models import Fix, TrackingConfiguration
from marker_tracking.entity import TrackEntity
from marker_tracking.geodesy import lerp, lerp_angle, lerp_longitude, normalize_heading, offset_position


class PredictedPosition(NamedTuple):
    """Render position of a marker at one instant."""
    latitude: float
    longitude: float
    heading_degrees: float
    animating: bool = False


def resolve_heading(entity: TrackEntity) -> float:
    """Best available display heading: reported, carried forward, course, or north."""
    cur = entity.current_fix
    if cur is not None and cur.heading is not None:
        return normalize_heading(cur.heading)
    if entity.last_known_heading is not None:
        return normalize_heading(entity.last_known_heading)
    course = entity.course_heading()
    return course if course is not None else 0.0


def animation_fraction(prev: Fix, cur: Fix, render_time_ms: float, animation_duration_ms: int) -> float:
    """Progress through the prev -> cur animation window, clamped to [0, 1]."""
    window_start = max(prev.timestamp_ms, cur.timestamp_ms - animation_duration_ms)
    window_len = cur.timestamp_ms - window_start
    if render_time_ms >= cur.timestamp_ms or window_len <= 0:
        return 1.0
    if render_time_ms <= window_start:
        return 0.0
    return (render_time_ms - window_start) / window_len


def _interpolate(entity: TrackEntity, render_time_ms: float,
                 config: TrackingConfiguration) -> PredictedPosition:
    prev, cur = entity.previous_fix, entity.current_fix
    heading = resolve_heading(entity)

    if prev is None or not config.enable_animation:
        return PredictedPosition(cur.lat, cur.lon, heading)

    fraction = animation_fraction(prev, cur, render_time_ms, config.animation_duration_ms)
    if fraction >= 1.0:
        return PredictedPosition(cur.lat, cur.lon, heading)

    if config.animate_heading and prev.heading is not None and cur.heading is not None:
        heading = lerp_angle(prev.heading, cur.heading, fraction)

    if fraction <= 0.0:
        return PredictedPosition(prev.lat, prev.lon, heading)

    return PredictedPosition(
        lerp(prev.lat, cur.lat, fraction),
        lerp_longitude(prev.lon, cur.lon, fraction),
        heading,
        animating=True,
    )


def _dead_reckon(entity: TrackEntity, render_time_ms: float,
                 config: TrackingConfiguration) -> PredictedPosition:
    cur = entity.current_fix
    heading = resolve_heading(entity)
    known_heading = entity.last_known_heading
    speed = entity.last_known_speed

    if not config.enable_prediction or known_heading is None or not speed:
        return PredictedPosition(cur.lat, cur.lon, heading)

    # Past the window the marker freezes where prediction stopped
    elapsed_ms = min(render_time_ms - cur.timestamp_ms, config.prediction_window_ms)
    lat, lon = offset_position(cur.lat, cur.lon, known_heading, speed * elapsed_ms / 1000.0)
    return PredictedPosition(lat, lon, heading)


def position_at(entity: TrackEntity, render_time_ms: float,
                config: Optional[TrackingConfiguration] = None) -> Optional[PredictedPosition]:
    """Where to draw an entity at render_time_ms.

    Args:
        entity: Entity with at least a current fix
        render_time_ms: Render clock in epoch milliseconds
        config: Animation and prediction settings (defaults when None)

    Returns:
        PredictedPosition, or None if the entity has no fix yet
    """
    if entity.current_fix is None:
        return None
    if config is None:
        config = TrackingConfiguration()
    if render_time_ms <= entity.current_fix.timestamp_ms:
        return _interpolate(entity, render_time_ms, config)
    return _dead_reckon(entity, render_time_ms, config)


class MotionPredictor:
    """Predictor bound to one configuration.

    Example:
        predictor = MotionPredictor(config)
        pos = predictor.position_at(entity, now_ms)
    """

    def __init__(self, config: Optional[TrackingConfiguration] = None):
        self.config = config if config is not None else TrackingConfiguration()

    def position_at(self, entity: TrackEntity, render_time_ms: float) -> Optional[PredictedPosition]:
        return position_at(entity, render_time_ms, self.config)
