"""
Registry of tracked entities.

The TrackRegistry owns every TrackEntity, applies incoming fixes, and on
each render tick turns entity state into immutable RenderSnapshot objects:

    fix -> apply_fix -> fix history, kinematics, stationary counter
    tick(now, viewport) -> position -> liveness -> trail -> projection -> snapshot

All mutation is serialised by a single re-entrant lock. Listeners are
invoked after the lock is released, so a listener may call back into the
registry.
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

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
    TrailVertex,
    Viewport,
)
from marker_tracking.entity import TrackEntity
from marker_tracking.geodesy import haversine_m
from marker_tracking.liveness import classify_liveness, low_speed_duration, next_low_speed_since
from marker_tracking.motion import position_at
from marker_tracking.projection import project, to_screen
from marker_tracking.styling import marker_color, marker_icon, rgb_to_hex, state_opacity

logger = logging.getLogger(__name__)

# Listener receives StateChangeEvent, PositionUpdatedEvent or MarkerExpiredEvent
Listener = Callable[[Any], None]

DEFAULT_HIT_RADIUS_PX = 20.0

_UNSET: Any = object()


class TrackRegistry:
    """Thread-safe owner of all dynamic markers.

    Args:
        config: Initial configuration (defaults when None)

    Example:
        registry = TrackRegistry(TrackingConfiguration(enable_trail=True))
        registry.apply_fix(Fix(id="bus-7", lat=37.77, lon=-122.42, timestamp_ms=0))
        snapshots = registry.tick(now_ms=500, viewport=viewport)
    """

    def __init__(self, config: Optional[TrackingConfiguration] = None):
        self._config = config if config is not None else TrackingConfiguration()
        self._entities: Dict[str, TrackEntity] = {}
        self._listeners: List[Listener] = []
        self._last_snapshots: List[RenderSnapshot] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Configuration and listeners
    # ------------------------------------------------------------------

    @property
    def configuration(self) -> TrackingConfiguration:
        return self._config

    def configure(self, config: TrackingConfiguration) -> None:
        """Replace the configuration wholesale and resize existing trails."""
        with self._lock:
            self._config = config
            for entity in self._entities.values():
                entity.sync_trail(config)
        logger.debug(f"Configuration replaced for {len(self._entities)} entities")

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> bool:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
                return True
            return False

    def _dispatch(self, events: List[Any]) -> None:
        if not events:
            return
        with self._lock:
            listeners = list(self._listeners)
        for event in events:
            for listener in listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception(f"Listener failed handling {event.event_type} for {event.id}")

    # ------------------------------------------------------------------
    # Fixes
    # ------------------------------------------------------------------

    def apply_fix(self, fix: Fix, *, title: Optional[str] = None,
                  category: Optional[str] = None, icon_id: Optional[str] = None,
                  metadata: Optional[Dict[str, Any]] = None,
                  show_trail: Optional[bool] = None) -> FixOutcome:
        """Record a position fix.

        Malformed, older and duplicate fixes leave the entity untouched and
        are reported through the returned outcome rather than raised.
        Display properties given alongside an accepted fix are applied
        before the next tick, so a new entity is drawn with them at once.

        Args:
            fix: Position report
            title: Display title
            category: Styling class
            icon_id: Icon override
            metadata: Host data carried on the entity
            show_trail: Trail toggle; False clears the trail

        Returns:
            FixOutcome describing what happened to the fix
        """
        reason = fix.validation_error()
        if reason is not None:
            logger.warning(f"Rejected fix for '{fix.id}': {reason}")
            return FixOutcome(FixStatus.REJECTED, fix.id, reason)

        with self._lock:
            config = self._config
            entity = self._entities.get(fix.id)

            if entity is None:
                entity = TrackEntity(id=fix.id, show_trail=config.enable_trail)
                entity.sync_trail(config)
                self._entities[fix.id] = entity
                status = FixStatus.CREATED
                logger.debug(f"Tracking new entity '{fix.id}'")
            else:
                current = entity.current_fix
                if fix.timestamp_ms < current.timestamp_ms:
                    logger.debug(
                        f"Ignoring out-of-order fix for '{fix.id}' "
                        f"({fix.timestamp_ms} < {current.timestamp_ms})"
                    )
                    return FixOutcome(FixStatus.OUT_OF_ORDER, fix.id)
                if fix.model_dump() == current.model_dump():
                    return FixOutcome(FixStatus.DUPLICATE, fix.id)
                status = FixStatus.UPDATED

            if entity.current_fix is not None and fix.timestamp_ms > entity.current_fix.timestamp_ms:
                entity.previous_fix = entity.current_fix
            entity.current_fix = fix

            if fix.heading is not None:
                entity.last_known_heading = fix.heading
            if fix.speed is not None:
                entity.last_known_speed = fix.speed
            entity.low_speed_since_ms = next_low_speed_since(
                entity.low_speed_since_ms, fix.speed, fix.timestamp_ms, config
            )

            self._set_display(entity, title, category, metadata, show_trail)
            if icon_id is not None:
                entity.icon_id = icon_id

        self._dispatch([PositionUpdatedEvent(id=fix.id, fix=fix)])
        return FixOutcome(status, fix.id)

    def apply_fixes(self, fixes: Iterable[Fix]) -> List[FixOutcome]:
        """Apply a batch of fixes in order."""
        return [self.apply_fix(fix) for fix in fixes]

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, now_ms: float, viewport: Viewport) -> List[RenderSnapshot]:
        """Advance every entity to now_ms and return render snapshots.

        Entities are visited in insertion order. An entity that reaches
        EXPIRED appears in this tick's snapshots and is removed once its
        state change has been delivered, unless a listener fed it a new fix
        in the meantime.

        Args:
            now_ms: Render clock in epoch milliseconds
            viewport: Current map camera

        Returns:
            One snapshot per entity with a fix
        """
        events: List[Any] = []
        with self._lock:
            config = self._config
            snapshots: List[RenderSnapshot] = []
            expired: List[Tuple[str, Fix]] = []

            for entity in self._entities.values():
                position = position_at(entity, now_ms, config)
                if position is None:
                    continue

                age_ms = now_ms - entity.current_fix.timestamp_ms
                state = classify_liveness(
                    age_ms, config, low_speed_duration(now_ms, entity.low_speed_since_ms)
                )
                if state is not entity.liveness:
                    events.append(StateChangeEvent(
                        id=entity.id, previous_liveness=entity.liveness, new_liveness=state,
                    ))
                    entity.liveness = state
                entity.animating = position.animating

                if entity.show_trail:
                    entity.trail.append((position.latitude, position.longitude), now_ms)

                snapshots.append(self._snapshot(entity, position, viewport, config))
                if state is LivenessState.EXPIRED:
                    expired.append((entity.id, entity.current_fix))

            self._last_snapshots = snapshots

        self._dispatch(events)
        if expired:
            self._dispatch(self._remove_expired(expired))
        return snapshots

    def _remove_expired(self, expired: List[Tuple[str, Fix]]) -> List[MarkerExpiredEvent]:
        events = []
        with self._lock:
            for entity_id, last_fix in expired:
                entity = self._entities.get(entity_id)
                # Revived or replaced by a listener
                if entity is None or entity.current_fix is not last_fix:
                    continue
                del self._entities[entity_id]
                events.append(MarkerExpiredEvent(id=entity_id, last_fix=last_fix))
                logger.debug(f"Entity '{entity_id}' expired and was removed")
        return events

    @staticmethod
    def _in_display_range(lat: float, lon: float, viewport: Viewport,
                          config: TrackingConfiguration) -> bool:
        if viewport.zoom < config.min_zoom_level:
            return False
        limit_km = config.max_distance_from_center_km
        if limit_km is not None:
            distance_m = haversine_m(viewport.center_lat, viewport.center_lon, lat, lon)
            if distance_m > limit_km * 1000.0:
                return False
        return True

    def _snapshot(self, entity: TrackEntity, position, viewport: Viewport,
                  config: TrackingConfiguration) -> RenderSnapshot:
        lat, lon = position.latitude, position.longitude
        screen = None
        trail: List[TrailVertex] = []

        if self._in_display_range(lat, lon, viewport, config):
            screen = project(lat, lon, viewport)
            if entity.show_trail:
                opacities = entity.trail.opacities(config.trail_gradient)
                for point, opacity in zip(entity.trail, opacities):
                    xy = to_screen(point.latitude, point.longitude, viewport)
                    if xy is not None:
                        trail.append(TrailVertex(x=xy[0], y=xy[1], opacity=opacity))

        return RenderSnapshot(
            id=entity.id,
            screen_x=screen[0] if screen else None,
            screen_y=screen[1] if screen else None,
            latitude=lat,
            longitude=lon,
            heading_degrees=position.heading_degrees,
            liveness=entity.liveness,
            animating=position.animating,
            trail=tuple(trail),
            title=entity.title,
            category=entity.category,
            color=rgb_to_hex(marker_color(entity.category, entity.custom_color)),
            icon_id=marker_icon(entity.category, entity.icon_id),
            opacity=state_opacity(entity.liveness),
            z_index=config.z_index,
        )

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove(self, entity_id: str) -> bool:
        """Stop tracking an entity. Unknown ids return False."""
        with self._lock:
            removed = self._entities.pop(entity_id, None) is not None
        if removed:
            logger.debug(f"Removed entity '{entity_id}'")
        return removed

    def remove_many(self, entity_ids: Iterable[str]) -> int:
        """Remove several entities, returning how many were tracked."""
        with self._lock:
            return sum(1 for entity_id in entity_ids if self.remove(entity_id))

    def clear(self) -> None:
        """Drop every entity at once."""
        with self._lock:
            count = len(self._entities)
            self._entities = {}
            self._last_snapshots = []
        logger.debug(f"Cleared {count} entities")

    # ------------------------------------------------------------------
    # Entity updates
    # ------------------------------------------------------------------

    def update_entity(self, entity_id: str, *, title: Optional[str] = None,
                      category: Optional[str] = None, show_trail: Optional[bool] = None,
                      trail_capacity: Optional[int] = _UNSET,
                      metadata: Optional[Dict[str, Any]] = None,
                      icon_id: Optional[str] = _UNSET,
                      custom_color: Optional[int] = _UNSET) -> bool:
        """Change display properties of a tracked entity.

        Arguments left out are unchanged. trail_capacity, icon_id and
        custom_color accept None to restore the default.

        Returns:
            False if the entity is not tracked
        """
        if trail_capacity is not _UNSET and trail_capacity is not None and trail_capacity < 1:
            raise ValueError(f"Trail capacity must be >= 1, got {trail_capacity}")

        with self._lock:
            entity = self._entities.get(entity_id)
            if entity is None:
                return False
            if icon_id is not _UNSET:
                entity.icon_id = icon_id
            if custom_color is not _UNSET:
                entity.custom_color = custom_color
            if trail_capacity is not _UNSET:
                entity.trail_capacity = trail_capacity
                entity.sync_trail(self._config)
            self._set_display(entity, title, category, metadata, show_trail)
            return True

    @staticmethod
    def _set_display(entity: TrackEntity, title: Optional[str], category: Optional[str],
                     metadata: Optional[Dict[str, Any]], show_trail: Optional[bool]) -> None:
        if title is not None:
            entity.title = title
        if category is not None:
            entity.category = category
        if metadata is not None:
            entity.metadata = dict(metadata)
        if show_trail is not None:
            if not show_trail:
                entity.trail.clear()
            entity.show_trail = show_trail

    def clear_trail(self, entity_id: str) -> bool:
        with self._lock:
            entity = self._entities.get(entity_id)
            if entity is None:
                return False
            entity.trail.clear()
            return True

    def clear_all_trails(self) -> None:
        with self._lock:
            for entity in self._entities.values():
                entity.trail.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, entity_id: str) -> Optional[EntityState]:
        with self._lock:
            entity = self._entities.get(entity_id)
            return entity.freeze() if entity is not None else None

    def entities(self) -> List[EntityState]:
        with self._lock:
            return [entity.freeze() for entity in self._entities.values()]

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._entities)

    def entity_at(self, x: float, y: float,
                  radius_px: float = DEFAULT_HIT_RADIUS_PX) -> Optional[RenderSnapshot]:
        """Closest visible marker from the last tick within radius_px of (x, y)."""
        with self._lock:
            snapshots = self._last_snapshots

        best = None
        best_dist_sq = radius_px * radius_px
        for snap in snapshots:
            if not snap.visible:
                continue
            dist_sq = (snap.screen_x - x) ** 2 + (snap.screen_y - y) ** 2
            if dist_sq <= best_dist_sq:
                best, best_dist_sq = snap, dist_sq
        return best

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        with self._lock:
            return entity_id in self._entities
