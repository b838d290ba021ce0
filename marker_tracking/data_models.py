"""
Data models for the dynamic marker tracking engine.

Pydantic models for position fixes, viewports, tracking configuration,
render snapshots and registry events. All models are immutable and
serialize to the camelCase JSON shapes exchanged with the host platform.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Literal, Mapping, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from constants import (
    DEFAULT_ANIMATION_DURATION_MS,
    DEFAULT_PREDICTION_WINDOW_MS,
    DEFAULT_STALE_THRESHOLD_MS,
    DEFAULT_OFFLINE_THRESHOLD_MS,
    DEFAULT_STATIONARY_SPEED_THRESHOLD,
    DEFAULT_STATIONARY_DURATION_MS,
    DEFAULT_MAX_TRAIL_POINTS,
    DEFAULT_MIN_TRAIL_POINT_DISTANCE_M,
    DEFAULT_TRAIL_COLOR,
    DEFAULT_TRAIL_WIDTH,
    DEFAULT_Z_INDEX,
    DEFAULT_MIN_ZOOM_LEVEL,
)


class _FrozenModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_json(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class LivenessState(str, Enum):
    """How recently and reliably an entity has reported, in increasing severity."""
    TRACKING = "tracking"
    STATIONARY = "stationary"
    STALE = "stale"
    OFFLINE = "offline"
    EXPIRED = "expired"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {state: rank for rank, state in enumerate(LivenessState)}


class TrailPoint(NamedTuple):
    """One retained trail position."""
    latitude: float
    longitude: float
    timestamp_ms: int


# ============================================================================
# Fixes
# ============================================================================

_ID_KEYS = ("id", "markerId")
_LAT_KEYS = ("lat", "latitude")
_LON_KEYS = ("lon", "lng", "longitude")
_TIMESTAMP_KEYS = ("timestampMs", "timestamp_ms", "timestamp")


def _first_present(payload: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def parse_timestamp_ms(value: Any) -> int:
    """
    Convert a transport timestamp to epoch milliseconds.

    Accepts epoch milliseconds (int/float/numeric string) or an ISO-8601
    string. Naive ISO timestamps are treated as UTC.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError(f"Invalid timestamp: {value!r}")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(float(text))
        except ValueError:
            pass
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"Invalid timestamp: {value!r}") from None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)
    raise ValueError(f"Invalid timestamp: {value!r}")


class Fix(_FrozenModel):
    """
    One timestamped position report for a tracked entity.

    Coordinates are not range-checked on construction so that malformed
    reports can reach the registry and be rejected with a reason; see
    validation_error().
    """
    id: str = Field(description="Entity identifier")
    lat: float = Field(description="WGS84 latitude in degrees")
    lon: float = Field(description="WGS84 longitude in degrees")
    heading: Optional[float] = Field(default=None, description="Degrees, 0=North, clockwise")
    speed: Optional[float] = Field(default=None, description="Speed in meters per second")
    timestamp_ms: int = Field(description="Observation time in epoch milliseconds")

    def validation_error(self) -> Optional[str]:
        """Return why this fix is malformed, or None if it is usable."""
        if not self.id:
            return "empty entity id"
        if not (math.isfinite(self.lat) and math.isfinite(self.lon)):
            return f"non-finite coordinates ({self.lat}, {self.lon})"
        if not -90.0 <= self.lat <= 90.0:
            return f"latitude {self.lat} out of range"
        if not -180.0 <= self.lon <= 180.0:
            return f"longitude {self.lon} out of range"
        if self.heading is not None and not math.isfinite(self.heading):
            return f"non-finite heading {self.heading}"
        if self.speed is not None and (not math.isfinite(self.speed) or self.speed < 0):
            return f"invalid speed {self.speed}"
        return None

    @property
    def is_valid(self) -> bool:
        return self.validation_error() is None

    @classmethod
    def from_map(cls, payload: Mapping[str, Any]) -> "Fix":
        """
        Create a Fix from a loosely keyed transport payload.

        Supports id/markerId, lat/latitude, lon/lng/longitude and
        timestampMs/timestamp (epoch ms or ISO-8601).

        Raises:
            ValueError: If a required key is missing or not numeric
        """
        entity_id = _first_present(payload, _ID_KEYS)
        if entity_id is None:
            raise ValueError("Missing entity id")

        lat = _first_present(payload, _LAT_KEYS)
        if lat is None:
            raise ValueError("Missing latitude")
        lon = _first_present(payload, _LON_KEYS)
        if lon is None:
            raise ValueError("Missing longitude")
        timestamp = _first_present(payload, _TIMESTAMP_KEYS)
        if timestamp is None:
            raise ValueError("Missing timestamp")

        heading = payload.get("heading")
        speed = payload.get("speed")

        return cls(
            id=str(entity_id),
            lat=_as_float(lat, "latitude"),
            lon=_as_float(lon, "longitude"),
            heading=_as_float(heading, "heading") if heading is not None else None,
            speed=_as_float(speed, "speed") if speed is not None else None,
            timestamp_ms=parse_timestamp_ms(timestamp),
        )


def display_fields_from_map(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Display properties carried next to a fix in a transport payload.

    Reads title, category, iconId, metadata and showTrail. Absent keys are
    left out so the result can be passed straight to apply_fix().

    Raises:
        ValueError: If metadata is not an object or showTrail is not a boolean
    """
    fields: Dict[str, Any] = {}
    for key, name in (("title", "title"), ("category", "category"), ("iconId", "icon_id")):
        if payload.get(key) is not None:
            fields[name] = str(payload[key])

    metadata = payload.get("metadata")
    if metadata is not None:
        if not isinstance(metadata, Mapping):
            raise ValueError(f"metadata must be an object, got {metadata!r}")
        fields["metadata"] = dict(metadata)

    show_trail = payload.get("showTrail")
    if show_trail is not None:
        if not isinstance(show_trail, bool):
            raise ValueError(f"showTrail must be a boolean, got {show_trail!r}")
        fields["show_trail"] = show_trail
    return fields


# ============================================================================
# Viewport
# ============================================================================

class Viewport(_FrozenModel):
    """The renderer's current map camera. Supplied per tick, never owned."""
    center_lat: float = Field(ge=-90.0, le=90.0)
    center_lon: float = Field(ge=-180.0, le=180.0)
    zoom: float = Field(ge=0.0)
    width_px: float = Field(gt=0.0)
    height_px: float = Field(gt=0.0)
    bearing: float = 0.0
    tilt: float = 0.0


# ============================================================================
# Configuration
# ============================================================================

# Keys used by older host payloads
_LEGACY_CONFIG_KEYS = {
    "minTrailPointDistance": "minTrailPointDistanceMeters",
    "maxDistanceFromCenter": "maxDistanceFromCenterKm",
}


class TrackingConfiguration(_FrozenModel):
    """
    Validated parameter set for a TrackRegistry.

    Built once at the boundary and replaced wholesale; all range checks
    happen here so consumers never see a partially valid configuration.
    """
    model_config = ConfigDict(extra="ignore")

    # Animation
    animation_duration_ms: int = Field(default=DEFAULT_ANIMATION_DURATION_MS, gt=0)
    enable_animation: bool = True
    animate_heading: bool = True

    # Liveness
    stale_threshold_ms: int = Field(default=DEFAULT_STALE_THRESHOLD_MS, gt=0)
    offline_threshold_ms: int = Field(default=DEFAULT_OFFLINE_THRESHOLD_MS, gt=0)
    expired_threshold_ms: Optional[int] = Field(default=None, gt=0)
    stationary_speed_threshold: float = Field(default=DEFAULT_STATIONARY_SPEED_THRESHOLD, ge=0.0)
    stationary_duration_ms: int = Field(default=DEFAULT_STATIONARY_DURATION_MS, gt=0)

    # Trail
    enable_trail: bool = False
    max_trail_points: int = Field(default=DEFAULT_MAX_TRAIL_POINTS, ge=1)
    min_trail_point_distance_meters: float = Field(default=DEFAULT_MIN_TRAIL_POINT_DISTANCE_M, ge=0.0)
    trail_gradient: bool = True
    trail_color: int = DEFAULT_TRAIL_COLOR
    trail_width: float = Field(default=DEFAULT_TRAIL_WIDTH, gt=0.0)

    # Prediction
    enable_prediction: bool = True
    prediction_window_ms: int = Field(default=DEFAULT_PREDICTION_WINDOW_MS, gt=0)

    # Display
    z_index: int = DEFAULT_Z_INDEX
    min_zoom_level: float = Field(default=DEFAULT_MIN_ZOOM_LEVEL, ge=0.0)
    max_distance_from_center_km: Optional[float] = Field(default=None, gt=0.0)

    @model_validator(mode="after")
    def _check_threshold_order(self) -> "TrackingConfiguration":
        if self.offline_threshold_ms < self.stale_threshold_ms:
            raise ValueError("offline_threshold_ms must be >= stale_threshold_ms")
        if self.expired_threshold_ms is not None and self.expired_threshold_ms < self.offline_threshold_ms:
            raise ValueError("expired_threshold_ms must be >= offline_threshold_ms")
        return self

    @classmethod
    def from_map(cls, payload: Mapping[str, Any]) -> "TrackingConfiguration":
        """
        Build a configuration from a host payload.

        Accepts camelCase or snake_case keys; unknown keys are ignored.

        Raises:
            pydantic.ValidationError: If any value violates its constraint
        """
        data = dict(payload)
        for legacy, current in _LEGACY_CONFIG_KEYS.items():
            if legacy in data and current not in data:
                data[current] = data.pop(legacy)
        return cls.model_validate(data)


# ============================================================================
# Snapshots and entity views
# ============================================================================

class TrailVertex(_FrozenModel):
    """Projected trail point with its gradient opacity."""
    x: float
    y: float
    opacity: float


class RenderSnapshot(_FrozenModel):
    """Immutable render-ready state of one entity for one tick."""
    id: str
    screen_x: Optional[float] = None
    screen_y: Optional[float] = None
    latitude: float
    longitude: float
    heading_degrees: float
    liveness: LivenessState
    animating: bool = False
    trail: Tuple[TrailVertex, ...] = ()
    title: str
    category: str
    color: str = Field(description="Marker color as #RRGGBB")
    icon_id: str
    opacity: float = 1.0
    z_index: int = DEFAULT_Z_INDEX

    @property
    def visible(self) -> bool:
        return self.screen_x is not None and self.screen_y is not None


class EntityState(_FrozenModel):
    """Read-only copy of a tracked entity handed out by the registry."""
    id: str
    title: str
    category: str
    current_fix: Optional[Fix] = None
    previous_fix: Optional[Fix] = None
    liveness: LivenessState = LivenessState.TRACKING
    show_trail: bool = False
    trail_capacity: Optional[int] = None
    trail: Tuple[TrailPoint, ...] = ()
    metadata: Dict[str, Any] = Field(default_factory=dict)
    icon_id: Optional[str] = None
    custom_color: Optional[int] = None
    last_known_heading: Optional[float] = None
    last_known_speed: Optional[float] = None


# ============================================================================
# Events
# ============================================================================

class StateChangeEvent(_FrozenModel):
    """Fired exactly once per liveness transition."""
    event_type: Literal["state_changed"] = "state_changed"
    id: str
    previous_liveness: LivenessState
    new_liveness: LivenessState


class PositionUpdatedEvent(_FrozenModel):
    """Fired for every fix the registry accepts."""
    event_type: Literal["position_updated"] = "position_updated"
    id: str
    fix: Fix


class MarkerExpiredEvent(_FrozenModel):
    """Fired after an entity reached EXPIRED and was removed."""
    event_type: Literal["marker_expired"] = "marker_expired"
    id: str
    last_fix: Optional[Fix] = None


# ============================================================================
# Fix outcomes
# ============================================================================

class FixStatus(str, Enum):
    """Result of applying one fix to the registry."""
    CREATED = "created"
    UPDATED = "updated"
    DUPLICATE = "duplicate"
    OUT_OF_ORDER = "out_of_order"
    REJECTED = "rejected"


@dataclass(frozen=True)
class FixOutcome:
    """What apply_fix did with a fix.

    Attributes:
        status: Outcome classification
        entity_id: Id carried by the fix
        reason: Why the fix was rejected, for REJECTED outcomes
    """
    status: FixStatus
    entity_id: str
    reason: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status in (FixStatus.CREATED, FixStatus.UPDATED)

    @property
    def rejected(self) -> bool:
        return self.status is FixStatus.REJECTED

    @property
    def ignored(self) -> bool:
        return self.status in (FixStatus.DUPLICATE, FixStatus.OUT_OF_ORDER)
