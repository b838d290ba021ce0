#!/usr/bin/env python3
"""
Replay a recorded fix log through the dynamic marker engine.

Reads position fixes (JSON lines or a JSON array), feeds them into a
TrackRegistry on a fixed render clock, reports liveness transitions and
optionally writes preview PNG frames of every Nth tick.

Usage:
    python main.py fixes.jsonl --tick-ms 100 --preview-dir frames --verbose
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field
from tqdm import tqdm

from constants import (
    DEFAULT_REPLAY_ZOOM,
    DEFAULT_TICK_INTERVAL_MS,
    PREVIEW_HEIGHT,
    PREVIEW_WIDTH,
)
from marker_tracking import (
    EntityState,
    Fix,
    FixStatus,
    MarkerExpiredEvent,
    RenderSnapshot,
    StateChangeEvent,
    TrackingConfiguration,
    TrackRegistry,
    Viewport,
)
from marker_tracking.data_models import display_fields_from_map
from preview_renderer import SnapshotRenderer, save_frame
from rich_console import (
    console,
    create_replay_progress,
    print_banner,
    print_completion_summary,
    print_config_summary,
    print_entity_table,
    print_error,
    print_phase,
    print_state_change,
    setup_rich_logging,
)

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


class ReplaySettings(BaseModel):
    """Validated command line settings."""
    input_file: str
    tracking_config: TrackingConfiguration = Field(default_factory=TrackingConfiguration)
    tick_interval_ms: int = Field(default=DEFAULT_TICK_INTERVAL_MS, gt=0)
    zoom: float = Field(default=DEFAULT_REPLAY_ZOOM, ge=0.0)
    center: Optional[Tuple[float, float]] = None
    width: int = Field(default=PREVIEW_WIDTH, gt=0)
    height: int = Field(default=PREVIEW_HEIGHT, gt=0)
    preview_dir: Optional[str] = None
    preview_every: int = Field(default=1, ge=1)
    tail_ms: Optional[int] = Field(default=None, ge=0)
    verbose: bool = False


@dataclass
class ReplayResult:
    """What happened during a replay."""
    tick_count: int = 0
    outcomes: Dict[FixStatus, int] = field(default_factory=dict)
    state_changes: List[StateChangeEvent] = field(default_factory=list)
    expired_ids: List[str] = field(default_factory=list)
    frames_written: int = 0
    final_snapshots: List[RenderSnapshot] = field(default_factory=list)
    entities: List[EntityState] = field(default_factory=list)

    def count(self, *statuses: FixStatus) -> int:
        return sum(self.outcomes.get(status, 0) for status in statuses)


# ============================================================================
# Loading
# ============================================================================

def _read_records(path: str) -> List[dict]:
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()

    stripped = text.lstrip()
    if stripped.startswith("["):
        try:
            records = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path}: invalid JSON ({e})") from None
        if not all(isinstance(r, dict) for r in records):
            raise ValueError(f"{path}: expected an array of objects")
        return records

    records = []
    for line_no, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path}:{line_no}: invalid JSON ({e})") from None
        if not isinstance(record, dict):
            raise ValueError(f"{path}:{line_no}: expected an object")
        records.append(record)
    return records


def load_fix_log(path: str, show_progress: bool = True) -> Tuple[List[Fix], Dict[str, Dict[str, Any]]]:
    """Load fixes and per-entity display properties from a fix log.

    Display properties (title, category, iconId, metadata, showTrail) may
    ride on any record; later records override earlier ones per entity.

    Args:
        path: Fix log path (JSON lines or a JSON array)
        show_progress: Show a tqdm bar while parsing

    Returns:
        (fixes sorted by timestamp, display properties keyed by entity id)

    Raises:
        ValueError: If a record cannot be parsed
        OSError: If the file cannot be read
    """
    records = _read_records(path)
    fixes = []
    display: Dict[str, Dict[str, Any]] = {}
    for index, record in enumerate(tqdm(records, desc="Parsing fixes", unit="fix",
                                        disable=not show_progress)):
        try:
            fix = Fix.from_map(record)
            fields = display_fields_from_map(record)
        except ValueError as e:
            raise ValueError(f"{path}: record {index + 1}: {e}") from None
        fixes.append(fix)
        if fields:
            display.setdefault(fix.id, {}).update(fields)
    # Stable for equal timestamps
    fixes.sort(key=lambda fix: fix.timestamp_ms)
    logger.debug(f"Loaded {len(fixes)} fixes for {len({f.id for f in fixes})} entities from {path}")
    return fixes, display


def load_fixes(path: str, show_progress: bool = True) -> List[Fix]:
    """Load fixes from a JSON-lines file or a JSON array, sorted by timestamp."""
    return load_fix_log(path, show_progress)[0]


def load_config(path: str) -> TrackingConfiguration:
    """Load a TrackingConfiguration from a JSON object file."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path}: invalid JSON ({e})") from None
    if not isinstance(payload, dict):
        raise ValueError(f"{path}: configuration must be a JSON object")
    return TrackingConfiguration.from_map(payload)


def auto_center(fixes: Sequence[Fix]) -> Tuple[float, float]:
    """Mean position of the valid fixes, used when no center is given."""
    valid = [fix for fix in fixes if fix.is_valid]
    if not valid:
        return 0.0, 0.0
    return (sum(f.lat for f in valid) / len(valid),
            sum(f.lon for f in valid) / len(valid))


# ============================================================================
# Replay
# ============================================================================

def replay_fixes(
    fixes: Sequence[Fix],
    config: TrackingConfiguration,
    viewport: Viewport,
    tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
    tail_ms: Optional[int] = None,
    renderer: Optional[SnapshotRenderer] = None,
    preview_dir: Optional[str] = None,
    preview_every: int = 1,
    on_tick: Optional[Callable[[int, float], None]] = None,
    on_state_change: Optional[Callable[[StateChangeEvent, float], None]] = None,
    display: Optional[Mapping[str, Dict[str, Any]]] = None,
) -> ReplayResult:
    """Drive a registry through a fix log on a fixed render clock.

    Every fix is applied on the first tick at or after its timestamp, then
    the registry is ticked. The clock runs from the first fix to the last
    fix plus tail_ms (default: the prediction window).

    Args:
        fixes: Fixes sorted by timestamp
        config: Registry configuration
        viewport: Fixed camera for the whole replay
        tick_interval_ms: Render clock step
        tail_ms: Extra time after the last fix
        renderer: Renders preview frames when preview_dir is set
        preview_dir: Directory for PNG frames
        preview_every: Write every Nth tick
        on_tick: Called with (tick_index, now_ms) after each tick
        on_state_change: Called with each liveness transition
        display: Display properties per entity id, passed with each fix

    Returns:
        ReplayResult with counters, events and final entity states
    """
    result = ReplayResult()
    if not fixes:
        return result

    registry = TrackRegistry(config)
    clock = {"now": 0.0}

    def listener(event) -> None:
        if isinstance(event, StateChangeEvent):
            result.state_changes.append(event)
            if on_state_change is not None:
                on_state_change(event, clock["now"])
        elif isinstance(event, MarkerExpiredEvent):
            result.expired_ids.append(event.id)

    registry.add_listener(listener)

    if preview_dir:
        os.makedirs(preview_dir, exist_ok=True)
        if renderer is None:
            renderer = SnapshotRenderer(int(viewport.width_px), int(viewport.height_px), config)

    if tail_ms is None:
        tail_ms = config.prediction_window_ms
    start_ms = fixes[0].timestamp_ms
    end_ms = fixes[-1].timestamp_ms + tail_ms

    next_fix = 0
    now_ms = start_ms
    while now_ms <= end_ms:
        clock["now"] = now_ms
        while next_fix < len(fixes) and fixes[next_fix].timestamp_ms <= now_ms:
            fix = fixes[next_fix]
            outcome = registry.apply_fix(fix, **(display or {}).get(fix.id, {}))
            result.outcomes[outcome.status] = result.outcomes.get(outcome.status, 0) + 1
            next_fix += 1

        snapshots = registry.tick(now_ms, viewport)
        if preview_dir and result.tick_count % preview_every == 0:
            frame_path = os.path.join(preview_dir, f"frame_{result.tick_count:06d}.png")
            save_frame(renderer.render(snapshots), frame_path)
            result.frames_written += 1

        result.final_snapshots = snapshots
        result.tick_count += 1
        if on_tick is not None:
            on_tick(result.tick_count, now_ms)
        now_ms += tick_interval_ms

    result.entities = registry.entities()
    return result


# ============================================================================
# CLI
# ============================================================================

def _parse_center(value: str) -> Tuple[float, float]:
    try:
        lat_text, lon_text = value.split(",")
        return float(lat_text), float(lon_text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got {value!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replay a fix log through the dynamic marker tracking engine."
    )
    parser.add_argument("input_file", help="Fix log: JSON lines or a JSON array of fixes")
    parser.add_argument("--config", help="JSON file with tracking configuration (camelCase keys)")
    parser.add_argument("--tick-ms", type=int, default=DEFAULT_TICK_INTERVAL_MS,
                        help="Render clock step in milliseconds")
    parser.add_argument("--tail-ms", type=int, default=None,
                        help="Keep ticking this long after the last fix (default: prediction window)")
    parser.add_argument("--zoom", type=float, default=DEFAULT_REPLAY_ZOOM, help="Viewport zoom level")
    parser.add_argument("--center", type=_parse_center, default=None,
                        help="Viewport center as LAT,LON (default: mean of fixes)")
    parser.add_argument("--width", type=int, default=PREVIEW_WIDTH, help="Viewport width in pixels")
    parser.add_argument("--height", type=int, default=PREVIEW_HEIGHT, help="Viewport height in pixels")
    parser.add_argument("--trail", action="store_true", help="Enable trails for all entities")
    parser.add_argument("--preview-dir", help="Write preview PNG frames to this directory")
    parser.add_argument("--preview-every", type=int, default=1, help="Write every Nth tick as a frame")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> ReplaySettings:
    """Parse and validate command line arguments.

    Raises:
        ValueError: If the configuration file or a setting is invalid
        OSError: If the configuration file cannot be read
    """
    args = build_parser().parse_args(argv)

    config = load_config(args.config) if args.config else TrackingConfiguration()
    if args.trail and not config.enable_trail:
        config = config.model_copy(update={"enable_trail": True})

    return ReplaySettings(
        input_file=args.input_file,
        tracking_config=config,
        tick_interval_ms=args.tick_ms,
        tail_ms=args.tail_ms,
        zoom=args.zoom,
        center=args.center,
        width=args.width,
        height=args.height,
        preview_dir=args.preview_dir,
        preview_every=args.preview_every,
        verbose=args.verbose,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        settings = parse_args(argv)
    except (ValueError, OSError) as e:
        print_error(f"Configuration error: {e}", hint="Check --config and numeric options")
        sys.exit(1)

    setup_rich_logging(settings.verbose)
    print_banner(__version__)

    print_phase(1, 2, "Loading fixes")
    try:
        fixes, display = load_fix_log(settings.input_file)
    except (ValueError, OSError) as e:
        print_error(str(e), hint="Each record needs id, lat, lon and timestampMs")
        sys.exit(1)

    if not fixes:
        print_error(f"No fixes found in {settings.input_file}")
        sys.exit(1)

    center_lat, center_lon = settings.center if settings.center else auto_center(fixes)
    try:
        viewport = Viewport(
            center_lat=center_lat,
            center_lon=center_lon,
            zoom=settings.zoom,
            width_px=settings.width,
            height_px=settings.height,
        )
    except ValueError as e:
        print_error(f"Invalid viewport: {e}")
        sys.exit(1)

    print_config_summary(settings.tracking_config, settings.input_file, len(fixes),
                         settings.tick_interval_ms, settings.preview_dir)

    print_phase(2, 2, "Replaying")
    tail_ms = settings.tail_ms if settings.tail_ms is not None else settings.tracking_config.prediction_window_ms
    span_ms = fixes[-1].timestamp_ms - fixes[0].timestamp_ms + tail_ms
    total_ticks = span_ms // settings.tick_interval_ms + 1

    with create_replay_progress() as progress:
        task = progress.add_task("Ticking", total=total_ticks, status="")

        def on_tick(tick_index: int, now_ms: float) -> None:
            progress.update(task, completed=tick_index, status=f"t={int(now_ms)}")

        def on_state_change(event: StateChangeEvent, now_ms: float) -> None:
            if settings.verbose:
                print_state_change(event, now_ms)

        result = replay_fixes(
            fixes,
            settings.tracking_config,
            viewport,
            tick_interval_ms=settings.tick_interval_ms,
            tail_ms=tail_ms,
            preview_dir=settings.preview_dir,
            preview_every=settings.preview_every,
            on_tick=on_tick,
            on_state_change=on_state_change,
            display=display,
        )

    console.print()
    print_entity_table(result.entities)
    print_completion_summary(
        tick_count=result.tick_count,
        fixes_accepted=result.count(FixStatus.CREATED, FixStatus.UPDATED),
        fixes_ignored=result.count(FixStatus.DUPLICATE, FixStatus.OUT_OF_ORDER),
        fixes_rejected=result.count(FixStatus.REJECTED),
        state_changes=len(result.state_changes),
        expired=len(result.expired_ids),
        frames_written=result.frames_written,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
