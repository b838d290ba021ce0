"""
Tests for the replay CLI: fix log loading, settings parsing and replay.
"""

import json

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import ORIGIN_LAT, ORIGIN_LON, make_fix
from main import (
    ReplaySettings,
    auto_center,
    load_config,
    load_fix_log,
    load_fixes,
    main,
    parse_args,
    replay_fixes,
)
from marker_tracking import FixStatus, LivenessState, TrackingConfiguration


def write_jsonl(path, records):
    path.write_text("\n".join(json.dumps(r) for r in records) + "\n", encoding="utf-8")
    return str(path)


@pytest.fixture
def fix_log(tmp_path):
    """Small JSON-lines log for two vehicles, out of order on disk."""
    records = [
        {"id": "bus", "lat": ORIGIN_LAT + 0.001, "lon": ORIGIN_LON, "heading": 0,
         "speed": 5, "timestampMs": 1000},
        {"id": "bus", "lat": ORIGIN_LAT, "lon": ORIGIN_LON, "heading": 0,
         "speed": 5, "timestampMs": 0},
        {"markerId": "van", "latitude": ORIGIN_LAT, "lng": ORIGIN_LON + 0.001,
         "timestamp": 500},
    ]
    return write_jsonl(tmp_path / "fixes.jsonl", records)


class TestLoadFixes:
    """Tests for reading fix logs."""

    def test_jsonl_sorted_by_time(self, fix_log):
        """Fixes are parsed and sorted by timestamp."""
        fixes = load_fixes(fix_log, show_progress=False)
        assert [f.timestamp_ms for f in fixes] == [0, 500, 1000]
        assert fixes[1].id == "van"

    def test_json_array(self, tmp_path):
        """A JSON array of fixes is accepted."""
        path = tmp_path / "fixes.json"
        path.write_text(json.dumps([{"id": "a", "lat": 1, "lon": 2, "timestampMs": 3}]))
        fixes = load_fixes(str(path), show_progress=False)
        assert fixes[0].lat == 1.0

    def test_blank_and_comment_lines_skipped(self, tmp_path):
        """Blank lines and # comments are ignored."""
        path = tmp_path / "fixes.jsonl"
        path.write_text('# recorded\n\n{"id": "a", "lat": 1, "lon": 2, "timestampMs": 3}\n')
        assert len(load_fixes(str(path), show_progress=False)) == 1

    def test_bad_json_reports_line(self, tmp_path):
        """Invalid JSON raises ValueError naming the line."""
        path = tmp_path / "fixes.jsonl"
        path.write_text('{"id": "a", "lat": 1, "lon": 2, "timestampMs": 3}\n{oops\n')
        with pytest.raises(ValueError, match=":2:"):
            load_fixes(str(path), show_progress=False)

    def test_missing_field_reports_record(self, tmp_path):
        """Records without required keys raise ValueError."""
        path = write_jsonl(tmp_path / "fixes.jsonl", [{"id": "a", "lat": 1, "timestampMs": 0}])
        with pytest.raises(ValueError, match="record 1"):
            load_fixes(path, show_progress=False)

    def test_display_fields_collected(self, tmp_path):
        """Titles and categories ride on records and merge per entity."""
        path = write_jsonl(tmp_path / "fixes.jsonl", [
            {"id": "bus", "lat": 1, "lon": 2, "timestampMs": 0, "title": "Bus 7",
             "category": "vehicle"},
            {"id": "bus", "lat": 1, "lon": 2, "timestampMs": 100, "iconId": "bus"},
            {"id": "van", "lat": 1, "lon": 2, "timestampMs": 50},
        ])
        fixes, display = load_fix_log(path, show_progress=False)
        assert len(fixes) == 3
        assert display == {"bus": {"title": "Bus 7", "category": "vehicle", "icon_id": "bus"}}

    def test_missing_file(self, tmp_path):
        """Missing files raise OSError."""
        with pytest.raises(OSError):
            load_fixes(str(tmp_path / "nope.jsonl"), show_progress=False)


class TestLoadConfig:
    """Tests for configuration files."""

    def test_camel_case_file(self, tmp_path):
        """Configuration files use host key names."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"enableTrail": True, "staleThresholdMs": 5000}))
        config = load_config(str(path))
        assert config.enable_trail
        assert config.stale_threshold_ms == 5000

    def test_invalid_values(self, tmp_path):
        """Constraint violations raise ValueError."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"animationDurationMs": -1}))
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_not_an_object(self, tmp_path):
        """Non-object JSON is rejected."""
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError):
            load_config(str(path))


class TestParseArgs:
    """Tests for command line parsing."""

    def test_defaults(self):
        """Only the input file is required."""
        settings = parse_args(["fixes.jsonl"])
        assert isinstance(settings, ReplaySettings)
        assert settings.tick_interval_ms == 100
        assert settings.center is None
        assert settings.tracking_config == TrackingConfiguration()

    def test_options(self):
        """Options map onto settings."""
        settings = parse_args(["fixes.jsonl", "--tick-ms", "250", "--center", "1.5,-2.5",
                               "--zoom", "12", "--trail", "--preview-every", "5", "-v"])
        assert settings.tick_interval_ms == 250
        assert settings.center == (1.5, -2.5)
        assert settings.zoom == 12.0
        assert settings.tracking_config.enable_trail
        assert settings.preview_every == 5
        assert settings.verbose

    def test_invalid_tick(self):
        """Non-positive ticks are rejected."""
        with pytest.raises(ValueError):
            parse_args(["fixes.jsonl", "--tick-ms", "0"])

    def test_bad_center(self):
        """Malformed centers exit with a usage error."""
        with pytest.raises(SystemExit):
            parse_args(["fixes.jsonl", "--center", "north"])


class TestReplay:
    """Tests for replaying fixes on a render clock."""

    def test_replay_counts(self, fix_log, viewport):
        """Replay applies every fix and ticks through the tail."""
        fixes = load_fixes(fix_log, show_progress=False)
        result = replay_fixes(fixes, TrackingConfiguration(), viewport, tick_interval_ms=100,
                              tail_ms=500)
        assert result.tick_count == 16
        assert result.count(FixStatus.CREATED) == 2
        assert result.count(FixStatus.UPDATED) == 1
        assert {e.id for e in result.entities} == {"bus", "van"}

    def test_replay_state_changes(self, viewport):
        """Liveness transitions are collected and reported."""
        seen = []
        result = replay_fixes(
            [make_fix("a", timestamp_ms=0)],
            TrackingConfiguration(expired_threshold_ms=40000),
            viewport,
            tick_interval_ms=1000,
            tail_ms=40000,
            on_state_change=lambda event, now: seen.append((event.new_liveness, now)),
        )
        assert [state for state, _ in seen] == [LivenessState.STALE, LivenessState.OFFLINE,
                                                LivenessState.EXPIRED]
        assert seen[0][1] == 10000
        assert result.expired_ids == ["a"]
        assert result.entities == []

    def test_replay_applies_display_fields(self, viewport):
        """Display properties reach the entity from its first fix."""
        result = replay_fixes([make_fix("bus", timestamp_ms=0)], TrackingConfiguration(), viewport,
                              tail_ms=0, display={"bus": {"title": "Bus 7", "category": "vehicle"}})
        assert result.final_snapshots[0].title == "Bus 7"
        assert result.entities[0].category == "vehicle"

    def test_empty_replay(self, viewport):
        """No fixes, no ticks."""
        assert replay_fixes([], TrackingConfiguration(), viewport).tick_count == 0

    def test_preview_frames(self, fix_log, viewport, tmp_path):
        """Every Nth tick is written as a PNG."""
        frames_dir = tmp_path / "frames"
        fixes = load_fixes(fix_log, show_progress=False)
        result = replay_fixes(fixes, TrackingConfiguration(), viewport, tick_interval_ms=100,
                              tail_ms=0, preview_dir=str(frames_dir), preview_every=5)
        assert result.tick_count == 11
        assert result.frames_written == 3
        assert sorted(os.listdir(frames_dir)) == ["frame_000000.png", "frame_000005.png",
                                                  "frame_000010.png"]

    def test_auto_center(self):
        """The default center is the mean of the valid fixes."""
        fixes = [make_fix(lat=10.0, lon=20.0), make_fix(lat=12.0, lon=22.0),
                 make_fix(lat=95.0, lon=0.0)]
        assert auto_center(fixes) == (11.0, 21.0)


class TestMain:
    """Tests for the CLI entry point."""

    def test_runs(self, fix_log):
        """A valid log replays and returns 0."""
        assert main([fix_log, "--tick-ms", "200"]) == 0

    def test_missing_input_exits(self, tmp_path):
        """An unreadable log exits with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            main([str(tmp_path / "missing.jsonl")])
        assert exc_info.value.code == 1

    def test_bad_config_exits(self, fix_log, tmp_path):
        """An invalid configuration exits with status 1."""
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"maxTrailPoints": 0}))
        with pytest.raises(SystemExit) as exc_info:
            main([fix_log, "--config", str(config_path)])
        assert exc_info.value.code == 1

    def test_bracketed_id_runs(self, tmp_path):
        """Ids containing markup characters replay with verbose transitions."""
        path = write_jsonl(tmp_path / "fixes.jsonl", [
            {"id": "bus[/]", "lat": 1, "lon": 2, "timestampMs": 0, "category": "[bold]"},
        ])
        assert main([path, "--tick-ms", "1000", "--tail-ms", "11000", "-v"]) == 0
