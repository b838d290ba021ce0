"""
Tests for Rich console configuration and output helpers.

Tests the console setup, progress bar creation, and styled output functions.
"""

import pytest
import logging

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from marker_tracking.data_models import (
    EntityState,
    Fix,
    LivenessState,
    StateChangeEvent,
    TrackingConfiguration,
)
from rich_console import (
    console,
    TRACKING_THEME,
    setup_rich_logging,
    create_replay_progress,
    format_state_change,
    print_banner,
    print_config_summary,
    print_entity_table,
    print_phase,
    print_state_change,
    print_completion_summary,
    print_error,
)


class TestConsoleSetup:
    """Tests for console initialization."""

    def test_console_exists(self):
        """Console should be initialized."""
        assert console is not None

    def test_theme_has_required_styles(self):
        """Theme should define general styles and one per liveness state."""
        required_styles = ["info", "warning", "error", "success", "highlight", "entity"]
        required_styles += [state.value for state in LivenessState]
        for style in required_styles:
            assert style in TRACKING_THEME.styles, f"Missing style: {style}"


class TestLogging:
    """Tests for Rich logging setup."""

    def test_setup_creates_logger(self):
        """Setup should configure root logger with WARNING level by default."""
        setup_rich_logging(verbose=False)
        logger = logging.getLogger()
        assert logger.level == logging.WARNING

    def test_verbose_sets_debug(self):
        """Verbose flag should set DEBUG level."""
        setup_rich_logging(verbose=True)
        logger = logging.getLogger()
        assert logger.level == logging.DEBUG


class TestProgressBars:
    """Tests for progress bar creation."""

    def test_create_replay_progress(self):
        """Replay progress should track a status field."""
        progress = create_replay_progress()
        with progress:
            task_id = progress.add_task("Ticking", total=100, status="")
            progress.update(task_id, completed=50, status="t=5000")
            assert progress.tasks[0].completed == 50


class TestOutputFunctions:
    """Tests for styled output functions."""

    @pytest.fixture
    def state_change(self):
        return StateChangeEvent(id="bus-7", previous_liveness=LivenessState.TRACKING,
                                new_liveness=LivenessState.STALE)

    def test_print_banner_no_error(self):
        """Print banner should not raise errors."""
        print_banner("1.0.0")

    def test_print_config_summary_no_error(self):
        """Print config summary should not raise errors."""
        print_config_summary(
            TrackingConfiguration(enable_trail=True, expired_threshold_ms=60000),
            input_file="fixes.jsonl",
            fix_count=1200,
            tick_interval_ms=100,
            preview_dir="frames",
        )

    def test_print_config_summary_disabled_features(self):
        """Config summary handles disabled animation and prediction."""
        print_config_summary(
            TrackingConfiguration(enable_animation=False, enable_prediction=False),
            input_file="fixes.json",
            fix_count=0,
            tick_interval_ms=50,
        )

    def test_print_phase_no_error(self):
        """Print phase should not raise errors."""
        print_phase(1, 2, "Testing phase")

    def test_format_state_change(self, state_change):
        """State change lines name the entity and both states."""
        line = format_state_change(state_change, now_ms=12000)
        assert "bus-7" in line
        assert "tracking" in line
        assert "stale" in line
        assert "12000" in line

    def test_print_state_change_no_error(self, state_change):
        """Print state change should not raise errors."""
        print_state_change(state_change)

    def test_print_entity_table_no_error(self):
        """Entity table handles entities with and without fixes."""
        print_entity_table([
            EntityState(id="a", title="a", category="vehicle",
                        current_fix=Fix(id="a", lat=1.0, lon=2.0, timestamp_ms=5)),
            EntityState(id="b", title="b", category="default"),
        ])

    def test_print_completion_summary_no_error(self):
        """Print completion summary should not raise errors."""
        print_completion_summary(
            tick_count=100,
            fixes_accepted=40,
            fixes_ignored=2,
            fixes_rejected=1,
            state_changes=3,
            expired=1,
            frames_written=10,
        )

    def test_print_completion_summary_optional_args(self):
        """Completion summary should work without optional args."""
        print_completion_summary(
            tick_count=1,
            fixes_accepted=1,
            fixes_ignored=0,
            fixes_rejected=0,
            state_changes=0,
            expired=0,
        )

    def test_print_error_no_error(self):
        """Print error should not raise errors."""
        print_error("Test error message")

    def test_print_error_with_hint(self):
        """Print error with hint should not raise errors."""
        print_error("Test error", hint="Try this instead")


class TestMarkupInEntityData:
    """Entity ids and categories come from the wire and may contain brackets."""

    def test_bracketed_id_in_state_change(self):
        """A closing tag in an id is printed literally."""
        event = StateChangeEvent(id="bus[/]", previous_liveness=LivenessState.TRACKING,
                                 new_liveness=LivenessState.STALE)
        with console.capture() as capture:
            print_state_change(event, 100)
        assert "bus[/]" in capture.get()

    def test_bracketed_id_and_category_in_table(self):
        """The entity table escapes ids and categories."""
        with console.capture() as capture:
            print_entity_table([
                EntityState(id="[bold]x", title="x", category="van[/]",
                            current_fix=Fix(id="[bold]x", lat=1.0, lon=2.0, timestamp_ms=5)),
            ])
        output = capture.get()
        assert "[bold]x" in output
        assert "van[/]" in output

    def test_bracketed_error_message(self):
        """Error text quoting a payload is printed literally."""
        with console.capture() as capture:
            print_error("record 3: metadata must be an object, got [/]")
        assert "got [/]" in capture.get()
