"""
Rich console configuration for the marker replay tool.

Provides terminal output with progress bars, panels, liveness-styled state
changes and logging through RichHandler.
"""

import logging
from typing import Iterable, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme
from rich.panel import Panel
from rich.table import Table
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeElapsedColumn,
    MofNCompleteColumn,
)

from marker_tracking.data_models import EntityState, StateChangeEvent, TrackingConfiguration

# One style per liveness state, named after the state value
TRACKING_THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "highlight": "bold magenta",
    "muted": "dim",
    "entity": "bold blue",
    "tracking": "bold green",
    "stationary": "cyan",
    "stale": "yellow",
    "offline": "red",
    "expired": "dim red",
})

# Global console instance
console = Console(theme=TRACKING_THEME)


def setup_rich_logging(verbose: bool = False) -> None:
    """
    Configure logging to use Rich handler.

    Args:
        verbose: Enable DEBUG level logging with full details
    """
    level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                show_time=verbose,
                show_path=verbose,
                rich_tracebacks=True,
                tracebacks_show_locals=verbose,
                markup=False,
            )
        ],
        force=True,  # Override any existing configuration
    )


def create_replay_progress() -> Progress:
    """
    Create a progress bar for replay ticks with a live entity count.

    Returns:
        Progress instance; tasks need a ``status`` field
    """
    return Progress(
        SpinnerColumn("dots"),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(bar_width=40, style="cyan", complete_style="green"),
        TaskProgressColumn(),
        MofNCompleteColumn(),
        TextColumn("[dim]{task.fields[status]}[/]"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )


def print_banner(version: str = "1.0.0") -> None:
    """Print a styled startup banner."""
    console.print("\n[bold cyan]Dynamic Marker Replay[/]")
    console.print("[dim]Interpolation, dead reckoning and liveness for moving map markers[/]")
    console.print(f"[muted]Version {version}[/]\n")


def print_config_summary(
    config: TrackingConfiguration,
    input_file: str,
    fix_count: int,
    tick_interval_ms: int,
    preview_dir: Optional[str] = None,
) -> None:
    """
    Print a styled configuration summary panel.

    Args:
        config: Active tracking configuration
        input_file: Fix log path
        fix_count: Number of fixes loaded
        tick_interval_ms: Render clock step
        preview_dir: Directory for preview frames, if enabled
    """
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Input", f"[green]{escape(input_file)}[/]")
    table.add_row("Fixes", f"[highlight]{fix_count:,}[/]")
    table.add_row("Tick", f"{tick_interval_ms} ms")

    animation = f"{config.animation_duration_ms} ms" if config.enable_animation else "[dim]off[/]"
    table.add_row("Animation", animation)
    prediction = f"{config.prediction_window_ms} ms" if config.enable_prediction else "[dim]off[/]"
    table.add_row("Prediction", prediction)

    thresholds = f"stale {config.stale_threshold_ms} ms, offline {config.offline_threshold_ms} ms"
    if config.expired_threshold_ms is not None:
        thresholds += f", expired {config.expired_threshold_ms} ms"
    table.add_row("Liveness", thresholds)

    if config.enable_trail:
        table.add_row("Trail", f"{config.max_trail_points} pts, >= {config.min_trail_point_distance_meters:g} m")
    else:
        table.add_row("Trail", "[dim]off[/]")

    table.add_row("Preview", f"[green]{escape(preview_dir)}[/]" if preview_dir else "[dim]none[/]")

    panel = Panel(
        table,
        title="[bold]Configuration[/]",
        border_style="cyan",
        padding=(1, 2),
    )
    console.print(panel)
    console.print()


def print_phase(phase_num: int, total_phases: int, description: str) -> None:
    """Print a phase header for multi-step processing."""
    console.print(
        f"\n[bold cyan]Step {phase_num}/{total_phases}:[/] [bold]{description}[/]"
    )


def format_state_change(event: StateChangeEvent, now_ms: Optional[float] = None) -> str:
    """Markup line for one liveness transition."""
    prev = event.previous_liveness.value
    new = event.new_liveness.value
    prefix = f"[muted]{int(now_ms)}[/] " if now_ms is not None else ""
    return f"{prefix}[entity]{escape(event.id)}[/]: [{prev}]{prev}[/] -> [{new}]{new}[/]"


def print_state_change(event: StateChangeEvent, now_ms: Optional[float] = None) -> None:
    console.print(format_state_change(event, now_ms))


def print_entity_table(entities: Iterable[EntityState]) -> None:
    """
    Print the final state of every tracked entity.

    Args:
        entities: Frozen entity states from the registry
    """
    table = Table(title="Tracked Entities", header_style="bold cyan")
    table.add_column("Id", style="entity")
    table.add_column("Category")
    table.add_column("State")
    table.add_column("Last Fix", justify="right")
    table.add_column("Position", justify="right")
    table.add_column("Trail", justify="right")

    for entity in entities:
        state = entity.liveness.value
        fix = entity.current_fix
        table.add_row(
            escape(entity.id),
            escape(entity.category),
            f"[{state}]{state}[/]",
            str(fix.timestamp_ms) if fix else "-",
            f"{fix.lat:.5f}, {fix.lon:.5f}" if fix else "-",
            str(len(entity.trail)),
        )
    console.print(table)


def print_completion_summary(
    tick_count: int,
    fixes_accepted: int,
    fixes_ignored: int,
    fixes_rejected: int,
    state_changes: int,
    expired: int,
    frames_written: Optional[int] = None,
) -> None:
    """Print a styled completion summary."""
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold green")

    table.add_row("Ticks", f"{tick_count:,}")
    table.add_row("Fixes Accepted", f"{fixes_accepted:,}")
    if fixes_ignored:
        table.add_row("Fixes Ignored", f"{fixes_ignored:,}")
    if fixes_rejected:
        table.add_row("Fixes Rejected", f"[warning]{fixes_rejected:,}[/]")
    table.add_row("State Changes", f"{state_changes:,}")
    table.add_row("Expired", f"{expired:,}")
    if frames_written:
        table.add_row("Preview Frames", f"{frames_written:,}")

    panel = Panel(
        table,
        title="[bold green]Complete[/]",
        border_style="green",
        padding=(1, 2),
    )
    console.print()
    console.print(panel)


def print_error(message: str, hint: Optional[str] = None) -> None:
    """
    Print a styled error message.

    Args:
        message: Error message
        hint: Optional hint for resolution
    """
    console.print(f"\n[error]Error:[/] {escape(message)}")
    if hint:
        console.print(f"[muted]Hint: {escape(hint)}[/]")
