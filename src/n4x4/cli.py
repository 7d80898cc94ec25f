"""CLI entry point for n4x4.

Usage:
    n4x4 plan                          # Show the interval plan
    n4x4 run                           # Run a workout in the terminal
    n4x4 settings --intervals 4 --high 4
    n4x4 log                           # List completed workouts
    n4x4 log-add --type Run --notes "Hill repeats"
    n4x4 reminders --export reminders.ics
    n4x4 heart-rate --age 40
    n4x4 config                        # Set up Intervals.icu credentials
    n4x4 trends                        # VO₂ max samples from Intervals.icu
"""

import math
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from n4x4.config import _LOCAL_ENV, AppSettings
from n4x4.controller import WorkoutController
from n4x4.health import IntervalsClient, IntervalsHealthService
from n4x4.heart_rate import high_intensity_target, max_heart_rate, recovery_target
from n4x4.logger import setup_logger
from n4x4.models.workout import IntervalKind, ReminderMode, WorkoutType
from n4x4.permissions import Capability
from n4x4.reminders.calendar_export import reminders_to_ics
from n4x4.reminders.scheduler import weekday_title
from n4x4.services import ConsoleNotificationService, JsonFileStore, TerminalBell
from n4x4.timer_engine import TimerState

app = typer.Typer(
    name="n4x4",
    help="Norwegian 4x4 interval timer with workout log and reminders.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)

# A tick arriving this late means the process was suspended (laptop lid, ^Z).
_SUSPEND_GAP = timedelta(seconds=5)
_TICK_SECONDS = 0.25

_KIND_STYLE = {
    IntervalKind.WARMUP: "yellow",
    IntervalKind.HIGH_INTENSITY: "red",
    IntervalKind.REST: "green",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now().astimezone()


def _get_settings() -> AppSettings:
    try:
        return AppSettings()
    except Exception as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}")
        err_console.print("Check the N4X4_* variables in your environment or .env file.")
        raise typer.Exit(1) from None


def _controller(settings: AppSettings) -> WorkoutController:
    health = None
    if settings.intervals_api_key is not None:
        health = IntervalsHealthService(
            IntervalsClient(
                api_key=settings.intervals_api_key,
                athlete_id=settings.intervals_athlete_id,
                base_url=settings.intervals_base_url,
            )
        )
    return WorkoutController(
        store=JsonFileStore(settings.data_file),
        notifications=ConsoleNotificationService(),
        health=health,
        alarm=TerminalBell(),
    )


def format_time(seconds: float) -> str:
    """MM:SS, rounding up so a countdown never shows 00:00 while time is left."""
    total = max(int(math.ceil(seconds)), 0)
    return f"{total // 60 % 60:02d}:{total % 60:02d}"


def _interval_label(ctl: WorkoutController) -> str:
    interval = ctl.engine.current_interval
    if interval is None:
        return "—"
    if interval.kind is IntervalKind.WARMUP:
        return interval.name
    total = ctl.settings.number_of_intervals
    return f"{interval.name} ({ctl.engine.round_number}/{total})"


def _timer_panel(ctl: WorkoutController) -> Panel:
    engine = ctl.engine
    interval = engine.current_interval
    style = _KIND_STYLE[interval.kind] if interval else "white"
    upcoming = engine.next_interval
    lines = [
        f"[bold {style}]{_interval_label(ctl)}[/bold {style}]",
        f"[bold]{format_time(engine.time_remaining)}[/bold]",
        f"[dim]Next: {upcoming.name if upcoming else 'finish'}[/dim]",
        "[dim]Ctrl-C to pause[/dim]",
    ]
    return Panel("\n".join(lines), title="N4x4", border_style=style, expand=False)


def _drive(ctl: WorkoutController) -> None:
    """Tick the running timer until it finishes. Raises KeyboardInterrupt on ^C."""
    last = _now()
    with Live(_timer_panel(ctl), console=console, refresh_per_second=4) as live:
        while ctl.engine.state is TimerState.RUNNING:
            time.sleep(_TICK_SECONDS)
            now = _now()
            if now - last > _SUSPEND_GAP:
                # Catch up quietly rather than replaying alarms from the gap
                ctl.resume_from_background(now)
            else:
                ctl.tick(now)
            last = now
            live.update(_timer_panel(ctl))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    settings = _get_settings()
    setup_logger("DEBUG" if verbose else settings.log_level)


@app.command()
def config(
    show: Annotated[
        bool,
        typer.Option("--show", help="Show current configuration."),
    ] = False,
) -> None:
    """Set up Intervals.icu credentials for health sync and trends.

    Credentials are saved to [cyan].env[/cyan] in the current directory.
    """
    if show:
        if _LOCAL_ENV.exists():
            text = _LOCAL_ENV.read_text()
            console.print(Panel(text, title=str(_LOCAL_ENV), border_style="blue"))
        else:
            console.print(
                f"[yellow]No config found at {_LOCAL_ENV}. "
                "Run [bold]n4x4 config[/bold] to create it.[/yellow]"
            )
        return

    console.print(
        Panel(
            "n4x4 can save finished workouts to [bold]Intervals.icu[/bold] and read "
            "your VO₂ max trend from it.\n\n"
            "Find your API key at:\n"
            "  [cyan]https://intervals.icu[/cyan] → [bold]Settings[/bold] → "
            "[bold]Developer Settings[/bold] → Generate API Key\n\n"
            "Your athlete ID appears in your profile URL:\n"
            "  [cyan]https://intervals.icu/i[bold]12345[/bold][/cyan]"
            "  ←  athlete ID is [bold]i12345[/bold]",
            title="Intervals.icu Setup",
            border_style="blue",
        )
    )

    api_key = typer.prompt("API key").strip()
    athlete_id = typer.prompt("Athlete ID").strip()
    data_file = typer.prompt(
        "Where to keep settings and the workout log",
        default=str(Path.home() / ".n4x4.json"),
    ).strip()

    lines = [
        f"N4X4_INTERVALS_API_KEY={api_key}\n",
        f"N4X4_INTERVALS_ATHLETE_ID={athlete_id}\n",
        f"N4X4_DATA_FILE={data_file}\n",
    ]
    _LOCAL_ENV.write_text("".join(lines))
    console.print(f"[green]✓ Configuration saved to {_LOCAL_ENV}[/green]")


@app.command()
def plan() -> None:
    """Show the interval plan built from your settings."""
    ctl = _controller(_get_settings())
    workout = ctl.engine.plan

    table = Table(title=f"Workout plan ({len(workout)} intervals)")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Interval", style="bold")
    table.add_column("Duration", justify="right")
    table.add_column("Starts at", justify="right", style="cyan")

    elapsed = 0.0
    for index, interval in enumerate(workout.intervals, start=1):
        table.add_row(
            str(index),
            f"[{_KIND_STYLE[interval.kind]}]{interval.name}[/{_KIND_STYLE[interval.kind]}]",
            format_time(interval.duration),
            format_time(elapsed),
        )
        elapsed += interval.duration

    console.print(table)
    console.print(f"Total: [bold]{int(workout.total_duration // 60)}m[/bold]")


@app.command()
def run(
    log_after: Annotated[
        bool,
        typer.Option("--log/--no-log", help="Offer to log the workout when it finishes."),
    ] = True,
) -> None:
    """Run a workout in the terminal.

    Press [bold]Ctrl-C[/bold] to pause; you can then resume, skip the current
    interval or quit. Time keeps counting against the wall clock, so a
    suspended terminal catches up when it wakes.
    """
    ctl = _controller(_get_settings())
    ctl.start(_now())

    while ctl.engine.state is not TimerState.FINISHED:
        try:
            _drive(ctl)
        except KeyboardInterrupt:
            ctl.pause(_now())
            choice = typer.prompt(
                "Paused — [r]esume, [s]kip interval, [q]uit", default="r"
            ).strip().lower()
            if choice.startswith("q"):
                ctl.reset()
                console.print("[yellow]Workout abandoned.[/yellow]")
                raise typer.Exit(0) from None
            if choice.startswith("s"):
                ctl.skip(_now())
            if ctl.engine.state is not TimerState.FINISHED:
                ctl.pause(_now())

    console.print("[bold green]Workout Complete![/bold green]")
    if not log_after or not typer.confirm("Log this workout?", default=True):
        ctl.reset()
        return

    raw_type = typer.prompt("Workout type", default=WorkoutType.NORWEGIAN_4X4.value)
    notes = typer.prompt("Notes", default="", show_default=False)
    entry = ctl.save_workout_log_entry(_now(), WorkoutType.from_legacy(raw_type), notes)
    console.print(f"[green]✓ Logged {entry.workout_type.value}.[/green]")


@app.command()
def settings(
    show: Annotated[
        bool, typer.Option("--show", help="Only show the current settings.")
    ] = False,
    intervals: Annotated[
        int | None, typer.Option("--intervals", help="Number of high-intensity intervals (1-10).")
    ] = None,
    warmup: Annotated[
        int | None, typer.Option("--warmup", help="Warm-up minutes (0-10, 0 = none).")
    ] = None,
    high: Annotated[
        int | None, typer.Option("--high", help="High-intensity minutes (1-10).")
    ] = None,
    rest: Annotated[
        int | None, typer.Option("--rest", help="Rest minutes (1-10).")
    ] = None,
    alarm: Annotated[
        bool | None, typer.Option("--alarm/--no-alarm", help="Ring at each interval end.")
    ] = None,
    notifications: Annotated[
        bool | None,
        typer.Option("--notifications/--no-notifications", help="Notify at each interval start."),
    ] = None,
    reminders: Annotated[
        bool | None,
        typer.Option("--reminders/--no-reminders", help="Workout reminder notifications."),
    ] = None,
    reminder_mode: Annotated[
        ReminderMode | None, typer.Option("--reminder-mode", help="Reminder schedule.")
    ] = None,
    reminder_days: Annotated[
        int | None, typer.Option("--reminder-days", help="Every X days mode: X (1-30).")
    ] = None,
    reminder_weekday: Annotated[
        int | None,
        typer.Option("--reminder-weekday", help="Weekly mode: 1 = Sunday … 7 = Saturday."),
    ] = None,
    health: Annotated[
        bool | None, typer.Option("--health/--no-health", help="Sync workouts to Intervals.icu.")
    ] = None,
    age: Annotated[
        int | None, typer.Option("--age", help="Your age, for heart-rate targets.")
    ] = None,
    reset_defaults: Annotated[
        bool, typer.Option("--reset-defaults", help="Restore default workout settings.")
    ] = False,
) -> None:
    """View or change workout settings.

    Out-of-range values are clamped to the nearest allowed value.

    [dim]Examples:[/dim]
        n4x4 settings --intervals 4 --warmup 5 --high 4 --rest 3
        n4x4 settings --reminders --reminder-mode weekly_weekday --reminder-weekday 2
    """
    ctl = _controller(_get_settings())
    now = _now()

    if reset_defaults:
        typer.confirm("Reset all workout settings to their defaults?", abort=True)
        ctl.reset_settings_to_defaults(now)

    candidates: dict[str, object | None] = {
        "number_of_intervals": intervals,
        "warmup_duration": warmup * 60 if warmup is not None else None,
        "high_intensity_duration": high * 60 if high is not None else None,
        "rest_duration": rest * 60 if rest is not None else None,
        "alarm_enabled": alarm,
        "notifications_enabled": notifications,
        "workout_reminders_enabled": reminders,
        "workout_reminder_mode": reminder_mode,
        "workout_reminder_days": reminder_days,
        "workout_reminder_weekday": reminder_weekday,
        "health_enabled": health,
        "user_age": age,
    }
    changes = {name: value for name, value in candidates.items() if value is not None}
    if changes and not show:
        changed = ctl.update_settings(now, **changes)
        if changed:
            console.print(f"[green]✓ Updated {', '.join(sorted(changed))}[/green]")

    s = ctl.settings
    table = Table(title="Workout settings")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Intervals", str(s.number_of_intervals))
    table.add_row("Warm-up", f"{int(s.warmup_duration // 60)} min")
    table.add_row("High intensity", f"{int(s.high_intensity_duration // 60)} min")
    table.add_row("Rest", f"{int(s.rest_duration // 60)} min")
    table.add_row("Alarm", "on" if s.alarm_enabled else "off")
    table.add_row("Interval notifications", "on" if s.notifications_enabled else "off")
    table.add_row("Reminders", "on" if s.workout_reminders_enabled else "off")
    table.add_row("Reminder schedule", s.workout_reminder_mode.title)
    if s.workout_reminder_mode is ReminderMode.EVERY_X_DAYS:
        table.add_row("Every", f"{s.workout_reminder_days} day(s)")
    else:
        table.add_row("Reminder day", weekday_title(s.workout_reminder_weekday))
    table.add_row("Intervals.icu sync", "on" if s.health_enabled else "off")
    table.add_row("Age", str(s.user_age))
    console.print(table)


@app.command(name="log")
def list_log(
    limit: Annotated[
        int | None, typer.Option("--limit", "-l", help="Show only the newest N entries.")
    ] = None,
) -> None:
    """List completed workouts, newest first."""
    ctl = _controller(_get_settings())
    entries = ctl.log.entries[:limit] if limit is not None else ctl.log.entries

    if not entries:
        console.print("[yellow]No workouts logged yet.[/yellow]")
        return

    table = Table(title=f"Workout log ({len(ctl.log)} workout(s))")
    table.add_column("Completed", style="cyan", no_wrap=True)
    table.add_column("Type", style="bold")
    table.add_column("Notes")
    for entry in entries:
        completed = entry.completed_at.astimezone() if entry.completed_at.tzinfo else entry.completed_at
        table.add_row(completed.strftime("%Y-%m-%d %H:%M"), entry.workout_type.value, entry.notes)
    console.print(table)


@app.command(name="log-add")
def log_add(
    workout_type: Annotated[
        WorkoutType, typer.Option("--type", "-t", help="Kind of workout.")
    ] = WorkoutType.NORWEGIAN_4X4,
    notes: Annotated[str, typer.Option("--notes", "-n", help="Free-text notes.")] = "",
) -> None:
    """Log a completed workout now (e.g. one done without the timer)."""
    ctl = _controller(_get_settings())
    entry = ctl.save_workout_log_entry(_now(), workout_type, notes)
    console.print(f"[green]✓ Logged {entry.workout_type.value}.[/green]")


@app.command()
def reminders(
    export: Annotated[
        Path | None,
        typer.Option("--export", help="Also write the reminders to an .ics calendar file."),
    ] = None,
) -> None:
    """Recompute workout reminders and show what is scheduled."""
    ctl = _controller(_get_settings())
    now = _now()
    decision = ctl.reschedule_reminders(now)

    if decision.force_disabled:
        err_console.print(
            "[red]Notifications are not permitted, so reminders were turned off.[/red]"
        )
    if not decision.schedule:
        console.print(
            "[yellow]No reminders scheduled. Enable them with "
            "[bold]n4x4 settings --reminders[/bold].[/yellow]"
        )
        return

    notifier = ctl.notifications
    if isinstance(notifier, ConsoleNotificationService):
        console.print(notifier.pending_table())

    if export is not None:
        export.write_bytes(reminders_to_ics(decision, now))
        console.print(f"[green]✓ Wrote {len(decision.schedule)} reminder(s) to {export}[/green]")


@app.command(name="heart-rate")
def heart_rate(
    age: Annotated[
        int | None, typer.Option("--age", help="Age in years. Defaults to your saved age.")
    ] = None,
) -> None:
    """Show heart-rate targets for high-intensity and recovery intervals."""
    if age is None:
        age = _controller(_get_settings()).settings.user_age

    table = Table(title=f"Heart rate guide (age {age})")
    table.add_column("Zone", style="bold")
    table.add_column("Target", justify="right")
    table.add_row("Maximum heart rate", f"{max_heart_rate(age)} BPM")
    table.add_row("[red]High intensity[/red] (85-95%)", str(high_intensity_target(age)))
    table.add_row("[green]Recovery[/green] (60-70%)", str(recovery_target(age)))
    console.print(table)


@app.command()
def trends(
    metric: Annotated[str, typer.Option("--metric", help="Wellness field to read.")] = "vo2max",
    limit: Annotated[int, typer.Option("--limit", "-l", help="Number of samples.")] = 10,
) -> None:
    """Show your recent VO₂ max (or another wellness metric) from Intervals.icu."""
    app_settings = _get_settings()
    if app_settings.intervals_api_key is None:
        err_console.print(
            "[red]No Intervals.icu API key configured.[/red] "
            "Run [bold]n4x4 config[/bold] first."
        )
        raise typer.Exit(1)

    ctl = _controller(app_settings)
    if not ctl.settings.health_enabled:
        ctl.update_settings(_now(), health_enabled=True)
    elif not ctl.gate.allows(Capability.HEALTH):
        ctl.request_health_authorization()
    if not ctl.gate.allows(Capability.HEALTH):
        err_console.print("[red]Intervals.icu rejected the API key.[/red]")
        raise typer.Exit(1)

    samples = ctl.fetch_trend_samples(metric, limit)
    if not samples:
        console.print(f"[yellow]No {metric} samples found in the last year.[/yellow]")
        return

    table = Table(title=f"{metric} (newest first)")
    table.add_column("Date", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")
    for sample in samples:
        table.add_row(sample.timestamp.date().isoformat(), f"{sample.value:g}")
    console.print(table)


if __name__ == "__main__":
    app()
