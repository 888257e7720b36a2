"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of plans, suggestions and statistics.
"""

from rich.console import Console
from rich.table import Table

from ..core.models import (
    ChangeKind,
    ExerciseHistory,
    ExercisePerformance,
    Plan,
    RepRangeMode,
    RestTimeMode,
    SetType,
    Suggestion,
)
from ..core.suggestions import ExerciseSuggestionSection

console = Console()


def _format_seconds(seconds: int) -> str:
    minutes, secs = divmod(int(seconds), 60)
    if minutes and secs:
        return f"{minutes}m {secs}s"
    if minutes:
        return f"{minutes}m"
    return f"{secs}s"


def _format_weight(weight: float) -> str:
    return f"{weight:g}"


_KIND_LABELS = {
    ChangeKind.INCREASE_WEIGHT: "Weight",
    ChangeKind.DECREASE_WEIGHT: "Weight",
    ChangeKind.INCREASE_REPS: "Reps",
    ChangeKind.DECREASE_REPS: "Reps",
    ChangeKind.INCREASE_REST: "Rest",
    ChangeKind.DECREASE_REST: "Rest",
    ChangeKind.CHANGE_SET_TYPE: "Set type",
    ChangeKind.REMOVE_SET: "Remove set",
    ChangeKind.INCREASE_REP_RANGE_LOWER: "Lower",
    ChangeKind.DECREASE_REP_RANGE_LOWER: "Lower",
    ChangeKind.INCREASE_REP_RANGE_UPPER: "Upper",
    ChangeKind.DECREASE_REP_RANGE_UPPER: "Upper",
    ChangeKind.INCREASE_REP_RANGE_TARGET: "Target",
    ChangeKind.DECREASE_REP_RANGE_TARGET: "Target",
    ChangeKind.CHANGE_REP_RANGE_MODE: "Mode",
    ChangeKind.CHANGE_REST_TIME_MODE: "Rest mode",
    ChangeKind.INCREASE_REST_TIME_SECONDS: "Rest",
    ChangeKind.DECREASE_REST_TIME_SECONDS: "Rest",
}


def format_change_value(kind: ChangeKind, value: float | None) -> str:
    """Human-readable form of a change record's stored value."""
    if value is None:
        return "-"
    if kind == ChangeKind.CHANGE_SET_TYPE:
        try:
            return SetType(int(value)).name.replace("_", " ").lower()
        except ValueError:
            return str(value)
    if kind == ChangeKind.CHANGE_REP_RANGE_MODE:
        try:
            return RepRangeMode(int(value)).name.replace("_", " ").lower()
        except ValueError:
            return str(value)
    if kind == ChangeKind.CHANGE_REST_TIME_MODE:
        try:
            return RestTimeMode(int(value)).name.replace("_", " ").lower()
        except ValueError:
            return str(value)
    if kind in (
        ChangeKind.INCREASE_REST,
        ChangeKind.DECREASE_REST,
        ChangeKind.INCREASE_REST_TIME_SECONDS,
        ChangeKind.DECREASE_REST_TIME_SECONDS,
    ):
        return _format_seconds(int(value))
    if kind in (ChangeKind.INCREASE_WEIGHT, ChangeKind.DECREASE_WEIGHT):
        return _format_weight(value)
    return str(int(value))


def describe_change(s: Suggestion) -> str:
    """One-line description, e.g. ``Weight: 100 → 110``."""
    label = _KIND_LABELS.get(s.change_kind, s.change_kind.name)
    if s.change_kind == ChangeKind.REMOVE_SET:
        return label
    old = format_change_value(s.change_kind, s.previous_value)
    new = format_change_value(s.change_kind, s.new_value)
    return f"{label}: {old} → {new}"


def print_plans(plans: list[Plan]) -> None:
    """
    Print the list of live plans.

    Args:
        plans: Plans to display, in list order
    """
    if not plans:
        console.print("[yellow]No plans yet. Create one with 'create-plan'.[/yellow]")
        return

    table = Table(title="Workout Plans", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Exercises", justify="right")
    table.add_column("Sets", justify="right")
    table.add_column("Fav", justify="center")

    for i, plan in enumerate(plans, 1):
        table.add_row(
            str(i),
            plan.id[:8],
            plan.title,
            str(len(plan.exercises)),
            str(sum(len(e.sets) for e in plan.exercises)),
            "★" if plan.favorite else "",
        )

    console.print(table)


def print_plan(plan: Plan) -> None:
    """
    Print one plan with a table of sets per exercise.

    Args:
        plan: Plan to display
    """
    console.print()
    console.print(f"[bold cyan]{plan.title}[/bold cyan]  [dim]{plan.id}[/dim]")
    if plan.notes:
        console.print(f"[dim]{plan.notes}[/dim]")

    if not plan.exercises:
        console.print("[yellow]No exercises in this plan.[/yellow]")
        return

    for n, exercise in enumerate(plan.sorted_exercises, 1):
        console.print()
        console.print(f"[bold]{n}. {exercise.name}[/bold]  [dim]{exercise.catalog_id}[/dim]")
        console.print(f"   {exercise.rep_range.display_text}")

        table = Table(show_header=True, header_style="dim", box=None, padding=(0, 2))
        table.add_column("Set", justify="right")
        table.add_column("Type")
        table.add_column("Weight", justify="right")
        table.add_column("Reps", justify="right")
        table.add_column("Rest", justify="right")

        for s in exercise.sorted_sets:
            rest = exercise.rest_time.seconds_for(s.set_type, s.target_rest)
            table.add_row(
                f"{s.index + 1}{s.set_type.short_label}",
                s.set_type.name.replace("_", " ").lower(),
                _format_weight(s.target_weight),
                str(s.target_reps),
                _format_seconds(rest),
            )
        console.print(table)


def print_suggestion_sections(sections: list[ExerciseSuggestionSection]) -> None:
    """
    Print grouped suggestions in review order.

    Args:
        sections: Output of group_suggestions()
    """
    if not sections:
        console.print("[green]No pending suggestions.[/green]")
        return

    for section in sections:
        console.print()
        console.print(f"[bold cyan]{section.exercise_name}[/bold cyan]")
        for group in section.groups:
            console.print(f"  [bold]{group.label}[/bold]")
            for change in group.changes:
                source = change.source.name.lower()
                line = f"    {describe_change(change)}  [dim]({source}, {change.decision.name.lower()})[/dim]"
                console.print(line)
                if change.reasoning:
                    console.print(f"      [dim]{change.reasoning}[/dim]")


def print_performance(performance: ExercisePerformance) -> None:
    table = Table(
        title=f"{performance.name or performance.catalog_id} — {performance.date}",
        show_header=True,
        header_style="dim",
    )
    table.add_column("Set", justify="right")
    table.add_column("Weight", justify="right")
    table.add_column("Reps", justify="right")
    table.add_column("Rest", justify="right")
    table.add_column("e1RM", justify="right", style="bold")

    for s in performance.sorted_sets:
        e1rm = s.estimated_1rm
        table.add_row(
            f"{s.index + 1}{s.set_type.short_label}",
            _format_weight(s.weight),
            str(s.reps),
            _format_seconds(s.rest_seconds),
            f"{e1rm:.1f}" if e1rm is not None else "-",
        )

    console.print(table)


def print_history(history: ExerciseHistory) -> None:
    """
    Print cached statistics for one exercise.

    Args:
        history: Cached statistics row
    """
    console.print()
    console.print(f"[bold cyan]{history.catalog_id}[/bold cyan]  [dim]updated {history.last_updated}[/dim]")

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="dim")
    table.add_column("Value")

    def with_date(value: str, date: str | None) -> str:
        return f"{value} ({date})" if date else value

    table.add_row("Sessions", f"{history.total_sessions} total, {history.last_30_day_sessions} in last 30 days")
    table.add_row("Last workout", history.last_workout_date or "-")
    table.add_row("Best e1RM", with_date(f"{history.best_estimated_1rm:.1f}", history.best_estimated_1rm_date))
    table.add_row("Best weight", with_date(_format_weight(history.best_weight), history.best_weight_date))
    table.add_row("Best volume", with_date(_format_weight(history.best_volume), history.best_volume_date))
    table.add_row("Last 3 avg weight", f"{history.last3_avg_weight:.1f}")
    table.add_row("Last 3 avg volume", f"{history.last3_avg_volume:.1f}")
    table.add_row("Last 3 avg sets", str(history.last3_avg_set_count))
    table.add_row("Last 3 avg rest", _format_seconds(history.last3_avg_rest_seconds))
    table.add_row("Typical sets", str(history.typical_set_count))
    table.add_row("Typical reps", f"{history.typical_rep_range_lower}-{history.typical_rep_range_upper}")
    table.add_row("Typical rest", _format_seconds(history.typical_rest_seconds))
    table.add_row("Trend", history.progression_trend.display_name)
    console.print(table)

    if history.best_reps_at_weight:
        prs = Table(title="Rep PRs", show_header=True, header_style="dim")
        prs.add_column("Weight", justify="right")
        prs.add_column("Reps", justify="right", style="bold")
        for weight, reps in sorted(history.best_reps_at_weight.items(), reverse=True):
            prs.add_row(_format_weight(weight), str(reps))
        console.print(prs)

    if history.progression_points:
        chart = Table(title="Recent Sessions", show_header=True, header_style="dim")
        chart.add_column("Date", style="cyan")
        chart.add_column("Top weight", justify="right")
        chart.add_column("Volume", justify="right")
        for point in history.sorted_progression_points:
            chart.add_row(point.date, _format_weight(point.weight), _format_weight(point.volume))
        console.print(chart)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{message} \\[y/N]: ")
    return response.lower() in ("y", "yes")
