"""
Exercise statistics engine.

recalculate() rebuilds an ExerciseHistory from the complete list of completed
performances for one exercise.  It never reads the history's previous values:
every field is overwritten, so calling it twice with the same input (and the
same ``now``) gives identical results.
"""

from dataclasses import fields
from datetime import datetime, timedelta
from typing import Sequence

from .config import (
    ACTIVITY_WINDOW_DAYS,
    CHART_POINT_LIMIT,
    RECENT_SESSION_WINDOW,
    TREND_COMPARE_SESSIONS,
    TREND_MIN_SESSIONS,
    TREND_THRESHOLD_PERCENT,
    TYPICAL_REP_LOWER_PERCENTILE,
    TYPICAL_REP_UPPER_PERCENTILE,
)
from .metrics import (
    completed_working_rest,
    mean,
    median_int,
    percentile_int,
    relative_change_percent,
    session_best_estimated_1rm,
    session_best_weight,
    session_set_count,
    session_total_volume,
    top_working_weight,
    working_set_count,
    working_set_reps,
)
from .models import (
    ExerciseHistory,
    ExercisePerformance,
    ProgressionPoint,
    ProgressionTrend,
)
from .store import EntityStore


def reset_history(history: ExerciseHistory) -> None:
    """Return every statistic to its default (the no-data state)."""
    blank = ExerciseHistory(catalog_id=history.catalog_id)
    for f in fields(ExerciseHistory):
        if f.name != "catalog_id":
            setattr(history, f.name, getattr(blank, f.name))


def _calculate_prs(history: ExerciseHistory, performances: Sequence[ExercisePerformance]) -> None:
    # Scan newest → oldest and only replace on a strictly better value,
    # so ties credit the most recent session.
    best_1rm, best_1rm_date = 0.0, None
    best_weight, best_weight_date = 0.0, None
    best_volume, best_volume_date = 0.0, None
    reps_at_weight: dict[float, int] = {}

    for perf in performances:
        e1rm = session_best_estimated_1rm(perf)
        if e1rm is not None and e1rm > best_1rm:
            best_1rm, best_1rm_date = e1rm, perf.date

        weight = session_best_weight(perf)
        if weight is not None and weight > best_weight:
            best_weight, best_weight_date = weight, perf.date

        volume = session_total_volume(perf)
        if volume > best_volume:
            best_volume, best_volume_date = volume, perf.date

        for s in perf.sets:
            if s.complete and s.reps > reps_at_weight.get(s.weight, 0):
                reps_at_weight[s.weight] = s.reps

    history.best_estimated_1rm = best_1rm
    history.best_estimated_1rm_date = best_1rm_date
    history.best_weight = best_weight
    history.best_weight_date = best_weight_date
    history.best_volume = best_volume
    history.best_volume_date = best_volume_date
    history.best_reps_at_weight = reps_at_weight


def _calculate_recent_averages(history: ExerciseHistory, performances: Sequence[ExercisePerformance]) -> None:
    recent = list(performances[:RECENT_SESSION_WINDOW])

    weights = [w for w in (top_working_weight(p) for p in recent) if w is not None]
    history.last3_avg_weight = mean(weights)
    history.last3_avg_volume = mean([session_total_volume(p) for p in recent])

    set_counts = [session_set_count(p) for p in recent]
    history.last3_avg_set_count = sum(set_counts) // len(set_counts)

    rests = [r for p in recent for r in completed_working_rest(p)]
    history.last3_avg_rest_seconds = sum(rests) // len(rests) if rests else 0


def _calculate_typical_patterns(history: ExerciseHistory, performances: Sequence[ExercisePerformance]) -> None:
    history.typical_set_count = median_int([working_set_count(p) for p in performances])

    all_reps = [r for p in performances for r in working_set_reps(p)]
    history.typical_rep_range_lower = percentile_int(all_reps, TYPICAL_REP_LOWER_PERCENTILE)
    history.typical_rep_range_upper = percentile_int(all_reps, TYPICAL_REP_UPPER_PERCENTILE)

    history.typical_rest_seconds = median_int(
        [r for p in performances for r in completed_working_rest(p)]
    )


def _window_top_weight(performances: Sequence[ExercisePerformance]) -> float:
    """Sum of top working weights divided by the full window size."""
    total = sum(top_working_weight(p) or 0.0 for p in performances)
    return total / RECENT_SESSION_WINDOW


def progression_trend(performances: Sequence[ExercisePerformance]) -> ProgressionTrend:
    """
    Classify the recent weight trend.

    < 3 sessions → INSUFFICIENT; 3–5 → STABLE; otherwise compare the mean top
    working weight of sessions 1–3 against sessions 4–6 (most recent first):
    > +2.5 % → IMPROVING, < −2.5 % → DECLINING, else STABLE.
    """
    if len(performances) < TREND_MIN_SESSIONS:
        return ProgressionTrend.INSUFFICIENT
    if len(performances) < TREND_COMPARE_SESSIONS:
        return ProgressionTrend.STABLE

    recent = _window_top_weight(performances[:RECENT_SESSION_WINDOW])
    previous = _window_top_weight(performances[RECENT_SESSION_WINDOW:2 * RECENT_SESSION_WINDOW])
    change = relative_change_percent(recent, previous)

    if change > TREND_THRESHOLD_PERCENT:
        return ProgressionTrend.IMPROVING
    if change < -TREND_THRESHOLD_PERCENT:
        return ProgressionTrend.DECLINING
    return ProgressionTrend.STABLE


def _progression_points(performances: Sequence[ExercisePerformance]) -> list[ProgressionPoint]:
    return [
        ProgressionPoint(
            date=p.date,
            weight=top_working_weight(p) or 0.0,
            volume=session_total_volume(p),
        )
        for p in performances[:CHART_POINT_LIMIT]
    ]


def recalculate(
    history: ExerciseHistory,
    performances: Sequence[ExercisePerformance],
    now: datetime | None = None,
) -> ExerciseHistory:
    """
    Recompute all statistics from scratch.

    Args:
        history: Cache row to overwrite
        performances: Completed performances for history.catalog_id,
            most recent first
        now: Reference time for the 30-day window and last_updated

    Returns:
        The same history object, updated in place
    """
    if not performances:
        reset_history(history)
        return history

    now = now or datetime.now()
    cutoff = (now - timedelta(days=ACTIVITY_WINDOW_DAYS)).strftime("%Y-%m-%d")

    history.last_updated = now.isoformat(timespec="seconds")
    history.last_workout_date = performances[0].date
    history.total_sessions = len(performances)
    history.last_30_day_sessions = sum(1 for p in performances if p.date >= cutoff)

    _calculate_prs(history, performances)
    _calculate_recent_averages(history, performances)
    _calculate_typical_patterns(history, performances)
    history.progression_trend = progression_trend(performances)
    history.progression_points = _progression_points(performances)

    return history


def for_catalog_id(store: EntityStore, catalog_id: str, now: datetime | None = None) -> ExerciseHistory | None:
    """
    Cached statistics for an exercise, computed on first use.

    Returns:
        The cached row; a freshly computed one if none was cached and the
        exercise has completed performances; otherwise None
    """
    cached = store.history(catalog_id)
    if cached is not None:
        return cached

    performances = store.completed_performances(catalog_id)
    if not performances:
        return None
    history = recalculate(ExerciseHistory(catalog_id=catalog_id), performances, now=now)
    return store.put_history(history)
