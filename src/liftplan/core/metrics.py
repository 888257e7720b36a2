"""
Pure metric computation functions.

Per-session figures used by the statistics engine.  All functions are pure
and typed for testability.
"""

from typing import Sequence

from .models import ExercisePerformance, SetType


def session_best_estimated_1rm(performance: ExercisePerformance) -> float | None:
    """
    Best Epley one-rep-max estimate among the session's sets.

    e1RM = weight × (1 + reps / 30), for sets with weight > 0 and reps > 0.

    Returns:
        Highest estimate, or None if no set qualifies
    """
    estimates = [s.estimated_1rm for s in performance.sets if s.estimated_1rm is not None]
    return max(estimates) if estimates else None


def session_best_weight(performance: ExercisePerformance) -> float | None:
    """Heaviest weight used in any set, or None for a session with no sets."""
    if not performance.sets:
        return None
    return max(s.weight for s in performance.sets)


def session_total_volume(performance: ExercisePerformance) -> float:
    """
    Total volume over completed sets.

    volume = Σ weight × reps
    """
    return sum(s.volume for s in performance.sets if s.complete)


def session_set_count(performance: ExercisePerformance) -> int:
    return len(performance.sets)


def working_set_count(performance: ExercisePerformance) -> int:
    return sum(1 for s in performance.sets if s.set_type == SetType.WORKING)


def top_working_weight(performance: ExercisePerformance) -> float | None:
    """Heaviest working-set weight, or None if the session had no working sets."""
    weights = [s.weight for s in performance.sets if s.set_type == SetType.WORKING]
    return max(weights) if weights else None


def working_set_reps(performance: ExercisePerformance) -> list[int]:
    return [s.reps for s in performance.sorted_sets if s.set_type == SetType.WORKING]


def completed_working_rest(performance: ExercisePerformance) -> list[int]:
    """Rest seconds of completed working sets."""
    return [
        s.rest_seconds
        for s in performance.sorted_sets
        if s.complete and s.set_type == SetType.WORKING
    ]


def median_int(values: Sequence[int]) -> int:
    """
    Upper median by sorted index (no interpolation).

    Returns:
        sorted(values)[n // 2], or 0 for an empty sequence
    """
    if not values:
        return 0
    ordered = sorted(values)
    return ordered[len(ordered) // 2]


def percentile_int(values: Sequence[int], fraction: float) -> int:
    """
    Percentile by sorted index, clamped to the valid range.

    index = int(n × fraction)

    Returns:
        Value at that index, or 0 for an empty sequence
    """
    if not values:
        return 0
    ordered = sorted(values)
    idx = int(len(ordered) * fraction)
    return ordered[max(0, min(len(ordered) - 1, idx))]


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def relative_change_percent(recent: float, previous: float) -> float:
    """(recent − previous) / previous × 100; 0 when previous is not positive."""
    if previous <= 0:
        return 0.0
    return (recent - previous) / previous * 100
