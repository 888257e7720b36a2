"""
Glue between external suggestion/outcome engines and the entity store.

The rule engine that proposes changes and the evaluator that scores them
live outside this package.  This module takes their output:

- deduplicate() resolves conflicting candidates before they are stored
- record_suggestions() persists the survivors as pending review items
- resolve_outcomes() writes evaluator verdicts after a workout
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from .models import (
    ChangeKind,
    Decision,
    ExercisePerformance,
    Outcome,
    Suggestion,
    SuggestionSource,
)
from .store import EntityStore

logger = logging.getLogger(__name__)


@dataclass
class OutcomeResult:
    """Verdict returned by an outcome evaluator."""

    outcome: Outcome
    confidence: float = 1.0
    reason: str = ""


OutcomeEvaluator = Callable[[Suggestion, ExercisePerformance], "OutcomeResult | None"]


# Lower wins when two candidates edit the same property of the same target
_PRIORITY = {
    ChangeKind.DECREASE_WEIGHT: 1,
    ChangeKind.INCREASE_WEIGHT: 2,
    ChangeKind.INCREASE_REPS: 2,
    ChangeKind.DECREASE_REPS: 2,
    ChangeKind.CHANGE_SET_TYPE: 3,
    ChangeKind.CHANGE_REP_RANGE_MODE: 3,
    ChangeKind.INCREASE_REP_RANGE_LOWER: 3,
    ChangeKind.DECREASE_REP_RANGE_LOWER: 3,
    ChangeKind.INCREASE_REP_RANGE_UPPER: 3,
    ChangeKind.DECREASE_REP_RANGE_UPPER: 3,
    ChangeKind.INCREASE_REP_RANGE_TARGET: 3,
    ChangeKind.DECREASE_REP_RANGE_TARGET: 3,
    ChangeKind.REMOVE_SET: 4,
    ChangeKind.INCREASE_REST: 5,
    ChangeKind.DECREASE_REST: 5,
    ChangeKind.CHANGE_REST_TIME_MODE: 5,
    ChangeKind.INCREASE_REST_TIME_SECONDS: 5,
    ChangeKind.DECREASE_REST_TIME_SECONDS: 5,
}


def _property(kind: ChangeKind) -> str:
    """Name of the field a change kind edits; up/down pairs share one."""
    if kind == ChangeKind.REMOVE_SET:
        return "structure"
    return min(k.name for k in kind.family)


def _filter_conflicting_strategies(candidates: list[Suggestion]) -> list[Suggestion]:
    kinds = {c.change_kind for c in candidates}
    if ChangeKind.INCREASE_WEIGHT in kinds and ChangeKind.INCREASE_REST in kinds:
        return [c for c in candidates if c.change_kind != ChangeKind.INCREASE_REST]
    if ChangeKind.INCREASE_WEIGHT in kinds and ChangeKind.DECREASE_WEIGHT in kinds:
        return [c for c in candidates if c.change_kind != ChangeKind.INCREASE_WEIGHT]
    return candidates


def _magnitude(s: Suggestion) -> float:
    return abs((s.new_value or 0) - (s.previous_value or 0))


def _rank(s: Suggestion) -> tuple:
    return (
        _PRIORITY.get(s.change_kind, 10),
        0 if s.source == SuggestionSource.RULES else 1,
        -_magnitude(s),
        s.created_at,
    )


def deduplicate(candidates: Iterable[Suggestion]) -> list[Suggestion]:
    """
    Resolve conflicting suggestion candidates.

    Two passes:

    1. Per exercise, contradictory strategies are dropped: a weight increase
       suppresses a rest increase; otherwise a weight decrease suppresses a
       weight increase.
    2. Per (target, edited property), one candidate survives, chosen by
       priority (weight decrease first, rest last), then rules before other
       sources, then larger magnitude, then older.

    Candidates with no target at all are dropped.

    Args:
        candidates: Unsaved Suggestion objects from a rule engine

    Returns:
        Surviving candidates in their original relative order
    """
    candidates = list(candidates)
    if not candidates:
        return []

    by_exercise: dict[str | None, list[Suggestion]] = {}
    for c in candidates:
        by_exercise.setdefault(c.target_prescription_id, []).append(c)

    filtered: list[Suggestion] = []
    for exercise_id, group in by_exercise.items():
        if exercise_id is None:
            filtered.extend(group)
        else:
            filtered.extend(_filter_conflicting_strategies(group))

    by_key: dict[tuple, list[Suggestion]] = {}
    for c in filtered:
        if c.target_set_id is not None:
            key = (c.target_set_id, True, _property(c.change_kind))
        elif c.target_prescription_id is not None:
            key = (c.target_prescription_id, False, _property(c.change_kind))
        else:
            continue
        by_key.setdefault(key, []).append(c)

    winners = {id(min(group, key=_rank)) for group in by_key.values()}
    return [c for c in candidates if id(c) in winners]


def record_suggestions(store: EntityStore, candidates: Iterable[Suggestion]) -> list[Suggestion]:
    """
    Deduplicate candidates and store the survivors as pending review items.

    Returns:
        The stored suggestions
    """
    recorded = []
    for s in deduplicate(candidates):
        s.decision = Decision.PENDING
        s.outcome = Outcome.PENDING
        recorded.append(store.add_suggestion(s))
    logger.info("Recorded %d suggestion(s)", len(recorded))
    return recorded


def resolve_outcomes(
    store: EntityStore,
    session_id: str,
    performances: Iterable[ExercisePerformance],
    evaluator: OutcomeEvaluator,
    now: str | None = None,
) -> list[Suggestion]:
    """
    Score reviewed suggestions against a finished workout.

    A suggestion is evaluated when its outcome is still PENDING, it was
    accepted or rejected, and its target prescription was performed in this
    session.  A None verdict leaves the suggestion pending.

    Args:
        store: Entity store
        session_id: The finished session
        performances: That session's exercise performances
        evaluator: Callable (suggestion, performance) -> OutcomeResult | None
        now: Evaluation timestamp (defaults to the current time)

    Returns:
        Suggestions whose outcome was set
    """
    now = now or datetime.now().isoformat(timespec="seconds")
    perf_by_prescription = {
        p.prescription_id: p for p in performances if p.prescription_id is not None
    }

    resolved: list[Suggestion] = []
    for s in store.all_suggestions():
        if s.outcome != Outcome.PENDING:
            continue
        if s.decision not in (Decision.ACCEPTED, Decision.REJECTED):
            continue
        perf = perf_by_prescription.get(s.target_prescription_id)
        if perf is None:
            continue

        result = evaluator(s, perf)
        if result is None:
            continue
        s.outcome = result.outcome
        s.evaluated_in_session_id = session_id
        s.evaluated_at = now
        resolved.append(s)
        logger.debug(
            "Outcome %s for suggestion %s (%.2f): %s",
            result.outcome.name, s.id, result.confidence, result.reason,
        )

    if resolved:
        store.mark_dirty()
    logger.info("Resolved %d outcome(s) for session %s", len(resolved), session_id)
    return resolved
