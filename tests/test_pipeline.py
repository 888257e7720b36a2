"""
Tests for candidate deduplication, suggestion recording and outcome
resolution.
"""

from liftplan.core.models import (
    ChangeKind,
    Decision,
    ExercisePerformance,
    Outcome,
    Suggestion,
    SuggestionSource,
)
from liftplan.core.pipeline import (
    OutcomeResult,
    deduplicate,
    record_suggestions,
    resolve_outcomes,
)
from liftplan.core.store import EntityStore

NOW = "2024-05-01T10:00:00"

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _candidate(
    kind: ChangeKind,
    exercise_id: str | None = "ex1",
    set_id: str | None = "set1",
    previous: float = 100.0,
    new: float = 105.0,
    source: SuggestionSource = SuggestionSource.RULES,
    created_at: str = "2024-04-01T09:00:00",
) -> Suggestion:
    return Suggestion(
        change_kind=kind,
        source=source,
        target_prescription_id=exercise_id,
        target_set_id=set_id,
        previous_value=previous,
        new_value=new,
        created_at=created_at,
    )


def _kinds(suggestions) -> list[ChangeKind]:
    return [s.change_kind for s in suggestions]


# ---------------------------------------------------------------------------
# deduplicate()
# ---------------------------------------------------------------------------


class TestDeduplicate:
    def test_empty(self):
        assert deduplicate([]) == []

    def test_distinct_properties_all_survive(self):
        candidates = [
            _candidate(ChangeKind.INCREASE_WEIGHT),
            _candidate(ChangeKind.INCREASE_REPS, previous=8, new=10),
            _candidate(ChangeKind.INCREASE_REP_RANGE_UPPER, set_id=None, previous=10, new=12),
        ]
        assert deduplicate(candidates) == candidates

    def test_weight_increase_suppresses_rest_increase(self):
        candidates = [
            _candidate(ChangeKind.INCREASE_REST, set_id="set2", previous=120, new=180),
            _candidate(ChangeKind.INCREASE_WEIGHT),
        ]
        assert _kinds(deduplicate(candidates)) == [ChangeKind.INCREASE_WEIGHT]

    def test_weight_decrease_beats_increase(self):
        candidates = [
            _candidate(ChangeKind.INCREASE_WEIGHT),
            _candidate(ChangeKind.DECREASE_WEIGHT, set_id="set2", new=95.0),
        ]
        assert _kinds(deduplicate(candidates)) == [ChangeKind.DECREASE_WEIGHT]

    def test_strategy_filter_is_per_exercise(self):
        candidates = [
            _candidate(ChangeKind.INCREASE_WEIGHT, exercise_id="ex1"),
            _candidate(ChangeKind.INCREASE_REST, exercise_id="ex2", set_id="set9", new=180),
        ]
        assert deduplicate(candidates) == candidates

    def test_priority_within_property(self):
        """Same set, same property: rep decrease and increase share priority 2."""
        small = _candidate(ChangeKind.INCREASE_REPS, previous=8, new=9)
        large = _candidate(ChangeKind.DECREASE_REPS, previous=8, new=5)
        assert deduplicate([small, large]) == [large]

    def test_rules_beat_ai(self):
        ai = _candidate(ChangeKind.INCREASE_REPS, previous=8, new=12, source=SuggestionSource.AI)
        rules = _candidate(ChangeKind.INCREASE_REPS, previous=8, new=9)
        assert deduplicate([ai, rules]) == [rules]

    def test_older_wins_full_tie(self):
        newer = _candidate(ChangeKind.INCREASE_REPS, created_at="2024-04-02T09:00:00")
        older = _candidate(ChangeKind.INCREASE_REPS, created_at="2024-04-01T09:00:00")
        assert deduplicate([newer, older]) == [older]

    def test_set_and_exercise_targets_do_not_collide(self):
        on_set = _candidate(ChangeKind.INCREASE_REPS)
        on_exercise = _candidate(ChangeKind.INCREASE_REPS, set_id=None)
        assert deduplicate([on_set, on_exercise]) == [on_set, on_exercise]

    def test_remove_set_keyed_separately(self):
        remove = _candidate(ChangeKind.REMOVE_SET, new=0)
        weight = _candidate(ChangeKind.INCREASE_WEIGHT)
        assert deduplicate([remove, weight]) == [remove, weight]

    def test_targetless_candidates_dropped(self):
        orphan = _candidate(ChangeKind.INCREASE_WEIGHT, exercise_id=None, set_id=None)
        keep = _candidate(ChangeKind.INCREASE_WEIGHT)
        assert deduplicate([orphan, keep]) == [keep]

    def test_set_target_without_exercise_kept(self):
        loose = _candidate(ChangeKind.INCREASE_WEIGHT, exercise_id=None)
        assert deduplicate([loose]) == [loose]


# ---------------------------------------------------------------------------
# record_suggestions()
# ---------------------------------------------------------------------------


class TestRecordSuggestions:
    def test_stores_survivors_as_pending(self):
        store = EntityStore()
        winner = _candidate(ChangeKind.DECREASE_WEIGHT, new=95.0)
        winner.decision = Decision.ACCEPTED
        loser = _candidate(ChangeKind.INCREASE_WEIGHT)

        recorded = record_suggestions(store, [loser, winner])

        assert recorded == [winner]
        assert store.all_suggestions() == [winner]
        assert winner.decision == Decision.PENDING
        assert winner.outcome == Outcome.PENDING
        assert store.dirty

    def test_nothing_to_record(self):
        store = EntityStore()
        assert record_suggestions(store, []) == []
        assert store.suggestions == {}


# ---------------------------------------------------------------------------
# resolve_outcomes()
# ---------------------------------------------------------------------------


def _performance(prescription_id: str | None = "ex1") -> ExercisePerformance:
    return ExercisePerformance(
        catalog_id="bench_press",
        date="2024-05-01",
        session_id="s1",
        prescription_id=prescription_id,
    )


def _always(outcome: Outcome):
    calls = []

    def evaluator(suggestion, performance):
        calls.append((suggestion.id, performance.id))
        return OutcomeResult(outcome=outcome, confidence=0.9, reason="test")

    evaluator.calls = calls
    return evaluator


class TestResolveOutcomes:
    def test_accepted_and_rejected_are_evaluated(self):
        store = EntityStore()
        accepted = store.add_suggestion(_candidate(ChangeKind.INCREASE_WEIGHT))
        accepted.decision = Decision.ACCEPTED
        rejected = store.add_suggestion(_candidate(ChangeKind.INCREASE_REPS))
        rejected.decision = Decision.REJECTED
        perf = _performance()
        evaluator = _always(Outcome.GOOD)

        resolved = resolve_outcomes(store, "s1", [perf], evaluator, now=NOW)

        assert resolved == [accepted, rejected]
        for s in resolved:
            assert s.outcome == Outcome.GOOD
            assert s.evaluated_in_session_id == "s1"
            assert s.evaluated_at == NOW
        assert evaluator.calls == [(accepted.id, perf.id), (rejected.id, perf.id)]

    def test_ineligible_rows_skipped(self):
        store = EntityStore()
        for decision in (Decision.PENDING, Decision.DEFERRED, Decision.USER_OVERRIDE):
            row = store.add_suggestion(_candidate(ChangeKind.INCREASE_WEIGHT))
            row.decision = decision
        done = store.add_suggestion(_candidate(ChangeKind.INCREASE_WEIGHT))
        done.decision = Decision.ACCEPTED
        done.outcome = Outcome.TOO_EASY
        elsewhere = store.add_suggestion(_candidate(ChangeKind.INCREASE_WEIGHT, exercise_id="ex2"))
        elsewhere.decision = Decision.ACCEPTED
        evaluator = _always(Outcome.GOOD)
        store.dirty = False

        assert resolve_outcomes(store, "s1", [_performance()], evaluator, now=NOW) == []
        assert evaluator.calls == []
        assert done.outcome == Outcome.TOO_EASY
        assert not store.dirty

    def test_none_verdict_leaves_pending(self):
        store = EntityStore()
        row = store.add_suggestion(_candidate(ChangeKind.INCREASE_WEIGHT))
        row.decision = Decision.ACCEPTED

        resolved = resolve_outcomes(store, "s1", [_performance()], lambda s, p: None, now=NOW)

        assert resolved == []
        assert row.outcome == Outcome.PENDING
        assert row.evaluated_at is None

    def test_performance_without_prescription_matches_nothing(self):
        store = EntityStore()
        row = store.add_suggestion(_candidate(ChangeKind.INCREASE_WEIGHT, exercise_id=None))
        row.decision = Decision.ACCEPTED

        assert resolve_outcomes(store, "s1", [_performance(None)], _always(Outcome.GOOD), now=NOW) == []
        assert row.outcome == Outcome.PENDING
