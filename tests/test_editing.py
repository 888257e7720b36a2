"""
Tests for copy-on-write plan editing.

Covers the draft lifecycle (create / cancel / finish), change detection,
override resolution and the merge back onto the original plan.
"""

import pytest

from liftplan.core.editing import (
    cancel_editing,
    create_editing_copy,
    delete_plan_entirely,
    finish_editing,
)
from liftplan.core.models import (
    ChangeKind,
    Decision,
    Outcome,
    Plan,
    RepRangeMode,
    RestTimeMode,
    SetType,
    Suggestion,
    SuggestionSource,
)
from liftplan.core.store import EntityStore

NOW = "2024-05-01T10:00:00"

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _make_plan(store: EntityStore, n_sets: int = 2, weight: float = 135.0) -> Plan:
    """Plan with one bench press exercise (8-12 range) and n identical sets."""
    plan = Plan(title="Push Day")
    exercise = plan.add_exercise("bench_press", "Bench Press")
    exercise.rep_range.mode = RepRangeMode.RANGE
    while len(exercise.sets) < n_sets:
        exercise.add_set()
    for s in exercise.sets:
        s.target_weight = weight
        s.target_reps = 8
        s.target_rest = 180
    return store.insert_plan(plan)


def _suggest(
    store: EntityStore,
    kind: ChangeKind,
    plan: Plan,
    set_index: int | None = 0,
    previous: float = 135.0,
    new: float = 145.0,
    source: SuggestionSource = SuggestionSource.RULES,
    decision: Decision = Decision.PENDING,
    exercise_index: int = 0,
) -> Suggestion:
    exercise = plan.sorted_exercises[exercise_index]
    target_set = exercise.sorted_sets[set_index] if set_index is not None else None
    return store.add_suggestion(Suggestion(
        change_kind=kind,
        source=source,
        decision=decision,
        catalog_id=exercise.catalog_id,
        target_prescription_id=exercise.id,
        target_set_id=target_set.id if target_set is not None else None,
        previous_value=previous,
        new_value=new,
        created_at="2024-04-01T09:00:00",
    ))


def _first_set(plan: Plan):
    return plan.sorted_exercises[0].sorted_sets[0]


# ---------------------------------------------------------------------------
# Draft lifecycle
# ---------------------------------------------------------------------------


class TestDraftLifecycle:
    def test_draft_shares_ids_but_not_objects(self):
        store = EntityStore()
        plan = _make_plan(store)
        draft = create_editing_copy(store, plan)

        assert draft.is_draft
        assert draft.original_plan_id == plan.id
        assert draft.id != plan.id
        assert [e.id for e in draft.exercises] == [e.id for e in plan.exercises]
        assert _first_set(draft).id == _first_set(plan).id
        assert _first_set(draft) is not _first_set(plan)

    def test_draft_entities_not_indexed(self):
        """The id index keeps pointing at the live originals."""
        store = EntityStore()
        plan = _make_plan(store)
        draft = create_editing_copy(store, plan)

        assert store.prescription(draft.exercises[0].id) is plan.exercises[0]
        assert store.set_prescription(_first_set(draft).id) is _first_set(plan)

    def test_cancel_leaves_original_unchanged(self):
        store = EntityStore()
        plan = _make_plan(store)
        before = [e.copy() for e in plan.sorted_exercises]

        draft = create_editing_copy(store, plan)
        _first_set(draft).target_weight = 200
        draft.exercises[0].rep_range.lower = 3
        draft.add_exercise("squat")
        cancel_editing(store, draft)

        assert plan.sorted_exercises == before
        assert draft.id not in store.plans
        assert store.all_suggestions() == []

    def test_second_copy_reuses_open_draft(self):
        store = EntityStore()
        plan = _make_plan(store)
        first = create_editing_copy(store, plan)
        second = create_editing_copy(store, plan)

        assert second is first
        assert len([p for p in store.plans.values() if p.is_draft]) == 1

    def test_finish_removes_draft(self):
        store = EntityStore()
        plan = _make_plan(store)
        draft = create_editing_copy(store, plan)
        finish_editing(store, draft, now=NOW)

        assert draft.id not in store.plans
        assert plan.id in store.plans
        assert not plan.is_draft

    def test_finish_without_original_is_noop(self):
        store = EntityStore()
        plan = _make_plan(store)
        draft = create_editing_copy(store, plan)
        draft.original_plan_id = "missing"

        assert finish_editing(store, draft, now=NOW) == []
        assert draft.id in store.plans

    def test_commit_marks_store_dirty(self):
        store = EntityStore()
        plan = _make_plan(store)
        store.dirty = False
        draft = create_editing_copy(store, plan)
        finish_editing(store, draft, now=NOW)
        assert store.dirty


# ---------------------------------------------------------------------------
# Change detection and overrides
# ---------------------------------------------------------------------------


class TestChangeDetection:
    def test_weight_edit_overrides_rule_suggestion(self):
        """Set at 135 with a pending rule 135→145; user sets 140."""
        store = EntityStore()
        plan = _make_plan(store, weight=135.0)
        rule = _suggest(store, ChangeKind.INCREASE_WEIGHT, plan, previous=135, new=145)

        draft = create_editing_copy(store, plan)
        _first_set(draft).target_weight = 140
        created = finish_editing(store, draft, now=NOW)

        assert rule.decision == Decision.USER_OVERRIDE
        assert rule.outcome == Outcome.USER_MODIFIED

        assert len(created) == 1
        change = created[0]
        assert change.change_kind == ChangeKind.INCREASE_WEIGHT
        assert change.source == SuggestionSource.USER
        assert change.decision == Decision.ACCEPTED
        assert change.outcome == Outcome.PENDING
        assert change.previous_value == 135
        assert change.new_value == 140
        assert change.target_set_id == _first_set(plan).id
        assert change.target_prescription_id == plan.exercises[0].id
        assert change.created_at == NOW

        assert _first_set(plan).target_weight == 140

    def test_single_field_edit_creates_exactly_one_record(self):
        store = EntityStore()
        plan = _make_plan(store)

        draft = create_editing_copy(store, plan)
        _first_set(draft).target_reps = 6
        created = finish_editing(store, draft, now=NOW)

        assert [c.change_kind for c in created] == [ChangeKind.DECREASE_REPS]
        assert (created[0].previous_value, created[0].new_value) == (8, 6)
        assert store.all_suggestions() == created

    def test_opposite_direction_is_same_family(self):
        """A pending decrease is overridden by a user increase on the same field."""
        store = EntityStore()
        plan = _make_plan(store)
        rule = _suggest(store, ChangeKind.DECREASE_WEIGHT, plan, previous=135, new=125)

        draft = create_editing_copy(store, plan)
        _first_set(draft).target_weight = 150
        finish_editing(store, draft, now=NOW)

        assert rule.decision == Decision.USER_OVERRIDE

    def test_other_fields_left_alone(self):
        store = EntityStore()
        plan = _make_plan(store)
        reps_rule = _suggest(store, ChangeKind.INCREASE_REPS, plan, previous=8, new=10)
        other_set_rule = _suggest(store, ChangeKind.INCREASE_WEIGHT, plan, set_index=1)

        draft = create_editing_copy(store, plan)
        _first_set(draft).target_weight = 140
        finish_editing(store, draft, now=NOW)

        assert reps_rule.decision == Decision.PENDING
        assert reps_rule.outcome == Outcome.PENDING
        assert other_set_rule.decision == Decision.PENDING

    def test_deferred_suggestion_is_overridden(self):
        store = EntityStore()
        plan = _make_plan(store)
        rule = _suggest(store, ChangeKind.INCREASE_WEIGHT, plan, decision=Decision.DEFERRED)

        draft = create_editing_copy(store, plan)
        _first_set(draft).target_weight = 140
        finish_editing(store, draft, now=NOW)

        assert rule.decision == Decision.USER_OVERRIDE
        assert rule.outcome == Outcome.USER_MODIFIED

    def test_rejected_suggestion_keeps_decision(self):
        """Decision and outcome transition independently."""
        store = EntityStore()
        plan = _make_plan(store)
        rule = _suggest(store, ChangeKind.INCREASE_WEIGHT, plan, decision=Decision.REJECTED)

        draft = create_editing_copy(store, plan)
        _first_set(draft).target_weight = 140
        finish_editing(store, draft, now=NOW)

        assert rule.decision == Decision.REJECTED
        assert rule.outcome == Outcome.USER_MODIFIED

    def test_user_suggestions_never_overridden(self):
        store = EntityStore()
        plan = _make_plan(store)
        earlier = _suggest(store, ChangeKind.INCREASE_WEIGHT, plan, source=SuggestionSource.USER)

        draft = create_editing_copy(store, plan)
        _first_set(draft).target_weight = 140
        finish_editing(store, draft, now=NOW)

        assert earlier.decision == Decision.PENDING
        assert earlier.outcome == Outcome.PENDING

    def test_set_type_change_stores_codes(self):
        store = EntityStore()
        plan = _make_plan(store)

        draft = create_editing_copy(store, plan)
        _first_set(draft).set_type = SetType.WARMUP
        created = finish_editing(store, draft, now=NOW)

        assert created[0].change_kind == ChangeKind.CHANGE_SET_TYPE
        assert created[0].previous_value == float(SetType.WORKING)
        assert created[0].new_value == float(SetType.WARMUP)

    def test_rep_range_edit_overrides_matching_bound_only(self):
        store = EntityStore()
        plan = _make_plan(store)
        lower_rule = _suggest(store, ChangeKind.INCREASE_REP_RANGE_LOWER, plan, set_index=None, previous=8, new=10)
        upper_rule = _suggest(store, ChangeKind.INCREASE_REP_RANGE_UPPER, plan, set_index=None, previous=12, new=15)

        draft = create_editing_copy(store, plan)
        draft.exercises[0].rep_range.lower = 6
        created = finish_editing(store, draft, now=NOW)

        assert [c.change_kind for c in created] == [ChangeKind.DECREASE_REP_RANGE_LOWER]
        assert created[0].target_set_id is None
        assert lower_rule.decision == Decision.USER_OVERRIDE
        assert upper_rule.decision == Decision.PENDING
        assert plan.exercises[0].rep_range.lower == 6

    def test_rest_policy_edits_are_tracked(self):
        store = EntityStore()
        plan = _make_plan(store)

        draft = create_editing_copy(store, plan)
        draft.exercises[0].rest_time.mode = RestTimeMode.INDIVIDUAL
        draft.exercises[0].rest_time.all_same_seconds = 150
        created = finish_editing(store, draft, now=NOW)

        assert {c.change_kind for c in created} == {
            ChangeKind.CHANGE_REST_TIME_MODE,
            ChangeKind.DECREASE_REST_TIME_SECONDS,
        }
        assert plan.exercises[0].rest_time.mode == RestTimeMode.INDIVIDUAL

    def test_notes_are_not_tracked(self):
        store = EntityStore()
        plan = _make_plan(store)

        draft = create_editing_copy(store, plan)
        draft.exercises[0].notes = "pause at chest"
        draft.title = "Push Day A"
        created = finish_editing(store, draft, now=NOW)

        assert created == []
        assert plan.exercises[0].notes == "pause at chest"
        assert plan.title == "Push Day A"


# ---------------------------------------------------------------------------
# Structural edits
# ---------------------------------------------------------------------------


class TestStructuralEdits:
    def test_add_reorder_create_no_records(self):
        store = EntityStore()
        plan = _make_plan(store)

        draft = create_editing_copy(store, plan)
        squat = draft.add_exercise("squat", "Squat")
        draft.exercises[0].add_set()
        draft.move_exercise(squat.id, 0)
        created = finish_editing(store, draft, now=NOW)

        assert created == []
        assert [e.catalog_id for e in plan.sorted_exercises] == ["squat", "bench_press"]
        assert len(plan.exercise_by_id(draft.exercises[0].id).sets) == 3

    def test_added_entities_are_indexed(self):
        store = EntityStore()
        plan = _make_plan(store)

        draft = create_editing_copy(store, plan)
        squat = draft.add_exercise("squat")
        new_set = draft.exercises[0].add_set()
        finish_editing(store, draft, now=NOW)

        assert store.prescription(squat.id) is plan.exercise_by_id(squat.id)
        assert store.plan_for_prescription(squat.id) is plan
        assert store.set_prescription(new_set.id) is not None
        assert store.prescription_for_set(new_set.id).id == draft.exercises[0].id

    def test_merged_ids_match_draft(self):
        store = EntityStore()
        plan = _make_plan(store, n_sets=3)

        draft = create_editing_copy(store, plan)
        draft.exercises[0].delete_set(draft.exercises[0].sorted_sets[1].id)
        draft.add_exercise("row")
        expected_ids = draft.exercise_ids()
        expected_set_ids = draft.set_ids()
        finish_editing(store, draft, now=NOW)

        assert plan.exercise_ids() == expected_ids
        assert plan.set_ids() == expected_set_ids

    def test_removed_set_overrides_accepted_outcome_only(self):
        store = EntityStore()
        plan = _make_plan(store, n_sets=3)
        accepted = _suggest(store, ChangeKind.INCREASE_WEIGHT, plan, set_index=1, decision=Decision.ACCEPTED)
        pending = _suggest(store, ChangeKind.INCREASE_REPS, plan, set_index=1)
        removed_id = plan.exercises[0].sorted_sets[1].id

        draft = create_editing_copy(store, plan)
        draft.exercises[0].delete_set(removed_id)
        created = finish_editing(store, draft, now=NOW)

        assert created == []
        assert accepted.decision == Decision.ACCEPTED
        assert accepted.outcome == Outcome.USER_MODIFIED
        assert pending.decision == Decision.USER_OVERRIDE
        assert pending.outcome == Outcome.USER_MODIFIED

        # Rows survive with the set reference cleared
        assert accepted.id in store.suggestions
        assert accepted.target_set_id is None
        assert accepted.target_prescription_id == plan.exercises[0].id
        assert store.set_prescription(removed_id) is None
        assert [s.index for s in plan.exercises[0].sorted_sets] == [0, 1]

    def test_removed_exercise_overrides_all_its_suggestions(self):
        store = EntityStore()
        plan = _make_plan(store)
        second = plan.add_exercise("row", "Row")
        store.register_prescription(second, plan.id)

        set_rule = _suggest(store, ChangeKind.INCREASE_WEIGHT, plan)
        range_rule = _suggest(store, ChangeKind.INCREASE_REP_RANGE_UPPER, plan, set_index=None)
        keep_rule = _suggest(store, ChangeKind.INCREASE_WEIGHT, plan, exercise_index=1)
        removed_id = plan.sorted_exercises[0].id

        draft = create_editing_copy(store, plan)
        draft.delete_exercise(removed_id)
        created = finish_editing(store, draft, now=NOW)

        assert created == []
        for rule in (set_rule, range_rule):
            assert rule.decision == Decision.USER_OVERRIDE
            assert rule.outcome == Outcome.USER_MODIFIED
            assert rule.target_prescription_id is None
            assert rule.id in store.suggestions
        assert set_rule.target_set_id is None
        assert keep_rule.decision == Decision.PENDING

        assert store.prescription(removed_id) is None
        assert [e.catalog_id for e in plan.sorted_exercises] == ["row"]
        assert plan.sorted_exercises[0].index == 0

    def test_edit_and_remove_in_one_commit(self):
        store = EntityStore()
        plan = _make_plan(store, n_sets=2)

        draft = create_editing_copy(store, plan)
        exercise = draft.exercises[0]
        exercise.sorted_sets[0].target_reps = 10
        exercise.delete_set(exercise.sorted_sets[1].id)
        created = finish_editing(store, draft, now=NOW)

        assert [c.change_kind for c in created] == [ChangeKind.INCREASE_REPS]
        assert len(plan.exercises[0].sets) == 1
        assert plan.exercises[0].sets[0].target_reps == 10


# ---------------------------------------------------------------------------
# Whole-plan deletion
# ---------------------------------------------------------------------------


class TestPlanDeletion:
    def test_empty_draft_deletes_plan(self):
        store = EntityStore()
        plan = _make_plan(store)
        rule = _suggest(store, ChangeKind.INCREASE_WEIGHT, plan)
        exercise_id = plan.exercises[0].id

        draft = create_editing_copy(store, plan)
        draft.delete_exercise(exercise_id)
        created = finish_editing(store, draft, now=NOW)

        assert created == []
        assert plan.id not in store.plans
        assert draft.id not in store.plans
        assert store.prescription(exercise_id) is None

        assert rule.id in store.suggestions
        assert rule.decision == Decision.USER_OVERRIDE
        assert rule.outcome == Outcome.USER_MODIFIED
        assert rule.target_prescription_id is None
        assert rule.target_set_id is None

    def test_delete_plan_entirely(self):
        store = EntityStore()
        plan = _make_plan(store)
        other = _make_plan(store)
        draft = create_editing_copy(store, plan)

        delete_plan_entirely(store, draft)

        assert store.live_plans() == [other]
        assert store.plans == {other.id: other}

    @pytest.mark.parametrize("decision", [Decision.PENDING, Decision.DEFERRED])
    def test_open_decisions_overridden_on_delete(self, decision):
        store = EntityStore()
        plan = _make_plan(store)
        rule = _suggest(store, ChangeKind.INCREASE_REPS, plan, decision=decision)

        delete_plan_entirely(store, create_editing_copy(store, plan))

        assert rule.decision == Decision.USER_OVERRIDE
