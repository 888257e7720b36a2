"""
In-memory entity store.

Holds plans, suggestions, performances and cached histories as id-addressed
records, plus explicit id → record index maps for the prescriptions and sets
of live (non-draft) plans.

Deleting a prescription or set never deletes suggestion rows.  Dependent
suggestions (and performance back-references) are visited first and their
reference to the deleted entity is set to None; the rows stay as audit
records.
"""

import logging
from collections.abc import Callable

from .models import (
    ExerciseHistory,
    ExercisePerformance,
    ExercisePrescription,
    Plan,
    SetPrescription,
    Suggestion,
)

logger = logging.getLogger(__name__)


class EntityStore:
    """
    Arena of id-addressed records.

    Drafts are stored in ``plans`` like any other plan, but their
    prescriptions and sets are never entered in the id index: they share ids
    with the original's entities and only become live when merged.
    """

    def __init__(self) -> None:
        self.plans: dict[str, Plan] = {}
        self.suggestions: dict[str, Suggestion] = {}
        self.performances: dict[str, ExercisePerformance] = {}
        self.histories: dict[str, ExerciseHistory] = {}

        self._prescriptions: dict[str, ExercisePrescription] = {}
        self._sets: dict[str, SetPrescription] = {}
        self._prescription_plan: dict[str, str] = {}  # prescription id -> plan id
        self._set_prescription: dict[str, str] = {}  # set id -> prescription id
        self._performance_seq: dict[str, int] = {}
        self._next_seq = 0

        self.dirty = False
        self.on_change: Callable[[], None] | None = None

    def mark_dirty(self) -> None:
        """Flag unsaved changes and notify the saver, if any."""
        self.dirty = True
        if self.on_change is not None:
            self.on_change()

    # -------------------------------------------------------------------------
    # Plans
    # -------------------------------------------------------------------------

    def insert_plan(self, plan: Plan) -> Plan:
        self.plans[plan.id] = plan
        if not plan.is_draft:
            for exercise in plan.exercises:
                self.register_prescription(exercise, plan.id)
        self.mark_dirty()
        return plan

    def plan(self, plan_id: str | None) -> Plan | None:
        if plan_id is None:
            return None
        return self.plans.get(plan_id)

    def live_plans(self) -> list[Plan]:
        """Non-draft plans, in insertion order."""
        return [p for p in self.plans.values() if not p.is_draft]

    def draft_for(self, original_id: str) -> Plan | None:
        for p in self.plans.values():
            if p.is_draft and p.original_plan_id == original_id:
                return p
        return None

    def delete_plan(self, plan_id: str) -> None:
        """Remove a plan; a live plan's prescriptions are deleted with it."""
        plan = self.plans.get(plan_id)
        if plan is None:
            return
        if not plan.is_draft:
            for exercise in list(plan.exercises):
                self.delete_prescription(exercise.id)
            for other in self.plans.values():
                if other.original_plan_id == plan_id:
                    other.original_plan_id = None
        del self.plans[plan_id]
        logger.debug("Deleted plan %s (draft=%s)", plan_id, plan.is_draft)
        self.mark_dirty()

    # -------------------------------------------------------------------------
    # Prescriptions and sets
    # -------------------------------------------------------------------------

    def register_prescription(self, prescription: ExercisePrescription, plan_id: str) -> None:
        """Enter a live prescription and its sets in the id index."""
        self._prescriptions[prescription.id] = prescription
        self._prescription_plan[prescription.id] = plan_id
        for s in prescription.sets:
            self.register_set(s, prescription.id)

    def register_set(self, set_: SetPrescription, prescription_id: str) -> None:
        self._sets[set_.id] = set_
        self._set_prescription[set_.id] = prescription_id

    def prescription(self, prescription_id: str | None) -> ExercisePrescription | None:
        if prescription_id is None:
            return None
        return self._prescriptions.get(prescription_id)

    def set_prescription(self, set_id: str | None) -> SetPrescription | None:
        if set_id is None:
            return None
        return self._sets.get(set_id)

    def prescription_for_set(self, set_id: str) -> ExercisePrescription | None:
        return self.prescription(self._set_prescription.get(set_id))

    def plan_for_prescription(self, prescription_id: str) -> Plan | None:
        return self.plan(self._prescription_plan.get(prescription_id))

    def delete_set(self, set_id: str) -> None:
        """
        Delete a live set.

        Suggestions targeting it and performed sets linked to it lose the
        reference; the set is removed from its owning prescription.
        """
        for s in self.suggestions.values():
            if s.target_set_id == set_id:
                s.target_set_id = None
        for perf in self.performances.values():
            for ps in perf.sets:
                if ps.prescription_set_id == set_id:
                    ps.prescription_set_id = None

        owner = self.prescription_for_set(set_id)
        if owner is not None:
            owner.sets = [s for s in owner.sets if s.id != set_id]
        self._sets.pop(set_id, None)
        self._set_prescription.pop(set_id, None)
        self.mark_dirty()

    def delete_prescription(self, prescription_id: str) -> None:
        """Delete a live prescription, its sets first."""
        prescription = self._prescriptions.get(prescription_id)
        if prescription is not None:
            for s in list(prescription.sets):
                self.delete_set(s.id)

        for s in self.suggestions.values():
            if s.target_prescription_id == prescription_id:
                s.target_prescription_id = None
        for perf in self.performances.values():
            if perf.prescription_id == prescription_id:
                perf.prescription_id = None

        plan = self.plan_for_prescription(prescription_id)
        if plan is not None:
            plan.exercises = [e for e in plan.exercises if e.id != prescription_id]
        self._prescriptions.pop(prescription_id, None)
        self._prescription_plan.pop(prescription_id, None)
        logger.debug("Deleted prescription %s", prescription_id)
        self.mark_dirty()

    # -------------------------------------------------------------------------
    # Suggestions
    # -------------------------------------------------------------------------

    def add_suggestion(self, suggestion: Suggestion) -> Suggestion:
        self.suggestions[suggestion.id] = suggestion
        self.mark_dirty()
        return suggestion

    def all_suggestions(self) -> list[Suggestion]:
        """Every suggestion row, in insertion order."""
        return list(self.suggestions.values())

    def suggestions_for_prescription(self, prescription_id: str) -> list[Suggestion]:
        """Suggestions targeting the exercise, set-level ones included."""
        return [s for s in self.suggestions.values() if s.target_prescription_id == prescription_id]

    def suggestions_for_set(self, set_id: str) -> list[Suggestion]:
        return [s for s in self.suggestions.values() if s.target_set_id == set_id]

    # -------------------------------------------------------------------------
    # Performances
    # -------------------------------------------------------------------------

    def add_performance(self, performance: ExercisePerformance) -> ExercisePerformance:
        self.performances[performance.id] = performance
        self._performance_seq[performance.id] = self._next_seq
        self._next_seq += 1
        self.mark_dirty()
        return performance

    def delete_performance(self, performance_id: str) -> None:
        """Delete a performance; suggestion evidence links to it are cleared."""
        perf = self.performances.pop(performance_id, None)
        if perf is None:
            return
        set_ids = {s.id for s in perf.sets}
        for s in self.suggestions.values():
            if s.evidence_performance_id == performance_id:
                s.evidence_performance_id = None
            if s.evidence_set_id in set_ids:
                s.evidence_set_id = None
        self._performance_seq.pop(performance_id, None)
        self.mark_dirty()

    def completed_performances(self, catalog_id: str) -> list[ExercisePerformance]:
        """
        Completed performances of one exercise, most recent first.

        Same-day performances order by insertion, later insertion first.
        """
        matching = [p for p in self.performances.values() if p.completed and p.catalog_id == catalog_id]
        return sorted(
            matching,
            key=lambda p: (p.date, self._performance_seq.get(p.id, 0)),
            reverse=True,
        )

    def performances_for_session(self, session_id: str) -> list[ExercisePerformance]:
        return [p for p in self.performances.values() if p.session_id == session_id]

    def completed_catalog_ids(self) -> set[str]:
        return {p.catalog_id for p in self.performances.values() if p.completed}

    # -------------------------------------------------------------------------
    # Cached histories
    # -------------------------------------------------------------------------

    def history(self, catalog_id: str) -> ExerciseHistory | None:
        return self.histories.get(catalog_id)

    def put_history(self, history: ExerciseHistory) -> ExerciseHistory:
        self.histories[history.catalog_id] = history
        self.mark_dirty()
        return history

    def delete_history(self, catalog_id: str) -> None:
        if self.histories.pop(catalog_id, None) is not None:
            self.mark_dirty()
