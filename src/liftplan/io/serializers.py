"""
JSON serialization for liftplan data models.

Handles conversion between dataclasses and JSON-compatible dicts.  Named
enums are stored by member name; integer-coded enums (set type, rep range
mode, rest time mode) are stored by their integer code, which is also what
change records carry in previous_value / new_value.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any

from ..core.config import STORE_FORMAT_VERSION
from ..core.models import (
    ChangeKind,
    Decision,
    ExerciseHistory,
    ExercisePerformance,
    ExercisePrescription,
    Outcome,
    Plan,
    ProgressionPoint,
    ProgressionTrend,
    RepRangeMode,
    RepRangePolicy,
    RestTimeMode,
    RestTimePolicy,
    SetPerformance,
    SetPrescription,
    SetType,
    Suggestion,
    SuggestionSource,
)
from ..core.store import EntityStore


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


def validate_date(date_str: str) -> str:
    """
    Validate and normalize date string to ISO format.

    Args:
        date_str: Date string to validate

    Returns:
        Normalized YYYY-MM-DD string

    Raises:
        ValidationError: If date format is invalid
    """
    if not isinstance(date_str, str) or not re.match(r"^\d{4}-\d{2}-\d{2}$", date_str):
        raise ValidationError(f"Invalid date format: {date_str}. Expected YYYY-MM-DD")

    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except ValueError as e:
        raise ValidationError(f"Invalid date: {date_str}") from e

    return date_str


def validate_non_negative(value: int | float, name: str) -> int | float:
    """
    Validate that a value is non-negative.

    Raises:
        ValidationError: If value is negative
    """
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value


def _enum_by_name(enum_cls: type[Enum], name: Any, field_name: str):
    try:
        return enum_cls[name]
    except KeyError as e:
        raise ValidationError(f"Invalid {field_name}: {name!r}") from e


def _enum_by_code(enum_cls: type[Enum], code: Any, field_name: str):
    try:
        return enum_cls(int(code))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {field_name}: {code!r}") from e


def _require(data: dict[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError as e:
        raise ValidationError(f"Missing field: {key}") from e


def _optional_float(value: Any) -> float | None:
    return float(value) if value is not None else None


# =============================================================================
# Prescriptions
# =============================================================================


def set_prescription_to_dict(s: SetPrescription) -> dict[str, Any]:
    return {
        "id": s.id,
        "index": s.index,
        "set_type": int(s.set_type),
        "target_weight": s.target_weight,
        "target_reps": s.target_reps,
        "target_rest": s.target_rest,
    }


def dict_to_set_prescription(data: dict[str, Any]) -> SetPrescription:
    """
    Convert dict to SetPrescription.

    Raises:
        ValidationError: If data is invalid
    """
    validate_non_negative(data.get("target_weight", 0), "target_weight")
    validate_non_negative(data.get("target_reps", 0), "target_reps")
    validate_non_negative(data.get("target_rest", 0), "target_rest")

    return SetPrescription(
        id=_require(data, "id"),
        index=int(data.get("index", 0)),
        set_type=_enum_by_code(SetType, data.get("set_type", SetType.WORKING), "set_type"),
        target_weight=float(data.get("target_weight", 0.0)),
        target_reps=int(data.get("target_reps", 0)),
        target_rest=int(data.get("target_rest", 0)),
    )


def _rep_range_to_dict(policy: RepRangePolicy) -> dict[str, Any]:
    return {
        "mode": int(policy.mode),
        "lower": policy.lower,
        "upper": policy.upper,
        "target": policy.target,
    }


def _dict_to_rep_range(data: dict[str, Any]) -> RepRangePolicy:
    defaults = RepRangePolicy()
    return RepRangePolicy(
        mode=_enum_by_code(RepRangeMode, data.get("mode", defaults.mode), "rep range mode"),
        lower=int(data.get("lower", defaults.lower)),
        upper=int(data.get("upper", defaults.upper)),
        target=int(data.get("target", defaults.target)),
    )


def _rest_time_to_dict(policy: RestTimePolicy) -> dict[str, Any]:
    return {
        "mode": int(policy.mode),
        "all_same_seconds": policy.all_same_seconds,
        "warmup_seconds": policy.warmup_seconds,
        "working_seconds": policy.working_seconds,
        "drop_set_seconds": policy.drop_set_seconds,
    }


def _dict_to_rest_time(data: dict[str, Any]) -> RestTimePolicy:
    defaults = RestTimePolicy()
    return RestTimePolicy(
        mode=_enum_by_code(RestTimeMode, data.get("mode", defaults.mode), "rest time mode"),
        all_same_seconds=int(data.get("all_same_seconds", defaults.all_same_seconds)),
        warmup_seconds=int(data.get("warmup_seconds", defaults.warmup_seconds)),
        working_seconds=int(data.get("working_seconds", defaults.working_seconds)),
        drop_set_seconds=int(data.get("drop_set_seconds", defaults.drop_set_seconds)),
    )


def exercise_prescription_to_dict(e: ExercisePrescription) -> dict[str, Any]:
    return {
        "id": e.id,
        "catalog_id": e.catalog_id,
        "name": e.name,
        "index": e.index,
        "notes": e.notes,
        "rep_range": _rep_range_to_dict(e.rep_range),
        "rest_time": _rest_time_to_dict(e.rest_time),
        "sets": [set_prescription_to_dict(s) for s in e.sorted_sets],
    }


def dict_to_exercise_prescription(data: dict[str, Any]) -> ExercisePrescription:
    return ExercisePrescription(
        catalog_id=_require(data, "catalog_id"),
        name=data.get("name", ""),
        id=_require(data, "id"),
        index=int(data.get("index", 0)),
        notes=data.get("notes", ""),
        rep_range=_dict_to_rep_range(data.get("rep_range") or {}),
        rest_time=_dict_to_rest_time(data.get("rest_time") or {}),
        sets=[dict_to_set_prescription(s) for s in data.get("sets", [])],
    )


def plan_to_dict(plan: Plan) -> dict[str, Any]:
    """
    Convert Plan to JSON-compatible dict.

    Args:
        plan: Plan (live or draft) to convert

    Returns:
        Dict representation
    """
    d: dict[str, Any] = {
        "id": plan.id,
        "title": plan.title,
        "notes": plan.notes,
        "favorite": plan.favorite,
        "completed": plan.completed,
        "is_draft": plan.is_draft,
        "exercises": [exercise_prescription_to_dict(e) for e in plan.sorted_exercises],
    }
    if plan.original_plan_id is not None:
        d["original_plan_id"] = plan.original_plan_id
    if plan.last_used is not None:
        d["last_used"] = plan.last_used
    return d


def dict_to_plan(data: dict[str, Any]) -> Plan:
    """
    Convert dict to Plan.

    Raises:
        ValidationError: If data is invalid
    """
    return Plan(
        title=data.get("title", ""),
        id=_require(data, "id"),
        notes=data.get("notes", ""),
        favorite=bool(data.get("favorite", False)),
        completed=bool(data.get("completed", False)),
        is_draft=bool(data.get("is_draft", False)),
        original_plan_id=data.get("original_plan_id"),
        last_used=data.get("last_used"),
        exercises=[dict_to_exercise_prescription(e) for e in data.get("exercises", [])],
    )


# =============================================================================
# Suggestions
# =============================================================================


def suggestion_to_dict(s: Suggestion) -> dict[str, Any]:
    return {
        "id": s.id,
        "change_kind": s.change_kind.name,
        "source": s.source.name,
        "catalog_id": s.catalog_id,
        "session_from_id": s.session_from_id,
        "created_at": s.created_at,
        "evidence_performance_id": s.evidence_performance_id,
        "evidence_set_id": s.evidence_set_id,
        "target_prescription_id": s.target_prescription_id,
        "target_set_id": s.target_set_id,
        "previous_value": s.previous_value,
        "new_value": s.new_value,
        "reasoning": s.reasoning,
        "decision": s.decision.name,
        "outcome": s.outcome.name,
        "evaluated_in_session_id": s.evaluated_in_session_id,
        "evaluated_at": s.evaluated_at,
    }


def dict_to_suggestion(data: dict[str, Any]) -> Suggestion:
    """
    Convert dict to Suggestion.

    Raises:
        ValidationError: If an enum name is unknown or a required field is missing
    """
    return Suggestion(
        change_kind=_enum_by_name(ChangeKind, _require(data, "change_kind"), "change_kind"),
        id=_require(data, "id"),
        source=_enum_by_name(SuggestionSource, data.get("source", "RULES"), "source"),
        catalog_id=data.get("catalog_id", ""),
        session_from_id=data.get("session_from_id"),
        created_at=_require(data, "created_at"),
        evidence_performance_id=data.get("evidence_performance_id"),
        evidence_set_id=data.get("evidence_set_id"),
        target_prescription_id=data.get("target_prescription_id"),
        target_set_id=data.get("target_set_id"),
        previous_value=_optional_float(data.get("previous_value")),
        new_value=_optional_float(data.get("new_value")),
        reasoning=data.get("reasoning"),
        decision=_enum_by_name(Decision, data.get("decision", "PENDING"), "decision"),
        outcome=_enum_by_name(Outcome, data.get("outcome", "PENDING"), "outcome"),
        evaluated_in_session_id=data.get("evaluated_in_session_id"),
        evaluated_at=data.get("evaluated_at"),
    )


# =============================================================================
# Performances
# =============================================================================


def set_performance_to_dict(s: SetPerformance) -> dict[str, Any]:
    d: dict[str, Any] = {
        "id": s.id,
        "index": s.index,
        "set_type": int(s.set_type),
        "weight": s.weight,
        "reps": s.reps,
        "rest_seconds": s.rest_seconds,
        "complete": s.complete,
    }
    if s.prescription_set_id is not None:
        d["prescription_set_id"] = s.prescription_set_id
    return d


def dict_to_set_performance(data: dict[str, Any]) -> SetPerformance:
    validate_non_negative(data.get("weight", 0), "weight")
    validate_non_negative(data.get("reps", 0), "reps")
    validate_non_negative(data.get("rest_seconds", 0), "rest_seconds")

    return SetPerformance(
        id=_require(data, "id"),
        index=int(data.get("index", 0)),
        set_type=_enum_by_code(SetType, data.get("set_type", SetType.WORKING), "set_type"),
        weight=float(data.get("weight", 0.0)),
        reps=int(data.get("reps", 0)),
        rest_seconds=int(data.get("rest_seconds", 0)),
        complete=bool(data.get("complete", False)),
        prescription_set_id=data.get("prescription_set_id"),
    )


def exercise_performance_to_dict(p: ExercisePerformance) -> dict[str, Any]:
    return {
        "id": p.id,
        "catalog_id": p.catalog_id,
        "date": p.date,
        "session_id": p.session_id,
        "name": p.name,
        "index": p.index,
        "completed": p.completed,
        "prescription_id": p.prescription_id,
        "sets": [set_performance_to_dict(s) for s in p.sorted_sets],
    }


def dict_to_exercise_performance(data: dict[str, Any]) -> ExercisePerformance:
    """
    Convert dict to ExercisePerformance.

    Raises:
        ValidationError: If data is invalid
    """
    validate_date(_require(data, "date"))

    return ExercisePerformance(
        catalog_id=_require(data, "catalog_id"),
        date=data["date"],
        id=_require(data, "id"),
        session_id=data.get("session_id"),
        name=data.get("name", ""),
        index=int(data.get("index", 0)),
        completed=bool(data.get("completed", True)),
        prescription_id=data.get("prescription_id"),
        sets=[dict_to_set_performance(s) for s in data.get("sets", [])],
    )


# =============================================================================
# Cached statistics
# =============================================================================


def history_to_dict(h: ExerciseHistory) -> dict[str, Any]:
    """
    Convert ExerciseHistory to JSON-compatible dict.

    JSON object keys are strings, so best_reps_at_weight is keyed by the
    weight's string form.
    """
    return {
        "catalog_id": h.catalog_id,
        "last_updated": h.last_updated,
        "last_workout_date": h.last_workout_date,
        "total_sessions": h.total_sessions,
        "last_30_day_sessions": h.last_30_day_sessions,
        "best_estimated_1rm": h.best_estimated_1rm,
        "best_estimated_1rm_date": h.best_estimated_1rm_date,
        "best_weight": h.best_weight,
        "best_weight_date": h.best_weight_date,
        "best_volume": h.best_volume,
        "best_volume_date": h.best_volume_date,
        "best_reps_at_weight": {str(w): r for w, r in sorted(h.best_reps_at_weight.items())},
        "last3_avg_weight": h.last3_avg_weight,
        "last3_avg_volume": h.last3_avg_volume,
        "last3_avg_set_count": h.last3_avg_set_count,
        "last3_avg_rest_seconds": h.last3_avg_rest_seconds,
        "typical_set_count": h.typical_set_count,
        "typical_rep_range_lower": h.typical_rep_range_lower,
        "typical_rep_range_upper": h.typical_rep_range_upper,
        "typical_rest_seconds": h.typical_rest_seconds,
        "progression_trend": h.progression_trend.value,
        "progression_points": [
            {"date": p.date, "weight": p.weight, "volume": p.volume}
            for p in h.progression_points
        ],
    }


def dict_to_history(data: dict[str, Any]) -> ExerciseHistory:
    try:
        trend = ProgressionTrend(data.get("progression_trend", ProgressionTrend.INSUFFICIENT.value))
    except ValueError as e:
        raise ValidationError(f"Invalid progression_trend: {data.get('progression_trend')!r}") from e

    try:
        reps_at_weight = {float(w): int(r) for w, r in (data.get("best_reps_at_weight") or {}).items()}
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid best_reps_at_weight: {e}") from e

    return ExerciseHistory(
        catalog_id=_require(data, "catalog_id"),
        last_updated=data.get("last_updated"),
        last_workout_date=data.get("last_workout_date"),
        total_sessions=int(data.get("total_sessions", 0)),
        last_30_day_sessions=int(data.get("last_30_day_sessions", 0)),
        best_estimated_1rm=float(data.get("best_estimated_1rm", 0.0)),
        best_estimated_1rm_date=data.get("best_estimated_1rm_date"),
        best_weight=float(data.get("best_weight", 0.0)),
        best_weight_date=data.get("best_weight_date"),
        best_volume=float(data.get("best_volume", 0.0)),
        best_volume_date=data.get("best_volume_date"),
        best_reps_at_weight=reps_at_weight,
        last3_avg_weight=float(data.get("last3_avg_weight", 0.0)),
        last3_avg_volume=float(data.get("last3_avg_volume", 0.0)),
        last3_avg_set_count=int(data.get("last3_avg_set_count", 0)),
        last3_avg_rest_seconds=int(data.get("last3_avg_rest_seconds", 0)),
        typical_set_count=int(data.get("typical_set_count", 0)),
        typical_rep_range_lower=int(data.get("typical_rep_range_lower", 0)),
        typical_rep_range_upper=int(data.get("typical_rep_range_upper", 0)),
        typical_rest_seconds=int(data.get("typical_rest_seconds", 0)),
        progression_trend=trend,
        progression_points=[
            ProgressionPoint(
                date=p["date"],
                weight=float(p.get("weight", 0.0)),
                volume=float(p.get("volume", 0.0)),
            )
            for p in data.get("progression_points", [])
        ],
    )


# =============================================================================
# Whole store
# =============================================================================


def store_to_dict(store: EntityStore) -> dict[str, Any]:
    """
    Convert an EntityStore to a single JSON-compatible document.

    Performances are written in insertion order so that same-day ordering
    survives a save/load cycle.
    """
    return {
        "version": STORE_FORMAT_VERSION,
        "plans": [plan_to_dict(p) for p in store.plans.values()],
        "performances": [exercise_performance_to_dict(p) for p in store.performances.values()],
        "suggestions": [suggestion_to_dict(s) for s in store.all_suggestions()],
        "histories": [history_to_dict(h) for h in store.histories.values()],
    }


def dict_to_store(data: dict[str, Any]) -> EntityStore:
    """
    Rebuild an EntityStore from a document produced by store_to_dict().

    Args:
        data: Parsed JSON document

    Returns:
        Store with its id index rebuilt and ``dirty`` cleared

    Raises:
        ValidationError: If the document or any record is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError("Store document must be a JSON object")

    version = data.get("version", STORE_FORMAT_VERSION)
    if not isinstance(version, int) or version > STORE_FORMAT_VERSION:
        raise ValidationError(f"Unsupported store format version: {version!r}")

    store = EntityStore()
    try:
        for plan_data in data.get("plans", []):
            store.insert_plan(dict_to_plan(plan_data))
        for perf_data in data.get("performances", []):
            store.add_performance(dict_to_exercise_performance(perf_data))
        for suggestion_data in data.get("suggestions", []):
            store.add_suggestion(dict_to_suggestion(suggestion_data))
        for history_data in data.get("histories", []):
            store.put_history(dict_to_history(history_data))
    except ValueError as e:
        # Model constructors reject negative numbers and bad dates
        raise ValidationError(str(e)) from e
    except (AttributeError, TypeError) as e:
        raise ValidationError(f"Malformed record: {e}") from e

    store.dirty = False
    return store


# =============================================================================
# Command-line set notation
# =============================================================================


def parse_compact_sets(s: str, default_rest: int) -> list[tuple[int, float, int]] | None:
    """
    Try to parse a compact sets string.

    Format: NxM [@W] [/ Rs]  (N reps × M sets, all at weight W)

    Examples:
        "8x3"              → 3 sets of 8 reps, weight 0, default rest
        "8x3 @100"         → 3 sets of 8 reps at 100
        "5x5 @140 / 240s"  → 5 sets of 5 reps at 140, 240 s rest

    Returns list of (reps, weight, rest) tuples, or None if format not recognised.
    """
    text = s.strip()
    if not re.search(r"[xX×]", text):
        return None

    rest = default_rest
    m = re.search(r"\s*/\s*(\d+)\s*s\s*$", text)
    if m:
        rest = int(m.group(1))
        text = text[: m.start()].strip()

    weight = 0.0
    m = re.search(r"@\s*([0-9]+(?:\.[0-9]+)?)\s*$", text)
    if m:
        weight = float(m.group(1))
        text = text[: m.start()].strip()

    m = re.fullmatch(r"(\d+)\s*[xX×]\s*(\d+)", text)
    if not m:
        return None
    n_reps, n_sets = int(m.group(1)), int(m.group(2))
    if n_sets < 1:
        return None
    return [(n_reps, weight, rest)] * n_sets


def parse_sets_string(sets_str: str, default_rest: int = 180) -> list[tuple[int, float, int]]:
    """
    Parse a sets string.

    Compact format (tried first):
        NxM [@W] [/ Rs]   e.g. "5x5 @140 / 240s"

    Per-set formats (comma-separated):
        reps@weight/rest   e.g. "8@100/180"   canonical
        reps@weight        e.g. "8@100"       rest defaults
        reps weight rest   e.g. "8 100 180"   space-separated
        reps weight        e.g. "8 100"
        reps               e.g. "8"           bare int, weight=0

    Args:
        sets_str: Sets string to parse
        default_rest: Rest in seconds for sets that omit it

    Returns:
        List of (reps, weight, rest_seconds) tuples

    Raises:
        ValidationError: If format is invalid
    """
    if not sets_str or not sets_str.strip():
        raise ValidationError("Sets string cannot be empty")

    compact = parse_compact_sets(sets_str, default_rest)
    if compact is not None:
        return compact

    sets: list[tuple[int, float, int]] = []
    parts = [p.strip() for p in sets_str.split(",") if p.strip()]

    for part in parts:
        match_at = re.match(r"^(\d+)@(\d+\.?\d*)(?:/(\d+))?$", part)
        match_sp = re.match(r"^(\d+)\s+(\d+\.?\d*)(?:\s+(\d+))?$", part)
        match_bare = re.match(r"^(\d+)$", part)

        match = match_at or match_sp
        if match:
            reps = int(match.group(1))
            weight = float(match.group(2))
            rest = int(match.group(3)) if match.group(3) is not None else default_rest
        elif match_bare:
            reps = int(match_bare.group(1))
            weight = 0.0
            rest = default_rest
        else:
            raise ValidationError(
                f"Invalid set format: '{part}'.\n"
                f"Use: reps@weight/rest (e.g. 8@100/180), reps@weight (e.g. 8@100),\n"
                f"     or space-separated: reps weight rest (e.g. 8 100 180)."
            )

        sets.append((reps, weight, rest))

    if not sets:
        raise ValidationError("No valid sets found in sets string")

    return sets
