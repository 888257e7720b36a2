"""
Smoke tests for the liftplan CLI.

Tests basic functionality:
- App runs and the store file is created
- Plans can be built and edited through drafts
- Performances can be logged and statistics read back
- Imported suggestions can be listed and accepted
"""

import json
import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from liftplan.cli.main import app


runner = CliRunner()


@pytest.fixture
def store_path():
    """Initialised store file inside a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "store.json"
        result = runner.invoke(app, ["init", "--store-path", str(path)])
        assert result.exit_code == 0
        yield path


def _run(store_path: Path, *args: str, input: str | None = None):
    return runner.invoke(app, [*args, "--store-path", str(store_path)], input=input)


def _json(store_path: Path, *args: str):
    result = _run(store_path, *args, "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def _bench_plan(store_path: Path) -> None:
    """Plan 1: 'Push Day' with bench press, 3 sets of 8 at 100."""
    assert _run(store_path, "create-plan", "Push Day").exit_code == 0
    result = _run(
        store_path, "add-exercise", "1", "bench_press",
        "--name", "Bench Press", "--sets", "3", "--weight", "100", "--reps", "8",
    )
    assert result.exit_code == 0, result.output


class TestCLISmoke:
    """Basic smoke tests for CLI commands."""

    def test_app_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "edit-set" in result.output

    def test_init_creates_store(self, store_path):
        assert store_path.exists()
        data = json.loads(store_path.read_text(encoding="utf-8"))
        assert data["plans"] == []

    def test_init_is_idempotent(self, store_path):
        result = _run(store_path, "init")
        assert result.exit_code == 0
        assert "already exists" in result.output

    def test_missing_store_fails(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            result = runner.invoke(app, ["plans", "--store-path", str(Path(tmpdir) / "none.json")])
        assert result.exit_code == 1
        assert "init" in result.output

    def test_create_and_show_plan(self, store_path):
        _bench_plan(store_path)

        plan = _json(store_path, "show-plan", "1")
        assert plan["title"] == "Push Day"
        assert plan["is_draft"] is False
        exercise = plan["exercises"][0]
        assert exercise["catalog_id"] == "bench_press"
        assert [s["target_weight"] for s in exercise["sets"]] == [100.0, 100.0, 100.0]
        assert [s["target_reps"] for s in exercise["sets"]] == [8, 8, 8]

        result = _run(store_path, "show-plan", "1")
        assert result.exit_code == 0
        assert "Bench Press" in result.output

    def test_plans_lists_live_plans_only(self, store_path):
        _bench_plan(store_path)
        plans = _json(store_path, "plans")
        assert [p["title"] for p in plans] == ["Push Day"]

        raw = json.loads(store_path.read_text(encoding="utf-8"))
        assert all(not p["is_draft"] for p in raw["plans"])

    def test_unknown_plan(self, store_path):
        result = _run(store_path, "show-plan", "7")
        assert result.exit_code == 1
        assert "No plan matches" in result.output


class TestCLIEditing:
    def test_edit_set_records_change(self, store_path):
        _bench_plan(store_path)

        result = _run(store_path, "edit-set", "1", "1", "1", "--weight", "105")
        assert result.exit_code == 0, result.output
        assert "Recorded 1 change(s)" in result.output

        raw = json.loads(store_path.read_text(encoding="utf-8"))
        (change,) = raw["suggestions"]
        assert change["change_kind"] == "INCREASE_WEIGHT"
        assert change["source"] == "USER"
        assert change["decision"] == "ACCEPTED"
        assert change["outcome"] == "PENDING"
        assert change["previous_value"] == 100.0
        assert change["new_value"] == 105.0

    def test_structural_edits_record_nothing(self, store_path):
        _bench_plan(store_path)
        assert _run(store_path, "add-exercise", "1", "squat").exit_code == 0
        assert _run(store_path, "add-set", "1", "1").exit_code == 0
        assert _run(store_path, "remove-set", "1", "1", "2").exit_code == 0
        assert _run(store_path, "move-exercise", "1", "2", "1").exit_code == 0

        plan = _json(store_path, "show-plan", "1")
        assert [e["catalog_id"] for e in plan["exercises"]] == ["squat", "bench_press"]
        assert len(plan["exercises"][1]["sets"]) == 3
        raw = json.loads(store_path.read_text(encoding="utf-8"))
        assert raw["suggestions"] == []

    def test_edit_rep_range_and_rest(self, store_path):
        _bench_plan(store_path)
        result = _run(store_path, "edit-rep-range", "1", "1", "--mode", "range", "--lower", "6", "--upper", "10")
        assert result.exit_code == 0, result.output
        result = _run(store_path, "edit-rest", "1", "1", "--mode", "by-type")
        assert result.exit_code == 0, result.output

        exercise = _json(store_path, "show-plan", "1")["exercises"][0]
        assert exercise["rep_range"] == {"mode": 2, "lower": 6, "upper": 10, "target": 8}
        assert exercise["rest_time"]["mode"] == 2

    def test_inverted_rep_range_rejected(self, store_path):
        _bench_plan(store_path)
        result = _run(store_path, "edit-rep-range", "1", "1", "--mode", "range", "--lower", "12", "--upper", "8")
        assert result.exit_code == 1

        raw = json.loads(store_path.read_text(encoding="utf-8"))
        assert len(raw["plans"]) == 1

    def test_invalid_set_type(self, store_path):
        _bench_plan(store_path)
        result = _run(store_path, "edit-set", "1", "1", "1", "--type", "giant")
        assert result.exit_code == 1
        assert "Invalid set type" in result.output

    def test_removing_last_exercise_deletes_plan(self, store_path):
        _bench_plan(store_path)
        result = _run(store_path, "remove-exercise", "1", "1", "--force")
        assert result.exit_code == 0, result.output
        assert _json(store_path, "plans") == []

    def test_removing_last_exercise_can_be_cancelled(self, store_path):
        _bench_plan(store_path)
        result = _run(store_path, "remove-exercise", "1", "1", input="n\n")
        assert result.exit_code == 0
        assert "Cancelled" in result.output

        raw = json.loads(store_path.read_text(encoding="utf-8"))
        assert [p["title"] for p in raw["plans"]] == ["Push Day"]

    def test_delete_plan(self, store_path):
        _bench_plan(store_path)
        result = _run(store_path, "delete-plan", "1", "--force")
        assert result.exit_code == 0
        assert _json(store_path, "plans") == []


class TestCLISessions:
    def test_log_performance_and_stats(self, store_path):
        _bench_plan(store_path)
        result = _run(
            store_path, "log-performance", "1", "1",
            "--sets", "10@100/120, 8@100/120, 6@100/120", "--date", "2024-04-30",
        )
        assert result.exit_code == 0, result.output
        assert "Logged 3 set(s)" in result.output

        (history,) = _json(store_path, "stats")
        assert history["catalog_id"] == "bench_press"
        assert history["total_sessions"] == 1
        assert history["best_weight"] == 100.0
        assert history["best_volume"] == 2400.0
        assert history["best_estimated_1rm"] == pytest.approx(133.333, rel=1e-4)
        assert history["progression_trend"] == "insufficient"

        plan = _json(store_path, "show-plan", "1")
        assert plan["last_used"] == "2024-04-30"

    def test_log_performance_json(self, store_path):
        _bench_plan(store_path)
        perf = _json(store_path, "log-performance", "1", "1", "--sets", "5x2 @110", "--date", "2024-04-30")
        assert perf["completed"] is True
        assert [(s["reps"], s["weight"]) for s in perf["sets"]] == [(5, 110.0), (5, 110.0)]
        assert all(s["prescription_set_id"] for s in perf["sets"])

    def test_invalid_sets_rejected(self, store_path):
        _bench_plan(store_path)
        result = _run(store_path, "log-performance", "1", "1", "--sets", "lots")
        assert result.exit_code == 1
        assert _json(store_path, "sessions") == []

    def test_delete_session_clears_stats(self, store_path):
        _bench_plan(store_path)
        _run(store_path, "log-performance", "1", "1", "--sets", "8@100", "--date", "2024-04-30")
        (session,) = _json(store_path, "sessions")

        result = _run(store_path, "delete-session", session["session_id"][:8], "--force")
        assert result.exit_code == 0, result.output

        assert _json(store_path, "sessions") == []
        assert _json(store_path, "stats") == []

    def test_save_session_as_plan(self, store_path):
        _bench_plan(store_path)
        _run(store_path, "log-performance", "1", "1", "--sets", "8@100/90, 6@110/120", "--date", "2024-04-30")
        (session,) = _json(store_path, "sessions")

        result = _run(store_path, "save-as-plan", session["session_id"][:8], "Repeat")
        assert result.exit_code == 0, result.output

        plans = _json(store_path, "plans")
        assert [p["title"] for p in plans] == ["Push Day", "Repeat"]
        (exercise,) = plans[1]["exercises"]
        assert exercise["catalog_id"] == "bench_press"
        assert [(s["target_reps"], s["target_weight"], s["target_rest"]) for s in exercise["sets"]] == [
            (8, 100.0, 90),
            (6, 110.0, 120),
        ]

    def test_unknown_session(self, store_path):
        result = _run(store_path, "delete-session", "ffff", "--force")
        assert result.exit_code == 1
        assert "No session matches" in result.output

    def test_rebuild_stats(self, store_path):
        _bench_plan(store_path)
        _run(store_path, "log-performance", "1", "1", "--sets", "8@100", "--date", "2024-04-30")
        result = _run(store_path, "rebuild-stats")
        assert result.exit_code == 0
        assert "Rebuilt statistics for 1 exercise(s)" in result.output

    def test_stats_without_sessions(self, store_path):
        result = _run(store_path, "stats", "bench_press")
        assert result.exit_code == 0
        assert "No completed sessions" in result.output


class TestCLISuggestions:
    def _import(self, store_path: Path, tmpdir: Path) -> dict:
        """Import one weight-increase candidate for set 1 of exercise 1."""
        exercise = _json(store_path, "show-plan", "1")["exercises"][0]
        candidates = [
            {
                "change_kind": "INCREASE_WEIGHT",
                "catalog_id": "bench_press",
                "target_prescription_id": exercise["id"],
                "target_set_id": exercise["sets"][0]["id"],
                "previous_value": 100,
                "new_value": 105,
                "reasoning": "All reps completed",
            },
            {
                "change_kind": "DECREASE_WEIGHT",
                "catalog_id": "bench_press",
                "target_prescription_id": exercise["id"],
                "target_set_id": exercise["sets"][0]["id"],
                "previous_value": 100,
                "new_value": 95,
            },
        ]
        source = tmpdir / "candidates.json"
        source.write_text(json.dumps(candidates[:1]), encoding="utf-8")
        return {"source": source, "exercise": exercise, "candidates": candidates}

    def test_import_pending_accept(self, store_path):
        _bench_plan(store_path)
        ctx = self._import(store_path, store_path.parent)

        result = _run(store_path, "import-suggestions", str(ctx["source"]))
        assert result.exit_code == 0, result.output
        assert "Imported 1 of 1 candidate(s)" in result.output

        (pending,) = _json(store_path, "pending", "1")
        assert pending["decision"] == "PENDING"
        assert pending["source"] == "RULES"

        result = _run(store_path, "pending", "1")
        assert "Set 1" in result.output

        result = _run(store_path, "accept-all", "1")
        assert result.exit_code == 0
        assert "Accepted 1 suggestion(s)" in result.output

        assert _json(store_path, "pending", "1") == []
        exercise = _json(store_path, "show-plan", "1")["exercises"][0]
        assert exercise["sets"][0]["target_weight"] == 105.0

    def test_import_resolves_conflicts(self, store_path):
        _bench_plan(store_path)
        ctx = self._import(store_path, store_path.parent)
        ctx["source"].write_text(json.dumps(ctx["candidates"]), encoding="utf-8")

        result = _run(store_path, "import-suggestions", str(ctx["source"]))
        assert "Imported 1 of 2 candidate(s)" in result.output

        (kept,) = _json(store_path, "pending", "1")
        assert kept["change_kind"] == "DECREASE_WEIGHT"

    def test_import_rejects_bad_file(self, store_path):
        source = store_path.parent / "bad.json"
        source.write_text(json.dumps({"change_kind": "INCREASE_WEIGHT"}), encoding="utf-8")
        result = _run(store_path, "import-suggestions", str(source))
        assert result.exit_code == 1

        source.write_text(json.dumps([{"change_kind": "LIFT_HARDER"}]), encoding="utf-8")
        result = _run(store_path, "import-suggestions", str(source))
        assert result.exit_code == 1

    def test_skip_all(self, store_path):
        _bench_plan(store_path)
        ctx = self._import(store_path, store_path.parent)
        _run(store_path, "import-suggestions", str(ctx["source"]))

        result = _run(store_path, "skip-all", "1")
        assert "Skipped 1 suggestion(s)" in result.output
        exercise = _json(store_path, "show-plan", "1")["exercises"][0]
        assert exercise["sets"][0]["target_weight"] == 100.0

    def test_review_defer(self, store_path):
        _bench_plan(store_path)
        ctx = self._import(store_path, store_path.parent)
        _run(store_path, "import-suggestions", str(ctx["source"]))

        result = _run(store_path, "review", "1", input="d\n")
        assert result.exit_code == 0, result.output
        assert "deferred 1" in result.output

        (pending,) = _json(store_path, "pending", "1")
        assert pending["decision"] == "DEFERRED"

    def test_user_edit_overrides_imported(self, store_path):
        _bench_plan(store_path)
        ctx = self._import(store_path, store_path.parent)
        _run(store_path, "import-suggestions", str(ctx["source"]))

        _run(store_path, "edit-set", "1", "1", "1", "--weight", "102.5")

        assert _json(store_path, "pending", "1") == []
        raw = json.loads(store_path.read_text(encoding="utf-8"))
        by_source = {s["source"]: s for s in raw["suggestions"]}
        assert by_source["RULES"]["decision"] == "USER_OVERRIDE"
        assert by_source["RULES"]["outcome"] == "USER_MODIFIED"
        assert by_source["USER"]["new_value"] == 102.5
