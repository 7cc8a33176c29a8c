"""Tests for merge change sets, the Merger phase and the end-to-end pipeline."""

import copy

import pytest

from catalog_dedup.apply.journal import ChangeJournal
from catalog_dedup.catalog import InMemoryCatalogStore, load_snapshot
from catalog_dedup.dedup import MergePlan, Merger, build_merge_change_set
from catalog_dedup.errors import InvariantViolation, NotFoundError, TransientIOError
from catalog_dedup.pipeline import DedupPipeline, PipelineOptions

from conftest import exercise_doc, media_doc


class TestBuildMergeChangeSet:

    def test_consolidates_aliases_media_and_deactivation(self, squat_store):
        snapshot = load_snapshot(squat_store)
        plan = MergePlan(canonical_id="A", duplicate_ids=["B", "C"])
        change_set = build_merge_change_set(plan, snapshot)

        assert change_set.record_updates["A"] == {
            "alias_names": ["Back Squats", "BB Squat", "Back Squat"],
        }
        assert change_set.record_updates["B"] == {
            "active": False, "curated": False, "merged_into": "A",
        }
        assert change_set.media_owner_updates == {"m1": "A"}

    def test_alias_union_is_case_insensitive_first_seen_wins(self):
        store = InMemoryCatalogStore(exercises={
            "A": exercise_doc("Back Squat", aliases=["back squats"]),
            "B": exercise_doc("BACK SQUATS", aliases=["BACK SQUAT", "Squat"]),
        })
        snapshot = load_snapshot(store)
        change_set = build_merge_change_set(MergePlan("A", ["B"]), snapshot)
        assert change_set.record_updates["A"]["alias_names"] == ["back squats", "Squat"]

    def test_rejects_self_merge(self, squat_store):
        snapshot = load_snapshot(squat_store)
        with pytest.raises(InvariantViolation):
            build_merge_change_set(MergePlan("A", ["A", "B"]), snapshot)

    def test_rejects_inactive_member(self):
        store = InMemoryCatalogStore(exercises={
            "A": exercise_doc("Row"),
            "B": exercise_doc("Row", active=False),
        })
        with pytest.raises(InvariantViolation):
            build_merge_change_set(MergePlan("A", ["B"]), load_snapshot(store))

    def test_missing_duplicate(self, squat_store):
        with pytest.raises(NotFoundError):
            build_merge_change_set(MergePlan("A", ["nope"]), load_snapshot(squat_store))


class FlakyStore(InMemoryCatalogStore):
    """Fails every commit whose label is in fail_labels."""

    def __init__(self, *args, fail_labels=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_labels = set(fail_labels)
        self.attempts = 0

    def commit(self, change_set):
        if change_set.label in self.fail_labels:
            self.attempts += 1
            raise TransientIOError(f"{change_set.label} unavailable")
        super().commit(change_set)


class TestMerger:

    def test_apply_commits_and_updates_snapshot(self, squat_store, runner):
        snapshot = load_snapshot(squat_store)
        journal = ChangeJournal("run1", "merge")
        merger = Merger(squat_store, snapshot, dry_run=False, journal=journal, runner=runner)
        result = merger.run([MergePlan("A", ["B", "C"])])

        assert result.succeeded == ["A"]
        assert squat_store.exercises["B"]["is_active"] is False
        assert squat_store.exercises["C"]["merged_into"] == "A"
        assert squat_store.media["m1"]["exercise_id"] == "A"
        assert snapshot.records["B"].active is False
        assert merger.records_merged == 2
        assert merger.aliases_added == 3
        assert journal.operations[0]["before"]["media_owners"] == {"m1": "B"}

    def test_dry_run_leaves_store_untouched(self, squat_store, runner):
        before = copy.deepcopy(squat_store.exercises)
        snapshot = load_snapshot(squat_store)
        Merger(squat_store, snapshot, dry_run=True, runner=runner).run([MergePlan("A", ["B", "C"])])

        assert squat_store.exercises == before
        assert snapshot.records["C"].active is False

    def test_failed_commit_leaves_no_partial_plan(self, squat_store, runner):
        store = FlakyStore(
            exercises=squat_store.exercises, media=squat_store.media,
            fail_labels={"merge:A"},
        )
        before = copy.deepcopy(store.exercises)
        snapshot = load_snapshot(store)
        result = Merger(store, snapshot, dry_run=False, runner=runner).run(
            [MergePlan("A", ["B", "C"])]
        )

        assert result.failed_ids() == ["A"]
        assert store.attempts == 3
        assert store.exercises == before
        assert store.media["m1"]["exercise_id"] == "B"
        assert snapshot.records["B"].active is True

    def test_invalid_plan_is_skipped_others_proceed(self, squat_store, runner):
        snapshot = load_snapshot(squat_store)
        result = Merger(squat_store, snapshot, dry_run=False, runner=runner).run([
            MergePlan("A", ["A"]),
            MergePlan("A", ["C"]),
        ])
        assert [s["code"] for s in result.skipped] == ["INVARIANT_VIOLATION"]
        assert result.succeeded == ["A"]
        assert squat_store.exercises["C"]["is_active"] is False


class TestPipelineEndToEnd:

    def test_squat_scenario(self, squat_store, runner, monkeypatch):
        monkeypatch.setenv("CATALOG_APPLY_ENABLED", "true")
        report = DedupPipeline(squat_store, runner=runner).run(PipelineOptions(dry_run=False))

        a = squat_store.exercises["A"]
        assert {"Back Squats", "Back Squat"} <= set(a["alias_names"])
        assert "barbell back squat" not in {x.casefold() for x in a["alias_names"]}
        for dup in ("B", "C"):
            assert squat_store.exercises[dup]["is_active"] is False
            assert squat_store.exercises[dup]["curated"] is False
        assert squat_store.media["m1"]["exercise_id"] == "A"
        assert squat_store.exercises["D"]["is_active"] is True

        assert report.clusters_found == 1
        assert report.records_merged == 2
        assert report.exit_code() == 0
        assert squat_store.changes[0]["change_id"] == f"{report.run_id}_merge"

    def test_second_run_is_a_no_op(self, squat_store, runner, monkeypatch):
        monkeypatch.setenv("CATALOG_APPLY_ENABLED", "true")
        DedupPipeline(squat_store, runner=runner).run(PipelineOptions(dry_run=False))
        after_first = copy.deepcopy(squat_store.exercises)

        report = DedupPipeline(squat_store, runner=runner).run(PipelineOptions(dry_run=False))
        assert report.clusters_found == 0
        assert report.records_merged == 0
        assert squat_store.exercises == after_first

    def test_no_media_references_a_duplicate(self, runner, monkeypatch):
        monkeypatch.setenv("CATALOG_APPLY_ENABLED", "true")
        store = InMemoryCatalogStore(
            exercises={
                "r1": exercise_doc("Lateral Raise", body_part="Shoulders", curated=True),
                "r2": exercise_doc("Lateral Raises", body_part="Shoulders"),
                "r3": exercise_doc("Dumbbell Lateral Raise", body_part="Shoulders"),
            },
            media={
                "m1": media_doc("r2"),
                "m2": media_doc("r3", status="pending"),
            },
        )
        DedupPipeline(store, runner=runner).run(PipelineOptions(dry_run=False))

        inactive = {rid for rid, doc in store.exercises.items() if not doc["is_active"]}
        assert inactive == {"r2", "r3"}
        assert {m["exercise_id"] for m in store.media.values()} == {"r1"}

    def test_catalog_fetch_is_retried(self, runner):
        class SlowStartStore(InMemoryCatalogStore):
            reads = 0

            def stream_record_docs(self):
                SlowStartStore.reads += 1
                if SlowStartStore.reads == 1:
                    raise TransientIOError("catalog read timed out")
                return super().stream_record_docs()

        store = SlowStartStore(exercises={
            "A": exercise_doc("Back Squat", curated=True),
            "B": exercise_doc("Back Squats"),
        })
        report = DedupPipeline(store, runner=runner).run(PipelineOptions(dry_run=True))
        assert SlowStartStore.reads == 2
        assert report.clusters_found == 1

    def test_dry_run_report_matches_apply(self, squat_store, runner, monkeypatch):
        before = copy.deepcopy(squat_store.exercises)
        dry = DedupPipeline(squat_store, runner=runner).run(PipelineOptions(dry_run=True, target=1))
        assert squat_store.exercises == before
        assert squat_store.changes == []

        monkeypatch.setenv("CATALOG_APPLY_ENABLED", "true")
        applied = DedupPipeline(squat_store, runner=runner).run(
            PipelineOptions(dry_run=False, target=1)
        )
        assert (dry.records_merged, dry.records_pruned) == (applied.records_merged, applied.records_pruned)
        assert dry.records_pruned == 1
