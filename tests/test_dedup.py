"""Tests for clustering, scoring and merge planning."""

from catalog_dedup.catalog import CatalogSnapshot, ExerciseRecord, ExerciseSource, MediaAsset
from catalog_dedup.catalog.models import MediaStatus
from catalog_dedup.dedup import MergePlanner, cluster_records, rank_records, score_record
from catalog_dedup.dedup.clusterer import MergeCluster


def rec(record_id, name, body_part="Legs", **kwargs):
    return ExerciseRecord(id=record_id, name=name, body_part=body_part, **kwargs)


# =============================================================================
# Clusterer
# =============================================================================


class TestClusterer:

    def test_groups_by_normalized_name_and_body_part(self):
        records = [
            rec("1", "Barbell Back Squat"),
            rec("2", "Back Squat (Low Bar)"),
            rec("3", "Back Squat", body_part="Back"),
            rec("4", "Bench Press", body_part="Chest"),
        ]
        clusters = cluster_records(records)
        assert len(clusters) == 1
        assert clusters[0].key == "back squat|legs"
        assert clusters[0].record_ids == ["1", "2"]

    def test_ignores_inactive_records(self):
        records = [
            rec("1", "Back Squat"),
            rec("2", "Back Squat", active=False),
        ]
        assert cluster_records(records) == []

    def test_missing_body_part_on_both_sides_matches(self):
        records = [rec("1", "Plank", body_part=None), rec("2", "plank", body_part="")]
        clusters = cluster_records(records)
        assert [c.record_ids for c in clusters] == [["1", "2"]]

    def test_output_is_deterministic(self):
        records = [
            rec("z", "Row"), rec("a", "Row"),
            rec("m", "Curl"), rec("b", "Curls"),
        ]
        first = cluster_records(records)
        second = cluster_records(list(reversed(records)))
        assert [c.to_dict() for c in first] == [c.to_dict() for c in second]
        assert [c.key for c in first] == ["curl|legs", "row|legs"]
        assert first[1].record_ids == ["a", "z"]


# =============================================================================
# Scorer
# =============================================================================


class TestScorer:

    def test_band_weights(self):
        assert score_record(rec("1", "x", curated=True), False) == 1000
        assert score_record(rec("1", "x", source=ExerciseSource.EXTERNAL_DB), False) == 500
        assert score_record(rec("1", "x"), True) == 300
        assert score_record(rec("1", "x", primary_image_url="u"), False) == 50
        assert score_record(rec("1", "x", video_url="v"), False) == 25

    def test_usage_is_capped(self):
        assert score_record(rec("1", "x", usage_count=57), False) == 57
        assert score_record(rec("1", "x", usage_count=10_000), False) == 200

    def test_bands_add_up(self):
        record = rec(
            "1", "x", curated=True, source=ExerciseSource.EXTERNAL_DB,
            usage_count=250, primary_image_url="u", video_url="v",
        )
        assert score_record(record, True) == 1000 + 500 + 300 + 200 + 50 + 25

    def test_full_external_record_outranks_bare_curated(self):
        curated = rec("a", "x", curated=True)
        external = rec(
            "b", "x", source=ExerciseSource.EXTERNAL_DB,
            usage_count=200, primary_image_url="u", video_url="v",
        )
        assert score_record(curated, False) == 1000
        assert score_record(external, True) == 1075
        ranked = rank_records([curated, external], {"b"})
        assert [r.id for r, _ in ranked] == ["b", "a"]

    def test_rank_breaks_ties_by_id(self):
        ranked = rank_records([rec("b", "x"), rec("a", "x"), rec("c", "x", usage_count=1)], set())
        assert [r.id for r, _ in ranked] == ["c", "a", "b"]


# =============================================================================
# MergePlanner
# =============================================================================


class TestMergePlanner:

    def _snapshot(self):
        records = [
            rec("A", "Barbell Back Squat", curated=True),
            rec("B", "Back Squats", source=ExerciseSource.EXTERNAL_DB),
            rec("C", "Back Squat"),
        ]
        media = [MediaAsset(id="m1", owner_exercise_id="B", url="u", status=MediaStatus.APPROVED)]
        return CatalogSnapshot.from_items(records, media)

    def test_picks_highest_score_as_canonical(self):
        snapshot = self._snapshot()
        plans, result = MergePlanner(snapshot).plan(cluster_records(snapshot.active_records()))
        assert len(plans) == 1
        assert plans[0].canonical_id == "A"
        assert plans[0].duplicate_ids == ["B", "C"]
        assert plans[0].scores == {"A": 1000, "B": 800, "C": 0}
        assert result.ok

    def test_equal_scores_pick_lowest_id(self):
        snapshot = CatalogSnapshot.from_items([rec("y", "Lunge"), rec("x", "Lunges")])
        plans, _ = MergePlanner(snapshot).plan(cluster_records(snapshot.active_records()))
        assert plans[0].canonical_id == "x"
        assert plans[0].duplicate_ids == ["y"]

    def test_collapsed_cluster_is_skipped(self):
        snapshot = CatalogSnapshot.from_items([rec("1", "Row"), rec("2", "Row", active=False)])
        clusters = [
            MergeCluster(key="row|legs", record_ids=["1", "2", "missing"]),
            MergeCluster(key="squat|legs", record_ids=["1"]),
        ]
        plans, result = MergePlanner(snapshot).plan(clusters)
        assert plans == []
        assert [s["id"] for s in result.skipped] == ["row|legs", "squat|legs"]
        assert {s["code"] for s in result.skipped} == {"INVARIANT_VIOLATION"}

    def test_planning_is_read_only(self):
        snapshot = self._snapshot()
        before = snapshot.copy()
        MergePlanner(snapshot).plan(cluster_records(snapshot.active_records()))
        assert snapshot == before
