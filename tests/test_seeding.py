"""Tests for base-exercise seeding, mapping files and media coverage."""

import copy
import json

import pytest

from catalog_dedup.catalog import InMemoryCatalogStore, load_snapshot
from catalog_dedup.coverage import compute_coverage
from catalog_dedup.errors import ValidationError
from catalog_dedup.media import MappingTable, load_mapping
from catalog_dedup.seeding import BaseExerciseSeeder

from conftest import FakeFolderSource, exercise_doc


MAPPING = {
    "exercises": [
        {"name": "Romanian Deadlift", "aliases": ["RDL"], "source_id": "Romanian_Deadlift",
         "category": "legs", "status": "matched"},
        {"name": "Back Squat", "aliases": ["High Bar Squat", "back squat"], "category": "legs"},
        {"name": "Zottman Curl", "aliases": [], "category": "biceps", "status": "no_match"},
        {"name": "Cossack Squat", "aliases": [], "category": "legs"},
        {"name": "", "aliases": []},
        {"name": "Broken", "aliases": "not-a-list"},
    ]
}


@pytest.fixture
def mapping():
    return MappingTable.from_dict(copy.deepcopy(MAPPING))


@pytest.fixture
def seed_store():
    return InMemoryCatalogStore(exercises={
        "bs": exercise_doc("back squat", aliases=["Squat"]),
    })


def _ids():
    counter = iter(range(100))
    return lambda: f"new{next(counter)}"


class TestMappingTable:

    def test_invalid_rows_skipped(self, mapping):
        assert [e.name for e in mapping.entries] == [
            "Romanian Deadlift", "Back Squat", "Zottman Curl", "Cossack Squat",
        ]
        assert len(mapping.invalid) == 2

    def test_lookup_by_name_and_alias_slug(self, mapping):
        assert mapping.get("rdl").name == "Romanian Deadlift"
        assert mapping.get("high-bar-squat").name == "Back Squat"
        assert mapping.get("zottman-curl") is None

    def test_requires_exercises_list(self):
        with pytest.raises(ValidationError):
            MappingTable.from_dict({"rows": []})

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "mapping.json"
        path.write_text(json.dumps(MAPPING))
        table, invalid = load_mapping(str(path))
        assert len(table.entries) == 4
        assert len(invalid) == 2
        assert load_mapping(None) == (None, [])


class TestBaseExerciseSeeder:

    def test_creates_and_updates(self, seed_store, mapping, runner):
        source = FakeFolderSource({
            "romanian-deadlift": ["0.jpg"],
            "back-squat": ["1.jpg"],
            "cossack-squat-bodyweight": ["0.jpg"],
        })
        seeder = BaseExerciseSeeder(
            seed_store, load_snapshot(seed_store), mapping, folder_source=source,
            system_user_id="sys", dry_run=False, runner=runner, id_factory=_ids(),
        )
        result = seeder.run()

        assert len(seeder.created) == 2
        assert seeder.updated == ["bs"]
        assert {s["id"]: s["code"] for s in result.skipped} == {"Zottman Curl": "NO_MATCH"}

        existing = seed_store.exercises["bs"]
        assert existing["alias_names"] == ["Squat", "High Bar Squat"]
        assert existing["image_url"] == "/exercises/back-squat/1.jpg"

        rdl = next(d for d in seed_store.exercises.values() if d["name"] == "Romanian Deadlift")
        assert rdl["curated"] is True
        assert rdl["source"] == "CSV_IMPORT"
        assert rdl["category"] == "Legs"
        assert rdl["alias_names"] == ["RDL"]
        assert rdl["image_url"] == "/exercises/romanian-deadlift/0.jpg"

        cossack = next(d for d in seed_store.exercises.values() if d["name"] == "Cossack Squat")
        assert cossack["image_url"] == "/exercises/cossack-squat-bodyweight/0.jpg"

        assert {m["created_by"] for m in seed_store.media.values()} == {"sys"}

    def test_second_run_changes_nothing(self, seed_store, mapping, runner):
        BaseExerciseSeeder(seed_store, load_snapshot(seed_store), mapping,
                           dry_run=False, runner=runner).run()
        after = copy.deepcopy(seed_store.exercises)

        seeder = BaseExerciseSeeder(seed_store, load_snapshot(seed_store), mapping,
                                    dry_run=False, runner=runner)
        seeder.run()
        assert seeder.created == []
        assert seed_store.exercises == after

    def test_inactive_match_not_reactivated(self, mapping, runner):
        store = InMemoryCatalogStore(exercises={
            "old": exercise_doc("Cossack Squat", active=False),
        })
        seeder = BaseExerciseSeeder(store, load_snapshot(store), mapping,
                                    dry_run=False, runner=runner)
        result = seeder.run()
        assert store.exercises["old"]["is_active"] is False
        assert ("Cossack Squat", "INACTIVE_MATCH") in {(s["id"], s["code"]) for s in result.skipped}

    def test_dry_run_does_not_write(self, seed_store, mapping, runner):
        before = copy.deepcopy(seed_store.exercises)
        seeder = BaseExerciseSeeder(seed_store, load_snapshot(seed_store), mapping, runner=runner)
        seeder.run()
        assert seed_store.exercises == before
        assert len(seeder.created) == 2


class TestCoverage:

    def test_counts_active_records(self):
        store = InMemoryCatalogStore(exercises={
            "a": exercise_doc("Row", image_url="/x.jpg"),
            "b": exercise_doc("Curl"),
            "c": exercise_doc("Plank"),
            "d": exercise_doc("Old", active=False),
        })
        report = compute_coverage(store)
        assert report.total_active == 3
        assert report.with_image == 1
        assert report.without_image == 2
        assert report.coverage_pct == 33.3
        assert report.to_dict(limit=1)["missing"] == ["Curl"]
        assert report.to_dict(limit=1)["missing_truncated"] is True

    def test_empty_catalog(self):
        assert compute_coverage(InMemoryCatalogStore()).coverage_pct == 0.0
