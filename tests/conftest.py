"""Shared fixtures: in-memory catalog, fake media folders, record builders."""

from typing import Dict, List, Optional

import pytest

from catalog_dedup.apply.batching import BatchRunner
from catalog_dedup.catalog.store import InMemoryCatalogStore
from catalog_dedup.errors import TransientIOError
from catalog_dedup.media.folders import FolderSource


def exercise_doc(
    name: str,
    body_part: Optional[str] = "Legs",
    source: str = "PROGRAM_IMPORT",
    curated: bool = False,
    active: bool = True,
    usage_count: int = 0,
    aliases: Optional[List[str]] = None,
    image_url: Optional[str] = None,
    video_url: Optional[str] = None,
    slug: Optional[str] = None,
) -> Dict:
    return {
        "name": name,
        "slug": slug,
        "alias_names": aliases or [],
        "category": "Strength",
        "body_part": body_part,
        "source": source,
        "curated": curated,
        "is_active": active,
        "usage_count": usage_count,
        "image_url": image_url,
        "video_url": video_url,
    }


def media_doc(owner: str, url: str = "https://cdn.example/x.jpg", status: str = "approved") -> Dict:
    return {"exercise_id": owner, "url": url, "provider": "upload", "status": status}


class FakeFolderSource(FolderSource):
    """Folder listing held in a dict; can fail on demand."""

    provider = "local"

    def __init__(self, folders: Dict[str, List[str]], failing: Optional[set] = None):
        self.folders = folders
        self.failing = failing or set()
        self.listed: List[str] = []

    def list_folders(self) -> List[str]:
        return sorted(self.folders)

    def list_assets(self, folder: str) -> List[str]:
        self.listed.append(folder)
        if folder in self.failing:
            raise TransientIOError(f"cannot list {folder}")
        return sorted(self.folders.get(folder, []))

    def asset_url(self, folder: str, filename: str) -> str:
        return f"/exercises/{folder}/{filename}"


@pytest.fixture
def runner():
    """BatchRunner that never sleeps."""
    return BatchRunner(batch_size=400, max_retries=2, max_consecutive_failures=3,
                       sleep=lambda _: None)


@pytest.fixture
def squat_store():
    """A (curated), B (external, has media), C (no media): one cluster."""
    return InMemoryCatalogStore(
        exercises={
            "A": exercise_doc("Barbell Back Squat", curated=True, source="CURATED"),
            "B": exercise_doc("Back Squats", source="EXTERNAL_DB", aliases=["BB Squat"]),
            "C": exercise_doc("Back Squat"),
            "D": exercise_doc("Bench Press", body_part="Chest"),
        },
        media={
            "m1": media_doc("B", "https://cdn.example/back-squat.jpg"),
        },
    )


@pytest.fixture
def folder_source():
    return FakeFolderSource({
        "barbell-back-squat": ["1.jpg", "0.jpg"],
        "bench-press": ["a.png", "b.png"],
        "romanian-deadlift": ["0.jpg"],
        "empty-folder": [],
    })
