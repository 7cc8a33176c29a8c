"""
Folder Sources - Listings of per-exercise media folders.

A media root holds one folder per exercise, named by slug:

    <root>/barbell-back-squat/0.jpg
    <root>/barbell-back-squat/1.jpg

LocalFolderSource reads a directory tree; GcsFolderSource lists a bucket
prefix. Listings are sorted so primary-asset selection is deterministic.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import List, Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import storage

from catalog_dedup import config
from catalog_dedup.errors import TransientIOError

logger = logging.getLogger(__name__)


def is_media_file(filename: str) -> bool:
    return os.path.splitext(filename)[1].lower() in config.MEDIA_EXTENSIONS


class FolderSource(ABC):
    """Read-only listing of media folders."""

    provider = "upload"

    @abstractmethod
    def list_folders(self) -> List[str]:
        """Folder names (slugs), sorted."""

    @abstractmethod
    def list_assets(self, folder: str) -> List[str]:
        """Media file names inside a folder, sorted."""

    @abstractmethod
    def asset_url(self, folder: str, filename: str) -> str:
        """URL stored on the record for an asset."""


class LocalFolderSource(FolderSource):
    """Per-exercise folders under a local directory."""

    provider = "local"

    def __init__(self, root: str, url_prefix: str = config.MEDIA_URL_PREFIX):
        self.root = root
        self.url_prefix = url_prefix.rstrip("/")

    def list_folders(self) -> List[str]:
        try:
            entries = os.listdir(self.root)
        except OSError as e:
            raise TransientIOError(f"Cannot list media root {self.root}: {e}")
        return sorted(e for e in entries if os.path.isdir(os.path.join(self.root, e)))

    def list_assets(self, folder: str) -> List[str]:
        path = os.path.join(self.root, folder)
        try:
            entries = os.listdir(path)
        except OSError as e:
            raise TransientIOError(f"Cannot list media folder {path}: {e}")
        return sorted(e for e in entries if is_media_file(e))

    def asset_url(self, folder: str, filename: str) -> str:
        return f"{self.url_prefix}/{folder}/{filename}"


class GcsFolderSource(FolderSource):
    """Per-exercise folders under a Cloud Storage bucket prefix."""

    provider = "gcs"

    def __init__(
        self,
        bucket_name: str,
        prefix: str = "",
        client: Optional[storage.Client] = None,
        url_prefix: Optional[str] = None,
    ):
        self.bucket_name = bucket_name.replace("gs://", "").strip("/")
        self.prefix = prefix.strip("/") + "/" if prefix.strip("/") else ""
        self._client = client
        self.url_prefix = (
            url_prefix.rstrip("/") if url_prefix
            else f"https://storage.googleapis.com/{self.bucket_name}"
        )

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            self._client = storage.Client(project=config.PROJECT_ID or None)
        return self._client

    def list_folders(self) -> List[str]:
        try:
            blobs = self.client.list_blobs(
                self.bucket_name, prefix=self.prefix, delimiter="/"
            )
            # Prefixes are only populated once the iterator is consumed
            for _ in blobs:
                pass
            prefixes = blobs.prefixes
        except gcp_exceptions.GoogleAPICallError as e:
            raise TransientIOError(f"Cannot list gs://{self.bucket_name}/{self.prefix}: {e}")
        return sorted(p[len(self.prefix):].strip("/") for p in prefixes)

    def list_assets(self, folder: str) -> List[str]:
        folder_prefix = f"{self.prefix}{folder}/"
        try:
            names = [
                blob.name[len(folder_prefix):]
                for blob in self.client.list_blobs(self.bucket_name, prefix=folder_prefix)
            ]
        except gcp_exceptions.GoogleAPICallError as e:
            raise TransientIOError(f"Cannot list gs://{self.bucket_name}/{folder_prefix}: {e}")
        return sorted(n for n in names if n and "/" not in n and is_media_file(n))

    def asset_url(self, folder: str, filename: str) -> str:
        return f"{self.url_prefix}/{self.prefix}{folder}/{filename}"


__all__ = [
    "FolderSource",
    "LocalFolderSource",
    "GcsFolderSource",
    "is_media_file",
]
