"""Configuration for the catalog dedup engine."""

import os

# GCP Project
PROJECT_ID = os.getenv("GCP_PROJECT_ID", "")

# Firestore collections
EXERCISES_COLLECTION = os.getenv("CATALOG_EXERCISES_COLLECTION", "exercises")
MEDIA_COLLECTION = os.getenv("CATALOG_MEDIA_COLLECTION", "exercise_media")
CHANGES_COLLECTION = os.getenv("CATALOG_CHANGES_COLLECTION", "catalog_changes")

# Firestore caps a WriteBatch at 500 writes; stay below it
BATCH_SIZE = int(os.getenv("CATALOG_BATCH_SIZE", "400"))

# Transient I/O handling
MAX_RETRIES = int(os.getenv("CATALOG_MAX_RETRIES", "2"))
BACKOFF_FACTOR = float(os.getenv("CATALOG_BACKOFF_FACTOR", "0.5"))
MAX_CONSECUTIVE_FAILURES = int(os.getenv("CATALOG_MAX_CONSECUTIVE_FAILURES", "3"))

# Media linking
MEDIA_URL_PREFIX = os.getenv("CATALOG_MEDIA_URL_PREFIX", "/exercises")
MEDIA_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
PRIMARY_ASSET_STEM = "0"
SYSTEM_USER_ID = os.getenv("CATALOG_SYSTEM_USER_ID", "")

# Reporting
MAX_LISTED_ITEMS = 50
