"""
Media Package - Media folder listings and record linking.

This package provides:
- folders: local directory and Cloud Storage folder sources
- mapping: external name/alias mapping table
- linker: ordered matching cascade and the AssetLinker phase
- bulk: loose substring matcher for first-time record creation
"""

from catalog_dedup.media.folders import (
    FolderSource,
    GcsFolderSource,
    LocalFolderSource,
)

from catalog_dedup.media.mapping import (
    MappingEntry,
    MappingTable,
    load_mapping,
)

from catalog_dedup.media.linker import (
    AssetLinker,
    LinkMatch,
    MatchStrategy,
    choose_primary_asset,
    find_media_folder,
    generate_name_variants,
)

from catalog_dedup.media.bulk import find_folder_loose


__all__ = [
    "FolderSource",
    "GcsFolderSource",
    "LocalFolderSource",
    "MappingEntry",
    "MappingTable",
    "load_mapping",
    "AssetLinker",
    "LinkMatch",
    "MatchStrategy",
    "choose_primary_asset",
    "find_media_folder",
    "generate_name_variants",
    "find_folder_loose",
]
