"""
Loose folder matching for first-time record creation.

Used only by the seeder when a brand-new record has no exact folder. Too
permissive for the linking cascade: "squat" would match every squat folder.
"""

from __future__ import annotations

from typing import Iterable, Optional

from catalog_dedup.naming.normalizer import slugify, strip_qualifiers
from catalog_dedup.naming.vocabulary import Vocabulary, default_vocabulary


def find_folder_loose(
    name: str,
    folders: Iterable[str],
    vocabulary: Optional[Vocabulary] = None,
) -> Optional[str]:
    """
    Exact slug, then simplified slug, then substring containment either way.

    Folders are scanned in sorted order so the same inputs always pick the
    same folder.
    """
    vocab = vocabulary or default_vocabulary()
    available = sorted(set(folders))
    slug = slugify(name)
    if slug in available:
        return slug

    simplified = slugify(strip_qualifiers(name))
    for prefix in sorted(vocab.variant_prefixes, key=len, reverse=True):
        if simplified.startswith(prefix):
            simplified = simplified[len(prefix):]
            break
    if simplified in available:
        return simplified
    if len(simplified) < vocab.min_variant_length:
        return None

    for folder in available:
        if simplified in folder or folder in simplified:
            return folder
    return None


__all__ = [
    "find_folder_loose",
]
