"""
Naming Package - Deterministic name keys, slugs and word lists.

This package provides:
- normalizer: normalize_name (cluster keys) and slugify (folder slugs)
- vocabulary: loadable stopword / prefix / suffix / category tables
"""

from catalog_dedup.naming.normalizer import (
    normalize_name,
    slugify,
    strip_qualifiers,
)

from catalog_dedup.naming.vocabulary import (
    CategoryTable,
    Vocabulary,
    default_categories,
    default_vocabulary,
)


__all__ = [
    "normalize_name",
    "slugify",
    "strip_qualifiers",
    "CategoryTable",
    "Vocabulary",
    "default_categories",
    "default_vocabulary",
]
