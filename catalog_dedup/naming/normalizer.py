"""
Name Normalizer - Deterministic keys and slugs for exercise names.

Rules (normalize_name):
- Lowercase, fold accents to ASCII
- Drop parenthetical and bracketed qualifiers: "Squat (Barbell)" -> "squat"
- Non-alphanumerics become spaces
- Fold simple plurals ("squats" -> "squat") when the vocabulary enables it
- Drop equipment/modifier stopwords (vocabulary.json)
- Collapse whitespace, trim

Idempotent: normalize_name(normalize_name(s)) == normalize_name(s).
A name made only of stopwords falls back to its lowercased form so that
unrelated equipment-only names never share the empty key.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Optional

from catalog_dedup.naming.vocabulary import Vocabulary, default_vocabulary

_PARENS_RE = re.compile(r"\([^)]*\)")
_BRACKETS_RE = re.compile(r"\[[^\]]*\]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def _fold_ascii(text: str) -> str:
    text = unicodedata.normalize("NFKD", text)
    return text.encode("ascii", "ignore").decode("ascii")


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _singular(token: str, vocab: Vocabulary) -> str:
    if len(token) <= 3 or not token.endswith("s") or token.endswith(vocab.plural_exempt_endings):
        return token
    return token[:-1]


def _strip_phrases(text: str, phrases) -> str:
    # Repeat until stable; removing one phrase can join the halves of another
    while True:
        stripped = text
        for phrase in phrases:
            stripped = re.sub(rf"\b{re.escape(phrase)}\b", " ", stripped)
        stripped = _collapse(stripped)
        if stripped == text:
            return stripped
        text = stripped


def normalize_name(name: str, vocabulary: Optional[Vocabulary] = None) -> str:
    """
    Normalize an exercise name to its clustering key.

    Args:
        name: Raw display name (e.g., "Barbell Back Squat (Low Bar)")
        vocabulary: Stopword lists (defaults to the packaged vocabulary)

    Returns:
        Key (e.g., "back squat"), or the lowercased name when every token
        is a stopword
    """
    if not isinstance(name, str):
        return ""
    vocab = vocabulary or default_vocabulary()

    key = _fold_ascii(name.lower())
    key = _PARENS_RE.sub(" ", key)
    key = _BRACKETS_RE.sub(" ", key)
    key = _NON_ALNUM_RE.sub(" ", key)
    key = _strip_phrases(_collapse(key), vocab.stop_phrases)

    tokens = key.split()
    if vocab.fold_plurals:
        tokens = [_singular(t, vocab) for t in tokens]
    stopwords = set(vocab.stopwords)
    key = " ".join(t for t in tokens if t not in stopwords)

    if not key:
        return _collapse(name.lower())
    return key


def slugify(name: str) -> str:
    """
    Derive a folder-style slug from a name.

    "Leg Extension (Gethin Variation)" -> "leg-extension-gethin-variation"
    """
    if not isinstance(name, str):
        return ""
    slug = _fold_ascii(name).lower()
    slug = _NON_ALNUM_RE.sub("-", slug)
    return slug.strip("-")


def strip_qualifiers(name: str) -> str:
    """Remove parenthetical and bracketed qualifiers from a display name."""
    if not isinstance(name, str):
        return ""
    return _collapse(_BRACKETS_RE.sub(" ", _PARENS_RE.sub(" ", name)))


__all__ = [
    "normalize_name",
    "slugify",
    "strip_qualifiers",
]
