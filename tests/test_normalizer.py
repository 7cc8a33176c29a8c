"""Tests for name normalization, slugs and vocabulary loading."""

import pytest

from catalog_dedup.naming import (
    Vocabulary,
    default_categories,
    default_vocabulary,
    normalize_name,
    slugify,
    strip_qualifiers,
)


class TestNormalizeName:

    def test_strips_equipment_stopwords(self):
        assert normalize_name("Barbell Back Squat") == "back squat"
        assert normalize_name("Dumbbell Bench Press") == "bench press"

    def test_strips_parenthetical_and_bracketed_qualifiers(self):
        assert normalize_name("Back Squat (Low Bar)") == "back squat"
        assert normalize_name("Back Squat [v2]") == "back squat"

    def test_strips_with_band_phrase(self):
        assert normalize_name("Pull Up With Band") == "pull up"

    def test_non_alphanumerics_become_spaces(self):
        assert normalize_name("T-Bar  Row!") == "t bar row"

    def test_folds_accents(self):
        assert normalize_name("Développé Couché") == "developpe couche"

    def test_folds_simple_plurals(self):
        assert normalize_name("Back Squats") == normalize_name("Back Squat")
        assert normalize_name("Bench Press") == "bench press"
        assert normalize_name("Abs") == "abs"

    def test_stopword_only_name_falls_back_to_lowercase(self):
        assert normalize_name("Barbell") == "barbell"
        assert normalize_name("Cable  Machine") == "cable machine"

    def test_fallback_keys_do_not_collide(self):
        assert normalize_name("Barbell") != normalize_name("Dumbbell")

    def test_blank_input_yields_empty_key(self):
        assert normalize_name("") == ""
        assert normalize_name("   ") == ""

    @pytest.mark.parametrize("name", [
        "Barbell Back Squat (Low Bar)",
        "Back Squats",
        "Pull Up With Bands",
        "Barbell",
        "Cables!",
        "Bánd",
        "  Smith Machine   Squat ",
        "with band with band",
        "Crunches",
        "",
    ])
    def test_idempotent(self, name):
        once = normalize_name(name)
        assert normalize_name(once) == once

    def test_custom_vocabulary(self):
        vocab = Vocabulary(stopwords=("lever",))
        assert normalize_name("Lever Row", vocab) == "row"
        # Packaged stopwords do not apply to a custom vocabulary
        assert normalize_name("Barbell Row", vocab) == "barbell row"


class TestSlugify:

    def test_basic(self):
        assert slugify("Barbell Back Squat") == "barbell-back-squat"

    def test_trims_separators(self):
        assert slugify("  (Leg) Extension!! ") == "leg-extension"

    def test_keeps_qualifier_words(self):
        assert slugify("Leg Extension (Gethin Variation)") == "leg-extension-gethin-variation"

    def test_strip_qualifiers(self):
        assert strip_qualifiers("Leg Extension (Gethin Variation)") == "Leg Extension"


class TestVocabularyFiles:

    def test_packaged_vocabulary_loads(self):
        vocab = default_vocabulary()
        assert "barbell" in vocab.stopwords
        assert "with band" in vocab.stop_phrases
        assert "ez-bar-" in vocab.variant_prefixes
        assert vocab.min_variant_length == 3

    def test_category_table(self):
        table = default_categories()
        assert table.category_for("biceps") == "Arms"
        assert table.body_part_for("calves") == "Calves"
        assert table.category_for("unknown") == "Strength"
        assert table.body_part_for(None) is None
