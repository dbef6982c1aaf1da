"""Unit tests for phonetic keys and name distance helpers."""

import pytest

from welfare_grid.database.models import Beneficiary
from welfare_grid.utils.name_matching import (
    name_distance,
    normalize_full_name,
    similarity_score,
    soundex,
)


class TestSoundex:
    """American Soundex encoding."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Robert", "R163"),
            ("Rupert", "R163"),
            ("Ashcraft", "A261"),
            ("Tymczak", "T522"),
            ("Pfister", "P236"),
            ("Cruz", "C620"),
            ("Lee", "L000"),
        ],
    )
    def test_known_codes(self, name, expected):
        assert soundex(name) == expected

    def test_spacing_variants_share_a_key(self):
        """Family names written with or without particles' spaces collide."""
        assert soundex("Dela Cruz") == soundex("De La Cruz") == soundex("DelaCruz") == "D426"

    def test_case_and_accents_are_ignored(self):
        assert soundex("peña") == soundex("PENA") == "P500"

    def test_no_letters_has_no_key(self):
        assert soundex("") is None
        assert soundex(None) is None
        assert soundex("123 -") is None


class TestNameDistance:
    """Normalization and Levenshtein distance over full names."""

    def test_normalize_full_name(self):
        assert normalize_full_name("  Juan ", " Dela   Cruz") == "juan dela cruz"

    def test_identical_names_after_normalization(self):
        assert name_distance("JUAN", "dela cruz", "Juan", "Dela Cruz") == 0

    def test_spacing_difference_counts_once(self):
        assert name_distance("Juan", "Dela Cruz", "Juan", "De La Cruz") == 1

    def test_distance_is_symmetric(self):
        assert name_distance("Maria", "Santos", "Mario", "Santo") == name_distance(
            "Mario", "Santo", "Maria", "Santos"
        )

    @pytest.mark.parametrize("distance,score", [(0, 100), (1, 90), (3, 70), (10, 0), (12, 0)])
    def test_similarity_score(self, distance, score):
        assert similarity_score(distance) == score


class TestPhoneticKeyOnModel:
    """The model keeps last_name_phonetic in step with last_name."""

    def test_key_set_on_construction(self):
        beneficiary = Beneficiary(first_name="Juan", last_name="De La Cruz")
        assert beneficiary.last_name_phonetic == "D426"

    def test_key_recomputed_on_change(self):
        beneficiary = Beneficiary(first_name="Juan", last_name="Cruz")
        beneficiary.last_name = "Santos"
        assert beneficiary.last_name_phonetic == soundex("Santos")
