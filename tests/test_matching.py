"""Tests for similarity scoring."""

from __future__ import annotations

import pytest

from refindex.matching import (
    CandidateFields,
    dice_coefficient,
    reference_year,
    score_candidate,
    score_title_author,
    score_title_year,
)
from refindex.reference import Author

PAIRS = [
    ("Deep Learning for Everything", "Deep learning for everything!"),
    ("A Study of Things", "An Analysis of Stuff"),
    ("night", "nacht"),
    ("ab", "ba"),
    ("aaaa", "aa"),
    ("Über Graphen", "Uber Graphen"),
    ("x", "xy"),
    ("", "anything"),
]


class TestDiceCoefficient:
    """Tests for dice_coefficient function."""

    @pytest.mark.parametrize("a,b", PAIRS)
    def test_symmetric(self, a, b):
        assert dice_coefficient(a, b) == dice_coefficient(b, a)

    @pytest.mark.parametrize("a,b", PAIRS)
    def test_bounded(self, a, b):
        assert 0.0 <= dice_coefficient(a, b) <= 1.0

    @pytest.mark.parametrize("text", ["Deep Learning", "x", "Über", "The Theory of Games"])
    def test_identity(self, text):
        assert dice_coefficient(text, text) == 1.0

    def test_normalization_makes_equal(self):
        assert dice_coefficient("The Theory of Games", "theory of games") == 1.0

    def test_blank_scores_zero(self):
        assert dice_coefficient("", "title") == 0.0
        assert dice_coefficient("!!!", "title") == 0.0

    def test_single_char_scores_zero(self):
        assert dice_coefficient("x", "xy") == 0.0

    def test_known_value(self):
        # night: ni ig gh ht / nacht: na ac ch ht -> one shared bigram
        assert dice_coefficient("night", "nacht") == pytest.approx(0.25)

    def test_bigrams_counted_as_multiset(self):
        # aaaa has three "aa" bigrams, aa has one
        assert dice_coefficient("aaaa", "aa") == pytest.approx(2 * 1 / (3 + 1))

    def test_spaces_ignored(self):
        assert dice_coefficient("deep learning", "deeplearning") == 1.0


class TestScoreCandidate:
    """Tests for score_candidate function."""

    def test_equal_doi_scores_one_regardless_of_title(self, make_reference):
        ref = make_reference(title="Completely Different", doi="https://doi.org/10.1234/ABC")
        result = score_candidate(ref, CandidateFields(title="Unrelated words", doi="10.1234/abc"))
        assert result.score == 1.0
        assert not result.doi_mismatch

    def test_unequal_doi_scores_zero_regardless_of_title(self, make_reference):
        ref = make_reference(doi="10.1234/abc")
        result = score_candidate(
            ref,
            CandidateFields(title=ref.title, doi="10.1234/xyz", year="2021", first_author_last_name="Smith"),
        )
        assert result.score == 0.0
        assert result.doi_mismatch

    def test_one_sided_doi_uses_text(self, make_reference):
        ref = make_reference(doi="")
        result = score_candidate(
            ref, CandidateFields(title=ref.title, doi="10.1234/abc", year="2021", first_author_last_name="Smith")
        )
        assert result.score == pytest.approx(1.0)
        assert not result.doi_mismatch

    def test_weights(self, make_reference):
        ref = make_reference()
        title_only = score_candidate(ref, CandidateFields(title=ref.title))
        with_author = score_candidate(ref, CandidateFields(title=ref.title, first_author_last_name="smith"))
        with_year = score_candidate(ref, CandidateFields(title=ref.title, year="2021"))
        assert title_only.score == pytest.approx(0.75)
        assert with_author.score == pytest.approx(0.95)
        assert with_year.score == pytest.approx(0.80)

    def test_author_is_exact_not_fuzzy(self, make_reference):
        ref = make_reference()
        result = score_candidate(ref, CandidateFields(title=ref.title, first_author_last_name="Smyth"))
        assert result.score == pytest.approx(0.75)

    def test_author_compared_after_normalization(self, make_reference):
        ref = make_reference(authors=(Author("Kurt", "Gödel"),))
        result = score_candidate(ref, CandidateFields(title=ref.title, first_author_last_name="GODEL"))
        assert result.score == pytest.approx(0.95)

    def test_year_taken_from_date(self, make_reference):
        ref = make_reference(year="", date="March 2021")
        result = score_candidate(ref, CandidateFields(title=ref.title, year="2021"))
        assert result.score == pytest.approx(0.80)

    def test_missing_candidate_title(self, make_reference):
        result = score_candidate(make_reference(), CandidateFields(year="2021"))
        assert result.score == pytest.approx(0.05)


class TestVariants:
    """Tests for the relaxed per-source scores."""

    def test_reference_year_prefers_year_field(self, make_reference):
        assert reference_year(make_reference(year="1999", date="2001-01-01")) == "1999"

    def test_reference_year_ignores_malformed_year(self, make_reference):
        assert reference_year(make_reference(year="99", date="2001-01-01")) == "2001"

    def test_title_year(self, make_reference):
        ref = make_reference()
        assert score_title_year(ref, ref.title, "2021") == pytest.approx(1.0)
        assert score_title_year(ref, ref.title, "1990") == pytest.approx(0.9)

    def test_title_author(self, make_reference):
        ref = make_reference()
        assert score_title_author(ref, ref.title, "Smith") == pytest.approx(1.0)
        assert score_title_author(ref, "", "Smith") == pytest.approx(0.1)
