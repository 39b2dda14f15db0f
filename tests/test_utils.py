"""Tests for utility functions."""

from __future__ import annotations

import pytest

from refindex.utils import (
    clean_catalog_title,
    clean_text,
    date_from_parts,
    doi_normalize,
    find_isbns,
    first_text,
    is_blank,
    isbn_normalize,
    normalize_text,
    safe_get,
    significant_tokens,
    split_display_name,
    split_imprint,
    strip_diacritics,
    strip_html,
    year_from_text,
)


class TestNormalizeText:
    """Tests for normalize_text function."""

    def test_strips_accents_and_case(self):
        assert normalize_text("Über die Möglichkeit") == "uber die moglichkeit"

    def test_removes_quotes(self):
        assert normalize_text("Schrödinger's “cat”") == "schrodingers cat"

    def test_collapses_punctuation(self):
        assert normalize_text("Deep--Learning: A   Survey!") == "deep learning a survey"

    def test_removes_and_the(self):
        assert normalize_text("The Cat and the Hat") == "cat hat"

    def test_stopwords_only_as_whole_words(self):
        assert normalize_text("Theory of Android") == "theory of android"

    def test_empty(self):
        assert normalize_text("") == ""
        assert normalize_text(None) == ""


class TestStripDiacritics:
    """Tests for strip_diacritics function."""

    def test_umlaut(self):
        assert strip_diacritics("Müller") == "Muller"

    def test_accent(self):
        assert strip_diacritics("café") == "cafe"


class TestIsBlank:
    """Tests for is_blank function."""

    @pytest.mark.parametrize("value", [None, "", "   ", "null", "NULL", " null ", [], ()])
    def test_blank_values(self, value):
        assert is_blank(value)

    @pytest.mark.parametrize("value", ["x", "nullable", 0, ["a"], 2020])
    def test_non_blank_values(self, value):
        assert not is_blank(value)


class TestCleanText:
    """Tests for clean_text function."""

    def test_number_coerced(self):
        assert clean_text(2020) == "2020"

    def test_null_string(self):
        assert clean_text("null") == ""

    def test_structures_are_blank(self):
        assert clean_text({"a": 1}) == ""
        assert clean_text(["a"]) == ""


class TestDoiNormalize:
    """Tests for doi_normalize function."""

    def test_strips_url_prefix(self):
        assert doi_normalize("https://doi.org/10.1234/ABC.def") == "10.1234/abc.def"

    def test_strips_dx_prefix(self):
        assert doi_normalize("http://dx.doi.org/10.1234/abc") == "10.1234/abc"

    def test_strips_doi_scheme(self):
        assert doi_normalize("doi:10.1234/abc") == "10.1234/abc"

    def test_trailing_punctuation_removed(self):
        assert doi_normalize("10.1234/abc.") == "10.1234/abc"

    def test_short_prefix_kept(self):
        assert doi_normalize("10.1/abc") == "10.1/abc"

    def test_blank(self):
        assert doi_normalize(None) == ""
        assert doi_normalize("null") == ""


class TestIsbn:
    """Tests for ISBN helpers."""

    def test_isbn13_separators(self):
        assert isbn_normalize("978-3-16-148410-0") == "9783161484100"

    def test_isbn10_converted(self):
        assert isbn_normalize("3-16-148410-X") == "9783161484100"

    def test_invalid_length(self):
        assert isbn_normalize("12345") == ""

    def test_find_isbns_in_identifier(self):
        assert find_isbns("ISBN 3-16-148410-X (Pp.)") == ["9783161484100"]

    def test_find_isbns_dedupes(self):
        assert find_isbns("ISBN 9783161484100; ISBN 3161484100") == ["9783161484100"]


class TestYearsAndDates:
    """Tests for year and date helpers."""

    def test_year_from_text(self):
        assert year_from_text("Berlin, 1998; reprinted 2001") == "1998"

    def test_year_from_number(self):
        assert year_from_text(2020) == "2020"

    def test_year_absent(self):
        assert year_from_text("n.d.") == ""

    def test_date_parts_full(self):
        assert date_from_parts([[2020, 3, 5]]) == "2020-03-05"

    def test_date_parts_year_only(self):
        assert date_from_parts([[2020]]) == "2020"

    def test_date_parts_missing(self):
        assert date_from_parts([[None]]) == ""
        assert date_from_parts(None) == ""
        assert date_from_parts("2020") == ""


class TestCatalogHelpers:
    """Tests for library catalog text helpers."""

    def test_clean_catalog_title_responsibility(self):
        assert clean_catalog_title("Theory of games / by John von Neumann.") == "Theory of games"

    def test_clean_catalog_title_trailing_punctuation(self):
        assert clean_catalog_title("Theory of games :") == "Theory of games"

    def test_split_imprint(self):
        assert split_imprint("Berlin : Springer, 1998.") == ("Berlin", "Springer")

    def test_split_imprint_without_place(self):
        assert split_imprint("Springer, 1998") == ("", "Springer")

    def test_significant_tokens(self):
        assert significant_tokens("The Theory of Games and Economic Behavior", 3) == ["theory", "games", "economic"]

    def test_strip_html(self):
        assert strip_html("On <i>E. coli</i>  growth") == "On E. coli growth"


class TestNames:
    """Tests for split_display_name function."""

    def test_given_family(self):
        assert split_display_name("John von Neumann") == ("John von", "Neumann")

    def test_comma_form(self):
        assert split_display_name("Neumann, John von") == ("John von", "Neumann")

    def test_single_name(self):
        assert split_display_name("Plato") == ("", "Plato")

    def test_empty(self):
        assert split_display_name("") == ("", "")


class TestJsonAccess:
    """Tests for defensive JSON helpers."""

    def test_safe_get_nested(self):
        assert safe_get({"a": [{"b": "x"}]}, "a", 0, "b") == "x"

    def test_safe_get_missing(self):
        assert safe_get({"a": None}, "a", 0, "b") is None
        assert safe_get({"a": []}, "a", 0) is None
        assert safe_get("text", "a") is None

    def test_first_text_list(self):
        assert first_text(["", None, "Title"]) == "Title"

    def test_first_text_scalar(self):
        assert first_text("Title") == "Title"
        assert first_text(None) == ""
