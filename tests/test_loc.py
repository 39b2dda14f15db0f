"""Tests for the Library of Congress adapter."""

from __future__ import annotations

import pytest

from refindex import IndexConfig, IndexStatus
from refindex.indices.loc import LocAdapter, loc_result_to_candidate
from refindex.utils import LOC_API


@pytest.fixture
def loc_result():
    """A loc.gov search result for a monograph."""
    return {
        "id": "http://www.loc.gov/item/44003253/",
        "title": "Theory of games and economic behavior / by John von Neumann and Oskar Morgenstern.",
        "date": "1944",
        "contributor": ["von neumann, john", "morgenstern, oskar"],
        "item": {"created_published": ["Princeton : Princeton University Press, 1944."]},
    }


class TestLocParsing:
    """Tests for loc_result_to_candidate function."""

    def test_fields(self, loc_result):
        candidate = loc_result_to_candidate(loc_result)
        assert candidate.title == "Theory of games and economic behavior"
        assert candidate.year == "1944"
        assert candidate.first_author_last_name == "von neumann"
        assert candidate.url == "http://www.loc.gov/item/44003253/"

    def test_imprint_split(self, loc_result):
        patch = loc_result_to_candidate(loc_result).patch
        assert patch["place"] == "Princeton"
        assert patch["publisher"] == "Princeton University Press"

    def test_missing_imprint(self, loc_result):
        del loc_result["item"]
        patch = loc_result_to_candidate(loc_result).patch
        assert "place" not in patch
        assert "publisher" not in patch


class TestLocAdapter:
    """Tests for LocAdapter.match."""

    def test_book_filter_and_query(self, book_reference, respond, loc_result):
        http = respond({"results": [loc_result]})
        match = LocAdapter(http, IndexConfig()).match(book_reference)
        assert match.status is IndexStatus.VALIDATED
        assert match.score == pytest.approx(1.0)
        assert http.request_json.call_args.args[0] == LOC_API
        params = http.request_json.call_args.kwargs["params"]
        assert params == {
            "q": "theory games economic behavior von neumann",
            "fo": "json",
            "c": 5,
            "fa": "original-format:book",
        }

    def test_article_has_no_format_filter(self, make_reference, respond):
        http = respond({"results": []})
        match = LocAdapter(http, IndexConfig()).match(make_reference())
        assert match.explanation == "no results"
        assert "fa" not in http.request_json.call_args.kwargs["params"]

    def test_weak_match(self, book_reference, respond):
        http = respond({"results": [{"title": "Games people play", "date": "1964"}]})
        match = LocAdapter(http, IndexConfig()).match(book_reference)
        assert match.status is IndexStatus.NOT_FOUND
        assert match.patch is None

    def test_stopword_title_is_missing(self, make_reference, mock_http):
        match = LocAdapter(mock_http, IndexConfig()).match(make_reference(title="Of the and"))
        assert match.explanation == "missing title"
        mock_http.request_json.assert_not_called()
