"""Shared fixtures for refindex tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from refindex import (
    Author,
    ExtractedReference,
    IndexConfig,
    IndexMatch,
    IndexSource,
    IndexStatus,
    ItemType,
    JsonResponse,
)
from refindex.indices.base import IndexAdapter


@pytest.fixture
def make_reference():
    """Factory fixture for creating references."""

    def _make_reference(**kwargs) -> ExtractedReference:
        values: dict[str, Any] = {
            "item_type": ItemType.JOURNAL_ARTICLE,
            "title": "Deep Learning for Everything",
            "authors": (Author("John", "Smith"), Author("Jane", "Doe")),
            "year": "2021",
        }
        values.update(kwargs)
        return ExtractedReference(**values)

    return _make_reference


@pytest.fixture
def book_reference(make_reference):
    """A typical monograph without identifiers."""
    return make_reference(
        item_type=ItemType.BOOK,
        title="Theory of Games and Economic Behavior",
        authors=(Author("John", "von Neumann"), Author("Oskar", "Morgenstern")),
        year="1944",
    )


@pytest.fixture
def config():
    """Default configuration."""
    return IndexConfig()


@pytest.fixture
def mock_http():
    """MagicMock HTTP client; set `request_json.return_value` per test."""
    http = MagicMock()
    http.request_json.return_value = JsonResponse(404, {})
    return http


@pytest.fixture
def respond(mock_http):
    """Make the mocked client return `data` with `status` for every request."""

    def _respond(data: Any, status: int = 200) -> MagicMock:
        mock_http.request_json.return_value = JsonResponse(status, data)
        return mock_http

    return _respond


class FakeAdapter(IndexAdapter):
    """Adapter returning a predetermined match."""

    def __init__(self, match: IndexMatch | Exception):
        self.http = None
        self.config = IndexConfig()
        self.source = match.source if isinstance(match, IndexMatch) else IndexSource.CROSSREF
        self._match_result = match
        self.calls = 0

    def _match(self, ref):
        self.calls += 1
        if isinstance(self._match_result, Exception):
            raise self._match_result
        return self._match_result


@pytest.fixture
def make_match():
    """Factory fixture for creating IndexMatch values."""

    def _make_match(
        status: IndexStatus = IndexStatus.VALIDATED,
        score: float = 1.0,
        source: IndexSource = IndexSource.CROSSREF,
        explanation: str = "matched",
        url: str | None = None,
        patch: dict[str, Any] | None = None,
    ) -> IndexMatch:
        return IndexMatch(source, status, score, explanation, url, patch)

    return _make_match


@pytest.fixture
def fake_adapter():
    """Factory fixture for creating fake adapters."""

    def _create(match: IndexMatch | Exception) -> FakeAdapter:
        return FakeAdapter(match)

    return _create
