"""Shared contract for bibliographic index adapters.

Every adapter turns one reference into exactly one IndexMatch. Request
construction and response-shape parsing stay inside the adapter; callers only
ever see the status, score, explanation, url and patch.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from refindex.matching import VALIDATION_THRESHOLD, CandidateFields, CandidateScore
from refindex.utils import HttpClient, JsonResponse, is_blank

if TYPE_CHECKING:
    from refindex.config import IndexConfig
    from refindex.reference import ExtractedReference

logger = logging.getLogger(__name__)


class IndexSource(Enum):
    """Supported index providers, in declaration order."""

    CROSSREF = "crossref"
    OPENALEX = "openalex"
    LOBID = "lobid"
    LOC = "loc"
    GBV = "gbv"
    WIKIDATA = "wikidata"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    IndexSource.CROSSREF: "Crossref",
    IndexSource.OPENALEX: "OpenAlex",
    IndexSource.LOBID: "lobid",
    IndexSource.LOC: "Library of Congress",
    IndexSource.GBV: "GBV",
    IndexSource.WIKIDATA: "Wikidata",
}


class IndexStatus(Enum):
    """Outcome of one adapter lookup, in ranking order."""

    VALIDATED = "validated"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    IndexStatus.VALIDATED: 0,
    IndexStatus.INVALID: 1,
    IndexStatus.NOT_FOUND: 2,
    IndexStatus.ERROR: 3,
}


@dataclass
class IndexMatch:
    """One adapter's verdict for one reference.

    `patch` maps ExtractedReference attribute names to authoritative values
    and never contains blanks.
    """

    source: IndexSource
    status: IndexStatus
    score: float
    explanation: str
    url: str | None = None
    patch: dict[str, Any] | None = None


@dataclass
class Candidate:
    """A decoded index record.

    Adapters fill only what their schema provides; everything else stays blank.
    """

    title: str = ""
    doi: str = ""
    year: str = ""
    first_author_last_name: str = ""
    url: str | None = None
    isbns: list[str] = field(default_factory=list)
    patch: dict[str, Any] = field(default_factory=dict)

    def fields(self) -> CandidateFields:
        return CandidateFields(self.title, self.doi, self.year, self.first_author_last_name)


def make_patch(**values: Any) -> dict[str, Any]:
    """Build a patch, dropping blank values."""
    return {k: v for k, v in values.items() if not is_blank(v)}


class MalformedResponse(ValueError):
    """Raised by adapters when a response body has an unexpected shape."""


class IndexAdapter(ABC):
    """Base class for index adapters.

    Subclasses implement `_match()`. The public `match()` is the failure
    boundary: any exception raised while querying or decoding becomes an
    `error` match, so one failing index never aborts the batch.
    """

    source: IndexSource
    threshold: float = VALIDATION_THRESHOLD

    def __init__(self, http: HttpClient, config: IndexConfig) -> None:
        self.http = http
        self.config = config

    def match(self, ref: ExtractedReference) -> IndexMatch:
        """Look up `ref` and return this index's verdict. Never raises."""
        try:
            return self._match(ref)
        except MalformedResponse as e:
            logger.warning("%s: malformed response: %s", self.source.display_name, e)
            return self._result(IndexStatus.ERROR, 0.0, str(e) or "malformed response")
        except Exception as e:
            logger.warning("%s lookup failed: %s", self.source.display_name, e)
            logger.debug("%s lookup traceback", self.source.display_name, exc_info=True)
            return self._result(IndexStatus.ERROR, 0.0, f"error: {e}")

    @abstractmethod
    def _match(self, ref: ExtractedReference) -> IndexMatch:
        """Query the index for `ref`."""

    # --- helpers for subclasses ---

    def _result(
        self,
        status: IndexStatus,
        score: float,
        explanation: str,
        url: str | None = None,
        patch: dict[str, Any] | None = None,
    ) -> IndexMatch:
        return IndexMatch(self.source, status, score, explanation, url or None, patch or None)

    def _get(self, url: str, **kwargs: Any) -> JsonResponse:
        return self.http.request_json(url, service=self.source.value, **kwargs)

    def _http_failure(self, resp: JsonResponse, what: str = "search") -> IndexMatch:
        return self._result(IndexStatus.ERROR, 0.0, f"{what} failed (HTTP {resp.status})")

    def _missing_title(self) -> IndexMatch:
        return self._result(IndexStatus.NOT_FOUND, 0.0, "missing title")

    def _judge_lookup(self, candidate: Candidate, scored: CandidateScore) -> IndexMatch:
        """Classify the record an identifier resolved to."""
        if scored.doi_mismatch:
            return self._result(
                IndexStatus.INVALID,
                0.0,
                f"DOI resolves, but DOI mismatch (got {candidate.doi})",
                candidate.url,
            )
        if scored.score >= self.threshold:
            return self._result(
                IndexStatus.VALIDATED,
                scored.score,
                f"matched (score {scored.score:.2f})",
                candidate.url,
                candidate.patch,
            )
        return self._result(
            IndexStatus.INVALID,
            scored.score,
            f"DOI resolves, but title/author mismatch (score {scored.score:.2f})",
            candidate.url,
        )

    def _judge_search(self, scored: Iterable[tuple[Candidate, float]], threshold: float | None = None) -> IndexMatch:
        """Classify the best of a list of search hits.

        The first candidate wins among equal scores.
        """
        threshold = self.threshold if threshold is None else threshold
        best: tuple[Candidate, float] | None = None
        for candidate, score in scored:
            if best is None or score > best[1]:
                best = (candidate, score)
        if best is None:
            return self._result(IndexStatus.NOT_FOUND, 0.0, "no results")
        candidate, score = best
        if score >= threshold:
            return self._result(
                IndexStatus.VALIDATED,
                score,
                f"matched (score {score:.2f})",
                candidate.url,
                candidate.patch,
            )
        return self._result(IndexStatus.NOT_FOUND, score, f"best score too low ({score:.2f})")


def require_mapping(data: Any) -> dict[str, Any]:
    """Return `data` if it is a JSON object, else raise MalformedResponse."""
    if not isinstance(data, dict):
        raise MalformedResponse("malformed response")
    return data


def require_list(data: Any) -> list[Any]:
    """Return `data` if it is a JSON array (None counts as empty)."""
    if data is None:
        return []
    if not isinstance(data, list):
        raise MalformedResponse("malformed response")
    return data
