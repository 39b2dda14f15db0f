"""lobid-resources adapter (hbz union catalog as linked data)."""

from __future__ import annotations

from typing import Any

from refindex.indices.base import (
    Candidate,
    IndexAdapter,
    IndexMatch,
    IndexSource,
    make_patch,
    require_list,
    require_mapping,
)
from refindex.matching import first_author_last_name, score_title_year
from refindex.reference import ExtractedReference
from refindex.utils import LOBID_API, as_list, clean_text, first_text, normalize_text, year_from_text

MAX_TITLE_TOKENS = 4


def build_lobid_query(title: str, author_last_name: str = "") -> str:
    """Build a lobid query string.

    >>> build_lobid_query("The Theory of Games", "neumann")
    '(title:theory AND title:of AND title:games) AND contribution.agent.label:neumann'
    """
    tokens = normalize_text(title).split()[:MAX_TITLE_TOKENS]
    clauses = []
    if tokens:
        clauses.append("(" + " AND ".join(f"title:{t}" for t in tokens) + ")")
    if author_last_name:
        clauses.append(f"contribution.agent.label:{author_last_name}")
    return " AND ".join(clauses)


def lobid_year(item: dict[str, Any]) -> str:
    for pub in as_list(item.get("publication")):
        if not isinstance(pub, dict):
            continue
        year = year_from_text(pub.get("startDate")) or year_from_text(pub.get("dateStatement"))
        if year:
            return year
    return ""


def lobid_member_to_candidate(item: dict[str, Any]) -> Candidate:
    """Decode one lobid `member` resource."""
    title = first_text(item.get("title"))
    year = lobid_year(item)
    publication = next((p for p in as_list(item.get("publication")) if isinstance(p, dict)), {})
    patch = make_patch(
        title=title,
        year=year,
        date=year,
        publisher=first_text(publication.get("publishedBy")),
        place=first_text(publication.get("location")),
        isbn=first_text(item.get("isbn")),
    )
    return Candidate(title=title, year=year, url=clean_text(item.get("id")), patch=patch)


class LobidAdapter(IndexAdapter):
    """lobid resources search (https://lobid.org/resources)."""

    source = IndexSource.LOBID

    def _match(self, ref: ExtractedReference) -> IndexMatch:
        query = build_lobid_query(ref.title or "", first_author_last_name(ref))
        if not query or not ref.title:
            return self._missing_title()
        resp = self._get(LOBID_API, params={"q": query, "size": 5, "format": "json"})
        if resp.status != 200:
            return self._http_failure(resp)
        members = require_list(require_mapping(resp.data).get("member"))
        candidates = [lobid_member_to_candidate(m) for m in members if isinstance(m, dict)]
        return self._judge_search((c, score_title_year(ref, c.title, c.year)) for c in candidates)
