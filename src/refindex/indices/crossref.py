"""Crossref adapter: DOI lookup and bibliographic search."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from refindex.indices.base import (
    Candidate,
    IndexAdapter,
    IndexMatch,
    IndexSource,
    IndexStatus,
    make_patch,
    require_list,
    require_mapping,
)
from refindex.matching import score_candidate
from refindex.reference import Author, ExtractedReference
from refindex.utils import (
    CROSSREF_API,
    clean_text,
    date_from_parts,
    doi_normalize,
    first_text,
    safe_get,
    strip_html,
)

# Tried in order; the first with usable date-parts wins.
DATE_FIELDS = ("published", "published-print", "published-online", "issued", "created")


def crossref_date(item: dict[str, Any]) -> str:
    for key in DATE_FIELDS:
        date = date_from_parts(safe_get(item, key, "date-parts"))
        if date:
            return date
    return ""


def crossref_authors(item: dict[str, Any]) -> tuple[Author, ...]:
    authors = []
    for a in item.get("author") or []:
        if not isinstance(a, dict):
            continue
        given = clean_text(a.get("given"))
        family = clean_text(a.get("family")) or clean_text(a.get("literal"))
        if given or family:
            authors.append(Author(given, family))
    return tuple(authors)


def crossref_item_to_candidate(item: dict[str, Any]) -> Candidate:
    """Decode one Crossref work (the `message` of /works/{doi}, or a search item)."""
    title = strip_html(first_text(item.get("title")))
    first = safe_get(item, "author", 0)
    first_author = ""
    if isinstance(first, dict):
        first_author = clean_text(first.get("family")) or clean_text(first.get("literal"))
    date = crossref_date(item)
    year = date[:4]
    doi = clean_text(item.get("DOI"))
    url = clean_text(item.get("URL"))
    patch = make_patch(
        title=title,
        authors=crossref_authors(item),
        doi=doi_normalize(doi),
        url=url,
        publication_title=strip_html(first_text(item.get("container-title"))),
        journal_abbreviation=first_text(item.get("short-container-title")),
        volume=clean_text(item.get("volume")),
        issue=clean_text(item.get("issue")),
        pages=clean_text(item.get("page")),
        issn=first_text(item.get("ISSN")),
        isbn=first_text(item.get("ISBN")),
        publisher=clean_text(item.get("publisher")),
        year=year,
        date=date,
    )
    return Candidate(title=title, doi=doi, year=year, first_author_last_name=first_author, url=url, patch=patch)


class CrossrefAdapter(IndexAdapter):
    """Crossref REST API (https://api.crossref.org)."""

    source = IndexSource.CROSSREF

    @property
    def user_agent(self) -> str:
        contact = f"mailto:{self.config.crossref_mailto}" if self.config.crossref_mailto else "no-mailto"
        return f"{self.config.user_agent} ({contact})"

    def _match(self, ref: ExtractedReference) -> IndexMatch:
        headers = {"User-Agent": self.user_agent}
        doi = doi_normalize(ref.doi)
        if doi:
            resp = self._get(f"{CROSSREF_API}/{quote(doi, safe='')}", headers=headers)
            if resp.status == 404:
                return self._result(IndexStatus.NOT_FOUND, 0.0, "DOI not found")
            if resp.status != 200:
                return self._http_failure(resp, "request")
            message = require_mapping(require_mapping(resp.data).get("message"))
            candidate = crossref_item_to_candidate(message)
            return self._judge_lookup(candidate, score_candidate(ref, candidate.fields()))

        if not ref.title:
            return self._missing_title()
        resp = self._get(CROSSREF_API, params={"query.bibliographic": ref.title, "rows": 5}, headers=headers)
        if resp.status != 200:
            return self._http_failure(resp)
        items = require_list(safe_get(require_mapping(resp.data), "message", "items"))
        candidates = [crossref_item_to_candidate(item) for item in items if isinstance(item, dict)]
        return self._judge_search((c, score_candidate(ref, c.fields()).score) for c in candidates)

