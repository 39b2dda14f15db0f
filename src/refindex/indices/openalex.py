"""OpenAlex adapter: DOI lookup and filtered title search."""

from __future__ import annotations

import re
from urllib.parse import quote
from typing import Any

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
from refindex.matching import reference_year, score_candidate
from refindex.reference import Author, ExtractedReference
from refindex.utils import (
    OPENALEX_API,
    clean_text,
    doi_normalize,
    safe_get,
    split_display_name,
    strip_html,
    year_from_text,
)

_DOI_URL_RE = re.compile(r"^https?://(?:dx\.)?doi\.org/", re.IGNORECASE)


def openalex_authors(work: dict[str, Any]) -> tuple[Author, ...]:
    authors = []
    for authorship in work.get("authorships") or []:
        name = clean_text(safe_get(authorship, "author", "display_name"))
        if name:
            authors.append(Author(*split_display_name(name)))
    return tuple(authors)


def openalex_pages(biblio: Any) -> str:
    first = clean_text(safe_get(biblio, "first_page"))
    last = clean_text(safe_get(biblio, "last_page"))
    return "-".join(p for p in (first, last) if p)


def openalex_work_to_candidate(work: dict[str, Any]) -> Candidate:
    """Decode an OpenAlex work object."""
    title = strip_html(clean_text(work.get("display_name")) or clean_text(work.get("title")))
    doi = _DOI_URL_RE.sub("", clean_text(work.get("doi")))
    year = clean_text(work.get("publication_year")) or year_from_text(work.get("publication_date"))
    first_author = split_display_name(clean_text(safe_get(work, "authorships", 0, "author", "display_name")))[1]

    source = safe_get(work, "primary_location", "source")
    venue = clean_text(safe_get(source, "display_name")) or clean_text(safe_get(work, "host_venue", "display_name"))
    biblio = work.get("biblio")
    patch = make_patch(
        title=title,
        authors=openalex_authors(work),
        doi=doi_normalize(doi),
        url=clean_text(safe_get(work, "primary_location", "landing_page_url")),
        publication_title=venue,
        issn=clean_text(safe_get(source, "issn_l")),
        publisher=clean_text(safe_get(source, "host_organization_name")),
        volume=clean_text(safe_get(biblio, "volume")),
        issue=clean_text(safe_get(biblio, "issue")),
        pages=openalex_pages(biblio),
        year=year,
        date=clean_text(work.get("publication_date")) or year,
    )
    return Candidate(
        title=title,
        doi=doi,
        year=year,
        first_author_last_name=first_author,
        url=clean_text(work.get("id")),
        patch=patch,
    )


class OpenAlexAdapter(IndexAdapter):
    """OpenAlex works API (https://api.openalex.org)."""

    source = IndexSource.OPENALEX

    def _params(self, **params: Any) -> dict[str, Any]:
        if self.config.openalex_mailto:
            params["mailto"] = self.config.openalex_mailto
        return params

    def _match(self, ref: ExtractedReference) -> IndexMatch:
        doi = doi_normalize(ref.doi)
        if doi:
            resp = self._get(f"{OPENALEX_API}/doi:{quote(doi, safe='')}", params=self._params())
            if resp.status == 404:
                return self._result(IndexStatus.NOT_FOUND, 0.0, "DOI not found")
            if resp.status != 200:
                return self._http_failure(resp, "request")
            candidate = openalex_work_to_candidate(require_mapping(resp.data))
            return self._judge_lookup(candidate, score_candidate(ref, candidate.fields()))

        if not ref.title:
            return self._missing_title()
        params = self._params(search=ref.title)
        params["per-page"] = 5
        year = reference_year(ref)
        if year:
            params["filter"] = f"from_publication_date:{year}-01-01,to_publication_date:{year}-12-31"
        resp = self._get(OPENALEX_API, params=params)
        if resp.status != 200:
            return self._http_failure(resp)
        results = require_list(require_mapping(resp.data).get("results"))
        candidates = [openalex_work_to_candidate(w) for w in results if isinstance(w, dict)]
        return self._judge_search((c, score_candidate(ref, c.fields()).score) for c in candidates)
