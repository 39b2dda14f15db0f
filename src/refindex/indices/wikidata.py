"""Wikidata adapter: exact DOI claim via SPARQL, entity-label search as fallback."""

from __future__ import annotations

import logging
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
from refindex.matching import LABEL_MATCH_THRESHOLD, dice_coefficient, score_candidate
from refindex.reference import ExtractedReference
from refindex.utils import (
    WIKIDATA_API,
    WIKIDATA_SPARQL,
    clean_text,
    doi_normalize,
    safe_get,
    surname_of,
    year_from_text,
)

logger = logging.getLogger(__name__)

SPARQL_TEMPLATE = """\
SELECT ?item ?title ?date ?venueLabel ?volume ?issue ?pages ?author WHERE {{
  ?item wdt:P356 "{doi}" .
  OPTIONAL {{ ?item wdt:P1476 ?title . }}
  OPTIONAL {{ ?item wdt:P577 ?date . }}
  OPTIONAL {{ ?item wdt:P1433 ?venue . ?venue rdfs:label ?venueLabel . FILTER(LANG(?venueLabel) = "en") }}
  OPTIONAL {{ ?item wdt:P478 ?volume . }}
  OPTIONAL {{ ?item wdt:P433 ?issue . }}
  OPTIONAL {{ ?item wdt:P304 ?pages . }}
  OPTIONAL {{ ?item p:P2093 ?authorStatement . ?authorStatement ps:P2093 ?author ; pq:P1545 "1" . }}
}}
LIMIT 5"""


def build_sparql_query(doi: str) -> str:
    """SPARQL selecting the item whose DOI claim (P356) equals `doi`.

    Wikidata stores DOIs upper-cased.
    """
    escaped = doi.upper().replace("\\", "\\\\").replace('"', '\\"')
    return SPARQL_TEMPLATE.format(doi=escaped)


def _binding(row: Any, name: str) -> str:
    return clean_text(safe_get(row, name, "value"))


def sparql_row_to_candidate(row: dict[str, Any], doi: str) -> Candidate:
    """Decode one SPARQL result binding for the item found by `doi`."""
    title = _binding(row, "title")
    raw_date = _binding(row, "date")
    date = raw_date[:10] if len(raw_date) >= 10 and raw_date[4] == "-" else year_from_text(raw_date)
    year = year_from_text(date)
    patch = make_patch(
        title=title,
        doi=doi,
        publication_title=_binding(row, "venueLabel"),
        volume=_binding(row, "volume"),
        issue=_binding(row, "issue"),
        pages=_binding(row, "pages"),
        year=year,
        date=date,
    )
    return Candidate(
        title=title,
        doi=doi,
        year=year,
        first_author_last_name=surname_of(_binding(row, "author")),
        url=_binding(row, "item"),
        patch=patch,
    )


def search_hit_to_candidate(hit: dict[str, Any]) -> Candidate:
    """Decode one `wbsearchentities` hit. Only the label and description are usable."""
    title = clean_text(hit.get("label"))
    year = year_from_text(hit.get("description"))
    url = clean_text(hit.get("concepturi"))
    if not url and clean_text(hit.get("id")):
        url = f"https://www.wikidata.org/wiki/{clean_text(hit.get('id'))}"
    return Candidate(title=title, year=year, url=url, patch=make_patch(title=title, year=year))


class WikidataAdapter(IndexAdapter):
    """Wikidata Query Service plus the MediaWiki entity search API."""

    source = IndexSource.WIKIDATA
    label_threshold = LABEL_MATCH_THRESHOLD

    def _match(self, ref: ExtractedReference) -> IndexMatch:
        doi = doi_normalize(ref.doi)
        if doi:
            resp = self._get(
                WIKIDATA_SPARQL,
                params={"query": build_sparql_query(doi), "format": "json"},
                accept="application/sparql-results+json",
            )
            if resp.status != 200:
                return self._http_failure(resp, "request")
            rows = require_list(safe_get(require_mapping(resp.data), "results", "bindings"))
            rows = [r for r in rows if isinstance(r, dict)]
            if rows:
                candidate = sparql_row_to_candidate(rows[0], doi)
                return self._judge_lookup(candidate, score_candidate(ref, candidate.fields()))
            logger.debug("Wikidata: no item with DOI %s, falling back to label search", doi)
            if not ref.title:
                return self._result(IndexStatus.NOT_FOUND, 0.0, "DOI not found")

        if not ref.title:
            return self._missing_title()
        return self._label_search(ref)

    def _label_search(self, ref: ExtractedReference) -> IndexMatch:
        params = {
            "action": "wbsearchentities",
            "search": ref.title,
            "language": "en",
            "type": "item",
            "limit": 5,
            "format": "json",
        }
        resp = self._get(WIKIDATA_API, params=params)
        if resp.status != 200:
            return self._http_failure(resp)
        hits = require_list(require_mapping(resp.data).get("search"))
        candidates = [search_hit_to_candidate(h) for h in hits if isinstance(h, dict)]
        scored = ((c, dice_coefficient(ref.title, c.title) if c.title else 0.0) for c in candidates)
        return self._judge_search(scored, threshold=self.label_threshold)
