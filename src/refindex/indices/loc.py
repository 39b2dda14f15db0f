"""Library of Congress adapter (loc.gov JSON search API)."""

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
from refindex.matching import first_author_last_name, score_candidate
from refindex.reference import ExtractedReference
from refindex.utils import (
    LOC_API,
    clean_catalog_title,
    clean_text,
    first_text,
    safe_get,
    significant_tokens,
    split_imprint,
    surname_of,
    year_from_text,
)

MAX_QUERY_TOKENS = 6


def loc_result_to_candidate(result: dict[str, Any]) -> Candidate:
    """Decode one loc.gov search result."""
    title = clean_catalog_title(first_text(result.get("title")) or first_text(safe_get(result, "item", "title")))
    year = year_from_text(first_text(result.get("date"))) or year_from_text(first_text(result.get("dates")))
    contributor = first_text(result.get("contributor")) or first_text(safe_get(result, "item", "contributors"))
    imprint = first_text(safe_get(result, "item", "created_published")) or first_text(result.get("created_published"))
    place, publisher = split_imprint(imprint) if imprint else ("", "")
    patch = make_patch(
        title=title,
        year=year,
        date=year,
        place=place,
        publisher=publisher,
    )
    return Candidate(
        title=title,
        year=year,
        first_author_last_name=surname_of(contributor),
        url=clean_text(result.get("id")) or clean_text(result.get("url")),
        patch=patch,
    )


class LocAdapter(IndexAdapter):
    """Library of Congress digitized-collections search (https://www.loc.gov/apis/)."""

    source = IndexSource.LOC

    def _match(self, ref: ExtractedReference) -> IndexMatch:
        tokens = significant_tokens(ref.title or "", MAX_QUERY_TOKENS)
        if not tokens:
            return self._missing_title()
        surname = first_author_last_name(ref)
        if surname:
            tokens.append(surname)

        params = {"q": " ".join(tokens), "fo": "json", "c": 5}
        if ref.item_type.is_book_like:
            params["fa"] = "original-format:book"
        resp = self._get(LOC_API, params=params)
        if resp.status != 200:
            return self._http_failure(resp)
        results = require_list(require_mapping(resp.data).get("results"))
        candidates = [loc_result_to_candidate(r) for r in results if isinstance(r, dict)]
        return self._judge_search((c, score_candidate(ref, c.fields()).score) for c in candidates)
