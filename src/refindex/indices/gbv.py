"""GBV / K10plus union catalog adapter (SRU protocol, Dublin Core records)."""

from __future__ import annotations

import xml.etree.ElementTree as ElementTree

from refindex.indices.base import (
    Candidate,
    IndexAdapter,
    IndexMatch,
    IndexSource,
    IndexStatus,
    MalformedResponse,
    make_patch,
)
from refindex.matching import first_author_last_name, score_title_author
from refindex.reference import ExtractedReference
from refindex.utils import (
    clean_catalog_title,
    find_isbns,
    is_blank,
    isbn_normalize,
    significant_tokens,
    split_imprint,
    surname_of,
    year_from_text,
)

SRW_NS = "http://www.loc.gov/zing/srw/"
DC_NS = "http://purl.org/dc/elements/1.1/"

MAX_QUERY_TOKENS = 5


def build_cql_query(title: str, author_last_name: str = "") -> str:
    """AND together quoted title tokens and an optional author surname (PICA indexes)."""
    clauses = [f'pica.tit="{t}"' for t in significant_tokens(title, MAX_QUERY_TOKENS)]
    if clauses and author_last_name:
        clauses.append(f'pica.per="{author_last_name}"')
    return " and ".join(clauses)


def _dc_texts(record: ElementTree.Element, local: str) -> list[str]:
    out = []
    for el in record.iter(f"{{{DC_NS}}}{local}"):
        text = " ".join((el.text or "").split())
        if text:
            out.append(text)
    return out


def parse_sru_records(xml: str) -> list[Candidate]:
    """Parse an SRW searchRetrieveResponse into candidates.

    Raises:
        MalformedResponse: If the body is not well-formed XML
    """
    try:
        root = ElementTree.fromstring(xml)
    except ElementTree.ParseError as e:
        raise MalformedResponse("malformed XML") from e

    candidates = []
    for record in root.iter(f"{{{SRW_NS}}}record"):
        titles = _dc_texts(record, "title")
        if not titles:
            continue
        title = clean_catalog_title(titles[0])
        creators = _dc_texts(record, "creator")
        year = next((y for y in map(year_from_text, _dc_texts(record, "date")) if y), "")
        publishers = _dc_texts(record, "publisher")
        place, publisher = split_imprint(publishers[0]) if publishers else ("", "")
        isbns: list[str] = []
        for identifier in _dc_texts(record, "identifier"):
            isbns.extend(i for i in find_isbns(identifier) if i not in isbns)
        patch = make_patch(
            title=title,
            year=year,
            date=year,
            publisher=publisher,
            place=place,
            isbn=isbns[0] if isbns else "",
        )
        candidates.append(
            Candidate(
                title=title,
                year=year,
                first_author_last_name=surname_of(creators[0]) if creators else "",
                isbns=isbns,
                patch=patch,
            )
        )
    return candidates


class GbvAdapter(IndexAdapter):
    """SRU search against a configurable union catalog endpoint (default K10plus/GVK)."""

    source = IndexSource.GBV

    def _score(self, ref: ExtractedReference, candidate: Candidate) -> float:
        ref_isbn = isbn_normalize(ref.isbn)
        if ref_isbn and ref_isbn in candidate.isbns:
            return 1.0
        # A differing ISBN is ignored.
        return score_title_author(ref, candidate.title, candidate.first_author_last_name)

    def _match(self, ref: ExtractedReference) -> IndexMatch:
        endpoint = (self.config.gbv_sru_url or "").strip()
        if is_blank(endpoint):
            return self._result(IndexStatus.ERROR, 0.0, "SRU endpoint not configured")
        query = build_cql_query(ref.title or "", first_author_last_name(ref))
        if not query:
            return self._missing_title()

        params = {
            "version": "1.1",
            "operation": "searchRetrieve",
            "query": query,
            "recordSchema": "dc",
            "maximumRecords": 5,
        }
        resp = self._get(endpoint, params=params, accept="application/xml")
        if resp.status != 200:
            return self._http_failure(resp)
        if not isinstance(resp.data, str):
            raise MalformedResponse("malformed XML")
        candidates = parse_sru_records(resp.data)
        return self._judge_search((c, self._score(ref, c)) for c in candidates)
