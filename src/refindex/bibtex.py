"""BibTeX export and import for ExtractedReference records."""

from __future__ import annotations

import re
import string
from collections.abc import Iterable

import bibtexparser
from bibtexparser.bibdatabase import BibDatabase
from bibtexparser.bparser import BibTexParser
from bibtexparser.bwriter import BibTexWriter

from refindex.reference import Author, ExtractedReference, ItemType, normalize_reference
from refindex.utils import split_display_name, strip_diacritics, year_from_text

ITEM_TYPE_TO_BIBTEX = {
    ItemType.JOURNAL_ARTICLE: "article",
    ItemType.BOOK: "book",
    ItemType.BOOK_SECTION: "incollection",
    ItemType.CONFERENCE_PAPER: "inproceedings",
    ItemType.THESIS: "phdthesis",
    ItemType.REPORT: "techreport",
    ItemType.PREPRINT: "unpublished",
}

BIBTEX_TO_ITEM_TYPE = {
    "article": ItemType.JOURNAL_ARTICLE,
    "book": ItemType.BOOK,
    "proceedings": ItemType.BOOK,
    "incollection": ItemType.BOOK_SECTION,
    "inbook": ItemType.BOOK_SECTION,
    "inproceedings": ItemType.CONFERENCE_PAPER,
    "conference": ItemType.CONFERENCE_PAPER,
    "phdthesis": ItemType.THESIS,
    "mastersthesis": ItemType.THESIS,
    "techreport": ItemType.REPORT,
    "unpublished": ItemType.PREPRINT,
}

_SPECIAL_CHARS_RE = re.compile(r"([&%$#_])")
_SINGLE_DASH_RE = re.compile(r"(?<!-)-(?!-)")
_AND_RE = re.compile(r"\s+\band\b\s+", re.IGNORECASE)


def escape_bibtex(value: str) -> str:
    return _SPECIAL_CHARS_RE.sub(r"\\\1", value)


def unescape_bibtex(value: str) -> str:
    text = re.sub(r"\\([&%$#_])", r"\1", value)
    return " ".join(text.replace("{", "").replace("}", "").split())


def format_authors(authors: Iterable[Author]) -> str:
    """Format authors as 'Last, First and Last, First'."""
    names = []
    for a in authors:
        last, first = escape_bibtex(a.last_name), escape_bibtex(a.first_name)
        names.append(f"{last}, {first}" if last and first else last or first)
    return " and ".join(n for n in names if n)


def cite_key(ref: ExtractedReference) -> str:
    """Build '<surname><year><firstTitleWord>', ASCII lowercase letters only (year digits kept)."""

    def _letters(text: str) -> str:
        return "".join(c for c in strip_diacritics(text).lower() if c in string.ascii_lowercase)

    surname = _letters(ref.authors[0].last_name) if ref.authors else ""
    year = ref.year or year_from_text(ref.date) or "nodate"
    words = (ref.title or "").split()
    return f"{surname or 'unknown'}{year}{_letters(words[0]) if words else ''}"


def _entry(ref: ExtractedReference, key: str) -> dict[str, str]:
    entry = {"ENTRYTYPE": ITEM_TYPE_TO_BIBTEX.get(ref.item_type, "misc"), "ID": key}

    def put(name: str, value: str, escape: bool = True) -> None:
        if value:
            entry[name] = escape_bibtex(value) if escape else value

    if ref.authors:
        entry["author"] = format_authors(ref.authors)
    put("title", ref.title)
    put("year", ref.year or year_from_text(ref.date))
    pages = _SINGLE_DASH_RE.sub("--", ref.pages)

    if ref.item_type is ItemType.JOURNAL_ARTICLE:
        put("journal", ref.publication_title)
        put("volume", ref.volume)
        put("number", ref.issue)
        put("pages", pages)
    elif ref.item_type is ItemType.BOOK:
        put("publisher", ref.publisher)
        put("address", ref.place)
        put("edition", ref.edition)
        put("series", ref.series)
    elif ref.item_type is ItemType.BOOK_SECTION:
        put("booktitle", ref.book_title)
        put("publisher", ref.publisher)
        put("address", ref.place)
        put("pages", pages)
    elif ref.item_type is ItemType.CONFERENCE_PAPER:
        put("booktitle", ref.proceedings_title or ref.conference_name)
        put("publisher", ref.publisher)
        put("pages", pages)
    elif ref.item_type is ItemType.THESIS:
        put("school", ref.university)
        put("type", ref.thesis_type)
    elif ref.item_type is ItemType.REPORT:
        put("institution", ref.publisher)
        put("number", ref.series_number)

    put("doi", ref.doi, escape=False)
    put("isbn", ref.isbn, escape=False)
    put("issn", ref.issn, escape=False)
    put("url", ref.url, escape=False)
    put("abstract", ref.abstract_note)
    put("language", ref.language)
    return entry


def to_bibtex(refs: Iterable[ExtractedReference]) -> str:
    """Render references as a BibTeX string.

    Duplicate cite keys get 'a', 'b', ... suffixes in input order.
    """
    db = BibDatabase()
    seen: dict[str, int] = {}
    for ref in refs:
        base = cite_key(ref)
        count = seen.get(base, 0)
        seen[base] = count + 1
        key = base if count == 0 else base + _suffix(count - 1)
        db.entries.append(_entry(ref, key))

    writer = BibTexWriter()
    writer.indent = "  "
    writer.order_entries_by = None
    writer.comma_first = False
    return bibtexparser.dumps(db, writer=writer)


def _suffix(n: int) -> str:
    """0 -> 'a', 25 -> 'z', 26 -> 'aa'."""
    out = ""
    n += 1
    while n:
        n, rem = divmod(n - 1, 26)
        out = string.ascii_lowercase[rem] + out
    return out


def _parse_authors(field: str) -> tuple[Author, ...]:
    authors = []
    for name in _AND_RE.split(field):
        given, family = split_display_name(unescape_bibtex(name))
        if given or family:
            authors.append(Author(given, family))
    return tuple(authors)


def parse_bibtex(text: str) -> list[ExtractedReference]:
    """Parse BibTeX into references (unknown entry types become documents)."""
    parser = BibTexParser(common_strings=True)
    parser.ignore_nonstandard_types = False
    db = bibtexparser.loads(text, parser=parser)

    refs = []
    for entry in db.entries:
        fields = {k.lower(): unescape_bibtex(v) for k, v in entry.items() if k not in ("ENTRYTYPE", "ID")}
        item_type = BIBTEX_TO_ITEM_TYPE.get(entry.get("ENTRYTYPE", "").lower(), ItemType.DOCUMENT)
        booktitle = fields.get("booktitle", "")
        ref = ExtractedReference(
            item_type=item_type,
            title=fields.get("title", ""),
            authors=_parse_authors(entry.get("author", "")) if entry.get("author") else (),
            year=fields.get("year", ""),
            date=fields.get("date", ""),
            publication_title=fields.get("journal", "") or fields.get("journaltitle", ""),
            volume=fields.get("volume", ""),
            issue=fields.get("number", "") if item_type is not ItemType.REPORT else "",
            series_number=fields.get("number", "") if item_type is ItemType.REPORT else "",
            pages=fields.get("pages", "").replace("--", "-"),
            doi=fields.get("doi", ""),
            isbn=fields.get("isbn", ""),
            issn=fields.get("issn", ""),
            url=fields.get("url", ""),
            publisher=fields.get("publisher", "") or fields.get("institution", ""),
            place=fields.get("address", ""),
            edition=fields.get("edition", ""),
            series=fields.get("series", ""),
            book_title=booktitle if item_type is not ItemType.CONFERENCE_PAPER else "",
            proceedings_title=booktitle if item_type is ItemType.CONFERENCE_PAPER else "",
            university=fields.get("school", ""),
            thesis_type=fields.get("type", ""),
            abstract_note=fields.get("abstract", ""),
            language=fields.get("language", ""),
        )
        refs.append(normalize_reference(ref))
    return refs
