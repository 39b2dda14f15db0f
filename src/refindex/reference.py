"""Bibliographic reference records and validation reports.

ExtractedReference is the record under construction: it arrives from an
upstream extraction step (usually an LLM returning loosely-formed JSON),
gets validated and enriched against bibliographic indexes, and is then
exported. Missing values are always represented as the empty string (or an
empty author tuple); the literal string "null" is mapped to blank on input.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any

from refindex.utils import clean_text, is_blank, split_display_name, year_from_text

logger = logging.getLogger(__name__)

__all__ = [
    "ItemType",
    "Author",
    "ExtractedReference",
    "ValidationResult",
    "WIRE_KEYS",
    "parse_json_lenient",
    "references_from_json",
    "normalize_reference",
]


class ItemType(Enum):
    """Reference types understood by the enrichment engine."""

    JOURNAL_ARTICLE = "journalArticle"
    BOOK = "book"
    BOOK_SECTION = "bookSection"
    CONFERENCE_PAPER = "conferencePaper"
    THESIS = "thesis"
    WEBPAGE = "webpage"
    REPORT = "report"
    PATENT = "patent"
    PREPRINT = "preprint"
    DOCUMENT = "document"  # fallback for unrecognized input

    @classmethod
    def parse(cls, value: Any) -> ItemType:
        """Map a wire value to an ItemType, falling back to DOCUMENT."""
        text = clean_text(value)
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        if text:
            logger.debug("Unknown item type %r, using %s", text, cls.DOCUMENT.value)
        return cls.DOCUMENT

    @property
    def is_book_like(self) -> bool:
        return self in (ItemType.BOOK, ItemType.BOOK_SECTION, ItemType.THESIS)


@dataclass(frozen=True)
class Author:
    """One author, in author order."""

    first_name: str = ""
    last_name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> Author | None:
        if isinstance(data, str):
            given, family = split_display_name(data)
            return cls(given, family) if family else None
        if not isinstance(data, dict):
            return None
        first = clean_text(data.get("firstName", data.get("first_name")))
        last = clean_text(data.get("lastName", data.get("last_name")))
        if not first and not last:
            return None
        return cls(first, last)

    def to_dict(self) -> dict[str, str]:
        return {"firstName": self.first_name, "lastName": self.last_name}

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


# Attribute name -> camelCase key used on the wire and in reports.
WIRE_KEYS: dict[str, str] = {
    "item_type": "itemType",
    "title": "title",
    "authors": "authors",
    "date": "date",
    "year": "year",
    "publication_title": "publicationTitle",
    "journal_abbreviation": "journalAbbreviation",
    "volume": "volume",
    "issue": "issue",
    "pages": "pages",
    "doi": "DOI",
    "isbn": "ISBN",
    "issn": "ISSN",
    "url": "url",
    "publisher": "publisher",
    "place": "place",
    "edition": "edition",
    "abstract_note": "abstractNote",
    "language": "language",
    "book_title": "bookTitle",
    "conference_name": "conferenceName",
    "proceedings_title": "proceedingsTitle",
    "university": "university",
    "thesis_type": "thesisType",
    "series": "series",
    "series_number": "seriesNumber",
    "number_of_volumes": "numberOfVolumes",
    "num_pages": "numPages",
}


@dataclass(frozen=True)
class ExtractedReference:
    """A bibliographic record under construction.

    All text fields default to ''. `authors` is an ordered tuple.
    """

    item_type: ItemType = ItemType.JOURNAL_ARTICLE
    title: str = ""
    authors: tuple[Author, ...] = ()
    date: str = ""
    year: str = ""
    publication_title: str = ""
    journal_abbreviation: str = ""
    volume: str = ""
    issue: str = ""
    pages: str = ""
    doi: str = ""
    isbn: str = ""
    issn: str = ""
    url: str = ""
    publisher: str = ""
    place: str = ""
    edition: str = ""
    abstract_note: str = ""
    language: str = ""
    book_title: str = ""
    conference_name: str = ""
    proceedings_title: str = ""
    university: str = ""
    thesis_type: str = ""
    series: str = ""
    series_number: str = ""
    number_of_volumes: str = ""
    num_pages: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtractedReference:
        """Build a reference from wire-format (camelCase) or attribute-named keys.

        Numbers are coerced to strings; "null" and empty values become blank.
        Unknown keys are ignored.
        """
        by_wire = {wire: attr for attr, wire in WIRE_KEYS.items()}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            attr = by_wire.get(key, key if key in WIRE_KEYS else None)
            if attr is None:
                continue
            if attr == "item_type":
                kwargs[attr] = ItemType.parse(value)
            elif attr == "authors":
                authors = (Author.from_dict(a) for a in (value if isinstance(value, list) else []))
                kwargs[attr] = tuple(a for a in authors if a is not None)
            else:
                kwargs[attr] = clean_text(value)
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting blank fields."""
        out: dict[str, Any] = {"itemType": self.item_type.value}
        for f in fields(self):
            if f.name == "item_type":
                continue
            value = getattr(self, f.name)
            if is_blank(value):
                continue
            if f.name == "authors":
                value = [a.to_dict() for a in value]
            out[WIRE_KEYS[f.name]] = value
        return out

    @property
    def label(self) -> str:
        """Short human-readable label for progress reporting."""
        return self.title or self.doi or self.isbn


@dataclass
class ValidationResult:
    """User-facing validation report for one reference.

    Reports combine with `merge()`: message lists are concatenated in order
    and `is_valid` is AND-reduced, so merging is associative.
    """

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls()

    def merge(self, other: ValidationResult | None) -> ValidationResult:
        """Return a new report combining this one with `other`."""
        if other is None:
            return ValidationResult(self.is_valid, list(self.errors), list(self.warnings), list(self.suggestions))
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            errors=[*self.errors, *other.errors],
            warnings=[*self.warnings, *other.warnings],
            suggestions=[*self.suggestions, *other.suggestions],
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationResult:
        def _messages(key: str) -> list[str]:
            return [str(m) for m in data.get(key) or [] if not is_blank(m)]

        return cls(
            is_valid=bool(data.get("isValid", data.get("is_valid", True))),
            errors=_messages("errors"),
            warnings=_messages("warnings"),
            suggestions=_messages("suggestions"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "suggestions": list(self.suggestions),
        }


# ------------- Lenient JSON Ingestion -------------

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.IGNORECASE | re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([\]}])")
_ADJACENT_OBJECTS_RE = re.compile(r"}\s*{")


def parse_json_lenient(text: str) -> Any:
    """Parse JSON as produced by language models.

    Tries, in order: the text without Markdown code fences, the span from the
    first '{' to the last '}', and that span with trailing commas removed and
    adjacent objects separated ('}{' -> '},{').

    Raises:
        ValueError: If no repair yields valid JSON
    """
    cleaned = text.strip()
    fence = _CODE_FENCE_RE.match(cleaned)
    if fence:
        cleaned = fence.group(1).strip()
    try:
        return json.loads(cleaned)
    except ValueError:
        pass

    start, end = cleaned.find("{"), cleaned.rfind("}")
    extracted = cleaned[start : end + 1] if start != -1 and end > start else cleaned
    try:
        return json.loads(extracted)
    except ValueError:
        pass

    repaired = _TRAILING_COMMA_RE.sub(r"\1", extracted)
    repaired = _ADJACENT_OBJECTS_RE.sub("},{", repaired)
    return json.loads(repaired)


def normalize_reference(ref: ExtractedReference) -> ExtractedReference:
    """Keep `date` and `year` consistent.

    A blank date takes the year; a blank year takes the first four-digit run
    found in the date.
    """
    date, year = ref.date, ref.year
    if is_blank(date) and not is_blank(year):
        date = year
    if is_blank(year) and not is_blank(date):
        year = year_from_text(date) or year
    if (date, year) == (ref.date, ref.year):
        return ref
    return replace(ref, date=date, year=year)


def references_from_json(text_or_data: str | dict[str, Any] | list[Any]) -> list[ExtractedReference]:
    """Build normalized references from extraction output.

    Accepts raw text (parsed leniently) or already-parsed data shaped either as
    {"references": [...]} or as a bare list of reference objects. Entries that
    are not objects are skipped.

    Raises:
        ValueError: If the payload is not valid JSON or has neither shape
    """
    data = parse_json_lenient(text_or_data) if isinstance(text_or_data, str) else text_or_data
    if isinstance(data, dict):
        items = data.get("references")
    else:
        items = data
    if not isinstance(items, list):
        raise ValueError("Expected a list of references or an object with a 'references' list")

    refs = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("Skipping reference %d: expected an object, got %s", i + 1, type(item).__name__)
            continue
        refs.append(normalize_reference(ExtractedReference.from_dict(item)))
    return refs
