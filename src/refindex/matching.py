"""Similarity scoring for matching references against index candidates.

This module provides:
- Bigram Dice similarity over normalized text
- The composite candidate score (identifier, then title/author/year)
- Relaxed variants for sources whose schemas lack reliable fields

Identifier evidence always wins over text: equal DOIs score 1, unequal DOIs
score 0 and flag a mismatch regardless of how similar the titles are.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from refindex.utils import doi_normalize, normalize_text, year_from_text

if TYPE_CHECKING:
    from refindex.reference import ExtractedReference

__all__ = [
    "VALIDATION_THRESHOLD",
    "LABEL_MATCH_THRESHOLD",
    "FORCE_OVERWRITE_THRESHOLD",
    "CandidateFields",
    "CandidateScore",
    "dice_coefficient",
    "reference_year",
    "first_author_last_name",
    "score_candidate",
    "score_title_year",
    "score_title_author",
]

VALIDATION_THRESHOLD = 0.8
LABEL_MATCH_THRESHOLD = 0.85
FORCE_OVERWRITE_THRESHOLD = 0.95

TITLE_WEIGHT = 0.75
AUTHOR_WEIGHT = 0.20
YEAR_WEIGHT = 0.05


@dataclass(frozen=True)
class CandidateFields:
    """The comparable fields of one index record, all optional."""

    title: str = ""
    doi: str = ""
    year: str = ""
    first_author_last_name: str = ""


@dataclass(frozen=True)
class CandidateScore:
    """Score of one candidate and whether its DOI contradicts the reference."""

    score: float
    doi_mismatch: bool = False


def dice_coefficient(a: str, b: str) -> float:
    """Bigram Dice similarity of two strings after normalization.

    Internal spaces are removed before bigrams are taken, and bigrams are
    counted as a multiset. Blank inputs score 0; identical normalized strings
    score 1; strings too short to form a bigram score 0 unless identical.

    Args:
        a: First string
        b: Second string

    Returns:
        Similarity in [0, 1]
    """
    s1 = normalize_text(a).replace(" ", "")
    s2 = normalize_text(b).replace(" ", "")
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    if len(s1) < 2 or len(s2) < 2:
        return 0.0

    bigrams_a = Counter(s1[i : i + 2] for i in range(len(s1) - 1))
    bigrams_b = Counter(s2[i : i + 2] for i in range(len(s2) - 1))
    intersection = sum((bigrams_a & bigrams_b).values())
    return 2.0 * intersection / ((len(s1) - 1) + (len(s2) - 1))


def reference_year(ref: ExtractedReference) -> str:
    """Publication year of a reference: `year` if it is four digits, else from `date`."""
    year = (ref.year or "").strip()
    if len(year) == 4 and year.isdigit():
        return year
    return year_from_text(ref.date)


def first_author_last_name(ref: ExtractedReference) -> str:
    """Normalized surname of the reference's first author, or ''."""
    if not ref.authors:
        return ""
    return normalize_text(ref.authors[0].last_name)


def _exact(a: str, b: str) -> float:
    return 1.0 if a and b and a == b else 0.0


def score_candidate(ref: ExtractedReference, candidate: CandidateFields) -> CandidateScore:
    """Score how likely a candidate record describes the same work as `ref`.

    When both sides carry a DOI the comparison is decided by the DOI alone.
    Otherwise the score is 0.75 * title Dice + 0.20 * exact first-author
    surname + 0.05 * exact year.
    """
    ref_doi = doi_normalize(ref.doi)
    cand_doi = doi_normalize(candidate.doi)
    if ref_doi and cand_doi:
        if ref_doi == cand_doi:
            return CandidateScore(1.0)
        return CandidateScore(0.0, doi_mismatch=True)

    title_score = dice_coefficient(ref.title or "", candidate.title) if candidate.title else 0.0
    author_score = _exact(first_author_last_name(ref), normalize_text(candidate.first_author_last_name))
    year_score = _exact(reference_year(ref), candidate.year)
    return CandidateScore(TITLE_WEIGHT * title_score + AUTHOR_WEIGHT * author_score + YEAR_WEIGHT * year_score)


def score_title_year(ref: ExtractedReference, title: str, year: str, title_weight: float = 0.9) -> float:
    """Title-dominated score for catalogs without usable author data."""
    title_score = dice_coefficient(ref.title or "", title) if title else 0.0
    return title_weight * title_score + (1.0 - title_weight) * _exact(reference_year(ref), year)


def score_title_author(ref: ExtractedReference, title: str, author_last_name: str, title_weight: float = 0.9) -> float:
    """Title-dominated score for catalogs whose dates are unreliable."""
    title_score = dice_coefficient(ref.title or "", title) if title else 0.0
    author_score = _exact(first_author_last_name(ref), normalize_text(author_last_name))
    return title_weight * title_score + (1.0 - title_weight) * author_score
