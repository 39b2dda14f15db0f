"""Reconcile per-index verdicts into one enriched reference and one report.

For each reference every enabled adapter is consulted once. The verdicts are
folded into a ValidationResult, the single best verdict is chosen by
(status rank, score), and only that verdict's patch is merged into the
reference under the overwrite policy:

- near-certain matches (validated, score >= 0.95) overwrite the core
  bibliographic fields listed in OVERWRITABLE_FIELDS;
- anything else only fills fields that are blank;
- blank patch values are never applied.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace

from refindex.indices.base import IndexAdapter, IndexMatch, IndexStatus
from refindex.matching import FORCE_OVERWRITE_THRESHOLD
from refindex.reference import ExtractedReference, ValidationResult
from refindex.utils import is_blank

logger = logging.getLogger(__name__)

# Fields a near-certain match may overwrite even when already populated.
OVERWRITABLE_FIELDS: tuple[str, ...] = (
    "title",
    "authors",
    "date",
    "year",
    "doi",
    "url",
    "publication_title",
    "journal_abbreviation",
    "volume",
    "issue",
    "pages",
    "issn",
    "isbn",
    "publisher",
    "place",
    "edition",
    "book_title",
    "conference_name",
    "proceedings_title",
    "university",
    "thesis_type",
    "series",
    "series_number",
    "num_pages",
)

# Fields a patch may fill when blank. item_type is never patched.
PATCHABLE_FIELDS: tuple[str, ...] = (
    *OVERWRITABLE_FIELDS,
    "abstract_note",
    "language",
    "number_of_volumes",
)


@dataclass
class ReconcileResult:
    """Outcome of reconciling one reference."""

    reference: ExtractedReference
    validation: ValidationResult
    matches: list[IndexMatch] = field(default_factory=list)
    best: IndexMatch | None = None


def match_sort_key(match: IndexMatch) -> tuple[int, float]:
    """Ranking key: validated < invalid < not_found < error, then higher score first."""
    return (match.status.rank, -match.score)


def select_best(matches: Sequence[IndexMatch]) -> IndexMatch | None:
    """Pick the top-ranked match.

    Exact ties on (rank, score) go to the earliest match, so the adapter
    invocation order (source priority) decides them.
    """
    if not matches:
        return None
    return min(enumerate(matches), key=lambda im: (*match_sort_key(im[1]), im[0]))[1]


def validation_from_match(match: IndexMatch) -> ValidationResult:
    """Turn one verdict into a report entry.

    Invalid verdicts are errors. Everything else, including successful
    matches, is kept as a warning so it stays visible to the user.
    """
    message = f"{match.source.display_name}: {match.explanation}"
    if match.url:
        message += f" ({match.url})"
    if match.status is IndexStatus.INVALID:
        return ValidationResult(is_valid=False, errors=[message])
    return ValidationResult(warnings=[message])


def apply_patch(
    ref: ExtractedReference,
    patch: dict | None,
    enrich: bool,
    force_overwrite: bool,
) -> ExtractedReference:
    """Merge `patch` into `ref` field by field.

    Args:
        ref: Reference to enrich
        patch: Attribute name -> authoritative value
        enrich: If False, `ref` is returned unchanged
        force_overwrite: Replace populated OVERWRITABLE_FIELDS instead of only filling blanks

    Returns:
        A new reference, or `ref` itself if nothing changed
    """
    if not enrich or not patch:
        return ref
    changes = {}
    for name in PATCHABLE_FIELDS:
        value = patch.get(name)
        if is_blank(value):
            continue
        if name == "authors":
            value = tuple(value)
        existing = getattr(ref, name)
        if (force_overwrite and name in OVERWRITABLE_FIELDS) or is_blank(existing):
            if value != existing:
                changes[name] = value
    unknown = set(patch) - set(PATCHABLE_FIELDS)
    if unknown:
        logger.debug("Ignoring unpatchable fields: %s", ", ".join(sorted(unknown)))
    return replace(ref, **changes) if changes else ref


def reconcile(
    ref: ExtractedReference,
    adapters: Sequence[IndexAdapter],
    enrich: bool = True,
    should_cancel: Callable[[], bool] | None = None,
) -> ReconcileResult:
    """Run every adapter against `ref` and merge the outcome.

    Args:
        ref: Reference to validate
        adapters: Enabled adapters, in invocation order
        enrich: Whether the best match's patch may be applied
        should_cancel: Polled between adapter calls; remaining adapters are skipped once it returns True

    Returns:
        ReconcileResult with the possibly patched reference and its report
    """
    matches: list[IndexMatch] = []
    for adapter in adapters:
        if should_cancel is not None and should_cancel():
            logger.info("Cancelled after %d of %d indexes", len(matches), len(adapters))
            break
        match = adapter.match(ref)
        logger.debug(
            "%s: %s (%.2f) %s", match.source.display_name, match.status.value, match.score, match.explanation
        )
        matches.append(match)

    validation = ValidationResult.ok()
    for match in matches:
        validation = validation.merge(validation_from_match(match))

    best = select_best(matches)
    updated = ref
    if best is not None and best.patch:
        force = enrich and best.status is IndexStatus.VALIDATED and best.score >= FORCE_OVERWRITE_THRESHOLD
        updated = apply_patch(ref, best.patch, enrich, force)

    return ReconcileResult(reference=updated, validation=validation, matches=matches, best=best)
