"""refindex - Validate and enrich bibliographic references against public indexes.

This package provides tools for:
- Matching a reference against Crossref, OpenAlex, lobid, the Library of
  Congress, the GBV/K10plus union catalog and Wikidata
- Reconciling the per-index verdicts into one validation report
- Enriching the reference from the single best match

Example usage:
    from refindex import IndexConfig, references_from_json, validate_and_enrich

    refs = references_from_json(llm_output)
    result = validate_and_enrich(refs, IndexConfig(crossref_mailto="me@example.org"))
    for ref, report in zip(result.references, result.validation_results):
        print(ref.title, report.is_valid, report.errors)
"""

from refindex._version import __version__
from refindex.bibtex import parse_bibtex, to_bibtex
from refindex.config import IndexConfig, load_config

# Orchestration
from refindex.enricher import EnrichmentResult, merge_validation_arrays, validate_and_enrich

# Index adapters
from refindex.indices import (
    CrossrefAdapter,
    GbvAdapter,
    IndexAdapter,
    IndexMatch,
    IndexSource,
    IndexStatus,
    LobidAdapter,
    LocAdapter,
    OpenAlexAdapter,
    WikidataAdapter,
    build_adapters,
)

# Matching
from refindex.matching import CandidateFields, CandidateScore, dice_coefficient, score_candidate
from refindex.reconcile import ReconcileResult, apply_patch, reconcile, select_best

# Data model
from refindex.reference import (
    Author,
    ExtractedReference,
    ItemType,
    ValidationResult,
    normalize_reference,
    parse_json_lenient,
    references_from_json,
)

# Shared utilities
from refindex.utils import HttpClient, JsonResponse, NetworkError, RateLimiterRegistry, doi_normalize, normalize_text

__all__ = [
    # Version
    "__version__",
    # Data model
    "Author",
    "ExtractedReference",
    "ItemType",
    "ValidationResult",
    "normalize_reference",
    "parse_json_lenient",
    "references_from_json",
    # Configuration
    "IndexConfig",
    "load_config",
    # Matching
    "CandidateFields",
    "CandidateScore",
    "dice_coefficient",
    "score_candidate",
    # Index adapters
    "CrossrefAdapter",
    "GbvAdapter",
    "IndexAdapter",
    "IndexMatch",
    "IndexSource",
    "IndexStatus",
    "LobidAdapter",
    "LocAdapter",
    "OpenAlexAdapter",
    "WikidataAdapter",
    "build_adapters",
    # Reconciliation
    "ReconcileResult",
    "apply_patch",
    "reconcile",
    "select_best",
    # Orchestration
    "EnrichmentResult",
    "merge_validation_arrays",
    "validate_and_enrich",
    # BibTeX
    "parse_bibtex",
    "to_bibtex",
    # Utilities
    "HttpClient",
    "JsonResponse",
    "NetworkError",
    "RateLimiterRegistry",
    "doi_normalize",
    "normalize_text",
]
