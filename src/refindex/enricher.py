#!/usr/bin/env python3
"""Validate and enrich extracted references against bibliographic indexes.

References are processed one at a time and, within a reference, indexes are
queried one at a time, so per-index politeness limits hold and progress
reporting is deterministic.

Usage:
    refindex references.json -o enriched.json
    refindex references.json --bibtex enriched.bib --crossref-mailto me@example.org
    refindex library.bib --validate-only --disable loc gbv --strict
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from refindex._version import __version__
from refindex.bibtex import parse_bibtex, to_bibtex
from refindex.config import IndexConfig, load_config
from refindex.indices import build_adapters
from refindex.indices.base import IndexSource
from refindex.reconcile import reconcile
from refindex.reference import ExtractedReference, ValidationResult, parse_json_lenient, references_from_json
from refindex.utils import HttpClient

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Index lookup cancelled"

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class EnrichmentResult:
    """Enriched references and their validation reports, index-aligned."""

    references: list[ExtractedReference] = field(default_factory=list)
    validation_results: list[ValidationResult] = field(default_factory=list)


def validate_and_enrich(
    references: Sequence[ExtractedReference],
    config: IndexConfig,
    on_progress: ProgressCallback | None = None,
    http: HttpClient | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> EnrichmentResult:
    """Validate each reference against the enabled indexes and enrich it.

    Args:
        references: References to process, in order
        config: Batch configuration
        on_progress: Called as (position, total, title) before each reference, position 1-based
        http: Shared HTTP client; one is built from `config` and closed afterwards if omitted
        should_cancel: Polled before each reference and between index calls

    Returns:
        EnrichmentResult with exactly one reference and one report per input
    """
    refs = list(references)
    if not config.enabled:
        return EnrichmentResult(references=refs, validation_results=[ValidationResult.ok() for _ in refs])

    owns_http = http is None
    if http is None:
        http = HttpClient(timeout=config.timeout, user_agent=config.user_agent, max_attempts=config.max_attempts)

    try:
        adapters = build_adapters(config, http)
        logger.info("Querying %d index(es): %s", len(adapters), ", ".join(a.source.value for a in adapters))

        result = EnrichmentResult()
        total = len(refs)
        for i, ref in enumerate(refs):
            if should_cancel is not None and should_cancel():
                logger.info("Cancelled; passing through %d remaining reference(s)", total - i)
                for rest in refs[i:]:
                    result.references.append(rest)
                    result.validation_results.append(ValidationResult(warnings=[CANCELLED_MESSAGE]))
                break

            title = ref.label or f"Reference {i + 1}"
            if on_progress is not None:
                on_progress(i + 1, total, title)
            logger.info("[%d/%d] %s", i + 1, total, title)

            outcome = reconcile(ref, adapters, enrich=config.enrich, should_cancel=should_cancel)
            result.references.append(outcome.reference)
            result.validation_results.append(outcome.validation)
        return result
    finally:
        if owns_http:
            http.close()


def merge_validation_arrays(
    base: Sequence[ValidationResult | None] | None,
    extra: Sequence[ValidationResult | None] | None,
) -> list[ValidationResult]:
    """Zip two per-reference report lists, merging aligned entries.

    Where one side is shorter (or has None), the other side's entry passes
    through unchanged.
    """
    base = list(base or [])
    extra = list(extra or [])
    merged = []
    for i in range(max(len(base), len(extra))):
        left = base[i] if i < len(base) else None
        right = extra[i] if i < len(extra) else None
        if left is None:
            merged.append(right if right is not None else ValidationResult.ok())
        else:
            merged.append(left.merge(right))
    return merged


# ------------- CLI -------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the refindex CLI."""
    p = argparse.ArgumentParser(
        prog="refindex",
        description="Validate and enrich bibliographic references against Crossref, OpenAlex, "
        "lobid, the Library of Congress, GBV/K10plus and Wikidata.",
    )
    p.add_argument("input", help="References as JSON (lenient, e.g. LLM output) or a .bib file")
    p.add_argument("-o", "--output", help="Write enriched JSON here (default: stdout)")
    p.add_argument("--bibtex", metavar="FILE", help="Also write the enriched references as BibTeX")
    p.add_argument("--config", metavar="FILE", help="YAML configuration file")
    p.add_argument("--validate-only", action="store_true", help="Report matches without enriching references")
    p.add_argument(
        "--disable",
        nargs="+",
        default=[],
        metavar="SOURCE",
        choices=[s.value for s in IndexSource],
        help="Indexes to skip: " + ", ".join(s.value for s in IndexSource),
    )
    p.add_argument("--crossref-mailto", help="Contact e-mail for the Crossref polite pool")
    p.add_argument("--openalex-mailto", help="Contact e-mail for the OpenAlex polite pool")
    p.add_argument("--gbv-sru-url", help="SRU endpoint for the union catalog lookup")
    p.add_argument(
        "--llm-validation",
        metavar="FILE",
        help="JSON list of validation results from a plausibility checker, merged per reference",
    )
    p.add_argument("--strict", action="store_true", help="Exit with code 4 if any reference is invalid")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def load_references(path: Path) -> list[ExtractedReference]:
    """Read references from a JSON or BibTeX file."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".bib":
        return parse_bibtex(text)
    return references_from_json(text)


def load_validation_results(path: Path) -> list[ValidationResult | None]:
    """Read externally produced validation results (a list, or {"validation": [...]})."""
    data = parse_json_lenient(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("validation", data.get("validationResults"))
    if not isinstance(data, list):
        raise ValueError("Expected a list of validation results")
    return [ValidationResult.from_dict(item) if isinstance(item, dict) else None for item in data]


def _config_from_args(args: argparse.Namespace) -> IndexConfig:
    config = load_config(args.config) if args.config else IndexConfig()
    overrides: dict[str, Any] = {
        "crossref_mailto": args.crossref_mailto,
        "openalex_mailto": args.openalex_mailto,
        "gbv_sru_url": args.gbv_sru_url,
    }
    if args.validate_only:
        overrides["enrich"] = False
    for source in args.disable:
        overrides[source] = False
    return config.with_overrides(**overrides)


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    try:
        config = _config_from_args(args)
    except (OSError, ValueError) as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    try:
        references = load_references(Path(args.input))
    except FileNotFoundError:
        logger.error("File not found: %s", args.input)
        return 1
    except (OSError, ValueError) as e:
        logger.error("Failed to parse %s: %s", args.input, e)
        return 1

    llm_results: list[ValidationResult | None] = []
    if args.llm_validation:
        try:
            llm_results = load_validation_results(Path(args.llm_validation))
        except (OSError, ValueError) as e:
            logger.error("Failed to read validation results from %s: %s", args.llm_validation, e)
            return 1

    logger.info("Loaded %d reference(s) from %s", len(references), args.input)
    result = validate_and_enrich(references, config)
    validations = merge_validation_arrays(llm_results, result.validation_results)

    payload = {
        "references": [r.to_dict() for r in result.references],
        "validation": [v.to_dict() for v in validations],
    }
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote %s", args.output)
    else:
        sys.stdout.write(text + "\n")

    if args.bibtex:
        Path(args.bibtex).write_text(to_bibtex(result.references), encoding="utf-8")
        logger.info("Wrote %s", args.bibtex)

    invalid = sum(1 for v in validations if not v.is_valid)
    logger.info("Done: %d reference(s), %d invalid", len(validations), invalid)
    if args.strict and invalid:
        return 4
    return 0


if __name__ == "__main__":
    sys.exit(main())
