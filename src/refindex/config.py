"""Configuration for index validation and enrichment."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from refindex.indices.base import IndexSource
from refindex.utils import DEFAULT_USER_AGENT, GBV_SRU_DEFAULT

DEFAULT_PRIORITIES: dict[str, int] = {
    "gbv": 1,
    "lobid": 2,
    "loc": 3,
    "crossref": 4,
    "openalex": 5,
    "wikidata": 6,
}


@dataclass(frozen=True)
class IndexConfig:
    """Immutable settings for one batch of index lookups.

    Attributes:
        enabled: Global switch; when off, references pass through unchanged
        enrich: Apply patches from matches (False = validate only)
        crossref, openalex, lobid, loc, gbv, wikidata: Per-source enable flags
        crossref_mailto: Contact e-mail advertised in the Crossref User-Agent
        openalex_mailto: Contact e-mail sent as OpenAlex `mailto` parameter
        gbv_sru_url: SRU endpoint of the union catalog
        priorities: Per-source weights, lower is preferred. They fix the
            invocation order, which only decides exact ranking ties.
        timeout: Per-request timeout in seconds
        max_attempts: Attempts per request for transient failures
        user_agent: Base User-Agent for all requests
    """

    enabled: bool = True
    enrich: bool = True
    crossref: bool = True
    openalex: bool = True
    lobid: bool = True
    loc: bool = True
    gbv: bool = True
    wikidata: bool = True
    crossref_mailto: str | None = None
    openalex_mailto: str | None = None
    gbv_sru_url: str = GBV_SRU_DEFAULT
    priorities: Mapping[str, int] = field(default_factory=lambda: DEFAULT_PRIORITIES, hash=False)
    timeout: float = 30.0
    max_attempts: int = 3
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        object.__setattr__(self, "priorities", MappingProxyType(dict(self.priorities)))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexConfig:
        """Create config from a dictionary (e.g., loaded from YAML).

        Raises:
            ValueError: On unknown keys, unknown priority sources or
                non-integer priority weights
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config key(s): {', '.join(unknown)}")

        values = dict(data)
        if "priorities" in values:
            extra = values["priorities"] or {}
            if not isinstance(extra, dict):
                raise ValueError("'priorities' must be a mapping of source name to integer")
            bad = sorted(set(extra) - set(DEFAULT_PRIORITIES))
            if bad:
                raise ValueError(f"Unknown priority source(s): {', '.join(bad)}")
            try:
                weights = {k: int(v) for k, v in extra.items()}
            except (TypeError, ValueError) as e:
                raise ValueError(f"Priority weights must be integers: {e}") from e
            values["priorities"] = {**DEFAULT_PRIORITIES, **weights}
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary for serialization."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["priorities"] = dict(self.priorities)
        return data

    def with_overrides(self, **changes: Any) -> IndexConfig:
        """Return a copy with the given non-None fields replaced."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def is_enabled(self, source: IndexSource) -> bool:
        return bool(getattr(self, source.value))

    def enabled_sources(self) -> list[IndexSource]:
        """Enabled sources in invocation order.

        Sorted by ascending priority weight; equal weights keep declaration
        order (crossref, openalex, lobid, loc, gbv, wikidata).
        """
        declared = list(IndexSource)
        enabled = [s for s in declared if self.is_enabled(s)]
        return sorted(enabled, key=lambda s: (self.priorities.get(s.value, len(declared) + 1), declared.index(s)))


def load_config(path: str | Path) -> IndexConfig:
    """Load an IndexConfig from a YAML file.

    An empty file yields the defaults.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the YAML is not a mapping or has unknown keys
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return IndexConfig()
    if not isinstance(data, dict):
        raise ValueError("Invalid config format: expected a mapping")
    return IndexConfig.from_dict(data)
