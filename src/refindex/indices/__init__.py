"""Bibliographic index adapters.

One adapter per external index, all sharing the IndexAdapter contract:

    from refindex.indices import build_adapters

    for adapter in build_adapters(config, http):
        match = adapter.match(reference)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from refindex.indices.base import (
    Candidate,
    IndexAdapter,
    IndexMatch,
    IndexSource,
    IndexStatus,
    MalformedResponse,
    make_patch,
)
from refindex.indices.crossref import CrossrefAdapter
from refindex.indices.gbv import GbvAdapter
from refindex.indices.lobid import LobidAdapter
from refindex.indices.loc import LocAdapter
from refindex.indices.openalex import OpenAlexAdapter
from refindex.indices.wikidata import WikidataAdapter

if TYPE_CHECKING:
    from refindex.config import IndexConfig
    from refindex.utils import HttpClient

ADAPTERS: dict[IndexSource, type[IndexAdapter]] = {
    IndexSource.CROSSREF: CrossrefAdapter,
    IndexSource.OPENALEX: OpenAlexAdapter,
    IndexSource.LOBID: LobidAdapter,
    IndexSource.LOC: LocAdapter,
    IndexSource.GBV: GbvAdapter,
    IndexSource.WIKIDATA: WikidataAdapter,
}


def build_adapters(config: IndexConfig, http: HttpClient) -> list[IndexAdapter]:
    """Instantiate the enabled adapters in invocation order (see IndexConfig.enabled_sources)."""
    return [ADAPTERS[source](http, config) for source in config.enabled_sources()]


__all__ = [
    "ADAPTERS",
    "Candidate",
    "CrossrefAdapter",
    "GbvAdapter",
    "IndexAdapter",
    "IndexMatch",
    "IndexSource",
    "IndexStatus",
    "LobidAdapter",
    "LocAdapter",
    "MalformedResponse",
    "OpenAlexAdapter",
    "WikidataAdapter",
    "build_adapters",
    "make_patch",
]
