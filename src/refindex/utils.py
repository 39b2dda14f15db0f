"""Shared utilities for bibliographic index lookups.

This module provides common functionality used by:
- the index adapters (request construction and response decoding)
- the matching layer (text normalization)
- the reconciliation engine (blank detection)

Includes text normalization, DOI/ISBN/year handling, HTTP infrastructure with
rate limiting and retries, and small helpers for reading loosely-typed JSON.
"""

from __future__ import annotations

import json
import re
import threading
import time
import unicodedata
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from refindex._version import __version__

# ------------- Constants & Regex -------------

CROSSREF_API = "https://api.crossref.org/works"
OPENALEX_API = "https://api.openalex.org/works"
LOBID_API = "https://lobid.org/resources/search"
LOC_API = "https://www.loc.gov/search/"
GBV_SRU_DEFAULT = "https://sru.k10plus.de/gvk"
WIKIDATA_SPARQL = "https://query.wikidata.org/sparql"
WIKIDATA_API = "https://www.wikidata.org/w/api.php"

DEFAULT_USER_AGENT = f"refindex/{__version__}"

_DOI_URL_PREFIX_RE = re.compile(r"^https?://(?:dx\.)?doi\.org/", re.IGNORECASE)
_DOI_BODY_RE = re.compile(r"10\.\d{4,}/\S*[^\s.,]")
_QUOTES_RE = re.compile(r"['‘’`\"“”]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_STOPWORDS_RE = re.compile(r"\b(?:and|the)\b")
_YEAR_RE = re.compile(r"\b(\d{4})\b")
_ISBN_RE = re.compile(r"\b(?:97[89][-\s]?)?(?:\d[-\s]?){9}[\dXx]\b")
_HTML_TAG_RE = re.compile(r"<[^>]*>")

# Words too common to help a catalog search narrow results.
SEARCH_STOPWORDS = frozenset(
    {
        "a", "an", "of", "in", "on", "for", "to", "with", "by", "at", "from",
        "der", "die", "das", "und", "ein", "eine", "zur", "zum", "von", "im",
        "le", "la", "les", "de", "des", "du", "et",
    }
)  # fmt: skip


# ------------- Text Normalization -------------


def strip_diacritics(text: str) -> str:
    """Remove diacritics from text (e.g., 'café' -> 'cafe')."""
    nfkd = unicodedata.normalize("NFKD", text)
    return "".join(c for c in nfkd if not unicodedata.combining(c))


def normalize_text(value: str | None) -> str:
    """Canonicalize free text for fuzzy comparison.

    Strips accents and quote characters, lowercases, collapses every
    non-alphanumeric run to one space, and drops the words "and"/"the".
    """
    if not value:
        return ""
    text = unicodedata.normalize("NFD", value)
    text = "".join(c for c in text if not unicodedata.combining(c)).lower()
    text = _QUOTES_RE.sub("", text)
    text = _NON_ALNUM_RE.sub(" ", text)
    text = _STOPWORDS_RE.sub(" ", text)
    return " ".join(text.split())


def is_blank(value: Any) -> bool:
    """Return True for missing values.

    None, empty/whitespace strings, the literal string "null" (an artifact of
    LLM output) and empty sequences all count as blank.
    """
    if value is None:
        return True
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed == "" or trimmed.lower() == "null"
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def clean_text(value: Any) -> str:
    """Coerce a JSON scalar to a stripped string, mapping blanks to ''."""
    if value is None or isinstance(value, (dict, list, tuple)):
        return ""
    text = str(value).strip()
    return "" if is_blank(text) else text


def strip_html(text: str) -> str:
    """Remove inline markup such as <i>...</i> from API titles."""
    return " ".join(_HTML_TAG_RE.sub("", text).split())


def significant_tokens(title: str, limit: int) -> list[str]:
    """Return up to `limit` normalized title tokens useful as search terms."""
    tokens = [t for t in normalize_text(title).split() if t not in SEARCH_STOPWORDS and len(t) > 1]
    return tokens[:limit]


def clean_catalog_title(title: str) -> str:
    """Drop the statement of responsibility and trailing ISBD punctuation.

    Library catalogs often render titles as 'Main title : subtitle / by A. Author.'
    """
    text = title.split(" / ", 1)[0]
    return text.strip().rstrip(" ./:;,").strip()


def split_imprint(imprint: str) -> tuple[str, str]:
    """Split a catalog imprint like 'Berlin : Springer, 1998.' into (place, publisher)."""
    text = _YEAR_RE.sub("", imprint).strip().rstrip(" .,;[]")
    if ":" in text:
        place, _, publisher = text.partition(":")
        return place.strip(" []"), publisher.strip(" ,.[]")
    return "", text.strip(" ,.[]")


# ------------- Author Handling -------------


def split_display_name(name: str) -> tuple[str, str]:
    """Split 'Given Middle Family' into (given, family).

    Names in 'Family, Given' form are split at the comma instead.
    """
    name = " ".join((name or "").split())
    if not name:
        return "", ""
    if "," in name:
        family, _, given = name.partition(",")
        return given.strip(), family.strip()
    parts = name.split(" ")
    if len(parts) == 1:
        return "", parts[0]
    return " ".join(parts[:-1]), parts[-1]


def surname_of(name: str) -> str:
    """Return the family-name part of a free-form personal name."""
    return split_display_name(name)[1]


# ------------- DOI, ISBN & Year Utilities -------------


def clean_doi(doi: str) -> str:
    """Extract the canonical '10.NNNN/...' body from a string, or '' when absent."""
    m = _DOI_BODY_RE.search(doi or "")
    return m.group(0) if m else ""


def doi_normalize(raw: str | None) -> str:
    """Normalize a DOI for comparison.

    Removes resolver URL and 'doi:' prefixes, canonicalizes via clean_doi() when
    the value looks like a registered DOI, and lowercases (DOIs are
    case-insensitive).
    """
    if is_blank(raw):
        return ""
    doi = _DOI_URL_PREFIX_RE.sub("", str(raw).strip())
    if doi.lower().startswith("doi:"):
        doi = doi[4:]
    cleaned = clean_doi(doi)
    return (cleaned or doi).strip().lower()


def isbn_normalize(raw: str | None) -> str:
    """Strip separators from an ISBN and convert ISBN-10 to ISBN-13.

    Returns '' for values that are not 10 or 13 characters after cleanup.
    """
    if is_blank(raw):
        return ""
    digits = re.sub(r"[^0-9Xx]", "", str(raw)).upper()
    if len(digits) == 13:
        return digits
    if len(digits) != 10:
        return ""
    core = "978" + digits[:9]
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(core))
    return core + str((10 - total % 10) % 10)


def find_isbns(text: str) -> list[str]:
    """Return all normalized ISBNs found in a free-text identifier string."""
    found = []
    for m in _ISBN_RE.finditer(text or ""):
        isbn = isbn_normalize(m.group(0))
        if isbn and isbn not in found:
            found.append(isbn)
    return found


def year_from_text(value: Any) -> str:
    """Return the first four-digit year in a value, or ''."""
    m = _YEAR_RE.search(clean_text(value))
    return m.group(1) if m else ""


def date_from_parts(parts: Any) -> str:
    """Render Crossref-style date-parts ([[2020, 3, 15]]) as 'YYYY[-MM[-DD]]'."""
    first = safe_get(parts, 0)
    if not isinstance(first, list) or not first or first[0] is None:
        return ""
    try:
        fields = [int(p) for p in first[:3] if p is not None]
    except (TypeError, ValueError):
        return ""
    out = f"{fields[0]:04d}"
    for p in fields[1:]:
        out += f"-{p:02d}"
    return out


# ------------- Defensive JSON Access -------------


def safe_get(data: Any, *path: str | int) -> Any:
    """Walk nested dicts/lists, returning None on any missing step."""
    cur = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(cur, list) or not -len(cur) <= key < len(cur):
                return None
            cur = cur[key]
        else:
            if not isinstance(cur, Mapping):
                return None
            cur = cur.get(key)
        if cur is None:
            return None
    return cur


def first_text(value: Any) -> str:
    """Return a value as text, taking the first element of a list."""
    if isinstance(value, list):
        for item in value:
            text = clean_text(item)
            if text:
                return text
        return ""
    return clean_text(value)


def as_list(value: Any) -> list[Any]:
    """Wrap a scalar/object in a list; None becomes []."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return list(value)
    return [value]


# ------------- Rate Limiting -------------


class RateLimiter:
    """Thread-safe sliding-window rate limiter for API requests."""

    def __init__(self, req_per_min: int) -> None:
        self.req_per_min = max(req_per_min, 1)
        self.lock = threading.Lock()
        self.timestamps: list[float] = []

    def wait(self) -> None:
        """Block until a request can be made within the rate limit."""
        with self.lock:
            now = time.monotonic()
            window = 60.0
            self.timestamps = [t for t in self.timestamps if now - t < window]
            if len(self.timestamps) >= self.req_per_min:
                sleep_for = window - (now - min(self.timestamps)) + 0.01
                if sleep_for > 0:
                    time.sleep(sleep_for)
                    now = time.monotonic()
                    self.timestamps = [t for t in self.timestamps if now - t < window]
            self.timestamps.append(time.monotonic())


class RateLimiterRegistry:
    """Manages per-service rate limiters; unknown services get 30 requests/min."""

    DEFAULT_LIMITS = {
        "crossref": 50,  # Crossref: 50/min polite pool
        "openalex": 100,  # OpenAlex: polite pool (~10 req/sec max)
        "lobid": 60,
        "loc": 20,  # loc.gov JSON API throttles bursts aggressively
        "gbv": 30,
        "wikidata": 30,  # WDQS: conservative, queries are expensive
    }

    def __init__(self, limits: dict[str, int] | None = None) -> None:
        self._limits = {**self.DEFAULT_LIMITS, **(limits or {})}
        self._limiters: dict[str, RateLimiter] = {}
        self._lock = threading.Lock()

    def get(self, service: str) -> RateLimiter:
        """Get or create the rate limiter for a service."""
        with self._lock:
            if service not in self._limiters:
                self._limiters[service] = RateLimiter(self._limits.get(service, 30))
            return self._limiters[service]

    def wait(self, service: str) -> None:
        """Wait for the rate limit on the specified service."""
        self.get(service).wait()


# ------------- HTTP Client -------------


class NetworkError(RuntimeError):
    """Raised when transport-level failures persist after all retry attempts."""


@dataclass
class JsonResponse:
    """Status code and decoded body of one lookup.

    `data` is the parsed JSON structure when the body decodes, otherwise the
    raw response text. Callers inspect its shape.
    """

    status: int
    data: Any


def decode_body(body: Any) -> Any:
    """Parse a JSON string body, returning the input unchanged if it is not JSON."""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            return json.loads(body)
        except ValueError:
            return body
    return body


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt number `attempt` (1-based)."""
    return min(2.0 * 2 ** (attempt - 1), 15.0)


class HttpClient:
    """HTTP client with per-service rate limiting and bounded retries."""

    RETRYABLE_STATUS = {429, 500, 502, 503, 504}

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        rate_limiter: RateLimiterRegistry | None = None,
        max_attempts: int = 3,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize HTTP client.

        Args:
            timeout: Per-request timeout in seconds
            user_agent: Default User-Agent header value
            rate_limiter: Per-service limiter registry; a default one is created if omitted
            max_attempts: Total attempts for transient failures (minimum 1)
            transport: Optional httpx transport, used by tests to stub the network
        """
        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent},
            follow_redirects=True,
            transport=transport,
        )
        self.rate_limiter = rate_limiter or RateLimiterRegistry()
        self.max_attempts = max(max_attempts, 1)

    def request_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        accept: str = "application/json",
        service: str = "default",
    ) -> JsonResponse:
        """GET a URL, retrying transient failures with exponential backoff.

        Retries on 429/5xx statuses and transport errors. Any other status is
        returned on the first attempt. A retryable status that persists through
        the last attempt is returned as-is.

        Raises:
            NetworkError: If every attempt failed at the transport level
        """
        request_headers = {"Accept": accept, **(headers or {})}
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            self.rate_limiter.wait(service)
            try:
                resp = self.client.get(url, params=params, headers=request_headers)
            except httpx.TransportError as exc:
                last_error = exc
            else:
                if resp.status_code not in self.RETRYABLE_STATUS or attempt >= self.max_attempts:
                    return JsonResponse(resp.status_code, decode_body(resp.text))
                last_error = None
            if attempt < self.max_attempts:
                time.sleep(backoff_delay(attempt))
        raise NetworkError(f"Network failure after {self.max_attempts} attempts for {url}: {last_error}")

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self.client.close()

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
