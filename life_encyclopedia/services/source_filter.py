"""Source reliability model.

Pure functions over a static domain registry: classification, scoring,
authority checks, deduplication and ranking. Nothing here performs I/O.
"""
from __future__ import annotations

from typing import Iterable
from urllib.parse import urlparse

from life_encyclopedia.models.sources import Source, SourceType

DEFAULT_SCORE = 0.4
UNPARSEABLE_SCORE = 0.3

AUTHORITATIVE_DOMAINS: dict[str, tuple[SourceType, float]] = {
    # Encyclopedias
    "wikipedia.org": (SourceType.ENCYCLOPEDIA, 0.85),
    "britannica.com": (SourceType.ENCYCLOPEDIA, 0.95),
    "encyclopedia.com": (SourceType.ENCYCLOPEDIA, 0.85),
    # News
    "nytimes.com": (SourceType.NEWS, 0.90),
    "bbc.com": (SourceType.NEWS, 0.90),
    "bbc.co.uk": (SourceType.NEWS, 0.90),
    "reuters.com": (SourceType.NEWS, 0.90),
    "apnews.com": (SourceType.NEWS, 0.90),
    "theguardian.com": (SourceType.NEWS, 0.85),
    "washingtonpost.com": (SourceType.NEWS, 0.85),
    "npr.org": (SourceType.NEWS, 0.85),
    "pbs.org": (SourceType.NEWS, 0.85),
    "economist.com": (SourceType.NEWS, 0.85),
    "time.com": (SourceType.NEWS, 0.80),
    "theatlantic.com": (SourceType.NEWS, 0.80),
    # Biographies
    "biography.com": (SourceType.BIOGRAPHY, 0.80),
    "notablebiographies.com": (SourceType.BIOGRAPHY, 0.70),
    "famousscientists.org": (SourceType.BIOGRAPHY, 0.75),
    # Archives
    "history.com": (SourceType.ARCHIVE, 0.80),
    "archives.gov": (SourceType.OFFICIAL, 0.95),
    "loc.gov": (SourceType.OFFICIAL, 0.95),
    "nationalarchives.gov.uk": (SourceType.OFFICIAL, 0.95),
    "imdb.com": (SourceType.ARCHIVE, 0.70),
    # Academic
    "jstor.org": (SourceType.ACADEMIC, 0.90),
    "scholar.google.com": (SourceType.ACADEMIC, 0.85),
    "academia.edu": (SourceType.ACADEMIC, 0.75),
    "researchgate.net": (SourceType.ACADEMIC, 0.75),
    "pubmed.ncbi.nlm.nih.gov": (SourceType.ACADEMIC, 0.90),
    # Official
    "whitehouse.gov": (SourceType.OFFICIAL, 0.95),
    "congress.gov": (SourceType.OFFICIAL, 0.95),
    "usa.gov": (SourceType.OFFICIAL, 0.90),
    "gov.uk": (SourceType.OFFICIAL, 0.90),
    # Awards
    "nobelprize.org": (SourceType.OFFICIAL, 0.95),
    "pulitzer.org": (SourceType.OFFICIAL, 0.95),
    "grammy.com": (SourceType.OFFICIAL, 0.85),
    "oscars.org": (SourceType.OFFICIAL, 0.90),
}

AUTHORITATIVE_SUFFIXES: dict[str, tuple[SourceType, float]] = {
    ".edu": (SourceType.ACADEMIC, 0.85),
    ".gov": (SourceType.OFFICIAL, 0.90),
    ".mil": (SourceType.OFFICIAL, 0.85),
    ".ac.uk": (SourceType.ACADEMIC, 0.85),
    ".gov.uk": (SourceType.OFFICIAL, 0.90),
}

EXCLUDED_DOMAINS = frozenset(
    {
        "facebook.com",
        "twitter.com",
        "x.com",
        "instagram.com",
        "tiktok.com",
        "reddit.com",
        "pinterest.com",
        "tumblr.com",
        "quora.com",
        "answers.com",
        "wikihow.com",
        "ehow.com",
        "about.com",
        "buzzfeed.com",
        "dailymail.co.uk",
        "thesun.co.uk",
    }
)

BIOGRAPHICAL_TERMS = ("born", "died", "life", "career", "biography", "educated", "married")
UNCERTAINTY_TERMS = ("allegedly", "rumored", "unconfirmed", "disputed")


def extract_domain(url: str) -> str | None:
    """Lower-cased host without a leading `www.`; None when the URL has no host."""
    try:
        host = urlparse(url.strip()).hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def _registry_match(domain: str, registry: dict[str, tuple[SourceType, float]]) -> tuple[SourceType, float] | None:
    if domain in registry:
        return registry[domain]
    # Subdomains inherit their registrable domain (en.wikipedia.org -> wikipedia.org).
    for registered in sorted(registry, key=len, reverse=True):
        if domain.endswith("." + registered):
            return registry[registered]
    return None


def _suffix_match(domain: str) -> tuple[SourceType, float] | None:
    for suffix in sorted(AUTHORITATIVE_SUFFIXES, key=len, reverse=True):
        if domain.endswith(suffix):
            return AUTHORITATIVE_SUFFIXES[suffix]
    return None


def _lookup(domain: str) -> tuple[SourceType, float] | None:
    return _registry_match(domain, AUTHORITATIVE_DOMAINS) or _suffix_match(domain)


def is_excluded(url: str) -> bool:
    domain = extract_domain(url)
    if domain is None:
        return False
    return _registry_match(domain, {d: (SourceType.UNKNOWN, 0.0) for d in EXCLUDED_DOMAINS}) is not None


def classify(url: str) -> SourceType:
    domain = extract_domain(url)
    if domain is None:
        return SourceType.UNKNOWN
    match = _lookup(domain)
    return match[0] if match else SourceType.UNKNOWN


def is_authoritative(url: str) -> bool:
    domain = extract_domain(url)
    if domain is None or is_excluded(url):
        return False
    return _lookup(domain) is not None


def is_registered_domain(url: str) -> bool:
    """True when the URL belongs to an explicitly registered domain (suffix rules excluded)."""
    domain = extract_domain(url)
    if domain is None:
        return False
    return _registry_match(domain, AUTHORITATIVE_DOMAINS) is not None


def score(url: str, content: str = "") -> float:
    domain = extract_domain(url)
    if domain is None:
        return UNPARSEABLE_SCORE

    match = _lookup(domain)
    value = match[1] if match else DEFAULT_SCORE

    lowered = (content or "").lower()
    if len(content or "") > 500:
        value += 0.02
    value += 0.01 * sum(1 for term in BIOGRAPHICAL_TERMS if term in lowered)
    value -= 0.02 * sum(1 for term in UNCERTAINTY_TERMS if term in lowered)

    return max(0.0, min(1.0, value))


def filter_authoritative(results: Iterable, *, url_attr: str = "url") -> list:
    return [r for r in results if is_authoritative(getattr(r, url_attr, "") or "")]


def normalize_url(url: str) -> str:
    normalized = url.strip().lower()
    for scheme in ("https://", "http://"):
        if normalized.startswith(scheme):
            normalized = normalized[len(scheme):]
            break
    if normalized.startswith("www."):
        normalized = normalized[4:]
    normalized = normalized.split("?", 1)[0]
    return normalized.rstrip("/")


def deduplicate(sources: Iterable[Source]) -> list[Source]:
    seen: set[str] = set()
    unique: list[Source] = []
    for source in sources:
        key = normalize_url(source.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(source)
    return unique


def top_sources(sources: Iterable[Source], n: int) -> list[Source]:
    # sorted() is stable, so ties keep their input order.
    ranked = sorted(sources, key=lambda s: s.reliability_score, reverse=True)
    return ranked[: max(n, 0)]


def group_by_type(sources: Iterable[Source]) -> dict[SourceType, list[Source]]:
    groups: dict[SourceType, list[Source]] = {}
    for source in sources:
        groups.setdefault(source.source_type, []).append(source)
    return groups


def average_reliability(sources: list[Source]) -> float:
    if not sources:
        return 0.0
    return sum(s.reliability_score for s in sources) / len(sources)


def to_source(title: str, url: str, content: str) -> Source:
    """Build a scored, classified Source from a raw search hit."""
    return Source(
        title=title or url,
        url=url,
        source_type=classify(url),
        reliability_score=score(url, content),
        content_snippet=content or None,
    )


def results_to_sources(results: Iterable) -> list[Source]:
    sources = [to_source(r.title, r.url, r.content) for r in results]
    return top_sources(sources, len(sources))
