"""Best-effort deep links and quotable excerpts for citations."""
from __future__ import annotations

import re
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

from life_encyclopedia.models.sources import Source

QUOTE_MAX_CHARS = 200
QUOTE_MIN_CHARS = 10
QUOTE_MIN_ALNUM_RATIO = 0.4

# Characters left unescaped in a text fragment; `&` is escaped separately.
_FRAGMENT_SAFE = "!$'()*+,;=:@/?-._~"

_CLEANUP_STEPS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"<[^>]+>"), ""),
    (re.compile(r"\[([^\]]+)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[\[(?:[^|\]]*\|)?([^\]]+)\]\]"), r"\1"),
    (
        re.compile(
            r"\[(?:\d+|[a-z]|citation needed|clarification needed|unreliable source)\]",
            re.IGNORECASE,
        ),
        "",
    ),
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"\*{1,3}([^*]+)\*{1,3}"), r"\1"),
    (re.compile(r"_{1,3}([^_]+)_{1,3}"), r"\1"),
    (re.compile(r"https?://\S+"), ""),
    (re.compile(r"[_#][A-Za-z0-9_#/]+\)?"), ""),
    (re.compile(r"[/|\-=*~_]{3,}"), " "),
    (re.compile(r"\(\)|\[\]|\{\}"), ""),
    (
        re.compile(
            r"(?:skip to (?:content|main|navigation)|menu|breadcrumb|toggle navigation|search this site)",
            re.IGNORECASE,
        ),
        "",
    ),
    (re.compile(r"(?:[A-Za-z]+\s*>\s*){2,}[A-Za-z]+"), ""),
    (re.compile(r"\s+"), " "),
)


def clean_raw_content(text: str) -> str:
    """Strip markup, link syntax, reference markers and navigation debris."""
    cleaned = text
    for pattern, replacement in _CLEANUP_STEPS:
        cleaned = pattern.sub(replacement, cleaned)
    return cleaned.strip()


def _truncate(text: str, limit: int = QUOTE_MAX_CHARS) -> str:
    if len(text) <= limit:
        return text
    cut = text[:limit]
    boundary = cut.rfind(" ")
    # Back off to a word boundary unless that would drop most of the excerpt.
    if boundary >= limit * 3 // 4:
        cut = cut[:boundary]
    return cut.rstrip(" ,;:-")


def best_quote(relevant_quote: str | None, content_snippet: str | None) -> str | None:
    raw = relevant_quote if relevant_quote else content_snippet
    if not raw:
        return None

    cleaned = clean_raw_content(raw)
    if len(cleaned) < QUOTE_MIN_CHARS:
        return None
    alnum = sum(1 for char in cleaned if char.isalnum())
    if alnum / len(cleaned) < QUOTE_MIN_ALNUM_RATIO:
        return None
    return _truncate(cleaned)


def _is_wikipedia(host: str | None) -> bool:
    return bool(host) and "wikipedia.org" in host.lower()


def _with_fragment(url: str, fragment: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, fragment))


def resolve_hint(base_url: str, hint: str | None) -> str | None:
    raw = (hint or "").strip()
    if not raw:
        return None

    if urlsplit(raw).scheme:
        return raw
    if raw.startswith("#"):
        return _with_fragment(base_url, raw[1:])
    if _is_wikipedia(urlsplit(base_url).hostname):
        slug = raw.replace(" ", "_").replace("#", "")
        return _with_fragment(base_url, slug)
    return urljoin(base_url, raw)


def text_fragment_url(base_url: str, quote_text: str | None) -> str | None:
    """`#:~:text=` locator for the quote; None if the base already has a fragment."""
    selected = best_quote(quote_text, None)
    if not selected:
        return None
    if urlsplit(base_url).fragment:
        return None
    encoded = quote(selected, safe=_FRAGMENT_SAFE).replace("&", "%26")
    return _with_fragment(base_url, f":~:text={encoded}")


def resolved_url(base_url: str, relevant_quote: str | None, deep_link_hint: str | None) -> str:
    """Resolve the best deep link: hint, then text fragment, then the base URL."""
    if not urlsplit(base_url).scheme:
        return base_url
    return (
        resolve_hint(base_url, deep_link_hint)
        or text_fragment_url(base_url, relevant_quote)
        or base_url
    )


def prepare_citation(source: Source) -> Source:
    quote_text = best_quote(source.relevant_quote, source.content_snippet)
    link = resolved_url(source.url, quote_text, source.deep_link_url)
    return source.with_citation(quote_text, link)


def prepare_citations(sources: list[Source]) -> list[Source]:
    return [prepare_citation(source) for source in sources]
