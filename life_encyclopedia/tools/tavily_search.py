from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tavily import AsyncTavilyClient, UsageLimitExceededError

from life_encyclopedia.config import settings
from life_encyclopedia.errors import RateLimitExceededError
from life_encyclopedia.services import logger as log_service


@dataclass
class SearchResult:
    title: str
    url: str
    content: str
    score: float


async def search(
    query: str,
    *,
    search_depth: str = "advanced",
    max_results: int = 10,
    include_domains: list[str] | None = None,
) -> list[SearchResult]:
    """Execute a Tavily web search and return structured results.

    Usage-limit responses are raised as `RateLimitExceededError`; callers
    decide whether that aborts their stage.
    """
    if not settings.tavily_api_key:
        raise RuntimeError("TAVILY_API_KEY is not configured")

    client = AsyncTavilyClient(api_key=settings.tavily_api_key)

    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
        "topic": "general",
        "include_raw_content": False,
    }
    if include_domains:
        kwargs["include_domains"] = include_domains

    try:
        response = await client.search(**kwargs)
    except UsageLimitExceededError as exc:
        log_service.log_provider_call("tavily", "search", "rate_limited", error=str(exc), query=query)
        raise RateLimitExceededError("Tavily") from exc

    results = [
        SearchResult(
            title=r.get("title", "") or "",
            url=r.get("url", "") or "",
            content=r.get("content", "") or "",
            score=float(r.get("score", 0.0) or 0.0),
        )
        for r in response.get("results", [])
    ]
    log_service.log_provider_call("tavily", "search", "success", results=len(results), query=query)
    return results
