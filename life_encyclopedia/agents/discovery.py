from __future__ import annotations

import asyncio
from typing import Any, Iterable

from life_encyclopedia.config import settings
from life_encyclopedia.models.research import (
    DiscoveryOutcome,
    DiscoveryStatus,
    PersonDiscovery,
    ProviderResult,
)
from life_encyclopedia.models.sources import Source
from life_encyclopedia.services import logger as log_service
from life_encyclopedia.services import source_filter
from life_encyclopedia.tools import knowledge_graph, tavily_search, wikidata
from life_encyclopedia.tools.tavily_search import SearchResult

DISCOVERY_QUERIES = (
    "biography",
    "life timeline important dates",
    "career achievements",
)

STRONG_FICTIONAL_CUES = (
    "is a fictional character",
    "is a fictional",
    "fictional character in",
    "fictional character from",
    "fictional character created",
    "fictional character who",
    "fictional protagonist",
    "fictional antagonist",
    "fictional superhero",
    "fictional villain",
    "main character in the",
    "protagonist of the",
    "antagonist in",
    "character created by",
    "character portrayed by",
    "played by",
    "voiced by",
    "appears in the",
)

MODERATE_FICTIONAL_CUES = (
    "fictional character",
    "comic book character",
    "anime character",
    "manga character",
    "video game character",
    "mythological figure",
    "legendary figure",
    "fairy tale character",
    "folklore character",
    "literary character",
)

REAL_PERSON_CUES = (
    "was born",
    "born on",
    "born in",
    "date of birth",
    "died on",
    "died in",
    "date of death",
    "biography",
    "biographical",
    "autobiography",
    "early life",
    "personal life",
    "career",
    "graduated from",
    "attended",
    "married",
    "children",
    "net worth",
    "award",
    "nobel",
    "pulitzer",
    "grammy",
    "oscar",
    "emmy",
    "founded",
    "ceo of",
    "president of",
    "prime minister",
    "elected",
    "politician",
    "businessman",
    "businesswoman",
    "entrepreneur",
    "scientist",
    "researcher",
    "professor",
    "historian",
    "real-life",
    "real life",
    "historical figure",
)

SUMMARY_CHARS = 500


def filter_relevant_results(results: Iterable[SearchResult], name: str) -> list[SearchResult]:
    """Keep hits that mention the full name, or the last name of a multi-part name."""
    full_name = name.strip().lower()
    parts = full_name.split()
    last_name = parts[-1] if len(parts) > 1 else None

    relevant: list[SearchResult] = []
    for result in results:
        haystack = f"{result.title} {result.content}".lower()
        if full_name and full_name in haystack:
            relevant.append(result)
        elif last_name and last_name in haystack:
            relevant.append(result)
    return relevant


def _first_cue(text: str, cues: tuple[str, ...]) -> bool:
    return any(cue in text for cue in cues)


def is_fictional_person(results: list[Any]) -> bool:
    """Lexical fictional-character heuristic.

    Each result contributes at most one strong hit, a moderate hit only when
    it has no strong hit, and at most one real-person hit. The branch order
    below is significant; it is biased toward classifying subjects as real.
    """
    strong = moderate = real = flagged = 0
    for result in results:
        text = f"{getattr(result, 'title', '')} {getattr(result, 'content', '')}".lower()

        has_strong = _first_cue(text, STRONG_FICTIONAL_CUES)
        has_moderate = not has_strong and _first_cue(text, MODERATE_FICTIONAL_CUES)
        strong += has_strong
        moderate += has_moderate
        real += _first_cue(text, REAL_PERSON_CUES)
        if has_strong or has_moderate:
            flagged += 1

    if real > strong + moderate:
        return False
    if strong >= 2 and real <= 1:
        return True
    if strong >= 1 and real == 0:
        return True
    if results and flagged / len(results) > 0.6 and moderate >= 3 and real <= 1:
        return True
    return False


def build_summary(sources: list[Source]) -> str:
    for source in sources:
        if source.content_snippet:
            return source.content_snippet[:SUMMARY_CHARS]
    return ""


class DiscoveryAgent:
    """Primary search-based discovery; the only provider allowed to raise."""

    name = "discovery"

    async def _search_all(self, name: str) -> list[SearchResult]:
        batches = await asyncio.gather(
            *(
                tavily_search.search(
                    f"{name} {suffix}",
                    search_depth="advanced",
                    max_results=settings.discovery_max_results,
                )
                for suffix in DISCOVERY_QUERIES
            )
        )
        return [result for batch in batches for result in batch]

    async def discover_person(self, name: str) -> PersonDiscovery:
        results = await self._search_all(name)
        relevant = filter_relevant_results(results, name)

        if not relevant:
            log_service.log_event("discovery_not_found", "No relevant results", name=name)
            return PersonDiscovery(name=name, status=DiscoveryStatus.NOT_FOUND)

        if is_fictional_person(relevant):
            log_service.log_event("discovery_fictional", "Fictional subject detected", name=name)
            return PersonDiscovery(
                name=name,
                status=DiscoveryStatus.FICTIONAL,
                raw_results=relevant,
            )

        authoritative = source_filter.filter_authoritative(relevant)
        sources = source_filter.deduplicate(source_filter.results_to_sources(authoritative))
        return PersonDiscovery(
            name=name,
            status=DiscoveryStatus.VERIFIED,
            summary=build_summary(sources),
            sources=sources,
            raw_results=relevant,
        )


class PersonDiscoveryOrchestrator:
    """Fans discovery out to the primary and both structured providers."""

    def __init__(self, agent: DiscoveryAgent | None = None):
        self.agent = agent or DiscoveryAgent()

    async def discover(self, name: str) -> DiscoveryOutcome:
        primary_task = asyncio.create_task(self.agent.discover_person(name))
        wikidata_task = asyncio.create_task(wikidata.discover(name))
        kg_task = asyncio.create_task(knowledge_graph.discover(name))

        try:
            discovery = await primary_task
        except BaseException:
            wikidata_task.cancel()
            kg_task.cancel()
            await asyncio.gather(wikidata_task, kg_task, return_exceptions=True)
            raise

        supplements = await asyncio.gather(wikidata_task, kg_task, return_exceptions=True)
        wikidata_result, kg_result = (
            _absorb(result, provider)
            for result, provider in zip(supplements, (wikidata.PROVIDER, knowledge_graph.PROVIDER))
        )

        if not discovery.is_verified:
            return DiscoveryOutcome(discovery=discovery)

        wikidata_result = await _finalize_wikidata(name, wikidata_result)

        supplemental_sources = [
            source
            for result in (wikidata_result, kg_result)
            if not result.is_empty
            for source in result.sources
        ]
        structured_context = "\n\n".join(
            block
            for block in (wikidata_result.context_block, kg_result.context_block)
            if block
        )
        discovery.sources = source_filter.deduplicate([*discovery.sources, *supplemental_sources])

        log_service.log_event(
            "discovery_complete",
            "Discovery merged",
            name=name,
            total_sources=len(discovery.sources),
            supplemental_sources=len(supplemental_sources),
            wikidata=not wikidata_result.is_empty,
            knowledge_graph=not kg_result.is_empty,
        )
        return DiscoveryOutcome(
            discovery=discovery,
            structured_context=structured_context,
            supplemental_sources=supplemental_sources,
        )


def _absorb(result: Any, provider: str) -> ProviderResult:
    if isinstance(result, ProviderResult):
        return result
    if isinstance(result, BaseException):
        log_service.log_provider_call(provider, "discover", "failed", error=str(result))
    return ProviderResult.empty(provider)


async def _finalize_wikidata(name: str, result: ProviderResult) -> ProviderResult:
    if result.is_empty:
        return result
    try:
        return await wikidata.finalize(name, result)
    except Exception as exc:
        log_service.log_provider_call(wikidata.PROVIDER, "finalize", "failed", error=str(exc))
        return ProviderResult.empty(wikidata.PROVIDER)
