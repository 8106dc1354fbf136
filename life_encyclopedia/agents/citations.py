from __future__ import annotations

from loguru import logger

from life_encyclopedia.config import settings
from life_encyclopedia.models.person import HistoricalEvent
from life_encyclopedia.models.research import PipelineConfig
from life_encyclopedia.models.sources import Source
from life_encyclopedia.services import source_filter
from life_encyclopedia.services.deep_links import prepare_citations
from life_encyclopedia.tools import tavily_search


def with_prepared_sources(event: HistoricalEvent) -> HistoricalEvent:
    return event.model_copy(update={"sources": prepare_citations(list(event.sources))})


def merge_sources(existing: list[Source], additional: list[Source]) -> list[Source]:
    """Append sources whose normalized URL is not already present."""
    merged = list(existing)
    seen = {source_filter.normalize_url(source.url) for source in existing}
    for source in additional:
        key = source_filter.normalize_url(source.url)
        if key not in seen:
            seen.add(key)
            merged.append(source)
    return merged


async def find_authoritative_sources(query: str, limit: int = 10) -> list[Source]:
    results = await tavily_search.search(query, search_depth="advanced", max_results=limit * 2)
    authoritative = source_filter.filter_authoritative(results)
    sources = source_filter.deduplicate(source_filter.results_to_sources(authoritative))
    return source_filter.top_sources(sources, limit)


class CitationEnricher:
    """Tops up under-cited events with targeted searches and prepares every citation."""

    name = "citations"

    def needs_enrichment(self, event: HistoricalEvent, config: PipelineConfig) -> bool:
        if not config.enrich_low_confidence_only:
            return True
        return len(event.sources) < settings.enrichment_min_sources

    async def enrich_event(
        self,
        event: HistoricalEvent,
        name: str,
        config: PipelineConfig,
    ) -> HistoricalEvent:
        remaining = config.max_sources_per_event - len(event.sources)
        additional: list[Source] = []
        if remaining > 0:
            additional = await find_authoritative_sources(
                f"{name} {event.title} {event.date}",
                limit=remaining,
            )

        merged = merge_sources(list(event.sources), additional)
        ranked = source_filter.top_sources(merged, config.max_sources_per_event)
        return event.model_copy(update={"sources": prepare_citations(ranked)})

    async def enrich(
        self,
        events: list[HistoricalEvent],
        name: str,
        config: PipelineConfig,
        *,
        on_progress=None,
    ) -> list[HistoricalEvent]:
        """Return events in input order; a failed search keeps that event's sources."""
        targets = {event.id for event in events if self.needs_enrichment(event, config)}
        total = max(len(targets), 1)
        enriched_count = 0

        enriched: list[HistoricalEvent] = []
        for event in events:
            if event.id not in targets:
                enriched.append(with_prepared_sources(event))
                continue

            try:
                enriched.append(await self.enrich_event(event, name, config))
            except Exception as exc:
                logger.warning(f"Enrichment skipped for {event.title!r}: {exc}")
                enriched.append(with_prepared_sources(event))

            enriched_count += 1
            if on_progress is not None:
                await on_progress(enriched_count, total)

        return enriched
