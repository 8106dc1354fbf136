from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from life_encyclopedia.agents.citations import (
    CitationEnricher,
    find_authoritative_sources,
    merge_sources,
)
from life_encyclopedia.models.person import HistoricalEvent
from life_encyclopedia.models.research import PipelineConfig
from life_encyclopedia.models.sources import Source
from life_encyclopedia.tools.tavily_search import SearchResult


def _source(url: str, score: float = 0.8, snippet: str | None = "A quotable biographical snippet.") -> Source:
    return Source(title=url, url=url, reliability_score=score, content_snippet=snippet)


def _event(title: str, sources: list[Source]) -> HistoricalEvent:
    return HistoricalEvent(date="1905", title=title, description="", sources=sources)


def test_merge_sources_dedupes_by_url():
    a, b = _source("https://a.org/x"), _source("https://b.org/x")
    merged = merge_sources([a], [_source("https://a.org/x", 0.1), b])
    assert merged == [a, b]


def test_merge_sources_treats_normalized_urls_as_equal():
    existing = _source("https://en.wikipedia.org/wiki/Ada")
    merged = merge_sources(
        [existing],
        [_source("https://en.wikipedia.org/wiki/Ada/"), _source("http://www.en.wikipedia.org/wiki/Ada?x=1")],
    )
    assert merged == [existing]


def test_needs_enrichment_respects_config():
    enricher = CitationEnricher()
    covered = _event("Covered", [_source("https://a.org"), _source("https://b.org")])
    thin = _event("Thin", [_source("https://a.org")])

    assert enricher.needs_enrichment(thin, PipelineConfig.default())
    assert not enricher.needs_enrichment(covered, PipelineConfig.default())
    assert enricher.needs_enrichment(covered, PipelineConfig.thorough())


@pytest.mark.asyncio
async def test_find_authoritative_sources_filters_and_ranks():
    results = [
        SearchResult(title="Fan", url="https://fans.example.com/x", content="born", score=0.9),
        SearchResult(title="Brit", url="https://www.britannica.com/x", content="born", score=0.5),
        SearchResult(title="Wiki", url="https://en.wikipedia.org/wiki/X", content="born", score=0.5),
        SearchResult(title="Wiki again", url="https://en.wikipedia.org/wiki/X/", content="born", score=0.5),
    ]
    with patch(
        "life_encyclopedia.agents.citations.tavily_search.search",
        new=AsyncMock(return_value=results),
    ) as mock_search:
        sources = await find_authoritative_sources("Einstein relativity 1905", limit=3)

    assert mock_search.await_args.kwargs["max_results"] == 6
    assert [s.title for s in sources] == ["Brit", "Wiki"]


@pytest.mark.asyncio
async def test_enrich_event_merges_ranks_and_prepares():
    event = _event("Annus mirabilis", [_source("https://a.org/x", 0.6)])
    found = [_source("https://b.org/x", 0.9), _source("https://a.org/x", 0.2)]
    config = PipelineConfig(max_sources_per_event=2)

    with patch(
        "life_encyclopedia.agents.citations.find_authoritative_sources",
        new=AsyncMock(return_value=found),
    ) as mock_find:
        enriched = await CitationEnricher().enrich_event(event, "Albert Einstein", config)

    mock_find.assert_awaited_once_with("Albert Einstein Annus mirabilis 1905", limit=1)
    assert [s.url for s in enriched.sources] == ["https://b.org/x", "https://a.org/x"]
    assert all(s.deep_link_url for s in enriched.sources)
    assert enriched.id == event.id


@pytest.mark.asyncio
async def test_enrich_event_skips_search_when_full():
    event = _event("Full", [_source("https://a.org/x"), _source("https://b.org/x")])
    with patch(
        "life_encyclopedia.agents.citations.find_authoritative_sources", new=AsyncMock()
    ) as mock_find:
        enriched = await CitationEnricher().enrich_event(event, "X", PipelineConfig(max_sources_per_event=2))

    mock_find.assert_not_awaited()
    assert len(enriched.sources) == 2


@pytest.mark.asyncio
async def test_enrich_keeps_order_and_survives_failed_searches():
    thin_ok = _event("First", [])
    covered = _event("Second", [_source("https://a.org/x"), _source("https://b.org/x")])
    thin_failing = _event("Third", [_source("https://c.org/x")])

    async def fake_find(query, limit=10):
        if "Third" in query:
            raise RuntimeError("search failed")
        return [_source("https://d.org/x")]

    progress = []

    async def on_progress(done, total):
        progress.append((done, total))

    with patch(
        "life_encyclopedia.agents.citations.find_authoritative_sources",
        new=AsyncMock(side_effect=fake_find),
    ):
        events = await CitationEnricher().enrich(
            [thin_ok, covered, thin_failing],
            "Someone",
            PipelineConfig.default(),
            on_progress=on_progress,
        )

    assert [e.title for e in events] == ["First", "Second", "Third"]
    assert [s.url for s in events[0].sources] == ["https://d.org/x"]
    assert [s.url for s in events[2].sources] == ["https://c.org/x"]
    assert all(s.relevant_quote for e in events for s in e.sources)
    assert progress == [(1, 2), (2, 2)]


@pytest.mark.asyncio
async def test_enrich_event_does_not_cite_the_same_page_twice():
    event = _event("Born", [_source("https://en.wikipedia.org/wiki/Ada", 0.85)])
    found = [_source("https://en.wikipedia.org/wiki/Ada/", 0.9)]

    with patch(
        "life_encyclopedia.agents.citations.find_authoritative_sources",
        new=AsyncMock(return_value=found),
    ):
        enriched = await CitationEnricher().enrich_event(event, "Ada Lovelace", PipelineConfig(max_sources_per_event=3))

    assert [s.url for s in enriched.sources] == ["https://en.wikipedia.org/wiki/Ada"]
