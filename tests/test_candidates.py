from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from life_encyclopedia.agents import candidates
from life_encyclopedia.models.person import PersonCandidate
from life_encyclopedia.tools.tavily_search import SearchResult


def _wiki(title: str, content: str, score: float = 0.5, url: str | None = None) -> SearchResult:
    slug = title.split(" - ")[0].replace(" ", "_")
    return SearchResult(title=title, url=url or f"https://en.wikipedia.org/wiki/{slug}", content=content, score=score)


RESULTS = [
    _wiki("Ada Lovelace - Wikipedia", "Ada Lovelace (1815 – 1852) was an English mathematician and writer.", 0.9),
    _wiki("Ada Lovelace (film) - Wikipedia", "Ada Lovelace (film) is a 2020 film.", 0.8),
    SearchResult(title="Ada Lovelace fan site", url="https://example.com/ada", content="Lovelace was born in 1815.", score=0.9),
    _wiki("Lovelace, Virginia - Wikipedia", "Lovelace is a town in Virginia.", 0.7),
    _wiki("Linda Lovelace - Wikipedia", "Linda Lovelace (1949 – 2002) was an American actress.", 0.5),
    _wiki(
        "Ada Lovelace - Wikipedia",
        "Lovelace was born in 1815.",
        0.3,
        url="https://en.m.wikipedia.org/wiki/Ada_Lovelace",
    ),
]


def test_candidate_name_splits_title():
    assert candidates.candidate_name("Ada Lovelace - Wikipedia") == "Ada Lovelace"
    assert candidates.candidate_name("Grace Hopper | Britannica") == "Grace Hopper"
    assert candidates.candidate_name('"Al" - Wikipedia') is None


def test_is_likely_person_name_rejects_lists_and_fiction():
    assert candidates.is_likely_person_name("Ada Lovelace")
    assert not candidates.is_likely_person_name("List of mathematicians")
    assert not candidates.is_likely_person_name("Batman (comics)")


def test_is_likely_person_result():
    assert candidates.is_likely_person_result("ada lovelace was an english mathematician")
    assert not candidates.is_likely_person_result("lovelace is a town in virginia")
    assert not candidates.is_likely_person_result("an unrelated page")


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ("Leonardo (1452 – 1519) was a polymath.", "1452 – 1519"),
        ("An actor (1980 – present).", "1980 – present"),
        ("She was born 1815 in London and died 1852.", "1815 – 1852"),
        ("A singer (born 1990) from Ohio.", "b. 1990"),
        ("Alexander the Great (356 BC – 323 BC) was a king.", "356 BC – 323 BC"),
        ("No dates at all.", None),
    ],
)
def test_extract_lifespan(content, expected):
    assert candidates.extract_lifespan(content) == expected


def test_extract_description_prefers_descriptive_sentence():
    content = "Ada Lovelace.\nAda Lovelace was an English mathematician. She worked on the Analytical Engine."
    assert candidates.extract_description(content, "Ada Lovelace") == "Ada Lovelace was an English mathematician."


def test_extract_description_falls_back_to_clipped_text():
    content = "x" * 300
    assert candidates.extract_description(content, "Ada Lovelace") == "x" * 220 + "..."


def test_relevance_score_rewards_name_matches():
    assert candidates.relevance_score("Ada Lovelace", "ada lovelace", 0.5) == pytest.approx(4.4)
    assert candidates.relevance_score("Ada Lovelace", "lovelace", 0.5) == pytest.approx(1.2)


def test_deduplicate_by_name_prefers_dates_on_ties():
    plain = PersonCandidate(name="Ada Lovelace", url="https://a", relevance_score=1.0)
    dated = PersonCandidate(name="ada  lovelace", url="https://b", years="1815 – 1852", relevance_score=1.0)

    assert candidates.deduplicate_by_name([plain, dated]) == [dated]


def test_build_candidates_filters_and_ranks():
    built = candidates.build_candidates(RESULTS, "Lovelace")

    assert [c.name for c in built] == ["Ada Lovelace", "Linda Lovelace"]
    assert built[0].url == "https://en.wikipedia.org/wiki/Ada_Lovelace"
    assert built[0].years == "1815 – 1852"
    assert built[0].relevance_score == pytest.approx(1.6)


@pytest.mark.asyncio
async def test_search_people_candidates_queries_wikipedia():
    with patch(
        "life_encyclopedia.agents.candidates.tavily_search.search",
        new=AsyncMock(return_value=RESULTS),
    ) as mock_search:
        found = await candidates.search_people_candidates("  Lovelace ", limit=1)

    mock_search.assert_awaited_once_with(
        "Lovelace person biography",
        search_depth="basic",
        max_results=2,
        include_domains=candidates.WIKIPEDIA_DOMAINS,
    )
    assert [c.name for c in found] == ["Ada Lovelace"]


@pytest.mark.asyncio
async def test_search_people_candidates_ignores_blank_queries():
    with patch("life_encyclopedia.agents.candidates.tavily_search.search", new=AsyncMock()) as mock_search:
        assert await candidates.search_people_candidates("   ") == []
    mock_search.assert_not_awaited()


@pytest.mark.asyncio
async def test_search_with_descriptions_merges_model_output():
    text = '{"descriptions": [{"name": "Ada Lovelace", "description": "English mathematician and writer."}]}'
    with patch(
        "life_encyclopedia.agents.candidates.tavily_search.search",
        new=AsyncMock(return_value=RESULTS),
    ), patch("life_encyclopedia.agents.candidates.llm_client.generate", new=AsyncMock(return_value=text)):
        found = await candidates.search_with_descriptions("Lovelace")

    assert found[0].description == "English mathematician and writer."
    assert found[1].description is None


@pytest.mark.asyncio
async def test_generate_descriptions_degrades_to_empty():
    candidate = PersonCandidate(name="Ada Lovelace", url="https://en.wikipedia.org/wiki/Ada_Lovelace")
    with patch(
        "life_encyclopedia.agents.candidates.llm_client.generate",
        new=AsyncMock(side_effect=RuntimeError("model offline")),
    ):
        assert await candidates.generate_descriptions([candidate]) == {}
