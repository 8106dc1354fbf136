from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from life_encyclopedia.models.research import ProviderResult
from life_encyclopedia.models.sources import SourceType
from life_encyclopedia.tools import knowledge_graph, wikidata


def _claim(value):
    return {"mainsnak": {"datavalue": {"value": value}}}


EINSTEIN = {
    "labels": {"en": {"value": "Albert Einstein"}},
    "descriptions": {"en": {"value": "German-born theoretical physicist"}},
    "claims": {
        "P31": [_claim({"id": "Q5"})],
        "P569": [_claim({"time": "+1879-03-14T00:00:00Z", "precision": 11})],
        "P570": [_claim({"time": "+1955-04-18T00:00:00Z", "precision": 11})],
        "P19": [_claim({"id": "Q3012"})],
        "P106": [_claim({"id": "Q169470"}), _claim({"id": "Q121594"})],
        "P166": [_claim({"id": "Q38104"})],
    },
}


@pytest.mark.parametrize(
    ("precision", "expected"),
    [
        (11, "March 14, 1879"),
        (10, "March 1879"),
        (9, "1879"),
        (8, "1870s"),
        (7, "19th century"),
    ],
)
def test_format_time_respects_precision(precision, expected):
    assert wikidata.format_time("+1879-03-14T00:00:00Z", precision) == expected


def test_extract_facts_reads_claims():
    facts = wikidata.extract_facts("Q937", EINSTEIN)

    assert wikidata.is_human(EINSTEIN)
    assert facts.label == "Albert Einstein"
    assert facts.date_of_birth == "March 14, 1879"
    assert facts.date_of_death == "April 18, 1955"
    assert facts.place_of_birth == "Q3012"
    assert facts.occupations == ["Q169470", "Q121594"]
    assert not facts.is_empty


def test_with_labels_keeps_unknown_ids():
    facts = wikidata.extract_facts("Q937", EINSTEIN)
    assert facts.unresolved_ids() == ["Q3012", "Q169470", "Q121594", "Q38104"]

    labelled = facts.with_labels({"Q3012": "Ulm", "Q169470": "physicist"})

    assert labelled.place_of_birth == "Ulm"
    assert labelled.occupations == ["physicist", "Q121594"]
    assert labelled.unresolved_ids() == ["Q121594", "Q38104"]
    assert facts.place_of_birth == "Q3012"


def test_context_block_and_source():
    facts = wikidata.extract_facts("Q937", EINSTEIN).with_labels({"Q3012": "Ulm", "Q38104": "Nobel Prize in Physics"})
    block = wikidata.build_context_block("Albert Einstein", facts)
    sources = wikidata.build_sources("Albert Einstein", facts, block)

    assert block.startswith("STRUCTURED BIOGRAPHICAL FACTS (from Wikidata):")
    assert "Place of Birth: Ulm" in block
    assert "Awards: Nobel Prize in Physics" in block
    assert len(sources) == 1
    assert sources[0].url == "https://www.wikidata.org/wiki/Q937"
    assert sources[0].source_type is SourceType.WIKIDATA
    assert sources[0].reliability_score == pytest.approx(0.90)


@pytest.mark.asyncio
async def test_search_entity_prefers_exact_label():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["action"] == "wbsearchentities"
        return httpx.Response(
            200,
            json={"search": [{"id": "Q1", "label": "Einstein family"}, {"id": "Q937", "label": "Albert Einstein"}]},
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await wikidata.search_entity(client, "albert einstein") == "Q937"


@pytest.mark.asyncio
async def test_resolve_labels_skips_failed_batches():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["ids"] == "Q1":
            return httpx.Response(500)
        return httpx.Response(200, json={"entities": {"Q2": {"labels": {"en": {"value": "Two"}}}}})

    mock_settings = MagicMock()
    mock_settings.wikidata_label_batch_size = 1
    mock_settings.wikidata_api_url = "https://www.wikidata.org/w/api.php"

    with patch("life_encyclopedia.tools.wikidata.settings", mock_settings), patch(
        "life_encyclopedia.tools.wikidata._client",
        new=lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    ):
        labels = await wikidata.resolve_labels(["Q1", "Q2"])

    assert labels == {"Q2": "Two"}


@pytest.mark.asyncio
async def test_wikidata_discover_never_raises():
    with patch("life_encyclopedia.tools.wikidata.lookup", new=AsyncMock(side_effect=httpx.ConnectError("down"))):
        result = await wikidata.discover("Albert Einstein")

    assert result.is_empty
    assert result.provider == wikidata.PROVIDER


@pytest.mark.asyncio
async def test_wikidata_finalize_resolves_before_building_context():
    facts = wikidata.extract_facts("Q937", EINSTEIN)
    pending = ProviderResult(provider=wikidata.PROVIDER, structured_facts=facts)

    with patch(
        "life_encyclopedia.tools.wikidata.resolve_labels",
        new=AsyncMock(return_value={"Q3012": "Ulm"}),
    ) as mock_resolve:
        result = await wikidata.finalize("Albert Einstein", pending)

    mock_resolve.assert_awaited_once_with(["Q3012", "Q169470", "Q121594", "Q38104"])
    assert "Place of Birth: Ulm" in result.context_block
    assert result.sources[0].content_snippet == result.context_block


def test_knowledge_graph_picks_matching_person():
    items = [
        {"result": {"name": "Einstein (crater)", "@type": ["Place"]}},
        {
            "result": {
                "name": "Albert Einstein",
                "@type": ["Thing", "Person"],
                "description": "Theoretical physicist",
                "detailedDescription": {
                    "articleBody": "Albert Einstein was a German-born theoretical physicist.",
                    "url": "https://en.wikipedia.org/wiki/Albert_Einstein",
                },
            }
        },
    ]

    entity = knowledge_graph.best_person_match(items, "Albert Einstein")

    assert entity.name == "Albert Einstein"
    source = knowledge_graph.build_sources(entity)[0]
    assert source.url == "https://en.wikipedia.org/wiki/Albert_Einstein"
    assert source.source_type is SourceType.KNOWLEDGE_GRAPH
    assert "Types: Thing, Person" in knowledge_graph.build_context_block(entity)


def test_knowledge_graph_source_falls_back_to_search_url():
    entity = knowledge_graph.KnowledgeGraphEntity(name="Ada Lovelace", entity_types=["Person"])
    assert knowledge_graph.build_sources(entity)[0].url == "https://www.google.com/search?kgmid=Ada%20Lovelace"


@pytest.mark.asyncio
async def test_knowledge_graph_discover_without_key_is_empty():
    with patch("life_encyclopedia.tools.knowledge_graph.settings") as mock_settings:
        mock_settings.knowledge_graph_enabled = True
        mock_settings.google_kg_api_key = ""
        result = await knowledge_graph.discover("Ada Lovelace")

    assert result.is_empty
