from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from life_encyclopedia.config import settings
from life_encyclopedia.errors import ProviderError
from life_encyclopedia.models.research import ProviderResult
from life_encyclopedia.models.sources import Source, SourceType
from life_encyclopedia.services import logger as log_service

PROVIDER = "knowledge_graph"
KG_SEARCH_URL = "https://kgsearch.googleapis.com/v1/entities:search"


@dataclass(slots=True)
class KnowledgeGraphEntity:
    name: str
    entity_types: list[str] = field(default_factory=list)
    short_description: str | None = None
    detailed_description: str | None = None
    detailed_description_url: str | None = None
    image_url: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.name


async def search_entities(name: str) -> list[dict[str, Any]]:
    """Query the Knowledge Graph Search API for Person entities."""
    if not settings.google_kg_api_key:
        raise ProviderError(PROVIDER, "GOOGLE_KG_API_KEY is not configured")

    async with httpx.AsyncClient(timeout=settings.knowledge_graph_timeout_seconds) as client:
        response = await client.get(
            KG_SEARCH_URL,
            params={
                "query": name,
                "types": "Person",
                "languages": "en",
                "limit": 3,
                "key": settings.google_kg_api_key,
            },
        )
        response.raise_for_status()
        payload = response.json()

    items = payload.get("itemListElement", []) if isinstance(payload, dict) else []
    return [item for item in items if isinstance(item, dict)]


def _names_match(entity_name: str, query: str) -> bool:
    entity = entity_name.lower()
    wanted = query.strip().lower()
    if not entity:
        return False
    if wanted in entity or entity in wanted:
        return True
    query_parts = wanted.split()
    return bool(query_parts) and query_parts[-1] in entity.split()


def best_person_match(items: list[dict[str, Any]], query: str) -> KnowledgeGraphEntity | None:
    for item in items:
        result = item.get("result")
        if not isinstance(result, dict):
            continue
        entity_name = str(result.get("name", "") or "")
        types = [t for t in result.get("@type", []) or [] if isinstance(t, str)]
        if "Person" not in types or not _names_match(entity_name, query):
            continue

        detailed = result.get("detailedDescription") or {}
        image = result.get("image") or {}
        return KnowledgeGraphEntity(
            name=entity_name,
            entity_types=types,
            short_description=result.get("description"),
            detailed_description=detailed.get("articleBody"),
            detailed_description_url=detailed.get("url"),
            image_url=image.get("contentUrl"),
        )
    return None


def build_context_block(entity: KnowledgeGraphEntity) -> str:
    lines = ["ENTITY DATA (from Google Knowledge Graph):", f"Name: {entity.name}"]
    if entity.entity_types:
        lines.append(f"Types: {', '.join(entity.entity_types)}")
    if entity.short_description:
        lines.append(f"Description: {entity.short_description}")
    if entity.detailed_description:
        lines.append(f"Detailed: {entity.detailed_description}")
    return "\n".join(lines)


def build_sources(entity: KnowledgeGraphEntity) -> list[Source]:
    url = entity.detailed_description_url or (
        f"https://www.google.com/search?kgmid={quote(entity.name)}"
    )
    snippet = "\n\n".join(
        part for part in (entity.short_description, entity.detailed_description) if part
    )
    return [
        Source(
            title=f"{entity.name} - Google Knowledge Graph",
            url=url,
            source_type=SourceType.KNOWLEDGE_GRAPH,
            publisher="Google Knowledge Graph",
            reliability_score=0.88,
            content_snippet=snippet or None,
            relevant_quote=entity.detailed_description,
            deep_link_url=entity.detailed_description_url,
        )
    ]


async def discover(name: str) -> ProviderResult[KnowledgeGraphEntity]:
    """Supplemental discovery. Never raises; any failure is an empty result."""
    if not settings.knowledge_graph_enabled:
        return ProviderResult.empty(PROVIDER)
    try:
        items = await search_entities(name)
    except Exception as exc:
        log_service.log_provider_call(PROVIDER, "search", "failed", error=str(exc), name=name)
        return ProviderResult.empty(PROVIDER)

    entity = best_person_match(items, name)
    if entity is None:
        log_service.log_provider_call(PROVIDER, "search", "empty", name=name)
        return ProviderResult.empty(PROVIDER)

    log_service.log_provider_call(PROVIDER, "search", "success", results=1, entity=entity.name)
    return ProviderResult(
        provider=PROVIDER,
        sources=build_sources(entity),
        context_block=build_context_block(entity),
        structured_facts=entity,
    )
