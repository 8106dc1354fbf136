from __future__ import annotations

import json
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from life_encyclopedia import llm_client
from life_encyclopedia.config import settings
from life_encyclopedia.errors import FictionalSubjectError, GenerationFailedError
from life_encyclopedia.models.person import HistoricalEvent, Person
from life_encyclopedia.models.sources import Source, SourceType
from life_encyclopedia.services import deep_links, source_filter
from life_encyclopedia.services.json_repair import parse_json_object
from life_encyclopedia.services.prompt_store import render_prompt

CONTEXT_SOURCE_LIMIT = 10


# Lenient decode targets: everything except the essentials is optional.


class _GeneratedSource(BaseModel):
    title: str | None = None
    url: str | None = None
    type: str | None = None
    relevantQuote: str | None = None
    deepLinkHint: str | None = None


class _GeneratedEvent(BaseModel):
    date: str
    title: str
    description: str = ""
    eventType: str | None = None
    datePrecision: str | None = None
    citation: str | None = None
    sourceURL: str | None = None
    sources: list[_GeneratedSource] | None = None


class _GeneratedPerson(BaseModel):
    isFictional: bool | None = None
    name: str | None = None
    birthDate: str | None = None
    deathDate: str | None = None
    summary: str | None = None
    events: list[_GeneratedEvent] | None = None


def build_context_document(structured_context: str, sources: list[Source]) -> str:
    """Structured facts first, then the ranked source list, then their snippets."""
    top = sources[:CONTEXT_SOURCE_LIMIT]
    source_lines = "\n".join(
        f"- {s.title} [{s.source_type.display_name}] ({s.url})" for s in top
    )
    snippets = "\n\n---\n\n".join(s.content_snippet for s in top if s.content_snippet)

    sections = []
    if structured_context:
        sections.append(structured_context)
    sections.append(f"AVAILABLE AUTHORITATIVE SOURCES:\n{source_lines}")
    sections.append(f"SOURCE CONTENT:\n{snippets}")
    return "\n\n".join(sections)


class EventSynthesizer:
    """Turns a context document into a candidate timeline via the language model."""

    name = "synthesizer"

    def __init__(self, model: str | None = None):
        self.model = model

    async def synthesize(
        self,
        name: str,
        context_document: str,
        source_pool: list[Source] | None = None,
    ) -> Person:
        try:
            text = await llm_client.generate(
                render_prompt("synthesizer.system_prompt", name=name),
                render_prompt("synthesizer.user_prompt", name=name, context=context_document),
                max_tokens=settings.synthesis_max_tokens,
                temperature=settings.synthesis_temperature,
                caller=self.name,
                model=self.model,
            )
        except Exception as exc:
            raise GenerationFailedError(f"Event generation failed: {exc}") from exc

        return self.parse_response(text, name, source_pool)

    def parse_response(
        self,
        text: str,
        name: str,
        source_pool: list[Source] | None = None,
    ) -> Person:
        try:
            payload = parse_json_object(text)
        except json.JSONDecodeError as exc:
            logger.warning(f"Unparseable generation output for {name}: {text[:300]!r}")
            raise GenerationFailedError("The model response could not be parsed as JSON.") from exc

        if payload.get("isFictional") is True:
            raise FictionalSubjectError(name)

        try:
            generated = _GeneratedPerson.model_validate(payload)
        except ValidationError as exc:
            raise GenerationFailedError(f"The model response did not match the schema: {exc}") from exc

        if not generated.name or not generated.summary or generated.events is None:
            raise GenerationFailedError("The model response is missing name, summary or events.")

        pool = _pool_index(source_pool)
        events = [_to_event(event, pool) for event in generated.events]
        return Person(
            name=generated.name,
            birth_date=generated.birthDate,
            death_date=generated.deathDate,
            summary=generated.summary,
            events=events,
        )


def _pool_index(source_pool: list[Source] | None) -> dict[str, Source] | None:
    if source_pool is None:
        return None
    return {source_filter.normalize_url(s.url): s for s in source_pool}


def _to_event(event: _GeneratedEvent, pool: dict[str, Source] | None) -> HistoricalEvent:
    sources: list[Source] = []
    for cited in event.sources or []:
        if not cited.url:
            continue
        pooled = pool.get(source_filter.normalize_url(cited.url)) if pool is not None else None
        if pool is not None and pooled is None:
            logger.debug(f"Dropping cited URL outside the source pool: {cited.url}")
            continue
        source_type = SourceType.parse(cited.type)
        sources.append(
            Source(
                title=cited.title or cited.url,
                url=cited.url,
                source_type=source_type,
                reliability_score=source_type.base_reliability,
                relevant_quote=cited.relevantQuote,
                content_snippet=pooled.content_snippet if pooled else None,
                deep_link_url=cited.deepLinkHint,
            )
        )

    payload: dict[str, Any] = {
        "date": event.date,
        "title": event.title,
        "description": event.description,
        "citation": event.citation,
        "source_url": event.sourceURL,
        "event_type": event.eventType,
        "date_precision": event.datePrecision,
        "sources": deep_links.prepare_citations(sources),
    }
    return HistoricalEvent.model_validate(payload)
