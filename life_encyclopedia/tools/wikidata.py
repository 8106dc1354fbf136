"""Wikidata structured-facts provider.

Lookups return entity ids for linked items (places, awards, employers...).
Those ids are resolved to labels in a separate batched call before any
context block is built, so raw ids never reach the language model.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass, field, fields, replace
from typing import Any

import httpx

from life_encyclopedia.config import settings
from life_encyclopedia.errors import ProviderError
from life_encyclopedia.models.research import ProviderResult
from life_encyclopedia.models.sources import Source, SourceType
from life_encyclopedia.services import logger as log_service

PROVIDER = "wikidata"
ENTITY_URL = "https://www.wikidata.org/wiki/{entity_id}"
HUMAN_ENTITY_IDS = frozenset({"Q5"})


class Property:
    INSTANCE_OF = "P31"
    DATE_OF_BIRTH = "P569"
    DATE_OF_DEATH = "P570"
    PLACE_OF_BIRTH = "P19"
    PLACE_OF_DEATH = "P20"
    OCCUPATION = "P106"
    EDUCATED_AT = "P69"
    AWARD = "P166"
    NOTABLE_WORK = "P800"
    SPOUSE = "P26"
    CHILD = "P40"
    POSITION_HELD = "P39"
    EMPLOYER = "P108"
    POLITICAL_PARTY = "P102"
    NATIONALITY = "P27"
    NOMINATED_FOR = "P1411"


@dataclass(slots=True)
class WikidataFacts:
    entity_id: str
    label: str = ""
    description: str | None = None
    date_of_birth: str | None = None
    date_of_death: str | None = None
    place_of_birth: str | None = None
    place_of_death: str | None = None
    nationalities: list[str] = field(default_factory=list)
    occupations: list[str] = field(default_factory=list)
    educated_at: list[str] = field(default_factory=list)
    employers: list[str] = field(default_factory=list)
    positions_held: list[str] = field(default_factory=list)
    political_party: str | None = None
    awards: list[str] = field(default_factory=list)
    notable_works: list[str] = field(default_factory=list)
    nominated_for: list[str] = field(default_factory=list)
    spouses: list[str] = field(default_factory=list)
    children: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.date_of_birth
            or self.date_of_death
            or self.occupations
            or self.awards
            or self.notable_works
        )

    def unresolved_ids(self) -> list[str]:
        ids: list[str] = []
        for value in self._linked_values():
            if _is_entity_id(value) and value not in ids:
                ids.append(value)
        return ids

    def with_labels(self, labels: dict[str, str]) -> "WikidataFacts":
        """Return a copy with entity ids replaced by labels; unknown ids are kept."""
        updates: dict[str, Any] = {}
        for name in _LINKED_FIELDS:
            value = getattr(self, name)
            if isinstance(value, list):
                updates[name] = [labels.get(item, item) for item in value]
            elif value is not None:
                updates[name] = labels.get(value, value)
        return replace(self, **updates)

    def _linked_values(self) -> list[str]:
        values: list[str] = []
        for name in _LINKED_FIELDS:
            value = getattr(self, name)
            if isinstance(value, list):
                values.extend(value)
            elif value is not None:
                values.append(value)
        return values


_LINKED_FIELDS = tuple(
    f.name
    for f in fields(WikidataFacts)
    if f.name
    not in ("entity_id", "label", "description", "date_of_birth", "date_of_death")
)


def _is_entity_id(value: str) -> bool:
    return len(value) > 1 and value[0] == "Q" and value[1:].isdigit()


# --- HTTP ---


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.wikidata_timeout_seconds,
        headers={"User-Agent": settings.wikidata_user_agent},
    )


async def _get(client: httpx.AsyncClient, params: dict[str, Any]) -> dict[str, Any]:
    response = await client.get(settings.wikidata_api_url, params={**params, "format": "json"})
    response.raise_for_status()
    payload = response.json()
    if not isinstance(payload, dict):
        raise ProviderError(PROVIDER, "unexpected response shape")
    return payload


async def search_entity(client: httpx.AsyncClient, name: str) -> str | None:
    """Return the best matching entity id for `name`, or None."""
    payload = await _get(
        client,
        {
            "action": "wbsearchentities",
            "search": name,
            "language": "en",
            "type": "item",
            "limit": 5,
        },
    )
    hits = [h for h in payload.get("search", []) if isinstance(h, dict) and h.get("id")]
    if not hits:
        return None
    return _best_hit(hits, name)["id"]


def _best_hit(hits: list[dict[str, Any]], name: str) -> dict[str, Any]:
    wanted = name.strip().lower()
    for hit in hits:
        if str(hit.get("label", "")).lower() == wanted:
            return hit
    parts = wanted.split()
    if len(parts) > 1:
        last_name = parts[-1]
        for hit in hits:
            if last_name in str(hit.get("label", "")).lower().split():
                return hit
    return hits[0]


async def fetch_entity(client: httpx.AsyncClient, entity_id: str) -> dict[str, Any] | None:
    payload = await _get(
        client,
        {
            "action": "wbgetentities",
            "ids": entity_id,
            "languages": "en",
            "props": "claims|descriptions|labels",
        },
    )
    entity = payload.get("entities", {}).get(entity_id)
    return entity if isinstance(entity, dict) else None


# --- Claim parsing ---


def _claim_value(claim: dict[str, Any]) -> Any:
    return claim.get("mainsnak", {}).get("datavalue", {}).get("value")


def _claims(entity: dict[str, Any], prop: str) -> list[dict[str, Any]]:
    claims = entity.get("claims", {})
    values = claims.get(prop, []) if isinstance(claims, dict) else []
    return [c for c in values if isinstance(c, dict)]


def is_human(entity: dict[str, Any]) -> bool:
    for claim in _claims(entity, Property.INSTANCE_OF):
        value = _claim_value(claim)
        if isinstance(value, dict) and value.get("id") in HUMAN_ENTITY_IDS:
            return True
    return False


def _entity_ids(entity: dict[str, Any], prop: str) -> list[str]:
    ids: list[str] = []
    for claim in _claims(entity, prop):
        value = _claim_value(claim)
        if isinstance(value, dict) and isinstance(value.get("id"), str):
            ids.append(value["id"])
    return ids


def _first_entity_id(entity: dict[str, Any], prop: str) -> str | None:
    ids = _entity_ids(entity, prop)
    return ids[0] if ids else None


def _time_value(entity: dict[str, Any], prop: str) -> str | None:
    for claim in _claims(entity, prop)[:1]:
        value = _claim_value(claim)
        if isinstance(value, dict) and isinstance(value.get("time"), str):
            return format_time(value["time"], int(value.get("precision", 11)))
    return None


def format_time(time: str, precision: int) -> str:
    """Render a Wikidata timestamp ("+1879-03-14T00:00:00Z") at its precision."""
    cleaned = time[1:] if time.startswith("+") else time
    parts = cleaned.split("T", 1)[0].split("-")
    year_text = parts[0] if parts else cleaned

    try:
        year = int(year_text)
    except ValueError:
        return cleaned[:10]

    if precision == 11 and len(parts) >= 3:
        month, day = int(parts[1]), int(parts[2])
        if 1 <= month <= 12 and day >= 1:
            return f"{calendar.month_name[month]} {day}, {year}"
        return cleaned[:10]
    if precision == 10 and len(parts) >= 2:
        month = int(parts[1])
        if 1 <= month <= 12:
            return f"{calendar.month_name[month]} {year}"
        return cleaned[:7]
    if precision == 9:
        return str(year)
    if precision == 8:
        return f"{year // 10 * 10}s"
    if precision == 7:
        return f"{year // 100 + 1}th century"
    return cleaned[:10]


def extract_facts(entity_id: str, entity: dict[str, Any]) -> WikidataFacts:
    label = entity.get("labels", {}).get("en", {}).get("value", "")
    description = entity.get("descriptions", {}).get("en", {}).get("value")
    return WikidataFacts(
        entity_id=entity_id,
        label=label,
        description=description,
        date_of_birth=_time_value(entity, Property.DATE_OF_BIRTH),
        date_of_death=_time_value(entity, Property.DATE_OF_DEATH),
        place_of_birth=_first_entity_id(entity, Property.PLACE_OF_BIRTH),
        place_of_death=_first_entity_id(entity, Property.PLACE_OF_DEATH),
        nationalities=_entity_ids(entity, Property.NATIONALITY),
        occupations=_entity_ids(entity, Property.OCCUPATION),
        educated_at=_entity_ids(entity, Property.EDUCATED_AT),
        employers=_entity_ids(entity, Property.EMPLOYER),
        positions_held=_entity_ids(entity, Property.POSITION_HELD),
        political_party=_first_entity_id(entity, Property.POLITICAL_PARTY),
        awards=_entity_ids(entity, Property.AWARD),
        notable_works=_entity_ids(entity, Property.NOTABLE_WORK),
        nominated_for=_entity_ids(entity, Property.NOMINATED_FOR),
        spouses=_entity_ids(entity, Property.SPOUSE),
        children=_entity_ids(entity, Property.CHILD),
    )


async def lookup(name: str) -> WikidataFacts | None:
    """Find `name` on Wikidata and return unresolved facts, or None when no human matches."""
    async with _client() as client:
        entity_id = await search_entity(client, name)
        if entity_id is None:
            return None
        entity = await fetch_entity(client, entity_id)
    if entity is None or not is_human(entity):
        return None
    return extract_facts(entity_id, entity)


async def resolve_labels(ids: list[str]) -> dict[str, str]:
    """Resolve entity ids to English labels in bounded batches.

    A failed batch is logged and skipped; its ids stay unresolved.
    """
    labels: dict[str, str] = {}
    if not ids:
        return labels

    batch_size = max(1, min(settings.wikidata_label_batch_size, 50))
    async with _client() as client:
        for start in range(0, len(ids), batch_size):
            batch = ids[start : start + batch_size]
            try:
                payload = await _get(
                    client,
                    {
                        "action": "wbgetentities",
                        "ids": "|".join(batch),
                        "languages": "en",
                        "props": "labels",
                    },
                )
            except (httpx.HTTPError, ValueError, ProviderError) as exc:
                log_service.log_provider_call(
                    PROVIDER, "resolve_labels", "batch_failed", error=str(exc), batch=len(batch)
                )
                continue
            for qid, entity in (payload.get("entities") or {}).items():
                value = (entity or {}).get("labels", {}).get("en", {}).get("value")
                if isinstance(value, str) and value:
                    labels[qid] = value
    log_service.log_provider_call(PROVIDER, "resolve_labels", "success", results=len(labels))
    return labels


# --- Context / sources ---


def build_context_block(name: str, facts: WikidataFacts) -> str:
    lines = ["STRUCTURED BIOGRAPHICAL FACTS (from Wikidata):", f"Subject: {name}"]
    scalar_lines = (
        ("Date of Birth", facts.date_of_birth),
        ("Date of Death", facts.date_of_death),
        ("Place of Birth", facts.place_of_birth),
        ("Place of Death", facts.place_of_death),
    )
    list_lines = (
        ("Nationality", facts.nationalities),
        ("Occupations", facts.occupations),
        ("Education", facts.educated_at),
        ("Employers", facts.employers),
        ("Positions Held", facts.positions_held),
    )
    for label, value in scalar_lines:
        if value:
            lines.append(f"{label}: {value}")
    for label, values in list_lines:
        if values:
            lines.append(f"{label}: {', '.join(values)}")
    if facts.political_party:
        lines.append(f"Political Party: {facts.political_party}")
    for label, values in (
        ("Awards", facts.awards),
        ("Notable Works", facts.notable_works),
        ("Nominated For", facts.nominated_for),
        ("Spouses", facts.spouses),
        ("Children", facts.children),
    ):
        if values:
            lines.append(f"{label}: {', '.join(values)}")
    return "\n".join(lines)


def build_sources(name: str, facts: WikidataFacts, context_block: str) -> list[Source]:
    if facts.is_empty:
        return []
    url = ENTITY_URL.format(entity_id=facts.entity_id)
    return [
        Source(
            title=f"{name} - Wikidata",
            url=url,
            source_type=SourceType.WIKIDATA,
            publisher="Wikidata",
            reliability_score=0.90,
            content_snippet=context_block,
            deep_link_url=url,
        )
    ]


async def discover(name: str) -> ProviderResult[WikidataFacts]:
    """Supplemental discovery. Never raises; any failure is an empty result.

    The returned facts may still hold entity ids; `finalize` resolves them
    and builds the context block and source.
    """
    if not settings.wikidata_enabled:
        return ProviderResult.empty(PROVIDER)
    try:
        facts = await lookup(name)
    except Exception as exc:
        log_service.log_provider_call(PROVIDER, "lookup", "failed", error=str(exc), name=name)
        return ProviderResult.empty(PROVIDER)

    if facts is None or facts.is_empty:
        log_service.log_provider_call(PROVIDER, "lookup", "empty", name=name)
        return ProviderResult.empty(PROVIDER)

    log_service.log_provider_call(PROVIDER, "lookup", "success", results=1, entity_id=facts.entity_id)
    return ProviderResult(provider=PROVIDER, structured_facts=facts)


async def finalize(name: str, result: ProviderResult[WikidataFacts]) -> ProviderResult[WikidataFacts]:
    """Resolve pending entity ids, then build the context block and source."""
    facts = result.structured_facts
    if facts is None or facts.is_empty:
        return ProviderResult.empty(PROVIDER)

    pending = facts.unresolved_ids()
    if pending:
        try:
            labels = await resolve_labels(pending)
        except Exception as exc:
            log_service.log_provider_call(PROVIDER, "resolve_labels", "failed", error=str(exc))
            labels = {}
        facts = facts.with_labels(labels)

    context_block = build_context_block(name, facts)
    return ProviderResult(
        provider=PROVIDER,
        sources=build_sources(name, facts, context_block),
        context_block=context_block,
        structured_facts=facts,
    )
