from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

from supabase import Client, PostgrestAPIError, create_client

from life_encyclopedia.config import settings
from life_encyclopedia.errors import (
    StorageConfigurationError,
    StorageNotConfiguredError,
    StorageRequestError,
)
from life_encyclopedia.models.filters import Era, SortDirection, SortOption
from life_encyclopedia.models.person import FilterMetadata, Person
from life_encyclopedia.models.schemas import PeoplePage, PeopleQuery
from life_encyclopedia.services import logger as log_service

PLACEHOLDER_TOKENS = (
    "YOUR_SUPABASE_URL",
    "YOUR_SUPABASE_ANON_KEY",
    "your_supabase_url_here",
    "your_supabase_anon_key_here",
    "your-supabase-url",
    "your-supabase-anon-key",
)

SORT_COLUMNS = {
    SortOption.NAME: "name",
    SortOption.BIRTH_YEAR: "filter_metadata->>birthYear",
    SortOption.DEATH_YEAR: "filter_metadata->>deathYear",
    SortOption.RECOGNITION_LEVEL: "filter_metadata->>recognitionLevel",
    SortOption.DOMAIN_COUNT: "view_count",
    SortOption.CREATED_AT: "created_at",
}

MAX_SUGGESTIONS = 20
_NON_ALNUM = re.compile(r"[^\w\s]|_")


def _contains_placeholder(value: str) -> bool:
    lowered = value.lower()
    return any(token.lower() in lowered for token in PLACEHOLDER_TOKENS)


def validate_configuration(url: str | None = None, anon_key: str | None = None) -> tuple[str, str]:
    """Return the trimmed (url, key) pair or raise a storage configuration error."""
    url = (settings.supabase_url if url is None else url).strip()
    anon_key = (settings.supabase_anon_key if anon_key is None else anon_key).strip()

    if not url or not anon_key:
        raise StorageNotConfiguredError()
    if _contains_placeholder(url) or _contains_placeholder(anon_key):
        raise StorageNotConfiguredError()

    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise StorageConfigurationError(f"Invalid Supabase URL: {url}")
    if parsed.scheme.lower() != "https":
        raise StorageConfigurationError("Supabase URL must start with https://")
    return url.rstrip("/"), anon_key


def get_client() -> Client:
    url, anon_key = validate_configuration()
    return create_client(url, anon_key)


_client: Client | None = None


def client() -> Client:
    global _client
    if _client is None:
        _client = get_client()
    return _client


def _table():
    return client().table(settings.people_table)


async def _execute(query: Any, operation: str) -> Any:
    """Run blocking Supabase query execution in a worker thread."""
    try:
        result = await asyncio.to_thread(query.execute)
    except PostgrestAPIError as exc:
        status = int(exc.code) if exc.code and str(exc.code).isdigit() else None
        log_service.log_db_operation(operation, settings.people_table, "error", error=str(exc))
        raise StorageRequestError.from_status(status, exc.message or str(exc)) from exc
    log_service.log_db_operation(operation, settings.people_table, "success")
    return result


# --- Name matching ---


def normalize_person_name(name: str) -> str:
    """Trim, collapse whitespace, case-fold."""
    return " ".join(name.split()).lower()


def normalize_search_text(value: str) -> str:
    return " ".join(_NON_ALNUM.sub(" ", value).lower().split())


def suggestion_score(name: str, query: str) -> int:
    normalized_query = normalize_search_text(query)
    if not normalized_query:
        return 0

    normalized_name = normalize_search_text(name)
    name_tokens = normalized_name.split()
    query_tokens = normalized_query.split()

    if normalized_name == normalized_query:
        return 500
    if name_tokens:
        if name_tokens[0] == normalized_query:
            return 450
        if name_tokens[0].startswith(normalized_query):
            return 400
    if normalized_name.startswith(normalized_query):
        return 350
    if any(token.startswith(q) for token in name_tokens for q in query_tokens):
        return 300
    if normalized_query in normalized_name:
        return 200
    return 0


def rank_suggestions(people: list[Person], query: str) -> list[Person]:
    def created(person: Person) -> float:
        value = person.created_at
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()

    return sorted(
        people,
        key=lambda p: (-suggestion_score(p.name, query), -p.view_count, -created(p), p.name.lower()),
    )


# --- Query building ---


def apply_people_query(builder: Any, query: PeopleQuery) -> Any:
    """Apply the filter, sort and pagination parts of `query` to a select builder."""
    if query.search_text.strip():
        builder = builder.ilike("name", f"*{query.search_text.strip()}*")

    if query.regions:
        builder = builder.in_("filter_metadata->>culturalRegion", sorted(r.value for r in query.regions))

    if query.domains:
        values = sorted(d.value for d in query.domains)
        terms = [f"filter_metadata->>primaryDomain.in.({','.join(values)})"]
        terms.extend(f'filter_metadata->secondaryDomains.cs.["{value}"]' for value in values)
        builder = builder.or_(",".join(terms))

    if query.eras:
        periods = sorted(
            {p.value for era in query.eras if era is not Era.LIVING for p in era.historical_periods}
        )
        if set(query.eras) == {Era.LIVING}:
            builder = builder.is_("death_date", "null")
        elif periods:
            builder = builder.in_("filter_metadata->>historicalPeriod", periods)

    builder = builder.order(
        SORT_COLUMNS[query.sort_by],
        desc=query.sort_direction is SortDirection.DESCENDING,
        nullsfirst=False,
    )
    return builder.range(query.offset, query.offset + query.page_size - 1)


def _rows_to_people(rows: list[dict[str, Any]] | None) -> list[Person]:
    return [Person.from_row(row) for row in rows or []]


# --- People ---


async def fetch_people(query: PeopleQuery | None = None) -> PeoplePage:
    query = query or PeopleQuery()
    builder = apply_people_query(_table().select("*", count="exact"), query)
    result = await _execute(builder, "fetch_people")

    people = _rows_to_people(result.data)
    total_count = getattr(result, "count", None)
    if total_count is not None:
        has_more = query.offset + len(people) < total_count
    else:
        has_more = len(people) == query.page_size

    if query.impact_levels:
        wanted = set(query.impact_levels)
        people = [p for p in people if p.filter_metadata.impact_level in wanted]

    return PeoplePage(
        people=people,
        page=query.page,
        page_size=query.page_size,
        total_count=total_count,
        has_more=has_more,
    )


async def search_people(name: str) -> list[Person]:
    trimmed = name.strip()
    if not trimmed:
        return []
    builder = _table().select("*").ilike("name", f"*{trimmed}*").order("created_at", desc=True)
    result = await _execute(builder, "search_people")
    return _rows_to_people(result.data)


async def find_existing_person(name: str) -> Person | None:
    """First stored person whose normalized name equals the normalized query."""
    normalized = normalize_person_name(name)
    if not normalized:
        return None
    for person in await search_people(name):
        if normalize_person_name(person.name) == normalized:
            return person
    return None


async def search_name_suggestions(query: str, limit: int = 12) -> list[Person]:
    trimmed = query.strip()
    if not trimmed:
        return []
    safe_limit = max(1, min(limit, MAX_SUGGESTIONS))
    builder = (
        _table()
        .select("*")
        .ilike("name", f"*{trimmed}*")
        .order("created_at", desc=True)
        .limit(safe_limit)
    )
    result = await _execute(builder, "search_name_suggestions")
    return rank_suggestions(_rows_to_people(result.data), trimmed)[:safe_limit]


async def get_person(person_id: str) -> Person | None:
    result = await _execute(_table().select("*").eq("id", person_id), "get_person")
    people = _rows_to_people(result.data)
    return people[0] if people else None


async def save_person(person: Person) -> Person:
    result = await _execute(_table().insert(person.to_insert_row()), "save_person")
    if not result.data:
        raise StorageRequestError(None, "Supabase returned no row for the inserted person.")
    return Person.from_row(result.data[0])


async def update_filter_metadata(person_id: str, metadata: FilterMetadata) -> None:
    payload = {"filter_metadata": metadata.model_dump(mode="json", by_alias=True, exclude_none=True)}
    await _execute(_table().update(payload).eq("id", person_id), "update_filter_metadata")


async def delete_person(person_id: str) -> None:
    await _execute(_table().delete().eq("id", person_id), "delete_person")


async def increment_view_count(person_id: str) -> int:
    """Read-then-write increment; returns the new count."""
    result = await _execute(_table().select("view_count").eq("id", person_id), "get_view_count")
    if not result.data:
        raise StorageRequestError(404, f"Person {person_id} not found.")

    new_count = int(result.data[0].get("view_count") or 0) + 1
    payload = {
        "view_count": new_count,
        "last_viewed_at": datetime.now(timezone.utc).isoformat(),
    }
    await _execute(_table().update(payload).eq("id", person_id), "increment_view_count")
    return new_count
