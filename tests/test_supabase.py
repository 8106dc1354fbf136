from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from supabase import PostgrestAPIError

from life_encyclopedia.errors import (
    StorageConfigurationError,
    StorageNotConfiguredError,
    StorageRequestError,
)
from life_encyclopedia.models.filters import (
    CulturalRegion,
    Domain,
    Era,
    GeographicReach,
    ImpactLevel,
    RecognitionLevel,
    SortDirection,
    SortOption,
)
from life_encyclopedia.models.person import FilterMetadata, Person
from life_encyclopedia.models.schemas import PeopleQuery
from life_encyclopedia.services import supabase as db


def _row(name: str, **overrides) -> dict:
    row = {
        "id": name.lower().replace(" ", "-"),
        "name": name,
        "birth_date": "1879",
        "death_date": "1955",
        "summary": "Summary.",
        "events": [],
        "filter_metadata": {},
        "view_count": 0,
        "created_at": "2024-01-01T00:00:00+00:00",
    }
    row.update(overrides)
    return row


@pytest.fixture
def table():
    builder = MagicMock()
    # Every chained call returns the same builder so the final query can be inspected.
    for method in ("select", "ilike", "in_", "or_", "is_", "eq", "order", "range", "limit", "insert", "update", "delete"):
        getattr(builder, method).return_value = builder
    with patch("life_encyclopedia.services.supabase._table", return_value=builder):
        yield builder


def _fake_execute(data, count=None):
    return patch(
        "life_encyclopedia.services.supabase.asyncio.to_thread",
        new=AsyncMock(return_value=SimpleNamespace(data=data, count=count)),
    )


# --- Configuration ---


def test_validate_configuration_accepts_https_project():
    assert db.validate_configuration("https://abc.supabase.co/", " key ") == ("https://abc.supabase.co", "key")


@pytest.mark.parametrize(
    ("url", "key"),
    [("", "key"), ("https://abc.supabase.co", ""), ("YOUR_SUPABASE_URL", "key"), ("https://abc.supabase.co", "your-supabase-anon-key")],
)
def test_validate_configuration_rejects_missing_or_placeholder_values(url, key):
    with pytest.raises(StorageNotConfiguredError):
        db.validate_configuration(url, key)


def test_validate_configuration_requires_https():
    with pytest.raises(StorageConfigurationError, match="https://"):
        db.validate_configuration("http://abc.supabase.co", "key")
    with pytest.raises(StorageConfigurationError):
        db.validate_configuration("abc.supabase.co", "key")


def test_status_specific_storage_messages():
    assert "anon key" in str(StorageRequestError.from_status(401, "x"))
    assert "RLS" in str(StorageRequestError.from_status(403, "x"))
    assert StorageRequestError.from_status(500, "boom").status_code == 500
    assert "boom" in str(StorageRequestError.from_status(None, "boom"))


# --- Name matching ---


@pytest.mark.parametrize(
    ("name", "query", "expected"),
    [
        ("Marie Curie", "marie curie", 500),
        ("Marie Curie", "Marie", 450),
        ("Marie Curie", "Mar", 400),
        ("Marie Curie", "marie cu", 350),
        ("Pierre Curie", "cur", 300),
        ("McCurie", "curie", 200),
        ("Ada Lovelace", "curie", 0),
        ("Ada Lovelace", "  ", 0),
    ],
)
def test_suggestion_score(name, query, expected):
    assert db.suggestion_score(name, query) == expected


def test_normalize_person_name_collapses_whitespace():
    assert db.normalize_person_name("  Marie   CURIE ") == "marie curie"


def test_rank_suggestions_breaks_ties_by_views_then_recency():
    older = Person(name="Marie Curie", summary="", view_count=5, created_at=datetime(2020, 1, 1, tzinfo=timezone.utc))
    newer = Person(name="Marie Curie", summary="", view_count=5, created_at=datetime(2023, 1, 1))
    popular = Person(name="Marie Antoinette", summary="", view_count=50)
    exact = Person(name="Marie", summary="")

    ranked = db.rank_suggestions([older, popular, newer, exact], "marie")

    assert ranked == [exact, popular, newer, older]


# --- Query building ---


def test_apply_people_query_builds_filters(table):
    query = PeopleQuery(
        search_text=" curie ",
        regions=[CulturalRegion.EASTERN_EUROPE],
        domains=[Domain.SCIENCE, Domain.ARTS],
        eras=[Era.MODERN],
        sort_by=SortOption.BIRTH_YEAR,
        sort_direction=SortDirection.ASCENDING,
        page=2,
        page_size=10,
    )

    db.apply_people_query(table, query)

    table.ilike.assert_called_once_with("name", "*curie*")
    table.in_.assert_any_call("filter_metadata->>culturalRegion", ["easternEurope"])
    table.or_.assert_called_once_with(
        'filter_metadata->>primaryDomain.in.(arts,science),'
        'filter_metadata->secondaryDomains.cs.["arts"],'
        'filter_metadata->secondaryDomains.cs.["science"]'
    )
    table.in_.assert_any_call("filter_metadata->>historicalPeriod", ["industrial", "modernEra"])
    table.order.assert_called_once_with("filter_metadata->>birthYear", desc=False, nullsfirst=False)
    table.range.assert_called_once_with(10, 19)


def test_apply_people_query_living_era_filters_on_death_date(table):
    db.apply_people_query(table, PeopleQuery(eras=[Era.LIVING]))

    table.is_.assert_called_once_with("death_date", "null")
    table.in_.assert_not_called()
    table.order.assert_called_once_with("created_at", desc=True, nullsfirst=False)
    table.range.assert_called_once_with(0, 29)


# --- Operations ---


@pytest.mark.asyncio
async def test_fetch_people_pages_and_filters_impact(table):
    rows = [
        _row("Marie Curie", filter_metadata={"geographicReach": "global", "recognitionLevel": "canonical"}),
        _row("Local Hero", filter_metadata={"geographicReach": "local", "recognitionLevel": "obscure"}),
    ]
    with _fake_execute(rows, count=5):
        page = await db.fetch_people(PeopleQuery(page_size=2, impact_levels=[ImpactLevel.LEGENDARY]))

    table.select.assert_called_once_with("*", count="exact")
    assert [p.name for p in page.people] == ["Marie Curie"]
    assert page.total_count == 5
    assert page.has_more


@pytest.mark.asyncio
async def test_find_existing_person_matches_normalized_name(table):
    rows = [_row("Marie Curie-Sklodowska"), _row("Marie  Curie")]
    with _fake_execute(rows):
        found = await db.find_existing_person(" marie curie ")

    assert found.name == "Marie  Curie"


@pytest.mark.asyncio
async def test_search_name_suggestions_ranks_results(table):
    rows = [_row("Pierre Curie", view_count=3), _row("Curie Institute"), _row("Eve Curie", view_count=9)]
    with _fake_execute(rows):
        suggestions = await db.search_name_suggestions("curie", limit=50)

    table.limit.assert_called_once_with(db.MAX_SUGGESTIONS)
    assert [p.name for p in suggestions] == ["Curie Institute", "Eve Curie", "Pierre Curie"]


@pytest.mark.asyncio
async def test_save_person_returns_stored_row(table):
    person = Person(name="Marie Curie", summary="Physicist.")
    with _fake_execute([_row("Marie Curie", id="uuid-1")]):
        saved = await db.save_person(person)

    table.insert.assert_called_once_with(person.to_insert_row())
    assert saved.id == "uuid-1"


@pytest.mark.asyncio
async def test_get_person_returns_none_when_missing(table):
    with _fake_execute([]):
        assert await db.get_person("missing") is None


@pytest.mark.asyncio
async def test_increment_view_count_reads_then_writes(table):
    with _fake_execute([{"view_count": 4}]):
        assert await db.increment_view_count("uuid-1") == 5

    payload = table.update.call_args.args[0]
    assert payload["view_count"] == 5
    assert "last_viewed_at" in payload


@pytest.mark.asyncio
async def test_increment_view_count_missing_person(table):
    with _fake_execute([]):
        with pytest.raises(StorageRequestError) as exc_info:
            await db.increment_view_count("missing")
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_postgrest_errors_become_storage_errors(table):
    error = PostgrestAPIError({"message": "permission denied", "code": "403"})
    with patch("life_encyclopedia.services.supabase.asyncio.to_thread", new=AsyncMock(side_effect=error)):
        with pytest.raises(StorageRequestError) as exc_info:
            await db.delete_person("uuid-1")

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_update_filter_metadata_writes_camel_case_payload(table):
    metadata = FilterMetadata(birth_year=1867, primary_domain=Domain.SCIENCE)
    with _fake_execute([]):
        await db.update_filter_metadata("uuid-1", metadata)

    payload = table.update.call_args.args[0]
    assert payload == {"filter_metadata": {"birthYear": 1867, "nationality": [], "primaryDomain": "science", "secondaryDomains": [], "influenceModes": {}}}
    table.eq.assert_called_once_with("id", "uuid-1")
