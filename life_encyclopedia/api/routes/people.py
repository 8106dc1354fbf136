from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from loguru import logger

from life_encyclopedia.agents.classifier import FilterClassifier
from life_encyclopedia.api.deps import storage_http_error
from life_encyclopedia.errors import StorageError
from life_encyclopedia.models.filters import (
    CulturalRegion,
    Domain,
    Era,
    ImpactLevel,
    SortDirection,
    SortOption,
)
from life_encyclopedia.models.person import FilterMetadata, Person
from life_encyclopedia.models.schemas import PeoplePage, PeopleQuery
from life_encyclopedia.services import supabase as db

router = APIRouter(prefix="/api/people", tags=["people"])


@router.get("", response_model=PeoplePage)
async def list_people(
    search_text: str = "",
    eras: list[Era] = Query(default=[]),
    domains: list[Domain] = Query(default=[]),
    regions: list[CulturalRegion] = Query(default=[]),
    impact_levels: list[ImpactLevel] = Query(default=[]),
    sort_by: SortOption = SortOption.CREATED_AT,
    sort_direction: SortDirection = SortDirection.DESCENDING,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=30, ge=1, le=100),
):
    query = PeopleQuery(
        search_text=search_text,
        eras=eras,
        domains=domains,
        regions=regions,
        impact_levels=impact_levels,
        sort_by=sort_by,
        sort_direction=sort_direction,
        page=page,
        page_size=page_size,
    )
    try:
        return await db.fetch_people(query)
    except StorageError as exc:
        raise storage_http_error(exc) from exc


@router.get("/suggestions", response_model=list[Person])
async def name_suggestions(q: str = Query(min_length=1), limit: int = Query(default=12, ge=1, le=20)):
    try:
        return await db.search_name_suggestions(q, limit)
    except StorageError as exc:
        raise storage_http_error(exc) from exc


@router.get("/{person_id}", response_model=Person)
async def get_person(person_id: str):
    try:
        person = await db.get_person(person_id)
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    if person is None:
        raise HTTPException(status_code=404, detail=f"Person {person_id} not found.")
    return person


@router.post("/{person_id}/view")
async def record_view(person_id: str):
    try:
        view_count = await db.increment_view_count(person_id)
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return {"id": person_id, "view_count": view_count}


@router.delete("/{person_id}")
async def delete_person(person_id: str):
    try:
        await db.delete_person(person_id)
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return {"status": "deleted", "id": person_id}


@router.post("/{person_id}/classify", response_model=FilterMetadata)
async def classify_person(person_id: str):
    """Re-run filter classification for a stored person and persist the result."""
    try:
        person = await db.get_person(person_id)
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    if person is None:
        raise HTTPException(status_code=404, detail=f"Person {person_id} not found.")

    try:
        metadata = await FilterClassifier().classify(person)
    except Exception as exc:
        logger.warning(f"Filter classification failed for {person.name!r}: {exc}")
        raise HTTPException(status_code=502, detail="Filter classification failed.") from exc

    try:
        await db.update_filter_metadata(person_id, metadata)
    except StorageError as exc:
        raise storage_http_error(exc) from exc
    return metadata
