from __future__ import annotations

from pydantic import BaseModel, Field

from life_encyclopedia.models.filters import (
    CulturalRegion,
    Domain,
    Era,
    ImpactLevel,
    SortDirection,
    SortOption,
)
from life_encyclopedia.models.person import Person, PersonCandidate


# --- Queries ---


class PeopleQuery(BaseModel):
    search_text: str = ""
    eras: list[Era] = Field(default_factory=list)
    domains: list[Domain] = Field(default_factory=list)
    regions: list[CulturalRegion] = Field(default_factory=list)
    impact_levels: list[ImpactLevel] = Field(default_factory=list)
    sort_by: SortOption = SortOption.CREATED_AT
    sort_direction: SortDirection = SortDirection.DESCENDING
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=30, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PeoplePage(BaseModel):
    people: list[Person]
    page: int
    page_size: int
    total_count: int | None = None
    has_more: bool


# --- Requests ---


class ResearchRequest(BaseModel):
    name: str = Field(min_length=1)
    preset: str = "default"
    save: bool = False


# --- Responses ---


class CandidatesResponse(BaseModel):
    query: str
    candidates: list[PersonCandidate]
