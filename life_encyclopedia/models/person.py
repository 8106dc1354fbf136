from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum, StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from life_encyclopedia.models.filters import (
    Archetype,
    CulturalRegion,
    Domain,
    Era,
    GeographicReach,
    HistoricalPeriod,
    ImpactLevel,
    InfluenceLongevity,
    InfluenceMode,
    LifeArc,
    MoralValence,
    RecognitionLevel,
)
from life_encyclopedia.models.sources import Source

YEAR_PATTERN = re.compile(r"\b(1[0-9]{3}|20[0-9]{2})\b")


class EventType(StrEnum):
    BIRTH = "birth"
    CHILDHOOD = "childhood"
    EDUCATION = "education"
    CAREER = "career"
    PERSONAL = "personal"
    ACHIEVEMENT = "achievement"
    DEATH = "death"
    HISTORICAL = "historical"


class DatePrecision(StrEnum):
    EXACT = "exact"
    MONTH_YEAR = "monthYear"
    YEAR_ONLY = "yearOnly"
    APPROXIMATE = "approximate"
    DECADE = "decade"
    UNKNOWN = "unknown"


def coerce_enum(enum_type: type[Enum], value: Any, default: Any = None) -> Any:
    """Return the enum member for `value`, or `default` when it is not a member."""
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        return default


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HistoricalEvent(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    date: str
    title: str
    description: str
    citation: str | None = None
    source_url: str | None = Field(default=None, alias="sourceURL")
    event_type: EventType = EventType.HISTORICAL
    date_precision: DatePrecision = DatePrecision.UNKNOWN
    sources: list[Source] = Field(default_factory=list)

    @field_validator("event_type", mode="before")
    @classmethod
    def _lenient_event_type(cls, value: Any) -> EventType:
        return coerce_enum(EventType, value, EventType.HISTORICAL)

    @field_validator("date_precision", mode="before")
    @classmethod
    def _lenient_precision(cls, value: Any) -> DatePrecision:
        return coerce_enum(DatePrecision, value, DatePrecision.UNKNOWN)

    @property
    def year(self) -> int | None:
        match = YEAR_PATTERN.search(self.date)
        return int(match.group(1)) if match else None

    @property
    def has_citation(self) -> bool:
        return bool(self.sources) or bool(self.citation)

    @property
    def has_multiple_sources(self) -> bool:
        return len(self.sources) > 1

    @property
    def primary_source(self) -> Source | None:
        if not self.sources:
            return None
        return max(self.sources, key=lambda s: s.reliability_score)


class Birthplace(_CamelModel):
    city: str | None = None
    country: str | None = None
    continent: str | None = None


_ENUM_FIELDS: dict[str, type[Enum]] = {
    "cultural_region": CulturalRegion,
    "historical_period": HistoricalPeriod,
    "primary_domain": Domain,
    "geographic_reach": GeographicReach,
    "influence_longevity": InfluenceLongevity,
    "recognition_level": RecognitionLevel,
    "archetype": Archetype,
    "moral_valence": MoralValence,
    "life_arc": LifeArc,
}


class FilterMetadata(_CamelModel):
    """Categorical annotations assigned by the classification model."""

    birth_year: int | None = None
    death_year: int | None = None
    birthplace: Birthplace | None = None
    nationality: list[str] = Field(default_factory=list)
    cultural_region: CulturalRegion | None = None
    century: int | None = None
    historical_period: HistoricalPeriod | None = None

    primary_domain: Domain | None = None
    secondary_domains: list[Domain] = Field(default_factory=list)
    sub_role: str | None = None

    influence_modes: dict[str, int] = Field(default_factory=dict)

    geographic_reach: GeographicReach | None = None
    influence_longevity: InfluenceLongevity | None = None
    recognition_level: RecognitionLevel | None = None

    archetype: Archetype | None = None
    moral_valence: MoralValence | None = None
    life_arc: LifeArc | None = None

    @field_validator(*_ENUM_FIELDS, mode="before")
    @classmethod
    def _drop_unknown_values(cls, value: Any, info) -> Any:
        if value is None:
            return None
        return coerce_enum(_ENUM_FIELDS[info.field_name], value)

    @field_validator("secondary_domains", mode="before")
    @classmethod
    def _drop_unknown_domains(cls, value: Any) -> list[Domain]:
        if not isinstance(value, list):
            return []
        domains = [coerce_enum(Domain, item) for item in value]
        return [d for d in domains if d is not None]

    @field_validator("nationality", mode="before")
    @classmethod
    def _nationality_list(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value if item]

    @field_validator("influence_modes", mode="before")
    @classmethod
    def _known_modes(cls, value: Any) -> dict[str, int]:
        if not isinstance(value, dict):
            return {}
        modes: dict[str, int] = {}
        for key, score in value.items():
            if coerce_enum(InfluenceMode, key) is None:
                continue
            try:
                modes[key] = max(0, min(5, int(score)))
            except (TypeError, ValueError):
                continue
        return modes

    @property
    def is_living(self) -> bool:
        return self.death_year is None

    @property
    def all_domains(self) -> list[Domain]:
        domains = [self.primary_domain] if self.primary_domain else []
        return domains + list(self.secondary_domains)

    @property
    def era(self) -> Era | None:
        if self.is_living:
            return Era.LIVING
        if self.birth_year is not None:
            return Era.from_birth_year(self.birth_year)
        if self.historical_period is not None:
            return Era.from_period(self.historical_period)
        return None

    @property
    def impact_level(self) -> ImpactLevel:
        return ImpactLevel.from_values(
            self.geographic_reach, self.recognition_level, self.influence_longevity
        )


class Person(_CamelModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    birth_date: str | None = None
    death_date: str | None = None
    summary: str
    events: list[HistoricalEvent] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    filter_metadata: FilterMetadata = Field(default_factory=FilterMetadata)
    view_count: int = 0
    last_viewed_at: datetime | None = None

    @property
    def life_span(self) -> str | None:
        if not self.birth_date:
            return None
        return f"{self.birth_date} - {self.death_date or 'Present'}"

    @property
    def is_living(self) -> bool:
        return self.death_date is None or self.death_date.lower() == "present"

    def with_filter_metadata(self, metadata: FilterMetadata) -> "Person":
        return self.model_copy(update={"filter_metadata": metadata})

    def trending_score(self, now: datetime | None = None) -> float:
        now = now or _utcnow()
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        days = max(1.0, (now - created).total_seconds() / 86400)
        return self.view_count / days

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    # --- Storage rows use snake_case columns with camelCase JSON payloads ---

    def to_insert_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "birth_date": self.birth_date,
            "death_date": self.death_date,
            "summary": self.summary,
            "events": [e.model_dump(mode="json", by_alias=True) for e in self.events],
            "filter_metadata": self.filter_metadata.model_dump(
                mode="json", by_alias=True, exclude_none=True
            ),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Person":
        payload: dict[str, Any] = {
            "name": row.get("name") or "",
            "birth_date": row.get("birth_date"),
            "death_date": row.get("death_date"),
            "summary": row.get("summary") or "",
            "events": row.get("events") or [],
            "filter_metadata": row.get("filter_metadata") or {},
            "view_count": row.get("view_count") or 0,
            "last_viewed_at": row.get("last_viewed_at"),
        }
        if row.get("id"):
            payload["id"] = str(row["id"])
        if row.get("created_at"):
            payload["created_at"] = row["created_at"]
        return cls.model_validate(payload)


class PersonCandidate(_CamelModel):
    """A possible match shown when a searched name is ambiguous."""

    name: str
    url: str
    years: str | None = None
    summary: str = ""
    description: str | None = None
    relevance_score: float = 0.0

    @property
    def id(self) -> str:
        return f"{self.name}|{self.url}".lower()
