from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SourceType(StrEnum):
    ENCYCLOPEDIA = "encyclopedia"
    NEWS = "news"
    ACADEMIC = "academic"
    BIOGRAPHY = "biography"
    OFFICIAL = "official"
    ARCHIVE = "archive"
    WIKIDATA = "wikidata"
    KNOWLEDGE_GRAPH = "knowledgeGraph"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def base_reliability(self) -> float:
        return _BASE_RELIABILITY[self]

    @classmethod
    def parse(cls, value: Any) -> "SourceType":
        """Lenient lookup used for model output and legacy rows."""
        if isinstance(value, SourceType):
            return value
        raw = str(value or "").strip()
        if raw.lower() == "wikipedia":
            return cls.ENCYCLOPEDIA
        for member in cls:
            if member.value.lower() == raw.lower():
                return member
        return cls.UNKNOWN


_DISPLAY_NAMES = {
    SourceType.ENCYCLOPEDIA: "Encyclopedia",
    SourceType.NEWS: "News",
    SourceType.ACADEMIC: "Academic",
    SourceType.BIOGRAPHY: "Biography",
    SourceType.OFFICIAL: "Official",
    SourceType.ARCHIVE: "Archive",
    SourceType.WIKIDATA: "Wikidata",
    SourceType.KNOWLEDGE_GRAPH: "Knowledge Graph",
    SourceType.UNKNOWN: "Other",
}

_BASE_RELIABILITY = {
    SourceType.OFFICIAL: 0.95,
    SourceType.WIKIDATA: 0.90,
    SourceType.ACADEMIC: 0.90,
    SourceType.KNOWLEDGE_GRAPH: 0.88,
    SourceType.ENCYCLOPEDIA: 0.85,
    SourceType.BIOGRAPHY: 0.75,
    SourceType.ARCHIVE: 0.75,
    SourceType.NEWS: 0.70,
    SourceType.UNKNOWN: 0.50,
}


class ReliabilityTier(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Source(BaseModel):
    """A citation backing one or more timeline events.

    Sources are immutable. Resolving a quote or deep link yields a new
    instance via `with_citation`.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    url: str
    source_type: SourceType = SourceType.UNKNOWN
    publisher: str | None = None
    author: str | None = None
    publish_date: datetime | None = None
    access_date: datetime = Field(default_factory=_utcnow)
    reliability_score: float = 0.5
    content_snippet: str | None = None
    relevant_quote: str | None = None
    deep_link_url: str | None = Field(default=None, alias="deepLinkURL")

    @field_validator("source_type", mode="before")
    @classmethod
    def _lenient_type(cls, value: Any) -> SourceType:
        return SourceType.parse(value)

    @field_validator("reliability_score")
    @classmethod
    def _clamp_score(cls, value: float) -> float:
        return max(0.0, min(1.0, float(value)))

    @property
    def reliability_tier(self) -> ReliabilityTier:
        if self.reliability_score >= 0.85:
            return ReliabilityTier.HIGH
        if self.reliability_score >= 0.65:
            return ReliabilityTier.MEDIUM
        return ReliabilityTier.LOW

    def with_citation(self, quote: str | None, deep_link_url: str | None) -> "Source":
        return self.model_copy(update={"relevant_quote": quote, "deep_link_url": deep_link_url})

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
