from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

from life_encyclopedia.models.person import DatePrecision, EventType, Person
from life_encyclopedia.models.sources import Source

T = TypeVar("T")


class DiscoveryStatus(StrEnum):
    VERIFIED = "verified"
    FICTIONAL = "fictional"
    NOT_FOUND = "not_found"


@dataclass(slots=True)
class PersonDiscovery:
    name: str
    status: DiscoveryStatus
    summary: str = ""
    sources: list[Source] = field(default_factory=list)
    raw_results: list[Any] = field(default_factory=list)

    @property
    def is_verified(self) -> bool:
        return self.status is DiscoveryStatus.VERIFIED

    @property
    def is_fictional(self) -> bool:
        return self.status is DiscoveryStatus.FICTIONAL


@dataclass(slots=True)
class ProviderResult(Generic[T]):
    """Uniform result of a discovery provider. `empty()` stands in for any failure."""

    provider: str
    sources: list[Source] = field(default_factory=list)
    context_block: str = ""
    structured_facts: T | None = None

    @property
    def is_empty(self) -> bool:
        if self.structured_facts is not None:
            facts_empty = getattr(self.structured_facts, "is_empty", False)
            return bool(facts_empty) and not self.sources
        return not self.sources and not self.context_block

    @classmethod
    def empty(cls, provider: str) -> "ProviderResult[T]":
        return cls(provider=provider)


@dataclass(slots=True)
class DiscoveryOutcome:
    """Merged output of the discovery fan-out, threaded into later stages."""

    discovery: PersonDiscovery
    structured_context: str = ""
    supplemental_sources: list[Source] = field(default_factory=list)


@dataclass(slots=True)
class EventVerification:
    event: str
    date: str
    is_verified: bool
    confidence: float
    matching_sources: list[Source] = field(default_factory=list)
    date_precision: DatePrecision = DatePrecision.UNKNOWN
    discrepancies: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ResearchSummary:
    total_events: int
    events_with_sources: int
    total_sources: int
    authoritative_sources: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total_events": self.total_events,
            "events_with_sources": self.events_with_sources,
            "total_sources": self.total_sources,
            "authoritative_sources": self.authoritative_sources,
        }


@dataclass(slots=True)
class VerifiedPerson:
    person: Person
    all_sources: list[Source]
    research_summary: ResearchSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "person": self.person.to_json(),
            "all_sources": [s.to_json() for s in self.all_sources],
            "research_summary": self.research_summary.to_dict(),
        }


class PipelineStage(StrEnum):
    DISCOVERY = "discovery"
    SOURCE_COLLECTION = "source_collection"
    EVENT_GENERATION = "event_generation"
    FACT_VERIFICATION = "fact_verification"
    ENRICHMENT = "enrichment"

    @property
    def index(self) -> int:
        return list(PipelineStage).index(self)

    @property
    def display_name(self) -> str:
        return _STAGE_NAMES[self]

    @property
    def description(self) -> str:
        return _STAGE_DESCRIPTIONS[self]


_STAGE_NAMES = {
    PipelineStage.DISCOVERY: "Discovery",
    PipelineStage.SOURCE_COLLECTION: "Source Collection",
    PipelineStage.EVENT_GENERATION: "Event Generation",
    PipelineStage.FACT_VERIFICATION: "Fact Verification",
    PipelineStage.ENRICHMENT: "Enrichment",
}

_STAGE_DESCRIPTIONS = {
    PipelineStage.DISCOVERY: "Searching for biographical information...",
    PipelineStage.SOURCE_COLLECTION: "Gathering authoritative sources...",
    PipelineStage.EVENT_GENERATION: "Creating timeline events...",
    PipelineStage.FACT_VERIFICATION: "Cross-referencing facts...",
    PipelineStage.ENRICHMENT: "Adding citations and details...",
}


@dataclass(slots=True)
class PipelineProgress:
    stage: PipelineStage
    stage_progress: float
    message: str
    sources_collected: int = 0
    events_generated: int = 0
    events_verified: int = 0

    @property
    def overall_progress(self) -> float:
        total = len(PipelineStage)
        return (self.stage.index + max(0.0, min(1.0, self.stage_progress))) / total

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "stage_name": self.stage.display_name,
            "stage_progress": round(self.stage_progress, 4),
            "overall_progress": round(self.overall_progress, 4),
            "message": self.message,
            "sources_collected": self.sources_collected,
            "events_generated": self.events_generated,
            "events_verified": self.events_verified,
        }


@dataclass(slots=True, frozen=True)
class PipelineConfig:
    max_sources_per_event: int = 5
    min_confidence_threshold: float = 0.5
    verify_all_events: bool = True
    enrich_low_confidence_only: bool = True

    @classmethod
    def default(cls) -> "PipelineConfig":
        return cls()

    @classmethod
    def thorough(cls) -> "PipelineConfig":
        return cls(
            max_sources_per_event=8,
            min_confidence_threshold=0.7,
            verify_all_events=True,
            enrich_low_confidence_only=False,
        )

    @classmethod
    def quick(cls) -> "PipelineConfig":
        return cls(
            max_sources_per_event=3,
            min_confidence_threshold=0.3,
            verify_all_events=False,
            enrich_low_confidence_only=True,
        )

    @classmethod
    def preset(cls, name: str) -> "PipelineConfig":
        presets = {"default": cls.default, "thorough": cls.thorough, "quick": cls.quick}
        if name not in presets:
            raise ValueError(f"Unknown pipeline preset: {name}")
        return presets[name]()


MAJOR_EVENT_TYPES = frozenset(
    {EventType.BIRTH, EventType.DEATH, EventType.ACHIEVEMENT, EventType.CAREER}
)
