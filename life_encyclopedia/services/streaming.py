from __future__ import annotations

from typing import Any

from life_encyclopedia.errors import ResearchError
from life_encyclopedia.models.events import EventType, SSEEvent
from life_encyclopedia.models.research import PipelineProgress, PipelineStage, VerifiedPerson


def research_started(name: str, preset: str) -> SSEEvent:
    return SSEEvent(event=EventType.RESEARCH_STARTED, data={"name": name, "preset": preset})


def stage_progress(progress: PipelineProgress) -> SSEEvent:
    return SSEEvent(event=EventType.STAGE_PROGRESS, data=progress.to_dict())


def stage_completed(stage: PipelineStage, **kwargs: Any) -> SSEEvent:
    return SSEEvent(
        event=EventType.STAGE_COMPLETED,
        data={"stage": stage.value, "stage_name": stage.display_name, **kwargs},
    )


def research_complete(result: VerifiedPerson, runtime_ms: int | None = None) -> SSEEvent:
    data: dict[str, Any] = result.to_dict()
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return SSEEvent(event=EventType.RESEARCH_COMPLETE, data=data)


def person_saved(person_id: str, name: str) -> SSEEvent:
    return SSEEvent(event=EventType.PERSON_SAVED, data={"id": person_id, "name": name})


def error(message: str, kind: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if kind:
        data["kind"] = kind
    return SSEEvent(event=EventType.ERROR, data=data)


def research_error(exc: ResearchError) -> SSEEvent:
    return error(exc.message, kind=exc.kind)
