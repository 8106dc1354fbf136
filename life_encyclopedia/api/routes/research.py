from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sse_starlette.sse import EventSourceResponse

from life_encyclopedia.agents import candidates as candidate_search
from life_encyclopedia.agents.pipeline import CancellationToken, ResearchPipeline
from life_encyclopedia.api.deps import get_pipeline
from life_encyclopedia.errors import RateLimitExceededError, StorageError
from life_encyclopedia.models.events import EventType
from life_encyclopedia.models.person import Person
from life_encyclopedia.models.research import PipelineConfig
from life_encyclopedia.models.schemas import CandidatesResponse, ResearchRequest
from life_encyclopedia.services import logger as log_service
from life_encyclopedia.services import streaming
from life_encyclopedia.services import supabase as db

router = APIRouter(prefix="/api/research", tags=["research"])


@router.post("")
async def research(request: ResearchRequest, pipeline: ResearchPipeline = Depends(get_pipeline)):
    """Run the research pipeline and stream its progress as SSE."""
    try:
        config = PipelineConfig.preset(request.preset)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    name = request.name.strip()
    token = CancellationToken()

    async def event_generator():
        log_service.log_event(
            event_type="research_started",
            message="Research started",
            name=name,
            preset=request.preset,
        )
        try:
            async for event in pipeline.stream(name, config, token, preset=request.preset):
                yield event.to_sse()

                if event.event is not EventType.RESEARCH_COMPLETE or not request.save:
                    continue
                try:
                    saved = await db.save_person(Person.model_validate(event.data["person"]))
                except StorageError as exc:
                    log_service.log_event(
                        event_type="db_error",
                        message="Failed to save researched person",
                        error=str(exc),
                        name=name,
                    )
                    yield streaming.error(str(exc), kind="storage").to_sse()
                else:
                    yield streaming.person_saved(saved.id, saved.name).to_sse()
        finally:
            token.cancel()

    return EventSourceResponse(event_generator())


@router.get("/candidates", response_model=CandidatesResponse)
async def candidates(q: str = Query(min_length=1), limit: int = Query(default=20, ge=1, le=30)):
    """Possible people for an ambiguous name."""
    try:
        found = await candidate_search.search_with_descriptions(q, limit)
    except RateLimitExceededError as exc:
        raise HTTPException(status_code=429, detail=exc.message) from exc
    return CandidatesResponse(query=q, candidates=found)
