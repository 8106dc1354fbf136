from __future__ import annotations

from fastapi import HTTPException

from life_encyclopedia.agents.pipeline import ResearchPipeline
from life_encyclopedia.errors import (
    StorageConfigurationError,
    StorageError,
    StorageNotConfiguredError,
    StorageRequestError,
)


def get_pipeline() -> ResearchPipeline:
    return ResearchPipeline()


def storage_http_error(exc: StorageError) -> HTTPException:
    """Map a storage failure onto the HTTP status a client should see."""
    if isinstance(exc, (StorageNotConfiguredError, StorageConfigurationError)):
        return HTTPException(status_code=503, detail=str(exc))
    if isinstance(exc, StorageRequestError) and exc.status_code == 404:
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))
