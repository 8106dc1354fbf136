"""Error taxonomy for research runs, providers and storage."""
from __future__ import annotations


class ResearchError(Exception):
    """Base class for errors that abort a research run."""

    kind = "research_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PersonNotFoundError(ResearchError):
    kind = "not_found"

    def __init__(self, name: str):
        super().__init__(f"Could not find reliable information about '{name}'.")
        self.name = name


class FictionalSubjectError(ResearchError):
    kind = "fictional_subject"

    def __init__(self, name: str):
        super().__init__(
            f"'{name}' appears to be a fictional character. "
            "This encyclopedia only covers real people."
        )
        self.name = name


class NoSourcesError(ResearchError):
    kind = "no_sources"

    def __init__(self, name: str):
        super().__init__(f"No authoritative sources were found for '{name}'.")
        self.name = name


class GenerationFailedError(ResearchError):
    kind = "generation_failed"


class ResearchCancelledError(ResearchError):
    kind = "cancelled"

    def __init__(self, stage: str | None = None):
        message = "Research was cancelled."
        if stage:
            message = f"Research was cancelled before the {stage} stage."
        super().__init__(message)
        self.stage = stage


class RateLimitExceededError(ResearchError):
    kind = "rate_limited"

    def __init__(self, provider: str):
        super().__init__(f"{provider} rate limit exceeded. Please try again later.")
        self.provider = provider


class ProviderError(Exception):
    """Raised inside supplemental provider adapters; never crosses the adapter boundary."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class StorageError(Exception):
    pass


class StorageNotConfiguredError(StorageError):
    def __init__(self):
        super().__init__(
            "Supabase is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY to real values."
        )


class StorageConfigurationError(StorageError):
    pass


class StorageRequestError(StorageError):
    def __init__(self, status_code: int | None, message: str):
        super().__init__(message)
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int | None, detail: str) -> "StorageRequestError":
        if status_code == 401:
            return cls(
                401,
                "Supabase rejected the anon key (401). Check SUPABASE_ANON_KEY for the same project as SUPABASE_URL.",
            )
        if status_code == 403:
            return cls(
                403,
                "Supabase request forbidden (403). Verify RLS policies allow this operation on the people table.",
            )
        if status_code == 404:
            return cls(
                404,
                "Supabase endpoint not found (404). Confirm SUPABASE_URL points to the correct project.",
            )
        if status_code is None:
            return cls(None, f"Supabase request failed: {detail}")
        return cls(status_code, f"Supabase error ({status_code}): {detail}")
