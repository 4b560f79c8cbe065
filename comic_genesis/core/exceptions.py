"""
Application-level exception types.

Generation failures are tagged with the run stage that raised them so a
single terminal error can tell the caller where a run stopped.
"""

from __future__ import annotations

STAGE_CHARACTER_PROFILES = "character-profiles"
STAGE_SCRIPT = "script"
STAGE_TITLE_IMAGE = "title-image"
STAGE_PAGE_IMAGE = "page-image"
STAGE_CONCLUSION_IMAGE = "conclusion-image"


class AppError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        self.detail = detail or message
        super().__init__(message)


class ConfigurationError(AppError):
    """Raised when required configuration is missing or invalid."""


class GenerationError(AppError):
    """Raised when a generation stage fails."""

    kind = "generation"

    def __init__(self, message: str, *, stage: str, detail: str | None = None) -> None:
        super().__init__(message, detail=detail)
        self.stage = stage


class CapabilityCallError(GenerationError):
    """The outbound call to the generation service itself failed."""

    kind = "capability_call"


class MalformedResponseError(GenerationError):
    """The call succeeded but its payload failed shape/schema validation."""

    kind = "malformed_response"

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        raw_response: str | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, stage=stage, detail=detail)
        self.raw_response = raw_response


class EmptyResultError(GenerationError):
    """The payload was well-formed but semantically empty."""

    kind = "empty_result"


class MangaGenerationError(AppError):
    """Terminal failure of a whole run, wrapping the first stage failure."""

    def __init__(self, cause: GenerationError) -> None:
        super().__init__(
            f"Manga generation failed: [{cause.stage}] {cause}",
            detail=str(cause),
        )
        self.stage = cause.stage
        self.kind = cause.kind
