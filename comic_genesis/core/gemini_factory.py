"""
Gemini client factory.

Every run gets its own GeminiClient built from the credential supplied
with that run; the application default key is only a fallback.
"""

from __future__ import annotations

from comic_genesis.core.exceptions import ConfigurationError
from comic_genesis.core.settings import settings
from comic_genesis.services.gemini import GeminiClient


class GeminiNotConfiguredError(ConfigurationError):
    """Raised when no Gemini API key is available for a run."""

    def __init__(self) -> None:
        super().__init__(
            "Gemini is not configured. Supply an API key with the run or set GEMINI_API_KEY.",
            detail="Gemini API key is required",
        )


def resolve_api_key(api_key: str | None) -> str:
    key = (api_key or "").strip() or (settings.gemini_api_key or "").strip()
    if not key:
        raise GeminiNotConfiguredError()
    return key


def build_gemini_client(api_key: str | None = None) -> GeminiClient:
    """Build a GeminiClient for one run.

    Raises:
        GeminiNotConfiguredError: If neither ``api_key`` nor GEMINI_API_KEY is set.
    """
    return GeminiClient(
        api_key=resolve_api_key(api_key),
        text_model=settings.gemini_text_model,
        image_model=settings.gemini_image_model,
        timeout_seconds=settings.gemini_timeout_seconds,
    )
