import logging
import uuid

from google import genai
from google.genai import types

from comic_genesis.core.metrics import track_gemini_call

logger = logging.getLogger(__name__)

IMAGE_AND_TEXT_MODALITIES = ("IMAGE", "TEXT")


# ---------------------------------------------------------------------------
# Exception classes for transport-level failures
# ---------------------------------------------------------------------------


class GeminiError(Exception):
    """Base exception for Gemini call failures."""

    error_type = "unknown"

    def __init__(self, message: str, request_id: str | None = None, model: str | None = None):
        super().__init__(message)
        self.request_id = request_id
        self.model = model


class GeminiRateLimitError(GeminiError):
    """Raised when rate limit or quota is exceeded."""

    error_type = "rate_limit"


class GeminiContentFilterError(GeminiError):
    """Raised when content is blocked by safety filters."""

    error_type = "content_filter"

    def __init__(
        self,
        message: str,
        request_id: str | None = None,
        model: str | None = None,
        blocked_categories: list[str] | None = None,
    ):
        super().__init__(message, request_id, model)
        self.blocked_categories = blocked_categories or []


class GeminiTimeoutError(GeminiError):
    """Raised when request times out."""

    error_type = "timeout"


class GeminiModelUnavailableError(GeminiError):
    """Raised when the model is unavailable."""

    error_type = "model_unavailable"


class GeminiInvalidRequestError(GeminiError):
    """Raised when the request is rejected (bad key, bad payload)."""

    error_type = "invalid_request"


_ERROR_CLASSES: dict[str, type[GeminiError]] = {
    "rate_limit": GeminiRateLimitError,
    "content_filter": GeminiContentFilterError,
    "timeout": GeminiTimeoutError,
    "model_unavailable": GeminiModelUnavailableError,
    "invalid_request": GeminiInvalidRequestError,
}


def classify_error(error_text: str) -> str:
    """Classify an SDK error message into an error type."""
    if "RESOURCE_EXHAUSTED" in error_text or "429" in error_text:
        return "rate_limit"
    if "SAFETY" in error_text.upper() or "blocked" in error_text.lower():
        return "content_filter"
    if "timeout" in error_text.lower() or "deadline" in error_text.lower():
        return "timeout"
    if "unavailable" in error_text.lower() or "503" in error_text:
        return "model_unavailable"
    if "invalid" in error_text.lower() or "400" in error_text:
        return "invalid_request"
    return "unknown"


class GeminiClient:
    """Async text/image generation client, built once per run.

    Calls are made exactly once; callers decide what a failure means.
    """

    def __init__(
        self,
        api_key: str,
        text_model: str,
        image_model: str,
        timeout_seconds: float = 120.0,
    ):
        if not api_key:
            raise RuntimeError("A Gemini API key is required")

        self._text_model = text_model
        self._image_model = image_model
        self._timeout_seconds = timeout_seconds

        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout_seconds * 1000)),
        )

    def _check_response_safety(
        self,
        response: types.GenerateContentResponse,
        request_id: str,
        model_name: str,
    ) -> None:
        """Raise if the first candidate was blocked by safety filters."""
        candidate = (response.candidates or [None])[0]
        if candidate is None:
            return

        finish_reason = getattr(candidate, "finish_reason", None)
        if finish_reason and "SAFETY" in str(finish_reason).upper():
            blocked_categories = []
            for rating in getattr(candidate, "safety_ratings", None) or []:
                if getattr(rating, "blocked", False):
                    blocked_categories.append(str(getattr(rating, "category", "UNKNOWN")))

            raise GeminiContentFilterError(
                f"Content blocked by safety filters: {blocked_categories}",
                request_id=request_id,
                model=model_name,
                blocked_categories=blocked_categories,
            )

    async def _call(
        self,
        model_name: str,
        contents: types.ContentListUnion,
        config: types.GenerateContentConfig,
        request_type: str,
        check_safety: bool = True,
    ) -> types.GenerateContentResponse:
        request_id = str(uuid.uuid4())
        try:
            with track_gemini_call(request_type):
                response = await self._client.aio.models.generate_content(
                    model=model_name,
                    contents=contents,
                    config=config,
                )
        except Exception as exc:  # noqa: BLE001
            error_type = classify_error(str(exc))
            logger.error(
                "gemini.%s failed request_id=%s model=%s type=%s error=%s",
                request_type,
                request_id,
                model_name,
                error_type,
                repr(exc),
            )
            error_class = _ERROR_CLASSES.get(error_type, GeminiError)
            raise error_class(
                f"Gemini {request_type} failed: {exc}",
                request_id=request_id,
                model=model_name,
            ) from exc

        if check_safety:
            self._check_response_safety(response, response.response_id or request_id, model_name)
        return response

    async def generate_structured(
        self,
        prompt: str,
        schema: types.Schema,
        model: str | None = None,
    ) -> str:
        """Generate JSON text constrained by a response schema.

        Returns:
            The raw response text; parsing is left to the caller so parse
            failures stay distinguishable from call failures.

        Raises:
            GeminiError: If the call itself fails.
        """
        model_name = model or self._text_model
        response = await self._call(
            model_name,
            [prompt],
            types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=schema,
            ),
            request_type="generate_structured",
        )
        return (response.text or "").strip()

    async def generate_image(
        self,
        parts: list[types.Part],
        model: str | None = None,
    ) -> types.GenerateContentResponse:
        """Request image + text output for an ordered list of content parts.

        A safety-blocked answer is returned as-is; it simply carries no
        image, which the caller reports as a malformed response.

        Raises:
            GeminiError: If the call itself fails.
        """
        model_name = model or self._image_model
        return await self._call(
            model_name,
            types.Content(role="user", parts=parts),
            types.GenerateContentConfig(
                response_modalities=list(IMAGE_AND_TEXT_MODALITIES),
            ),
            request_type="generate_image",
            check_safety=False,
        )
