"""Character profile generation."""

from __future__ import annotations

from google.genai import types
from pydantic import TypeAdapter, ValidationError

from comic_genesis.core.exceptions import (
    STAGE_CHARACTER_PROFILES,
    CapabilityCallError,
    EmptyResultError,
    MalformedResponseError,
)
from comic_genesis.models import CharacterProfile, MangaStyle
from comic_genesis.prompts.loader import render_prompt
from comic_genesis.services.gemini import GeminiClient, GeminiError
from comic_genesis.services.json_parser import parse_json_array

from .utils import logger, style_name

MIN_CHARACTERS = 2
MAX_CHARACTERS = 4

CHARACTER_PROFILE_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "name": types.Schema(
                type=types.Type.STRING,
                description="The character's name.",
            ),
            "description": types.Schema(
                type=types.Type.STRING,
                description="A detailed visual and personality description of the character suitable for an artist.",
            ),
        },
        required=["name", "description"],
    ),
)

_PROFILES_ADAPTER = TypeAdapter(list[CharacterProfile])

_FAILURE_MESSAGE = "Failed to generate character profiles from the story."


async def generate_character_profiles(
    gemini: GeminiClient,
    story: str,
    style: MangaStyle | str,
) -> list[CharacterProfile]:
    """Derive the cast of a story with one structured text call.

    The 2-4 character count is requested in the prompt, not enforced here.
    """
    prompt = render_prompt(
        "prompt_character_profiles",
        story=story,
        style=style_name(style),
        min_characters=MIN_CHARACTERS,
        max_characters=MAX_CHARACTERS,
    )

    try:
        text = await gemini.generate_structured(prompt=prompt, schema=CHARACTER_PROFILE_SCHEMA)
    except GeminiError as exc:
        logger.error("character_profiles call failed: %s", exc)
        raise CapabilityCallError(_FAILURE_MESSAGE, stage=STAGE_CHARACTER_PROFILES, detail=str(exc)) from exc

    try:
        characters = _PROFILES_ADAPTER.validate_python(parse_json_array(text))
    except (ValueError, ValidationError) as exc:
        logger.error("character_profiles invalid response: %s raw=%s", exc, text)
        raise MalformedResponseError(
            _FAILURE_MESSAGE,
            stage=STAGE_CHARACTER_PROFILES,
            raw_response=text,
            detail=str(exc),
        ) from exc

    if not characters:
        logger.error("character_profiles returned no characters (story_len=%d)", len(story or ""))
        raise EmptyResultError(_FAILURE_MESSAGE, stage=STAGE_CHARACTER_PROFILES, detail="no characters returned")

    logger.info(
        "character_profiles generated count=%d names=%s",
        len(characters),
        [c.name for c in characters],
    )
    return characters
