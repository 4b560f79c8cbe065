"""Manga script writing logic."""

from __future__ import annotations

from google.genai import types
from pydantic import TypeAdapter, ValidationError

from comic_genesis.core.exceptions import (
    STAGE_SCRIPT,
    CapabilityCallError,
    EmptyResultError,
    MalformedResponseError,
)
from comic_genesis.models import CharacterProfile, MangaPage, MangaStyle
from comic_genesis.prompts.loader import render_prompt
from comic_genesis.services.gemini import GeminiClient, GeminiError
from comic_genesis.services.json_parser import parse_json_array
from comic_genesis.services.story_analysis import analyze_narrative_structure

from .utils import logger, style_name

MANGA_PAGE_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "pageNumber": types.Schema(type=types.Type.INTEGER),
            "panels": types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(
                    type=types.Type.OBJECT,
                    properties={
                        "panelNumber": types.Schema(type=types.Type.INTEGER),
                        "description": types.Schema(
                            type=types.Type.STRING,
                            description="A detailed visual description of the action and setting in the panel. No dialogue.",
                        ),
                        "dialogue": types.Schema(
                            type=types.Type.STRING,
                            description="The dialogue spoken in the panel. Can be empty.",
                        ),
                        "speaker": types.Schema(
                            type=types.Type.STRING,
                            description="Who is speaking the dialogue. Can be 'Narrator' or a character name.",
                        ),
                    },
                    required=["panelNumber", "description"],
                ),
            ),
        },
        required=["pageNumber", "panels"],
    ),
)

_PAGES_ADAPTER = TypeAdapter(list[MangaPage])

_FAILURE_MESSAGE = "Failed to generate the manga script."
_EMPTY_MESSAGE = "The generated script was empty. Please try a different story."


def _sorted_pages(pages: list[MangaPage]) -> list[MangaPage]:
    ordered = sorted(pages, key=lambda page: page.page_number)
    seen: set[int] = set()
    for page in ordered:
        if page.page_number in seen:
            raise ValueError(f"duplicate pageNumber {page.page_number}")
        seen.add(page.page_number)
    return ordered


async def generate_manga_script(
    gemini: GeminiClient,
    story: str,
    style: MangaStyle | str,
    characters: list[CharacterProfile],
) -> list[MangaPage]:
    """Turn a premise and its cast into ordered script pages.

    The detected narrative structure only enriches the prompt; the pages
    are always returned sorted by page number whatever order they arrive in.
    """
    narrative = analyze_narrative_structure(story)
    prompt = render_prompt(
        "prompt_manga_script",
        story=story,
        style=style_name(style),
        structure_name=narrative.structure_name,
        key_beats=list(narrative.key_beats),
        characters=characters,
    )

    try:
        text = await gemini.generate_structured(prompt=prompt, schema=MANGA_PAGE_SCHEMA)
    except GeminiError as exc:
        logger.error("script_writer call failed: %s", exc)
        raise CapabilityCallError(_FAILURE_MESSAGE, stage=STAGE_SCRIPT, detail=str(exc)) from exc

    try:
        pages = _sorted_pages(_PAGES_ADAPTER.validate_python(parse_json_array(text)))
    except (ValueError, ValidationError) as exc:
        logger.error("script_writer invalid response: %s raw=%s", exc, text)
        raise MalformedResponseError(
            _FAILURE_MESSAGE,
            stage=STAGE_SCRIPT,
            raw_response=text,
            detail=str(exc),
        ) from exc

    if not pages:
        logger.error(
            "script_writer returned no pages (structure=%s, story_len=%d)",
            narrative.structure_name,
            len(story or ""),
        )
        raise EmptyResultError(_EMPTY_MESSAGE, stage=STAGE_SCRIPT)

    logger.info(
        "script_writer generated pages=%d panels=%d structure=%s",
        len(pages),
        sum(len(page.panels) for page in pages),
        narrative.structure_name,
    )
    return pages
