"""Page image synthesis and image prompt construction."""

from __future__ import annotations

import base64

from google.genai import types

from comic_genesis.core.exceptions import CapabilityCallError, MalformedResponseError
from comic_genesis.models import CharacterProfile, MangaPage, MangaStyle, Panel
from comic_genesis.prompts.loader import render_prompt
from comic_genesis.services.gemini import GeminiClient
from comic_genesis.services.layout_selection import select_composition_directive

from .utils import character_summary, logger, style_name

REFERENCE_MIME_TYPE = "image/jpeg"

_MALFORMED_MESSAGE = "AI failed to return a valid image. The response was empty or malformed."


def describe_panel(panel: Panel, characters: list[CharacterProfile]) -> str:
    """Render one panel's instruction, binding dialogue to its speaker.

    A speaker that exactly matches a character name gets that character's
    description attached; anything else (``Narrator``, unknown names) is
    quoted verbatim.
    """
    text = f"Panel {panel.panel_number}: {panel.description}"
    if panel.dialogue and panel.speaker:
        speaking = next((c for c in characters if c.name == panel.speaker), None)
        if speaking is not None:
            text += (
                f"\n  - Dialogue: The character speaking is {speaking.name} ({speaking.description}). "
                f'They say: "{panel.dialogue}"'
            )
        else:
            text += f'\n  - Dialogue ({panel.speaker}): "{panel.dialogue}"'
    return text


def build_title_prompt(
    title: str,
    author: str,
    style: MangaStyle | str,
    characters: list[CharacterProfile],
) -> str:
    return render_prompt(
        "prompt_title_page",
        title=title,
        author=author,
        style=style_name(style),
        character_summary=character_summary(characters),
    )


def build_page_prompt(
    page: MangaPage,
    style: MangaStyle | str,
    characters: list[CharacterProfile],
) -> str:
    return render_prompt(
        "prompt_manga_page",
        style=style_name(style),
        character_summary=character_summary(characters),
        page_number=page.page_number,
        panel_count=len(page.panels),
        panel_instructions="\n\n".join(describe_panel(p, characters) for p in page.panels),
    )


def build_conclusion_prompt(story: str, style: MangaStyle | str) -> str:
    return render_prompt("prompt_conclusion_page", story=story, style=style_name(style))


def with_composition_guidance(prompt: str, page: MangaPage, style: MangaStyle | str) -> str:
    """Append the page's layout directive and the standard comic technique block."""
    return render_prompt(
        "prompt_composition_guidance",
        base_prompt=prompt,
        directive=select_composition_directive(page, MangaStyle(style)),
    )


def build_image_parts(prompt: str, reference_image: str | None = None) -> list[types.Part]:
    """Order the request parts: reference instruction and image first, then the prompt."""
    parts: list[types.Part] = []
    if reference_image:
        parts.append(types.Part.from_text(text=render_prompt("prompt_consistency_reference")))
        parts.append(
            types.Part.from_bytes(
                data=base64.b64decode(reference_image),
                mime_type=REFERENCE_MIME_TYPE,
            )
        )
    parts.append(types.Part.from_text(text=prompt))
    return parts


def extract_image_data(response: types.GenerateContentResponse) -> str | None:
    """Return the first inline image across all candidates, base64-encoded."""
    for candidate in response.candidates or []:
        content = candidate.content
        if content is None or not content.parts:
            continue
        for part in content.parts:
            inline_data = part.inline_data
            if inline_data and inline_data.data:
                return base64.b64encode(inline_data.data).decode("ascii")
    return None


def _dump_response(response: types.GenerateContentResponse | None) -> str:
    if response is None:
        return "null"
    try:
        return response.model_dump_json(indent=2, exclude_none=True)
    except (TypeError, ValueError, AttributeError):
        return repr(response)


async def generate_page_image(
    gemini: GeminiClient,
    prompt: str,
    *,
    stage: str,
    reference_image: str | None = None,
    page: MangaPage | None = None,
    style: MangaStyle | str | None = None,
) -> str:
    """Render one page image and return it as base64.

    Composition guidance is added only when both ``page`` and ``style``
    are given.

    Raises:
        MalformedResponseError: The call succeeded but carried no image.
        CapabilityCallError: Anything else went wrong.
    """
    enhanced_prompt = prompt
    if page is not None and style is not None:
        enhanced_prompt = with_composition_guidance(prompt, page, style)

    response = None
    try:
        response = await gemini.generate_image(parts=build_image_parts(enhanced_prompt, reference_image))
        image_data = extract_image_data(response)
    except Exception as exc:  # noqa: BLE001
        logger.error("page image generation failed: %r", exc)
        raise CapabilityCallError(
            f"AI failed to generate an image. Reason: {exc}",
            stage=stage,
            detail=str(exc),
        ) from exc

    if image_data is None:
        raw = _dump_response(response)
        logger.error("Invalid or empty response from image generation API: %s", raw)
        raise MalformedResponseError(
            f"AI failed to generate an image. Reason: {_MALFORMED_MESSAGE}",
            stage=stage,
            raw_response=raw,
        )

    return image_data
