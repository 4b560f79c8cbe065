from __future__ import annotations

import logging

from comic_genesis.models import CharacterProfile, MangaStyle

logger = logging.getLogger("comic_genesis.graphs.nodes")


def style_name(style: MangaStyle | str) -> str:
    """Plain style label for prompts (``"Shonen"``, not ``"MangaStyle.SHONEN"``)."""
    return MangaStyle(style).value


def character_summary(characters: list[CharacterProfile]) -> str:
    return "; ".join(f"{c.name}: {c.description}" for c in characters)
