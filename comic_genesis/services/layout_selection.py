"""
Page composition directive selection.

Extracts a handful of features from a scripted page and runs them through
an ordered rule table to pick one layout directive for the image prompt.
The first matching rule wins; rule order is part of the behavior.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from comic_genesis.models import MangaPage, MangaStyle

ACTION_KEYWORDS = ("action", "fight", "explosion", "running", "chase")
EMOTION_KEYWORDS = ("emotional", "tears", "close-up", "reaction", "shock")

DYNAMIC_ACTION_LAYOUT = (
    "DYNAMIC ACTION LAYOUT: Use large, impactful panels with diagonal compositions. "
    "Include speed lines and dramatic angles."
)
EMOTIONAL_BEATS_LAYOUT = (
    "EMOTIONAL BEATS LAYOUT: Mix close-up reaction shots with medium shots. "
    "Use varying panel sizes to control pacing."
)
DIALOGUE_HEAVY_LAYOUT = (
    "DIALOGUE-HEAVY LAYOUT: Use conversational panel flow with clear sight lines between speakers. "
    "Balance text and visuals."
)
SHONEN_ENERGY_LAYOUT = (
    "SHONEN ENERGY LAYOUT: Bold, angular panels with dynamic perspectives. "
    "Emphasize movement and power."
)
SHOJO_AESTHETIC_LAYOUT = (
    "SHOJO AESTHETIC LAYOUT: Flowing, organic panel shapes with decorative elements. "
    "Focus on character expressions."
)
MATURE_COMPOSITION = (
    "MATURE COMPOSITION: Clean, sophisticated panel layouts with subtle visual metaphors "
    "and realistic proportions."
)
BALANCED_COMPOSITION = (
    "BALANCED COMPOSITION: Professional comic layout with clear visual hierarchy "
    "and optimal reading flow."
)

ALL_DIRECTIVES = (
    DYNAMIC_ACTION_LAYOUT,
    EMOTIONAL_BEATS_LAYOUT,
    DIALOGUE_HEAVY_LAYOUT,
    SHONEN_ENERGY_LAYOUT,
    SHOJO_AESTHETIC_LAYOUT,
    MATURE_COMPOSITION,
    BALANCED_COMPOSITION,
)


@dataclass(frozen=True)
class PageFeatures:
    """Features extracted from a scripted page for layout selection."""

    panel_count: int = 0
    has_action: bool = False
    has_emotion: bool = False
    has_dialogue: bool = False


def _mentions_any(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def extract_page_features(page: MangaPage) -> PageFeatures:
    panels = page.panels
    return PageFeatures(
        panel_count=len(panels),
        has_action=any(_mentions_any(p.description, ACTION_KEYWORDS) for p in panels),
        has_emotion=any(_mentions_any(p.description, EMOTION_KEYWORDS) for p in panels),
        has_dialogue=any(p.dialogue and p.dialogue.strip() for p in panels),
    )


CompositionRule = tuple[str, Callable[[PageFeatures, MangaStyle], bool], str]

COMPOSITION_RULES: tuple[CompositionRule, ...] = (
    ("action", lambda f, s: f.has_action and f.panel_count <= 3, DYNAMIC_ACTION_LAYOUT),
    ("emotion", lambda f, s: f.has_emotion and f.panel_count >= 3, EMOTIONAL_BEATS_LAYOUT),
    ("dialogue", lambda f, s: f.has_dialogue and f.panel_count >= 4, DIALOGUE_HEAVY_LAYOUT),
    ("shonen", lambda f, s: s == MangaStyle.SHONEN, SHONEN_ENERGY_LAYOUT),
    ("shojo", lambda f, s: s == MangaStyle.SHOJO, SHOJO_AESTHETIC_LAYOUT),
    ("seinen", lambda f, s: s == MangaStyle.SEINEN, MATURE_COMPOSITION),
)


def select_composition_directive(page: MangaPage, style: MangaStyle) -> str:
    """Return the layout directive of the first rule matching this page."""
    features = extract_page_features(page)
    for _name, predicate, directive in COMPOSITION_RULES:
        if predicate(features, style):
            return directive
    return BALANCED_COMPOSITION
