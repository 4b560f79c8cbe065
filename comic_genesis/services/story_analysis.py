"""
Story analysis service for narrative structure detection.

Maps a free-text premise to one of five story archetypes with a fixed
set of key beats. The archetype is used only as prompt context for the
script writer.

Rules are tried in order and the first keyword hit wins, so a story that
mentions both "love" and "robot" is a Romance Arc, not a Sci-Fi Adventure.
"""

from __future__ import annotations

from dataclasses import dataclass

from comic_genesis.models import NarrativeStructure


@dataclass(frozen=True)
class NarrativeRule:
    """One row of the archetype table."""

    archetype: str
    keywords: tuple[str, ...]
    structure: NarrativeStructure

    def matches(self, story_lower: str) -> bool:
        return any(keyword in story_lower for keyword in self.keywords)


HERO_JOURNEY = NarrativeStructure(
    structure_name="Hero's Journey",
    key_beats=(
        "Ordinary World & Call to Adventure",
        "Crossing the Threshold & First Challenge",
        "Trials and Revelations",
        "Climax and Return Transformed",
    ),
)

MYSTERY_INVESTIGATION = NarrativeStructure(
    structure_name="Mystery Investigation",
    key_beats=(
        "Crime/Mystery Introduction",
        "Investigation & Red Herrings",
        "Major Revelation & Twist",
        "Resolution & Truth Revealed",
    ),
)

ROMANCE_ARC = NarrativeStructure(
    structure_name="Romance Arc",
    key_beats=(
        "Meet Cute & Initial Attraction",
        "Building Connection & Obstacles",
        "Crisis & Near Loss",
        "Resolution & Happy Ending",
    ),
)

SCI_FI_ADVENTURE = NarrativeStructure(
    structure_name="Sci-Fi Adventure",
    key_beats=(
        "World Setup & Inciting Incident",
        "Exploration & Discovery",
        "Conflict & High Stakes",
        "Resolution & Future Implications",
    ),
)

THREE_ACT_STRUCTURE = NarrativeStructure(
    structure_name="Three-Act Structure",
    key_beats=(
        "Setup & Character Introduction",
        "Rising Action & Complications",
        "Climax & High Stakes",
        "Resolution & Character Growth",
    ),
)

# Priority order: hero → mystery → romance → sci-fi, then fallback.
NARRATIVE_RULES: tuple[NarrativeRule, ...] = (
    NarrativeRule(
        archetype="hero",
        keywords=("journey", "quest", "adventure", "hero", "save", "rescue", "destiny"),
        structure=HERO_JOURNEY,
    ),
    NarrativeRule(
        archetype="mystery",
        keywords=("mystery", "detective", "investigate", "clue", "solve", "suspect", "hidden"),
        structure=MYSTERY_INVESTIGATION,
    ),
    NarrativeRule(
        archetype="romance",
        keywords=("love", "relationship", "heart", "romance", "together", "feelings"),
        structure=ROMANCE_ARC,
    ),
    NarrativeRule(
        archetype="sci-fi",
        keywords=("future", "space", "technology", "robot", "alien", "planet", "sci-fi"),
        structure=SCI_FI_ADVENTURE,
    ),
)


def analyze_narrative_structure(story: str) -> NarrativeStructure:
    story_lower = (story or "").lower()
    for rule in NARRATIVE_RULES:
        if rule.matches(story_lower):
            return rule.structure
    return THREE_ACT_STRUCTURE
