"""Starter premises offered to users before they write their own story."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StoryTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    structure: str
    genre: str
    prompt: str
    icon: str


STORY_TEMPLATES: tuple[StoryTemplate, ...] = (
    StoryTemplate(
        id="hero-journey",
        name="Hero's Journey",
        description="Classic adventure following a hero's transformation",
        structure="3-Act Structure with Call to Adventure",
        genre="Adventure/Fantasy",
        prompt=(
            "Create a story following the hero's journey structure with a reluctant protagonist "
            "who must overcome personal fears to save their world."
        ),
        icon="⚔️",
    ),
    StoryTemplate(
        id="mystery-thriller",
        name="Mystery Thriller",
        description="Suspenseful investigation with plot twists",
        structure="Investigation Arc with Red Herrings",
        genre="Mystery/Thriller",
        prompt=(
            "Develop a gripping mystery where a detective uncovers a conspiracy "
            "that reaches deeper than initially suspected."
        ),
        icon="🔍",
    ),
    StoryTemplate(
        id="slice-of-life",
        name="Slice of Life",
        description="Character-driven everyday moments",
        structure="Character Development Arc",
        genre="Drama/Comedy",
        prompt=(
            "Tell a heartwarming story about ordinary people finding extraordinary meaning "
            "in everyday moments."
        ),
        icon="🌸",
    ),
    StoryTemplate(
        id="sci-fi-adventure",
        name="Sci-Fi Adventure",
        description="Futuristic world with advanced technology",
        structure="World-building + Quest Structure",
        genre="Science Fiction",
        prompt=(
            "Craft a futuristic adventure where advanced technology creates both solutions "
            "and new problems for humanity."
        ),
        icon="🚀",
    ),
    StoryTemplate(
        id="romance-drama",
        name="Romance Drama",
        description="Emotional love story with obstacles",
        structure="Relationship Arc with Conflict",
        genre="Romance/Drama",
        prompt=(
            "Create a touching romance where two characters must overcome personal "
            "and external obstacles to find happiness."
        ),
        icon="💕",
    ),
    StoryTemplate(
        id="custom",
        name="Custom Story",
        description="Start with your own unique premise",
        structure="Flexible Structure",
        genre="Any Genre",
        prompt="",
        icon="✨",
    ),
)


def get_story_template(template_id: str) -> StoryTemplate | None:
    return next((t for t in STORY_TEMPLATES if t.id == template_id), None)
