"""
Domain models for a manga generation run.

StoryDetails → CharacterProfile[] → MangaPage[] (Panel[]) → base64 images.
Wire names are camelCase so structured output from the text model
(``pageNumber``, ``panelNumber``) validates directly.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class MangaStyle(str, Enum):
    SHONEN = "Shonen"
    SHOJO = "Shojo"
    SEINEN = "Seinen"
    CHIBI = "Chibi"


class _Frozen(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class StoryDetails(_Frozen):
    title: str = Field(min_length=1)
    story: str = Field(min_length=1)
    author: str = Field(min_length=1)
    style: MangaStyle = MangaStyle.SHONEN

    @field_validator("title", "story", "author")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class CharacterProfile(_Frozen):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)


class NarrativeStructure(_Frozen):
    structure_name: str
    key_beats: tuple[str, ...]


class Panel(_Frozen):
    panel_number: int = Field(gt=0)
    description: str
    dialogue: str = ""
    speaker: str = ""

    @field_validator("dialogue", "speaker", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value


class MangaPage(_Frozen):
    page_number: int = Field(gt=0)
    panels: tuple[Panel, ...] = Field(min_length=1)


class LoadingState(_Frozen):
    is_loading: bool
    message: str
    progress: int = Field(ge=0, le=100)


IDLE_STATE = LoadingState(is_loading=False, message="", progress=0)
