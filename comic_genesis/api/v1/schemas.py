import uuid
from datetime import datetime

from pydantic import BaseModel

from comic_genesis.core.story_templates import StoryTemplate
from comic_genesis.models import LoadingState


class RunStatusRead(BaseModel):
    run_id: uuid.UUID
    status: str
    title: str
    created_at: datetime
    updated_at: datetime
    loading: LoadingState | None = None
    image_count: int = 0
    error: str | None = None


class RunImagesRead(BaseModel):
    run_id: uuid.UUID
    title: str
    images: list[str]


class StoryTemplateList(BaseModel):
    templates: list[StoryTemplate]
