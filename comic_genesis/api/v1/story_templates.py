from fastapi import APIRouter, HTTPException

from comic_genesis.api.v1.schemas import StoryTemplateList
from comic_genesis.core.story_templates import STORY_TEMPLATES, StoryTemplate, get_story_template


router = APIRouter(tags=["story-templates"])


@router.get("/story-templates", response_model=StoryTemplateList)
def list_story_templates():
    return StoryTemplateList(templates=list(STORY_TEMPLATES))


@router.get("/story-templates/{template_id}", response_model=StoryTemplate)
def get_template(template_id: str):
    template = get_story_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="story template not found")
    return template
