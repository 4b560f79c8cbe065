from fastapi import APIRouter

from comic_genesis.api.v1 import (
    runs,
    story_templates,
)


api_router = APIRouter(prefix="/v1")

api_router.include_router(runs.router)
api_router.include_router(story_templates.router)
