import io
import json

import pytest
import httpx
from google.genai import types
from PIL import Image

from comic_genesis.core import settings as settings_module
from comic_genesis.graphs.nodes import CHARACTER_PROFILE_SCHEMA
from comic_genesis.main import app


def jpeg_bytes(width: int = 30, height: int = 40, color: str = "white") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="JPEG")
    return buffer.getvalue()


def image_response(data: bytes) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(
        candidates=[
            types.Candidate(
                content=types.Content(
                    role="model",
                    parts=[types.Part.from_bytes(data=data, mime_type="image/jpeg")],
                )
            )
        ]
    )


def empty_response() -> types.GenerateContentResponse:
    return types.GenerateContentResponse(candidates=[])


DEFAULT_CHARACTERS = [
    {"name": "Kai", "description": "A wiry teenage detective with a red scarf."},
    {"name": "Mira", "description": "A calm archivist with round glasses."},
]

DEFAULT_SCRIPT = [
    {
        "pageNumber": 2,
        "panels": [
            {"panelNumber": 1, "description": "Kai finds a clue under the desk.", "dialogue": "Look!", "speaker": "Kai"},
        ],
    },
    {
        "pageNumber": 1,
        "panels": [
            {"panelNumber": 1, "description": "A quiet library at night.", "dialogue": "", "speaker": ""},
            {"panelNumber": 2, "description": "Mira shelves a book.", "dialogue": "Closing time.", "speaker": "Mira"},
        ],
    },
]


class FakeGemini:
    """Stands in for GeminiClient and records every call it receives.

    ``images`` maps a 1-based image call number to an exception to raise or
    a response to return; unmapped calls return a JPEG whose pixel color
    is unique per call.
    """

    def __init__(self, characters=None, script=None, images=None):
        self.characters = json.dumps(DEFAULT_CHARACTERS) if characters is None else characters
        self.script = json.dumps(DEFAULT_SCRIPT) if script is None else script
        self.images = images or {}
        self.structured_prompts: list[str] = []
        self.image_calls: list[list[types.Part]] = []
        self.returned_images: list[bytes] = []

    async def generate_structured(self, prompt, schema, model=None):
        self.structured_prompts.append(prompt)
        outcome = self.characters if schema is CHARACTER_PROFILE_SCHEMA else self.script
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def generate_image(self, parts, model=None):
        self.image_calls.append(list(parts))
        outcome = self.images.get(len(self.image_calls))
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is not None:
            return outcome
        call = len(self.image_calls)
        data = jpeg_bytes(color=(call * 20 % 256, call // 12 % 256, 0))
        self.returned_images.append(data)
        return image_response(data)


@pytest.fixture()
def fake_gemini():
    return FakeGemini()


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings_module.settings, "media_root", str(tmp_path / "media"))
    monkeypatch.setattr(settings_module.settings, "gemini_api_key", None)
    yield


@pytest.fixture()
async def client():
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture()
def anyio_backend():
    return "asyncio"
