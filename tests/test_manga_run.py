"""End-to-end tests for the manga run orchestrator using a fake Gemini client."""

import base64
import json

import pytest
from hypothesis import given, strategies as st, settings

from comic_genesis.core.exceptions import (
    STAGE_CHARACTER_PROFILES,
    STAGE_CONCLUSION_IMAGE,
    STAGE_PAGE_IMAGE,
    STAGE_SCRIPT,
    STAGE_TITLE_IMAGE,
    MangaGenerationError,
)
from comic_genesis.core import settings as settings_module
from comic_genesis.core.gemini_factory import GeminiNotConfiguredError
from comic_genesis.graphs import manga_run
from comic_genesis.graphs.manga_run import illustration_steps, image_progress, start_run
from comic_genesis.models import IDLE_STATE, MangaStyle, StoryDetails
from comic_genesis.services.gemini import GeminiTimeoutError

from conftest import FakeGemini, empty_response

DETAILS = StoryDetails(
    title="Night Shift",
    story="A detective must solve a hidden crime",
    author="A. Writer",
    style=MangaStyle.SHONEN,
)


class Recorder:
    def __init__(self):
        self.states = []

    def __call__(self, state):
        self.states.append(state)

    @property
    def progress(self):
        return [s.progress for s in self.states]

    @property
    def messages(self):
        return [s.message for s in self.states]


class TestImageProgress:
    @pytest.mark.parametrize(
        "completed, pages, expected",
        [
            (0, 2, 40),
            (1, 2, 54),
            (2, 2, 68),
            (3, 2, 81),
            (4, 2, 95),
            (1, 1, 58),
            (1, 7, 46),
        ],
    )
    def test_values(self, completed, pages, expected):
        assert image_progress(completed, pages) == expected

    @pytest.mark.property
    @given(pages=st.integers(min_value=1, max_value=40))
    @settings(max_examples=100, deadline=None)
    def test_monotonic_between_title_and_done(self, pages):
        values = [image_progress(done, pages) for done in range(pages + 3)]
        assert values == sorted(values)
        assert values[0] == 40
        assert values[-1] == 95


class TestSuccessfulRun:
    @pytest.mark.anyio
    async def test_returns_title_pages_and_conclusion(self):
        gemini = FakeGemini()
        recorder = Recorder()

        images = await start_run(DETAILS, recorder, gemini=gemini)

        assert len(images) == 4
        assert [base64.b64decode(i) for i in images] == gemini.returned_images
        assert "Story Structure Detected: Mystery Investigation" in gemini.structured_prompts[1]

    @pytest.mark.anyio
    async def test_progress_sequence(self):
        recorder = Recorder()

        await start_run(DETAILS, recorder, gemini=FakeGemini())

        assert recorder.progress == [0, 10, 25, 40, 54, 68, 81, 100, 0]
        assert recorder.messages == [
            "Starting...",
            "Analyzing story for characters...",
            "Writing manga script...",
            "Creating title page...",
            "Drawing page 1 of 2...",
            "Drawing page 2 of 2...",
            "Creating conclusion page...",
            "Finishing up...",
            "",
        ]
        assert all(s.is_loading for s in recorder.states[:-1])
        assert recorder.states[-1] == IDLE_STATE

    @pytest.mark.anyio
    async def test_pages_render_in_page_number_order(self):
        gemini = FakeGemini()

        await start_run(DETAILS, gemini=gemini)

        page_prompts = [call[-1].text for call in gemini.image_calls[1:3]]
        assert "PAGE: 1, with 2 panels." in page_prompts[0]
        assert "PAGE: 2, with 1 panels." in page_prompts[1]

    @pytest.mark.anyio
    async def test_each_image_references_the_previous_one(self):
        gemini = FakeGemini()

        await start_run(DETAILS, gemini=gemini)

        assert len(gemini.image_calls[0]) == 1
        for index in range(1, 4):
            parts = gemini.image_calls[index]
            assert len(parts) == 3
            assert parts[1].inline_data.data == gemini.returned_images[index - 1]

    @pytest.mark.anyio
    async def test_only_script_pages_get_composition_guidance(self):
        gemini = FakeGemini()

        await start_run(DETAILS, gemini=gemini)

        prompts = [call[-1].text for call in gemini.image_calls]
        assert "COMPOSITION GUIDANCE" not in prompts[0]
        assert "COMPOSITION GUIDANCE" in prompts[1]
        assert "COMPOSITION GUIDANCE" in prompts[2]
        assert "COMPOSITION GUIDANCE" not in prompts[3]

    @pytest.mark.anyio
    async def test_async_callback_and_no_callback(self):
        states = []

        async def on_progress(state):
            states.append(state)

        await start_run(DETAILS, on_progress, gemini=FakeGemini())
        images = await start_run(DETAILS, gemini=FakeGemini())

        assert states[-1] == IDLE_STATE
        assert len(images) == 4

    @pytest.mark.anyio
    async def test_failing_callback_does_not_stop_the_run(self):
        def on_progress(state):
            raise RuntimeError("ui went away")

        images = await start_run(DETAILS, on_progress, gemini=FakeGemini())

        assert len(images) == 4


class TestFailedRun:
    @pytest.mark.anyio
    async def test_empty_script_stops_before_any_image(self):
        gemini = FakeGemini(script="[]")
        recorder = Recorder()

        with pytest.raises(MangaGenerationError) as exc_info:
            await start_run(DETAILS, recorder, gemini=gemini)

        assert exc_info.value.stage == STAGE_SCRIPT
        assert "The generated script was empty" in str(exc_info.value)
        assert gemini.image_calls == []
        assert recorder.progress == [0, 10, 25, 0]
        assert recorder.states[-1] == IDLE_STATE

    @pytest.mark.anyio
    async def test_character_failure(self):
        gemini = FakeGemini(characters=GeminiTimeoutError("deadline"))

        with pytest.raises(MangaGenerationError) as exc_info:
            await start_run(DETAILS, gemini=gemini)

        assert exc_info.value.stage == STAGE_CHARACTER_PROFILES
        assert exc_info.value.kind == "capability_call"
        assert len(gemini.structured_prompts) == 1

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "failing_call, stage",
        [
            (1, STAGE_TITLE_IMAGE),
            (3, STAGE_PAGE_IMAGE),
            (4, STAGE_CONCLUSION_IMAGE),
        ],
    )
    async def test_image_failure_aborts_remaining_pages(self, failing_call, stage):
        gemini = FakeGemini(images={failing_call: empty_response()})
        recorder = Recorder()

        with pytest.raises(MangaGenerationError) as exc_info:
            await start_run(DETAILS, recorder, gemini=gemini)

        assert exc_info.value.stage == stage
        assert exc_info.value.kind == "malformed_response"
        assert str(exc_info.value).startswith(f"Manga generation failed: [{stage}] AI failed to generate an image.")
        assert len(gemini.image_calls) == failing_call
        assert 100 not in recorder.progress
        assert recorder.states[-1] == IDLE_STATE

    @pytest.mark.anyio
    async def test_missing_api_key(self):
        recorder = Recorder()

        with pytest.raises(GeminiNotConfiguredError):
            await start_run(DETAILS, recorder)

        assert recorder.progress == [0, 0]
        assert recorder.states[-1] == IDLE_STATE

    @pytest.mark.anyio
    async def test_builds_client_from_run_key(self, monkeypatch):
        seen = []
        gemini = FakeGemini()

        def fake_build(api_key=None):
            seen.append(api_key)
            return gemini

        monkeypatch.setattr(manga_run, "build_gemini_client", fake_build)

        images = await start_run(DETAILS, api_key="run-key")

        assert seen == ["run-key"]
        assert len(images) == 4


class TestLongScripts:
    def test_illustration_steps_follow_page_count(self):
        assert illustration_steps(1) == 3
        assert illustration_steps(150) == 152

    @pytest.mark.anyio
    async def test_hundred_plus_pages_render_completely(self):
        script = [
            {"pageNumber": n, "panels": [{"panelNumber": 1, "description": f"Scene {n}."}]}
            for n in range(120, 0, -1)
        ]
        gemini = FakeGemini(script=json.dumps(script))
        recorder = Recorder()

        images = await start_run(DETAILS, recorder, gemini=gemini)

        assert len(images) == 122
        assert recorder.messages[-3] == "Creating conclusion page..."
        assert recorder.progress[-2] == 100
        assert recorder.progress == sorted(recorder.progress[:-1]) + [0]

    @pytest.mark.anyio
    async def test_exhausted_step_budget_is_a_stage_failure(self, monkeypatch):
        monkeypatch.setattr(settings_module.settings, "run_recursion_margin", -1)
        recorder = Recorder()

        with pytest.raises(MangaGenerationError) as exc_info:
            await start_run(DETAILS, recorder, gemini=FakeGemini())

        assert exc_info.value.stage == STAGE_SCRIPT
        assert recorder.states[-1] == IDLE_STATE


class TestUnexpectedStageErrors:
    @pytest.mark.anyio
    async def test_unexpected_error_is_tagged_with_its_stage(self):
        gemini = FakeGemini(characters=RuntimeError("connection pool exploded"))

        with pytest.raises(MangaGenerationError) as exc_info:
            await start_run(DETAILS, gemini=gemini)

        assert exc_info.value.stage == STAGE_CHARACTER_PROFILES
        assert exc_info.value.kind == "generation"
        assert "connection pool exploded" in str(exc_info.value)
