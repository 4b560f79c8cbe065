from __future__ import annotations

import inspect
import logging
import math
import operator
import uuid
from contextlib import contextmanager
from functools import partial
from typing import Annotated, Any, Awaitable, Callable, TypedDict, Union

from langgraph.errors import GraphRecursionError
from langgraph.graph import END, StateGraph

from comic_genesis.core.exceptions import (
    STAGE_CHARACTER_PROFILES,
    STAGE_CONCLUSION_IMAGE,
    STAGE_PAGE_IMAGE,
    STAGE_SCRIPT,
    STAGE_TITLE_IMAGE,
    GenerationError,
    MangaGenerationError,
)
from comic_genesis.core.gemini_factory import build_gemini_client
from comic_genesis.core.metrics import record_run_outcome, track_run_stage
from comic_genesis.core.request_context import log_context
from comic_genesis.core.settings import settings
from comic_genesis.graphs import nodes
from comic_genesis.models import (
    IDLE_STATE,
    CharacterProfile,
    LoadingState,
    MangaPage,
    StoryDetails,
)
from comic_genesis.services.gemini import GeminiClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[LoadingState], Union[None, Awaitable[None]]]

PROGRESS_START = 0
PROGRESS_CHARACTERS = 10
PROGRESS_SCRIPT = 25
PROGRESS_TITLE = 40
PROGRESS_IMAGE_SPAN = 55
PROGRESS_DONE = 100


class MangaRunState(TypedDict, total=False):
    details: StoryDetails
    characters: list[CharacterProfile]
    pages: list[MangaPage]
    page_index: int
    completed_images: int
    reference_image: str | None
    images: Annotated[list[str], operator.add]


def image_progress(completed_images: int, page_count: int) -> int:
    """Progress after ``completed_images`` of the ``page_count + 2`` renders are done."""
    total = page_count + 2
    return PROGRESS_TITLE + math.floor(completed_images / total * PROGRESS_IMAGE_SPAN + 0.5)


class ProgressReporter:
    """Sends LoadingState updates to the caller in emission order."""

    def __init__(self, callback: ProgressCallback | None) -> None:
        self._callback = callback
        self.last: LoadingState = IDLE_STATE

    async def _send(self, state: LoadingState) -> None:
        self.last = state
        if self._callback is None:
            return
        try:
            result = self._callback(state)
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001
            logger.exception("progress callback failed progress=%s", state.progress)

    async def emit(self, message: str, progress: int) -> None:
        await self._send(LoadingState(is_loading=True, message=message, progress=progress))

    async def idle(self) -> None:
        await self._send(IDLE_STATE)


@contextmanager
def _run_stage(stage: str, page_number: int | None = None):
    """Scope logs and timing to one stage; unexpected errors become stage-tagged failures."""
    with log_context(stage=stage, page_number=page_number), track_run_stage(stage):
        try:
            yield
        except GenerationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("unexpected failure in stage %s", stage)
            raise GenerationError(f"Unexpected error: {exc}", stage=stage, detail=repr(exc)) from exc


async def _node_characters(
    state: MangaRunState,
    gemini: GeminiClient,
    reporter: ProgressReporter,
) -> dict[str, Any]:
    details = state["details"]
    await reporter.emit("Analyzing story for characters...", PROGRESS_CHARACTERS)
    with _run_stage(STAGE_CHARACTER_PROFILES):
        characters = await nodes.generate_character_profiles(gemini, details.story, details.style)
    return {"characters": characters}


async def _node_script(
    state: MangaRunState,
    gemini: GeminiClient,
    reporter: ProgressReporter,
) -> dict[str, Any]:
    details = state["details"]
    await reporter.emit("Writing manga script...", PROGRESS_SCRIPT)
    with _run_stage(STAGE_SCRIPT):
        pages = await nodes.generate_manga_script(gemini, details.story, details.style, state["characters"])
    return {"pages": pages, "page_index": 0, "completed_images": 0}


async def _node_title_page(
    state: MangaRunState,
    gemini: GeminiClient,
    reporter: ProgressReporter,
) -> dict[str, Any]:
    details = state["details"]
    await reporter.emit("Creating title page...", PROGRESS_TITLE)
    prompt = nodes.build_title_prompt(details.title, details.author, details.style, state["characters"])
    with _run_stage(STAGE_TITLE_IMAGE):
        image = await nodes.generate_page_image(gemini, prompt, stage=STAGE_TITLE_IMAGE)
    return {
        "images": [image],
        "reference_image": image,
        "completed_images": state.get("completed_images", 0) + 1,
    }


async def _node_render_page(
    state: MangaRunState,
    gemini: GeminiClient,
    reporter: ProgressReporter,
) -> dict[str, Any]:
    details = state["details"]
    pages = state["pages"]
    index = state.get("page_index", 0)
    page = pages[index]
    completed = state.get("completed_images", 0)

    await reporter.emit(
        f"Drawing page {page.page_number} of {len(pages)}...",
        image_progress(completed, len(pages)),
    )
    prompt = nodes.build_page_prompt(page, details.style, state["characters"])
    with _run_stage(STAGE_PAGE_IMAGE, page_number=page.page_number):
        image = await nodes.generate_page_image(
            gemini,
            prompt,
            stage=STAGE_PAGE_IMAGE,
            reference_image=state.get("reference_image"),
            page=page,
            style=details.style,
        )
    return {
        "images": [image],
        "reference_image": image,
        "page_index": index + 1,
        "completed_images": completed + 1,
    }


async def _node_conclusion_page(
    state: MangaRunState,
    gemini: GeminiClient,
    reporter: ProgressReporter,
) -> dict[str, Any]:
    details = state["details"]
    completed = state.get("completed_images", 0)
    await reporter.emit("Creating conclusion page...", image_progress(completed, len(state.get("pages", []))))
    prompt = nodes.build_conclusion_prompt(details.story, details.style)
    with _run_stage(STAGE_CONCLUSION_IMAGE):
        image = await nodes.generate_page_image(
            gemini,
            prompt,
            stage=STAGE_CONCLUSION_IMAGE,
            reference_image=state.get("reference_image"),
        )
    return {
        "images": [image],
        "reference_image": image,
        "completed_images": completed + 1,
    }


def _next_after_render(state: MangaRunState) -> str:
    if state.get("page_index", 0) < len(state.get("pages", [])):
        return "render_page"
    return "conclusion_page"


def build_story_graph(gemini: GeminiClient, reporter: ProgressReporter):
    """characters -> script; a fixed two-step graph."""
    graph = StateGraph(MangaRunState)

    graph.add_node("characters", partial(_node_characters, gemini=gemini, reporter=reporter))
    graph.add_node("script", partial(_node_script, gemini=gemini, reporter=reporter))

    graph.set_entry_point("characters")
    graph.add_edge("characters", "script")
    graph.add_edge("script", END)

    return graph.compile()


def build_illustration_graph(gemini: GeminiClient, reporter: ProgressReporter):
    """title_page -> render_page (once per script page) -> conclusion_page."""
    graph = StateGraph(MangaRunState)

    graph.add_node("title_page", partial(_node_title_page, gemini=gemini, reporter=reporter))
    graph.add_node("render_page", partial(_node_render_page, gemini=gemini, reporter=reporter))
    graph.add_node("conclusion_page", partial(_node_conclusion_page, gemini=gemini, reporter=reporter))

    graph.set_entry_point("title_page")
    graph.add_conditional_edges(
        "title_page",
        _next_after_render,
        {"render_page": "render_page", "conclusion_page": "conclusion_page"},
    )
    graph.add_conditional_edges(
        "render_page",
        _next_after_render,
        {"render_page": "render_page", "conclusion_page": "conclusion_page"},
    )
    graph.add_edge("conclusion_page", END)

    return graph.compile()


STORY_GRAPH_STEPS = 2


def illustration_steps(page_count: int) -> int:
    """Graph steps needed to draw the title page, every script page and the conclusion."""
    return page_count + 2


async def _invoke(graph, state: MangaRunState, steps: int, stage: str) -> MangaRunState:
    try:
        return await graph.ainvoke(
            state,
            config={"recursion_limit": steps + settings.run_recursion_margin},
        )
    except GraphRecursionError as exc:
        raise GenerationError(f"Run exceeded its step budget: {exc}", stage=stage, detail=repr(exc)) from exc


async def start_run(
    details: StoryDetails,
    on_progress: ProgressCallback | None = None,
    api_key: str | None = None,
    *,
    gemini: GeminiClient | None = None,
    run_id: uuid.UUID | str | None = None,
) -> list[str]:
    """Run the whole pipeline for one story and return the ordered images.

    Index 0 is the title page, the last image is the conclusion page and
    the images in between follow the script's page order. Progress is
    reported through ``on_progress``; the final update always clears the
    loading flag, whether the run succeeded or not.

    The script is written first so the illustration graph's step limit
    can follow the page count, however long the script is.

    Raises:
        MangaGenerationError: The first stage failure; no partial images are returned.
        GeminiNotConfiguredError: No API key was supplied or configured.
    """
    run_id = run_id or uuid.uuid4()
    reporter = ProgressReporter(on_progress)

    with log_context(run_id=run_id):
        try:
            await reporter.emit("Starting...", PROGRESS_START)
            client = gemini or build_gemini_client(api_key)
            logger.info("manga_run started title=%r style=%s", details.title, details.style.value)

            story_state = await _invoke(
                build_story_graph(client, reporter),
                {"details": details, "images": []},
                STORY_GRAPH_STEPS,
                STAGE_SCRIPT,
            )
            pages = story_state["pages"]
            final_state = await _invoke(
                build_illustration_graph(client, reporter),
                {
                    "details": details,
                    "characters": story_state["characters"],
                    "pages": pages,
                    "page_index": 0,
                    "completed_images": 0,
                    "images": [],
                },
                illustration_steps(len(pages)),
                STAGE_PAGE_IMAGE,
            )
            images = list(final_state["images"])

            await reporter.emit("Finishing up...", PROGRESS_DONE)
            record_run_outcome("succeeded")
            logger.info("manga_run finished images=%d", len(images))
            return images
        except GenerationError as exc:
            record_run_outcome("failed")
            logger.error(
                "manga_run failed stage=%s kind=%s error=%s",
                exc.stage,
                exc.kind,
                exc.detail,
            )
            raise MangaGenerationError(exc) from exc
        except Exception:
            record_run_outcome("error")
            logger.exception("manga_run aborted by unexpected error")
            raise
        finally:
            await reporter.idle()
