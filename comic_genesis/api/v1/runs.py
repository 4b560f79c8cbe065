import logging
import uuid

from fastapi import APIRouter, Header, HTTPException, Request, Response
from fastapi.responses import FileResponse

from comic_genesis.api.v1.schemas import RunImagesRead, RunStatusRead
from comic_genesis.core.gemini_factory import resolve_api_key
from comic_genesis.core.settings import settings
from comic_genesis.graphs.manga_run import start_run
from comic_genesis.models import LoadingState, StoryDetails
from comic_genesis.services import job_queue
from comic_genesis.services.pdf_export import safe_filename, save_manga_pdf
from comic_genesis.services.storage import LocalMediaStore


router = APIRouter(tags=["runs"])
logger = logging.getLogger(__name__)

JOB_TYPE_MANGA_RUN = "manga_run"


def _run_or_404(run_id: uuid.UUID) -> job_queue.JobRecord:
    job = job_queue.get_job(run_id)
    if job is None or job.job_type != JOB_TYPE_MANGA_RUN:
        raise HTTPException(status_code=404, detail="run not found")
    return job


def _succeeded_or_409(job: job_queue.JobRecord) -> dict:
    if job.status != "succeeded" or job.result is None:
        raise HTTPException(status_code=409, detail=f"run is {job.status}")
    return job.result


def _to_read(job: job_queue.JobRecord) -> RunStatusRead:
    result = job.result or {}
    return RunStatusRead(
        run_id=job.job_id,
        status=job.status,
        title=job.payload["details"]["title"],
        created_at=job.created_at,
        updated_at=job.updated_at,
        loading=LoadingState.model_validate(job.progress) if job.progress else None,
        image_count=len(result.get("images", [])),
        error=job.error,
    )


def _make_handler(details: StoryDetails, api_key: str):
    async def handler(job: job_queue.JobRecord) -> dict:
        def on_progress(state: LoadingState) -> None:
            job_queue.update_job_progress(job.job_id, state.model_dump(mode="json", by_alias=True))

        images = await start_run(details, on_progress, api_key, run_id=job.job_id)
        return {"images": images}

    return handler


@router.post("/runs", response_model=RunStatusRead, status_code=202)
async def create_run(
    details: StoryDetails,
    request: Request,
    x_gemini_api_key: str | None = Header(default=None),
):
    api_key = resolve_api_key(x_gemini_api_key)
    job = job_queue.enqueue_job(
        JOB_TYPE_MANGA_RUN,
        {"details": details.model_dump(mode="json")},
        _make_handler(details, api_key),
        request_id=getattr(request.state, "request_id", None),
    )
    logger.info("manga_run queued run_id=%s", job.job_id)
    return _to_read(job)


@router.get("/runs/{run_id}", response_model=RunStatusRead)
def get_run(run_id: uuid.UUID):
    return _to_read(_run_or_404(run_id))


@router.get("/runs/{run_id}/images", response_model=RunImagesRead)
def get_run_images(run_id: uuid.UUID):
    job = _run_or_404(run_id)
    result = _succeeded_or_409(job)
    return RunImagesRead(run_id=job.job_id, title=job.payload["details"]["title"], images=result["images"])


@router.get("/runs/{run_id}/pdf")
def download_run_pdf(run_id: uuid.UUID):
    job = _run_or_404(run_id)
    _succeeded_or_409(job)
    title = job.payload["details"]["title"]

    def build(stored: dict) -> str:
        store = LocalMediaStore(root_dir=settings.media_root, url_prefix=settings.media_url_prefix)
        pdf_path, pdf_url = save_manga_pdf(stored["images"], title, store)
        logger.info("manga_run pdf saved run_id=%s url=%s", job.job_id, pdf_url)
        return pdf_path

    pdf_path = job_queue.ensure_job_artifact(job, "pdf_path", build)

    return FileResponse(pdf_path, media_type="application/pdf", filename=safe_filename(title))


@router.post("/runs/{run_id}/cancel", response_model=RunStatusRead)
def cancel_run(run_id: uuid.UUID, response: Response):
    _run_or_404(run_id)
    job = job_queue.cancel_job(run_id)
    if job.status != "cancelled":
        raise HTTPException(status_code=409, detail=f"run is {job.status} and cannot be cancelled")
    response.status_code = 202
    return _to_read(job)
