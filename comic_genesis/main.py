from contextlib import asynccontextmanager
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse, PlainTextResponse

from comic_genesis.api.v1.router import api_router
from comic_genesis.core.exceptions import AppError, ConfigurationError, MangaGenerationError
from comic_genesis.core.logging import configure_logging
from comic_genesis.core.metrics import get_metrics_payload
from comic_genesis.core.request_context import (
    get_run_id,
    get_stage,
    reset_request_id,
    set_request_id,
)
from comic_genesis.core.settings import settings
from comic_genesis.services import job_queue


logger = logging.getLogger("comic_genesis")


def _is_polling_request(method: str, path: str) -> bool:
    if method != "GET":
        return False
    if path.startswith("/v1/runs/") and path.count("/") == 3:
        return True
    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_file)

    await job_queue.start_worker()
    try:
        yield
    finally:
        await job_queue.stop_worker()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(
    settings.media_url_prefix,
    StaticFiles(directory=settings.media_root, check_dir=False),
    name="media",
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = set_request_id(request_id)
    start = time.perf_counter()
    try:
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "duration_ms": duration_ms,
                },
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        request_logger = logger.debug if _is_polling_request(request.method, request.url.path) else logger.info
        request_logger(
            "request_complete",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "active_run_id": get_run_id(),
                "active_stage": get_stage(),
            },
        )
        response.headers["x-request-id"] = request_id
        return response
    finally:
        reset_request_id(token)


def _error_response(request: Request, status_code: int, exc: AppError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    content = {"detail": str(exc), "request_id": request_id}
    stage = getattr(exc, "stage", None)
    if stage:
        content["stage"] = stage
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return _error_response(request, 400, exc)


@app.exception_handler(MangaGenerationError)
async def generation_error_handler(request: Request, exc: MangaGenerationError):
    return _error_response(request, 502, exc)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return _error_response(request, 500, exc)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "request_id": request_id},
    )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/metrics")
def metrics_endpoint():
    return PlainTextResponse(get_metrics_payload(), media_type="text/plain; version=0.0.4; charset=utf-8")


app.include_router(api_router)
