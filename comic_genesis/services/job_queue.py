import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import threading
import uuid
from typing import Any, Awaitable, Callable

from comic_genesis.core.request_context import reset_request_id, set_request_id
from comic_genesis.core.settings import settings

logger = logging.getLogger(__name__)

JobHandler = Callable[["JobRecord"], Awaitable[dict | None]]

TERMINAL_STATUSES = frozenset({"succeeded", "failed", "cancelled"})


@dataclass
class JobRecord:
    job_id: uuid.UUID
    job_type: str
    status: str
    created_at: datetime
    updated_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
    request_id: str | None = None
    result: dict | None = None
    error: str | None = None
    progress: dict | None = None
    handler: JobHandler | None = None


_jobs: dict[uuid.UUID, JobRecord] = {}
_jobs_lock = threading.Lock()
_artifact_lock = threading.Lock()
_queue: asyncio.Queue[uuid.UUID] | None = None
_worker_task: asyncio.Task | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enqueue_job(
    job_type: str,
    payload: dict[str, Any],
    handler: JobHandler,
    *,
    request_id: str | None = None,
) -> JobRecord:
    if _queue is None:
        raise RuntimeError("job queue is not running")

    job_id = uuid.uuid4()
    now = _utcnow()
    job = JobRecord(
        job_id=job_id,
        job_type=job_type,
        status="queued",
        created_at=now,
        updated_at=now,
        payload=payload,
        request_id=request_id,
        handler=handler,
    )
    with _jobs_lock:
        _jobs[job_id] = job

    _queue.put_nowait(job_id)
    return job


def get_job(job_id: uuid.UUID) -> JobRecord | None:
    with _jobs_lock:
        return _jobs.get(job_id)


def update_job_progress(job_id: uuid.UUID, progress: dict) -> None:
    with _jobs_lock:
        job = _jobs.get(job_id)
        if job is None:
            return
        job.progress = progress
        job.updated_at = _utcnow()


def ensure_job_artifact(job: JobRecord, key: str, build: Callable[[dict], Any]) -> Any:
    """Return ``job.result[key]``, building it at most once per job.

    ``build`` runs outside the jobs lock so slow artifacts never stall
    progress updates from the worker.
    """
    with _artifact_lock:
        with _jobs_lock:
            if job.result is None:
                raise RuntimeError(f"job {job.job_id} has no result")
            existing = job.result.get(key)
            result = dict(job.result)
        if existing is not None:
            return existing

        value = build(result)
        with _jobs_lock:
            job.result[key] = value
        return value


def prune_finished_jobs(
    max_age_seconds: float,
    max_finished: int,
    *,
    now: datetime | None = None,
) -> int:
    """Forget finished jobs older than ``max_age_seconds`` and beyond the newest ``max_finished``."""
    now = now or _utcnow()
    with _jobs_lock:
        finished = sorted(
            (job for job in _jobs.values() if job.status in TERMINAL_STATUSES),
            key=lambda job: job.updated_at,
            reverse=True,
        )
        expired = [
            job
            for index, job in enumerate(finished)
            if index >= max_finished or (now - job.updated_at).total_seconds() > max_age_seconds
        ]
        for job in expired:
            del _jobs[job.job_id]

    if expired:
        logger.info("pruned finished jobs count=%d", len(expired))
    return len(expired)


def cancel_job(job_id: uuid.UUID) -> JobRecord | None:
    """Cancel a job that has not started yet; started jobs run to completion."""
    with _jobs_lock:
        job = _jobs.get(job_id)
        if job is None:
            return None
        if job.status == "queued":
            job.status = "cancelled"
            job.updated_at = _utcnow()
        return job


async def _run_job(job: JobRecord) -> None:
    with _jobs_lock:
        job.status = "running"
        job.updated_at = _utcnow()

    token = set_request_id(job.request_id or str(job.job_id))
    try:
        if job.handler is None:
            raise RuntimeError("job handler missing")
        result = await job.handler(job)
    except Exception as exc:  # noqa: BLE001
        logger.warning("job failed job_id=%s type=%s error=%s", job.job_id, job.job_type, exc)
        with _jobs_lock:
            job.status = "failed"
            job.error = str(exc)
            job.updated_at = _utcnow()
    else:
        with _jobs_lock:
            job.status = "succeeded"
            job.result = result
            job.updated_at = _utcnow()
    finally:
        with _jobs_lock:
            job.handler = None
        reset_request_id(token)


async def _worker_loop() -> None:
    assert _queue is not None
    while True:
        job_id = await _queue.get()
        try:
            job = get_job(job_id)
            if job is None or job.status == "cancelled":
                continue
            await _run_job(job)
            prune_finished_jobs(settings.job_retention_seconds, settings.job_max_finished)
        finally:
            _queue.task_done()


async def start_worker() -> None:
    global _queue, _worker_task
    if _worker_task is not None:
        return
    _queue = asyncio.Queue()
    _worker_task = asyncio.create_task(_worker_loop())


async def stop_worker() -> None:
    global _worker_task, _queue
    if _worker_task is None:
        return
    _worker_task.cancel()
    try:
        await _worker_task
    except asyncio.CancelledError:
        pass
    _worker_task = None
    _queue = None


async def wait_idle() -> None:
    """Block until every queued job has been processed."""
    if _queue is not None:
        await _queue.join()
