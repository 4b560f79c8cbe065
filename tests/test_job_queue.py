"""Tests for the in-process run queue."""

import asyncio
import threading
import time
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from comic_genesis.core import settings as settings_module
from comic_genesis.core.request_context import get_request_id
from comic_genesis.services import job_queue


@pytest.fixture()
async def worker():
    await job_queue.start_worker()
    try:
        yield
    finally:
        await job_queue.stop_worker()


def test_enqueue_requires_running_worker():
    async def handler(job):
        return None

    with pytest.raises(RuntimeError):
        job_queue.enqueue_job("manga_run", {}, handler)


@pytest.mark.anyio
async def test_successful_job(worker):
    seen = {}

    async def handler(job):
        seen["request_id"] = get_request_id()
        job_queue.update_job_progress(job.job_id, {"progress": 50})
        return {"images": ["a"]}

    job = job_queue.enqueue_job("manga_run", {"n": 1}, handler, request_id="req-1")
    await job_queue.wait_idle()

    assert job.status == "succeeded"
    assert job.result == {"images": ["a"]}
    assert job.progress == {"progress": 50}
    assert seen["request_id"] == "req-1"
    assert job_queue.get_job(job.job_id) is job


@pytest.mark.anyio
async def test_failed_job_records_error(worker):
    async def handler(job):
        raise ValueError("bad story")

    job = job_queue.enqueue_job("manga_run", {}, handler)
    await job_queue.wait_idle()

    assert job.status == "failed"
    assert job.error == "bad story"
    assert job.result is None


@pytest.mark.anyio
async def test_jobs_run_one_at_a_time(worker):
    release = asyncio.Event()
    order = []

    async def first(job):
        order.append("first-start")
        await release.wait()
        order.append("first-end")

    async def second(job):
        order.append("second")

    job_queue.enqueue_job("manga_run", {}, first)
    job_queue.enqueue_job("manga_run", {}, second)
    await asyncio.sleep(0.01)
    release.set()
    await job_queue.wait_idle()

    assert order == ["first-start", "first-end", "second"]


@pytest.mark.anyio
async def test_cancel_only_affects_queued_jobs(worker):
    release = asyncio.Event()
    ran = []

    async def blocking(job):
        await release.wait()

    async def never(job):
        ran.append(job.job_id)

    running = job_queue.enqueue_job("manga_run", {}, blocking)
    queued = job_queue.enqueue_job("manga_run", {}, never)
    await asyncio.sleep(0.01)

    assert job_queue.cancel_job(queued.job_id).status == "cancelled"
    assert job_queue.cancel_job(running.job_id).status == "running"

    release.set()
    await job_queue.wait_idle()

    assert ran == []
    assert queued.status == "cancelled"
    assert running.status == "succeeded"


def test_cancel_unknown_job():
    assert job_queue.cancel_job(uuid.uuid4()) is None


@pytest.mark.anyio
async def test_finished_jobs_expire_after_retention(worker):
    async def handler(job):
        return {"images": ["a"]}

    job = job_queue.enqueue_job("manga_run", {}, handler)
    await job_queue.wait_idle()
    assert job_queue.get_job(job.job_id) is job

    removed = job_queue.prune_finished_jobs(60, 100, now=job.updated_at + timedelta(hours=2))

    assert removed >= 1
    assert job_queue.get_job(job.job_id) is None


@pytest.mark.anyio
async def test_only_newest_finished_jobs_are_kept(worker, monkeypatch):
    monkeypatch.setattr(settings_module.settings, "job_max_finished", 1)

    async def handler(job):
        return {"images": ["a"]}

    older = job_queue.enqueue_job("manga_run", {}, handler)
    newer = job_queue.enqueue_job("manga_run", {}, handler)
    await job_queue.wait_idle()

    assert job_queue.get_job(older.job_id) is None
    assert job_queue.get_job(newer.job_id) is newer
    assert newer.handler is None


@pytest.mark.anyio
async def test_unfinished_jobs_are_never_pruned(worker):
    release = asyncio.Event()

    async def blocking(job):
        await release.wait()

    running = job_queue.enqueue_job("manga_run", {}, blocking)
    queued = job_queue.enqueue_job("manga_run", {}, blocking)
    await asyncio.sleep(0.01)

    job_queue.prune_finished_jobs(0, 0, now=datetime.now(timezone.utc) + timedelta(days=1))

    assert job_queue.get_job(running.job_id) is running
    assert job_queue.get_job(queued.job_id) is queued
    release.set()
    await job_queue.wait_idle()


def test_artifact_is_built_once_under_concurrency():
    now = datetime.now(timezone.utc)
    job = job_queue.JobRecord(
        job_id=uuid.uuid4(),
        job_type="manga_run",
        status="succeeded",
        created_at=now,
        updated_at=now,
        result={"images": ["a"]},
    )
    builds = []
    start = threading.Barrier(4)
    results = []

    def build(result):
        builds.append(result["images"])
        time.sleep(0.05)
        return "/tmp/run.pdf"

    def download():
        start.wait()
        results.append(job_queue.ensure_job_artifact(job, "pdf_path", build))

    threads = [threading.Thread(target=download) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(builds) == 1
    assert results == ["/tmp/run.pdf"] * 4
    assert job.result["pdf_path"] == "/tmp/run.pdf"
