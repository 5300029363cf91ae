"""Durable job scheduler."""
import asyncio
import uuid
from datetime import timedelta

import pytest

from churchthreads.models.base import as_utc, utcnow
from churchthreads.models.notification import ScheduledJob
from churchthreads.services.scheduler import (
    JobScheduler,
    cancel_pending_jobs,
    job_handler,
    pending_jobs,
    run_due_jobs,
    schedule_job,
)

ORG_ID = uuid.uuid4()
ran = []


@job_handler("test_record")
async def record(db, job):
    ran.append(job.payload["n"])


@job_handler("test_explode")
async def explode(db, job):
    raise RuntimeError("boom")


async def add_job(session_maker, name, payload=None, **kwargs) -> uuid.UUID:
    async with session_maker() as db:
        job = await schedule_job(db, ORG_ID, name, payload or {}, **kwargs)
        await db.commit()
        return job.id


async def load(session_maker, job_id) -> ScheduledJob:
    async with session_maker() as db:
        return await db.get(ScheduledJob, job_id)


@pytest.mark.asyncio
async def test_due_jobs_run_in_order(session_maker):
    ran.clear()
    later = await add_job(session_maker, "test_record", {"n": 2}, delay=timedelta(seconds=1))
    first = await add_job(session_maker, "test_record", {"n": 1})

    async with session_maker() as db:
        assert await run_due_jobs(db, now=utcnow() + timedelta(seconds=2)) == 2

    assert ran == [1, 2]
    assert (await load(session_maker, first)).status == "completed"
    assert (await load(session_maker, later)).attempts == 1


@pytest.mark.asyncio
async def test_missing_handler_fails_job(session_maker):
    job_id = await add_job(session_maker, "nobody_handles_this")

    async with session_maker() as db:
        assert await run_due_jobs(db) == 0

    job = await load(session_maker, job_id)
    assert job.status == "failed"
    assert job.last_error == "No handler registered for nobody_handles_this"


@pytest.mark.asyncio
async def test_failed_job_backs_off(session_maker, monkeypatch):
    monkeypatch.setattr("churchthreads.config.settings.scheduler_retry_seconds", 30)
    monkeypatch.setattr("churchthreads.config.settings.scheduler_max_attempts", 3)
    job_id = await add_job(session_maker, "test_explode")
    now = utcnow()

    async with session_maker() as db:
        await run_due_jobs(db, now=now)
    job = await load(session_maker, job_id)
    assert job.status == "pending"
    assert job.last_error == "boom"
    assert as_utc(job.run_at) == now + timedelta(seconds=30)

    async with session_maker() as db:
        await run_due_jobs(db, now=now + timedelta(seconds=31))
    job = await load(session_maker, job_id)
    assert as_utc(job.run_at) == now + timedelta(seconds=31 + 60)

    async with session_maker() as db:
        await run_due_jobs(db, now=now + timedelta(minutes=5))
    job = await load(session_maker, job_id)
    assert job.status == "failed"
    assert job.attempts == 3


@pytest.mark.asyncio
async def test_cancel_pending_by_dedupe_key(session_maker):
    keep = await add_job(session_maker, "test_record", {"n": 1}, dedupe_key="other")
    await add_job(session_maker, "test_record", {"n": 2}, dedupe_key="thread:1")
    await add_job(session_maker, "test_record", {"n": 3}, dedupe_key="thread:1")

    async with session_maker() as db:
        canceled = await cancel_pending_jobs(db, "thread:1")
        await db.commit()
        assert len(canceled) == 2
        assert [j.id for j in await pending_jobs(db)] == [keep]


@pytest.mark.asyncio
async def test_scheduler_loop_picks_up_jobs(session_maker):
    ran.clear()
    job_id = await add_job(session_maker, "test_record", {"n": 7})

    scheduler = JobScheduler(session_maker, poll_seconds=0.01)
    scheduler.start()
    try:
        for _ in range(500):
            if ran:
                break
            await asyncio.sleep(0.01)
    finally:
        await scheduler.stop()

    assert ran == [7]
    assert (await load(session_maker, job_id)).status == "completed"
    assert scheduler._task is None
