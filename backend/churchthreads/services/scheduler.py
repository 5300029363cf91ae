"""Durable delayed jobs backed by the ``scheduled_jobs`` table.

Jobs are rows; a background loop started by the app lifespan picks up due
rows and runs the handler registered under the job's name. Failed jobs are
retried with linear back-off until ``scheduler_max_attempts`` is reached.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.config import settings
from churchthreads.models.base import utcnow
from churchthreads.models.notification import ScheduledJob

logger = logging.getLogger(__name__)

JobHandler = Callable[[AsyncSession, ScheduledJob], Awaitable[None]]

_handlers: dict[str, JobHandler] = {}


def job_handler(name: str):
    def decorator(func: JobHandler) -> JobHandler:
        _handlers[name] = func
        return func

    return decorator


async def schedule_job(
    db: AsyncSession,
    org_id: uuid.UUID,
    name: str,
    payload: dict,
    delay: timedelta | None = None,
    dedupe_key: str | None = None,
) -> ScheduledJob:
    job = ScheduledJob(
        org_id=org_id,
        name=name,
        payload=payload,
        run_at=utcnow() + (delay or timedelta(0)),
        dedupe_key=dedupe_key,
        status="pending",
        attempts=0,
    )
    db.add(job)
    await db.flush()
    return job


async def pending_jobs(
    db: AsyncSession, name: str | None = None, dedupe_key: str | None = None
) -> list[ScheduledJob]:
    query = select(ScheduledJob).where(ScheduledJob.status == "pending")
    if name:
        query = query.where(ScheduledJob.name == name)
    if dedupe_key:
        query = query.where(ScheduledJob.dedupe_key == dedupe_key)
    result = await db.execute(query.order_by(ScheduledJob.run_at))
    return list(result.scalars().all())


async def cancel_pending_jobs(db: AsyncSession, dedupe_key: str) -> list[ScheduledJob]:
    jobs = await pending_jobs(db, dedupe_key=dedupe_key)
    for job in jobs:
        job.status = "canceled"
    await db.flush()
    return jobs


async def run_job(db: AsyncSession, job: ScheduledJob, now: datetime | None = None) -> bool:
    now = now or utcnow()
    handler = _handlers.get(job.name)
    job.attempts += 1

    if handler is None:
        job.status = "failed"
        job.last_error = f"No handler registered for {job.name}"
        logger.error(job.last_error)
        await db.commit()
        return False

    job_id, job_name = job.id, job.name
    job.status = "running"
    await db.commit()
    try:
        await handler(db, job)
    except Exception as e:
        await db.rollback()
        job = await db.get(ScheduledJob, job_id)
        job.last_error = str(e)
        if job.attempts >= settings.scheduler_max_attempts:
            job.status = "failed"
            logger.error(f"Job {job_name} ({job_id}) failed permanently: {e}")
        else:
            job.status = "pending"
            job.run_at = now + timedelta(seconds=settings.scheduler_retry_seconds * job.attempts)
            logger.warning(f"Job {job_name} ({job_id}) failed, retrying: {e}")
        await db.commit()
        return False

    job.status = "completed"
    job.last_error = None
    await db.commit()
    return True


async def run_due_jobs(db: AsyncSession, now: datetime | None = None) -> int:
    """Runs every pending job whose ``run_at`` has passed; returns how many succeeded."""
    now = now or utcnow()
    result = await db.execute(
        select(ScheduledJob.id)
        .where(and_(ScheduledJob.status == "pending", ScheduledJob.run_at <= now))
        .order_by(ScheduledJob.run_at)
    )
    job_ids = list(result.scalars().all())

    completed = 0
    for job_id in job_ids:
        # Re-fetch: a failed job rolls the session back and expires loaded rows
        job = await db.get(ScheduledJob, job_id)
        if job is None or job.status != "pending":
            continue
        if await run_job(db, job, now):
            completed += 1
    return completed


class JobScheduler:
    """Polls for due jobs until stopped."""

    def __init__(self, session_factory, poll_seconds: float | None = None):
        self.session_factory = session_factory
        self.poll_seconds = poll_seconds or settings.scheduler_poll_seconds
        self._task: asyncio.Task | None = None
        self._stopped = asyncio.Event()

    async def _loop(self):
        while not self._stopped.is_set():
            try:
                async with self.session_factory() as db:
                    await run_due_jobs(db)
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}")
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        if self._task is None:
            self._stopped.clear()
            self._task = asyncio.create_task(self._loop())
            logger.info("Job scheduler started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopped.set()
        await self._task
        self._task = None
        logger.info("Job scheduler stopped")
