"""Startup and shutdown of the app: schema creation and the job scheduler."""
import pytest
import pytest_asyncio
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import churchthreads.main as main
from churchthreads.services.scheduler import JobScheduler


@pytest_asyncio.fixture
async def engine(monkeypatch):
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    monkeypatch.setattr(main, "engine", eng)
    monkeypatch.setattr(
        main, "async_session", async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)
    )
    yield eng
    await eng.dispose()


def _table_names(connection):
    return set(sa_inspect(connection).get_table_names())


@pytest.mark.asyncio
async def test_startup_creates_tables(engine, monkeypatch):
    monkeypatch.setattr("churchthreads.config.settings.scheduler_enabled", False)

    async with main.lifespan(main.app):
        async with engine.connect() as conn:
            tables = await conn.run_sync(_table_names)

    assert {
        "organizations",
        "users",
        "feeds",
        "user_feeds",
        "threads",
        "messages",
        "invites",
        "uploads",
        "notifications",
        "scheduled_jobs",
        "email_logs",
    } <= tables


@pytest.mark.asyncio
async def test_scheduler_runs_for_app_lifetime(engine, monkeypatch):
    monkeypatch.setattr("churchthreads.config.settings.scheduler_enabled", True)
    started = []
    stopped = []
    monkeypatch.setattr(JobScheduler, "start", lambda self: started.append(self))

    async def fake_stop(self):
        stopped.append(self)

    monkeypatch.setattr(JobScheduler, "stop", fake_stop)

    async with main.lifespan(main.app):
        assert len(started) == 1
        assert stopped == []

    assert stopped == started
    assert started[0].session_factory is main.async_session


@pytest.mark.asyncio
async def test_scheduler_disabled(engine, monkeypatch):
    monkeypatch.setattr("churchthreads.config.settings.scheduler_enabled", False)
    started = []
    monkeypatch.setattr(JobScheduler, "start", lambda self: started.append(self))

    async with main.lifespan(main.app):
        pass

    assert started == []
