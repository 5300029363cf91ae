import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from churchthreads.api import (
    feeds,
    files,
    invites,
    notifications,
    organizations,
    registration,
    threads,
    uploads,
    users,
    webhooks,
)
from churchthreads.config import settings
from churchthreads.database import async_session, engine
from churchthreads.errors import ChurchThreadsError
from churchthreads.models.base import Base
from churchthreads.services import notifications as _notification_jobs  # noqa: F401  registers job handlers
from churchthreads.services.scheduler import JobScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on startup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = JobScheduler(async_session)
        scheduler.start()
    yield
    if scheduler is not None:
        await scheduler.stop()


app = FastAPI(
    title="ChurchThreads",
    description="Church community feeds, threads and messaging API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChurchThreadsError)
async def churchthreads_error_handler(request: Request, exc: ChurchThreadsError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# REST API routes
app.include_router(organizations.router)
app.include_router(registration.router)
app.include_router(users.router)
app.include_router(feeds.router)
app.include_router(threads.router)
app.include_router(invites.router)
app.include_router(notifications.router)
app.include_router(files.router)

# Upload and email webhook endpoints live outside /api
app.include_router(uploads.router)
app.include_router(webhooks.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "churchthreads"}
