"""Multipart upload endpoint for thread, message and avatar images.

Responses keep the ``{"uploadId", "url"}`` / ``{"error"}`` shape the web
client expects instead of the API-wide ``{"detail"}`` errors.
"""
import logging
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from churchthreads.database import get_db
from churchthreads.errors import NotFound
from churchthreads.models.upload import UPLOAD_SOURCES
from churchthreads.models.user import User
from churchthreads.services.auth import check_feed_permission, get_optional_user
from churchthreads.services.feeds import get_feed
from churchthreads.services.file_store import (
    read_size,
    store_avatar,
    store_upload,
    upload_url,
)
from churchthreads.validation import get_file_extension, validate_file

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])

SOURCE_ACTIONS = {"thread": "post", "message": "message"}


def upload_error(message: str, status_code: int = 400, details: str | None = None) -> JSONResponse:
    body = {"error": message}
    if details:
        body["details"] = details
    return JSONResponse(body, status_code=status_code)


def _parse_uuid(value) -> uuid.UUID | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


@router.post("/upload")
async def upload(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
):
    try:
        form = await request.form()
    except Exception as e:
        return upload_error("Failed to parse form data", details=str(e))

    file = form.get("file")
    if not isinstance(file, UploadFile):
        return upload_error("Missing or invalid file")
    file_name = form.get("fileName")
    if not isinstance(file_name, str) or not file_name:
        return upload_error("Missing fileName")
    org_id = _parse_uuid(form.get("orgId"))
    if org_id is None:
        return upload_error("Missing orgId")
    source = form.get("source")
    if source not in UPLOAD_SOURCES:
        return upload_error("Invalid source. Must be 'thread', 'message', or 'avatar'")
    source_id = form.get("sourceId") or None
    feed_id = _parse_uuid(form.get("feedId"))

    if current_user is None:
        return upload_error("Authentication failed", 401)
    if current_user.org_id != org_id:
        return upload_error("You are not a member of this organization", 403)

    if source in SOURCE_ACTIONS:
        if feed_id is None:
            return upload_error("feedId is required for thread/message uploads")
        try:
            feed = await get_feed(db, org_id, feed_id)
        except NotFound as e:
            return upload_error(e.message, 403)
        allowed, reason = await check_feed_permission(db, current_user, feed, SOURCE_ACTIONS[source])
        if not allowed:
            return upload_error(reason or "Unauthorized to upload to this feed", 403)

    size = await read_size(file)
    validation = validate_file(file.content_type, size, source)
    if not validation.valid:
        messages = ", ".join(e.message for e in validation.errors)
        return upload_error(f"File validation failed: {messages}")

    file_extension = get_file_extension(file_name)
    if not file_extension:
        return upload_error("Invalid file name: no extension found")

    try:
        if source == "avatar":
            record = await store_avatar(db, file, current_user, file_extension)
        else:
            record = await store_upload(
                db, file, current_user, source, file_extension, source_id=source_id
            )
    except OSError as e:
        logger.error(f"Storing {source} upload for {current_user.id} failed: {e}")
        return upload_error("Failed to upload file to storage", 500, details=str(e))

    logger.info(f"Stored {source} upload {record.id} ({size} bytes) for {current_user.id}")
    return {"uploadId": str(record.id), "url": upload_url(record.id)}
