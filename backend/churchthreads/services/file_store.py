import logging
import os
import uuid

import aiofiles
from fastapi import UploadFile
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.config import settings
from churchthreads.models.upload import Upload
from churchthreads.models.user import User

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


def storage_path(org_id: uuid.UUID, storage_key: str) -> str:
    return os.path.join(settings.upload_dir, str(org_id), storage_key)


def upload_url(upload_id: uuid.UUID) -> str:
    return f"{settings.public_base_url.rstrip('/')}/api/files/{upload_id}"


async def read_size(file: UploadFile) -> int:
    size = 0
    await file.seek(0)
    while chunk := await file.read(CHUNK_SIZE):
        size += len(chunk)
    await file.seek(0)
    return size


async def write_blob(file: UploadFile, org_id: uuid.UUID, storage_key: str) -> int:
    path = storage_path(org_id, storage_key)
    os.makedirs(os.path.dirname(path), exist_ok=True)

    written = 0
    async with aiofiles.open(path, "wb") as f:
        await file.seek(0)
        while chunk := await file.read(CHUNK_SIZE):
            await f.write(chunk)
            written += len(chunk)
    return written


def delete_blob(org_id: uuid.UUID, storage_key: str) -> None:
    try:
        os.remove(storage_path(org_id, storage_key))
    except FileNotFoundError:
        logger.warning(f"Blob {storage_key} of org {org_id} was already gone")


async def store_upload(
    db: AsyncSession,
    file: UploadFile,
    user: User,
    source: str,
    file_extension: str,
    source_id: str | None = None,
) -> Upload:
    storage_key = f"{uuid.uuid4()}.{file_extension}"
    try:
        file_size = await write_blob(file, user.org_id, storage_key)
    except OSError:
        if os.path.exists(storage_path(user.org_id, storage_key)):
            delete_blob(user.org_id, storage_key)
        raise

    upload = Upload(
        org_id=user.org_id,
        user_id=user.id,
        storage_key=storage_key,
        source=source,
        source_id=source_id,
        file_extension=file_extension,
        mime_type=file.content_type or "application/octet-stream",
        file_size=file_size,
    )
    db.add(upload)
    await db.flush()
    return upload


async def avatar_uploads(db: AsyncSession, user: User) -> list[Upload]:
    result = await db.execute(
        select(Upload).where(and_(Upload.user_id == user.id, Upload.source == "avatar"))
    )
    return list(result.scalars().all())


async def store_avatar(
    db: AsyncSession, file: UploadFile, user: User, file_extension: str
) -> Upload:
    """Stores a new avatar for ``user`` and then drops the previous ones.

    Old blobs are removed only once the new record is flushed, so a failed
    write leaves the current avatar in place.
    """
    previous = await avatar_uploads(db, user)
    upload = await store_upload(
        db, file, user, "avatar", file_extension, source_id=str(user.id)
    )
    user.image_upload_id = upload.id
    await db.flush()

    for old in previous:
        await db.delete(old)
    await db.flush()
    for old in previous:
        delete_blob(old.org_id, old.storage_key)
    return upload


async def get_upload(db: AsyncSession, upload_id: uuid.UUID) -> tuple[Upload, str] | None:
    upload = await db.get(Upload, upload_id)
    if upload is None:
        return None
    path = storage_path(upload.org_id, upload.storage_key)
    if not os.path.exists(path):
        return None
    return upload, path
