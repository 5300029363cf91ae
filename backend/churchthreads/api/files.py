import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.database import get_db
from churchthreads.services.file_store import get_upload

router = APIRouter(prefix="/api/files", tags=["files"])


@router.get("/{upload_id}")
async def download_file(
    upload_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Serves a stored upload; ids are unguessable so images embed without auth."""
    result = await get_upload(db, upload_id)
    if not result:
        raise HTTPException(status_code=404, detail="File not found")

    upload, path = result
    return FileResponse(
        path=path,
        filename=f"{upload.id}.{upload.file_extension}",
        media_type=upload.mime_type,
        content_disposition_type="inline",
    )
