import uuid

from pydantic import BaseModel


class UploadResult(BaseModel):
    uploadId: uuid.UUID
    url: str


class UploadError(BaseModel):
    error: str
    details: list[str] | None = None
