import uuid
from datetime import datetime

from pydantic import BaseModel

from churchthreads.schemas.user import UserBrief


class ThreadCreate(BaseModel):
    content: str  # TipTap JSON or HTML


class ThreadOut(BaseModel):
    id: uuid.UUID
    feed_id: uuid.UUID
    poster: UserBrief
    content: str
    html: str
    posted_at: datetime
    message_count: int = 0


class ThreadPage(BaseModel):
    threads: list[ThreadOut]
    next_cursor: uuid.UUID | None = None


class MessageCreate(BaseModel):
    content: str


class MessageOut(BaseModel):
    id: uuid.UUID
    thread_id: uuid.UUID
    sender: UserBrief
    content: str
    html: str
    created_at: datetime
