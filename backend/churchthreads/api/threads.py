import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.database import get_db
from churchthreads.models.thread import Message, Thread
from churchthreads.models.user import User
from churchthreads.schemas.thread import (
    MessageCreate,
    MessageOut,
    ThreadCreate,
    ThreadOut,
    ThreadPage,
)
from churchthreads.schemas.user import UserBrief
from churchthreads.services.auth import get_org_user
from churchthreads.services.content import from_json_to_html
from churchthreads.services.feeds import get_readable_feed
from churchthreads.services.threads import (
    create_message,
    create_thread,
    get_thread,
    list_messages,
    list_threads,
)

router = APIRouter(prefix="/api/orgs/{org_id}/feeds/{feed_id}/threads", tags=["threads"])


def thread_out(thread: Thread, poster: User, message_count: int = 0) -> ThreadOut:
    return ThreadOut(
        id=thread.id,
        feed_id=thread.feed_id,
        poster=UserBrief.model_validate(poster),
        content=thread.content,
        html=from_json_to_html(thread.content),
        posted_at=thread.posted_at,
        message_count=message_count,
    )


def message_out(message: Message, sender: User) -> MessageOut:
    return MessageOut(
        id=message.id,
        thread_id=message.thread_id,
        sender=UserBrief.model_validate(sender),
        content=message.content,
        html=from_json_to_html(message.content),
        created_at=message.created_at,
    )


@router.post("/", response_model=ThreadOut, status_code=status.HTTP_201_CREATED)
async def post_thread(
    feed_id: uuid.UUID,
    data: ThreadCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feed = await get_readable_feed(db, current_user, feed_id)
    thread = await create_thread(db, current_user, feed, data.content)
    return thread_out(thread, current_user)


@router.get("/", response_model=ThreadPage)
async def get_threads(
    feed_id: uuid.UUID,
    limit: int = Query(20, ge=1, le=100),
    cursor: uuid.UUID | None = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feed = await get_readable_feed(db, current_user, feed_id)
    rows, next_cursor = await list_threads(db, feed, limit=limit, cursor=cursor)
    return ThreadPage(
        threads=[thread_out(thread, poster, count) for thread, poster, count in rows],
        next_cursor=next_cursor,
    )


@router.get("/{thread_id}", response_model=ThreadOut)
async def get_one(
    feed_id: uuid.UUID,
    thread_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feed = await get_readable_feed(db, current_user, feed_id)
    thread = await get_thread(db, feed, thread_id)
    poster = await db.get(User, thread.poster_id)
    return thread_out(thread, poster)


@router.post(
    "/{thread_id}/messages",
    response_model=MessageOut,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    feed_id: uuid.UUID,
    thread_id: uuid.UUID,
    data: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feed = await get_readable_feed(db, current_user, feed_id)
    thread = await get_thread(db, feed, thread_id)
    message = await create_message(db, current_user, feed, thread, data.content)
    return message_out(message, current_user)


@router.get("/{thread_id}/messages", response_model=list[MessageOut])
async def get_messages(
    feed_id: uuid.UUID,
    thread_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_org_user),
):
    feed = await get_readable_feed(db, current_user, feed_id)
    thread = await get_thread(db, feed, thread_id)
    return [
        message_out(message, sender)
        for message, sender in await list_messages(db, thread, limit=limit, offset=offset)
    ]
