import uuid

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.errors import NotFound, ValidationFailed
from churchthreads.models.feed import Feed
from churchthreads.models.thread import Message, Thread
from churchthreads.models.user import User
from churchthreads.services.auth import require_feed_permission
from churchthreads.services.content import is_valid_content
from churchthreads.services.notifications import send_notifications
from churchthreads.validation import ValidationError

MAX_PAGE_SIZE = 100


def _check_content(content: str) -> str:
    if not is_valid_content(content):
        raise ValidationFailed([ValidationError("content", "Content is required")])
    return content


async def create_thread(db: AsyncSession, user: User, feed: Feed, content: str) -> Thread:
    await require_feed_permission(db, user, feed, "post")
    thread = Thread(
        org_id=feed.org_id,
        feed_id=feed.id,
        poster_id=user.id,
        content=_check_content(content),
    )
    db.add(thread)
    await db.flush()

    await send_notifications(
        db,
        feed.org_id,
        "new_thread_in_member_feed",
        {"userId": user.id, "feedId": feed.id, "threadId": thread.id},
    )
    return thread


async def get_thread(db: AsyncSession, feed: Feed, thread_id: uuid.UUID) -> Thread:
    thread = await db.get(Thread, thread_id)
    if thread is None or thread.feed_id != feed.id:
        raise NotFound("Thread not found")
    return thread


async def list_threads(
    db: AsyncSession,
    feed: Feed,
    limit: int = 20,
    cursor: uuid.UUID | None = None,
) -> tuple[list[tuple[Thread, User, int]], uuid.UUID | None]:
    """Threads of a feed, newest first.

    ``cursor`` is the id of the last thread of the previous page; the returned
    cursor is ``None`` once there are no more pages.
    """
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    message_count = (
        select(func.count(Message.id))
        .where(Message.thread_id == Thread.id)
        .correlate(Thread)
        .scalar_subquery()
    )
    query = (
        select(Thread, User, message_count)
        .join(User, Thread.poster_id == User.id)
        .where(Thread.feed_id == feed.id)
    )
    if cursor is not None:
        last = await db.get(Thread, cursor)
        if last is None or last.feed_id != feed.id:
            raise NotFound("Invalid cursor")
        query = query.where(
            or_(
                Thread.posted_at < last.posted_at,
                and_(Thread.posted_at == last.posted_at, Thread.id < last.id),
            )
        )

    result = await db.execute(
        query.order_by(Thread.posted_at.desc(), Thread.id.desc()).limit(limit + 1)
    )
    rows = [(thread, poster, count) for thread, poster, count in result.all()]
    next_cursor = rows[limit - 1][0].id if len(rows) > limit else None
    return rows[:limit], next_cursor


async def create_message(
    db: AsyncSession, user: User, feed: Feed, thread: Thread, content: str
) -> Message:
    await require_feed_permission(db, user, feed, "message")
    message = Message(
        org_id=thread.org_id,
        thread_id=thread.id,
        sender_id=user.id,
        content=_check_content(content),
    )
    db.add(message)
    await db.flush()

    await send_notifications(
        db,
        thread.org_id,
        "new_message_in_thread",
        {
            "userId": user.id,
            "threadId": thread.id,
            "feedId": feed.id,
            "messageContent": content,
        },
    )
    return message


async def list_messages(
    db: AsyncSession, thread: Thread, limit: int = 50, offset: int = 0
) -> list[tuple[Message, User]]:
    """Messages of a thread, oldest first."""
    result = await db.execute(
        select(Message, User)
        .join(User, Message.sender_id == User.id)
        .where(Message.thread_id == thread.id)
        .order_by(Message.created_at, Message.id)
        .offset(offset)
        .limit(max(1, min(limit, MAX_PAGE_SIZE)))
    )
    return [(message, sender) for message, sender in result.all()]
