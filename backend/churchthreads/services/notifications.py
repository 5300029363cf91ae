"""In-app notifications and batched, de-duplicated email dispatch.

``send_notifications`` resolves who should hear about an event,
``schedule_notifications`` records one in-app notification per recipient and
schedules exactly one ``send_email_notifications`` job per event. Message
notifications are held back for a delay window; a newer message in the same
thread replaces the still-pending job instead of adding another.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from churchthreads.config import settings
from churchthreads.errors import EmailDeliveryError, NotFound
from churchthreads.models.base import utcnow
from churchthreads.models.feed import Feed, UserFeed
from churchthreads.models.notification import NOTIFICATION_TYPES, Notification, ScheduledJob
from churchthreads.models.organization import Organization
from churchthreads.models.thread import Message, Thread
from churchthreads.models.user import User
from churchthreads.services import email_templates
from churchthreads.services.content import from_json_to_plain_text
from churchthreads.services.email import send_email
from churchthreads.services.scheduler import (
    cancel_pending_jobs,
    job_handler,
    schedule_job,
)

logger = logging.getLogger(__name__)

SEND_EMAIL_JOB = "send_email_notifications"
DELAYED_TYPES = ("new_message_in_thread",)
PREVIEW_LENGTH = 200


@dataclass
class Recipient:
    user_id: uuid.UUID
    preferences: list[str] = field(default_factory=list)


def email_delay(notification_type: str) -> timedelta:
    if notification_type in DELAYED_TYPES:
        return timedelta(minutes=settings.message_notification_delay_minutes)
    return timedelta(0)


def dedupe_key_for(notification_type: str, data: dict) -> str | None:
    if notification_type == "new_message_in_thread":
        return f"{notification_type}:{data['threadId']}"
    return None


def _stringify(data: dict) -> dict:
    return {k: (str(v) if isinstance(v, uuid.UUID) else v) for k, v in data.items()}


async def schedule_notifications(
    db: AsyncSession,
    org_id: uuid.UUID,
    notification_type: str,
    data: dict,
    recipients: list[Recipient],
) -> tuple[list[Notification], ScheduledJob | None]:
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type {notification_type}")
    data = _stringify(data)

    notifications = []
    for recipient in recipients:
        notification = Notification(
            org_id=org_id,
            user_id=recipient.user_id,
            type=notification_type,
            data=data,
        )
        db.add(notification)
        notifications.append(notification)
    await db.flush()

    email_recipients = {
        str(n.user_id): str(n.id)
        for n, r in zip(notifications, recipients)
        if "email" in r.preferences
    }

    dedupe_key = dedupe_key_for(notification_type, data)
    if dedupe_key:
        # Fold recipients of the replaced job in, minus whoever triggered this one
        for previous in await cancel_pending_jobs(db, dedupe_key):
            for item in previous.payload.get("recipients", []):
                email_recipients.setdefault(item["userId"], item["notificationId"])
        email_recipients.pop(data.get("userId"), None)

    if not email_recipients:
        return notifications, None

    job = await schedule_job(
        db,
        org_id,
        SEND_EMAIL_JOB,
        {
            "type": notification_type,
            "data": data,
            "recipients": [
                {"userId": uid, "notificationId": nid}
                for uid, nid in email_recipients.items()
            ],
            "sent": [],
        },
        delay=email_delay(notification_type),
        dedupe_key=dedupe_key,
    )
    return notifications, job


def _users_to_recipients(users) -> list[Recipient]:
    return [Recipient(user_id=u.id, preferences=list(u.notification_preferences or [])) for u in users]


async def resolve_recipients(
    db: AsyncSession, org_id: uuid.UUID, notification_type: str, data: dict
) -> list[Recipient]:
    actor_id = uuid.UUID(str(data["userId"]))

    if notification_type == "new_thread_in_member_feed":
        query = (
            select(User)
            .join(UserFeed, UserFeed.user_id == User.id)
            .where(UserFeed.feed_id == uuid.UUID(str(data["feedId"])))
        )
    elif notification_type == "new_feed_member":
        query = (
            select(User)
            .join(UserFeed, UserFeed.user_id == User.id)
            .where(
                and_(
                    UserFeed.feed_id == uuid.UUID(str(data["feedId"])),
                    UserFeed.owner == True,  # noqa: E712
                )
            )
        )
    elif notification_type == "new_message_in_thread":
        thread_id = uuid.UUID(str(data["threadId"]))
        thread = await db.get(Thread, thread_id)
        if thread is None:
            return []
        sender_ids = select(Message.sender_id).where(Message.thread_id == thread_id)
        query = select(User).where(
            (User.id == thread.poster_id) | User.id.in_(sender_ids)
        )
    elif notification_type == "user_registration":
        query = select(User).where(User.role == "admin")
    else:
        raise ValueError(f"Unknown notification type {notification_type}")

    result = await db.execute(query.where(and_(User.org_id == org_id, User.id != actor_id)))
    return _users_to_recipients(result.scalars().all())


async def send_notifications(
    db: AsyncSession, org_id: uuid.UUID, notification_type: str, data: dict
) -> tuple[list[Notification], ScheduledJob | None]:
    recipients = await resolve_recipients(db, org_id, notification_type, data)
    return await schedule_notifications(db, org_id, notification_type, data, recipients)


async def _render(
    db: AsyncSession, org: Organization, notification_type: str, data: dict, notification_id: str
) -> email_templates.RenderedEmail | None:
    actor = await db.get(User, uuid.UUID(data["userId"]))
    if actor is None:
        return None

    if notification_type == "new_thread_in_member_feed":
        feed = await db.get(Feed, uuid.UUID(data["feedId"]))
        thread = await db.get(Thread, uuid.UUID(data["threadId"]))
        if feed is None or thread is None:
            return None
        return email_templates.render_new_thread(
            org.host,
            actor.name,
            feed.name,
            str(feed.id),
            from_json_to_plain_text(thread.content, PREVIEW_LENGTH),
            notification_id,
        )
    if notification_type == "new_message_in_thread":
        thread = await db.get(Thread, uuid.UUID(data["threadId"]))
        if thread is None:
            return None
        return email_templates.render_new_message(
            org.host,
            actor.name,
            str(thread.id),
            str(thread.feed_id),
            from_json_to_plain_text(data.get("messageContent") or "", PREVIEW_LENGTH),
            notification_id,
        )
    if notification_type == "new_feed_member":
        feed = await db.get(Feed, uuid.UUID(data["feedId"]))
        if feed is None:
            return None
        return email_templates.render_new_feed_member(
            org.host, actor.name, feed.name, str(feed.id), notification_id
        )
    if notification_type == "user_registration":
        return email_templates.render_new_registration(
            org.host, actor.name, actor.email, notification_id
        )
    return None


@job_handler(SEND_EMAIL_JOB)
async def send_email_notifications(db: AsyncSession, job: ScheduledJob) -> None:
    """Emails every opted-in recipient of the job once.

    Progress is committed per recipient so a retry only covers the ones that
    failed.
    """
    payload = dict(job.payload)
    notification_type = payload["type"]
    data = payload["data"]
    sent = set(payload.get("sent") or [])

    org = await db.get(Organization, job.org_id)
    if org is None:
        logger.warning(f"Organization {job.org_id} is gone, dropping {notification_type} emails")
        return

    failures = []
    for item in payload.get("recipients", []):
        user_id = item["userId"]
        if user_id in sent:
            continue
        user = await db.get(User, uuid.UUID(user_id))
        if user is None or not user.wants("email"):
            continue

        rendered = await _render(db, org, notification_type, data, item["notificationId"])
        if rendered is None:
            logger.info(f"Skipping {notification_type} email: source record no longer exists")
            return

        try:
            await send_email(
                db, user.email, rendered.subject, rendered.html, rendered.text, org_id=org.id
            )
        except EmailDeliveryError as e:
            failures.append(str(e))
            await db.commit()
            continue

        sent.add(user_id)
        job.payload = {**payload, "sent": sorted(sent)}
        await db.commit()

    if failures:
        raise EmailDeliveryError("; ".join(failures))


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False,
) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.read_at.is_(None))
    query = query.order_by(Notification.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_unread_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            and_(Notification.user_id == user_id, Notification.read_at.is_(None))
        )
    )
    return result.scalar_one()


async def mark_notification_as_read(
    db: AsyncSession, user: User, notification_id: uuid.UUID
) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != user.id:
        raise NotFound("Notification not found")
    if notification.read_at is None:
        notification.read_at = utcnow()
        await db.flush()
    return notification


async def mark_all_as_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(Notification)
        .where(and_(Notification.user_id == user_id, Notification.read_at.is_(None)))
        .values(read_at=utcnow())
    )
    return result.rowcount
