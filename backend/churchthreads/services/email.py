"""Transactional email over SMTP with a delivery log per message."""
import logging
import re
import uuid
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid

import aiosmtplib
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from svix.webhooks import Webhook, WebhookVerificationError

from churchthreads.config import settings
from churchthreads.errors import EmailDeliveryError
from churchthreads.models.base import utcnow
from churchthreads.models.email_log import EmailLog

logger = logging.getLogger(__name__)

# Webhook event type -> log status
DELIVERY_EVENTS = {
    "email.sent": "sent",
    "email.delivered": "delivered",
    "email.delivery_delayed": "delivery_delayed",
    "email.bounced": "bounced",
    "email.complained": "complained",
    "email.opened": "opened",
    "email.clicked": "clicked",
}

# Postfix style "250 2.0.0 Ok: queued as 4F2Y1k0XyZz1"
QUEUED_AS = re.compile(r"queued as <?([^\s>]+)>?", re.IGNORECASE)


def _build_message(to_email: str, subject: str, html: str, text: str | None, message_id: str):
    msg = MIMEMultipart("alternative")
    msg["From"] = settings.smtp_from
    msg["To"] = to_email
    msg["Subject"] = subject
    msg["Message-ID"] = message_id
    if text:
        msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


async def send_email(
    db: AsyncSession,
    to_email: str,
    subject: str,
    html: str,
    text: str | None = None,
    org_id: uuid.UUID | None = None,
) -> EmailLog:
    """Sends one email and records it; raises EmailDeliveryError on failure."""
    message_id = make_msgid(domain=settings.host)
    log = EmailLog(
        org_id=org_id,
        to_email=to_email,
        subject=subject[:255],
        message_id=message_id,
    )
    db.add(log)
    await db.flush()

    msg = _build_message(to_email, subject, html, text, message_id)
    try:
        response = await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user or None,
            password=settings.smtp_password or None,
            use_tls=settings.smtp_use_tls,
        )
    except (aiosmtplib.SMTPException, OSError) as e:
        logger.error(f"Sending email to {to_email} failed: {e}")
        log.status = "failed"
        log.error = str(e)
        await db.flush()
        raise EmailDeliveryError(f"Failed to send email to {to_email}") from e

    log.status = "sent"
    log.provider_id = _provider_id(response)
    log.last_event_at = utcnow()
    await db.flush()
    logger.info(f"Email '{subject}' sent to {to_email}")
    return log


def _provider_id(response) -> str | None:
    """Id the relay assigned to the message, taken from its final reply."""
    if not isinstance(response, tuple) or len(response) != 2:
        return None
    match = QUEUED_AS.search(str(response[1]))
    return match.group(1)[:255] if match else None


def verify_webhook(body: bytes, headers: dict) -> bool:
    """Checks the Svix signature headers; unchecked when no secret is set."""
    if not settings.email_webhook_secret:
        return True
    try:
        Webhook(settings.email_webhook_secret).verify(body, headers)
    except WebhookVerificationError as e:
        logger.warning(f"Rejected delivery webhook: {e}")
        return False
    except ValueError:
        # Signed but not JSON; the caller rejects the body
        return True
    return True


async def record_delivery_event(db: AsyncSession, event: dict) -> EmailLog | None:
    """Applies a delivery webhook event to the matching log row.

    The event id is matched against the relay id or our own Message-ID.
    Events for unknown messages and unknown event types are ignored.
    """
    status = DELIVERY_EVENTS.get(event.get("type") or "")
    data = event.get("data") or {}
    message_id = data.get("email_id") or data.get("message_id")
    if status is None or not message_id:
        return None

    result = await db.execute(
        select(EmailLog)
        .where(or_(EmailLog.provider_id == message_id, EmailLog.message_id == message_id))
        .limit(1)
    )
    log = result.scalars().first()
    if log is None:
        logger.warning(f"Delivery event {event.get('type')} for unknown email {message_id}")
        return None

    log.status = status
    log.last_event_at = utcnow()
    if status == "bounced":
        log.error = (data.get("bounce") or {}).get("message") or log.error
    await db.flush()
    return log
