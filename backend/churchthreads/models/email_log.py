import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from churchthreads.models.base import Base, TimestampMixin, UUIDPrimaryKey, UUIDType


class EmailLog(Base, UUIDPrimaryKey, TimestampMixin):
    __tablename__ = "email_logs"

    org_id: Mapped[uuid.UUID | None] = mapped_column(
        UUIDType(), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True
    )
    to_email: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    message_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    # Id assigned by the SMTP relay, used by its delivery webhooks
    provider_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="queued", server_default="queued"
    )  # 'queued', 'sent', 'failed', then delivery events from the webhook
    last_event_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
