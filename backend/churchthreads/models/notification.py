import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from churchthreads.models.base import (
    Base,
    OrgScoped,
    TimestampMixin,
    UUIDPrimaryKey,
    UUIDType,
    utcnow,
)

NOTIFICATION_TYPES = (
    "new_thread_in_member_feed",
    "new_message_in_thread",
    "new_feed_member",
    "user_registration",
)


class Notification(Base, UUIDPrimaryKey, OrgScoped, TimestampMixin):
    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="notifications")


class ScheduledJob(Base, UUIDPrimaryKey, OrgScoped, TimestampMixin):
    __tablename__ = "scheduled_jobs"

    name: Mapped[str] = mapped_column(String(60), nullable=False)
    dedupe_key: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    run_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", server_default="pending"
    )  # 'pending', 'running', 'completed', 'canceled', 'failed'
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
