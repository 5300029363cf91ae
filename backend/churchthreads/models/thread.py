import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from churchthreads.models.base import (
    Base,
    OrgScoped,
    TimestampMixin,
    UUIDPrimaryKey,
    UUIDType,
    utcnow,
)


class Thread(Base, UUIDPrimaryKey, OrgScoped, TimestampMixin):
    __tablename__ = "threads"

    feed_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(), ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    poster_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)  # TipTap JSON or legacy HTML
    posted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )

    feed = relationship("Feed", back_populates="threads")
    poster = relationship("User")
    messages = relationship(
        "Message", back_populates="thread", cascade="all, delete-orphan"
    )


class Message(Base, UUIDPrimaryKey, OrgScoped, TimestampMixin):
    __tablename__ = "messages"

    thread_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(), ForeignKey("threads.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    thread = relationship("Thread", back_populates="messages")
    sender = relationship("User")
