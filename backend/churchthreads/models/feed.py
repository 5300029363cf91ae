import uuid

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from churchthreads.models.base import Base, OrgScoped, TimestampMixin, UUIDPrimaryKey, UUIDType

FEED_PRIVACY_LEVELS = ("private", "open", "public")
FEED_MEMBER_PERMISSIONS = ("post", "message")


class Feed(Base, UUIDPrimaryKey, OrgScoped, TimestampMixin):
    __tablename__ = "feeds"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    privacy: Mapped[str] = mapped_column(
        String(20), nullable=False, default="private", server_default="private"
    )  # 'private', 'open', 'public'
    member_permissions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    organization = relationship("Organization", back_populates="feeds")
    memberships = relationship(
        "UserFeed", back_populates="feed", cascade="all, delete-orphan"
    )
    threads = relationship("Thread", back_populates="feed", cascade="all, delete-orphan")


class UserFeed(Base, UUIDPrimaryKey, OrgScoped, TimestampMixin):
    __tablename__ = "user_feeds"
    __table_args__ = (UniqueConstraint("feed_id", "user_id"),)

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    feed_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(), ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="feed_memberships")
    feed = relationship("Feed", back_populates="memberships")
