import uuid

from sqlalchemy import JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from churchthreads.models.base import Base, OrgScoped, TimestampMixin, UUIDPrimaryKey, UUIDType

DEFAULT_NOTIFICATION_PREFERENCES = ["push", "email"]


def _default_preferences() -> list[str]:
    return list(DEFAULT_NOTIFICATION_PREFERENCES)


class User(Base, UUIDPrimaryKey, OrgScoped, TimestampMixin):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("org_id", "email"),)

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="user", server_default="user"
    )  # 'user' or 'admin'
    identity_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True
    )  # user id at the identity provider
    notification_preferences: Mapped[list] = mapped_column(
        JSON, nullable=False, default=_default_preferences
    )  # subset of 'push', 'email'
    image_upload_id: Mapped[uuid.UUID | None] = mapped_column(UUIDType(), nullable=True)

    organization = relationship("Organization", back_populates="users")
    feed_memberships = relationship(
        "UserFeed", back_populates="user", cascade="all, delete-orphan"
    )
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def wants(self, channel: str) -> bool:
        return channel in (self.notification_preferences or [])
