import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from churchthreads.models.base import Base, OrgScoped, TimestampMixin, UUIDPrimaryKey, UUIDType


class Invite(Base, UUIDPrimaryKey, OrgScoped, TimestampMixin):
    __tablename__ = "invites"
    __table_args__ = (
        Index("ix_invites_org_email", "org_id", "email"),
        Index("ix_invites_token_org", "token", "org_id"),
    )

    type: Mapped[str] = mapped_column(String(10), nullable=False)  # 'email' or 'link'
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    feeds: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # feed ids as str
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)  # None = unlimited
    use_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    creator = relationship("User", foreign_keys=[created_by])

    @property
    def feed_ids(self) -> list[uuid.UUID]:
        return [uuid.UUID(str(f)) for f in self.feeds or []]
