import uuid

from sqlalchemy import BigInteger, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from churchthreads.models.base import Base, OrgScoped, TimestampMixin, UUIDPrimaryKey, UUIDType

UPLOAD_SOURCES = ("thread", "message", "avatar")


class Upload(Base, UUIDPrimaryKey, OrgScoped, TimestampMixin):
    __tablename__ = "uploads"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    storage_key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)  # see UPLOAD_SOURCES
    source_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    file_extension: Mapped[str] = mapped_column(String(20), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)

    user = relationship("User")
