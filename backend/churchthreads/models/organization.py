from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from churchthreads.models.base import Base, TimestampMixin, UUIDPrimaryKey


class Organization(Base, UUIDPrimaryKey, TimestampMixin):
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    host: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )  # "<subdomain>.<settings.host>"

    users = relationship("User", back_populates="organization", cascade="all, delete-orphan")
    feeds = relationship("Feed", back_populates="organization", cascade="all, delete-orphan")
