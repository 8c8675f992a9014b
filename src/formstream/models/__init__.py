"""SQLAlchemy ORM models for the form completion service."""

from __future__ import annotations

import datetime as dt
import enum
import typing
import uuid  # noqa: TC003 - required at runtime for SQLAlchemy annotations

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import Uuid

from .mixins import TimestampMixin, UuidPKMixin

__all__ = ["ApiKey", "Base", "Form", "FormStatus", "UserAccount"]


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class FormStatus(enum.StrEnum):
    """Lifecycle states of a form completion."""

    PENDING = "pending"
    COMPLETED = "completed"


class UserAccount(Base, UuidPKMixin, TimestampMixin):
    """Persisted user profile."""

    __tablename__ = "user_account"

    google_sub: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255))
    last_login_at: Mapped[dt.datetime | None] = mapped_column(TIMESTAMP(timezone=True))

    __table_args__ = (CheckConstraint("email LIKE '%@%'", name="chk_email"),)

    api_key: Mapped[ApiKey | None] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )
    forms: Mapped[list[Form]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class ApiKey(Base, UuidPKMixin, TimestampMixin):
    """Encrypted DeepSeek API key belonging to a single user."""

    __tablename__ = "api_key"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("user_account.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    encrypted_key: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    user: Mapped[UserAccount] = relationship(back_populates="api_key")


class Form(Base, UuidPKMixin, TimestampMixin):
    """A form submitted for completion and, eventually, its completed text."""

    __tablename__ = "form"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("user_account.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    form_content: Mapped[str] = mapped_column(Text, nullable=False)
    client_info: Mapped[typing.Any | None] = mapped_column(JSON)
    template_name: Mapped[str | None] = mapped_column(String(100))
    completed_content: Mapped[str | None] = mapped_column(Text)
    status: Mapped[FormStatus] = mapped_column(
        Enum(
            FormStatus,
            name="form_status",
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=FormStatus.PENDING,
    )

    user: Mapped[UserAccount] = relationship(back_populates="forms")

    __table_args__ = (Index("idx_form_user_time", "user_id", "created_at"),)
