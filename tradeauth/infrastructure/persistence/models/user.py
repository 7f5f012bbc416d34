"""User and admin database models."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tradeauth.infrastructure.persistence.base import BaseMutableModel


class User(BaseMutableModel):
    """Principal record.

    Fields mirror tradeauth.domain.entities.Principal. ``security_stamp`` is
    regenerated whenever credentials change.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    credit_score: Mapped[float] = mapped_column(Float, nullable=False, default=60.0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lockout_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failed_login_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    security_stamp: Mapped[str] = mapped_column(
        String(64), nullable=False, default=""
    )
    two_factor_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Admin(BaseMutableModel):
    """Administrative role assignment (at most one per user)."""

    __tablename__ = "admins"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    assigned_category: Mapped[int | None] = mapped_column(Integer, nullable=True)
