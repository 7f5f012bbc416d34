"""Refresh token database model.

Token lifecycle:
    1. Inserted at login or rotation
    2. Rotated: replaced_by_token set by a conditional UPDATE
    3. Revoked: revoked_at/revoked_reason set (logout, reuse, device limit)
    4. Deleted by the reaper once expired past the retention window

Indexes:
    - token (unique) for lookup
    - (user_id, revoked_at, expires_at) for a principal's active tokens
    - (device_id, user_id, revoked_at) for per-device lookups
    - expires_at for cleanup
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from tradeauth.infrastructure.persistence.base import BaseMutableModel


class RefreshToken(BaseMutableModel):
    """Opaque refresh token bound to a principal and a device."""

    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("ix_refresh_tokens_user_revoked_expires", "user_id", "revoked_at", "expires_at"),
        Index("ix_refresh_tokens_device_user_revoked", "device_id", "user_id", "revoked_at"),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Principal owning this token",
    )
    token: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        unique=True,
        comment="Opaque token value",
    )
    device_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Device the token was issued to",
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    revoked_reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    revoked_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    replaced_by_token: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        comment="Successor token value once rotated",
    )
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
