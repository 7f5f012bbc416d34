"""RefreshTokenRepository protocol (port) for domain layer.

Persistence contract consumed by the token service. The implementation must
provide:
    - a unique index on the token value
    - a composite index on (user_id, revoked_at, expires_at)
    - a composite index on (device_id, user_id, revoked_at)
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID


@dataclass
class RefreshTokenData:
    """Refresh token record as seen by the application layer.

    A token with ``replaced_by_token`` set has been rotated; one with
    ``revoked_at`` set has been revoked. Both reject further use.
    """

    id: UUID
    user_id: UUID
    token: str
    device_id: str
    issued_at: datetime
    expires_at: datetime
    last_used_at: datetime | None = None
    revoked_at: datetime | None = None
    revoked_reason: str | None = None
    revoked_by: str | None = None
    replaced_by_token: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def is_rotated(self) -> bool:
        return self.replaced_by_token is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or datetime.now(UTC))

    def is_active(self, now: datetime | None = None) -> bool:
        return not self.is_revoked and not self.is_rotated and not self.is_expired(now)


@dataclass
class NewRefreshToken:
    """Values for a refresh token about to be inserted."""

    user_id: UUID
    token: str
    device_id: str
    expires_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None


class RefreshTokenRepository(Protocol):
    """Protocol for refresh token persistence operations.

    Implementations:
        - RefreshTokenRepository (SQLAlchemy): tradeauth/infrastructure/persistence/repositories/
    """

    async def save(self, new_token: NewRefreshToken) -> RefreshTokenData:
        """Insert a refresh token and commit."""
        ...

    async def find_by_token(self, token: str) -> RefreshTokenData | None:
        """Find a token by value in any state (active, rotated, revoked)."""
        ...

    async def list_active(self, user_id: UUID) -> list[RefreshTokenData]:
        """Active tokens of a principal, oldest issued first."""
        ...

    async def rotate(
        self, token_id: UUID, successor: NewRefreshToken
    ) -> RefreshTokenData | None:
        """Mark a token replaced and insert its successor atomically.

        The transition is a conditional update that only matches while the
        token is neither rotated nor revoked, so exactly one of several
        concurrent callers wins across processes.

        Returns:
            The successor on success, None if another caller won the race or
            the token was revoked in the meantime.
        """
        ...

    async def revoke(
        self,
        token_ids: list[UUID],
        reason: str,
        revoked_by: str | None = None,
    ) -> int:
        """Revoke tokens that are not already revoked.

        Returns:
            Number of tokens whose state changed.
        """
        ...

    async def revoke_all_for_user(self, user_id: UUID, reason: str) -> int:
        """Revoke every unrevoked token of a principal."""
        ...

    async def delete_expired(self, before: datetime) -> int:
        """Delete tokens whose expiry is earlier than ``before``.

        Returns:
            Number of rows deleted.
        """
        ...
