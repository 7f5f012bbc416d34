"""Principal (user identity) entity and the projections cached from it.

Pure data with no framework dependencies. The persistence layer owns the
authoritative record; caches only ever hold copies.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from tradeauth.domain.enums import AdminRole


@dataclass(frozen=True)
class Principal:
    """User identity record.

    Attributes:
        id: Unique principal identifier.
        email: Unique login email.
        username: Optional display name.
        password_hash: Hashed password (never plaintext).
        credit_score: Trading credit score, carried in access tokens.
        is_active: Deactivated principals cannot obtain tokens.
        email_verified: Email verification state.
        is_locked: Whether the account is locked.
        lockout_end: When the lockout expires (None if not locked).
        failed_login_attempts: Consecutive failed logins.
        security_stamp: Changes whenever credentials change.
        two_factor_enabled: Two-factor flag.
        last_login_at: Time of the last successful login.
    """

    id: UUID
    email: str
    password_hash: str
    username: str | None = None
    credit_score: float = 60.0
    is_active: bool = True
    email_verified: bool = False
    is_locked: bool = False
    lockout_end: datetime | None = None
    failed_login_attempts: int = 0
    security_stamp: str = ""
    two_factor_enabled: bool = False
    last_login_at: datetime | None = None

    def is_currently_locked(self, now: datetime | None = None) -> bool:
        """Whether the lockout is still in effect.

        Args:
            now: Reference time (defaults to current UTC time).

        Returns:
            True if locked and the lockout has not ended.
        """
        if not self.is_locked:
            return False
        if self.lockout_end is None:
            return True
        return self.lockout_end > (now or datetime.now(UTC))

    def security_info(self) -> "SecurityInfo":
        """Project the security-sensitive subset of this principal."""
        return SecurityInfo(
            id=self.id,
            password_hash=self.password_hash,
            is_locked=self.is_locked,
            lockout_end=self.lockout_end,
            failed_login_attempts=self.failed_login_attempts,
            security_stamp=self.security_stamp,
            two_factor_enabled=self.two_factor_enabled,
            last_login_at=self.last_login_at,
        )


@dataclass(frozen=True)
class SecurityInfo:
    """Security-sensitive subset of a Principal, cached with a short TTL."""

    id: UUID
    password_hash: str
    is_locked: bool
    lockout_end: datetime | None
    failed_login_attempts: int
    security_stamp: str
    two_factor_enabled: bool
    last_login_at: datetime | None


@dataclass(frozen=True)
class AdminAssignment:
    """Administrative role held by a principal.

    Attributes:
        user_id: Principal holding the role.
        role: Administrative role.
        assigned_category: Category id, only meaningful for category admins.
    """

    user_id: UUID
    role: AdminRole
    assigned_category: int | None = None

    def permissions(self) -> list[str]:
        """Derive the permission list for this assignment.

        Returns:
            ``role:{role}`` plus ``category:{id}`` for scoped category admins.
        """
        granted = [f"role:{self.role.value}"]
        if self.role == AdminRole.CATEGORY_ADMIN and self.assigned_category is not None:
            granted.append(f"category:{self.assigned_category}")
        return granted
