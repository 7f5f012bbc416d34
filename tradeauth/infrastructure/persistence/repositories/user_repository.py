"""User and admin repositories - SQLAlchemy implementations (read side)."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeauth.domain.entities import AdminAssignment, Principal
from tradeauth.domain.enums import AdminRole
from tradeauth.infrastructure.persistence.base import as_utc
from tradeauth.infrastructure.persistence.models.user import Admin, User


def _to_principal(model: User) -> Principal:
    """Convert database model to domain entity."""
    return Principal(
        id=model.id,
        email=model.email,
        username=model.username,
        password_hash=model.password_hash,
        credit_score=model.credit_score,
        is_active=model.is_active,
        email_verified=model.email_verified,
        is_locked=model.is_locked,
        lockout_end=as_utc(model.lockout_end),
        failed_login_attempts=model.failed_login_attempts,
        security_stamp=model.security_stamp,
        two_factor_enabled=model.two_factor_enabled,
        last_login_at=as_utc(model.last_login_at),
    )


class UserRepository:
    """SQLAlchemy implementation of the UserRepository protocol.

    Attributes:
        session: SQLAlchemy async session for database operations.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_id(self, user_id: UUID) -> Principal | None:
        """Find principal by ID.

        Args:
            user_id: Principal's unique identifier.

        Returns:
            Principal if found, None otherwise.
        """
        model = await self.session.get(User, user_id)
        return _to_principal(model) if model else None

    async def find_many(self, user_ids: list[UUID]) -> list[Principal]:
        """Find several principals with one IN query.

        Args:
            user_ids: Identifiers to load.

        Returns:
            Principals that exist (order not guaranteed).
        """
        if not user_ids:
            return []
        stmt = select(User).where(User.id.in_(user_ids))
        result = await self.session.execute(stmt)
        return [_to_principal(model) for model in result.scalars().all()]


class AdminRepository:
    """SQLAlchemy implementation of the AdminRepository protocol."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_user_id(self, user_id: UUID) -> AdminAssignment | None:
        """Find the admin assignment of a principal.

        Args:
            user_id: Principal's unique identifier.

        Returns:
            AdminAssignment if the principal is an admin, None otherwise.
        """
        stmt = select(Admin).where(Admin.user_id == user_id)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return AdminAssignment(
            user_id=model.user_id,
            role=AdminRole(model.role),
            assigned_category=model.assigned_category,
        )
