"""RefreshTokenRepository - SQLAlchemy implementation for refresh token persistence.

Every state transition is a conditional bulk UPDATE or DELETE, so the
database decides races between concurrent requests and between processes.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tradeauth.domain.protocols.refresh_token_repository import (
    NewRefreshToken,
    RefreshTokenData,
)
from tradeauth.infrastructure.persistence.base import as_utc
from tradeauth.infrastructure.persistence.models.refresh_token import RefreshToken


def _to_data(model: RefreshToken) -> RefreshTokenData:
    """Convert database model to domain DTO."""
    return RefreshTokenData(
        id=model.id,
        user_id=model.user_id,
        token=model.token,
        device_id=model.device_id,
        issued_at=as_utc(model.issued_at),
        expires_at=as_utc(model.expires_at),
        last_used_at=as_utc(model.last_used_at),
        revoked_at=as_utc(model.revoked_at),
        revoked_reason=model.revoked_reason,
        revoked_by=model.revoked_by,
        replaced_by_token=model.replaced_by_token,
        ip_address=model.ip_address,
        user_agent=model.user_agent,
    )


def _to_model(new_token: NewRefreshToken, issued_at: datetime) -> RefreshToken:
    return RefreshToken(
        user_id=new_token.user_id,
        token=new_token.token,
        device_id=new_token.device_id,
        issued_at=issued_at,
        expires_at=new_token.expires_at,
        ip_address=new_token.ip_address,
        user_agent=new_token.user_agent,
    )


class RefreshTokenRepository:
    """SQLAlchemy implementation for refresh token persistence.

    Attributes:
        session: SQLAlchemy async session for database operations.

    Example:
        >>> async with database.get_session() as session:
        ...     repo = RefreshTokenRepository(session)
        ...     token = await repo.find_by_token(value)
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def save(self, new_token: NewRefreshToken) -> RefreshTokenData:
        """Insert a refresh token.

        Args:
            new_token: Values of the token to insert.

        Returns:
            Created RefreshTokenData.
        """
        token_model = _to_model(new_token, datetime.now(UTC))
        self.session.add(token_model)
        await self.session.commit()
        await self.session.refresh(token_model)
        return _to_data(token_model)

    async def find_by_token(self, token: str) -> RefreshTokenData | None:
        """Find a refresh token by value, whatever its state.

        Args:
            token: Opaque token value.

        Returns:
            RefreshTokenData if found, None otherwise.
        """
        stmt = select(RefreshToken).where(RefreshToken.token == token)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_data(model) if model else None

    async def list_active(self, user_id: UUID) -> list[RefreshTokenData]:
        """List tokens that are unrevoked, unrotated and unexpired.

        Args:
            user_id: Owning principal.

        Returns:
            Active tokens, oldest issued first.
        """
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .where(RefreshToken.revoked_at.is_(None))
            .where(RefreshToken.replaced_by_token.is_(None))
            .where(RefreshToken.expires_at > datetime.now(UTC))
            .order_by(RefreshToken.issued_at, RefreshToken.id)
        )
        result = await self.session.execute(stmt)
        return [_to_data(model) for model in result.scalars().all()]

    async def rotate(
        self, token_id: UUID, successor: NewRefreshToken
    ) -> RefreshTokenData | None:
        """Mark a token replaced and insert its successor in one transaction.

        The UPDATE only matches while replaced_by_token and revoked_at are
        both NULL. A rowcount of 0 means another caller rotated or revoked
        the token first; nothing is written in that case.

        Args:
            token_id: Token being rotated.
            successor: Values of the new token.

        Returns:
            The successor, or None if the conditional update matched nothing.
        """
        now = datetime.now(UTC)
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == token_id)
            .where(RefreshToken.replaced_by_token.is_(None))
            .where(RefreshToken.revoked_at.is_(None))
            .values(replaced_by_token=successor.token, last_used_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
            if result.rowcount != 1:
                await self.session.rollback()
                return None

            token_model = _to_model(successor, now)
            self.session.add(token_model)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(token_model)
        return _to_data(token_model)

    async def revoke(
        self,
        token_ids: list[UUID],
        reason: str,
        revoked_by: str | None = None,
    ) -> int:
        """Revoke tokens that are not revoked yet.

        Args:
            token_ids: Tokens to revoke.
            reason: Revocation reason (logout, reuse_detected, device_limit, ...).
            revoked_by: Actor that requested the revocation.

        Returns:
            Number of tokens whose state changed.
        """
        if not token_ids:
            return 0
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id.in_(token_ids))
            .where(RefreshToken.revoked_at.is_(None))
            .values(
                revoked_at=datetime.now(UTC),
                revoked_reason=reason,
                revoked_by=revoked_by,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount

    async def revoke_all_for_user(self, user_id: UUID, reason: str) -> int:
        """Revoke every unrevoked token of a principal.

        Used for password changes, admin action and reuse detection.

        Args:
            user_id: Owning principal.
            reason: Revocation reason (for audit).

        Returns:
            Number of tokens revoked.
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .where(RefreshToken.revoked_at.is_(None))
            .values(revoked_at=datetime.now(UTC), revoked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount

    async def delete_expired(self, before: datetime) -> int:
        """Delete tokens that expired before the given time.

        A single DELETE, so a token is never removed halfway through a
        rotation: rows still inside their lifetime never match.

        Args:
            before: Cutoff; tokens with expires_at < before are removed.

        Returns:
            Number of rows deleted.
        """
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.expires_at < before)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        return result.rowcount
