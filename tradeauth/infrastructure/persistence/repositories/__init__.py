"""SQLAlchemy repository implementations."""

from tradeauth.infrastructure.persistence.repositories.refresh_token_repository import (
    RefreshTokenRepository,
)
from tradeauth.infrastructure.persistence.repositories.user_repository import (
    AdminRepository,
    UserRepository,
)

__all__ = ["AdminRepository", "RefreshTokenRepository", "UserRepository"]
