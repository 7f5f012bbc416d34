"""Database models (imported here so metadata sees every table)."""

from tradeauth.infrastructure.persistence.models.refresh_token import RefreshToken
from tradeauth.infrastructure.persistence.models.user import Admin, User

__all__ = ["Admin", "RefreshToken", "User"]
