"""Application services: token lifecycle and the user cache."""

from tradeauth.application.token_blacklist import TokenBlacklist
from tradeauth.application.token_service import RevocationReason, TokenService
from tradeauth.application.user_cache import StripedLocks, UserCache

__all__ = [
    "RevocationReason",
    "StripedLocks",
    "TokenBlacklist",
    "TokenService",
    "UserCache",
]
