"""Domain protocols (ports)."""

from tradeauth.domain.protocols.cache_protocol import CacheProtocol
from tradeauth.domain.protocols.logger_protocol import LoggerProtocol, mask_token
from tradeauth.domain.protocols.refresh_token_repository import (
    NewRefreshToken,
    RefreshTokenData,
    RefreshTokenRepository,
)
from tradeauth.domain.protocols.user_repository import AdminRepository, UserRepository

__all__ = [
    "AdminRepository",
    "CacheProtocol",
    "LoggerProtocol",
    "NewRefreshToken",
    "RefreshTokenData",
    "RefreshTokenRepository",
    "UserRepository",
    "mask_token",
]
