"""Security adapters: JWT access tokens and refresh token generation."""

from tradeauth.infrastructure.security.jwt_service import JWTService, peek_claims
from tradeauth.infrastructure.security.refresh_token_generator import (
    RefreshTokenGenerator,
)

__all__ = ["JWTService", "RefreshTokenGenerator", "peek_claims"]
