"""Request-time token guard and authentication dependencies."""

from tradeauth.presentation.middleware.token_guard_middleware import (
    TOKEN_WARNING_HEADER,
    TokenGuardMiddleware,
)

__all__ = ["TOKEN_WARNING_HEADER", "TokenGuardMiddleware"]
