"""Domain errors package."""

from tradeauth.domain.errors.token_error import TokenError, TokenErrorMessage

__all__ = ["TokenError", "TokenErrorMessage"]
