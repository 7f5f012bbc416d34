"""Request-time access token guard.

For requests carrying ``Authorization: Bearer <jwt>``:
    - blacklisted jti -> 401 TOKEN_REVOKED envelope, downstream never runs
    - expiry within the warning window -> X-Token-Warning response header

The payload is decoded WITHOUT verification. This middleware only rejects
revoked tokens early; authentication itself is the get_current_claims
dependency. Tokens that cannot be decoded are logged and passed through.
"""

import math
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from jwt.exceptions import InvalidTokenError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from tradeauth.core.enums import ErrorCode
from tradeauth.domain.errors import TokenError, TokenErrorMessage
from tradeauth.domain.protocols import LoggerProtocol, mask_token
from tradeauth.infrastructure.security import peek_claims
from tradeauth.presentation.errors import rejection_response

TOKEN_WARNING_HEADER = "X-Token-Warning"

BlacklistCheck = Callable[[str], Awaitable[bool]]


def bearer_token(request: Request) -> str | None:
    """Extract the bearer token from the Authorization header."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class TokenGuardMiddleware(BaseHTTPMiddleware):
    """Rejects blacklisted access tokens and flags tokens close to expiry."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        is_blacklisted: BlacklistCheck,
        logger: LoggerProtocol,
        warning_minutes: int = 5,
    ) -> None:
        """Initialize the guard.

        Args:
            app: Wrapped ASGI application.
            is_blacklisted: Coroutine function answering whether a jti is revoked.
            logger: Structured logger.
            warning_minutes: Remaining lifetime below which X-Token-Warning is set.
        """
        super().__init__(app)
        self._is_blacklisted = is_blacklisted
        self._logger = logger
        self._warning_seconds = warning_minutes * 60

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        token = bearer_token(request)
        if token is None:
            return await call_next(request)

        try:
            payload = peek_claims(token)
            remaining = self._remaining_seconds(payload.get("exp"))
        except (InvalidTokenError, OverflowError, ValueError) as e:
            self._logger.warning(
                "Unparseable bearer token",
                token=mask_token(token),
                path=request.url.path,
                error=str(e),
            )
            return await call_next(request)

        self._logger.debug(
            "Bearer token presented",
            sub=payload.get("sub"),
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        jti = payload.get("jti")
        if isinstance(jti, str) and await self._is_blacklisted(jti):
            self._logger.warning(
                "Blacklisted access token rejected",
                sub=payload.get("sub"),
                jti=jti,
                path=request.url.path,
            )
            return rejection_response(
                TokenError(
                    code=ErrorCode.TOKEN_REVOKED,
                    message=TokenErrorMessage.REVOKED,
                    user_id=payload.get("sub"),
                )
            )

        response = await call_next(request)

        if remaining is not None and 0 < remaining <= self._warning_seconds:
            response.headers[TOKEN_WARNING_HEADER] = (
                f"Token expires in {remaining} seconds"
            )
        return response

    @staticmethod
    def _remaining_seconds(exp: object) -> int | None:
        """Seconds until exp, None when exp is absent or not a number.

        Raises:
            OverflowError: If exp does not fit a float timestamp.
            ValueError: If exp is NaN or infinite.
        """
        if isinstance(exp, bool) or not isinstance(exp, int | float):
            return None
        if not math.isfinite(exp):
            raise ValueError(f"non-finite exp claim: {exp}")
        return int(exp - datetime.now(UTC).timestamp())
