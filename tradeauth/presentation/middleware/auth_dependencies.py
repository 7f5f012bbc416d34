"""Access token authentication dependencies.

Usage:
    @router.get("/protected")
    async def protected_route(
        claims: Annotated[AccessClaims, Depends(get_current_claims)],
    ):
        return {"user_id": str(claims.subject)}

Rejections raise HTTPException whose detail is the rejection envelope
(success, message, error_code). Blacklist checks happen earlier, in
TokenGuardMiddleware.
"""

from typing import Annotated

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tradeauth.core.container import get_jwt_service
from tradeauth.core.enums import ErrorCode
from tradeauth.core.errors import DomainError
from tradeauth.core.result import Failure, Success
from tradeauth.domain.entities import AccessClaims
from tradeauth.domain.errors import TokenError, TokenErrorMessage
from tradeauth.infrastructure.security import JWTService
from tradeauth.presentation.errors import rejection_body, rejection_status

# auto_error=False so a missing header gets the same envelope as a bad token
bearer_scheme = HTTPBearer(auto_error=False)


def rejection_exception(error: DomainError) -> HTTPException:
    return HTTPException(
        status_code=rejection_status(error.code),
        detail=rejection_body(error),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_claims(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
    jwt_service: Annotated[JWTService, Depends(get_jwt_service)],
) -> AccessClaims:
    """Verify the bearer access token and return its claims.

    Args:
        credentials: Bearer token from the Authorization header.
        jwt_service: Access token verifier (injected).

    Returns:
        Verified AccessClaims.

    Raises:
        HTTPException 401: Missing, invalid or expired token, or inactive subject.
    """
    if credentials is None:
        raise rejection_exception(
            TokenError(code=ErrorCode.TOKEN_INVALID, message=TokenErrorMessage.INVALID)
        )

    match jwt_service.validate_access_token(credentials.credentials):
        case Success(value=claims):
            if not claims.is_active:
                raise rejection_exception(
                    TokenError(
                        code=ErrorCode.TOKEN_INVALID,
                        message=TokenErrorMessage.INVALID,
                        user_id=str(claims.subject),
                    )
                )
            return claims
        case Failure(error=error):
            raise rejection_exception(error)
