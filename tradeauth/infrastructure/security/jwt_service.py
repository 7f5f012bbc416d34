"""JWT access token service (adapter).

HMAC-SHA256 signed access tokens via PyJWT.

Security:
    - 256-bit secret key minimum
    - Unique JWT ID (jti, uuid7) per token, used as the blacklist key
    - iss/aud checked on every verification

Performance:
    - Stateless validation (no database or cache lookup)
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from uuid_extensions import uuid7

from tradeauth.core.enums import ErrorCode
from tradeauth.core.result import Failure, Result, Success
from tradeauth.domain.entities import AccessClaims, Principal
from tradeauth.domain.errors import TokenError, TokenErrorMessage


class JWTService:
    """Access token generation and verification."""

    def __init__(
        self,
        secret_key: str,
        *,
        expiration_minutes: int = 120,
        algorithm: str = "HS256",
        issuer: str = "tradeauth",
        audience: str = "tradeauth-clients",
    ) -> None:
        """Initialize JWT service.

        Args:
            secret_key: Signing key, at least 32 bytes.
            expiration_minutes: Access token lifetime.
            algorithm: JWT algorithm.
            issuer: 'iss' claim written and required.
            audience: 'aud' claim written and required.

        Raises:
            ValueError: If secret_key is too short (< 32 bytes).
        """
        if len(secret_key) < 32:
            msg = "JWT secret key must be at least 32 bytes (256 bits)"
            raise ValueError(msg)

        self._secret_key = secret_key
        self._expiration = timedelta(minutes=expiration_minutes)
        self._algorithm = algorithm
        self._issuer = issuer
        self._audience = audience

    @property
    def lifetime(self) -> timedelta:
        return self._expiration

    def generate_access_token(
        self, principal: Principal, device_id: str
    ) -> tuple[str, datetime]:
        """Generate a signed access token.

        Args:
            principal: Token subject.
            device_id: Device the token pair is issued to.

        Returns:
            Tuple of (token, expires_at).
        """
        now = datetime.now(UTC)
        expires_at = now + self._expiration

        payload: dict[str, Any] = {
            "sub": str(principal.id),
            "jti": str(uuid7()),
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": self._issuer,
            "aud": self._audience,
            "is_active": principal.is_active,
            "email_verified": principal.email_verified,
            "credit_score": principal.credit_score,
            "device_id": device_id,
        }

        token: str = jwt.encode(payload, self._secret_key, algorithm=self._algorithm)
        return token, datetime.fromtimestamp(payload["exp"], UTC)

    def validate_access_token(self, token: str) -> Result[AccessClaims, TokenError]:
        """Verify signature, issuer, audience and expiry.

        Args:
            token: JWT access token.

        Returns:
            Success with AccessClaims, or Failure with TOKEN_EXPIRED /
            TOKEN_INVALID.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                audience=self._audience,
                options={"require": ["exp", "iat", "sub", "jti"]},
            )
            return Success(value=AccessClaims.from_payload(payload))
        except ExpiredSignatureError:
            return Failure(
                error=TokenError(
                    code=ErrorCode.TOKEN_EXPIRED, message=TokenErrorMessage.EXPIRED
                )
            )
        except (InvalidTokenError, KeyError, ValueError):
            return Failure(
                error=TokenError(
                    code=ErrorCode.TOKEN_INVALID, message=TokenErrorMessage.INVALID
                )
            )


def peek_claims(token: str) -> dict[str, Any]:
    """Decode a JWT payload WITHOUT verifying signature or expiry.

    Only for advisory checks (blacklist lookup, expiry warning). Never use
    the result for authorization.

    Raises:
        jwt.exceptions.DecodeError: If the token is not structurally a JWT.
    """
    payload: dict[str, Any] = jwt.decode(
        token,
        options={"verify_signature": False, "verify_exp": False, "verify_aud": False},
    )
    return payload
