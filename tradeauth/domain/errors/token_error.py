"""Token lifecycle errors.

Returned inside ``Failure`` by the token service; never raised.

Usage:
    match await token_service.rotate(token, device_id):
        case Failure(error=TokenError(code=ErrorCode.TOKEN_REUSE_DETECTED)):
            ...
"""

from dataclasses import dataclass

from tradeauth.core.errors import DomainError


@dataclass(frozen=True, slots=True, kw_only=True)
class TokenError(DomainError):
    """Token issuance, validation, rotation or revocation failure.

    Attributes:
        user_id: Owning principal, when known (logged, never shown to clients).
    """

    user_id: str | None = None


class TokenErrorMessage:
    """Client-facing messages.

    Unknown tokens and unknown principals share INVALID so that responses
    never reveal whether an identity exists.
    """

    EMPTY_TOKEN = "Refresh token is required"
    EMPTY_DEVICE = "Device id is required"
    INVALID = "Invalid token"
    EXPIRED = "Token has expired"
    REVOKED = "Token has been revoked"
    REUSE_DETECTED = "Token reuse detected, all related sessions have been revoked"
    DEVICE_MISMATCH = "Token was issued to a different device"
