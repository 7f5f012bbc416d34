"""Access/refresh token pair returned by issuance and rotation."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class TokenPair:
    """Issued credentials.

    Attributes:
        access_token: Signed JWT access token.
        refresh_token: Opaque refresh token value.
        access_expires_at: Access token expiry (UTC).
        refresh_expires_at: Refresh token expiry (UTC).
        expires_in: Access token lifetime in seconds.
        device_id: Device the pair is bound to.
        token_type: Always "bearer".
    """

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    expires_in: int
    device_id: str
    token_type: str = "bearer"
