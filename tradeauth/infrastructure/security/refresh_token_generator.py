"""Opaque refresh token generation.

Token strategy:
    - Opaque (not JWT), 32 random bytes, urlsafe base64 (~43 characters)
    - Unique index on the stored value; lookups are by exact value
    - Lifetime tracked in the database, not in the token
"""

import secrets
from datetime import UTC, datetime, timedelta


class RefreshTokenGenerator:
    """Generates refresh token values and their expiry."""

    def __init__(self, expiration_days: int = 30) -> None:
        """Initialize generator.

        Args:
            expiration_days: Token lifetime in days.
        """
        self._expiration = timedelta(days=expiration_days)

    def generate_token(self) -> str:
        """Generate a refresh token value (256 bits of entropy)."""
        return secrets.token_urlsafe(32)

    def calculate_expiration(self) -> datetime:
        """Expiry for a token issued now (UTC)."""
        return datetime.now(UTC) + self._expiration
