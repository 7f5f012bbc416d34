"""Decoded access token claims."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID


@dataclass(frozen=True, slots=True, kw_only=True)
class AccessClaims:
    """Claims carried by a verified access token.

    The claim set is deliberately small: enough for downstream authorization
    decisions without a database round trip.

    Attributes:
        jti: Unique token identifier (blacklist key).
        subject: Principal id ('sub').
        issued_at: 'iat' as an aware UTC datetime.
        expires_at: 'exp' as an aware UTC datetime.
        is_active: Principal active flag at issuance.
        email_verified: Principal verification flag at issuance.
        credit_score: Principal credit score at issuance.
        device_id: Device the token pair was issued to.
    """

    jti: str
    subject: UUID
    issued_at: datetime
    expires_at: datetime
    is_active: bool
    email_verified: bool
    credit_score: float
    device_id: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AccessClaims":
        """Build claims from a decoded JWT payload.

        Raises:
            KeyError: If a required claim is missing.
            ValueError: If a claim has the wrong shape.
        """
        return cls(
            jti=str(payload["jti"]),
            subject=UUID(str(payload["sub"])),
            issued_at=datetime.fromtimestamp(int(payload["iat"]), UTC),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), UTC),
            is_active=bool(payload.get("is_active", False)),
            email_verified=bool(payload.get("email_verified", False)),
            credit_score=float(payload.get("credit_score", 0.0)),
            device_id=payload.get("device_id"),
        )

    def remaining_seconds(self, now: datetime | None = None) -> int:
        """Seconds until expiry (negative once expired)."""
        return int((self.expires_at - (now or datetime.now(UTC))).total_seconds())
