"""Base error type carried inside Result failures.

DomainError is data, not an exception. Specialised errors (token errors,
cache errors, database errors) extend it with dataclass inheritance:

    @dataclass(frozen=True, slots=True, kw_only=True)
    class TokenError(DomainError):
        token_id: str | None = None
"""

from dataclasses import dataclass
from typing import Any

from tradeauth.core.enums import ErrorCode


@dataclass(frozen=True, slots=True, kw_only=True)
class DomainError:
    """Base error (does NOT inherit from Exception).

    Attributes:
        code: Machine-readable error code.
        message: Human-readable message, safe to show to clients.
        details: Optional context for logs.
    """

    code: ErrorCode
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        """String representation of error."""
        return f"{self.code.value}: {self.message}"
