"""Infrastructure layer error types.

Adapters catch backend exceptions and return these inside ``Failure``.
They inherit from DomainError (not Exception).
"""

from dataclasses import dataclass

from tradeauth.core.errors import DomainError
from tradeauth.infrastructure.enums import InfrastructureErrorCode


@dataclass(frozen=True, slots=True, kw_only=True)
class InfrastructureError(DomainError):
    """Base infrastructure error.

    Attributes:
        infrastructure_code: Backend-specific error code.
        details: (inherited) key, operation and original error.
    """

    infrastructure_code: InfrastructureErrorCode | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CacheError(InfrastructureError):
    """Cache backend failure (connection, timeout, index)."""

    pass
