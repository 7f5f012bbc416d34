"""Infrastructure errors package."""

from tradeauth.infrastructure.errors.infrastructure_error import (
    CacheError,
    InfrastructureError,
)

__all__ = ["CacheError", "InfrastructureError"]
