"""Core errors package.

Usage:
    from tradeauth.core.errors import DomainError
"""

from tradeauth.core.errors.domain_error import DomainError

__all__ = ["DomainError"]
