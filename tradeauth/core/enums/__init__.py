"""Core enums package.

Usage:
    from tradeauth.core.enums import ErrorCode, Environment
"""

from tradeauth.core.enums.environment import Environment
from tradeauth.core.enums.error_code import ErrorCode

__all__ = ["ErrorCode", "Environment"]
