"""LoggerProtocol definition for structured logging.

Backend-agnostic structured logging port. Every call is a message plus
key-value context.

Security:
    - NEVER log passwords or full token values (use ``mask_token``)

Usage:
    from tradeauth.core.container import get_logger

    logger = get_logger()
    logger.warning("Refresh token reuse detected", user_id=str(user_id))

    request_logger = logger.bind(path=request.url.path)
    request_logger.debug("Bearer token inspected")
"""

from __future__ import annotations

from typing import Any, Protocol


class LoggerProtocol(Protocol):
    """Protocol for structured logging adapters."""

    def debug(self, message: str, /, **context: Any) -> None:
        """Log a debug-level message."""
        ...

    def info(self, message: str, /, **context: Any) -> None:
        """Log an info-level message."""
        ...

    def warning(self, message: str, /, **context: Any) -> None:
        """Log a warning-level message."""
        ...

    def error(
        self, message: str, /, *, error: Exception | None = None, **context: Any
    ) -> None:
        """Log an error-level message with optional exception details.

        Args:
            message: Human-readable message (avoid f-strings; use context).
            error: Optional exception; adapters add error_type and error_message.
            **context: Structured key-value context fields.
        """
        ...

    def critical(
        self, message: str, /, *, error: Exception | None = None, **context: Any
    ) -> None:
        """Log a critical-level message.

        Reserved for security events that need immediate attention, such as
        refresh token replay.
        """
        ...

    def bind(self, **context: Any) -> "LoggerProtocol":
        """Return new logger with permanently bound context."""
        ...


def mask_token(token: str, visible: int = 6) -> str:
    """Shorten a token for logs.

    Args:
        token: Full token value.
        visible: Number of leading characters to keep.

    Returns:
        The leading characters followed by an ellipsis.
    """
    if len(token) <= visible:
        return "***"
    return f"{token[:visible]}..."
