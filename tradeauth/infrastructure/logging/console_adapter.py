"""Console logging adapter.

Outputs structured logs using structlog.
- Development: human-readable console renderer with colors
- Production/testing (or LOG_JSON): JSON renderer for machine parsing

Every event passes through redact_credentials before rendering: token-valued
fields are shortened with mask_token and secret fields are replaced
outright, whatever the caller passed.

Does NOT inherit from LoggerProtocol (PEP 544 structural subtyping).
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, WrappedLogger

from tradeauth.domain.protocols import mask_token

MASKED_FIELDS = frozenset(
    {"token", "access_token", "refresh_token", "new_refresh_token", "authorization"}
)
REDACTED_FIELDS = frozenset({"password", "password_hash", "secret_key"})
REDACTED = "[REDACTED]"


def redact_credentials(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Mask token fields and drop secret fields from an event."""
    for field in MASKED_FIELDS & event_dict.keys():
        value = event_dict[field]
        if isinstance(value, str):
            event_dict[field] = mask_token(value)
    for field in REDACTED_FIELDS & event_dict.keys():
        event_dict[field] = REDACTED
    return event_dict


def resolve_level(level: str) -> int:
    """Map a level name to its logging constant.

    Raises:
        ValueError: If the name is not a standard level.
    """
    try:
        return logging.getLevelNamesMapping()[level.upper()]
    except KeyError:
        raise ValueError(f"unknown log level: {level}") from None


class ConsoleAdapter:
    """Structlog-backed logger.

    Args:
        use_json (bool): JSON output when True, human-readable when False.
        level (str): Minimum level name (DEBUG, INFO, ...).
        environment (str | None): Bound to every event when given.
        stream (TextIO | None): Output stream (stdout when omitted).
    """

    def __init__(
        self,
        *,
        use_json: bool = False,
        level: str = "INFO",
        environment: str | None = None,
        stream: TextIO | None = None,
    ) -> None:
        processors: list[structlog.types.Processor] = [
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_credentials,
            structlog.processors.StackInfoRenderer(),
        ]

        if use_json:
            processors.append(structlog.processors.format_exc_info)
            processors.append(structlog.processors.JSONRenderer())
        else:
            processors.append(structlog.dev.ConsoleRenderer(colors=stream is None))

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.make_filtering_bound_logger(resolve_level(level)),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
            cache_logger_on_first_use=True,
        )

        logger = structlog.get_logger()
        if environment is not None:
            logger = logger.bind(environment=environment)
        self._logger = logger

    def debug(self, message: str, /, **context: Any) -> None:
        self._logger.debug(message, **context)

    def info(self, message: str, /, **context: Any) -> None:
        self._logger.info(message, **context)

    def warning(self, message: str, /, **context: Any) -> None:
        self._logger.warning(message, **context)

    def error(
        self, message: str, /, *, error: Exception | None = None, **context: Any
    ) -> None:
        """Log an error, adding error_type/error_message when given."""
        self._logger.error(message, **_with_error(context, error))

    def critical(
        self, message: str, /, *, error: Exception | None = None, **context: Any
    ) -> None:
        """Log a critical event (reuse detection, etc.)."""
        self._logger.critical(message, **_with_error(context, error))

    def bind(self, **context: Any) -> ConsoleAdapter:
        """Return a new adapter with context bound to every event."""
        bound_adapter = ConsoleAdapter.__new__(ConsoleAdapter)
        bound_adapter._logger = self._logger.bind(**context)
        return bound_adapter


def _with_error(context: dict[str, Any], error: Exception | None) -> dict[str, Any]:
    if error is not None:
        context["error_type"] = type(error).__name__
        context["error_message"] = str(error)
    return context
