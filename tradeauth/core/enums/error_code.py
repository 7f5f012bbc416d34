"""Machine-readable error codes.

Codes follow ENTITY_REASON naming. The enum member name is what clients
see in rejection envelopes (``error_code``); the value is the internal
lowercase identifier used in logs.
"""

from enum import Enum


class ErrorCode(Enum):
    """Error codes shared by every layer."""

    # Validation errors
    VALIDATION_FAILED = "validation_failed"

    # Token errors
    TOKEN_INVALID = "token_invalid"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_REVOKED = "token_revoked"
    TOKEN_REUSE_DETECTED = "token_reuse_detected"
    DEVICE_MISMATCH = "device_mismatch"

    # Infrastructure errors
    CACHE_UNAVAILABLE = "cache_unavailable"
