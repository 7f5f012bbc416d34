"""Revocation scope applied when a rotated refresh token is replayed."""

from enum import Enum


class ReusePolicy(str, Enum):
    """What gets revoked when refresh token reuse is detected.

    CHAIN revokes the replayed token and every successor produced from it.
    ALL_SESSIONS revokes every active refresh token of the principal.
    """

    CHAIN = "chain"
    ALL_SESSIONS = "all_sessions"
