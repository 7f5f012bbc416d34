"""Domain entities."""

from tradeauth.domain.entities.access_claims import AccessClaims
from tradeauth.domain.entities.principal import AdminAssignment, Principal, SecurityInfo
from tradeauth.domain.entities.token_pair import TokenPair

__all__ = [
    "AccessClaims",
    "AdminAssignment",
    "Principal",
    "SecurityInfo",
    "TokenPair",
]
