"""Access token blacklist.

Revoked access tokens are recorded in the cache under {prefix}:blacklist:{jti}
until they would have expired anyway (plus leeway for clock skew). Entries
are written unregistered, so clear_all and prefix removal never drop them.

Needs no database session, so the request-time guard shares one instance
with every TokenService.
"""

from tradeauth.domain.entities import AccessClaims
from tradeauth.domain.protocols import LoggerProtocol
from tradeauth.infrastructure.cache import CacheService


class TokenBlacklist:
    """Blacklist keyed by access token jti."""

    def __init__(
        self,
        cache: CacheService,
        logger: LoggerProtocol,
        *,
        enabled: bool = True,
        leeway_seconds: int = 60,
    ) -> None:
        self._cache = cache
        self._logger = logger
        self._enabled = enabled
        self._leeway = leeway_seconds

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def add(self, jti: str, ttl: int) -> bool:
        """Blacklist a jti for ttl seconds.

        Returns:
            True if the entry was written.
        """
        if not self._enabled or ttl <= 0:
            return False
        written = await self._cache.set(
            self._cache.keys.blacklist(jti), True, ttl, register=False
        )
        if not written:
            self._logger.error("Failed to blacklist access token", jti=jti)
        return written

    async def add_claims(self, claims: AccessClaims) -> bool:
        """Blacklist a verified token until it expires, plus leeway.

        Already-expired tokens are skipped: verification rejects them anyway.
        """
        remaining = claims.remaining_seconds()
        if remaining <= 0:
            return False
        return await self.add(claims.jti, remaining + self._leeway)

    async def contains(self, jti: str) -> bool:
        """Whether a jti is blacklisted. Cache failures report False."""
        if not self._enabled:
            return False
        return await self._cache.exists(self._cache.keys.blacklist(jti))
