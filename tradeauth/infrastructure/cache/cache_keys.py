"""Cache key construction utilities.

Every key follows {prefix}:{namespace}:{id}.

Usage:
    keys = CacheKeys(prefix=settings.cache_key_prefix)
    keys.user(user_id)               # "tradeauth:user:{id}"
    keys.user_security(user_id)      # "tradeauth:user:security:{id}"
    keys.blacklist(jti)              # "tradeauth:blacklist:{jti}"
"""

from dataclasses import dataclass
from uuid import UUID


@dataclass
class CacheKeys:
    """Centralized cache key construction.

    Attributes:
        prefix: Key prefix shared by every entry of this deployment.
    """

    prefix: str

    @property
    def registry(self) -> str:
        """Key of the sorted set indexing every key written through the cache."""
        return f"{self.prefix}:cache:registry"

    def user(self, user_id: UUID) -> str:
        """Profile key: {prefix}:user:{user_id}."""
        return f"{self.prefix}:user:{user_id}"

    def user_security(self, user_id: UUID) -> str:
        """Security info key: {prefix}:user:security:{user_id}."""
        return f"{self.prefix}:user:security:{user_id}"

    def user_permissions(self, user_id: UUID) -> str:
        """Permission list key: {prefix}:user:permissions:{user_id}."""
        return f"{self.prefix}:user:permissions:{user_id}"

    def user_namespaces(self, user_id: UUID) -> list[str]:
        """All three user cache keys of a principal."""
        return [
            self.user(user_id),
            self.user_security(user_id),
            self.user_permissions(user_id),
        ]

    def blacklist(self, jti: str) -> str:
        """Revoked access token key: {prefix}:blacklist:{jti}."""
        return f"{self.prefix}:blacklist:{jti}"

    def namespace_from_key(self, key: str) -> str:
        """Extract the namespace for metrics tracking.

        Example:
            "tradeauth:user:security:123" -> "user:security"
        """
        parts = key.split(":")
        if len(parts) >= 3:
            return ":".join(parts[1:-1])
        if len(parts) == 2:
            return parts[1]
        return "unknown"
