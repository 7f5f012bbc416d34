"""Cache protocol for domain layer.

The key/value backend the generic cache sits on. Any store with per-key TTL
satisfies it; the production adapter is Redis.

Architecture:
- Protocol-based - uses structural typing
- All operations return Result types
- Key enumeration is NOT part of the contract; callers that need prefix
  removal keep their own key index through the ``index_*`` operations
"""

import builtins
from typing import Protocol

from tradeauth.core.errors import DomainError
from tradeauth.core.result import Result


class CacheProtocol(Protocol):
    """Cache backend contract.

    Fail-open strategy: callers treat Failure as a miss (reads) or a skipped
    write, never as an error to surface.
    """

    async def get(self, key: str) -> Result[str | None, DomainError]:
        """Get a value.

        Returns:
            Result with the value, None on miss, or CacheError.
        """
        ...

    async def get_many(self, keys: list[str]) -> Result[dict[str, str], DomainError]:
        """Get several values in one round trip.

        Returns:
            Result with a mapping of found keys to values (misses omitted).
        """
        ...

    async def set(
        self, key: str, value: str, ttl: int | None = None
    ) -> Result[None, DomainError]:
        """Set a value with optional TTL in seconds."""
        ...

    async def delete(self, key: str) -> Result[bool, DomainError]:
        """Delete a key.

        Returns:
            Result with True if the key existed.
        """
        ...

    async def delete_many(self, keys: list[str]) -> Result[int, DomainError]:
        """Delete several keys.

        Returns:
            Result with the number of keys removed.
        """
        ...

    async def exists(self, key: str) -> Result[bool, DomainError]:
        """Check whether a key exists."""
        ...

    async def existing_keys(self, keys: list[str]) -> Result[builtins.set[str], DomainError]:
        """Return the subset of keys that currently exist."""
        ...

    async def ttl(self, key: str) -> Result[int | None, DomainError]:
        """Remaining TTL in seconds (None if no TTL or no key)."""
        ...

    async def index_add(self, index: str, *members: str) -> Result[None, DomainError]:
        """Add members to a lexicographically ordered key index."""
        ...

    async def index_members(
        self, index: str, prefix: str
    ) -> Result[list[str], DomainError]:
        """List index members that start with ``prefix``."""
        ...

    async def index_remove(self, index: str, *members: str) -> Result[int, DomainError]:
        """Remove members from a key index."""
        ...
