"""User and admin repository protocols (ports)."""

from typing import Protocol
from uuid import UUID

from tradeauth.domain.entities import AdminAssignment, Principal


class UserRepository(Protocol):
    """Read access to principals."""

    async def find_by_id(self, user_id: UUID) -> Principal | None:
        """Find a principal by id."""
        ...

    async def find_many(self, user_ids: list[UUID]) -> list[Principal]:
        """Find several principals in one query (unknown ids are omitted)."""
        ...


class AdminRepository(Protocol):
    """Read access to administrative role assignments."""

    async def find_by_user_id(self, user_id: UUID) -> AdminAssignment | None:
        """Find the admin assignment of a principal, if any."""
        ...
