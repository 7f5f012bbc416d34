"""Process-local fast tier for user profiles.

Entries have no TTL of their own; they are written and dropped only by the
UserCache that owns the store. Each UserCache receives its store at
construction, so tests build isolated instances.

The store also tracks fills in flight. Invalidating a principal marks every
open fill for it stale, and UserCache drops the results of stale fills
instead of writing them to either tier.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from uuid import UUID

from tradeauth.domain.entities import Principal


@dataclass(eq=False)
class FillTicket:
    """One in-flight load for a principal."""

    user_id: UUID
    stale: bool = field(default=False)


class LocalUserStore:
    """In-memory map of principal id to profile.

    Reads and writes are plain dict operations. Under asyncio they run
    between awaits, so no lock is needed.
    """

    def __init__(self) -> None:
        self._profiles: dict[UUID, Principal] = {}
        self._fills: dict[UUID, set[FillTicket]] = {}

    def get(self, user_id: UUID) -> Principal | None:
        return self._profiles.get(user_id)

    def put(self, principal: Principal) -> None:
        self._profiles[principal.id] = principal

    def discard(self, user_id: UUID) -> None:
        """Drop the profile and mark open fills for it stale."""
        self._profiles.pop(user_id, None)
        self.mark_stale(user_id)

    def mark_stale(self, user_id: UUID) -> None:
        for ticket in self._fills.get(user_id, ()):
            ticket.stale = True

    @contextmanager
    def fill(self, user_id: UUID) -> Iterator[FillTicket]:
        """Register a load for user_id for the duration of the block."""
        ticket = FillTicket(user_id)
        self._fills.setdefault(user_id, set()).add(ticket)
        try:
            yield ticket
        finally:
            tickets = self._fills[user_id]
            tickets.discard(ticket)
            if not tickets:
                del self._fills[user_id]

    @property
    def fills_in_flight(self) -> int:
        return sum(len(tickets) for tickets in self._fills.values())

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)
