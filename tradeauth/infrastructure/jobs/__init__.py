"""Background jobs."""

from tradeauth.infrastructure.jobs.token_reaper import TokenReaper

__all__ = ["TokenReaper"]
