"""Domain enums package."""

from tradeauth.domain.enums.admin_role import AdminRole
from tradeauth.domain.enums.reuse_policy import ReusePolicy

__all__ = ["AdminRole", "ReusePolicy"]
