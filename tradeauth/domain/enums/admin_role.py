"""Administrative roles assignable to a principal."""

from enum import Enum


class AdminRole(str, Enum):
    """Administrative roles.

    CATEGORY_ADMIN is scoped to a single product category; the others are
    platform-wide.
    """

    SUPER = "super"
    CATEGORY_ADMIN = "category_admin"
    REPORT_ADMIN = "report_admin"
