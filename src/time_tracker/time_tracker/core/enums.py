from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles, ordered by privilege.

    employee < hr < admin < super_admin. ``root`` sits outside the ladder:
    it passes every privilege check and is not bound to a company.
    """

    EMPLOYEE = "employee"
    HR = "hr"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    ROOT = "root"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]


_ROLE_RANK = {
    Role.EMPLOYEE: 0,
    Role.HR: 1,
    Role.ADMIN: 2,
    Role.SUPER_ADMIN: 3,
    Role.ROOT: 4,
}


class TeamRole(str, Enum):
    MEMBER = "member"
    LEADER = "leader"


class Operation(str, Enum):
    """Kinds of scoped operations checked by the access guard."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SummaryPeriod(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
