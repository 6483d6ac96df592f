"""Tenant & role model.

Pure predicates evaluated once per request; none of them raise. Anything the
caller cannot do is simply ``False``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role

ADMIN_TIER = frozenset({Role.HR, Role.ADMIN, Role.SUPER_ADMIN, Role.ROOT})


@dataclass(frozen=True)
class Caller:
    """Verified identity of the requester: (user_id, role, company_id)."""

    user_id: int
    role: Role
    company_id: Optional[int]


def is_root(role: Role) -> bool:
    return role == Role.ROOT


def is_admin_role(role: Role) -> bool:
    """True for hr, admin, super_admin and root."""
    return role in ADMIN_TIER


def has_privilege(role: Role, minimum: Role) -> bool:
    """True when ``role`` sits at or above ``minimum`` on the ladder; root always passes."""
    if is_root(role):
        return True
    if is_root(minimum):
        return False
    return role.rank >= minimum.rank


def can_act_on_company(caller: Caller, target_company_id: Optional[int]) -> bool:
    if is_root(caller.role):
        return True
    return caller.company_id is not None and caller.company_id == target_company_id
