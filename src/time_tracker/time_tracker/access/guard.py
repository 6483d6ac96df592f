from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.enums import Operation, Role
from ..core.exceptions import AuthorizationError
from .roles import Caller, can_act_on_company, has_privilege, is_admin_role

logger = logging.getLogger(__name__)

CROSS_TENANT = "Access denied: record belongs to another company"
NOT_OWNER = "Access denied: you can only act on your own records"
ADMIN_ONLY = "Access denied: administrator role required"
TEAM_MANAGER_ONLY = "Access denied: only the team leader or an administrator can manage members"
TEAM_MEMBERS_ONLY = "Access denied: you are not a member of this team"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None
    cross_tenant: bool = False

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = Decision(True)


def denied(reason: str, *, cross_tenant: bool = False) -> Decision:
    return Decision(False, reason, cross_tenant)


class AccessGuard:
    """Authorization consulted before every scoped read or mutation.

    A denial is always raised as AuthorizationError (HTTP 403 at the boundary);
    results are never filtered silently.
    """

    def check(
        self,
        caller: Caller,
        operation: Operation,
        *,
        target_company_id: Optional[int] = None,
        owner_id: Optional[int] = None,
    ) -> Decision:
        if operation == Operation.CREATE:
            # The target company is forced to the caller's own, see company_for_create.
            return ALLOWED

        if not can_act_on_company(caller, target_company_id):
            return denied(CROSS_TENANT, cross_tenant=True)

        if owner_id is None:
            # Company-level resource: any member of the tenant may read it, admin-tier may change it.
            if operation == Operation.READ or is_admin_role(caller.role):
                return ALLOWED
            return denied(ADMIN_ONLY)

        if owner_id == caller.user_id or is_admin_role(caller.role):
            return ALLOWED
        return denied(NOT_OWNER)

    def require(
        self,
        caller: Caller,
        operation: Operation,
        *,
        target_company_id: Optional[int] = None,
        owner_id: Optional[int] = None,
    ) -> None:
        decision = self.check(caller, operation, target_company_id=target_company_id, owner_id=owner_id)
        self._raise_if_denied(caller, operation, decision)

    def require_admin(self, caller: Caller, *, target_company_id: Optional[int] = None, scoped: bool = True) -> None:
        if not is_admin_role(caller.role):
            self._raise_if_denied(caller, Operation.READ, denied(ADMIN_ONLY))
        if scoped and not can_act_on_company(caller, target_company_id):
            self._raise_if_denied(caller, Operation.READ, denied(CROSS_TENANT, cross_tenant=True))

    def company_for_create(self, caller: Caller) -> Optional[int]:
        """Company a new record is created under: always the caller's own, whatever the request says."""
        return caller.company_id

    def check_self_service(self, caller: Caller, *, target_user_id: int, target_company_id: Optional[int]) -> Decision:
        """Profile-style endpoints: self always passes, others need admin-tier in the same company."""
        if caller.user_id == target_user_id:
            return ALLOWED
        if not is_admin_role(caller.role):
            return denied(NOT_OWNER)
        if not can_act_on_company(caller, target_company_id):
            return denied(CROSS_TENANT, cross_tenant=True)
        return ALLOWED

    def require_self_service(self, caller: Caller, *, target_user_id: int, target_company_id: Optional[int]) -> None:
        decision = self.check_self_service(caller, target_user_id=target_user_id, target_company_id=target_company_id)
        self._raise_if_denied(caller, Operation.UPDATE, decision)

    def check_team_manager(self, caller: Caller, *, team_company_id: Optional[int], leader_id: Optional[int]) -> Decision:
        """Membership changes: the team's current leader or admin-tier, both within the team's company."""
        if not can_act_on_company(caller, team_company_id):
            return denied(CROSS_TENANT, cross_tenant=True)
        if is_admin_role(caller.role) or (leader_id is not None and caller.user_id == leader_id):
            return ALLOWED
        return denied(TEAM_MANAGER_ONLY)

    def require_team_manager(self, caller: Caller, *, team_company_id: Optional[int], leader_id: Optional[int]) -> None:
        decision = self.check_team_manager(caller, team_company_id=team_company_id, leader_id=leader_id)
        self._raise_if_denied(caller, Operation.UPDATE, decision)

    def require_team_reader(self, caller: Caller, *, team_company_id: Optional[int], is_member: bool) -> None:
        """Member lists are visible to active members and admin-tier only, never as an empty list."""
        if not can_act_on_company(caller, team_company_id):
            decision = denied(CROSS_TENANT, cross_tenant=True)
        elif is_member or is_admin_role(caller.role):
            decision = ALLOWED
        else:
            decision = denied(TEAM_MEMBERS_ONLY)
        self._raise_if_denied(caller, Operation.READ, decision)

    def can_view_hourly_rates(self, caller: Caller, *, target_user_id: int, target_company_id: Optional[int]) -> bool:
        if caller.user_id == target_user_id:
            return True
        return is_admin_role(caller.role) and can_act_on_company(caller, target_company_id)

    def can_edit_hourly_rates(self, caller: Caller, *, target_user_id: int, target_company_id: Optional[int]) -> bool:
        if caller.user_id == target_user_id:
            return True
        # hr may see rates but not change them
        return has_privilege(caller.role, Role.ADMIN) and can_act_on_company(caller, target_company_id)

    @staticmethod
    def _raise_if_denied(caller: Caller, operation: Operation, decision: Decision) -> None:
        if decision.allowed:
            return
        logger.warning(
            "Denied %s for user=%s role=%s company=%s: %s",
            operation.value,
            caller.user_id,
            caller.role.value,
            caller.company_id,
            decision.reason,
        )
        raise AuthorizationError(decision.reason or "Access denied", cross_tenant=decision.cross_tenant)
