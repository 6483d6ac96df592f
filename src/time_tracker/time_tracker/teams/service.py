from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..access.guard import AccessGuard
from ..access.roles import Caller, is_root
from ..common.datetime_utils import Clock, now_local
from ..common.validators import clean_description, require_non_empty, require_positive_int
from ..core.enums import Operation, TeamRole
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..users.model import User
from ..users.repository import UserRepository
from .model import Team, TeamMember
from .repository import LEADER_EXISTS, LEADER_NOT_REMOVABLE, NOT_A_MEMBER, TeamRepository

logger = logging.getLogger(__name__)


def parse_team_role(value) -> TeamRole:
    if isinstance(value, TeamRole):
        return value
    try:
        return TeamRole(str(value).strip().lower())
    except ValueError:
        raise ValidationError("Team role must be 'member' or 'leader'")


class TeamService:
    """Team membership with a single active leader per team.

    Members are addressed by user id. Leadership moves only by promoting
    another member; the leader is never removed or demoted directly.
    """

    def __init__(
        self,
        teams: TeamRepository,
        users: UserRepository,
        guard: AccessGuard,
        *,
        clock: Clock = now_local,
    ):
        self._teams = teams
        self._users = users
        self._guard = guard
        self._clock = clock

    def _now(self) -> datetime:
        return self._clock().replace(microsecond=0)

    def _get_team(self, team_id: int) -> Team:
        team = self._teams.get_team(require_positive_int(team_id, "Team id"))
        if not team or not team.is_active:
            raise NotFoundError("Team not found")
        return team

    def _get_user_in_company(self, company_id: Optional[int], user_id: int) -> User:
        user = self._users.get_by_id(require_positive_int(user_id, "User id"))
        if not user or not user.is_active:
            raise NotFoundError("User not found")
        if company_id is not None and user.company_id != company_id:
            raise AuthorizationError("Access denied: user belongs to another company", cross_tenant=True)
        return user

    def _get_member(self, team: Team, user_id: int) -> TeamMember:
        member = self._teams.get_active_member(team.team_id, require_positive_int(user_id, "User id"))
        if not member:
            raise NotFoundError(NOT_A_MEMBER)
        return member

    def _require_manager(self, caller: Caller, team: Team) -> None:
        self._guard.require_team_manager(caller, team_company_id=team.company_id, leader_id=team.leader_id)

    def create_team(
        self,
        caller: Caller,
        *,
        name: str,
        leader_user_id: int,
        description: Optional[str] = None,
    ) -> Team:
        company_id = self._guard.company_for_create(caller)
        self._guard.require_admin(caller, target_company_id=company_id, scoped=company_id is not None)

        name = require_non_empty(name or "", "Team name")
        leader = self._get_user_in_company(company_id, leader_user_id)

        team_id = self._teams.create_team(
            company_id=company_id,
            name=name,
            description=clean_description(description),
            leader_user_id=leader.user_id,
            created_by=caller.user_id,
            joined_at=self._now(),
        )
        logger.info("Team %s created by user %s with leader %s", team_id, caller.user_id, leader.user_id)
        return self._get_team(team_id)

    def get_team(self, caller: Caller, team_id: int) -> Team:
        team = self._get_team(team_id)
        self._guard.require(caller, Operation.READ, target_company_id=team.company_id)
        return team

    def add_member(self, caller: Caller, team_id: int, user_id: int, role=TeamRole.MEMBER) -> TeamMember:
        team = self._get_team(team_id)
        self._require_manager(caller, team)
        role = parse_team_role(role)
        user = self._get_user_in_company(team.company_id, user_id)

        if role == TeamRole.LEADER and team.leader_id is not None:
            raise ConflictError(LEADER_EXISTS)

        self._teams.add_member(team_id=team.team_id, user_id=user.user_id, role=role, joined_at=self._now())
        logger.info("User %s added to team %s as %s by user %s", user.user_id, team.team_id, role.value, caller.user_id)
        return self._get_member(team, user.user_id)

    def change_role(self, caller: Caller, team_id: int, user_id: int, new_role) -> TeamMember:
        team = self._get_team(team_id)
        self._require_manager(caller, team)
        new_role = parse_team_role(new_role)
        member = self._get_member(team, user_id)

        if new_role == member.team_role:
            return member

        if new_role == TeamRole.MEMBER:
            # Demoting the leader would leave the team leaderless.
            raise ConflictError("Cannot demote the team leader: promote another member instead")

        self._teams.promote_leader(team_id=team.team_id, user_id=member.user_id)
        logger.info(
            "Team %s leadership transferred from user %s to user %s by user %s",
            team.team_id,
            team.leader_id,
            member.user_id,
            caller.user_id,
        )
        return self._get_member(team, member.user_id)

    def remove_member(self, caller: Caller, team_id: int, user_id: int) -> None:
        """Soft-delete a membership. The leader is never removable, whoever asks."""
        team = self._get_team(team_id)
        # Tenant scope first so other companies learn nothing about the team.
        self._guard.require(caller, Operation.READ, target_company_id=team.company_id)
        member = self._get_member(team, user_id)

        if member.is_leader or team.leader_id == member.user_id:
            raise ConflictError(LEADER_NOT_REMOVABLE)
        self._require_manager(caller, team)

        self._teams.remove_member(team_id=team.team_id, user_id=member.user_id, left_at=self._now())
        logger.info("User %s removed from team %s by user %s", member.user_id, team.team_id, caller.user_id)

    def list_members(self, caller: Caller, team_id: int) -> Sequence[TeamMember]:
        team = self._get_team(team_id)
        is_member = self._teams.get_active_member(team.team_id, caller.user_id) is not None
        self._guard.require_team_reader(caller, team_company_id=team.company_id, is_member=is_member)
        return self._teams.list_members(team.team_id)

    def list_teams(self, caller: Caller, company_id: Optional[int] = None) -> Sequence[Team]:
        """Active teams of a company. Root may name any company or none (all tenants)."""
        if company_id is None and is_root(caller.role):
            return self._teams.list_teams(None)

        company_id = caller.company_id if company_id is None else require_positive_int(company_id, "Company id")
        self._guard.require(caller, Operation.READ, target_company_id=company_id)
        return self._teams.list_teams(company_id)

    def list_user_teams(self, caller: Caller, user_id: Optional[int] = None) -> Sequence[Team]:
        if user_id is None or int(user_id) == caller.user_id:
            return self._teams.list_teams_for_user(caller.user_id)

        user = self._users.get_by_id(require_positive_int(user_id, "User id"))
        if not user:
            raise NotFoundError("User not found")
        self._guard.require(caller, Operation.READ, target_company_id=user.company_id, owner_id=user.user_id)
        return self._teams.list_teams_for_user(user.user_id)

    def delete_team(self, caller: Caller, team_id: int) -> None:
        team = self._get_team(team_id)
        self._guard.require_admin(caller, target_company_id=team.company_id)

        self._teams.deactivate_team(team_id=team.team_id, left_at=self._now())
        logger.info("Team %s deleted by user %s (%s members released)", team.team_id, caller.user_id, team.member_count)
