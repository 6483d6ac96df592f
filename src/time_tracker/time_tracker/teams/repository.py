from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import TeamRole
from .model import Team, TeamMember

ALREADY_MEMBER = "User is already an active member of this team"
LEADER_EXISTS = "Team already has a leader; promote a member to transfer leadership"
LEADER_NOT_REMOVABLE = "Cannot remove the team leader: transfer leadership or delete the team first"
NOT_A_MEMBER = "User is not an active member of this team"


class TeamRepository(Protocol):
    """Team and membership storage.

    Every write runs as one transaction that also recomputes ``member_count``,
    so the count and the single-leader rule hold under concurrent requests.
    """

    def get_team(self, team_id: int) -> Optional[Team]:
        raise NotImplementedError

    def get_active_member(self, team_id: int, user_id: int) -> Optional[TeamMember]:
        raise NotImplementedError

    def list_members(self, team_id: int) -> Sequence[TeamMember]:
        """Active members, leader first, then by join time."""
        raise NotImplementedError

    def create_team(
        self,
        *,
        company_id: Optional[int],
        name: str,
        description: Optional[str],
        leader_user_id: int,
        created_by: int,
        joined_at: datetime,
    ) -> int:
        raise NotImplementedError

    def add_member(self, *, team_id: int, user_id: int, role: TeamRole, joined_at: datetime) -> int:
        """Insert an active membership. ConflictError on a duplicate or a second leader."""
        raise NotImplementedError

    def promote_leader(self, *, team_id: int, user_id: int) -> None:
        """Demote the current leader and promote ``user_id`` in one transaction."""
        raise NotImplementedError

    def remove_member(self, *, team_id: int, user_id: int, left_at: datetime) -> None:
        """Soft-delete a non-leader membership. ConflictError for the leader."""
        raise NotImplementedError

    def list_teams(self, company_id: Optional[int]) -> Sequence[Team]:
        """Active teams, newest first. ``None`` spans every company."""
        raise NotImplementedError

    def list_teams_for_user(self, user_id: int) -> Sequence[Team]:
        """Active teams the user currently belongs to."""
        raise NotImplementedError

    def deactivate_team(self, *, team_id: int, left_at: datetime) -> None:
        """Soft-delete the team and close every active membership."""
        raise NotImplementedError
