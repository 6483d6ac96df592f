from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import TeamRole


@dataclass(frozen=True)
class Team:
    team_id: int
    company_id: Optional[int]
    name: str
    leader_id: Optional[int] = None
    member_count: int = 0
    description: Optional[str] = None
    is_active: bool = True
    created_by: Optional[int] = None


@dataclass(frozen=True)
class TeamMember:
    """One membership row. Inactive rows are history; rejoining creates a new row."""

    member_id: int
    team_id: int
    user_id: int
    team_role: TeamRole
    joined_at: datetime
    left_at: Optional[datetime] = None
    is_active: bool = True
    user_name: Optional[str] = None
    user_email: Optional[str] = None

    @property
    def is_leader(self) -> bool:
        return self.is_active and self.team_role == TeamRole.LEADER
