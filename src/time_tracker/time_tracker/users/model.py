from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.constants import DEFAULT_HOURLY_RATE
from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: User.

    Plain data only; role and company are set once at signup and never edited here.
    """

    user_id: int
    company_id: Optional[int]
    name: str
    email: str
    role: Role
    team_id: Optional[int] = None
    hourly_rate: float = float(DEFAULT_HOURLY_RATE)
    timezone: str = "UTC"
    is_active: bool = True


@dataclass(frozen=True)
class UserProfile:
    """Read-model returned to callers; ``hourly_rate`` is None when the caller may not see it."""

    user_id: int
    company_id: Optional[int]
    name: str
    email: str
    role: Role
    team_id: Optional[int]
    timezone: str
    hourly_rate: Optional[float]
