from __future__ import annotations

import logging
from typing import Optional

from ..access.guard import AccessGuard
from ..access.roles import Caller
from ..common.validators import require_non_empty
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from .model import User, UserProfile
from .repository import UserRepository

logger = logging.getLogger(__name__)

_UNSET = object()


class UserService:
    """Use case: self-service profile reads and edits."""

    def __init__(self, users: UserRepository, guard: AccessGuard):
        self._users = users
        self._guard = guard

    def _get_active(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user or not user.is_active:
            raise NotFoundError("User not found")
        return user

    def get_profile(self, caller: Caller, user_id: int) -> UserProfile:
        user = self._get_active(user_id)
        self._guard.require_self_service(caller, target_user_id=user.user_id, target_company_id=user.company_id)
        return self._to_profile(caller, user)

    def update_profile(
        self,
        caller: Caller,
        user_id: int,
        *,
        name: Optional[str] = None,
        timezone: Optional[str] = None,
        hourly_rate=_UNSET,
    ) -> UserProfile:
        user = self._get_active(user_id)
        self._guard.require_self_service(caller, target_user_id=user.user_id, target_company_id=user.company_id)

        changes: dict = {}
        if name is not None:
            changes["name"] = require_non_empty(name, "Name")
        if timezone is not None:
            changes["timezone"] = require_non_empty(timezone, "Timezone")
        if hourly_rate is not _UNSET:
            if not self._guard.can_edit_hourly_rates(
                caller, target_user_id=user.user_id, target_company_id=user.company_id
            ):
                raise AuthorizationError("Access denied: you cannot change this user's hourly rate")
            changes["hourly_rate"] = self._validate_rate(hourly_rate)

        if changes:
            self._users.update_profile(user.user_id, changes)
            logger.info("User %s updated profile of user %s: %s", caller.user_id, user.user_id, sorted(changes))
        return self._to_profile(caller, self._get_active(user.user_id))

    @staticmethod
    def _validate_rate(value) -> float:
        try:
            rate = float(value)
        except (TypeError, ValueError):
            raise ValidationError("Hourly rate must be a number")
        if rate < 0:
            raise ValidationError("Hourly rate cannot be negative")
        return rate

    def _to_profile(self, caller: Caller, user: User) -> UserProfile:
        can_see_rate = self._guard.can_view_hourly_rates(
            caller, target_user_id=user.user_id, target_company_id=user.company_id
        )
        return UserProfile(
            user_id=user.user_id,
            company_id=user.company_id,
            name=user.name,
            email=user.email,
            role=user.role,
            team_id=user.team_id,
            timezone=user.timezone,
            hourly_rate=user.hourly_rate if can_see_rate else None,
        )
