from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from .model import User


class UserRepository(Protocol):
    """Repository interface for User.

    Services depend on this interface, never on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def update_profile(self, user_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError
