from __future__ import annotations

from typing import Any, Mapping, Optional

from ..core.constants import DEFAULT_HOURLY_RATE
from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, retry_reads
from .model import User
from .repository import UserRepository

_PROFILE_COLUMNS = {"name": "name", "timezone": "timezone", "hourly_rate": "hourly_rate"}


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @retry_reads
    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT user_id, company_id, team_id, name, email, role, hourly_rate, timezone, is_active
                FROM users
                WHERE user_id=%s
                """,
                (int(user_id),),
            )
            row = fetchone(cur)
            if not row:
                return None
            return User(
                user_id=int(row["user_id"]),
                company_id=row.get("company_id"),
                team_id=row.get("team_id"),
                name=row["name"],
                email=row["email"],
                role=Role(row["role"]),
                hourly_rate=float(row["hourly_rate"]) if row.get("hourly_rate") is not None else float(DEFAULT_HOURLY_RATE),
                timezone=row.get("timezone") or "UTC",
                is_active=bool(row.get("is_active", True)),
            )

    def update_profile(self, user_id: int, changes: Mapping[str, Any]) -> bool:
        fields = [f"{_PROFILE_COLUMNS[k]}=%s" for k in changes]
        if not fields:
            return True
        params = [*changes.values(), int(user_id)]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE users SET {', '.join(fields)} WHERE user_id=%s AND is_active=1", tuple(params))
            return cur.rowcount > 0
