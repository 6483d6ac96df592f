from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import TeamRole
from ..core.exceptions import ConflictError, NotFoundError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, db_transaction, fetchall, fetchone, retry_reads
from .model import Team, TeamMember
from .repository import (
    ALREADY_MEMBER,
    LEADER_EXISTS,
    LEADER_NOT_REMOVABLE,
    NOT_A_MEMBER,
    TeamRepository,
)

LEADERSHIP_CHANGED = "Leadership changed concurrently, please retry"

_TEAM_COLUMNS = """
    t.team_id, t.company_id, t.name, t.description, t.leader_id, t.member_count, t.is_active, t.created_by
"""

_MEMBER_COLUMNS = """
    tm.member_id, tm.team_id, tm.user_id, tm.team_role, tm.joined_at, tm.left_at, tm.is_active,
    u.name AS user_name, u.email AS user_email
"""


class MySQLTeamRepository(TeamRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _to_team(r: dict) -> Team:
        return Team(
            team_id=int(r["team_id"]),
            company_id=r.get("company_id"),
            name=str(r["name"]),
            description=r.get("description"),
            leader_id=r.get("leader_id"),
            member_count=int(r.get("member_count") or 0),
            is_active=bool(r["is_active"]),
            created_by=r.get("created_by"),
        )

    @staticmethod
    def _to_member(r: dict) -> TeamMember:
        return TeamMember(
            member_id=int(r["member_id"]),
            team_id=int(r["team_id"]),
            user_id=int(r["user_id"]),
            team_role=TeamRole(r["team_role"]),
            joined_at=r["joined_at"],
            left_at=r.get("left_at"),
            is_active=bool(r["is_active"]),
            user_name=r.get("user_name"),
            user_email=r.get("user_email"),
        )

    @staticmethod
    def _lock_team(cur, team_id: int) -> dict:
        cur.execute(
            "SELECT team_id, leader_id FROM teams WHERE team_id=%s AND is_active=1 FOR UPDATE",
            (int(team_id),),
        )
        team = fetchone(cur)
        if not team:
            raise NotFoundError("Team not found")
        return team

    @staticmethod
    def _lock_membership(cur, team_id: int, user_id: int) -> Optional[dict]:
        cur.execute(
            """
            SELECT member_id, team_role FROM team_members
            WHERE team_id=%s AND user_id=%s AND is_active=1
            FOR UPDATE
            """,
            (int(team_id), int(user_id)),
        )
        return fetchone(cur)

    @staticmethod
    def _recount(cur, team_id: int) -> None:
        cur.execute(
            """
            UPDATE teams
            SET member_count = (SELECT COUNT(*) FROM team_members WHERE team_id=%s AND is_active=1)
            WHERE team_id=%s
            """,
            (int(team_id), int(team_id)),
        )

    @staticmethod
    def _insert_member(cur, team_id: int, user_id: int, role: TeamRole, joined_at: datetime) -> int:
        cur.execute(
            """
            INSERT INTO team_members(team_id, user_id, team_role, joined_at, is_active)
            VALUES(%s,%s,%s,%s,1)
            """,
            (int(team_id), int(user_id), role.value, joined_at),
        )
        member_id = int(cur.lastrowid)
        cur.execute("UPDATE users SET team_id=%s WHERE user_id=%s", (int(team_id), int(user_id)))
        return member_id

    @retry_reads
    def get_team(self, team_id: int) -> Optional[Team]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_TEAM_COLUMNS} FROM teams t WHERE t.team_id=%s", (int(team_id),))
            row = fetchone(cur)
            return self._to_team(row) if row else None

    @retry_reads
    def list_teams(self, company_id: Optional[int]) -> Sequence[Team]:
        where = "t.is_active=1"
        params: tuple = ()
        if company_id is not None:
            where += " AND t.company_id=%s"
            params = (int(company_id),)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_TEAM_COLUMNS} FROM teams t WHERE {where} ORDER BY t.created_at DESC, t.team_id DESC",
                params,
            )
            return [self._to_team(r) for r in fetchall(cur)]

    @retry_reads
    def list_teams_for_user(self, user_id: int) -> Sequence[Team]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TEAM_COLUMNS}
                FROM teams t
                JOIN team_members tm ON tm.team_id = t.team_id
                WHERE tm.user_id=%s AND tm.is_active=1 AND t.is_active=1
                ORDER BY t.created_at DESC, t.team_id DESC
                """,
                (int(user_id),),
            )
            return [self._to_team(r) for r in fetchall(cur)]

    @retry_reads
    def get_active_member(self, team_id: int, user_id: int) -> Optional[TeamMember]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_MEMBER_COLUMNS}
                FROM team_members tm
                JOIN users u ON u.user_id = tm.user_id
                WHERE tm.team_id=%s AND tm.user_id=%s AND tm.is_active=1
                """,
                (int(team_id), int(user_id)),
            )
            row = fetchone(cur)
            return self._to_member(row) if row else None

    @retry_reads
    def list_members(self, team_id: int) -> Sequence[TeamMember]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_MEMBER_COLUMNS}
                FROM team_members tm
                JOIN users u ON u.user_id = tm.user_id
                WHERE tm.team_id=%s AND tm.is_active=1
                ORDER BY tm.team_role = 'leader' DESC, tm.joined_at ASC
                """,
                (int(team_id),),
            )
            return [self._to_member(r) for r in fetchall(cur)]

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
        with db_transaction(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO teams(company_id, name, description, leader_id, member_count, is_active, created_by)
                VALUES(%s,%s,%s,%s,0,1,%s)
                """,
                (company_id, name, description, int(leader_user_id), int(created_by)),
            )
            team_id = int(cur.lastrowid)
            self._insert_member(cur, team_id, leader_user_id, TeamRole.LEADER, joined_at)
            self._recount(cur, team_id)
            return team_id

    def add_member(self, *, team_id: int, user_id: int, role: TeamRole, joined_at: datetime) -> int:
        conflict = LEADER_EXISTS if role == TeamRole.LEADER else ALREADY_MEMBER
        with db_transaction(self._conn_factory, conflict_message=conflict) as (_, cur):
            team = self._lock_team(cur, team_id)
            if self._lock_membership(cur, team_id, user_id):
                raise ConflictError(ALREADY_MEMBER)
            if role == TeamRole.LEADER and team.get("leader_id") is not None:
                raise ConflictError(LEADER_EXISTS)

            member_id = self._insert_member(cur, team_id, user_id, role, joined_at)
            if role == TeamRole.LEADER:
                cur.execute("UPDATE teams SET leader_id=%s WHERE team_id=%s", (int(user_id), int(team_id)))
            self._recount(cur, team_id)
            return member_id

    def promote_leader(self, *, team_id: int, user_id: int) -> None:
        with db_transaction(self._conn_factory, conflict_message=LEADERSHIP_CHANGED) as (_, cur):
            self._lock_team(cur, team_id)
            target = self._lock_membership(cur, team_id, user_id)
            if not target:
                raise NotFoundError(NOT_A_MEMBER)
            if target["team_role"] == TeamRole.LEADER.value:
                return

            # Demote before promoting: uq_team_members_leader is checked per statement.
            cur.execute(
                """
                UPDATE team_members SET team_role='member'
                WHERE team_id=%s AND is_active=1 AND team_role='leader'
                """,
                (int(team_id),),
            )
            cur.execute("UPDATE team_members SET team_role='leader' WHERE member_id=%s", (int(target["member_id"]),))
            cur.execute("UPDATE teams SET leader_id=%s WHERE team_id=%s", (int(user_id), int(team_id)))

    def remove_member(self, *, team_id: int, user_id: int, left_at: datetime) -> None:
        with db_transaction(self._conn_factory) as (_, cur):
            team = self._lock_team(cur, team_id)
            target = self._lock_membership(cur, team_id, user_id)
            if not target:
                raise NotFoundError(NOT_A_MEMBER)
            if target["team_role"] == TeamRole.LEADER.value or team.get("leader_id") == int(user_id):
                raise ConflictError(LEADER_NOT_REMOVABLE)

            cur.execute(
                "UPDATE team_members SET is_active=0, left_at=%s WHERE member_id=%s",
                (left_at, int(target["member_id"])),
            )
            cur.execute(
                "UPDATE users SET team_id=NULL WHERE user_id=%s AND team_id=%s",
                (int(user_id), int(team_id)),
            )
            self._recount(cur, team_id)

    def deactivate_team(self, *, team_id: int, left_at: datetime) -> None:
        with db_transaction(self._conn_factory) as (_, cur):
            self._lock_team(cur, team_id)
            cur.execute(
                "UPDATE team_members SET is_active=0, left_at=%s WHERE team_id=%s AND is_active=1",
                (left_at, int(team_id)),
            )
            cur.execute("UPDATE users SET team_id=NULL WHERE team_id=%s", (int(team_id),))
            cur.execute("UPDATE teams SET is_active=0, member_count=0 WHERE team_id=%s", (int(team_id),))
