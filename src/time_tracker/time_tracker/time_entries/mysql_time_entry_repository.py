from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, db_transaction, fetchall, fetchone, in_clause, retry_reads
from .model import NewTimeEntry, TimeEntry
from .repository import TIMER_ALREADY_RUNNING, TimeEntryRepository

_COLUMNS = """
    entry_id, user_id, company_id, project_id, project_name, client_id, client_name,
    description, start_time, end_time, duration, is_running, is_billable
"""

_UPDATABLE = {
    "project_id",
    "project_name",
    "client_id",
    "client_name",
    "description",
    "is_billable",
    "end_time",
    "duration",
}

class MySQLTimeEntryRepository(TimeEntryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _to_entry(r: dict, tags: Sequence[str] = ()) -> TimeEntry:
        return TimeEntry(
            entry_id=int(r["entry_id"]),
            user_id=int(r["user_id"]),
            company_id=r.get("company_id"),
            project_id=r.get("project_id"),
            project_name=r.get("project_name"),
            client_id=r.get("client_id"),
            client_name=r.get("client_name"),
            description=r.get("description"),
            start_time=r["start_time"],
            end_time=r.get("end_time"),
            duration=int(r.get("duration") or 0),
            is_running=bool(r["is_running"]),
            is_billable=bool(r["is_billable"]),
            tags=tuple(tags),
        )

    @staticmethod
    def _load_tags(cur, entry_ids: Sequence[int]) -> dict[int, list[str]]:
        tags: dict[int, list[str]] = defaultdict(list)
        if not entry_ids:
            return tags
        cur.execute(
            f"SELECT time_entry_id, tag FROM time_entry_tags WHERE time_entry_id IN ({in_clause(entry_ids)}) ORDER BY tag",
            tuple(entry_ids),
        )
        for r in fetchall(cur):
            tags[int(r["time_entry_id"])].append(r["tag"])
        return tags

    def _rows_to_entries(self, cur, rows: list[dict]) -> list[TimeEntry]:
        tags = self._load_tags(cur, [int(r["entry_id"]) for r in rows])
        return [self._to_entry(r, tags.get(int(r["entry_id"]), ())) for r in rows]

    @staticmethod
    def _insert_tags(cur, entry_id: int, tags: Sequence[str]) -> None:
        if tags:
            cur.executemany(
                "INSERT INTO time_entry_tags(time_entry_id, tag) VALUES(%s,%s)",
                [(entry_id, tag) for tag in tags],
            )

    @retry_reads
    def get_by_id(self, entry_id: int) -> Optional[TimeEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM time_entries WHERE entry_id=%s", (int(entry_id),))
            row = fetchone(cur)
            if not row:
                return None
            return self._rows_to_entries(cur, [row])[0]

    @retry_reads
    def get_running_for_user(self, user_id: int) -> Optional[TimeEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM time_entries WHERE user_id=%s AND is_running=1",
                (int(user_id),),
            )
            row = fetchone(cur)
            if not row:
                return None
            return self._rows_to_entries(cur, [row])[0]

    def create_running(self, entry: NewTimeEntry) -> int:
        with db_transaction(self._conn_factory, conflict_message=TIMER_ALREADY_RUNNING) as (_, cur):
            # Serializes concurrent starts of the same user; uq_time_entries_one_running backs it up.
            cur.execute("SELECT user_id FROM users WHERE user_id=%s FOR UPDATE", (entry.user_id,))
            fetchall(cur)
            cur.execute(
                "SELECT entry_id FROM time_entries WHERE user_id=%s AND is_running=1 FOR UPDATE",
                (entry.user_id,),
            )
            if fetchall(cur):
                raise ConflictError(TIMER_ALREADY_RUNNING)

            cur.execute(
                """
                INSERT INTO time_entries(
                    user_id, company_id, project_id, project_name, client_id, client_name,
                    description, start_time, end_time, duration, is_running, is_billable
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,NULL,0,1,%s)
                """,
                (
                    entry.user_id,
                    entry.company_id,
                    entry.project_id,
                    entry.project_name,
                    entry.client_id,
                    entry.client_name,
                    entry.description,
                    entry.start_time,
                    1 if entry.is_billable else 0,
                ),
            )
            entry_id = int(cur.lastrowid)
            self._insert_tags(cur, entry_id, entry.tags)
            return entry_id

    def stop(self, *, entry_id: int, end_time: datetime, duration: int) -> bool:
        with db_transaction(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE time_entries
                SET end_time=%s, duration=%s, is_running=0
                WHERE entry_id=%s AND is_running=1
                """,
                (end_time, int(duration), int(entry_id)),
            )
            return cur.rowcount > 0

    def update(
        self,
        *,
        entry_id: int,
        changes: Mapping[str, Any],
        tags: Optional[Sequence[str]] = None,
    ) -> bool:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unsupported time entry columns: {sorted(unknown)}")

        with db_transaction(self._conn_factory) as (_, cur):
            cur.execute("SELECT entry_id FROM time_entries WHERE entry_id=%s FOR UPDATE", (int(entry_id),))
            if not fetchone(cur):
                return False

            if changes:
                assignments = ", ".join(f"{column}=%s" for column in changes)
                values = [int(v) if isinstance(v, bool) else v for v in changes.values()]
                cur.execute(
                    f"UPDATE time_entries SET {assignments} WHERE entry_id=%s",
                    (*values, int(entry_id)),
                )

            if tags is not None:
                # Full replace keeps the join table free of duplicates and orphans.
                cur.execute("DELETE FROM time_entry_tags WHERE time_entry_id=%s", (int(entry_id),))
                self._insert_tags(cur, int(entry_id), tags)
            return True

    def delete(self, entry_id: int) -> bool:
        with db_transaction(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM time_entries WHERE entry_id=%s", (int(entry_id),))
            return cur.rowcount > 0

    @retry_reads
    def list_for_user(
        self,
        *,
        user_id: int,
        company_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        project_id: Optional[int] = None,
        billable_only: bool = False,
    ) -> Sequence[TimeEntry]:
        clauses = ["user_id=%s"]
        params: list[object] = [int(user_id)]

        if company_id is not None:
            clauses.append("company_id=%s")
            params.append(int(company_id))
        if start is not None:
            clauses.append("start_time >= %s")
            params.append(start)
        if end is not None:
            clauses.append("start_time <= %s")
            params.append(end)
        if project_id is not None:
            clauses.append("project_id=%s")
            params.append(int(project_id))
        if billable_only:
            clauses.append("is_billable=1")

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM time_entries WHERE {where} ORDER BY start_time DESC",
                tuple(params),
            )
            return self._rows_to_entries(cur, fetchall(cur))

    @retry_reads
    def list_for_company(self, *, company_id: Optional[int], running_only: bool = False) -> Sequence[TimeEntry]:
        clauses: list[str] = []
        params: list[object] = []
        if company_id is not None:
            clauses.append("company_id=%s")
            params.append(int(company_id))
        if running_only:
            clauses.append("is_running=1")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM time_entries {where} ORDER BY start_time DESC", tuple(params))
            return self._rows_to_entries(cur, fetchall(cur))
