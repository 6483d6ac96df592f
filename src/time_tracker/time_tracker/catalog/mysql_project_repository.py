from __future__ import annotations

from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, retry_reads
from .model import Client, Project
from .repository import ProjectLookup


class MySQLProjectLookup(ProjectLookup):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @retry_reads
    def get_project(self, project_id: int) -> Optional[Project]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT project_id, name, company_id, client_id FROM projects WHERE project_id=%s",
                (int(project_id),),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Project(
                project_id=int(row["project_id"]),
                name=row["name"],
                company_id=row.get("company_id"),
                client_id=row.get("client_id"),
            )

    @retry_reads
    def get_client(self, client_id: int) -> Optional[Client]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT client_id, name, company_id FROM clients WHERE client_id=%s",
                (int(client_id),),
            )
            row = fetchone(cur)
            if not row:
                return None
            return Client(client_id=int(row["client_id"]), name=row["name"], company_id=row.get("company_id"))
