from __future__ import annotations

from dataclasses import dataclass

from .access.guard import AccessGuard
from .catalog.mysql_project_repository import MySQLProjectLookup
from .core.constants import DEFAULT_READ_RETRY_ATTEMPTS
from .database.connection import DBConfig, DatabaseConnection
from .teams.mysql_team_repository import MySQLTeamRepository
from .teams.service import TeamService
from .time_entries.mysql_time_entry_repository import MySQLTimeEntryRepository
from .time_entries.service import TimeEntryService
from .users.authenticator import Authenticator, SessionAuthenticator
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import UserService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    users_repo: MySQLUserRepository
    projects_repo: MySQLProjectLookup
    time_entries_repo: MySQLTimeEntryRepository
    teams_repo: MySQLTeamRepository

    guard: AccessGuard
    authenticator: Authenticator

    user_service: UserService
    time_entry_service: TimeEntryService
    team_service: TeamService


def build_container(*, db_config: dict, read_retry_attempts: int = DEFAULT_READ_RETRY_ATTEMPTS) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        read_retry_attempts=int(read_retry_attempts),
    )
    conn = DatabaseConnection.get_instance(config)

    users_repo = MySQLUserRepository(conn)
    projects_repo = MySQLProjectLookup(conn)
    time_entries_repo = MySQLTimeEntryRepository(conn)
    teams_repo = MySQLTeamRepository(conn)

    guard = AccessGuard()

    user_service = UserService(users_repo, guard)
    time_entry_service = TimeEntryService(time_entries_repo, users_repo, projects_repo, guard)
    team_service = TeamService(teams_repo, users_repo, guard)

    return Container(
        conn=conn,
        users_repo=users_repo,
        projects_repo=projects_repo,
        time_entries_repo=time_entries_repo,
        teams_repo=teams_repo,
        guard=guard,
        authenticator=SessionAuthenticator(),
        user_service=user_service,
        time_entry_service=time_entry_service,
        team_service=team_service,
    )
