from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from time_tracker.access.guard import AccessGuard
from time_tracker.access.roles import Caller
from time_tracker.catalog.model import Client, Project
from time_tracker.core.enums import Role, TeamRole
from time_tracker.core.exceptions import ConflictError, NotFoundError
from time_tracker.teams.model import Team, TeamMember
from time_tracker.teams.repository import ALREADY_MEMBER, LEADER_EXISTS, LEADER_NOT_REMOVABLE, NOT_A_MEMBER
from time_tracker.teams.service import TeamService
from time_tracker.time_entries.model import TimeEntry
from time_tracker.time_entries.repository import TIMER_ALREADY_RUNNING
from time_tracker.time_entries.service import TimeEntryService
from time_tracker.users.model import User
from time_tracker.users.service import UserService

COMPANY_A = 1
COMPANY_B = 2


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeUsersRepo:
    def __init__(self, users=()):
        self._users = {u.user_id: u for u in users}

    def add(self, user: User) -> User:
        self._users[user.user_id] = user
        return user

    def get_by_id(self, user_id):
        return self._users.get(int(user_id))

    def update_profile(self, user_id, changes):
        user = self._users.get(int(user_id))
        if not user:
            return False
        self._users[user.user_id] = replace(user, **dict(changes))
        return True


class FakeProjectLookup:
    def __init__(self, projects=(), clients=()):
        self._projects = {p.project_id: p for p in projects}
        self._clients = {c.client_id: c for c in clients}

    def get_project(self, project_id):
        return self._projects.get(int(project_id))

    def get_client(self, client_id):
        return self._clients.get(int(client_id))


class InMemoryTimeEntryRepo:
    """Emulates the one-running-timer unique index with a lock around check-then-insert."""

    def __init__(self):
        self._lock = threading.Lock()
        self._next_id = 1
        self.entries: dict[int, TimeEntry] = {}

    def get_by_id(self, entry_id):
        return self.entries.get(int(entry_id))

    def get_running_for_user(self, user_id):
        for e in self.entries.values():
            if e.user_id == int(user_id) and e.is_running:
                return e
        return None

    def create_running(self, entry):
        with self._lock:
            if any(e.user_id == entry.user_id and e.is_running for e in self.entries.values()):
                raise ConflictError(TIMER_ALREADY_RUNNING)
            entry_id = self._next_id
            self._next_id += 1
            self.entries[entry_id] = TimeEntry(
                entry_id=entry_id,
                user_id=entry.user_id,
                company_id=entry.company_id,
                start_time=entry.start_time,
                is_billable=entry.is_billable,
                project_id=entry.project_id,
                project_name=entry.project_name,
                client_id=entry.client_id,
                client_name=entry.client_name,
                description=entry.description,
                tags=tuple(entry.tags),
            )
            return entry_id

    def stop(self, *, entry_id, end_time, duration):
        with self._lock:
            e = self.entries.get(int(entry_id))
            if not e or not e.is_running:
                return False
            self.entries[e.entry_id] = replace(e, end_time=end_time, duration=duration, is_running=False)
            return True

    def update(self, *, entry_id, changes, tags=None):
        e = self.entries.get(int(entry_id))
        if not e:
            return False
        e = replace(e, **dict(changes))
        if tags is not None:
            e = replace(e, tags=tuple(tags))
        self.entries[e.entry_id] = e
        return True

    def delete(self, entry_id):
        return self.entries.pop(int(entry_id), None) is not None

    def list_for_user(self, *, user_id, company_id=None, start=None, end=None, project_id=None, billable_only=False):
        out = [
            e
            for e in self.entries.values()
            if e.user_id == int(user_id)
            and (company_id is None or e.company_id == company_id)
            and (start is None or e.start_time >= start)
            and (end is None or e.start_time <= end)
            and (project_id is None or e.project_id == project_id)
            and (not billable_only or e.is_billable)
        ]
        return sorted(out, key=lambda e: e.start_time, reverse=True)

    def list_for_company(self, *, company_id, running_only=False):
        out = [
            e
            for e in self.entries.values()
            if (company_id is None or e.company_id == company_id) and (not running_only or e.is_running)
        ]
        return sorted(out, key=lambda e: e.start_time, reverse=True)


class InMemoryTeamRepo:
    """Emulates the active-membership and single-leader unique indexes."""

    def __init__(self, users: FakeUsersRepo):
        self._lock = threading.Lock()
        self._users = users
        self._next_team = 1
        self._next_member = 1
        self.teams: dict[int, Team] = {}
        self.members: dict[int, TeamMember] = {}

    def _active(self, team_id):
        return [m for m in self.members.values() if m.team_id == int(team_id) and m.is_active]

    def _recount(self, team_id):
        team = self.teams[int(team_id)]
        self.teams[team.team_id] = replace(team, member_count=len(self._active(team_id)))

    def _insert(self, team_id, user_id, role, joined_at):
        user = self._users.get_by_id(user_id)
        member = TeamMember(
            member_id=self._next_member,
            team_id=int(team_id),
            user_id=int(user_id),
            team_role=role,
            joined_at=joined_at,
            user_name=user.name if user else None,
            user_email=user.email if user else None,
        )
        self._next_member += 1
        self.members[member.member_id] = member
        return member.member_id

    def get_team(self, team_id):
        return self.teams.get(int(team_id))

    def get_active_member(self, team_id, user_id):
        for m in self._active(team_id):
            if m.user_id == int(user_id):
                return m
        return None

    def list_members(self, team_id):
        return sorted(self._active(team_id), key=lambda m: (m.team_role != TeamRole.LEADER, m.joined_at))

    def create_team(self, *, company_id, name, description, leader_user_id, created_by, joined_at):
        with self._lock:
            team_id = self._next_team
            self._next_team += 1
            self.teams[team_id] = Team(
                team_id=team_id,
                company_id=company_id,
                name=name,
                description=description,
                leader_id=int(leader_user_id),
                created_by=created_by,
            )
            self._insert(team_id, leader_user_id, TeamRole.LEADER, joined_at)
            self._recount(team_id)
            return team_id

    def add_member(self, *, team_id, user_id, role, joined_at):
        with self._lock:
            if self.get_active_member(team_id, user_id):
                raise ConflictError(ALREADY_MEMBER)
            if role == TeamRole.LEADER and any(m.team_role == TeamRole.LEADER for m in self._active(team_id)):
                raise ConflictError(LEADER_EXISTS)
            member_id = self._insert(team_id, user_id, role, joined_at)
            if role == TeamRole.LEADER:
                self.teams[int(team_id)] = replace(self.teams[int(team_id)], leader_id=int(user_id))
            self._recount(team_id)
            return member_id

    def promote_leader(self, *, team_id, user_id):
        with self._lock:
            target = self.get_active_member(team_id, user_id)
            if not target:
                raise NotFoundError(NOT_A_MEMBER)
            for m in self._active(team_id):
                if m.team_role == TeamRole.LEADER:
                    self.members[m.member_id] = replace(m, team_role=TeamRole.MEMBER)
            self.members[target.member_id] = replace(target, team_role=TeamRole.LEADER)
            self.teams[int(team_id)] = replace(self.teams[int(team_id)], leader_id=int(user_id))

    def remove_member(self, *, team_id, user_id, left_at):
        with self._lock:
            target = self.get_active_member(team_id, user_id)
            if not target:
                raise NotFoundError(NOT_A_MEMBER)
            if target.team_role == TeamRole.LEADER:
                raise ConflictError(LEADER_NOT_REMOVABLE)
            self.members[target.member_id] = replace(target, is_active=False, left_at=left_at)
            self._recount(team_id)

    def list_teams(self, company_id):
        out = [t for t in self.teams.values() if t.is_active and (company_id is None or t.company_id == company_id)]
        return sorted(out, key=lambda t: t.team_id, reverse=True)

    def list_teams_for_user(self, user_id):
        team_ids = {m.team_id for m in self.members.values() if m.user_id == int(user_id) and m.is_active}
        return [t for t in self.list_teams(None) if t.team_id in team_ids]

    def deactivate_team(self, *, team_id, left_at):
        with self._lock:
            for m in self._active(team_id):
                self.members[m.member_id] = replace(m, is_active=False, left_at=left_at)
            self.teams[int(team_id)] = replace(self.teams[int(team_id)], is_active=False, member_count=0)

    def leaders(self, team_id):
        return [m for m in self._active(team_id) if m.team_role == TeamRole.LEADER]


def make_user(user_id, role=Role.EMPLOYEE, company_id=COMPANY_A, **kwargs):
    return User(
        user_id=user_id,
        company_id=company_id,
        name=kwargs.pop("name", f"User {user_id}"),
        email=kwargs.pop("email", f"user{user_id}@example.com"),
        role=role,
        **kwargs,
    )


def caller_for(user: User) -> Caller:
    return Caller(user_id=user.user_id, role=user.role, company_id=user.company_id)


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 11, 9, 0, 0)


@pytest.fixture
def clock(fixed_now):
    return FakeClock(fixed_now)


@pytest.fixture
def guard():
    return AccessGuard()


@pytest.fixture
def users_repo():
    return FakeUsersRepo(
        [
            make_user(1, Role.EMPLOYEE, hourly_rate=30.0),
            make_user(2, Role.EMPLOYEE),
            make_user(3, Role.HR),
            make_user(4, Role.ADMIN),
            make_user(5, Role.SUPER_ADMIN),
            make_user(9, Role.ROOT, company_id=None),
            make_user(21, Role.EMPLOYEE, company_id=COMPANY_B),
            make_user(24, Role.ADMIN, company_id=COMPANY_B),
        ]
    )


@pytest.fixture
def projects():
    return FakeProjectLookup(
        projects=[
            Project(project_id=10, name="Website", company_id=COMPANY_A, client_id=100),
            Project(project_id=11, name="Internal", company_id=COMPANY_A),
            Project(project_id=20, name="Other tenant", company_id=COMPANY_B, client_id=200),
        ],
        clients=[
            Client(client_id=100, name="Acme", company_id=COMPANY_A),
            Client(client_id=101, name="Globex", company_id=COMPANY_A),
            Client(client_id=200, name="Initech", company_id=COMPANY_B),
        ],
    )


@pytest.fixture
def entries_repo():
    return InMemoryTimeEntryRepo()


@pytest.fixture
def teams_repo(users_repo):
    return InMemoryTeamRepo(users_repo)


@pytest.fixture
def time_entry_service(entries_repo, users_repo, projects, guard, clock):
    return TimeEntryService(entries_repo, users_repo, projects, guard, clock=clock)


@pytest.fixture
def team_service(teams_repo, users_repo, guard, clock):
    return TeamService(teams_repo, users_repo, guard, clock=clock)


@pytest.fixture
def user_service(users_repo, guard):
    return UserService(users_repo, guard)


@pytest.fixture
def callers(users_repo):
    """Callers by role name: employee/other/hr/admin/super_admin/root/b_employee/b_admin."""
    ids = {
        "employee": 1,
        "other": 2,
        "hr": 3,
        "admin": 4,
        "super_admin": 5,
        "root": 9,
        "b_employee": 21,
        "b_admin": 24,
    }
    return {name: caller_for(users_repo.get_by_id(uid)) for name, uid in ids.items()}
