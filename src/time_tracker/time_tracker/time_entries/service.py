from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Optional, Sequence

from ..access.guard import AccessGuard
from ..access.roles import Caller, is_root
from ..catalog.repository import ProjectLookup
from ..common.datetime_utils import (
    Clock,
    end_of_day,
    now_local,
    period_bounds,
    seconds_between,
    start_of_day,
    to_local_naive,
)
from ..common.validators import (
    clean_description,
    clean_tags,
    optional_positive_int,
    require_bool,
    require_positive_int,
)
from ..core.enums import Operation, SummaryPeriod
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..users.repository import UserRepository
from .model import NewTimeEntry, TimeEntry, TimeSummary
from .repository import TIMER_ALREADY_RUNNING, TimeEntryRepository

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"project_id", "client_id", "description", "is_billable", "tags", "end_time"})


@dataclass(frozen=True)
class _Snapshot:
    project_id: Optional[int] = None
    project_name: Optional[str] = None
    client_id: Optional[int] = None
    client_name: Optional[str] = None


class TimeEntryService:
    """Time entry lifecycle: one running timer per user, server-side durations.

    Every operation authorizes through the access guard before touching the
    repository. ``clock`` is injectable so durations are testable.
    """

    def __init__(
        self,
        entries: TimeEntryRepository,
        users: UserRepository,
        projects: ProjectLookup,
        guard: AccessGuard,
        *,
        clock: Clock = now_local,
    ):
        self._entries = entries
        self._users = users
        self._projects = projects
        self._guard = guard
        self._clock = clock

    def _now(self) -> datetime:
        # DATETIME columns hold whole seconds
        return self._clock().replace(microsecond=0)

    def _get(self, entry_id: int) -> TimeEntry:
        entry = self._entries.get_by_id(require_positive_int(entry_id, "Time entry id"))
        if not entry:
            raise NotFoundError("Time entry not found")
        return entry

    def _authorize(self, caller: Caller, operation: Operation, entry: TimeEntry) -> None:
        self._guard.require(caller, operation, target_company_id=entry.company_id, owner_id=entry.user_id)

    def _resolve_client(self, caller: Caller, company_id: Optional[int], client_id: Optional[int]) -> _Snapshot:
        if client_id is None:
            return _Snapshot()
        client = self._projects.get_client(client_id)
        if not client:
            raise NotFoundError("Client not found")
        self._require_same_company(caller, company_id, client.company_id, "client")
        return _Snapshot(client_id=client.client_id, client_name=client.name)

    def _resolve_snapshot(
        self,
        caller: Caller,
        company_id: Optional[int],
        project_id: Optional[int],
        client_id: Optional[int],
    ) -> _Snapshot:
        """Derive project/client display names from their source rows, never from the request."""
        if project_id is None:
            return self._resolve_client(caller, company_id, client_id)

        project = self._projects.get_project(project_id)
        if not project:
            raise NotFoundError("Project not found")
        self._require_same_company(caller, company_id, project.company_id, "project")

        client = self._resolve_client(caller, company_id, project.client_id or client_id)
        return _Snapshot(
            project_id=project.project_id,
            project_name=project.name,
            client_id=client.client_id,
            client_name=client.client_name,
        )

    def _require_same_company(
        self,
        caller: Caller,
        entry_company_id: Optional[int],
        ref_company_id: Optional[int],
        what: str,
    ) -> None:
        self._guard.require(caller, Operation.READ, target_company_id=ref_company_id)
        if entry_company_id is not None and ref_company_id != entry_company_id:
            raise AuthorizationError(f"Access denied to this {what}", cross_tenant=True)

    def _company_filter(self, caller: Caller) -> Optional[int]:
        return None if is_root(caller.role) else caller.company_id

    def _authorize_user_scope(self, caller: Caller, user_id: Optional[int]) -> int:
        """Own entries always; another user's only for admin-tier callers of the same company."""
        if user_id is None or int(user_id) == caller.user_id:
            return caller.user_id

        target = self._users.get_by_id(int(user_id))
        if not target:
            raise NotFoundError("User not found")
        self._guard.require(caller, Operation.READ, target_company_id=target.company_id, owner_id=target.user_id)
        return target.user_id

    def start_timer(
        self,
        caller: Caller,
        *,
        project_id: Optional[int] = None,
        client_id: Optional[int] = None,
        description: Optional[str] = None,
        is_billable: bool = False,
        tags: Optional[Sequence[str]] = None,
    ) -> TimeEntry:
        is_billable = require_bool(is_billable, "is_billable")
        company_id = self._guard.company_for_create(caller)
        snapshot = self._resolve_snapshot(
            caller,
            company_id,
            optional_positive_int(project_id, "Project id"),
            optional_positive_int(client_id, "Client id"),
        )

        # Fast path only; create_running re-checks inside its transaction.
        if self._entries.get_running_for_user(caller.user_id):
            raise ConflictError(TIMER_ALREADY_RUNNING)

        entry_id = self._entries.create_running(
            NewTimeEntry(
                user_id=caller.user_id,
                company_id=company_id,
                start_time=self._now(),
                is_billable=is_billable,
                project_id=snapshot.project_id,
                project_name=snapshot.project_name,
                client_id=snapshot.client_id,
                client_name=snapshot.client_name,
                description=clean_description(description),
                tags=clean_tags(tags),
            )
        )
        logger.info("Timer %s started by user %s (company=%s)", entry_id, caller.user_id, company_id)
        return self._get(entry_id)

    def stop_timer(self, caller: Caller, entry_id: int) -> TimeEntry:
        """Stop a running entry. Stopping an already stopped entry returns it unchanged."""
        entry = self._get(entry_id)
        self._authorize(caller, Operation.UPDATE, entry)

        if not entry.is_running:
            return entry

        end_time = max(self._now(), entry.start_time)
        duration = seconds_between(entry.start_time, end_time)
        if self._entries.stop(entry_id=entry.entry_id, end_time=end_time, duration=duration):
            logger.info("Timer %s stopped by user %s after %ss", entry.entry_id, caller.user_id, duration)
        return self._get(entry.entry_id)

    def update_entry(self, caller: Caller, entry_id: int, changes: Mapping[str, Any]) -> TimeEntry:
        not_editable = set(changes) - EDITABLE_FIELDS
        if not_editable:
            raise ValidationError(f"Field(s) not editable: {', '.join(sorted(not_editable))}")

        entry = self._get(entry_id)
        self._authorize(caller, Operation.UPDATE, entry)

        updates: dict[str, Any] = {}
        if "project_id" in changes:
            snapshot = self._resolve_snapshot(
                caller,
                entry.company_id,
                optional_positive_int(changes["project_id"], "Project id"),
                optional_positive_int(changes.get("client_id"), "Client id"),
            )
            updates.update(
                project_id=snapshot.project_id,
                project_name=snapshot.project_name,
                client_id=snapshot.client_id,
                client_name=snapshot.client_name,
            )
        elif "client_id" in changes:
            # A kept project still decides the client when it has one.
            snapshot = self._resolve_snapshot(
                caller,
                entry.company_id,
                entry.project_id,
                optional_positive_int(changes["client_id"], "Client id"),
            )
            updates.update(client_id=snapshot.client_id, client_name=snapshot.client_name)

        if "description" in changes:
            updates["description"] = clean_description(changes["description"])

        if "is_billable" in changes:
            updates["is_billable"] = require_bool(changes["is_billable"], "is_billable")

        if "end_time" in changes:
            updates.update(self._corrected_end(entry, changes["end_time"]))

        tags = clean_tags(changes["tags"]) if "tags" in changes else None

        if updates or tags is not None:
            if not self._entries.update(entry_id=entry.entry_id, changes=updates, tags=tags):
                raise NotFoundError("Time entry not found")
            logger.info("Time entry %s updated by user %s: %s", entry.entry_id, caller.user_id, sorted(changes))
        return self._get(entry.entry_id)

    @staticmethod
    def _corrected_end(entry: TimeEntry, end_time) -> dict[str, Any]:
        """Manual correction of a stopped entry's end; the duration is re-derived."""
        if entry.is_running:
            raise InvalidStateError("Stop the timer before correcting its end time")
        if not isinstance(end_time, datetime):
            raise ValidationError("end_time must be a datetime")
        end_time = to_local_naive(end_time).replace(microsecond=0)
        if end_time < entry.start_time:
            raise ValidationError("End time cannot be before start time")
        return {"end_time": end_time, "duration": seconds_between(entry.start_time, end_time)}

    def delete_entry(self, caller: Caller, entry_id: int) -> None:
        entry = self._get(entry_id)
        self._authorize(caller, Operation.DELETE, entry)

        if not self._entries.delete(entry.entry_id):
            raise NotFoundError("Time entry not found")
        logger.info("Time entry %s deleted by user %s", entry.entry_id, caller.user_id)

    def get_entry(self, caller: Caller, entry_id: int) -> TimeEntry:
        entry = self._get(entry_id)
        self._authorize(caller, Operation.READ, entry)
        return entry

    def get_running(self, caller: Caller, user_id: Optional[int] = None) -> Optional[TimeEntry]:
        target_user_id = self._authorize_user_scope(caller, user_id)
        return self._entries.get_running_for_user(target_user_id)

    def list_entries(
        self,
        caller: Caller,
        *,
        user_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        project_id: Optional[int] = None,
        billable_only: bool = False,
    ) -> Sequence[TimeEntry]:
        """Entries of one user, optionally filtered.

        ``end_date`` is inclusive through 23:59:59.999 so same-day entries are kept.
        """
        target_user_id = self._authorize_user_scope(caller, user_id)
        if start_date and end_date and end_date < start_date:
            raise ValidationError("End date cannot be before start date")

        return self._entries.list_for_user(
            user_id=target_user_id,
            company_id=self._company_filter(caller),
            start=start_of_day(start_date) if start_date else None,
            end=end_of_day(end_date) if end_date else None,
            project_id=optional_positive_int(project_id, "Project id"),
            billable_only=bool(billable_only),
        )

    def list_company_entries(
        self,
        caller: Caller,
        *,
        running_only: bool = False,
        company_id: Optional[int] = None,
    ) -> Sequence[TimeEntry]:
        """Admin view over a tenant. Root may name any company or none (all tenants)."""
        if company_id is None:
            self._guard.require_admin(caller, scoped=False)
            effective = self._company_filter(caller)
        else:
            self._guard.require_admin(caller, target_company_id=int(company_id))
            effective = int(company_id)
        return self._entries.list_for_company(company_id=effective, running_only=bool(running_only))

    def summarize(self, caller: Caller, period: str = "month", *, today: Optional[date] = None) -> TimeSummary:
        try:
            period = SummaryPeriod(period)
        except ValueError:
            raise ValidationError("Period must be one of: today, week, month")

        today = today or self._clock().date()
        first, last = period_bounds(period.value, today)
        entries = self._entries.list_for_user(
            user_id=caller.user_id,
            company_id=self._company_filter(caller),
            start=start_of_day(first),
            end=end_of_day(last),
        )

        billable = [e for e in entries if e.is_billable]
        return TimeSummary(
            period=period.value,
            start_date=first,
            end_date=last,
            total_duration=sum(e.duration for e in entries),
            billable_duration=sum(e.duration for e in billable),
            total_entries=len(entries),
            billable_entries=len(billable),
        )
