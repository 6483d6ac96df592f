from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence

from .model import NewTimeEntry, TimeEntry

TIMER_ALREADY_RUNNING = "Cannot start a new timer: you already have a timer running. Stop it first."


class TimeEntryRepository(Protocol):
    def get_by_id(self, entry_id: int) -> Optional[TimeEntry]:
        raise NotImplementedError

    def get_running_for_user(self, user_id: int) -> Optional[TimeEntry]:
        raise NotImplementedError

    def create_running(self, entry: NewTimeEntry) -> int:
        """Insert a running entry unless the user already has one.

        Must be atomic: raises ConflictError when another running entry exists,
        including one inserted concurrently.
        """

        raise NotImplementedError

    def stop(self, *, entry_id: int, end_time: datetime, duration: int) -> bool:
        """Stop the entry if it is still running; False when it was already stopped."""

        raise NotImplementedError

    def update(
        self,
        *,
        entry_id: int,
        changes: Mapping[str, Any],
        tags: Optional[Sequence[str]] = None,
    ) -> bool:
        """Apply column changes and, when ``tags`` is given, replace the whole tag set."""

        raise NotImplementedError

    def delete(self, entry_id: int) -> bool:
        raise NotImplementedError

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
        """Entries whose start_time lies within [start, end], newest first.

        ``company_id`` None means no tenant filter (root callers).
        """

        raise NotImplementedError

    def list_for_company(self, *, company_id: Optional[int], running_only: bool = False) -> Sequence[TimeEntry]:
        raise NotImplementedError
