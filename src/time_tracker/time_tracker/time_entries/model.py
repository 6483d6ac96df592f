from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import format_duration


@dataclass(frozen=True)
class TimeEntry:
    """Domain entity: a time entry, running while ``end_time`` is None.

    ``project_name``/``client_name`` are snapshots taken server-side when the
    reference is written. ``duration`` (seconds) is authoritative only once stopped.
    """

    entry_id: int
    user_id: int
    company_id: Optional[int]
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: int = 0
    is_running: bool = True
    is_billable: bool = False
    project_id: Optional[int] = None
    project_name: Optional[str] = None
    client_id: Optional[int] = None
    client_name: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class NewTimeEntry:
    user_id: int
    company_id: Optional[int]
    start_time: datetime
    is_billable: bool = False
    project_id: Optional[int] = None
    project_name: Optional[str] = None
    client_id: Optional[int] = None
    client_name: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class TimeSummary:
    """Read-model for the dashboard totals of one period."""

    period: str
    start_date: date
    end_date: date
    total_duration: int
    billable_duration: int
    total_entries: int
    billable_entries: int

    @property
    def non_billable_duration(self) -> int:
        return self.total_duration - self.billable_duration

    @property
    def formatted_total(self) -> str:
        return format_duration(self.total_duration)

    @property
    def formatted_billable(self) -> str:
        return format_duration(self.billable_duration)

    @property
    def formatted_non_billable(self) -> str:
        return format_duration(self.non_billable_duration)
