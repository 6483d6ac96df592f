from __future__ import annotations

import threading
from datetime import date, datetime

import pytest

from time_tracker.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


def _run_entry(service, clock, caller, minutes, **kwargs):
    entry = service.start_timer(caller, **kwargs)
    clock.advance(minutes=minutes)
    return service.stop_timer(caller, entry.entry_id)


def test_start_then_stop_after_an_hour(time_entry_service, clock, callers):
    employee = callers["employee"]
    entry = time_entry_service.start_timer(employee, description="Standup", is_billable=True, tags=["ops"])
    assert entry.is_running
    assert entry.end_time is None
    assert entry.company_id == 1
    assert entry.start_time == datetime(2026, 3, 11, 9, 0, 0)

    clock.advance(seconds=3600)
    stopped = time_entry_service.stop_timer(employee, entry.entry_id)

    assert stopped.is_running is False
    assert stopped.end_time == datetime(2026, 3, 11, 10, 0, 0)
    assert stopped.duration == 3600
    assert stopped.tags == ("ops",)


def test_second_start_is_conflict(time_entry_service, callers):
    time_entry_service.start_timer(callers["employee"])
    with pytest.raises(ConflictError):
        time_entry_service.start_timer(callers["employee"])

    # Other users are unaffected.
    assert time_entry_service.start_timer(callers["other"]).is_running


def test_concurrent_starts_leave_exactly_one_running(time_entry_service, entries_repo, callers):
    employee = callers["employee"]
    barrier = threading.Barrier(8)
    results = []
    lock = threading.Lock()

    def start():
        barrier.wait()
        try:
            time_entry_service.start_timer(employee)
            outcome = "ok"
        except ConflictError:
            outcome = "conflict"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=start) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert results.count("conflict") == 7
    assert len([e for e in entries_repo.entries.values() if e.is_running]) == 1


def test_start_after_stop_is_allowed(time_entry_service, clock, callers):
    _run_entry(time_entry_service, clock, callers["employee"], 5)
    assert time_entry_service.start_timer(callers["employee"]).is_running


def test_snapshot_comes_from_project_not_request(time_entry_service, callers):
    entry = time_entry_service.start_timer(callers["employee"], project_id=10, client_id=101)
    assert entry.project_name == "Website"
    # The project's own client wins over an explicit client id.
    assert (entry.client_id, entry.client_name) == (100, "Acme")


def test_client_only_snapshot(time_entry_service, callers):
    entry = time_entry_service.start_timer(callers["employee"], client_id=101)
    assert entry.project_id is None
    assert entry.client_name == "Globex"


def test_cross_tenant_project_is_denied(time_entry_service, entries_repo, callers):
    with pytest.raises(AuthorizationError) as exc:
        time_entry_service.start_timer(callers["employee"], project_id=20)
    assert exc.value.cross_tenant
    assert entries_repo.entries == {}


def test_unknown_project_is_not_found(time_entry_service, callers):
    with pytest.raises(NotFoundError):
        time_entry_service.start_timer(callers["employee"], project_id=999)


def test_stop_is_idempotent(time_entry_service, clock, callers):
    stopped = _run_entry(time_entry_service, clock, callers["employee"], 30)
    clock.advance(hours=2)
    again = time_entry_service.stop_timer(callers["employee"], stopped.entry_id)
    assert again == stopped
    assert again.duration == 1800


def test_stop_clamps_clock_skew_to_zero(time_entry_service, clock, callers):
    entry = time_entry_service.start_timer(callers["employee"])
    clock.advance(minutes=-5)
    stopped = time_entry_service.stop_timer(callers["employee"], entry.entry_id)
    assert stopped.duration == 0
    assert stopped.end_time == stopped.start_time


def test_stop_authorization(time_entry_service, callers):
    entry = time_entry_service.start_timer(callers["employee"])

    with pytest.raises(AuthorizationError):
        time_entry_service.stop_timer(callers["other"], entry.entry_id)
    with pytest.raises(AuthorizationError) as exc:
        time_entry_service.stop_timer(callers["b_admin"], entry.entry_id)
    assert exc.value.cross_tenant

    assert time_entry_service.stop_timer(callers["hr"], entry.entry_id).is_running is False


def test_root_can_act_across_tenants(time_entry_service, callers):
    entry = time_entry_service.start_timer(callers["b_employee"])
    assert time_entry_service.get_entry(callers["root"], entry.entry_id) == entry


def test_update_rejects_derived_fields(time_entry_service, callers):
    entry = time_entry_service.start_timer(callers["employee"])
    for field in ("duration", "project_name", "client_name", "user_id", "start_time", "company_id"):
        with pytest.raises(ValidationError):
            time_entry_service.update_entry(callers["employee"], entry.entry_id, {field: 1})


def test_update_replaces_tags_and_resnapshots_project(time_entry_service, callers):
    entry = time_entry_service.start_timer(callers["employee"], project_id=10, tags=["a", "b"])
    updated = time_entry_service.update_entry(
        callers["employee"],
        entry.entry_id,
        {"project_id": 11, "tags": ["c", "c"], "description": " planning ", "is_billable": True},
    )
    assert updated.tags == ("c",)
    assert updated.project_name == "Internal"
    assert updated.client_id is None
    assert updated.description == "planning"
    assert updated.is_billable is True


def test_update_is_billable_must_be_bool(time_entry_service, callers):
    entry = time_entry_service.start_timer(callers["employee"])
    with pytest.raises(ValidationError):
        time_entry_service.update_entry(callers["employee"], entry.entry_id, {"is_billable": "yes"})


def test_start_is_billable_must_be_bool(time_entry_service, entries_repo, callers):
    for value in ("false", "true", 0, 1, None):
        with pytest.raises(ValidationError):
            time_entry_service.start_timer(callers["employee"], is_billable=value)
    assert entries_repo.entries == {}


def test_update_client_keeps_project_client(time_entry_service, callers):
    employee = callers["employee"]
    entry = time_entry_service.start_timer(employee, project_id=10)

    updated = time_entry_service.update_entry(employee, entry.entry_id, {"client_id": 101})
    assert updated.project_id == 10
    assert (updated.client_id, updated.client_name) == (100, "Acme")


def test_update_client_on_project_without_client(time_entry_service, callers):
    employee = callers["employee"]
    entry = time_entry_service.start_timer(employee, project_id=11)

    updated = time_entry_service.update_entry(employee, entry.entry_id, {"client_id": 101})
    assert updated.project_name == "Internal"
    assert (updated.client_id, updated.client_name) == (101, "Globex")

    cleared = time_entry_service.update_entry(employee, entry.entry_id, {"client_id": None})
    assert cleared.client_id is None
    assert cleared.client_name is None


def test_end_time_correction_accepts_aware_datetimes(time_entry_service, clock, callers):
    employee = callers["employee"]
    entry = _run_entry(time_entry_service, clock, employee, 60)

    aware_end = datetime(2026, 3, 11, 9, 30).astimezone()
    corrected = time_entry_service.update_entry(employee, entry.entry_id, {"end_time": aware_end})
    assert corrected.end_time == datetime(2026, 3, 11, 9, 30)
    assert corrected.end_time.tzinfo is None
    assert corrected.duration == 30 * 60


def test_end_time_correction(time_entry_service, clock, callers):
    employee = callers["employee"]
    running = time_entry_service.start_timer(employee)
    with pytest.raises(InvalidStateError):
        time_entry_service.update_entry(employee, running.entry_id, {"end_time": datetime(2026, 3, 11, 9, 30)})

    clock.advance(hours=1)
    stopped = time_entry_service.stop_timer(employee, running.entry_id)

    corrected = time_entry_service.update_entry(employee, stopped.entry_id, {"end_time": datetime(2026, 3, 11, 9, 45)})
    assert corrected.duration == 45 * 60
    assert corrected.end_time == datetime(2026, 3, 11, 9, 45)

    with pytest.raises(ValidationError):
        time_entry_service.update_entry(employee, stopped.entry_id, {"end_time": datetime(2026, 3, 11, 8, 0)})


def test_delete(time_entry_service, clock, callers):
    stopped = _run_entry(time_entry_service, clock, callers["employee"], 10)
    with pytest.raises(AuthorizationError):
        time_entry_service.delete_entry(callers["other"], stopped.entry_id)

    time_entry_service.delete_entry(callers["employee"], stopped.entry_id)
    with pytest.raises(NotFoundError):
        time_entry_service.get_entry(callers["employee"], stopped.entry_id)


def test_list_includes_entries_late_on_end_date(time_entry_service, clock, callers):
    employee = callers["employee"]
    _run_entry(time_entry_service, clock, employee, 60)  # 09:00 on the 11th
    clock.now = datetime(2026, 3, 11, 18, 0, 0)
    _run_entry(time_entry_service, clock, employee, 60)
    clock.now = datetime(2026, 3, 12, 9, 0, 0)
    _run_entry(time_entry_service, clock, employee, 60)

    entries = time_entry_service.list_entries(employee, start_date=date(2026, 3, 11), end_date=date(2026, 3, 11))
    assert [e.start_time.hour for e in entries] == [18, 9]


def test_list_filters(time_entry_service, clock, callers):
    employee = callers["employee"]
    _run_entry(time_entry_service, clock, employee, 10, project_id=10, is_billable=True)
    _run_entry(time_entry_service, clock, employee, 10, project_id=11)

    assert len(time_entry_service.list_entries(employee, billable_only=True)) == 1
    assert [e.project_id for e in time_entry_service.list_entries(employee, project_id=11)] == [11]

    with pytest.raises(ValidationError):
        time_entry_service.list_entries(employee, start_date=date(2026, 3, 12), end_date=date(2026, 3, 11))


def test_list_other_users_entries(time_entry_service, clock, callers):
    _run_entry(time_entry_service, clock, callers["other"], 10)

    with pytest.raises(AuthorizationError):
        time_entry_service.list_entries(callers["employee"], user_id=2)
    with pytest.raises(AuthorizationError):
        time_entry_service.list_entries(callers["b_admin"], user_id=2)
    assert len(time_entry_service.list_entries(callers["hr"], user_id=2)) == 1


def test_get_running(time_entry_service, callers):
    assert time_entry_service.get_running(callers["employee"]) is None
    entry = time_entry_service.start_timer(callers["employee"])
    assert time_entry_service.get_running(callers["employee"]) == entry
    assert time_entry_service.get_running(callers["admin"], 1) == entry


def test_list_company_entries(time_entry_service, callers):
    a = time_entry_service.start_timer(callers["employee"])
    b = time_entry_service.start_timer(callers["b_employee"])

    with pytest.raises(AuthorizationError):
        time_entry_service.list_company_entries(callers["employee"])
    with pytest.raises(AuthorizationError):
        time_entry_service.list_company_entries(callers["admin"], company_id=2)

    assert time_entry_service.list_company_entries(callers["admin"], running_only=True) == [a]
    assert {e.entry_id for e in time_entry_service.list_company_entries(callers["root"])} == {a.entry_id, b.entry_id}
    assert time_entry_service.list_company_entries(callers["root"], company_id=2) == [b]


def test_summarize_week(time_entry_service, clock, callers):
    employee = callers["employee"]
    _run_entry(time_entry_service, clock, employee, 90, is_billable=True)
    clock.now = datetime(2026, 3, 14, 23, 0, 0)  # Saturday, last day of the week
    _run_entry(time_entry_service, clock, employee, 30)
    clock.now = datetime(2026, 3, 15, 9, 0, 0)  # next week
    _run_entry(time_entry_service, clock, employee, 30)

    summary = time_entry_service.summarize(employee, "week", today=date(2026, 3, 11))
    assert (summary.start_date, summary.end_date) == (date(2026, 3, 8), date(2026, 3, 14))
    assert summary.total_entries == 2
    assert summary.billable_entries == 1
    assert summary.total_duration == 120 * 60
    assert summary.formatted_billable == "01:30:00"
    assert summary.formatted_non_billable == "00:30:00"


def test_summarize_rejects_unknown_period(time_entry_service, callers):
    with pytest.raises(ValidationError):
        time_entry_service.summarize(callers["employee"], "year")
