from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from flask import Flask, request

from ..common.datetime_utils import parse_iso_date, parse_iso_datetime
from ..common.http import json_body, ok, query_flag
from ..container import Container
from ..core.exceptions import ValidationError

# JSON field -> service field; anything else is passed through and rejected as not editable.
_BODY_FIELDS = {
    "projectId": "project_id",
    "clientId": "client_id",
    "description": "description",
    "isBillable": "is_billable",
    "tags": "tags",
    "endTime": "end_time",
    "duration": "duration",
    "projectName": "project_name",
    "clientName": "client_name",
    "userId": "user_id",
    "startTime": "start_time",
    "companyId": "company_id",
}


def _date_arg(name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a date in YYYY-MM-DD format")


def _datetime_value(raw: Any) -> Optional[datetime]:
    if raw is None:
        return None
    try:
        return parse_iso_datetime(str(raw))
    except ValueError:
        raise ValidationError("endTime must be an ISO-8601 datetime")


def _changes_from_body(body: dict) -> dict[str, Any]:
    changes = {_BODY_FIELDS.get(key, key): value for key, value in body.items()}
    if "end_time" in changes:
        changes["end_time"] = _datetime_value(changes["end_time"])
    return changes


def register(app: Flask, container: Container) -> None:
    service = container.time_entry_service
    auth = container.authenticator

    @app.route("/api/time-entries", methods=["POST"], endpoint="start_timer")
    def start_timer():
        body = json_body()
        entry = service.start_timer(
            auth.current_caller(),
            project_id=body.get("projectId"),
            client_id=body.get("clientId"),
            description=body.get("description"),
            is_billable=body.get("isBillable", False),
            tags=body.get("tags"),
        )
        return ok(entry, 201)

    @app.route("/api/time-entries/<int:entry_id>/stop", methods=["POST"], endpoint="stop_timer")
    def stop_timer(entry_id: int):
        return ok(service.stop_timer(auth.current_caller(), entry_id))

    @app.route("/api/time-entries/<int:entry_id>", methods=["GET"], endpoint="get_time_entry")
    def get_time_entry(entry_id: int):
        return ok(service.get_entry(auth.current_caller(), entry_id))

    @app.route("/api/time-entries/<int:entry_id>", methods=["PUT"], endpoint="update_time_entry")
    def update_time_entry(entry_id: int):
        changes = _changes_from_body(json_body())
        return ok(service.update_entry(auth.current_caller(), entry_id, changes))

    @app.route("/api/time-entries/<int:entry_id>", methods=["DELETE"], endpoint="delete_time_entry")
    def delete_time_entry(entry_id: int):
        service.delete_entry(auth.current_caller(), entry_id)
        return ok({"entry_id": entry_id})

    @app.route("/api/time-entries", methods=["GET"], endpoint="list_time_entries")
    def list_time_entries():
        entries = service.list_entries(
            auth.current_caller(),
            user_id=request.args.get("userId", type=int),
            start_date=_date_arg("startDate"),
            end_date=_date_arg("endDate"),
            project_id=request.args.get("projectId"),
            billable_only=query_flag("billableOnly"),
        )
        return ok(entries)

    @app.route("/api/time-entries/running", methods=["GET"], endpoint="running_time_entry")
    def running_time_entry():
        return ok(service.get_running(auth.current_caller(), request.args.get("userId", type=int)))

    @app.route("/api/time-summary", methods=["GET"], endpoint="time_summary")
    def time_summary():
        summary = service.summarize(auth.current_caller(), request.args.get("period", "month"))
        data = {
            "period": summary.period,
            "start_date": summary.start_date,
            "end_date": summary.end_date,
            "total_duration": summary.total_duration,
            "billable_duration": summary.billable_duration,
            "non_billable_duration": summary.non_billable_duration,
            "total_entries": summary.total_entries,
            "billable_entries": summary.billable_entries,
            "formatted": {
                "total": summary.formatted_total,
                "billable": summary.formatted_billable,
                "non_billable": summary.formatted_non_billable,
            },
        }
        return ok(data)

    @app.route("/api/admin/time-entries", methods=["GET"], endpoint="admin_time_entries")
    def admin_time_entries():
        entries = service.list_company_entries(
            auth.current_caller(),
            running_only=query_flag("running"),
            company_id=request.args.get("companyId", type=int),
        )
        return ok(entries)
