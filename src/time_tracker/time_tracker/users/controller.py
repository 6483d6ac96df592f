from __future__ import annotations

from flask import Flask

from ..common.http import json_body, ok
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.user_service
    auth = container.authenticator

    @app.route("/api/users/<int:user_id>", methods=["GET"], endpoint="get_user_profile")
    def get_user_profile(user_id: int):
        return ok(service.get_profile(auth.current_caller(), user_id))

    @app.route("/api/users/<int:user_id>", methods=["PUT"], endpoint="update_user_profile")
    def update_user_profile(user_id: int):
        body = json_body()
        kwargs = {"name": body.get("name"), "timezone": body.get("timezone")}
        # Absent and null differ here: only a present key touches the rate.
        if "hourlyRate" in body:
            kwargs["hourly_rate"] = body["hourlyRate"]
        return ok(service.update_profile(auth.current_caller(), user_id, **kwargs))
