from __future__ import annotations

from flask import Flask, request

from ..common.http import json_body, ok
from ..container import Container
from ..core.enums import TeamRole


def register(app: Flask, container: Container) -> None:
    service = container.team_service
    auth = container.authenticator

    @app.route("/api/teams", methods=["POST"], endpoint="create_team")
    def create_team():
        body = json_body()
        team = service.create_team(
            auth.current_caller(),
            name=body.get("name", ""),
            leader_user_id=body.get("leaderId"),
            description=body.get("description"),
        )
        return ok(team, 201)

    @app.route("/api/teams", methods=["GET"], endpoint="list_teams")
    def list_teams():
        return ok(service.list_teams(auth.current_caller(), request.args.get("companyId", type=int)))

    @app.route("/api/teams/<int:team_id>", methods=["GET"], endpoint="get_team")
    def get_team(team_id: int):
        return ok(service.get_team(auth.current_caller(), team_id))

    @app.route("/api/teams/<int:team_id>", methods=["DELETE"], endpoint="delete_team")
    def delete_team(team_id: int):
        service.delete_team(auth.current_caller(), team_id)
        return ok({"team_id": team_id})

    @app.route("/api/users/<int:user_id>/teams", methods=["GET"], endpoint="list_user_teams")
    def list_user_teams(user_id: int):
        return ok(service.list_user_teams(auth.current_caller(), user_id))

    @app.route("/api/teams/<int:team_id>/members", methods=["GET"], endpoint="list_team_members")
    def list_team_members(team_id: int):
        return ok(service.list_members(auth.current_caller(), team_id))

    @app.route("/api/teams/<int:team_id>/members", methods=["POST"], endpoint="add_team_member")
    def add_team_member(team_id: int):
        body = json_body()
        member = service.add_member(
            auth.current_caller(),
            team_id,
            body.get("userId"),
            body.get("role", TeamRole.MEMBER.value),
        )
        return ok(member, 201)

    @app.route("/api/teams/<int:team_id>/members/<int:user_id>", methods=["PUT"], endpoint="change_team_role")
    def change_team_role(team_id: int, user_id: int):
        body = json_body()
        return ok(service.change_role(auth.current_caller(), team_id, user_id, body.get("role")))

    @app.route("/api/teams/<int:team_id>/members/<int:user_id>", methods=["DELETE"], endpoint="remove_team_member")
    def remove_team_member(team_id: int, user_id: int):
        service.remove_member(auth.current_caller(), team_id, user_id)
        return ok({"team_id": team_id, "user_id": user_id})
