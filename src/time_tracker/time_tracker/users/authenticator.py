from __future__ import annotations

from typing import Protocol

from flask import session

from ..access.roles import Caller
from ..core.enums import Role
from ..core.exceptions import AuthenticationError


class Authenticator(Protocol):
    """Yields the verified identity of the current request.

    Credential checks and session issuance happen outside this package.
    """

    def current_caller(self) -> Caller:
        raise NotImplementedError


class SessionAuthenticator(Authenticator):
    """Reads the (user_id, role, company_id) triple the login flow stored in the Flask session."""

    def current_caller(self) -> Caller:
        if "user_id" not in session or "role" not in session:
            raise AuthenticationError("Please sign in to continue")
        try:
            role = Role(session["role"])
            user_id = int(session["user_id"])
        except (TypeError, ValueError):
            raise AuthenticationError("Session is invalid, please sign in again")

        company_id = session.get("company_id")
        if company_id is None and role != Role.ROOT:
            raise AuthenticationError("Session is invalid, please sign in again")

        return Caller(
            user_id=user_id,
            role=role,
            company_id=int(company_id) if company_id is not None else None,
        )
